"""Shared fixtures: small in-memory directories built with DirectoryBuilder."""

import pytest

from privad.analysis.audit_warnings import WarningsCollector
from privad.analysis.resolver import AuditContext, MembershipResolver
from privad.ingestion.snapshot import SnapshotDirectory
from privad.model.attributes import AttributeSchemaCatalog


DOMAIN_SID = "S-1-5-21-1004336348-1177238915-682003330"
BASE_DN = "DC=corp,DC=local"

GLOBAL_SECURITY = -2147483646        # 0x80000002
DOMAIN_LOCAL_SECURITY = -2147483644  # 0x80000004
BUILTIN_LOCAL_SECURITY = -2147483643  # 0x80000005
UNIVERSAL_SECURITY = -2147483640     # 0x80000008


class DirectoryBuilder:
    """Builds snapshot entries with realistic objectClass chains and SIDs."""

    def __init__(self, domain_sid: str = DOMAIN_SID, base_dn: str = BASE_DN):
        self.domain_sid = domain_sid
        self.base_dn = base_dn
        self.objects = []
        self._by_dn = {}

    def dn(self, cn: str, container: str = "CN=Users") -> str:
        return f"CN={cn},{container},{self.base_dn}"

    def entry(self, dn: str, classes: list, **attrs) -> str:
        obj = {"distinguishedName": dn, "objectClass": classes, **attrs}
        self.objects.append(obj)
        self._by_dn[dn] = obj
        return dn

    def user(self, name: str, rid: int, primary_group: int = 513, uac: int = 512, **attrs) -> str:
        return self.entry(
            self.dn(name),
            ["top", "person", "organizationalPerson", "user"],
            name=name,
            sAMAccountName=name,
            objectSid=f"{self.domain_sid}-{rid}",
            primaryGroupID=primary_group,
            userAccountControl=uac,
            **attrs
        )

    def computer(self, name: str, rid: int, primary_group: int = 515, uac: int = 4096, **attrs) -> str:
        return self.entry(
            self.dn(name, "CN=Computers"),
            ["top", "person", "organizationalPerson", "user", "computer"],
            name=name,
            sAMAccountName=f"{name}$",
            objectSid=f"{self.domain_sid}-{rid}",
            primaryGroupID=primary_group,
            userAccountControl=uac,
            **attrs
        )

    def group(self, name: str, rid: int = None, sid: str = None, members=(),
              group_type: int = GLOBAL_SECURITY, container: str = "CN=Users") -> str:
        return self.entry(
            self.dn(name, container),
            ["top", "group"],
            name=name,
            sAMAccountName=name,
            objectSid=sid or f"{self.domain_sid}-{rid}",
            groupType=group_type,
            member=list(members),
        )

    def foreign_principal(self, sid: str) -> str:
        return self.entry(
            self.dn(sid, "CN=ForeignSecurityPrincipals"),
            ["top", "foreignSecurityPrincipal"],
            name=sid,
            objectSid=sid,
        )

    def add_member(self, group_dn: str, member_dn: str) -> None:
        self._by_dn[group_dn]["member"].append(member_dn)

    def build(self) -> SnapshotDirectory:
        return SnapshotDirectory(objects=self.objects, domain_sid=self.domain_sid)


@pytest.fixture
def builder():
    return DirectoryBuilder()


@pytest.fixture
def catalog():
    return AttributeSchemaCatalog()


@pytest.fixture
def make_resolver(catalog):
    """Factory: resolver + warnings collector over a built directory."""
    def make(directory):
        warnings = WarningsCollector()
        context = AuditContext(gateway=directory, catalog=catalog, warnings=warnings)
        return MembershipResolver(context), warnings
    return make


@pytest.fixture
def corp(builder):
    """A small domain with nesting, a cycle-free tree and primary-group members.

    Domain Admins (global): alice, Tier0 Admins
    Tier0 Admins (global): bob, SRV01$
    Enterprise Admins (universal): alice
    Administrators (builtin, domain-local): Domain Admins, Enterprise Admins,
        a foreign security principal
    carol has Domain Admins as her primary group; DC01$ has Domain Controllers.
    """
    b = builder
    alice = b.user("alice", 1101, pwdLastSet=133497696000000000, adminCount=1)
    bob = b.user("bob", 1102, uac=66048)
    b.user("carol", 1103, primary_group=512)
    srv = b.computer("SRV01", 1201, dNSHostName="srv01.corp.local")
    b.computer("DC01", 1000, primary_group=516, uac=532480, dNSHostName="dc01.corp.local")

    tier0 = b.group("Tier0 Admins", 1301, members=[bob, srv])
    da = b.group("Domain Admins", 512, members=[alice, tier0])
    ea = b.group("Enterprise Admins", 519, members=[alice], group_type=UNIVERSAL_SECURITY)
    b.group("Domain Controllers", 516)
    fsp = b.foreign_principal("S-1-5-21-9-9-9-1234")
    b.group(
        "Administrators",
        sid="S-1-5-32-544",
        members=[da, ea, fsp],
        group_type=BUILTIN_LOCAL_SECURITY,
        container="CN=Builtin"
    )
    return b
