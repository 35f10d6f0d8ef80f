"""
privAD Data Schemas
===================

Typed dataclasses representing directory entries and audit output.

Design Decisions:
-----------------
1. DirectoryObject carries the raw attribute bag exactly as the gateway
   returned it, in request order; nothing is interpreted until projection
2. ObjectClass collapses the many raw objectClass values into the four
   kinds the resolver dispatches on
3. MembershipPath is an immutable tuple of group DNs so every branch of the
   walk owns its own copy
4. ProjectedRow is a read-only ordered mapping with a stable column set

Schema Hierarchy:
- DirectoryObject: one fetched directory entry
- MembershipPath: nesting chain from a privileged group to a member
- ResolvedMember: DirectoryObject + MembershipPath
- ProjectedRow: flat report record
- AuditResult: complete audit output container
"""

import struct
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ldap3.core.exceptions import LDAPInvalidDnError
from ldap3.utils.dn import parse_dn


# groupType flags
GROUP_TYPE_BUILTIN = 0x00000001
GROUP_TYPE_GLOBAL = 0x00000002
GROUP_TYPE_DOMAIN_LOCAL = 0x00000004
GROUP_TYPE_UNIVERSAL = 0x00000008
GROUP_TYPE_SECURITY = 0x80000000


class ObjectClass(Enum):
    """Kinds of directory entries the membership walk distinguishes.

    OBJECT is the residual kind: foreign security principals, managed
    service accounts and anything else that is not a user, computer or group.
    """
    USER = "user"
    COMPUTER = "computer"
    GROUP = "group"
    OBJECT = "object"

    @classmethod
    def from_string(cls, s: Optional[str]) -> "ObjectClass":
        """Map a most-specific objectClass value to its kind."""
        if not s:
            return cls.OBJECT
        normalized = s.strip().lower()
        for kind in (cls.USER, cls.COMPUTER, cls.GROUP):
            if kind.value == normalized:
                return kind
        return cls.OBJECT


def sid_to_string(sid_bytes: bytes) -> str:
    """Convert binary SID to string format.

    Args:
        sid_bytes: Binary SID data

    Returns:
        String SID (e.g., "S-1-5-21-..."), empty string for empty input
    """
    if not sid_bytes:
        return ""

    # SID structure:
    # Byte 0: Revision
    # Byte 1: Number of sub-authorities
    # Bytes 2-7: Identifier authority (big-endian)
    # Remaining: Sub-authorities (little-endian 32-bit)
    revision = sid_bytes[0]
    sub_auth_count = sid_bytes[1]
    id_auth = int.from_bytes(sid_bytes[2:8], 'big')

    sub_auths = struct.unpack(f'<{sub_auth_count}I', sid_bytes[8:8 + sub_auth_count * 4])

    sid = f"S-{revision}-{id_auth}"
    for sub_auth in sub_auths:
        sid += f"-{sub_auth}"
    return sid


def sid_from_string(sid: str) -> bytes:
    """Convert a string SID back to its binary form."""
    parts = sid.strip().split('-')
    if len(parts) < 3 or parts[0].upper() != 'S':
        raise ValueError(f"Not a SID: {sid!r}")

    revision = int(parts[1])
    id_auth = int(parts[2])
    sub_auths = [int(p) for p in parts[3:]]

    return (
        bytes([revision, len(sub_auths)])
        + id_auth.to_bytes(6, 'big')
        + struct.pack(f'<{len(sub_auths)}I', *sub_auths)
    )


def rid_from_sid(sid: str) -> Optional[int]:
    """Return the relative identifier (last sub-authority) of a string SID."""
    if not sid or not sid.upper().startswith('S-'):
        return None
    return int(sid.rsplit('-', 1)[1])


def looks_like_sid(value: str) -> bool:
    return value.upper().startswith('S-1-')


def looks_like_dn(value: str) -> bool:
    return '=' in value and (',' in value or value.upper().startswith(('CN=', 'OU=', 'DC=')))


@dataclass
class DirectoryObject:
    """A directory entry as returned by a DirectoryGateway.

    Attributes:
        distinguished_name: Full LDAP DN
        object_class: Most-specific objectClass value (e.g. "user",
            "foreignSecurityPrincipal")
        attributes: Raw attribute bag in the order the attributes were
            requested. Attributes the entry does not carry are absent.

    The bag holds binary identifiers (objectSid, objectGUID) as bytes,
    integer attributes as int and multi-valued attributes as lists.
    """
    distinguished_name: str
    object_class: str
    attributes: dict = field(default_factory=dict)

    def __hash__(self):
        return hash(self.distinguished_name.lower())

    def __eq__(self, other):
        if isinstance(other, DirectoryObject):
            return self.distinguished_name.lower() == other.distinguished_name.lower()
        return False

    def get(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    @property
    def kind(self) -> ObjectClass:
        return ObjectClass.from_string(self.object_class)

    @property
    def sid(self) -> str:
        """String form of objectSid, empty when not fetched."""
        value = self.attributes.get('objectSid')
        if isinstance(value, (bytes, bytearray)):
            return sid_to_string(bytes(value))
        return str(value) if value else ""

    @property
    def name(self) -> str:
        """Return a display-friendly name."""
        for attr in ('sAMAccountName', 'name'):
            value = self.attributes.get(attr)
            if value:
                return str(value)
        return rdn_value(self.distinguished_name)

    @property
    def group_type(self) -> int:
        return int(self.attributes.get('groupType') or 0)

    @property
    def is_domain_local(self) -> bool:
        """Whether this group has domain-local scope (builtin groups included)."""
        return bool(self.group_type & GROUP_TYPE_DOMAIN_LOCAL)


def rdn_value(dn: str) -> str:
    """Return the value of the first RDN of a DN ("CN=Domain Admins,..." -> "Domain Admins")."""
    try:
        components = parse_dn(dn, escape=False, strip=True)
    except LDAPInvalidDnError:
        return dn
    return components[0][1] if components else dn


class MembershipPath(tuple):
    """Nesting chain of group DNs from a root privileged group, root first.

    DNs compare case-insensitively, as the directory does. A DN never appears
    twice in one path.
    """

    def __new__(cls, dns=()):
        return super().__new__(cls, tuple(dns))

    def __contains__(self, dn) -> bool:
        if not isinstance(dn, str):
            return False
        target = dn.lower()
        return any(item.lower() == target for item in self)

    def child(self, dn: str) -> "MembershipPath":
        """Return a new path extended by one nesting level."""
        if dn in self:
            raise ValueError(f"{dn} already in membership path")
        return MembershipPath(self + (dn,))

    @property
    def depth(self) -> int:
        return len(self)

    def display(self, separator: str = " > ") -> str:
        """Human-readable join of the group names along the path."""
        return separator.join(rdn_value(dn) for dn in self)


@dataclass(frozen=True)
class ResolvedMember:
    """A member reached from a privileged group, with the path that reached it.

    The same entry can appear several times through different paths; that is
    intentional and left to the reporting layer.

    Attributes:
        member: The fully fetched member entry
        path: Group DNs from the root privileged group down to the group
            that lists the member
        via_primary_group: True when the membership comes from the member's
            primaryGroupID rather than the group's member attribute
        closes_cycle: True when the member is a group already on the path;
            its members are not walked again
    """
    member: DirectoryObject
    path: MembershipPath
    via_primary_group: bool = False
    closes_cycle: bool = False


class ProjectedRow(Mapping):
    """Immutable ordered mapping from output column to value."""

    __slots__ = ('_columns', '_values')

    def __init__(self, items):
        items = list(items.items()) if isinstance(items, Mapping) else list(items)
        self._columns = tuple(k for k, _ in items)
        self._values = dict(items)

    def __getitem__(self, key):
        return self._values[key]

    def __iter__(self):
        return iter(self._columns)

    def __len__(self):
        return len(self._columns)

    def __repr__(self):
        return f"ProjectedRow({dict(self._values)!r})"

    @property
    def columns(self) -> tuple:
        return self._columns

    def to_dict(self) -> dict:
        """Convert to an ordinary dict (column order preserved)."""
        return {k: self._values[k] for k in self._columns}


@dataclass
class AuditResult:
    """Complete audit output container.

    Attributes:
        total_rows: Number of privileged-member rows produced
        groups_audited: Display names of the groups that were resolved
        warnings: AuditWarning records collected during the run
        report_paths: Report name -> list of written file paths
        graph_summary: Statistics from the MembershipGraph
        error: Message of the fatal error that stopped the run, if any
        metadata: Additional metadata (timestamp, source, domain)
    """
    total_rows: int = 0
    groups_audited: list = field(default_factory=list)
    warnings: list = field(default_factory=list)
    report_paths: dict = field(default_factory=dict)
    graph_summary: dict = field(default_factory=dict)
    error: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @property
    def completed(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_rows": self.total_rows,
            "groups_audited": self.groups_audited,
            "warnings": [w.to_dict() for w in self.warnings],
            "report_paths": self.report_paths,
            "graph_summary": self.graph_summary,
            "error": self.error,
            "metadata": self.metadata,
        }
