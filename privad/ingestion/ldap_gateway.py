"""
LDAP Directory Gateway
======================

Live access to Active Directory via LDAP for the membership audit.

Features:
- NTLM bind with simple-bind fallback, anonymous bind, LDAPS
- Identity lookup by DN, string SID or sAMAccountName
- Paged searches for primary-group membership
- Ranged retrieval of large member attributes (member;range=...)

Design Decisions:
-----------------
1. Uses ldap3 library for cross-platform LDAP support
2. Values are decoded from the raw response, not from ldap3's schema
   formatters, so FILETIME attributes stay integers and binary identifiers
   stay bytes until the row projector handles them
3. Names are not checked against the server schema: requesting an attribute
   the forest does not define (e.g. LAPS) returns nothing instead of failing
4. Every LDAPException raised after connecting becomes a CollaboratorError

Security Consideration:
This module performs read-only operations. No modifications are made to the AD.
"""

from typing import Callable, Iterable, Optional

from ldap3 import (
    Server, Connection, ALL, SUBTREE, BASE,
    NTLM, SIMPLE
)
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from .gateway import DirectoryGateway
from ..config import LDAPConfig
from ..errors import CollaboratorError, ObjectNotFoundError
from ..model.schemas import (
    DirectoryObject, looks_like_dn, looks_like_sid, rid_from_sid, sid_to_string
)
from ..model.attributes import BINARY_ATTRIBUTES


# noSuchObject
RESULT_NO_SUCH_OBJECT = 32
# sizeLimitExceeded: the entries returned so far are kept
RESULT_SIZE_LIMIT_EXCEEDED = 4

CLASS_FILTERS = {
    'user': "(&(objectCategory=person)(objectClass=user))",
    'computer': "(objectClass=computer)",
    'group': "(objectClass=group)",
    'object': "(objectClass=*)",
}

INTEGER_ATTRIBUTES = {
    'useraccountcontrol', 'admincount', 'pwdlastset', 'lastlogontimestamp',
    'lastlogon', 'accountexpires', 'primarygroupid', 'grouptype',
    'msds-supportedencryptiontypes', 'ms-mcs-admpwdexpirationtime',
    'mslaps-passwordexpirationtime', 'badpwdcount', 'lockouttime',
}

MULTI_VALUED_ATTRIBUTES = {
    'objectclass', 'serviceprincipalname', 'msds-allowedtodelegateto',
    'sidhistory', 'member', 'memberof',
}

_BINARY = {name.lower() for name in BINARY_ATTRIBUTES}


class LDAPGateway(DirectoryGateway):
    """DirectoryGateway backed by a live domain controller.

    Usage:
        gateway = LDAPGateway(
            server_ip="192.168.1.100",
            domain="corp.local",
            username="auditor",
            password="password"
        )
        gateway.connect()
        group = gateway.get_group("Domain Admins", ["distinguishedName", "groupType"])
    """

    def __init__(
        self,
        server_ip: str,
        domain: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        ntlm_hash: Optional[str] = None,
        config: Optional[LDAPConfig] = None,
        verbose: bool = True,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        """Initialize the LDAP gateway.

        Args:
            server_ip: IP address or hostname of the domain controller
            domain: Domain name (e.g., "corp.local")
            username: Username for authentication (domain\\user or user@domain)
            password: Password for authentication
            ntlm_hash: NTLM hash (format: LM:NT) used instead of a password
            config: LDAPConfig object for connection settings
            verbose: Whether to print progress messages
            progress_callback: Optional callback for progress updates
        """
        self.server_ip = server_ip
        self.domain = domain
        self.username = username
        self.config = config or LDAPConfig()
        self.password = password if password is not None else self.config.password
        self.ntlm_hash = ntlm_hash
        self.verbose = verbose
        self.progress_callback = progress_callback

        # Connection state
        self.connection: Optional[Connection] = None
        self.domain_sid: str = ""
        self.ldap_requests = 0

        # Derive base DN from domain
        self.base_dn = ",".join([f"DC={part}" for part in domain.split(".")])

    def _log(self, message: str) -> None:
        """Log a message to console and/or callback."""
        if self.verbose:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    def connect(self) -> None:
        """Establish connection to the LDAP server.

        Raises:
            ConnectionError: if no bind method succeeds
        """
        port = self.config.port or (636 if self.config.use_ssl else 389)
        server = Server(
            self.server_ip,
            port=port,
            use_ssl=self.config.use_ssl,
            get_info=ALL,
            connect_timeout=self.config.timeout
        )

        try:
            if self.username and (self.password or self.ntlm_hash):
                # Format username for NTLM
                if '\\' not in self.username and '@' not in self.username:
                    ntlm_user = f"{self.domain.split('.')[0].upper()}\\{self.username}"
                else:
                    ntlm_user = self.username

                auth_credential = self.ntlm_hash or self.password
                auth_type_str = "Pass-the-Hash" if self.ntlm_hash else "Password"
                self._log(f"[*] Connecting to {self.server_ip}:{port} as {ntlm_user} ({auth_type_str})")

                try:
                    self.connection = Connection(
                        server,
                        user=ntlm_user,
                        password=auth_credential,
                        authentication=NTLM,
                        auto_bind=True,
                        check_names=False,
                        receive_timeout=self.config.timeout
                    )
                except LDAPException:
                    if self.ntlm_hash:
                        raise
                    self._log("[*] NTLM auth failed, trying simple bind...")
                    self.connection = Connection(
                        server,
                        user=self.username if '@' in self.username else f"{self.username}@{self.domain}",
                        password=self.password,
                        authentication=SIMPLE,
                        auto_bind=True,
                        check_names=False,
                        receive_timeout=self.config.timeout
                    )
            else:
                self._log(f"[*] Connecting anonymously to {self.server_ip}:{port}")
                self.connection = Connection(
                    server,
                    auto_bind=True,
                    check_names=False,
                    receive_timeout=self.config.timeout
                )
        except LDAPException as e:
            raise ConnectionError(f"Failed to connect to LDAP server {self.server_ip}: {e}") from e

        self._log(f"[+] Connected successfully to {self.server_ip}")
        self._get_domain_sid()

    def _get_domain_sid(self) -> None:
        """Retrieve the domain SID."""
        entries = self._search(self.base_dn, "(objectClass=domain)", BASE, ['objectSid'])
        if entries:
            sid_bytes = self._raw_values(entries[0], 'objectSid')
            if sid_bytes:
                self.domain_sid = sid_to_string(sid_bytes[0])
                self._log(f"[+] Domain SID: {self.domain_sid}")
        if not self.domain_sid:
            self._log("[!] Could not retrieve domain SID")

    def close(self) -> None:
        """Close the LDAP connection."""
        if self.connection:
            self.connection.unbind()
            self.connection = None
            self._log("[*] Disconnected from LDAP server")

    # ------------------------------------------------------------------
    # Searches
    # ------------------------------------------------------------------

    def _search(self, search_base: str, search_filter: str, scope, attributes: Iterable[str]) -> list:
        """Run a search and return the raw searchResEntry responses.

        BASE searches on a DN that does not exist return an empty list. Any
        other non-success result raises CollaboratorError, since the
        connection does not raise on its own.
        """
        if self.connection is None:
            self.connect()

        attributes = list(attributes)
        self.ldap_requests += 1
        try:
            if scope == BASE:
                self.connection.search(
                    search_base=search_base,
                    search_filter=search_filter,
                    search_scope=BASE,
                    attributes=attributes
                )
                result = self.connection.result or {}
                if result.get('result') == RESULT_NO_SUCH_OBJECT:
                    return []
                if result.get('result') not in (0, None):
                    raise CollaboratorError(
                        f"LDAP search on {search_base} failed: {result.get('description')} "
                        f"{result.get('message', '')}".strip()
                    )
                response = self.connection.response or []
            else:
                response = self.connection.extend.standard.paged_search(
                    search_base=search_base,
                    search_filter=search_filter,
                    search_scope=scope,
                    attributes=attributes,
                    paged_size=self.config.page_size,
                    generator=False
                )
                result = self.connection.result or {}
                if result.get('result') not in (0, None, RESULT_SIZE_LIMIT_EXCEEDED):
                    raise CollaboratorError(
                        f"LDAP search {search_filter} under {search_base} failed: "
                        f"{result.get('description')} {result.get('message', '')}".strip()
                    )
        except LDAPException as e:
            raise CollaboratorError(f"LDAP search {search_filter} under {search_base} failed: {e}") from e

        return [entry for entry in response if entry.get('type') == 'searchResEntry']

    @staticmethod
    def _raw_values(entry: dict, name: str) -> list:
        """Raw byte values of an attribute, matched case-insensitively."""
        target = name.lower()
        for key, values in (entry.get('raw_attributes') or {}).items():
            if key.lower() == target:
                return list(values)
        return []

    @staticmethod
    def _decode(name: str, values: list):
        key = name.lower()
        if key in _BINARY:
            decoded = [bytes(v) for v in values]
        elif key in INTEGER_ATTRIBUTES:
            decoded = [int(v.decode('ascii') if isinstance(v, bytes) else v) for v in values]
        else:
            decoded = [v.decode('utf-8', errors='replace') if isinstance(v, bytes) else str(v) for v in values]

        if key in MULTI_VALUED_ATTRIBUTES:
            return decoded
        return decoded[0] if decoded else None

    def _to_object(self, entry: dict, attributes: Iterable[str]) -> DirectoryObject:
        """Build a DirectoryObject holding only the requested attributes, in request order."""
        bag = {}
        for name in attributes:
            values = self._raw_values(entry, name)
            if name.lower() == 'distinguishedname' and not values:
                bag[name] = entry.get('dn', '')
                continue
            if values:
                bag[name] = self._decode(name, values)

        classes = [v.decode('utf-8') for v in self._raw_values(entry, 'objectClass')]
        return DirectoryObject(
            distinguished_name=entry.get('dn', ''),
            object_class=classes[-1] if classes else '',
            attributes=bag
        )

    @staticmethod
    def _request_list(attributes: Iterable[str]) -> list:
        request = list(dict.fromkeys(attributes))
        if not any(a.lower() == 'objectclass' for a in request):
            request.append('objectClass')
        return request

    def _identity_clause(self, identity: str) -> str:
        if looks_like_sid(identity):
            return f"(objectSid={escape_filter_chars(identity)})"
        name = escape_filter_chars(identity)
        return f"(|(sAMAccountName={name})(cn={name}))"

    def _lookup(self, identity: str, object_class: str, attributes: Iterable[str]) -> Optional[DirectoryObject]:
        """Find one entry of a class by DN, SID or name."""
        attributes = list(attributes)
        request = self._request_list(attributes)
        class_filter = CLASS_FILTERS[object_class]

        if looks_like_dn(identity):
            entries = self._search(identity, class_filter, BASE, request)
        else:
            entries = self._search(
                self.base_dn,
                f"(&{class_filter}{self._identity_clause(identity)})",
                SUBTREE,
                request
            )

        if not entries:
            return None
        if len(entries) > 1:
            self._log(f"[!] {len(entries)} {object_class} entries match '{identity}', using the first")
        return self._to_object(entries[0], attributes)

    # ------------------------------------------------------------------
    # DirectoryGateway
    # ------------------------------------------------------------------

    def get_group(self, identity: str, attributes: Iterable[str]) -> Optional[DirectoryObject]:
        return self._lookup(identity, 'group', attributes)

    def get_user(self, identity: str, attributes: Iterable[str]) -> DirectoryObject:
        found = self._lookup(identity, 'user', attributes)
        if found is None:
            raise ObjectNotFoundError(identity, 'user')
        return found

    def get_computer(self, identity: str, attributes: Iterable[str]) -> DirectoryObject:
        found = self._lookup(identity, 'computer', attributes)
        if found is None:
            raise ObjectNotFoundError(identity, 'computer')
        return found

    def get_object(self, identity: str, attributes: Iterable[str]) -> DirectoryObject:
        found = self._lookup(identity, 'object', attributes)
        if found is None:
            raise ObjectNotFoundError(identity)
        return found

    def get_group_members(self, group: DirectoryObject) -> list:
        """Read the member attribute, following range retrieval.

        Domain controllers return at most MaxValRange (1500 by default)
        values per request; larger groups come back as member;range=0-1499
        and must be read in slices until the range ends in '*'.
        """
        members: list = []
        low = 0
        while True:
            entries = self._search(
                group.distinguished_name, "(objectClass=*)", BASE, [f"member;range={low}-*"]
            )
            if not entries:
                break

            raw = entries[0].get('raw_attributes') or {}
            ranged_key = next((k for k in raw if k.lower().startswith('member;range=')), None)
            if ranged_key is None:
                members.extend(v.decode('utf-8') for v in self._raw_values(entries[0], 'member'))
                break

            members.extend(v.decode('utf-8') for v in raw[ranged_key])
            high = ranged_key.split('=', 1)[1].split('-', 1)[1]
            if high == '*':
                break
            low = int(high) + 1

        return members

    def _primary_group_rid(self, group_dn: str) -> int:
        group = self.get_group(group_dn, ['objectSid'])
        if group is None:
            raise ObjectNotFoundError(group_dn, 'group')
        rid = rid_from_sid(group.sid)
        if rid is None:
            raise CollaboratorError(f"Group {group_dn} has no readable objectSid")
        return rid

    def _find_by_primary_group(self, group_dn: str, object_class: str, attributes: Iterable[str]) -> list:
        attributes = list(attributes)
        rid = self._primary_group_rid(group_dn)
        entries = self._search(
            self.base_dn,
            f"(&{CLASS_FILTERS[object_class]}(primaryGroupID={rid}))",
            SUBTREE,
            self._request_list(attributes)
        )
        return [self._to_object(entry, attributes) for entry in entries]

    def find_users_by_primary_group(self, group_dn: str, attributes: Iterable[str]) -> list:
        return self._find_by_primary_group(group_dn, 'user', attributes)

    def find_computers_by_primary_group(self, group_dn: str, attributes: Iterable[str]) -> list:
        return self._find_by_primary_group(group_dn, 'computer', attributes)
