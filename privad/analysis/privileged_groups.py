"""
Privileged Group Locator
========================

Resolves the configured privileged-group list to directory groups.

Each candidate is a display name plus the SID the group is expected to
have (or None to match by name only). Names can be localised or renamed
while well-known SIDs cannot, so the SID is the tie-breaker:

- found by name with the expected SID (or no SID expected): use it
- found by name with a different SID: warn, then look up by SID once
- not found by name: look up by SID once when one is expected
- still nothing: warn and skip the candidate
"""

from typing import Callable, Iterator, Optional

from ..model.attributes import AttributeSchemaCatalog
from ..model.schemas import DirectoryObject
from .audit_warnings import WarningKind, WarningsCollector


# Builtin domain-local groups (fixed SIDs)
BUILTIN_GROUPS = [
    ('Administrators', 'S-1-5-32-544'),
    ('Account Operators', 'S-1-5-32-548'),
    ('Server Operators', 'S-1-5-32-549'),
    ('Print Operators', 'S-1-5-32-550'),
    ('Backup Operators', 'S-1-5-32-551'),
    ('Replicator', 'S-1-5-32-552'),
    ('Remote Desktop Users', 'S-1-5-32-555'),
    ('Incoming Forest Trust Builders', 'S-1-5-32-557'),
    ('Remote Management Users', 'S-1-5-32-580'),
]

# Domain-relative RIDs for well-known privileged groups
DOMAIN_GROUP_RIDS = [
    ('Domain Admins', 512),
    ('Domain Controllers', 516),
    ('Cert Publishers', 517),
    ('Schema Admins', 518),
    ('Enterprise Admins', 519),
    ('Group Policy Creator Owners', 520),
    ('Read-only Domain Controllers', 521),
    ('Enterprise Read-only Domain Controllers', 498),
    ('Key Admins', 526),
    ('Enterprise Key Admins', 527),
]

# Privileged groups without a well-known RID
NAMED_GROUPS = [
    'DnsAdmins',
    'DnsUpdateProxy',
]


def default_privileged_groups(domain_sid: str) -> dict:
    """Ordered mapping of privileged group name -> expected SID.

    Args:
        domain_sid: Domain SID prefix ("S-1-5-21-..."); when empty, domain
            groups are matched by name only

    Returns:
        dict preserving audit order; values are SID strings or None
    """
    groups: dict = {}
    for name, rid in DOMAIN_GROUP_RIDS:
        groups[name] = f"{domain_sid}-{rid}" if domain_sid else None
    for name, sid in BUILTIN_GROUPS:
        groups[name] = sid
    for name in NAMED_GROUPS:
        groups[name] = None
    return groups


class PrivilegedGroupLocator:
    """Finds privileged groups by name with a single SID fallback.

    Usage:
        locator = PrivilegedGroupLocator(gateway, catalog, warnings)
        for name, group in locator.locate_all(default_privileged_groups(gateway.domain_sid)):
            ...
    """

    def __init__(
        self,
        gateway,
        catalog: Optional[AttributeSchemaCatalog] = None,
        warnings: Optional[WarningsCollector] = None,
        verbose: bool = False,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        self.gateway = gateway
        self.catalog = catalog or AttributeSchemaCatalog()
        self.warnings = warnings if warnings is not None else WarningsCollector()
        self.verbose = verbose
        self.progress_callback = progress_callback

    def _log(self, message: str) -> None:
        """Log a message to console and/or callback."""
        if self.verbose:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    def locate(self, name: str, expected_sid: Optional[str] = None) -> Optional[DirectoryObject]:
        """Find one privileged group.

        Args:
            name: Group display name (sAMAccountName or CN)
            expected_sid: SID the group should have, or None

        Returns:
            The group, or None when it cannot be found (a warning is recorded)
        """
        attributes = self.catalog.group_input
        group = self.gateway.get_group(name, attributes)

        if group is not None:
            if not expected_sid or group.sid.upper() == expected_sid.upper():
                return group
            self.warnings.record(
                f"Group '{name}' has SID {group.sid or '(none)'}, expected {expected_sid}; "
                f"looking it up by SID",
                WarningKind.IDENTITY_MISMATCH,
                name
            )
        if not expected_sid:
            self.warnings.record(f"Group '{name}' not found", WarningKind.NOT_FOUND, name)
            return None

        group = self.gateway.get_group(expected_sid, attributes)
        if group is None:
            self.warnings.record(
                f"Group '{name}' not found by name or by SID {expected_sid}",
                WarningKind.NOT_FOUND,
                expected_sid
            )
            return None

        self._log(f"[*] Using {group.name} ({expected_sid}) for '{name}'")
        return group

    def locate_all(self, groups: dict) -> Iterator[tuple]:
        """Locate every candidate, skipping those that cannot be found.

        Yields:
            (display_name, DirectoryObject) pairs in mapping order
        """
        for name, expected_sid in groups.items():
            group = self.locate(name, expected_sid)
            if group is not None:
                yield name, group
