"""
privAD Ingestion Module
=======================

Directory gateways the audit reads from.

Supported Sources:
- LDAP live access (using ldap3)
- JSON directory snapshots (offline)

Design Philosophy:
- All gateways implement DirectoryGateway
- Gateways are read-only
"""

from .gateway import DirectoryGateway
from .ldap_gateway import LDAPGateway
from .snapshot import SnapshotDirectory
