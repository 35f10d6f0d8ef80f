"""
privAD Analysis Module
======================

Components:
- privileged_groups.py: Locates the privileged groups to audit
- resolver.py: Depth-first nested membership resolution
- audit_warnings.py: Append-only collector for recoverable findings
"""

from .audit_warnings import AuditWarning, WarningKind, WarningsCollector
from .privileged_groups import PrivilegedGroupLocator, default_privileged_groups
from .resolver import AuditContext, MembershipResolver
