"""
Audit Warnings
==============

Context-scoped collector for recoverable audit findings. Warnings never
abort the run; they are surfaced afterwards as their own report.

The collector is append-only with a single writer at a time. Components that
may warn receive it explicitly through the AuditContext.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional


class WarningKind(Enum):
    """Recoverable conditions recorded during an audit."""
    NOT_FOUND = "NotFound"
    IDENTITY_MISMATCH = "IdentityMismatch"
    CIRCULAR_REFERENCE = "CircularReference"
    UNEXPECTED_MEMBER_TYPE = "UnexpectedMemberType"


@dataclass(frozen=True)
class AuditWarning:
    """One recorded warning.

    Attributes:
        message: Human-readable description
        kind: Category of the condition
        subject: DN, SID or name the warning is about
        timestamp: When it was recorded (UTC)
    """
    message: str
    kind: WarningKind
    subject: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "Kind": self.kind.value,
            "Subject": self.subject,
            "Message": self.message,
            "Timestamp": self.timestamp.isoformat(),
        }


class WarningsCollector:
    """Append-only list of AuditWarning records.

    Usage:
        warnings = WarningsCollector(progress_callback=print)
        warnings.record("Group 'DnsAdmins' not found", WarningKind.NOT_FOUND, "DnsAdmins")
        for w in warnings:
            ...
    """

    def __init__(self, progress_callback: Optional[Callable[[str], None]] = None):
        self._records: list[AuditWarning] = []
        self.progress_callback = progress_callback

    def record(self, message: str, kind: WarningKind, subject: str = "") -> AuditWarning:
        """Append a warning and echo it to the progress callback."""
        warning = AuditWarning(message=message, kind=kind, subject=subject)
        self._records.append(warning)
        if self.progress_callback:
            self.progress_callback(f"[!] {message}")
        return warning

    def of_kind(self, kind: WarningKind) -> list:
        return [w for w in self._records if w.kind == kind]

    @property
    def records(self) -> tuple:
        return tuple(self._records)

    def __iter__(self):
        return iter(tuple(self._records))

    def __len__(self):
        return len(self._records)

    def rows(self) -> list:
        """Warnings as report rows, in recording order."""
        return [dict(Row=i, **w.to_dict()) for i, w in enumerate(self._records, 1)]
