"""
Row Projector
=============

Flattens heterogeneous directory entries into uniform report rows.

Two phases:
1. Build: a record seeded with the row number, then every attribute the
   entry carries in its natural order. FILETIME attributes gain a decoded
   "<name>Date" column, binary identifiers are base64-encoded, and the
   generated columns (SID, account flags, group scope) are computed.
2. Project: keep exactly the requested output columns, in order. A column
   the record lacks is present with None, so every row of a report has the
   same columns whether it describes a user, a computer or a group.
"""

import base64
from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator, Optional

from ..model.attributes import BINARY_ATTRIBUTES, DATE_ATTRIBUTES
from ..model.schemas import (
    GROUP_TYPE_DOMAIN_LOCAL, GROUP_TYPE_GLOBAL, GROUP_TYPE_SECURITY, GROUP_TYPE_UNIVERSAL,
    DirectoryObject, ProjectedRow, ResolvedMember, sid_to_string
)


FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)
FILETIME_NEVER = 0x7FFFFFFFFFFFFFFF

# userAccountControl flags
UAC_ACCOUNTDISABLE = 0x0002
UAC_PASSWD_NOTREQD = 0x0020
UAC_DONT_EXPIRE_PASSWORD = 0x10000
UAC_TRUSTED_FOR_DELEGATION = 0x80000
UAC_DONT_REQ_PREAUTH = 0x400000

# Columns every privileged-members row starts with
MEMBER_COLUMNS = (
    'Row',
    'GroupName',
    'GroupSID',
    'MemberDepth',
    'MemberPath',
    'MembershipSource',
)


def filetime_to_datetime(value) -> Optional[datetime]:
    """Decode a Windows FILETIME (100 ns ticks since 1601-01-01 UTC).

    Returns None for absent, zero and "never" values.
    """
    if value in (None, '', 0, '0'):
        return None
    ticks = int(value)
    if ticks <= 0 or ticks >= FILETIME_NEVER:
        return None
    try:
        return FILETIME_EPOCH + timedelta(microseconds=ticks // 10)
    except OverflowError:
        return None


def encode_binary(value):
    """Base64-encode a binary value, or each value of a multi-valued one."""
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode('ascii')
    if isinstance(value, list):
        return [encode_binary(v) for v in value]
    return value


def _uac_flag(flag: int):
    def compute(attrs: dict):
        uac = attrs.get('userAccountControl')
        if uac is None:
            return None
        return bool(int(uac) & flag)
    return compute


def _enabled(attrs: dict):
    uac = attrs.get('userAccountControl')
    if uac is None:
        return None
    return not (int(uac) & UAC_ACCOUNTDISABLE)


def _sid(attrs: dict):
    value = attrs.get('objectSid')
    if isinstance(value, (bytes, bytearray)):
        return sid_to_string(bytes(value))
    return value


def _group_scope(attrs: dict):
    group_type = attrs.get('groupType')
    if group_type is None:
        return None
    group_type = int(group_type)
    if group_type & GROUP_TYPE_DOMAIN_LOCAL:
        return 'DomainLocal'
    if group_type & GROUP_TYPE_GLOBAL:
        return 'Global'
    if group_type & GROUP_TYPE_UNIVERSAL:
        return 'Universal'
    return None


def _group_category(attrs: dict):
    group_type = attrs.get('groupType')
    if group_type is None:
        return None
    return 'Security' if int(group_type) & GROUP_TYPE_SECURITY else 'Distribution'


# Generated column -> function of the raw attribute bag
GENERATED_COLUMNS = {
    'SID': _sid,
    'Enabled': _enabled,
    'PasswordNeverExpires': _uac_flag(UAC_DONT_EXPIRE_PASSWORD),
    'PasswordNotRequired': _uac_flag(UAC_PASSWD_NOTREQD),
    'TrustedForDelegation': _uac_flag(UAC_TRUSTED_FOR_DELEGATION),
    'DoNotRequirePreAuth': _uac_flag(UAC_DONT_REQ_PREAUTH),
    'GroupScope': _group_scope,
    'GroupCategory': _group_category,
}


def build_record(
    source: DirectoryObject,
    date_attributes: Iterable[str] = DATE_ATTRIBUTES,
    binary_attributes: Iterable[str] = BINARY_ATTRIBUTES,
    seed: Optional[dict] = None
) -> dict:
    """Build phase: every column derivable from the entry."""
    date_attributes = set(date_attributes)
    binary_attributes = set(binary_attributes)

    record = dict(seed or {})
    for name, value in source.attributes.items():
        if name in binary_attributes:
            record[name] = encode_binary(value)
        else:
            record[name] = value
        if name in date_attributes:
            record[f"{name}Date"] = filetime_to_datetime(value)

    for column, compute in GENERATED_COLUMNS.items():
        if column not in record:
            value = compute(source.attributes)
            if value is not None:
                record[column] = value
    return record


def project_row(
    source: DirectoryObject,
    output_columns: Iterable[str],
    date_attributes: Iterable[str] = DATE_ATTRIBUTES,
    extra: Optional[dict] = None
) -> ProjectedRow:
    """Flatten one entry into a row with exactly `output_columns`.

    Args:
        source: Entry to flatten
        output_columns: Columns of the row, in order
        date_attributes: FILETIME attributes that get a "<name>Date" column
        extra: Columns placed ahead of the entry's own attributes
            (row number, group, path metadata)

    Returns:
        ProjectedRow; columns the entry lacks are None
    """
    record = build_record(source, date_attributes, seed=extra)
    return ProjectedRow((column, record.get(column)) for column in output_columns)


class RowProjector:
    """Numbers and flattens resolved members for one report.

    Usage:
        projector = RowProjector(catalog.all_output)
        for resolved in resolver.resolve_members(group.distinguished_name):
            row = projector.project_member(resolved, group)
    """

    def __init__(
        self,
        attribute_columns: Iterable[str],
        date_attributes: Iterable[str] = DATE_ATTRIBUTES,
        leading_columns: Iterable[str] = MEMBER_COLUMNS
    ):
        """Initialize the projector.

        Args:
            attribute_columns: Schema-selected columns (e.g. catalog.all_output)
            date_attributes: FILETIME attributes to decode
            leading_columns: Fixed columns placed before the attributes
        """
        leading = tuple(leading_columns)
        self.output_columns = leading + tuple(c for c in attribute_columns if c not in leading)
        self.date_attributes = tuple(date_attributes)
        self.row_count = 0

    def project(self, source: DirectoryObject, extra: Optional[dict] = None) -> ProjectedRow:
        """Project any entry as the next row."""
        self.row_count += 1
        seed = {'Row': self.row_count}
        seed.update(extra or {})
        return project_row(source, self.output_columns, self.date_attributes, extra=seed)

    def project_member(self, resolved: ResolvedMember, group: DirectoryObject,
                       group_name: Optional[str] = None) -> ProjectedRow:
        """Project a resolved member of a privileged group."""
        return self.project(resolved.member, extra={
            'GroupName': group_name or group.name,
            'GroupSID': group.sid,
            'MemberDepth': resolved.path.depth,
            'MemberPath': resolved.path.display(),
            'MembershipSource': 'PrimaryGroup' if resolved.via_primary_group else 'Member',
        })

    def project_members(self, members: Iterable[ResolvedMember], group: DirectoryObject,
                        group_name: Optional[str] = None) -> Iterator[ProjectedRow]:
        """Lazily project a resolved-member sequence."""
        for resolved in members:
            yield self.project_member(resolved, group, group_name)

