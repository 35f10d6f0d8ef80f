"""
Directory Snapshot Loader
=========================

An in-memory DirectoryGateway loaded from a JSON snapshot of directory
entries, for offline audits and reproducible tests.

Snapshot format:
    {
      "domain_sid": "S-1-5-21-...",
      "objects": [
        {
          "distinguishedName": "CN=Domain Admins,CN=Users,DC=corp,DC=local",
          "objectClass": ["top", "group"],
          "objectSid": "S-1-5-21-...-512",
          "groupType": -2147483646,
          "member": ["CN=alice,CN=Users,DC=corp,DC=local"]
        },
        ...
      ]
    }

Design Decisions:
-----------------
1. objectClass lists run from "top" to the most specific class, as the
   directory returns them
2. SIDs are written as strings and GUIDs as UUID strings; they are converted
   to their binary forms on load so the rest of the pipeline sees exactly
   what the LDAP gateway produces
3. Lookups honour the same contract as LDAPGateway: missing attributes are
   absent, missing groups return None, other missing references raise
"""

import json
import uuid
from pathlib import Path
from typing import Iterable, Optional

from .gateway import DirectoryGateway
from ..errors import ObjectNotFoundError
from ..model.schemas import (
    DirectoryObject, ObjectClass,
    looks_like_dn, looks_like_sid, rid_from_sid, sid_from_string, sid_to_string
)


class SnapshotDirectory(DirectoryGateway):
    """DirectoryGateway over a list of entry dictionaries.

    Usage:
        directory = SnapshotDirectory.load("corp_snapshot.json")
        group = directory.get_group("Domain Admins", ["distinguishedName", "groupType"])

        # Or build in code
        directory = SnapshotDirectory(objects=[{...}, {...}], domain_sid="S-1-5-21-1-2-3")
    """

    def __init__(self, objects: Optional[list] = None, domain_sid: str = "", verbose: bool = False):
        """Initialize the snapshot directory.

        Args:
            objects: Entry dictionaries (see module docstring)
            domain_sid: Domain SID prefix
            verbose: Whether to print progress messages
        """
        self.domain_sid = domain_sid
        self.verbose = verbose

        self._entries: dict[str, dict] = {}   # dn.lower() -> attributes
        self._by_sid: dict[str, str] = {}     # sid -> dn.lower()
        self._by_name: dict[str, list] = {}   # name.lower() -> [dn.lower()]

        for obj in objects or []:
            self.add_entry(obj)

    @classmethod
    def load(cls, file_path: str, verbose: bool = False) -> "SnapshotDirectory":
        """Load a snapshot JSON file.

        Args:
            file_path: Path to the JSON file

        Returns:
            SnapshotDirectory populated with the file's entries
        """
        path = Path(file_path)
        if verbose:
            print(f"[*] Loading snapshot {path.name}...")

        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        directory = cls(
            objects=data.get('objects', []),
            domain_sid=data.get('domain_sid', ''),
            verbose=verbose
        )
        if verbose:
            print(f"[+] Loaded {len(directory._entries)} directory entries")
        return directory

    def add_entry(self, obj: dict) -> None:
        """Add one entry, converting text identifiers to their binary forms."""
        entry = dict(obj)
        dn = entry.get('distinguishedName')
        if not dn:
            raise ValueError(f"Snapshot entry without distinguishedName: {obj!r}")

        classes = entry.get('objectClass') or ['top']
        if isinstance(classes, str):
            classes = [classes]
        entry['objectClass'] = list(classes)

        sid = entry.get('objectSid')
        if isinstance(sid, str):
            entry['objectSid'] = sid_from_string(sid)
        guid = entry.get('objectGUID')
        if isinstance(guid, str):
            entry['objectGUID'] = uuid.UUID(guid).bytes_le
        if entry.get('sIDHistory'):
            entry['sIDHistory'] = [
                sid_from_string(s) if isinstance(s, str) else s for s in entry['sIDHistory']
            ]

        key = dn.lower()
        self._entries[key] = entry
        if isinstance(entry.get('objectSid'), bytes):
            self._by_sid[sid_to_string(entry['objectSid'])] = key
        for name_attr in ('sAMAccountName', 'cn', 'name'):
            value = entry.get(name_attr)
            if value:
                self._by_name.setdefault(str(value).lower(), []).append(key)

    # ------------------------------------------------------------------

    @staticmethod
    def _kind(entry: dict) -> ObjectClass:
        return ObjectClass.from_string(entry['objectClass'][-1])

    @staticmethod
    def _matches(entry: dict, object_class: Optional[ObjectClass]) -> bool:
        if object_class is None:
            return True
        classes = {c.lower() for c in entry['objectClass']}
        if object_class == ObjectClass.USER:
            return 'user' in classes and 'computer' not in classes
        return object_class.value in classes

    def _resolve(self, identity: str, object_class: Optional[ObjectClass]) -> Optional[dict]:
        if looks_like_dn(identity):
            keys = [identity.lower()]
        elif looks_like_sid(identity):
            keys = [self._by_sid.get(identity.upper(), '')]
        else:
            keys = self._by_name.get(identity.lower(), [])

        for key in keys:
            entry = self._entries.get(key)
            if entry is not None and self._matches(entry, object_class):
                return entry
        return None

    @staticmethod
    def _project(entry: dict, attributes: Iterable[str]) -> DirectoryObject:
        bag = {}
        for name in attributes:
            if name in entry and entry[name] not in (None, [], ''):
                value = entry[name]
                bag[name] = list(value) if isinstance(value, list) else value
        return DirectoryObject(
            distinguished_name=entry['distinguishedName'],
            object_class=entry['objectClass'][-1],
            attributes=bag
        )

    def _get(self, identity: str, object_class: Optional[ObjectClass], attributes: Iterable[str]) -> DirectoryObject:
        entry = self._resolve(identity, object_class)
        if entry is None:
            raise ObjectNotFoundError(identity, object_class.value if object_class else 'object')
        return self._project(entry, attributes)

    # ------------------------------------------------------------------
    # DirectoryGateway
    # ------------------------------------------------------------------

    def get_group(self, identity: str, attributes: Iterable[str]) -> Optional[DirectoryObject]:
        entry = self._resolve(identity, ObjectClass.GROUP)
        return self._project(entry, attributes) if entry is not None else None

    def get_user(self, identity: str, attributes: Iterable[str]) -> DirectoryObject:
        return self._get(identity, ObjectClass.USER, attributes)

    def get_computer(self, identity: str, attributes: Iterable[str]) -> DirectoryObject:
        return self._get(identity, ObjectClass.COMPUTER, attributes)

    def get_object(self, identity: str, attributes: Iterable[str]) -> DirectoryObject:
        return self._get(identity, None, attributes)

    def get_group_members(self, group: DirectoryObject) -> list:
        entry = self._entries.get(group.distinguished_name.lower())
        if entry is None:
            raise ObjectNotFoundError(group.distinguished_name, 'group')
        return list(entry.get('member', []))

    def _find_by_primary_group(self, group_dn: str, object_class: ObjectClass, attributes: Iterable[str]) -> list:
        group = self._resolve(group_dn, ObjectClass.GROUP)
        if group is None:
            raise ObjectNotFoundError(group_dn, 'group')
        rid = rid_from_sid(sid_to_string(group.get('objectSid', b'')))
        if rid is None:
            return []

        attributes = list(attributes)
        return [
            self._project(entry, attributes)
            for entry in self._entries.values()
            if self._matches(entry, object_class) and entry.get('primaryGroupID') == rid
        ]

    def find_users_by_primary_group(self, group_dn: str, attributes: Iterable[str]) -> list:
        return self._find_by_primary_group(group_dn, ObjectClass.USER, attributes)

    def find_computers_by_primary_group(self, group_dn: str, attributes: Iterable[str]) -> list:
        return self._find_by_primary_group(group_dn, ObjectClass.COMPUTER, attributes)
