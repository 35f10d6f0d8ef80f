"""
Directory Gateway Interface
===========================

The contract the membership resolver consumes. Implementations:
- LDAPGateway: live Active Directory over ldap3
- SnapshotDirectory: in-memory directory loaded from a JSON snapshot

Contract:
- Every fetch takes an attribute projection list. Requesting an attribute
  the entry does not carry is not an error; the attribute is simply absent.
- get_group returns None when the identity cannot be found (the caller
  decides whether that is fatal). The other single-object lookups are
  lookups by reference and raise ObjectNotFoundError.
- Calls are synchronous and blocking.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from ..model.schemas import DirectoryObject


class DirectoryGateway(ABC):
    """Abstract directory service used by the audit."""

    #: Domain SID prefix ("S-1-5-21-...") used for well-known RIDs
    domain_sid: str = ""

    @abstractmethod
    def get_group(self, identity: str, attributes: Iterable[str]) -> Optional[DirectoryObject]:
        """Look up a group by DN, SID or sAMAccountName."""

    @abstractmethod
    def get_user(self, identity: str, attributes: Iterable[str]) -> DirectoryObject:
        """Look up a user by DN, SID or sAMAccountName."""

    @abstractmethod
    def get_computer(self, identity: str, attributes: Iterable[str]) -> DirectoryObject:
        """Look up a computer by DN, SID or sAMAccountName."""

    @abstractmethod
    def get_object(self, identity: str, attributes: Iterable[str]) -> DirectoryObject:
        """Look up any entry by DN or SID."""

    @abstractmethod
    def get_group_members(self, group: DirectoryObject) -> list:
        """DNs listed in the group's member attribute, in directory order."""

    @abstractmethod
    def find_users_by_primary_group(self, group_dn: str, attributes: Iterable[str]) -> list:
        """Users whose primaryGroupID points at the group."""

    @abstractmethod
    def find_computers_by_primary_group(self, group_dn: str, attributes: Iterable[str]) -> list:
        """Computers whose primaryGroupID points at the group."""

    def close(self) -> None:
        """Release any connection held by the gateway."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
