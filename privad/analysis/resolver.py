"""
Membership Resolver
===================

Walks the group-membership graph from a privileged group and yields one
ResolvedMember per reachable member, each annotated with the chain of
nested groups that reached it.

Algorithm:
1. Fetch the group (group attribute set). The top-level call starts the
   path at the group's own DN.
2. For every DN in the group's member attribute, fetch it generically to
   learn its class, then re-fetch with the class-specific attribute set:
   - user / computer: emit
   - group: emit, then recurse depth-first with the group appended to the
     path; a group already on the path is a cycle: warn, do not recurse
   - anything else: warn unless it is an expected principal type (foreign
     security principals, managed service accounts), emit anyway
3. Unless the group is domain-local, also emit every user and computer whose
   primaryGroupID points at it. The directory stores that membership on the
   member, so it never shows up in the member attribute.

Design Decisions:
-----------------
1. The walk is a generator: rows stream out as the directory answers
2. The path is an explicit immutable argument, never shared mutable state,
   so each branch owns its own copy
3. Members reachable through several paths are emitted once per path;
   deduplication is a reporting concern
4. Only a missing top-level group is recoverable. Any lookup failure once a
   group handle is held raises CollaboratorError
"""

from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from ..errors import CollaboratorError, ObjectNotFoundError
from ..ingestion.gateway import DirectoryGateway
from ..model.attributes import AttributeSchemaCatalog
from ..model.schemas import (
    DirectoryObject, MembershipPath, ObjectClass, ResolvedMember
)
from .audit_warnings import WarningKind, WarningsCollector


EXPECTED_MEMBER_CLASSES = frozenset({
    'foreignsecurityprincipal',
    'msds-managedserviceaccount',
    'msds-groupmanagedserviceaccount',
})


@dataclass
class AuditContext:
    """Collaborators shared by one audit run.

    Attributes:
        gateway: Directory service the walk reads from
        catalog: Attribute sets per object class (read-only)
        warnings: Append-only warnings collector
        expected_member_classes: Lower-cased object classes that may appear
            in privileged groups without a warning
    """
    gateway: DirectoryGateway
    catalog: AttributeSchemaCatalog = field(default_factory=AttributeSchemaCatalog)
    warnings: WarningsCollector = field(default_factory=WarningsCollector)
    expected_member_classes: frozenset = EXPECTED_MEMBER_CLASSES


class MembershipResolver:
    """Depth-first resolver for nested group membership.

    Usage:
        context = AuditContext(gateway=gateway)
        resolver = MembershipResolver(context)

        for resolved in resolver.resolve_members("CN=Domain Admins,CN=Users,DC=corp,DC=local"):
            print(resolved.member.name, resolved.path.display())
    """

    def __init__(
        self,
        context: AuditContext,
        verbose: bool = False,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        """Initialize the resolver.

        Args:
            context: AuditContext with gateway, catalog and warnings
            verbose: Whether to print progress messages
            progress_callback: Optional callback for progress updates
        """
        self.context = context
        self.verbose = verbose
        self.progress_callback = progress_callback

    def _log(self, message: str) -> None:
        """Log a message to console and/or callback."""
        if self.verbose:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    def resolve_members(
        self,
        group_identity: str,
        path: Optional[MembershipPath] = None
    ) -> Iterator[ResolvedMember]:
        """Lazily resolve every member reachable from a group.

        Args:
            group_identity: DN, SID or name of the group
            path: Membership path that reached this group; None for a
                top-level call, which starts the path at the group itself

        Yields:
            ResolvedMember records: member-list entries first (nested
            subtrees inline after their group's own entry), then
            primary-group members
        """
        catalog = self.context.catalog
        group = self.context.gateway.get_group(group_identity, catalog.group_input)

        if group is None:
            if path is None:
                self.context.warnings.record(
                    f"Group '{group_identity}' not found",
                    WarningKind.NOT_FOUND,
                    group_identity
                )
                return
            raise CollaboratorError(f"Nested group {group_identity} could not be read")

        if path is None:
            path = MembershipPath([group.distinguished_name])
            self._log(f"[*] Resolving members of {group.name}...")

        yield from self._walk(group, MembershipPath(path))

    def _walk(self, group: DirectoryObject, path: MembershipPath) -> Iterator[ResolvedMember]:
        yield from self._direct_members(group, path)

        if not group.is_domain_local:
            yield from self._primary_group_members(group, path)

    def _direct_members(self, group: DirectoryObject, path: MembershipPath) -> Iterator[ResolvedMember]:
        gateway = self.context.gateway
        catalog = self.context.catalog

        for ref in gateway.get_group_members(group):
            generic = self._fetch(gateway.get_object, ref, catalog.object_input)
            kind = generic.kind

            if kind == ObjectClass.USER:
                yield ResolvedMember(self._fetch(gateway.get_user, ref, catalog.user_input), path)

            elif kind == ObjectClass.COMPUTER:
                yield ResolvedMember(self._fetch(gateway.get_computer, ref, catalog.computer_input), path)

            elif kind == ObjectClass.GROUP:
                nested = gateway.get_group(ref, catalog.group_input)
                if nested is None:
                    raise CollaboratorError(f"Nested group {ref} of {group.distinguished_name} could not be read")

                if nested.distinguished_name in path:
                    yield ResolvedMember(nested, path, closes_cycle=True)
                    self.context.warnings.record(
                        f"Circular reference: group '{nested.name}' is a member of "
                        f"'{group.name}' and already on the path {path.display()}",
                        WarningKind.CIRCULAR_REFERENCE,
                        nested.distinguished_name
                    )
                    continue

                nested_path = path.child(nested.distinguished_name)
                yield ResolvedMember(nested, nested_path)
                yield from self._walk(nested, nested_path)

            else:
                if generic.object_class.lower() not in self.context.expected_member_classes:
                    self.context.warnings.record(
                        f"Unexpected member type '{generic.object_class}' for {ref} in '{group.name}'",
                        WarningKind.UNEXPECTED_MEMBER_TYPE,
                        ref
                    )
                yield ResolvedMember(generic, path)

    def _primary_group_members(self, group: DirectoryObject, path: MembershipPath) -> Iterator[ResolvedMember]:
        gateway = self.context.gateway
        catalog = self.context.catalog
        dn = group.distinguished_name

        for user in gateway.find_users_by_primary_group(dn, catalog.user_input):
            yield ResolvedMember(user, path, via_primary_group=True)
        for computer in gateway.find_computers_by_primary_group(dn, catalog.computer_input):
            yield ResolvedMember(computer, path, via_primary_group=True)

    @staticmethod
    def _fetch(lookup, ref: str, attributes) -> DirectoryObject:
        try:
            return lookup(ref, attributes)
        except ObjectNotFoundError as e:
            raise CollaboratorError(f"Member {ref} could not be read: {e}") from e
