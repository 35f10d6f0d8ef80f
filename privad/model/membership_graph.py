"""
privAD Membership Graph
=======================

NetworkX-based view of resolved privileged memberships.

Design Decisions:
-----------------
1. Uses NetworkX DiGraph as the underlying data structure
2. Edges run group -> member, keyed by lower-cased DN
3. Built after resolution from ResolvedMember records; the resolver itself
   never reads it
4. Duplicate memberships collapse into one edge here, while the report
   rows keep every path

Used for the run summary: distinct principals per root group, nesting
depth, and counts by object kind.
"""

import networkx as nx
from collections import defaultdict
from typing import Iterable, Optional

from .schemas import DirectoryObject, ObjectClass, ResolvedMember


class MembershipGraph:
    """Abstraction layer over NetworkX for resolved group memberships.

    Example Usage:
        graph = MembershipGraph()
        graph.add_root(domain_admins)
        for member in resolver.resolve_members(domain_admins.distinguished_name):
            graph.add_member(member)

        graph.effective_members(domain_admins.distinguished_name)
        graph.summary()
    """

    def __init__(self):
        """Initialize empty membership graph."""
        self._graph = nx.DiGraph()
        self._roots: dict[str, str] = {}  # dn.lower() -> display name
        self._max_depth: dict[str, int] = defaultdict(int)

    @property
    def nx_graph(self) -> nx.DiGraph:
        """Access underlying NetworkX graph for advanced operations."""
        return self._graph

    def _add_node(self, obj: DirectoryObject) -> str:
        key = obj.distinguished_name.lower()
        if not self._graph.has_node(key) or 'kind' not in self._graph.nodes[key]:
            self._graph.add_node(
                key,
                dn=obj.distinguished_name,
                name=obj.name,
                kind=obj.kind,
                object_class=obj.object_class,
            )
        return key

    def add_root(self, group: DirectoryObject, display_name: Optional[str] = None) -> None:
        """Register a privileged group the walk starts from."""
        key = self._add_node(group)
        self._roots[key] = display_name or group.name

    def add_member(self, resolved: ResolvedMember) -> None:
        """Add the edge from the listing group to the member."""
        member_key = self._add_node(resolved.member)
        path = resolved.path

        # A nested group's own row carries a path ending in itself; a cycle
        # row's path ends in the group that lists it
        parent_dn = path[-1]
        if not resolved.closes_cycle and parent_dn.lower() == member_key and len(path) > 1:
            parent_dn = path[-2]
        parent = parent_dn.lower()

        if parent != member_key or resolved.closes_cycle:
            if not self._graph.has_node(parent):
                self._graph.add_node(parent, dn=parent_dn)
            self._graph.add_edge(
                parent,
                member_key,
                via_primary_group=resolved.via_primary_group,
            )

        root = resolved.path[0].lower()
        self._max_depth[root] = max(self._max_depth[root], resolved.path.depth)

    def add_members(self, members: Iterable[ResolvedMember]) -> None:
        for member in members:
            self.add_member(member)

    def effective_members(self, root_dn: str) -> set:
        """DNs of every non-group principal reachable from a root group."""
        key = root_dn.lower()
        if not self._graph.has_node(key):
            return set()
        return {
            self._graph.nodes[n].get('dn', n)
            for n in nx.descendants(self._graph, key)
            if self._graph.nodes[n].get('kind') not in (ObjectClass.GROUP, None)
        }

    def nested_groups(self, root_dn: str) -> set:
        """DNs of every group nested (at any depth) under a root group."""
        key = root_dn.lower()
        if not self._graph.has_node(key):
            return set()
        return {
            self._graph.nodes[n].get('dn', n)
            for n in nx.descendants(self._graph, key)
            if self._graph.nodes[n].get('kind') == ObjectClass.GROUP
        }

    def cycles(self) -> list:
        """Nesting cycles among groups, as lists of DNs."""
        return [
            [self._graph.nodes[n].get('dn', n) for n in cycle]
            for cycle in nx.simple_cycles(self._graph)
        ]

    def count_by_kind(self) -> dict:
        counts: dict[str, int] = defaultdict(int)
        for _, data in self._graph.nodes(data=True):
            kind = data.get('kind')
            if kind is not None:
                counts[kind.value] += 1
        return dict(counts)

    @property
    def node_count(self) -> int:
        """Number of distinct entries in the graph."""
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        """Number of distinct memberships in the graph."""
        return self._graph.number_of_edges()

    def summary(self) -> dict:
        """Per-root statistics for the run summary."""
        groups = {}
        for key, display_name in self._roots.items():
            dn = self._graph.nodes[key]['dn']
            groups[display_name] = {
                'distinguished_name': dn,
                'effective_members': len(self.effective_members(dn)),
                'nested_groups': len(self.nested_groups(dn)),
                'max_depth': self._max_depth.get(key, 1),
            }
        return {
            'groups': groups,
            'distinct_objects': self.node_count,
            'memberships': self.edge_count,
            'by_kind': self.count_by_kind(),
            'cycles': len(self.cycles()),
        }
