"""
privAD Model Module
===================

Contains the core data models for directory entries and audit output.

Key Components:
- schemas.py: Typed dataclasses (DirectoryObject, MembershipPath, ResolvedMember, ...)
- attributes.py: Attribute schema catalog (which attributes per object class)
- membership_graph.py: NetworkX view of resolved memberships
"""

from .schemas import (
    ObjectClass,
    DirectoryObject,
    MembershipPath,
    ResolvedMember,
    ProjectedRow,
    AuditResult
)
from .attributes import (
    Attribute,
    ClassScoped,
    Generated,
    AttributeSchemaCatalog,
    expand_attributes
)
from .membership_graph import MembershipGraph
