"""
Attribute Schema Catalog
========================

Declares which directory attributes are requested and reported per object
class.

The master list is a tree of three node variants:
- Attribute: a plain attribute name (a bare str is accepted as shorthand)
- ClassScoped: members that apply only to the listed object classes
- Generated: members computed client-side, never requested from the directory

Any node may also be a list/tuple of nodes, expanded in place.

Design Decisions:
-----------------
1. Requesting an attribute a class does not carry costs a round-trip per
   object and can fail outright, so input sets are derived per class
2. All derived sets are built once when the catalog is created and are
   read-only afterwards
3. An unknown node shape is a programmer error and raises immediately
"""

from dataclasses import dataclass
from typing import Optional

from .schemas import ObjectClass
from ..errors import SchemaConfigurationError


@dataclass(frozen=True)
class Attribute:
    """A directory attribute requested and reported as-is."""
    name: str


@dataclass(frozen=True)
class ClassScoped:
    """Members that apply only when the current class is in `classes`.

    With no class filter (object_class=None) the members always apply.
    """
    classes: frozenset
    members: tuple

    def __init__(self, classes, *members):
        object.__setattr__(self, 'classes', frozenset(_class_value(c) for c in classes))
        object.__setattr__(self, 'members', tuple(members))


@dataclass(frozen=True)
class Generated:
    """Columns computed client-side (decoded dates, flag columns).

    Included only when generated attributes are requested.
    """
    members: tuple

    def __init__(self, *members):
        object.__setattr__(self, 'members', tuple(members))


def _class_value(object_class) -> str:
    if isinstance(object_class, ObjectClass):
        return object_class.value
    return str(object_class)


USER = ObjectClass.USER
COMPUTER = ObjectClass.COMPUTER
GROUP = ObjectClass.GROUP

# Attributes holding Windows FILETIME integers; each gets a "<name>Date" column
DATE_ATTRIBUTES = (
    'pwdLastSet',
    'lastLogonTimestamp',
    'accountExpires',
    'ms-Mcs-AdmPwdExpirationTime',
    'msLAPS-PasswordExpirationTime',
)

# Binary identifiers, emitted base64-encoded
BINARY_ATTRIBUTES = (
    'objectSid',
    'objectGUID',
    'sIDHistory',
    'mS-DS-ConsistencyGuid',
)

MASTER_ATTRIBUTES = [
    'distinguishedName',
    'name',
    'sAMAccountName',
    'objectClass',
    'objectSid',
    'objectGUID',
    'description',
    'adminCount',
    'whenCreated',
    'whenChanged',
    ClassScoped(
        (USER, COMPUTER),
        'userAccountControl',
        'pwdLastSet',
        'lastLogonTimestamp',
        'accountExpires',
        'primaryGroupID',
        ['servicePrincipalName', 'msDS-AllowedToDelegateTo', 'msDS-SupportedEncryptionTypes'],
        'sIDHistory',
    ),
    ClassScoped(
        (USER,),
        'userPrincipalName',
        'displayName',
        'mail',
        'title',
        'department',
        'manager',
    ),
    ClassScoped(
        (COMPUTER,),
        'dNSHostName',
        'operatingSystem',
        'operatingSystemVersion',
        'ms-Mcs-AdmPwdExpirationTime',
        'msLAPS-PasswordExpirationTime',
    ),
    ClassScoped(
        (GROUP,),
        'groupType',
        'managedBy',
    ),
    Generated(
        'SID',
        ClassScoped(
            (USER, COMPUTER),
            'Enabled',
            'PasswordNeverExpires',
            'PasswordNotRequired',
            'TrustedForDelegation',
            'DoNotRequirePreAuth',
            'pwdLastSetDate',
            'lastLogonTimestampDate',
            'accountExpiresDate',
        ),
        ClassScoped(
            (COMPUTER,),
            'ms-Mcs-AdmPwdExpirationTimeDate',
            'msLAPS-PasswordExpirationTimeDate',
        ),
        ClassScoped(
            (GROUP,),
            'GroupScope',
            'GroupCategory',
        ),
    ),
]


def expand_attributes(tree, object_class=None, include_generated: bool = False) -> list:
    """Flatten an attribute tree into an ordered, de-duplicated name list.

    Args:
        tree: A node or list of nodes (see module docstring)
        object_class: ObjectClass or class string to filter by, None for all
        include_generated: Whether Generated members are included

    Returns:
        Attribute names in depth-first declaration order, first occurrence wins

    Raises:
        SchemaConfigurationError: if a node has an unrecognized shape
    """
    class_filter = _class_value(object_class) if object_class is not None else None
    names: list = []
    seen: set = set()

    def visit(node):
        if isinstance(node, str):
            node = Attribute(node)

        if isinstance(node, Attribute):
            if node.name not in seen:
                seen.add(node.name)
                names.append(node.name)
        elif isinstance(node, ClassScoped):
            if class_filter is None or class_filter in node.classes:
                for member in node.members:
                    visit(member)
        elif isinstance(node, Generated):
            if include_generated:
                for member in node.members:
                    visit(member)
        elif isinstance(node, (list, tuple)):
            for member in node:
                visit(member)
        else:
            raise SchemaConfigurationError(
                f"Unrecognized attribute catalog node: {node!r} ({type(node).__name__})"
            )

    visit(tree)
    return names


class AttributeSchemaCatalog:
    """Per-class attribute sets derived once from the master tree.

    Usage:
        catalog = AttributeSchemaCatalog()
        catalog.user_input        # attributes to request for users
        catalog.group_output      # columns to report for groups
        catalog.all_output        # every column, used for the members report
    """

    def __init__(self, tree=None):
        """Expand the tree for every class.

        Args:
            tree: Attribute tree (defaults to MASTER_ATTRIBUTES)
        """
        self.tree = MASTER_ATTRIBUTES if tree is None else tree

        self.user_input = tuple(expand_attributes(self.tree, USER))
        self.user_output = tuple(expand_attributes(self.tree, USER, include_generated=True))
        self.computer_input = tuple(expand_attributes(self.tree, COMPUTER))
        self.computer_output = tuple(expand_attributes(self.tree, COMPUTER, include_generated=True))
        self.group_input = tuple(expand_attributes(self.tree, GROUP))
        self.group_output = tuple(expand_attributes(self.tree, GROUP, include_generated=True))
        self.object_input = tuple(expand_attributes(self.tree, ObjectClass.OBJECT))
        self.all_output = tuple(expand_attributes(self.tree, None, include_generated=True))

    def input_attributes(self, kind: Optional[ObjectClass]) -> tuple:
        """Attributes to request from the directory for a class."""
        return {
            USER: self.user_input,
            COMPUTER: self.computer_input,
            GROUP: self.group_input,
        }.get(kind, self.object_input)

    def output_attributes(self, kind: Optional[ObjectClass]) -> tuple:
        """Columns to report for a class (generated columns included)."""
        if kind is None:
            return self.all_output
        return {
            USER: self.user_output,
            COMPUTER: self.computer_output,
            GROUP: self.group_output,
        }.get(kind, self.object_input)
