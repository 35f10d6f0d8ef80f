import pytest

from privad.errors import SchemaConfigurationError
from privad.model.attributes import (
    MASTER_ATTRIBUTES, Attribute, AttributeSchemaCatalog, ClassScoped, Generated,
    expand_attributes
)
from privad.model.schemas import ObjectClass


COMMON = [
    'distinguishedName', 'name', 'sAMAccountName', 'objectClass', 'objectSid',
    'objectGUID', 'description', 'adminCount', 'whenCreated', 'whenChanged',
]


def test_expand_flattens_nested_lists_in_order():
    tree = ['a', ['b', ['c']], Attribute('d')]
    assert expand_attributes(tree) == ['a', 'b', 'c', 'd']


def test_expand_deduplicates_first_occurrence_wins():
    tree = ['a', 'b', ClassScoped([ObjectClass.USER], 'b', 'c'), 'a']
    assert expand_attributes(tree, ObjectClass.USER) == ['a', 'b', 'c']


def test_class_scoped_members_follow_the_filter():
    tree = [
        'name',
        ClassScoped([ObjectClass.USER, ObjectClass.COMPUTER], 'pwdLastSet'),
        ClassScoped([ObjectClass.GROUP], 'groupType'),
    ]
    assert expand_attributes(tree, ObjectClass.USER) == ['name', 'pwdLastSet']
    assert expand_attributes(tree, ObjectClass.GROUP) == ['name', 'groupType']
    assert expand_attributes(tree, 'group') == ['name', 'groupType']
    assert expand_attributes(tree, ObjectClass.OBJECT) == ['name']
    assert expand_attributes(tree) == ['name', 'pwdLastSet', 'groupType']


def test_generated_members_need_opt_in():
    tree = ['pwdLastSet', Generated('pwdLastSetDate', ClassScoped([ObjectClass.GROUP], 'GroupScope'))]
    assert expand_attributes(tree, ObjectClass.USER) == ['pwdLastSet']
    assert expand_attributes(tree, ObjectClass.USER, include_generated=True) == ['pwdLastSet', 'pwdLastSetDate']
    assert expand_attributes(tree, include_generated=True) == ['pwdLastSet', 'pwdLastSetDate', 'GroupScope']


@pytest.mark.parametrize("node", [42, None, {'name': 'x'}, object()])
def test_unknown_node_raises(node):
    with pytest.raises(SchemaConfigurationError):
        expand_attributes(['name', node])


def test_schema_error_is_a_value_error():
    with pytest.raises(ValueError):
        AttributeSchemaCatalog(tree=['name', 3.5])


class TestCatalog:
    def test_object_input_is_the_common_set(self, catalog):
        assert list(catalog.object_input) == COMMON

    def test_user_input(self, catalog):
        assert list(catalog.user_input[:len(COMMON)]) == COMMON
        assert 'pwdLastSet' in catalog.user_input
        assert 'servicePrincipalName' in catalog.user_input
        assert 'userPrincipalName' in catalog.user_input
        assert 'dNSHostName' not in catalog.user_input
        assert 'groupType' not in catalog.user_input
        assert 'Enabled' not in catalog.user_input

    def test_computer_input(self, catalog):
        assert 'dNSHostName' in catalog.computer_input
        assert 'ms-Mcs-AdmPwdExpirationTime' in catalog.computer_input
        assert 'userPrincipalName' not in catalog.computer_input

    def test_group_input_has_no_account_attributes(self, catalog):
        assert 'groupType' in catalog.group_input
        assert 'pwdLastSet' not in catalog.group_input
        assert 'primaryGroupID' not in catalog.group_input

    def test_outputs_add_generated_columns(self, catalog):
        assert 'pwdLastSetDate' in catalog.user_output
        assert 'Enabled' in catalog.computer_output
        assert 'GroupScope' in catalog.group_output
        assert 'GroupScope' not in catalog.user_output
        assert 'SID' in catalog.group_output

    def test_all_output_is_the_union(self, catalog):
        union = set(catalog.user_output) | set(catalog.computer_output) | set(catalog.group_output)
        assert set(catalog.all_output) == union
        assert len(catalog.all_output) == len(set(catalog.all_output))

    def test_inputs_never_contain_generated_columns(self, catalog):
        generated = set(catalog.all_output) - set(expand_attributes(MASTER_ATTRIBUTES))
        for kind in ObjectClass:
            assert not generated & set(catalog.input_attributes(kind))

    def test_lookup_by_kind(self, catalog):
        assert catalog.input_attributes(ObjectClass.USER) is catalog.user_input
        assert catalog.input_attributes(ObjectClass.OBJECT) is catalog.object_input
        assert catalog.output_attributes(ObjectClass.GROUP) is catalog.group_output
        assert catalog.output_attributes(None) is catalog.all_output

    def test_sets_are_immutable(self, catalog):
        assert isinstance(catalog.user_input, tuple)
        assert isinstance(catalog.all_output, tuple)

    def test_custom_tree(self):
        catalog = AttributeSchemaCatalog(tree=['name', ClassScoped([ObjectClass.GROUP], 'member')])
        assert catalog.group_input == ('name', 'member')
        assert catalog.user_input == ('name',)
