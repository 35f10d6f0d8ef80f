import pytest

from privad.model.schemas import (
    AuditResult, DirectoryObject, MembershipPath, ObjectClass, ProjectedRow,
    rdn_value, rid_from_sid, sid_from_string, sid_to_string
)


DA = "CN=Domain Admins,CN=Users,DC=corp,DC=local"
TIER0 = "CN=Tier0 Admins,OU=Admin,DC=corp,DC=local"


def test_sid_round_trip():
    sid = "S-1-5-21-1004336348-1177238915-682003330-512"
    raw = sid_from_string(sid)
    assert raw[0] == 1
    assert raw[1] == 5
    assert sid_to_string(raw) == sid


def test_builtin_sid_round_trip():
    assert sid_to_string(sid_from_string("S-1-5-32-544")) == "S-1-5-32-544"


def test_sid_from_string_rejects_garbage():
    with pytest.raises(ValueError):
        sid_from_string("Domain Admins")


def test_rid_from_sid():
    assert rid_from_sid("S-1-5-21-1-2-3-1105") == 1105
    assert rid_from_sid("") is None


@pytest.mark.parametrize("value,expected", [
    ("user", ObjectClass.USER),
    ("Computer", ObjectClass.COMPUTER),
    ("group", ObjectClass.GROUP),
    ("foreignSecurityPrincipal", ObjectClass.OBJECT),
    ("", ObjectClass.OBJECT),
    (None, ObjectClass.OBJECT),
])
def test_object_class_from_string(value, expected):
    assert ObjectClass.from_string(value) == expected


def test_rdn_value():
    assert rdn_value(DA) == "Domain Admins"


class TestDirectoryObject:
    def test_identity_ignores_dn_case(self):
        a = DirectoryObject(DA, "group")
        b = DirectoryObject(DA.upper(), "group")
        assert a == b
        assert len({a, b}) == 1

    def test_sid_from_binary(self):
        obj = DirectoryObject(DA, "group", {"objectSid": sid_from_string("S-1-5-21-1-2-3-512")})
        assert obj.sid == "S-1-5-21-1-2-3-512"

    def test_name_falls_back_to_rdn(self):
        assert DirectoryObject(DA, "group").name == "Domain Admins"
        assert DirectoryObject(DA, "group", {"sAMAccountName": "DA"}).name == "DA"

    def test_domain_local_flag(self):
        assert DirectoryObject(DA, "group", {"groupType": -2147483644}).is_domain_local
        assert DirectoryObject(DA, "group", {"groupType": -2147483643}).is_domain_local
        assert not DirectoryObject(DA, "group", {"groupType": -2147483646}).is_domain_local
        assert not DirectoryObject(DA, "group").is_domain_local


class TestMembershipPath:
    def test_contains_ignores_case(self):
        path = MembershipPath([DA])
        assert DA.lower() in path
        assert TIER0 not in path

    def test_child_returns_new_path(self):
        root = MembershipPath([DA])
        nested = root.child(TIER0)
        assert root == (DA,)
        assert nested == (DA, TIER0)
        assert nested.depth == 2

    def test_child_refuses_repeats(self):
        with pytest.raises(ValueError):
            MembershipPath([DA, TIER0]).child(DA.upper())

    def test_display(self):
        assert MembershipPath([DA, TIER0]).display() == "Domain Admins > Tier0 Admins"


class TestProjectedRow:
    def test_preserves_column_order(self):
        row = ProjectedRow([("b", 1), ("a", None)])
        assert row.columns == ("b", "a")
        assert list(row) == ["b", "a"]
        assert row["a"] is None
        assert row.to_dict() == {"b": 1, "a": None}

    def test_is_read_only(self):
        row = ProjectedRow({"a": 1})
        with pytest.raises(TypeError):
            row["a"] = 2


def test_audit_result_completed():
    assert AuditResult().completed
    assert not AuditResult(error="boom").completed
    assert AuditResult(total_rows=3).to_dict()["total_rows"] == 3
