import json

import pandas as pd
import pytest

from privad.audit import WARNING_COLUMNS, run_audit
from privad.analysis.audit_warnings import WarningKind
from privad.errors import AuditAbortedError, CollaboratorError
from privad.ingestion.snapshot import SnapshotDirectory
from privad.model.attributes import AttributeSchemaCatalog
from privad.reporting.projector import MEMBER_COLUMNS, RowProjector

from conftest import DOMAIN_SID


GROUPS = {
    "Domain Admins": f"{DOMAIN_SID}-512",
    "Administrators": "S-1-5-32-544",
    "Missing Group": None,
}


def audit_config(**output):
    return {
        "audit": {"privileged_groups": dict(GROUPS)},
        "output": output,
        "verbose": False,
    }


def test_run_audit_writes_reports(corp, tmp_path):
    result = run_audit(gateway=corp.build(), output_dir=str(tmp_path), config=audit_config())

    assert result.completed
    assert result.groups_audited == ["Domain Admins", "Administrators"]
    # Domain Admins: 5 rows; Administrators: DA + its 5 + EA + alice + foreign principal
    assert result.total_rows == 14
    assert [w.kind for w in result.warnings] == [WarningKind.NOT_FOUND]

    members = pd.read_csv(tmp_path / "PrivilegedMembers.csv")
    expected_columns = list(RowProjector(AttributeSchemaCatalog().all_output).output_columns)
    assert list(members.columns) == expected_columns
    assert list(members.columns[:len(MEMBER_COLUMNS)]) == list(MEMBER_COLUMNS)
    assert list(members['Row']) == list(range(1, 15))
    assert "Administrators > Domain Admins > Tier0 Admins" in set(members['MemberPath'])

    with open(tmp_path / "PrivilegedMembers.json", encoding="utf-8") as f:
        document = json.load(f)
    assert document["report"] == "PrivilegedMembers"
    assert document["columns"] == expected_columns
    assert len(document["rows"]) == 14

    warnings = pd.read_csv(tmp_path / "Warnings.csv")
    assert list(warnings.columns) == WARNING_COLUMNS
    assert list(warnings['Subject']) == ["Missing Group"]

    assert (tmp_path / "privad_summary.json").exists()
    assert set(result.report_paths) == {"PrivilegedMembers", "Warnings", "Summary"}
    assert result.graph_summary['groups']['Domain Admins']['effective_members'] == 4


def test_default_group_list(corp, tmp_path):
    result = run_audit(gateway=corp.build(), output_dir=str(tmp_path), config={"verbose": False})

    assert result.groups_audited == [
        "Domain Admins", "Domain Controllers", "Enterprise Admins", "Administrators",
    ]
    assert all(w.kind == WarningKind.NOT_FOUND for w in result.warnings)


def test_extra_groups_are_appended(corp, tmp_path):
    config = audit_config()
    config["audit"]["extra_groups"] = ["Tier0 Admins"]

    result = run_audit(gateway=corp.build(), output_dir=str(tmp_path), config=config)

    assert result.groups_audited[-1] == "Tier0 Admins"


def test_json_only(corp, tmp_path):
    run_audit(gateway=corp.build(), output_dir=str(tmp_path), config=audit_config(formats=["json"]))

    assert (tmp_path / "PrivilegedMembers.json").exists()
    assert not (tmp_path / "PrivilegedMembers.csv").exists()


def test_run_audit_from_snapshot_file(corp, tmp_path):
    snapshot = tmp_path / "corp.json"
    snapshot.write_text(json.dumps({"domain_sid": corp.domain_sid, "objects": corp.objects}))
    messages = []

    result = run_audit(
        snapshot=str(snapshot),
        output_dir=str(tmp_path / "out"),
        config=audit_config(),
        progress_callback=messages.append
    )

    assert result.metadata['source'] == f"snapshot:{snapshot}"
    assert result.metadata['domain_sid'] == DOMAIN_SID
    assert result.total_rows == 14
    assert any(m.startswith("[!]") and "Missing Group" in m for m in messages)


def test_no_source_is_rejected(tmp_path):
    with pytest.raises(ValueError):
        run_audit(output_dir=str(tmp_path), config={"verbose": False})


def test_directory_failure_keeps_partial_results(corp, tmp_path):
    tier0 = corp.dn("Tier0 Admins").lower()

    class FlakyDirectory(SnapshotDirectory):
        def get_group_members(self, group):
            if group.distinguished_name.lower() == tier0:
                raise CollaboratorError("connection reset")
            return super().get_group_members(group)

    directory = FlakyDirectory(objects=corp.objects, domain_sid=corp.domain_sid)

    with pytest.raises(AuditAbortedError) as excinfo:
        run_audit(gateway=directory, output_dir=str(tmp_path), config=audit_config())

    result = excinfo.value.result
    assert not result.completed
    assert "connection reset" in result.error
    assert result.total_rows == 2
    assert result.groups_audited == []

    members = pd.read_csv(tmp_path / "PrivilegedMembers.csv")
    assert list(members['sAMAccountName']) == ["alice", "Tier0 Admins"]
    assert (tmp_path / "privad_summary.json").exists()
