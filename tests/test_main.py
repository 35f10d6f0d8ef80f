import json

import pytest

from privad.main import main

from conftest import DOMAIN_SID


def test_requires_a_source(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2
    assert "--snapshot" in capsys.readouterr().err


def test_snapshot_audit(corp, tmp_path, capsys):
    snapshot = tmp_path / "corp.json"
    snapshot.write_text(json.dumps({"domain_sid": DOMAIN_SID, "objects": corp.objects}))
    out_dir = tmp_path / "out"

    code = main(["--snapshot", str(snapshot), "-o", str(out_dir), "-f", "json", "-g", "Tier0 Admins"])

    assert code == 0
    assert (out_dir / "PrivilegedMembers.json").exists()
    assert not (out_dir / "PrivilegedMembers.csv").exists()
    output = capsys.readouterr().out
    assert "Tier0 Admins:" in output
    assert "[!] Group 'DnsAdmins' not found" in output


def test_missing_snapshot_file_fails(tmp_path, capsys):
    code = main(["--snapshot", str(tmp_path / "missing.json"), "-o", str(tmp_path)])
    assert code == 1
    assert "[!] Error:" in capsys.readouterr().out
