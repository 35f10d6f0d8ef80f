from privad.config import LDAPConfig, OutputConfig, PrivadConfig, get_config, set_config


def test_ldap_port_follows_ssl(monkeypatch):
    monkeypatch.delenv("PRIVAD_PASSWORD", raising=False)
    assert LDAPConfig().port == 389
    assert LDAPConfig(use_ssl=True).port == 636
    assert LDAPConfig(use_ssl=True, port=3269).port == 3269


def test_password_from_environment(monkeypatch):
    monkeypatch.setenv("PRIVAD_PASSWORD", "s3cret")
    config = LDAPConfig()
    assert config.password == "s3cret"
    assert "s3cret" not in repr(config)


def test_output_dir_is_created(tmp_path):
    target = tmp_path / "reports" / "run1"
    OutputConfig(output_dir=str(target))
    assert target.is_dir()


def test_from_dict_and_to_dict(tmp_path, monkeypatch):
    monkeypatch.setenv("PRIVAD_PASSWORD", "s3cret")
    config = PrivadConfig.from_dict({
        "ldap": {"use_ssl": True, "page_size": 500},
        "audit": {"extra_groups": ["Tier0 Admins"]},
        "output": {"output_dir": str(tmp_path), "formats": ["json"]},
        "verbose": False,
    })

    assert config.ldap.port == 636
    assert config.ldap.page_size == 500
    assert config.audit.extra_groups == ["Tier0 Admins"]
    assert "foreignSecurityPrincipal" in config.audit.expected_member_classes
    assert config.output.formats == ["json"]
    assert config.verbose is False

    data = config.to_dict()
    assert set(data) == {"ldap", "audit", "output", "verbose"}
    assert "password" not in data["ldap"]
    assert data["output"]["output_dir"] == str(tmp_path)


def test_global_config(tmp_path):
    config = PrivadConfig.from_dict({"output": {"output_dir": str(tmp_path)}})
    set_config(config)
    assert get_config() is config
