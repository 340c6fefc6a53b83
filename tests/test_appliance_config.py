import pytest

from proxy_appliance.appliance_config import ApplianceConfig, load_appliance_config


def test_defaults():
    cfg = load_appliance_config(None)

    assert cfg.data_dir == "/data"
    assert cfg.data_log_dir == "/data/logs"
    assert cfg.reserved_system_mib + cfg.min_data_mib == 94 * 1024
    assert cfg.local_repo_baseurl == "file:///data/zabbix-pkgs"
    assert cfg.privileged_account == "root"
    assert "sshd" in cfg.disabled_services
    assert cfg.host_path("/etc/fstab").as_posix() == "/etc/fstab"


def test_load_yaml(tmp_path):
    path = tmp_path / "appliance.yaml"
    path.write_text(
        "paths:\n  sysroot: /mnt/target\n  data_dir: /srv/data\n"
        "packages:\n  local_repo: ''\n"
        "firewall:\n  egress_exceptions: [203.0.113.10/32]\n",
        encoding="utf-8",
    )

    cfg = load_appliance_config(str(path))

    assert cfg.data_log_dir == "/srv/data/logs"
    assert cfg.local_repo_baseurl is None
    assert cfg.firewall["egress_exceptions"] == ["203.0.113.10/32"]
    assert cfg.host_path("/etc/fstab").as_posix() == "/mnt/target/etc/fstab"


def test_missing_explicit_config_is_an_error(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_appliance_config(str(tmp_path / "nope.yaml"))


@pytest.mark.parametrize(
    "name,content",
    [("appliance.json", "{}"), ("appliance.yaml", "- just\n- a list\n")],
)
def test_malformed_config_is_rejected(tmp_path, name, content):
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ValueError):
        load_appliance_config(str(path))


def test_wrong_section_type_is_rejected():
    with pytest.raises(ValueError):
        ApplianceConfig(raw={"services": {"disable": "sshd"}}).disabled_services
