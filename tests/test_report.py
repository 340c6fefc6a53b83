from proxy_appliance.hardening import AccessAccount
from proxy_appliance.report import render_report, resolve_script_path, self_remove

ACCOUNT = AccessAccount(username="zabbixlog", home="/data/logs", shell="/sbin/nologin", password="Gen3rated-Pw")


def test_report_lists_account_network_and_ticket():
    text = render_report(
        account=ACCOUNT,
        hostname="proxy-01",
        macs={"eth1": "52:54:00:00:00:02", "eth0": "52:54:00:00:00:01"},
        ip="10.1.2.50",
        ticket_contact="netops",
    )

    assert "zabbixlog user password: Gen3rated-Pw" in text
    assert text.index("eth0: 52:54:00:00:00:01") < text.index("eth1: 52:54:00:00:00:02")
    assert "IP address: 10.1.2.50" in text
    assert "IP reservation" in text
    assert "netops" in text


def test_report_without_network_details():
    text = render_report(account=ACCOUNT, hostname="proxy-01", macs={}, ip=None, ticket_contact="netops")
    assert "no hardware addresses found" in text
    assert "IP address: unknown" in text


def test_self_remove_deletes_script_and_boot_hook(tmp_path):
    script = tmp_path / "firstboot.sh"
    script.write_text("#!/bin/sh\n", encoding="utf-8")
    hook = tmp_path / "rc.local"
    hook.write_text(f"#!/bin/sh\ntouch /var/lock/subsys/local\n/bin/sh {script}\n", encoding="utf-8")

    removed = self_remove(resolve_script_path(str(script)), [hook, tmp_path / "absent"], aliases=[str(script)])

    assert removed is True

    assert not script.exists()
    assert hook.read_text(encoding="utf-8") == "#!/bin/sh\ntouch /var/lock/subsys/local\n"


def test_self_remove_dry_run_keeps_everything(tmp_path):
    script = tmp_path / "firstboot.sh"
    script.write_text("#!/bin/sh\n", encoding="utf-8")

    assert self_remove(script, [], dry_run=True) is False
    assert script.exists()


def test_resolve_script_path_requires_a_file(tmp_path):
    assert resolve_script_path(None) is None
    assert resolve_script_path(str(tmp_path)) is None
    assert resolve_script_path(str(tmp_path / "missing.sh")) is None
