import itertools

import pytest

from proxy_appliance.errors import CommandError, FatalPostHardeningError
from proxy_appliance.hardening import ACCOUNT, FIREWALL, LOCKOUT, SERVICES, HardeningSequencer
from proxy_appliance.lib.accounts import create_restricted_account
from proxy_appliance.state_store import ensure_defaults


def _sequencer(cfg, state=None, persist=lambda: None):
    ticks = itertools.count(1)
    return HardeningSequencer(
        cfg,
        state if state is not None else ensure_defaults({}),
        persist=persist,
        clock=lambda: float(next(ticks)),
    )


def test_steps_run_in_order_and_firewall_precedes_lockout(cfg, fake_run):
    seq = _sequencer(cfg)

    account = seq.run()

    assert [name for name, _ in seq.events] == [FIREWALL, SERVICES, ACCOUNT, LOCKOUT]
    stamps = dict(seq.events)
    assert stamps[FIREWALL] < stamps[LOCKOUT]
    assert fake_run.index("firewall-cmd", "--reload") < fake_run.index("passwd", "-l", "root")
    assert fake_run.index("systemctl", "disable") < fake_run.index("passwd", "-l", "root")
    assert account.username == "zabbixlog"
    assert account.home == "/data/logs"
    assert seq.state["execution"]["hardening"]["completed"] is True


def test_account_password_goes_through_stdin_only(cfg, fake_run, caplog):
    caplog.set_level("DEBUG")
    account = _sequencer(cfg).run()

    idx = fake_run.index("chpasswd")
    assert fake_run.inputs[idx] == f"zabbixlog:{account.password}\n"
    assert all(account.password not in " ".join(argv) for argv in fake_run.calls)
    assert account.password not in caplog.text
    assert account.password not in repr(account)


def test_restricted_account_gets_read_acl_on_logs(cfg, fake_run):
    _sequencer(cfg).run()

    assert ["setfacl", "-R", "-m", "u:zabbixlog:rX", "/data/logs"] in fake_run.calls
    assert ["setfacl", "-R", "-m", "d:u:zabbixlog:rX", "/data/logs"] in fake_run.calls
    assert ["useradd", "-M", "-d", "/data/logs", "-s", "/sbin/nologin", "zabbixlog"] in fake_run.calls


def test_lockout_refused_until_prerequisites_applied(cfg, fake_run):
    seq = _sequencer(cfg)
    seq.apply_firewall()
    seq.disable_services()

    with pytest.raises(FatalPostHardeningError, match="restricted_account"):
        seq.lock_privileged_account()
    assert fake_run.commands("passwd") == []
    assert seq.state["execution"]["hardening"]["lockout_attempted"] is False


def test_lockout_is_recorded_before_it_runs(cfg, fake_run):
    seen = []
    state = ensure_defaults({})
    seq = _sequencer(
        cfg,
        state,
        persist=lambda: seen.append((state["execution"]["hardening"]["lockout_attempted"], len(fake_run.commands("passwd")))),
    )

    seq.run()

    assert seen == [(True, 0)]


def test_lockout_is_never_retried(cfg, fake_run):
    fake_run.respond(["passwd"], returncode=1, stderr="passwd: Authentication token manipulation error")
    seq = _sequencer(cfg)

    with pytest.raises(CommandError):
        seq.run()

    assert len(fake_run.commands("passwd")) == 1
    assert seq.state["execution"]["hardening"]["lockout_attempted"] is True
    assert seq.state["execution"]["hardening"]["completed"] is False

    with pytest.raises(FatalPostHardeningError, match="already attempted"):
        seq.lock_privileged_account()
    assert len(fake_run.commands("passwd")) == 1


def test_absent_service_does_not_stop_hardening(cfg, fake_run):
    fake_run.respond(["systemctl", "disable", "--now", "cups"], returncode=1, stderr="Unit cups.service not loaded.")

    _sequencer(cfg).run()

    assert fake_run.commands("passwd", "-l", "root")


def test_existing_account_is_brought_in_line(fake_run):
    fake_run.respond(["useradd"], returncode=9, stderr="useradd: user 'zabbixlog' already exists")

    created = create_restricted_account("zabbixlog", home="/data/logs", shell="/sbin/nologin")

    assert created is False
    assert fake_run.commands("usermod") == [["usermod", "-d", "/data/logs", "-s", "/sbin/nologin", "zabbixlog"]]


def test_unexpected_useradd_failure_propagates(fake_run):
    fake_run.respond(["useradd"], returncode=1, stderr="useradd: cannot lock /etc/passwd")

    with pytest.raises(CommandError):
        create_restricted_account("zabbixlog", home="/data/logs", shell="/sbin/nologin")
