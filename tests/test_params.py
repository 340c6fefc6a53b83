import os
import stat

import pytest
from conftest import VALID_DB_PASSWORD, VALID_PSK, ScriptedConsole, operator_session

from proxy_appliance.configurator import agent_settings, write_secret_file
from proxy_appliance.params import (
    collect_parameters,
    validate_address,
    validate_db_identifier,
    validate_db_password,
    validate_hostname,
    validate_psk,
)


@pytest.mark.parametrize("length", [0, 1, 3, 31, 33, 64])
def test_psk_wrong_length_is_rejected_even_when_confirmed(length):
    value = "k" * length
    ok, reason = validate_psk(value, value)
    assert not ok
    assert "32" in reason


@pytest.mark.parametrize(
    "first,second",
    [("a" * 32, "b" * 32), (VALID_PSK, VALID_PSK[::-1]), (VALID_PSK, VALID_PSK.upper())],
)
def test_psk_mismatch_is_rejected(first, second):
    ok, reason = validate_psk(first, second)
    assert not ok
    assert "match" in reason


def test_psk_matching_32_chars_is_accepted():
    assert validate_psk(VALID_PSK, VALID_PSK) == (True, "")


@pytest.mark.parametrize("name", ["proxy-01", "proxy01.site.example.com", "P1"])
def test_hostname_accepts_valid_names(name):
    assert validate_hostname(name)[0]


@pytest.mark.parametrize("name", ["", "-proxy", "proxy-", "bad_name", "a..b", "proxy.", "x" * 64])
def test_hostname_rejects_invalid_names(name):
    assert not validate_hostname(name)[0]


@pytest.mark.parametrize("value", ["10.1.2.3", "::1", "[fd00::10]", "zabbix.example.com"])
def test_address_accepts_hosts_and_literals(value):
    assert validate_address(value)[0]


@pytest.mark.parametrize("value", ["", "999.1.1.1", "10.1.2", "bad host"])
def test_address_rejects_garbage(value):
    assert not validate_address(value)[0]


def test_db_identifier_and_password_rules():
    assert validate_db_identifier("zabbix")[0]
    assert not validate_db_identifier("1zabbix")[0]
    assert not validate_db_identifier("zab;bix")[0]
    assert validate_db_password(VALID_DB_PASSWORD, VALID_DB_PASSWORD)[0]
    assert not validate_db_password("short", "short")[0]
    assert not validate_db_password("has white space", "has white space")[0]
    assert not validate_db_password(VALID_DB_PASSWORD, VALID_DB_PASSWORD + "x")[0]


def test_collect_parameters_happy_path():
    console = operator_session("proxy-01")

    params = collect_parameters(console, db_name="zabbix_proxy")

    assert params.time_server == "ntp.example.net"
    assert params.proxy_name == "proxy-01"
    assert params.server_address == "10.1.2.3"
    assert params.psk == VALID_PSK
    assert params.db_user == "zabbix"
    assert params.db_password == VALID_DB_PASSWORD
    assert params.psk_identity == "proxy-01.proxy"
    # Non-secret values are echoed, secrets are not.
    assert "proxy-01" in console.text
    assert VALID_PSK not in console.text
    assert VALID_DB_PASSWORD not in console.text


def test_short_psk_is_reprompted_then_one_owner_only_key_file_is_written(cfg):
    console = ScriptedConsole(
        answers=["ntp.example.net", "proxy-01", "10.1.2.3", "zabbix", "y"],
        secrets=["abc", "abc", VALID_PSK, VALID_PSK, VALID_DB_PASSWORD, VALID_DB_PASSWORD],
    )

    params = collect_parameters(console, db_name="zabbix_proxy")

    assert "got 3" in console.text
    assert params.psk == VALID_PSK
    assert console.secrets == []

    key_file = cfg.host_path(cfg.psk_file)
    write_secret_file(key_file, params.psk)

    assert os.listdir(key_file.parent) == [key_file.name]
    assert stat.S_IMODE(key_file.stat().st_mode) == 0o600
    assert key_file.read_text(encoding="utf-8") == VALID_PSK + "\n"


def test_invalid_hostname_is_reprompted():
    console = ScriptedConsole(
        answers=["ntp.example.net", "bad_name", "proxy-02", "10.1.2.3", "zabbix", "y"],
        secrets=[VALID_PSK, VALID_PSK, VALID_DB_PASSWORD, VALID_DB_PASSWORD],
    )

    params = collect_parameters(console, db_name="zabbix_proxy")

    assert params.proxy_name == "proxy-02"
    assert "Invalid proxy hostname" in console.text


def test_declining_summary_restarts_collection():
    first = ["ntp.example.net", "proxy-01", "10.1.2.3", "zabbix", "n"]
    second = ["ntp.example.net", "proxy-02", "10.1.2.4", "zabbix", "y"]
    secrets = [VALID_PSK, VALID_PSK, VALID_DB_PASSWORD, VALID_DB_PASSWORD] * 2
    console = ScriptedConsole(answers=first + second, secrets=secrets)

    params = collect_parameters(console, db_name="zabbix_proxy")

    assert params.proxy_name == "proxy-02"
    assert params.server_address == "10.1.2.4"
    assert "Starting over" in console.text


def test_repr_masks_secrets():
    params = collect_parameters(operator_session(), db_name="zabbix_proxy")
    text = repr(params)
    assert VALID_PSK not in text
    assert VALID_DB_PASSWORD not in text
    assert "proxy-01" in text


def test_bracketed_ipv6_is_stored_bare(cfg):
    console = ScriptedConsole(
        answers=["[fd00::1]", "proxy-01", "[fd00::20]", "zabbix", "y"],
        secrets=[VALID_PSK, VALID_PSK, VALID_DB_PASSWORD, VALID_DB_PASSWORD],
    )

    params = collect_parameters(console, db_name="zabbix_proxy")

    assert params.time_server == "fd00::1"
    assert params.server_address == "fd00::20"
    core, _ = agent_settings(cfg, params)
    assert core["Server"] == "fd00::20"
