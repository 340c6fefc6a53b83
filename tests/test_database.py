import pytest

from proxy_appliance.errors import DatabaseError
from proxy_appliance.lib.database import build_schema_sql, ensure_database


def test_schema_sql_creates_without_dropping():
    sql = build_schema_sql("zabbix_proxy", "zabbix_app", "pa'ss")

    assert "CREATE DATABASE IF NOT EXISTS `zabbix_proxy` CHARACTER SET utf8mb4 COLLATE utf8mb4_bin;" in sql
    assert "CREATE USER IF NOT EXISTS 'zabbix_app'@'localhost' IDENTIFIED BY 'pa\\'ss';" in sql
    assert "GRANT ALL PRIVILEGES ON `zabbix_proxy`.* TO 'zabbix_app'@'localhost';" in sql
    assert "DROP" not in sql.upper()


def test_ensure_database_feeds_sql_on_stdin(fake_run):
    ensure_database("zabbix_proxy", "zabbix_app", "hunter2hunter2")

    assert fake_run.calls == [["mysql", "--batch"]]
    assert "hunter2hunter2" in fake_run.inputs[0]


def test_database_failure_is_classified(fake_run):
    fake_run.respond(["mysql"], returncode=1, stderr="ERROR 2002: Can't connect")

    with pytest.raises(DatabaseError, match="Can't connect"):
        ensure_database("zabbix_proxy", "zabbix_app", "hunter2hunter2")
