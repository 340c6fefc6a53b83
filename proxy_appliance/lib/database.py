from __future__ import annotations

import logging

from ..errors import CommandError, DatabaseError
from .command import run_cmd

logger = logging.getLogger(__name__)


def _sql_literal(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _sql_ident(value: str) -> str:
    return "`" + value.replace("`", "``") + "`"


def build_schema_sql(db_name: str, db_user: str, db_password: str, *, host: str = "localhost") -> str:
    """SQL that provisions the application database. Never drops anything."""

    user = f"{_sql_literal(db_user)}@{_sql_literal(host)}"
    return "\n".join(
        [
            f"CREATE DATABASE IF NOT EXISTS {_sql_ident(db_name)} CHARACTER SET utf8mb4 COLLATE utf8mb4_bin;",
            f"CREATE USER IF NOT EXISTS {user} IDENTIFIED BY {_sql_literal(db_password)};",
            f"ALTER USER {user} IDENTIFIED BY {_sql_literal(db_password)};",
            f"GRANT ALL PRIVILEGES ON {_sql_ident(db_name)}.* TO {user};",
            "FLUSH PRIVILEGES;",
            "",
        ]
    )


def ensure_database(db_name: str, db_user: str, db_password: str, *, dry_run: bool = False) -> None:
    # SQL goes over stdin: the password must not show up in argv or logs.
    sql = build_schema_sql(db_name, db_user, db_password)
    try:
        run_cmd(["mysql", "--batch"], input_text=sql, dry_run=dry_run)
    except CommandError as e:
        raise DatabaseError(f"Unable to create database {db_name!r}: {e.stderr.strip() or e.returncode}") from e
    logger.info("Database %s ready for user %s", db_name, db_user)
