from __future__ import annotations

import logging

from .command import run_cmd

logger = logging.getLogger(__name__)


def set_locale(locale: str, keymap: str, *, dry_run: bool = False) -> None:
    run_cmd(["localectl", "set-locale", f"LANG={locale}"], dry_run=dry_run)
    run_cmd(["localectl", "set-keymap", keymap], dry_run=dry_run)


def set_timezone(timezone: str, *, dry_run: bool = False) -> None:
    run_cmd(["timedatectl", "set-timezone", timezone], dry_run=dry_run)


def set_hostname(hostname: str, *, dry_run: bool = False) -> None:
    run_cmd(["hostnamectl", "set-hostname", hostname], dry_run=dry_run)
    logger.info("Hostname set to %s", hostname)
