from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import CommandError
from .command import run_cmd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceState:
    name: str
    enabled: bool
    running: bool


def enable_service(name: str, *, now: bool = True, dry_run: bool = False) -> ServiceState:
    """Enable (and by default start) a unit. Failure propagates."""

    argv = ["systemctl", "enable"]
    if now:
        argv.append("--now")
    run_cmd([*argv, name], dry_run=dry_run)
    return ServiceState(name=name, enabled=True, running=now)


def disable_service(name: str, *, dry_run: bool = False) -> ServiceState:
    """Disable and stop a unit. Best-effort: an absent unit is not an error."""

    r = run_cmd(["systemctl", "disable", "--now", name], check=False, dry_run=dry_run)
    if r.returncode != 0:
        logger.warning("Non-fatal: could not disable %s (rc=%s): %s", name, r.returncode, r.stderr.strip())
    return ServiceState(name=name, enabled=False, running=False)


def restart_service(name: str, *, dry_run: bool = False) -> None:
    run_cmd(["systemctl", "restart", name], dry_run=dry_run)


def try_start_service(name: str, *, dry_run: bool = False) -> ServiceState:
    """Enable ``name`` and attempt to start it; a failed start only warns."""

    run_cmd(["systemctl", "enable", name], dry_run=dry_run)
    try:
        run_cmd(["systemctl", "restart", name], dry_run=dry_run)
    except CommandError as e:
        logger.warning("Non-fatal: %s enabled but did not start: %s", name, e.stderr.strip() or e)
        return ServiceState(name=name, enabled=True, running=False)
    return ServiceState(name=name, enabled=True, running=True)
