from __future__ import annotations

import logging
import secrets

from ..errors import CommandError
from .command import run_cmd

logger = logging.getLogger(__name__)

# useradd(8): username already in use
_USERADD_EXISTS = 9


def generate_password(nbytes: int = 16) -> str:
    return secrets.token_urlsafe(nbytes)


def create_restricted_account(name: str, *, home: str, shell: str, dry_run: bool = False) -> bool:
    """Create a no-login account homed on ``home``. Returns True if created.

    An existing account is brought in line (home and shell) instead.
    """

    r = run_cmd(["useradd", "-M", "-d", home, "-s", shell, name], check=False, dry_run=dry_run)
    if r.returncode == 0:
        logger.info("Created account %s (home=%s shell=%s)", name, home, shell)
        return True
    if r.returncode != _USERADD_EXISTS:
        raise CommandError(r.argv, r.returncode, r.stderr)
    logger.info("Account %s exists; enforcing home and shell", name)
    run_cmd(["usermod", "-d", home, "-s", shell, name], dry_run=dry_run)
    return False


def set_password(name: str, password: str, *, dry_run: bool = False) -> None:
    # Through stdin only; run_cmd never logs input_text.
    run_cmd(["chpasswd"], input_text=f"{name}:{password}\n", dry_run=dry_run)


def grant_read_acl(path: str, user: str, *, dry_run: bool = False) -> None:
    """Read-only access through ACLs, leaving ownership untouched."""

    run_cmd(["setfacl", "-R", "-m", f"u:{user}:rX", path], dry_run=dry_run)
    run_cmd(["setfacl", "-R", "-m", f"d:u:{user}:rX", path], dry_run=dry_run)


def lock_account(name: str, *, shell: str, dry_run: bool = False) -> None:
    run_cmd(["passwd", "-l", name], dry_run=dry_run)
    run_cmd(["usermod", "-s", shell, name], dry_run=dry_run)
    logger.warning("Account %s locked, shell set to %s", name, shell)
