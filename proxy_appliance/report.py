from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional

from .hardening import AccessAccount

logger = logging.getLogger(__name__)

RULE = "=" * 39


def render_report(
    *,
    account: AccessAccount,
    hostname: str,
    macs: Dict[str, str],
    ip: Optional[str],
    ticket_contact: str,
) -> str:
    """Operator summary. Contains the account password: print it, never log it."""

    lines = [
        "",
        f"{'=' * 5} PROXY INSTALLATION COMPLETE {'=' * 5}",
        f"Hostname: {hostname}",
        f"{account.username} user password: {account.password}",
        f"  -> Forward this to {ticket_contact}; it will not be shown again",
        "",
        "Network interfaces:",
    ]
    if macs:
        lines += [f"  {iface}: {mac}" for iface, mac in sorted(macs.items())]
    else:
        lines.append("  (no hardware addresses found)")
    lines += [
        f"IP address: {ip or 'unknown'}",
        f"  -> Open a ticket for an IP reservation and send it to {ticket_contact}",
        RULE,
        "",
    ]
    return "\n".join(lines)


def resolve_script_path(candidate: Optional[str]) -> Optional[Path]:
    if not candidate:
        return None
    p = Path(candidate).resolve()
    return p if p.is_file() else None


def _strip_hook_lines(hook: Path, needles: Iterable[str]) -> bool:
    if not hook.exists():
        return False
    text = hook.read_text(encoding="utf-8")
    kept = [ln for ln in text.splitlines(keepends=True) if not any(n in ln for n in needles)]
    if len(kept) == len(text.splitlines(keepends=True)):
        return False
    hook.write_text("".join(kept), encoding="utf-8")
    logger.info("Removed first-boot hook from %s", str(hook))
    return True


def self_remove(script: Path, hooks: Iterable[Path], *, aliases: Iterable[str] = (), dry_run: bool = False) -> bool:
    """Delete the provisioning script and any boot hook that would re-run it."""

    needles = {str(script), *[a for a in aliases if a]}
    if dry_run:
        logger.info("Would remove %s", str(script))
        return False
    for hook in hooks:
        _strip_hook_lines(hook, needles)
    try:
        script.unlink()
    except FileNotFoundError:
        logger.warning("Provisioning script %s already gone", str(script))
        return False
    logger.info("Removed provisioning script %s", str(script))
    return True
