from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .command import run_cmd

logger = logging.getLogger(__name__)

_SKIP_PREFIXES = ("lo", "bond", "team")
_NULL_MAC = "00:00:00:00:00:00"


def list_interfaces(sys_net: str = "/sys/class/net") -> List[str]:
    root = Path(sys_net)
    if not root.exists():
        return []
    return sorted(p.name for p in root.iterdir() if not p.name.startswith(_SKIP_PREFIXES))


def mac_addresses(sys_net: str = "/sys/class/net") -> Dict[str, str]:
    """Hardware addresses per interface, for inventory and IP reservations."""

    macs: Dict[str, str] = {}
    for name in list_interfaces(sys_net):
        try:
            mac = (Path(sys_net) / name / "address").read_text(encoding="utf-8").strip()
        except OSError:
            continue
        if mac and mac != _NULL_MAC:
            macs[name] = mac
    return macs


def primary_ip() -> Optional[str]:
    r = run_cmd(["hostname", "-I"], check=False)
    addrs = (r.stdout or "").split()
    return addrs[0] if addrs else None


def configure_dhcp(interfaces: List[str], *, dry_run: bool = False) -> None:
    """One NetworkManager DHCP profile per NIC; existing profiles are updated."""

    for dev in interfaces:
        con = f"dhcp-{dev}"
        run_cmd(["nmcli", "dev", "set", dev, "managed", "yes"], check=False, dry_run=dry_run)
        r = run_cmd(
            ["nmcli", "connection", "add", "type", "ethernet", "ifname", dev, "con-name", con, "ipv4.method", "auto"],
            check=False,
            dry_run=dry_run,
        )
        if r.returncode != 0:
            run_cmd(["nmcli", "connection", "modify", con, "ipv4.method", "auto"], dry_run=dry_run)
        logger.info("DHCP configured on %s", dev)
    run_cmd(["systemctl", "restart", "NetworkManager"], dry_run=dry_run)
