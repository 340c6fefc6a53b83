from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..errors import CommandError
from .command import run_cmd, with_backoff

logger = logging.getLogger(__name__)

RFC1918 = ["10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"]


@dataclass(frozen=True)
class FirewallPolicy:
    default_zone: str = "drop"
    trusted_zone: str = "proxy-inbound"
    private_sources: List[str] = field(default_factory=lambda: list(RFC1918))
    inbound_services: List[str] = field(default_factory=lambda: ["http", "https"])
    inbound_ports: List[str] = field(default_factory=lambda: ["10051/tcp"])
    egress_exceptions: List[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, raw: Dict[str, Any]) -> "FirewallPolicy":
        return cls(**raw)


def _direct(family: str, priority: int, *rule: str) -> List[str]:
    return ["firewall-cmd", "--permanent", "--direct", "--add-rule", family, "filter", "OUTPUT", str(priority), *rule]


def build_commands(policy: FirewallPolicy) -> List[List[str]]:
    """firewall-cmd invocations, default-deny first and a single reload last."""

    cmds: List[List[str]] = [
        ["firewall-cmd", "--set-default-zone", policy.default_zone],
        # A zone of our own starts empty; stock zones ship ssh, cockpit and friends.
        ["firewall-cmd", "--permanent", f"--new-zone={policy.trusted_zone}"],
    ]

    zone = f"--zone={policy.trusted_zone}"
    for net in policy.private_sources:
        cmds.append(["firewall-cmd", "--permanent", zone, f"--add-source={net}"])
    for svc in policy.inbound_services:
        cmds.append(["firewall-cmd", "--permanent", zone, f"--add-service={svc}"])
    for port in policy.inbound_ports:
        cmds.append(["firewall-cmd", "--permanent", zone, f"--add-port={port}"])

    # Egress: loopback, replies, private ranges and explicit exceptions; the
    # rest is dropped at a lower priority so ordering is deterministic.
    cmds.append(_direct("ipv4", 0, "-o", "lo", "-j", "ACCEPT"))
    cmds.append(_direct("ipv4", 0, "-m", "conntrack", "--ctstate", "ESTABLISHED,RELATED", "-j", "ACCEPT"))
    for net in [*policy.private_sources, *policy.egress_exceptions]:
        cmds.append(_direct("ipv4", 0, "-d", net, "-j", "ACCEPT"))
    cmds.append(_direct("ipv4", 1, "-j", "DROP"))
    cmds.append(_direct("ipv6", 0, "-o", "lo", "-j", "ACCEPT"))
    cmds.append(_direct("ipv6", 1, "-j", "DROP"))

    cmds.append(["firewall-cmd", "--reload"])
    return cmds


def _create_zone(argv: List[str], *, dry_run: bool) -> None:
    r = run_cmd(argv, check=False, dry_run=dry_run)
    if r.ok:
        return
    if "NAME_CONFLICT" not in r.stderr:
        raise CommandError(argv, r.returncode, r.stderr)
    logger.warning("Zone %s already exists; reusing it", argv[-1].split("=", 1)[1])


def prune_zone(policy: FirewallPolicy, *, dry_run: bool = False) -> List[List[str]]:
    """Remove every service and port from the inbound zone that the policy does not allow."""

    zone = f"--zone={policy.trusted_zone}"
    removals: List[List[str]] = []
    for kind, allowed in (("service", policy.inbound_services), ("port", policy.inbound_ports)):
        listed = run_cmd(["firewall-cmd", "--permanent", zone, f"--list-{kind}s"], dry_run=dry_run).stdout.split()
        for item in listed:
            if item not in allowed:
                removals.append(["firewall-cmd", "--permanent", zone, f"--remove-{kind}={item}"])

    for argv in removals:
        logger.warning("Removing unexpected inbound allow: %s", argv[-1])
        run_cmd(argv, dry_run=dry_run)
    return removals


def apply_firewall(
    policy: FirewallPolicy,
    *,
    tries: int = 3,
    base_delay: float = 1.0,
    dry_run: bool = False,
) -> int:
    """Apply the policy. Rule adds are repeatable, so each gets a bounded retry.

    The zone is pruned to exactly the allowed inbound services and ports
    before the final reload. Returns the number of firewall-cmd changes.
    """

    cmds = build_commands(policy)
    *changes, reload = cmds
    for argv in changes:
        if any(a.startswith("--new-zone=") for a in argv):
            _create_zone(argv, dry_run=dry_run)
            continue
        r = with_backoff(lambda argv=argv: run_cmd(argv, dry_run=dry_run), tries=tries, base=base_delay)
        if "ALREADY_ENABLED" in r.stderr:
            logger.info("Rule already present: %s", " ".join(argv[1:]))

    removals = prune_zone(policy, dry_run=dry_run)
    with_backoff(lambda: run_cmd(reload, dry_run=dry_run), tries=tries, base=base_delay)

    logger.info(
        "Firewall applied: default zone %s, inbound zone %s, %d private source(s), %d egress exception(s)",
        policy.default_zone,
        policy.trusted_zone,
        len(policy.private_sources),
        len(policy.egress_exceptions),
    )
    return len(cmds) + len(removals)
