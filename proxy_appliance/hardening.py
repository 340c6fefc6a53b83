"""Security hardening sequence.

The steps run in a fixed order and the last one, locking the privileged
account, is the point of no return. It lives in exactly one method,
``lock_privileged_account``, which refuses to run unless every earlier step
has been applied in this run and which is never retried.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple

from .appliance_config import ApplianceConfig
from .errors import FatalPostHardeningError
from .lib import accounts
from .lib.firewall import FirewallPolicy, apply_firewall
from .lib.services import ServiceState, disable_service

logger = logging.getLogger(__name__)

FIREWALL = "firewall"
SERVICES = "services_disabled"
ACCOUNT = "restricted_account"
LOCKOUT = "privileged_lockout"

LOCKOUT_PREREQUISITES = (FIREWALL, SERVICES, ACCOUNT)


@dataclass(frozen=True)
class AccessAccount:
    username: str
    home: str
    shell: str
    password: str = field(repr=False)


class HardeningSequencer:
    def __init__(
        self,
        cfg: ApplianceConfig,
        state: Dict[str, Any],
        *,
        persist: Callable[[], None] = lambda: None,
        dry_run: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cfg = cfg
        self.state = state
        self.persist = persist
        self.dry_run = dry_run
        self.clock = clock
        self.events: List[Tuple[str, float]] = []
        self.services: Dict[str, ServiceState] = {}

    @property
    def _record(self) -> Dict[str, Any]:
        return self.state.setdefault("execution", {}).setdefault("hardening", {})

    def _applied(self, name: str) -> None:
        self.events.append((name, self.clock()))
        self._record.setdefault("applied", [])
        if name not in self._record["applied"]:
            self._record["applied"].append(name)

    def has_applied(self, name: str) -> bool:
        return any(n == name for n, _ in self.events)

    def apply_firewall(self) -> None:
        policy = FirewallPolicy.from_config(self.cfg.firewall)
        apply_firewall(
            policy, tries=self.cfg.retry_tries, base_delay=self.cfg.retry_base_delay, dry_run=self.dry_run
        )
        self._applied(FIREWALL)

    def disable_services(self) -> Dict[str, ServiceState]:
        for name in self.cfg.disabled_services:
            self.services[name] = disable_service(name, dry_run=self.dry_run)
        self._applied(SERVICES)
        return self.services

    def create_restricted_account(self) -> AccessAccount:
        name = self.cfg.restricted_account
        home = self.cfg.data_log_dir
        shell = self.cfg.nologin_shell
        password = accounts.generate_password()
        accounts.create_restricted_account(name, home=home, shell=shell, dry_run=self.dry_run)
        accounts.set_password(name, password, dry_run=self.dry_run)
        accounts.grant_read_acl(home, name, dry_run=self.dry_run)
        self._applied(ACCOUNT)
        return AccessAccount(username=name, home=home, shell=shell, password=password)

    def lock_privileged_account(self) -> None:
        """Point of no return: no interactive privileged login after this."""

        missing = [s for s in LOCKOUT_PREREQUISITES if not self.has_applied(s)]
        if missing:
            raise FatalPostHardeningError(
                f"Refusing to lock {self.cfg.privileged_account}: not yet applied: {', '.join(missing)}"
            )
        if self._record.get("lockout_attempted"):
            raise FatalPostHardeningError(
                f"Lockout of {self.cfg.privileged_account} was already attempted; not retrying"
            )

        # Recorded before the command runs: at most once, even across crashes.
        self._record["lockout_attempted"] = True
        self.persist()

        logger.warning("Locking privileged account %s (irreversible)", self.cfg.privileged_account)
        accounts.lock_account(self.cfg.privileged_account, shell=self.cfg.nologin_shell, dry_run=self.dry_run)
        self._applied(LOCKOUT)

    def run(self) -> AccessAccount:
        self.apply_firewall()
        self.disable_services()
        account = self.create_restricted_account()
        self.lock_privileged_account()
        self._record["completed"] = True
        return account
