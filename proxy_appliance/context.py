from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from .appliance_config import ApplianceConfig
from .console import Console

if TYPE_CHECKING:
    from .disk_check import TargetDisk
    from .hardening import AccessAccount
    from .lib.services import ServiceState
    from .params import ProvisioningParameters
    from .storage import StorageBinding


class Stage(Enum):
    START = "start"
    DISK_VALIDATED = "disk_validated"
    STORAGE_BOUND = "storage_bound"
    PARAMETERS_COLLECTED = "parameters_collected"
    PACKAGES_CONFIGURED = "packages_configured"
    HARDENED = "hardened"
    REPORTED = "reported"
    SELF_REMOVED = "self_removed"

    @property
    def successor(self) -> Optional["Stage"]:
        order = list(Stage)
        idx = order.index(self)
        return order[idx + 1] if idx + 1 < len(order) else None

    @property
    def is_terminal(self) -> bool:
        return self.successor is None


@dataclass
class ProvisioningContext:
    """Everything a provisioning run knows, passed explicitly between steps.

    Steps declare the fields they read and write; the pipeline checks both.
    Secrets live here in memory only and are never copied into ``state``.
    """

    config: ApplianceConfig
    console: Console
    state: Dict[str, Any]
    dry_run: bool = False
    keep_script: bool = False
    script_path: Optional[str] = None
    persist: Callable[[], None] = lambda: None

    stage: Stage = Stage.START
    target_disk: Optional["TargetDisk"] = None
    storage: Optional["StorageBinding"] = None
    params: Optional["ProvisioningParameters"] = None
    services: Dict[str, "ServiceState"] = field(default_factory=dict)
    access_account: Optional["AccessAccount"] = None
    hardening_events: List[Tuple[str, float]] = field(default_factory=list)
    report: Optional[str] = None

    def advance(self, to: Stage) -> None:
        if self.stage.successor is not to:
            raise RuntimeError(f"Illegal stage transition {self.stage.value} -> {to.value}")
        self.stage = to
        self.state.setdefault("execution", {})["stage"] = to.value
