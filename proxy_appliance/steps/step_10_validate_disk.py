from __future__ import annotations

import logging

from ..context import ProvisioningContext, Stage
from ..disk_check import validate_target_disk
from ..lib.block import list_block_devices

logger = logging.getLogger(__name__)


class ValidateDiskStep:
    step_id = "10_validate_disk"
    title = "Validating disk"
    stage = Stage.DISK_VALIDATED
    reads: tuple = ()
    writes = ("target_disk",)
    irreversible = False

    def run(self, ctx: ProvisioningContext) -> None:
        cfg = ctx.config
        devices = list_block_devices(sys_block=str(cfg.host_path("/sys/block")))
        logger.info("Detected %d candidate disk(s): %s", len(devices), ", ".join(d.path for d in devices) or "none")

        disk = validate_target_disk(
            devices,
            reserved_system_mib=cfg.reserved_system_mib,
            min_data_mib=cfg.min_data_mib,
            data_mountpoint=cfg.data_dir,
        )
        ctx.target_disk = disk
        ctx.state.setdefault("execution", {})["target_disk"] = {"path": disk.path, "size_bytes": disk.size_bytes}
        ctx.console.status(f"Disk {disk.path}: {disk.size_mib} MiB, {disk.data_partition.min_size_mib} MiB for {cfg.data_dir}")
