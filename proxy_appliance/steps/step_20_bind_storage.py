from __future__ import annotations

import logging

from ..context import ProvisioningContext, Stage
from ..storage import bind_log_dir, check_data_capacity, configure_persistent_journal

logger = logging.getLogger(__name__)


class BindStorageStep:
    step_id = "20_bind_storage"
    title = "Binding log storage to the data partition"
    stage = Stage.STORAGE_BOUND
    reads = ("target_disk",)
    writes = ("storage",)
    irreversible = False

    def run(self, ctx: ProvisioningContext) -> None:
        cfg = ctx.config
        check_data_capacity(cfg)

        binding = bind_log_dir(cfg, dry_run=ctx.dry_run)
        configure_persistent_journal(cfg, dry_run=ctx.dry_run)

        ctx.storage = binding
        ctx.state.setdefault("execution", {})["storage"] = {
            "source": binding.source,
            "target": binding.target,
            "fstab_appended": binding.fstab_appended,
        }
        logger.info("%s now lives on %s", binding.target, binding.source)
