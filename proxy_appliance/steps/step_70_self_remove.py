from __future__ import annotations

import logging

from ..context import ProvisioningContext, Stage
from ..report import resolve_script_path, self_remove

logger = logging.getLogger(__name__)


class SelfRemoveStep:
    step_id = "70_self_remove"
    title = "Removing the provisioning script"
    stage = Stage.SELF_REMOVED
    reads = ("report",)
    writes: tuple = ()
    irreversible = False

    def run(self, ctx: ProvisioningContext) -> None:
        if ctx.keep_script:
            logger.info("Keeping provisioning script (--keep-script)")
            return
        script = resolve_script_path(ctx.script_path)
        if script is None:
            logger.warning("Provisioning script %s not found; nothing to remove", ctx.script_path)
            return
        hooks = [ctx.config.host_path(h) for h in ctx.config.firstboot_hooks]
        self_remove(script, hooks, aliases=[ctx.script_path or ""], dry_run=ctx.dry_run)
