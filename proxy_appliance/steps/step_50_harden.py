from __future__ import annotations

import logging

from ..context import ProvisioningContext, Stage
from ..hardening import HardeningSequencer

logger = logging.getLogger(__name__)


class HardenStep:
    step_id = "50_harden"
    title = "Hardening the appliance"
    stage = Stage.HARDENED
    reads = ("services",)
    writes = ("access_account",)
    irreversible = True

    def run(self, ctx: ProvisioningContext) -> None:
        seq = HardeningSequencer(ctx.config, ctx.state, persist=ctx.persist, dry_run=ctx.dry_run)
        try:
            ctx.access_account = seq.run()
        finally:
            ctx.hardening_events = list(seq.events)
            ctx.services.update(seq.services)
        logger.warning("Hardening complete; %s is locked", ctx.config.privileged_account)
