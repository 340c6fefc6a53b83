from __future__ import annotations

import logging

from ..context import ProvisioningContext, Stage
from ..params import collect_parameters

logger = logging.getLogger(__name__)


class CollectParametersStep:
    step_id = "30_collect_parameters"
    title = "Collecting proxy parameters"
    stage = Stage.PARAMETERS_COLLECTED
    reads = ("storage",)
    writes = ("params",)
    irreversible = False

    def run(self, ctx: ProvisioningContext) -> None:
        params = collect_parameters(ctx.console, db_name=ctx.config.db_name)
        ctx.params = params
        # Non-secret values only.
        ctx.state.setdefault("execution", {})["parameters"] = {
            "proxy_name": params.proxy_name,
            "server_address": params.server_address,
            "time_server": params.time_server,
            "db_name": params.db_name,
            "db_user": params.db_user,
        }
        logger.info("Parameters accepted for proxy %s", params.proxy_name)
