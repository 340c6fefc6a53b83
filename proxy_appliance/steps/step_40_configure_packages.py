from __future__ import annotations

from ..configurator import configure_packages
from ..context import ProvisioningContext, Stage


class ConfigurePackagesStep:
    step_id = "40_configure_packages"
    title = "Installing and configuring proxy packages"
    stage = Stage.PACKAGES_CONFIGURED
    reads = ("params",)
    writes = ("services",)
    irreversible = False

    def run(self, ctx: ProvisioningContext) -> None:
        if ctx.params is None:
            raise RuntimeError("Missing provisioning parameters; run parameter collection step first")
        ctx.services.update(configure_packages(ctx.config, ctx.params, dry_run=ctx.dry_run))
        ctx.state.setdefault("execution", {})["services"] = {
            name: {"enabled": s.enabled, "running": s.running} for name, s in ctx.services.items()
        }
