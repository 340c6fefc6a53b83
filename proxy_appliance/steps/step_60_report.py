from __future__ import annotations

import logging

from ..context import ProvisioningContext, Stage
from ..lib import net
from ..report import render_report
from ..state_store import write_completion_marker

logger = logging.getLogger(__name__)


class ReportStep:
    step_id = "60_report"
    title = "Reporting"
    stage = Stage.REPORTED
    reads = ("params", "access_account")
    writes = ("report",)
    irreversible = False

    def run(self, ctx: ProvisioningContext) -> None:
        if ctx.params is None or ctx.access_account is None:
            raise RuntimeError("Missing parameters/access account; run hardening step first")
        cfg = ctx.config
        macs = net.mac_addresses(str(cfg.host_path("/sys/class/net")))
        report = render_report(
            account=ctx.access_account,
            hostname=ctx.params.proxy_name,
            macs=macs,
            ip=net.primary_ip(),
            ticket_contact=cfg.ticket_contact,
        )
        # Console only: the report carries the account password.
        ctx.console.echo(report)
        ctx.report = report
        logger.info("Report shown to operator (%d interface(s))", len(macs))

        if ctx.dry_run:
            logger.info("Would write completion marker %s", cfg.marker_path)
        else:
            write_completion_marker(str(cfg.host_path(cfg.marker_path)), hostname=ctx.params.proxy_name)
