from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from .context import ProvisioningContext, Stage
from .errors import FatalPostHardeningError, FatalPreHardeningError, ProvisioningError
from .state_store import mark_step_completed

logger = logging.getLogger(__name__)


class Step(Protocol):
    """A single provisioning step owning one stage transition."""

    step_id: str
    title: str
    stage: Stage
    reads: Tuple[str, ...]
    writes: Tuple[str, ...]
    irreversible: bool

    def run(self, ctx: ProvisioningContext) -> None:
        ...


@dataclass(frozen=True)
class PipelineResult:
    ran_steps: List[str]
    final_stage: Stage


def _missing(ctx: ProvisioningContext, fields: Sequence[str]) -> List[str]:
    return [f for f in fields if getattr(ctx, f, None) in (None, {}, [])]


def hardening_started(ctx: ProvisioningContext) -> bool:
    hard = (ctx.state.get("execution") or {}).get("hardening") or {}
    return bool(hard.get("started"))


def run_pipeline(
    *,
    ctx: ProvisioningContext,
    steps: Sequence[Step],
    persist: Optional[Callable[[], None]] = None,
) -> PipelineResult:
    """Run steps strictly in order; the first failure aborts the run.

    Failures are classified by where they happen: before lockdown begins
    the run can simply be repeated; from the first irreversible step on,
    any failure needs manual recovery.
    """

    persist = persist or ctx.persist
    ran: List[str] = []
    exe = ctx.state.setdefault("execution", {})

    for step in steps:
        missing = _missing(ctx, step.reads)
        if missing:
            err = FatalPostHardeningError if hardening_started(ctx) else FatalPreHardeningError
            raise err(f"Step {step.step_id} needs {', '.join(missing)}; earlier stage incomplete")

        exe["current_step"] = step.step_id
        if step.irreversible and not hardening_started(ctx):
            exe.setdefault("hardening", {})["started"] = True
            logger.warning("Entering irreversible step %s", step.step_id)
        persist()

        ctx.console.status(f"{step.title} ...")
        logger.info("Running step %s", step.step_id)
        try:
            step.run(ctx)
            missing = _missing(ctx, step.writes)
            if missing:
                raise RuntimeError(f"Step {step.step_id} did not produce {', '.join(missing)}")
            ctx.advance(step.stage)
        except FatalPostHardeningError:
            raise
        except Exception as e:
            if hardening_started(ctx):
                raise FatalPostHardeningError(f"{step.title} failed after lockdown began: {e}") from e
            if isinstance(e, ProvisioningError):
                raise
            raise FatalPreHardeningError(f"{step.title} failed: {e}") from e

        mark_step_completed(ctx.state, step.step_id)
        ran.append(step.step_id)
        ctx.console.status(f"{step.title}: done")
        logger.info("Completed step %s (stage=%s)", step.step_id, ctx.stage.value)
        persist()

    exe["current_step"] = None
    return PipelineResult(ran_steps=ran, final_stage=ctx.stage)
