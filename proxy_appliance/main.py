from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from .appliance_config import DEFAULT_CONFIG_PATH, ApplianceConfig, load_appliance_config
from .console import Console
from .context import ProvisioningContext
from .errors import FatalPostHardeningError, ProvisioningError
from .logging_utils import configure_logging
from .pipeline import PipelineResult, Step, hardening_started, run_pipeline
from .state_store import (
    ensure_defaults,
    hardening_recorded,
    load_state,
    read_completion_marker,
    save_state,
)
from .steps import (
    BindStorageStep,
    CollectParametersStep,
    ConfigurePackagesStep,
    HardenStep,
    ReportStep,
    SelfRemoveStep,
    ValidateDiskStep,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PRE_HARDENING = 1
EXIT_POST_HARDENING = 2
EXIT_INTERRUPTED = 130


def build_steps() -> List[Step]:
    return [
        ValidateDiskStep(),
        BindStorageStep(),
        CollectParametersStep(),
        ConfigurePackagesStep(),
        HardenStep(),
        ReportStep(),
        SelfRemoveStep(),
    ]


def _reset_progress(state: Dict[str, Any]) -> None:
    # A run that failed before lockdown is repeated from the beginning.
    exe = state.setdefault("execution", {})
    exe["stage"] = "start"
    exe["current_step"] = None
    exe["completed_steps"] = []


def run(
    *,
    cfg: ApplianceConfig,
    console: Console,
    state_path: Optional[str] = None,
    dry_run: bool = False,
    keep_script: bool = False,
    script_path: Optional[str] = None,
    steps: Optional[List[Step]] = None,
) -> Optional[PipelineResult]:
    """Provision the appliance. Returns None when it was already provisioned."""

    state_path = state_path or str(cfg.host_path(cfg.state_path))

    marker = read_completion_marker(str(cfg.host_path(cfg.marker_path)))
    if marker is not None:
        logger.info("Completion marker present (%s); nothing to do", marker.get("completed_at"))
        console.status("This appliance is already provisioned; nothing to do.")
        return None

    state = ensure_defaults(load_state(state_path))
    if hardening_recorded(state):
        raise FatalPostHardeningError(
            "A previous run entered hardening but never finished provisioning "
            f"(last step: {state['execution'].get('current_step')}); refusing to continue"
        )
    _reset_progress(state)

    def persist() -> None:
        if dry_run:
            return
        save_state(state_path, state)

    ctx = ProvisioningContext(
        config=cfg,
        console=console,
        state=state,
        dry_run=dry_run,
        keep_script=keep_script,
        script_path=script_path,
        persist=persist,
    )

    logger.info("Starting provisioning (dry_run=%s, state=%s)", dry_run, state_path)
    try:
        result = run_pipeline(ctx=ctx, steps=steps if steps is not None else build_steps())
    except KeyboardInterrupt as e:
        _record_error(state, "interrupted by operator")
        if hardening_started(ctx):
            raise FatalPostHardeningError("Interrupted by operator during hardening") from e
        raise
    except Exception as e:
        logger.exception("Provisioning failed")
        _record_error(state, str(e))
        raise
    finally:
        persist()

    logger.info("Provisioning finished at stage %s", result.final_stage.value)
    return result


def _record_error(state: Dict[str, Any], message: str) -> None:
    exe = state.setdefault("execution", {})
    exe.setdefault("errors", []).append({"step": exe.get("current_step"), "error": message})


def main(argv: Optional[list[str]] = None, *, console: Optional[Console] = None) -> int:
    p = argparse.ArgumentParser(prog="proxy-appliance-firstboot")
    p.add_argument("--config", default=None, help=f"Path to appliance config (yaml, default {DEFAULT_CONFIG_PATH} if present)")
    p.add_argument("--state", default=None, help="Path to provisioning state (json|yaml)")
    p.add_argument("--log", default=None, help="Path to provisioning log")
    p.add_argument("--dry-run", action="store_true", help="Log every action without changing the system")
    p.add_argument("--keep-script", action="store_true", help="Do not delete the provisioning script at the end")

    args = p.parse_args(argv)
    console = console or Console()

    config_path = args.config or (DEFAULT_CONFIG_PATH if os.path.exists(DEFAULT_CONFIG_PATH) else None)
    try:
        cfg = load_appliance_config(config_path)
    except (OSError, ValueError) as e:
        console.error(f"Unable to load config {config_path}: {e}")
        return EXIT_PRE_HARDENING

    configure_logging(log_path=args.log or str(cfg.host_path(cfg.log_file)))

    if not args.dry_run and os.geteuid() != 0:
        console.error("Provisioning must run as root (or use --dry-run)")
        return EXIT_PRE_HARDENING

    try:
        run(
            cfg=cfg,
            console=console,
            state_path=args.state,
            dry_run=args.dry_run,
            keep_script=args.keep_script,
            script_path=cfg.script_path or (sys.argv[0] if sys.argv else None),
        )
    except FatalPostHardeningError as e:
        logger.critical("Manual recovery required: %s", e)
        console.error(str(e))
        console.error("MANUAL RECOVERY REQUIRED: the appliance may be partially locked down. Do not re-run.")
        return EXIT_POST_HARDENING
    except ProvisioningError as e:
        console.error(str(e))
        console.error("Nothing irreversible was done; fix the problem and re-run.")
        return e.exit_code
    except (OSError, ValueError) as e:
        console.error(f"Unable to use provisioning state: {e}")
        return EXIT_PRE_HARDENING
    except KeyboardInterrupt:
        console.error("Interrupted before hardening; it is safe to re-run.")
        return EXIT_INTERRUPTED
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
