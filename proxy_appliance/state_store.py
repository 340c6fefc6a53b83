"""Persisted run state and the completion marker.

The state file records progress for diagnosis and for the re-run policy:
stage reached, completed steps, hardening flags and errors. It never holds
secrets. The completion marker is separate so that a finished appliance is
recognized even if the state file is removed.
"""

from __future__ import annotations

import datetime as _dt
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

STATE_VERSION = 1

_HARDENING_FLAGS = ("started", "lockout_attempted", "completed")


def _is_yaml(path: Path) -> bool:
    # Anything that is not .yaml/.yml is JSON.
    return path.suffix.lower() in {".yaml", ".yml"}


def load_state(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    text = p.read_text(encoding="utf-8")
    data = (yaml.safe_load(text) or {}) if _is_yaml(p) else json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"{p}: state must be a mapping, got {type(data).__name__}")
    return data


def save_state(path: str, state: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _is_yaml(p):
        text = yaml.safe_dump(state, sort_keys=False)
    else:
        text = json.dumps(state, indent=2, sort_keys=True) + "\n"

    # The hardening flags gate every later run; never leave a torn file.
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    os.replace(tmp, p)


def ensure_defaults(state: Dict[str, Any]) -> Dict[str, Any]:
    """Fill missing keys; recorded values win."""

    state.setdefault("version", STATE_VERSION)
    exe = state.setdefault("execution", {})
    for key, default in (("stage", "start"), ("current_step", None), ("completed_steps", []), ("errors", [])):
        exe.setdefault(key, default)

    hard = exe.setdefault("hardening", {})
    for flag in _HARDENING_FLAGS:
        hard.setdefault(flag, False)
    return state


def mark_step_completed(state: Dict[str, Any], step_id: str) -> None:
    done = state.setdefault("execution", {}).setdefault("completed_steps", [])
    if step_id not in done:
        done.append(step_id)


def hardening_recorded(state: Dict[str, Any]) -> bool:
    """True once any earlier run entered hardening.

    Without a completion marker such a run is only recoverable by hand, even
    when the hardening step itself finished and a later step failed.
    """

    hard = (state.get("execution") or {}).get("hardening") or {}
    return bool(hard.get("started"))


def read_completion_marker(path: str) -> Optional[Dict[str, Any]]:
    p = Path(path)
    if not p.exists():
        return None
    try:
        data = json.loads(p.read_text(encoding="utf-8") or "{}")
    except json.JSONDecodeError:
        # A marker is a marker even if its payload is unreadable.
        logger.warning("Completion marker %s is not valid JSON", str(p))
        return {}
    return data if isinstance(data, dict) else {}


def write_completion_marker(path: str, *, hostname: Optional[str] = None) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "completed_at": _dt.datetime.now(_dt.timezone.utc).isoformat(),
        "hostname": hostname,
    }
    p.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    logger.info("Wrote completion marker %s", str(p))
