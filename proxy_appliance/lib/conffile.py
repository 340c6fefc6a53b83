"""Line-oriented ``Key=Value`` config rewriting.

The contract: for every managed key the first *active* ``Key=`` line is
rewritten in place, later active duplicates are dropped, and keys with no
active line are appended (below ``header`` when one is given). Comments,
commented-out defaults and unrelated keys pass through untouched, so applying
the same values twice yields the same text.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^\s*([A-Za-z0-9_.]+)\s*=")


def _active_key(line: str) -> Optional[str]:
    m = _KEY_RE.match(line)
    return m.group(1) if m else None


def apply_settings(text: str, values: Mapping[str, str], *, header: Optional[str] = None) -> str:
    lines = text.splitlines()
    seen: Dict[str, bool] = {}
    out: List[str] = []

    for line in lines:
        key = _active_key(line)
        if key is None or key not in values:
            out.append(line)
            continue
        if seen.get(key):
            # Duplicate active definition; the first one wins.
            continue
        seen[key] = True
        out.append(f"{key}={values[key]}")

    missing = [k for k in values if not seen.get(k)]
    if missing:
        if header is not None and header not in out:
            if out and out[-1].strip():
                out.append("")
            out.append(header)
        for key in missing:
            out.append(f"{key}={values[key]}")

    return "\n".join(out) + "\n"


def read_settings(text: str) -> Dict[str, str]:
    """Active ``Key=Value`` pairs; first definition wins."""

    result: Dict[str, str] = {}
    for line in text.splitlines():
        key = _active_key(line)
        if key is not None and key not in result:
            result[key] = line.split("=", 1)[1].strip()
    return result


def update_config_file(
    path: str | Path,
    values: Mapping[str, str],
    *,
    header: Optional[str] = None,
    initial: str = "",
    dry_run: bool = False,
) -> bool:
    """Apply ``values`` to the file at ``path``. Returns True if it changed."""

    p = Path(path)
    before = p.read_text(encoding="utf-8") if p.exists() else initial
    after = apply_settings(before, values, header=header)
    if after == before:
        logger.info("%s already up to date (%s)", str(p), ", ".join(values))
        return False
    if dry_run:
        logger.info("Would update %s (%s)", str(p), ", ".join(values))
        return True
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(after, encoding="utf-8")
    logger.info("Updated %s (%s)", str(p), ", ".join(values))
    return True


def ensure_line(path: str | Path, line: str, *, dry_run: bool = False) -> bool:
    """Append ``line`` unless an identical (stripped) line already exists."""

    p = Path(path)
    text = p.read_text(encoding="utf-8") if p.exists() else ""
    if any(existing.strip() == line.strip() for existing in text.splitlines()):
        logger.info("%s already contains: %s", str(p), line.strip())
        return False
    if dry_run:
        logger.info("Would append to %s: %s", str(p), line.strip())
        return True
    p.parent.mkdir(parents=True, exist_ok=True)
    prefix = "" if (not text or text.endswith("\n")) else "\n"
    with p.open("a", encoding="utf-8") as f:
        f.write(prefix + line.rstrip("\n") + "\n")
    logger.info("Appended to %s: %s", str(p), line.strip())
    return True
