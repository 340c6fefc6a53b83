from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..errors import StorageBindError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FstabEntry:
    spec: str
    mountpoint: str
    fstype: str
    options: str = "defaults"
    dump: int = 0
    passno: int = 0

    def render(self) -> str:
        return f"{self.spec} {self.mountpoint} {self.fstype} {self.options} {self.dump} {self.passno}"

    def same_mapping(self, other: "FstabEntry") -> bool:
        return (
            self.spec.rstrip("/") == other.spec.rstrip("/")
            and self.mountpoint.rstrip("/") == other.mountpoint.rstrip("/")
            and self.fstype == other.fstype
            and set(self.options.split(",")) == set(other.options.split(","))
        )


def parse_fstab(text: str) -> List[FstabEntry]:
    entries: List[FstabEntry] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        fields = stripped.split()
        if len(fields) < 3:
            logger.warning("Ignoring malformed fstab line: %s", stripped)
            continue
        options = fields[3] if len(fields) > 3 else "defaults"
        dump = int(fields[4]) if len(fields) > 4 and fields[4].isdigit() else 0
        passno = int(fields[5]) if len(fields) > 5 and fields[5].isdigit() else 0
        entries.append(FstabEntry(fields[0], fields[1], fields[2], options, dump, passno))
    return entries


def bind_entry(source: str, target: str) -> FstabEntry:
    return FstabEntry(spec=source, mountpoint=target, fstype="none", options="bind")


def ensure_fstab_entry(path: str | Path, entry: FstabEntry, *, dry_run: bool = False) -> bool:
    """Append ``entry`` unless the same mapping is already registered.

    Returns True when a line was appended. A different source already
    mounted on the same mountpoint is a conflict, not something to stack.
    """

    p = Path(path)
    text = p.read_text(encoding="utf-8") if p.exists() else ""

    for existing in parse_fstab(text):
        if existing.same_mapping(entry):
            logger.info("fstab already maps %s -> %s", entry.spec, entry.mountpoint)
            return False
        if existing.mountpoint.rstrip("/") == entry.mountpoint.rstrip("/"):
            raise StorageBindError(
                f"{p} already mounts {existing.spec} on {existing.mountpoint}; "
                f"refusing to add {entry.spec}"
            )

    if dry_run:
        logger.info("Would append to %s: %s", str(p), entry.render())
        return True

    p.parent.mkdir(parents=True, exist_ok=True)
    prefix = "" if (not text or text.endswith("\n")) else "\n"
    with p.open("a", encoding="utf-8") as f:
        f.write(prefix + entry.render() + "\n")
    logger.info("Appended to %s: %s", str(p), entry.render())
    return True
