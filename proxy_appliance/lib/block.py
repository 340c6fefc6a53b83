from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from .command import run_cmd

logger = logging.getLogger(__name__)

SECTOR_BYTES = 512

# Binary multiples throughout: "94G", "94GB" and "94GiB" all mean 94 * 1024**3.
_UNIT_FACTORS = {
    "": 1,
    "B": 1,
    "S": SECTOR_BYTES,
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
    "T": 1024**4,
    "P": 1024**5,
}

_SIZE_RE = re.compile(r"^\s*([0-9]+(?:\.[0-9]+)?)\s*([A-Za-z]*)\s*$")

# Device name prefixes that never make a valid install target.
_IGNORED_PREFIXES = ("loop", "ram", "zram", "sr", "fd", "dm-", "md")


@dataclass(frozen=True)
class BlockDevice:
    path: str
    size_bytes: int

    @property
    def size_mib(self) -> int:
        return self.size_bytes // 1024**2


def parse_size(value: Union[str, int, float], *, default_unit: str = "B") -> int:
    """Normalize a reported size to bytes.

    Accepts plain numbers (interpreted with ``default_unit``), and suffixed
    strings such as ``512S`` (sectors), ``100G``, ``100GB``, ``1.5TiB``.
    """

    if isinstance(value, bool):
        raise ValueError(f"Not a size: {value!r}")
    if isinstance(value, (int, float)):
        number, unit = float(value), default_unit
    else:
        m = _SIZE_RE.match(str(value))
        if not m:
            raise ValueError(f"Unparseable size: {value!r}")
        number = float(m.group(1))
        unit = m.group(2) or default_unit

    u = unit.upper()
    if u.endswith("IB"):
        u = u[:-2]
    elif len(u) == 2 and u.endswith("B"):
        u = u[:-1]
    elif u == "SECTORS":
        u = "S"
    if u not in _UNIT_FACTORS:
        raise ValueError(f"Unknown size unit {unit!r} in {value!r}")
    return int(number * _UNIT_FACTORS[u])


def _is_candidate(name: str, dev_type: Optional[str] = "disk") -> bool:
    if dev_type and dev_type != "disk":
        return False
    return not name.startswith(_IGNORED_PREFIXES)


def _from_lsblk() -> Optional[List[BlockDevice]]:
    # Read-only probe: never dry-run, validation must see the real disks.
    r = run_cmd(["lsblk", "-b", "-d", "-J", "-o", "NAME,PATH,SIZE,TYPE"], check=False)
    if r.returncode != 0 or not r.stdout.strip():
        return None
    try:
        payload = json.loads(r.stdout)
    except json.JSONDecodeError:
        logger.warning("Unparseable lsblk output; falling back to sysfs")
        return None

    devices: List[BlockDevice] = []
    for entry in payload.get("blockdevices") or []:
        name = str(entry.get("name") or "")
        if not _is_candidate(name, entry.get("type")):
            continue
        size = entry.get("size")
        if size in (None, ""):
            continue
        path = str(entry.get("path") or f"/dev/{name}")
        size_bytes = parse_size(size)
        if size_bytes > 0:
            devices.append(BlockDevice(path=path, size_bytes=size_bytes))
    return devices


def _from_sysfs(sys_block: Path) -> List[BlockDevice]:
    devices: List[BlockDevice] = []
    if not sys_block.exists():
        return devices
    for node in sorted(sys_block.iterdir()):
        if not _is_candidate(node.name, None):
            continue
        try:
            sectors = (node / "size").read_text(encoding="utf-8").strip()
        except OSError:
            continue
        size_bytes = parse_size(sectors, default_unit="S")
        if size_bytes > 0:
            devices.append(BlockDevice(path=f"/dev/{node.name}", size_bytes=size_bytes))
    return devices


def list_block_devices(*, sys_block: str = "/sys/block") -> List[BlockDevice]:
    """Enumerate whole disks, normalized to bytes.

    lsblk reports bytes; sysfs reports 512-byte sectors. Both paths end in
    the same unit so the validator can compare them directly.
    """

    devices = _from_lsblk()
    if devices is None:
        devices = _from_sysfs(Path(sys_block))
    for d in devices:
        logger.info("Found disk %s (%d MiB)", d.path, d.size_mib)
    return devices
