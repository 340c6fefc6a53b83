"""Pre-flight disk validation.

Pure: takes a device list, returns a descriptor or raises. Nothing here runs
a command or touches a file, so it can be exercised with synthetic disks and
is safe to call before any destructive step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from .errors import DiskValidationError
from .lib.block import BlockDevice

logger = logging.getLogger(__name__)

MIB = 1024**2


@dataclass(frozen=True)
class PartitionSpec:
    mountpoint: str
    min_size_mib: int
    fstype: str = "ext4"


@dataclass(frozen=True)
class TargetDisk:
    path: str
    size_bytes: int
    layout: List[PartitionSpec] = field(default_factory=list)

    @property
    def size_mib(self) -> int:
        return self.size_bytes // MIB

    @property
    def data_partition(self) -> PartitionSpec:
        return self.layout[-1]


def _gib(mib: int) -> str:
    return f"{mib / 1024:.0f}GB"


def select_largest(devices: Sequence[BlockDevice]) -> BlockDevice:
    """Largest device; ties go to the first path in sorted order."""

    if not devices:
        raise DiskValidationError("No disk detected for installation")
    # max() keeps the first of equal elements, so sort by path first.
    return max(sorted(devices, key=lambda d: d.path), key=lambda d: d.size_bytes)


def validate_target_disk(
    devices: Sequence[BlockDevice],
    *,
    reserved_system_mib: int,
    min_data_mib: int,
    data_mountpoint: str = "/data",
) -> TargetDisk:
    required_mib = reserved_system_mib + min_data_mib

    if not devices:
        raise DiskValidationError(
            f"No disk detected for installation; a disk of at least {_gib(required_mib)} is required"
        )

    disk = select_largest(devices)
    available_mib = disk.size_mib
    data_mib = available_mib - reserved_system_mib

    if data_mib < min_data_mib:
        raise DiskValidationError(
            f"Disk too small for installation: {disk.path} has {_gib(available_mib)} "
            f"({available_mib} MiB), required {_gib(required_mib)} ({required_mib} MiB: "
            f"{_gib(reserved_system_mib)} system + {_gib(min_data_mib)} data)"
        )

    layout = [
        PartitionSpec(mountpoint="/", min_size_mib=reserved_system_mib, fstype="ext4"),
        PartitionSpec(mountpoint=data_mountpoint, min_size_mib=data_mib, fstype="ext4"),
    ]
    logger.info(
        "Disk validation passed: %s (%d MiB), %s will be %d MiB",
        disk.path,
        available_mib,
        data_mountpoint,
        data_mib,
    )
    return TargetDisk(path=disk.path, size_bytes=disk.size_bytes, layout=layout)
