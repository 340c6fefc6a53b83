from __future__ import annotations

import logging
import posixpath
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from .appliance_config import ApplianceConfig
from .errors import CommandError, StorageBindError
from .lib.command import run_cmd
from .lib.conffile import update_config_file
from .lib.fstab import bind_entry, ensure_fstab_entry
from .lib.services import restart_service
from .logging_utils import reopen_file_handlers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageBinding:
    source: str
    target: str
    already_mounted: bool
    preserved_files: int
    fstab_appended: bool


def is_mountpoint(path: str) -> bool:
    # Read-only probe, never dry-run.
    r = run_cmd(["mountpoint", "-q", path], check=False)
    return r.returncode == 0


def mount_origin(path: str) -> Optional[Tuple[str, str]]:
    """(device, path within that device) of the filesystem mounted on ``path``."""

    r = run_cmd(["findmnt", "-n", "-o", "MAJ:MIN,FSROOT", "--mountpoint", path], check=False)
    fields = r.stdout.split(None, 1)
    if not r.ok or len(fields) != 2:
        return None
    return fields[0], fields[1].strip()


def backing_location(path: str) -> Optional[Tuple[str, str]]:
    """(device, path within that device) that ``path`` resolves to."""

    r = run_cmd(["findmnt", "-n", "-o", "MAJ:MIN,FSROOT,TARGET", "-T", path], check=False)
    fields = r.stdout.split(None, 2)
    if not r.ok or len(fields) != 3:
        return None
    dev, fsroot, mnt = (f.strip() for f in fields)
    return dev, posixpath.normpath(posixpath.join(fsroot, posixpath.relpath(path, mnt)))


def preserve_logs(src: Path, dst: Path) -> int:
    """Copy the existing log tree into ``dst``; returns the number of files copied."""

    copied: List[str] = []

    def _copy(s: str, d: str) -> str:
        copied.append(s)
        return shutil.copy2(s, d)

    shutil.copytree(src, dst, dirs_exist_ok=True, copy_function=_copy, ignore_dangling_symlinks=True)
    return len(copied)


def ensure_data_dirs(cfg: ApplianceConfig, *, dry_run: bool = False) -> None:
    for sub in cfg.data_subdirs:
        p = cfg.host_path(f"{cfg.data_dir}/{sub}")
        if dry_run:
            logger.info("Would create %s", str(p))
            continue
        p.mkdir(parents=True, exist_ok=True)


def check_data_capacity(cfg: ApplianceConfig) -> int:
    """Warn (only) when the data filesystem is smaller than expected."""

    try:
        total_gib = shutil.disk_usage(cfg.host_path(cfg.data_dir)).total // 1024**3
    except OSError as e:
        logger.warning("Unable to size %s: %s", cfg.data_dir, e)
        return -1
    if total_gib < cfg.data_warn_gib:
        logger.warning(
            "%s is smaller than expected (%dGB < %dGB); proxy performance may suffer",
            cfg.data_dir,
            total_gib,
            cfg.data_warn_gib,
        )
    else:
        logger.info("%s capacity: %dGB", cfg.data_dir, total_gib)
    return total_gib


def bind_log_dir(cfg: ApplianceConfig, *, dry_run: bool = False) -> StorageBinding:
    """Put the system log path on the data partition and persist it.

    Existing logs are copied across before the bind hides them. If the bind
    fails we stop: unbound logs are what fills the system partition.
    """

    source = cfg.data_log_dir
    target = cfg.log_dir

    ensure_data_dirs(cfg, dry_run=dry_run)

    already = is_mountpoint(target)
    preserved = 0
    if already:
        origin = mount_origin(target)
        if origin is None or origin != backing_location(source):
            found = "unknown origin" if origin is None else f"device {origin[0]}, root {origin[1]}"
            raise StorageBindError(
                f"{target} is already mounted from something other than {source} ({found}); refusing to bind over it"
            )
        logger.info("%s is already bound from %s; skipping copy and bind", target, source)
    else:
        host_log = cfg.host_path(target)
        if host_log.exists() and any(host_log.iterdir()):
            logger.info("Preserving existing log files from %s", target)
            if dry_run:
                logger.info("Would copy %s into %s", target, source)
            else:
                preserved = preserve_logs(host_log, cfg.host_path(source))
        try:
            run_cmd(["mount", "--bind", source, target], dry_run=dry_run)
        except CommandError as e:
            raise StorageBindError(f"Unable to bind {source} onto {target}: {e.stderr.strip() or e}") from e

    appended = ensure_fstab_entry(cfg.host_path(cfg.fstab), bind_entry(source, target), dry_run=dry_run)

    if not dry_run:
        reopen_file_handlers()

    return StorageBinding(
        source=source,
        target=target,
        already_mounted=already,
        preserved_files=preserved,
        fstab_appended=appended,
    )


def configure_persistent_journal(cfg: ApplianceConfig, *, dry_run: bool = False) -> None:
    journal_dir = cfg.host_path(f"{cfg.data_log_dir}/journal")
    if dry_run:
        logger.info("Would create %s", str(journal_dir))
    else:
        journal_dir.mkdir(parents=True, exist_ok=True)

    changed = update_config_file(
        cfg.host_path(cfg.journald_conf),
        {"Storage": "persistent"},
        initial="[Journal]\n",
        dry_run=dry_run,
    )
    if changed:
        restart_service("systemd-journald", dry_run=dry_run)
