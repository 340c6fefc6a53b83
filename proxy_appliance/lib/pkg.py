from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from ..errors import CommandError, ConfigurationError, PackageInstallError
from .command import run_cmd, with_backoff

logger = logging.getLogger(__name__)

_WILDCARD_CHARS = set("*?[]")


def check_package_names(packages: Sequence[str]) -> list[str]:
    names = [str(p).strip() for p in packages if str(p).strip()]
    if not names:
        raise ConfigurationError("No packages configured for installation")
    bad = [p for p in names if _WILDCARD_CHARS & set(p) or p.startswith("-")]
    if bad:
        raise ConfigurationError(f"Package names must be explicit, refusing: {', '.join(bad)}")
    return names


def dnf_install(
    packages: Sequence[str],
    *,
    tries: int = 3,
    base_delay: float = 2.0,
    dry_run: bool = False,
) -> list[str]:
    """Install an explicit package list; the appliance is useless without it."""

    names = check_package_names(packages)
    try:
        with_backoff(
            lambda: run_cmd(["dnf", "install", "-y", *names], dry_run=dry_run),
            tries=tries,
            base=base_delay,
        )
    except CommandError as e:
        raise PackageInstallError(
            f"Package installation failed after {tries} attempt(s): {' '.join(names)}\n{e.stderr.strip()}"
        ) from e
    logger.info("Installed packages: %s", ", ".join(names))
    return names


def write_local_repo(path: str | Path, *, name: str, baseurl: str, dry_run: bool = False) -> bool:
    """Point dnf at the package cache shipped on the data partition.

    Best-effort: an existing repo file is left alone.
    """

    p = Path(path)
    if p.exists():
        logger.info("Repository file %s already exists; leaving it alone", str(p))
        return False

    contents = (
        f"[{name}]\n"
        f"name={name}\n"
        f"baseurl={baseurl}\n"
        "enabled=1\n"
        "gpgcheck=0\n"
        "priority=1\n"
        "skip_if_unavailable=1\n"
    )
    if dry_run:
        logger.info("Would write %s", str(p))
        return True
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(contents, encoding="utf-8")
    except OSError as e:
        logger.warning("Non-fatal: could not write repository file %s: %s", str(p), e)
        return False
    logger.info("Configured local repository %s -> %s", name, baseurl)
    return True
