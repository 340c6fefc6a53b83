from __future__ import annotations

import logging
import shlex
import subprocess
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, TypeVar

from ..errors import CommandError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    input_text: Optional[str] = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run one external command and return its captured result.

    The argv is always logged; ``input_text`` never is, since that is how
    passwords and credential-bearing SQL reach a command. With ``dry_run``
    the command is logged and reported as successful without running.
    A missing binary is reported as rc 127, like a shell would.
    """

    cmd = list(argv)
    logger.info("CMD %s", _fmt_argv(cmd))
    if dry_run:
        return CmdResult(argv=cmd, returncode=0, stdout="", stderr="")

    try:
        p = subprocess.run(cmd, input=input_text, capture_output=True, text=True)
        result = CmdResult(argv=cmd, returncode=p.returncode, stdout=p.stdout or "", stderr=p.stderr or "")
    except FileNotFoundError as e:
        result = CmdResult(argv=cmd, returncode=127, stdout="", stderr=str(e))

    for stream, text in (("STDOUT", result.stdout), ("STDERR", result.stderr)):
        if text.strip():
            logger.debug("%s %s", stream, text.strip())

    if check and not result.ok:
        raise CommandError(cmd, result.returncode, result.stderr)
    return result


def with_backoff(
    fn: Callable[[], T],
    tries: int = 3,
    base: float = 0.5,
    max_delay: float = 8.0,
    retry_on: tuple[type[BaseException], ...] = (CommandError,),
) -> T:
    """Call ``fn`` up to ``tries`` times, sleeping with exponential backoff.

    Only for transient, repeatable operations (downloads, rule adds). Never
    wrap one-way state changes such as account lockout in this.
    """

    attempts = max(1, tries)
    attempt, delay = 1, base
    while True:
        try:
            return fn()
        except retry_on as e:
            if attempt >= attempts:
                raise
            logger.warning("Attempt %d/%d failed, retrying in %.1fs: %s", attempt, attempts, delay, e)
            time.sleep(delay)
            attempt, delay = attempt + 1, min(max_delay, delay * 2)
