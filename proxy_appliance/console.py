from __future__ import annotations

import getpass
import sys
from typing import Callable, Optional, TextIO


class Console:
    """Operator-facing terminal I/O.

    Kept apart from logging: what is printed here (notably the generated
    account password) is for the operator's eyes and is never logged.
    Prompts block indefinitely; there is no unattended default.
    """

    def __init__(
        self,
        *,
        input_fn: Callable[[str], str] = input,
        secret_fn: Callable[[str], str] = getpass.getpass,
        out: Optional[TextIO] = None,
    ) -> None:
        self._input = input_fn
        self._secret = secret_fn
        self._out = out

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    def echo(self, text: str = "") -> None:
        self.out.write(text + "\n")
        self.out.flush()

    def status(self, text: str) -> None:
        self.echo(f"[*] {text}")

    def error(self, text: str) -> None:
        self.echo(f"[!] {text}")

    def prompt(self, text: str) -> str:
        return self._input(text).strip()

    def prompt_secret(self, text: str) -> str:
        # Secrets are taken verbatim; stripping would silently change length.
        return self._secret(text)

    def confirm(self, text: str) -> bool:
        return self.prompt(f"{text} [y/N]: ").lower() in {"y", "yes"}
