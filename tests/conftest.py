from __future__ import annotations

import io
import subprocess
from typing import Dict, Iterable, List, Optional, Sequence

import pytest

from proxy_appliance.appliance_config import ApplianceConfig
from proxy_appliance.console import Console
from proxy_appliance.lib import command

VALID_PSK = "0123456789abcdef0123456789abcdef"
VALID_DB_PASSWORD = "correct-horse-battery"


class FakeRun:
    """Stands in for ``subprocess.run``; records argv and stdin per call."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []
        self._rules: List[Dict] = []

    def respond(
        self,
        prefix: Sequence[str],
        *,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        times: Optional[int] = None,
    ) -> None:
        """Answer commands starting with ``prefix``. Later rules win."""
        self._rules.insert(
            0,
            {"prefix": list(prefix), "rc": returncode, "stdout": stdout, "stderr": stderr, "times": times},
        )

    def __call__(self, argv, input=None, **kwargs):
        argv = list(argv)
        self.calls.append(argv)
        self.inputs.append(input)
        for rule in self._rules:
            if argv[: len(rule["prefix"])] != rule["prefix"]:
                continue
            if rule["times"] is not None:
                if rule["times"] <= 0:
                    continue
                rule["times"] -= 1
            return subprocess.CompletedProcess(argv, rule["rc"], rule["stdout"], rule["stderr"])
        return subprocess.CompletedProcess(argv, 0, "", "")

    def commands(self, *prefix: str) -> List[List[str]]:
        return [c for c in self.calls if c[: len(prefix)] == list(prefix)]

    def index(self, *prefix: str) -> int:
        for i, c in enumerate(self.calls):
            if c[: len(prefix)] == list(prefix):
                return i
        raise AssertionError(f"{' '.join(prefix)} was never run")


@pytest.fixture(autouse=True)
def fake_run(monkeypatch) -> FakeRun:
    fake = FakeRun()
    monkeypatch.setattr(command.subprocess, "run", fake)
    monkeypatch.setattr(command.time, "sleep", lambda s: None)
    return fake


class ScriptedConsole(Console):
    def __init__(self, answers: Iterable[str] = (), secrets: Iterable[str] = ()) -> None:
        self.answers = list(answers)
        self.secrets = list(secrets)
        self.buffer = io.StringIO()
        super().__init__(input_fn=self._next_answer, secret_fn=self._next_secret, out=self.buffer)

    def _next_answer(self, prompt: str) -> str:
        if not self.answers:
            raise AssertionError(f"unexpected prompt: {prompt}")
        return self.answers.pop(0)

    def _next_secret(self, prompt: str) -> str:
        if not self.secrets:
            raise AssertionError(f"unexpected secret prompt: {prompt}")
        return self.secrets.pop(0)

    @property
    def text(self) -> str:
        return self.buffer.getvalue()


def operator_session(proxy_name: str = "proxy-01") -> ScriptedConsole:
    """A console that answers one full, valid parameter round and confirms."""
    return ScriptedConsole(
        answers=["ntp.example.net", proxy_name, "10.1.2.3", "zabbix", "y"],
        secrets=[VALID_PSK, VALID_PSK, VALID_DB_PASSWORD, VALID_DB_PASSWORD],
    )


@pytest.fixture
def console() -> ScriptedConsole:
    return ScriptedConsole()


@pytest.fixture
def cfg(tmp_path) -> ApplianceConfig:
    return ApplianceConfig(
        raw={
            "paths": {"sysroot": str(tmp_path)},
            "retry": {"tries": 3, "base_delay": 0},
            "system": {"configure_dhcp": False},
        }
    )
