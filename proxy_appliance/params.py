"""Operator-supplied provisioning parameters.

Validators are pure ``(ok, reason)`` functions; ``collect_parameters`` drives
them from an endless prompt loop. Nothing is written to disk here: the caller
receives a complete, validated ``ProvisioningParameters`` or nothing at all.
"""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .console import Console

logger = logging.getLogger(__name__)

PSK_LENGTH = 32
MIN_DB_PASSWORD_LENGTH = 12

_LABEL_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?$")
_DB_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,31}$")

Check = Tuple[bool, str]


@dataclass(frozen=True)
class ProvisioningParameters:
    time_server: str
    proxy_name: str
    server_address: str
    psk: str
    db_name: str
    db_user: str
    db_password: str

    @property
    def psk_identity(self) -> str:
        return f"{self.proxy_name}.proxy"

    def __repr__(self) -> str:
        return (
            "ProvisioningParameters("
            f"time_server={self.time_server!r}, proxy_name={self.proxy_name!r}, "
            f"server_address={self.server_address!r}, psk='***', db_name={self.db_name!r}, "
            f"db_user={self.db_user!r}, db_password='***')"
        )

    __str__ = __repr__


def validate_hostname(value: str) -> Check:
    if not value:
        return False, "must not be empty"
    if len(value) > 253:
        return False, "must be at most 253 characters"
    if value.startswith("-") or value.endswith("-"):
        return False, "must not start or end with a hyphen"
    for label in value.split("."):
        if not label:
            return False, "must not contain empty labels (leading, trailing or double dots)"
        if not _LABEL_RE.match(label):
            return False, "use only letters, digits, dots and hyphens; labels may not start or end with a hyphen"
    return True, ""


def validate_address(value: str) -> Check:
    """Hostname, IPv4 or IPv6 literal (brackets around IPv6 are accepted)."""

    if not value:
        return False, "must not be empty"
    try:
        ipaddress.ip_address(normalize_address(value))
        return True, ""
    except ValueError:
        pass
    if re.fullmatch(r"[0-9.]+", value):
        return False, "not a valid IPv4 address"
    return validate_hostname(value)


def normalize_address(value: str) -> str:
    """Drop URL-style brackets; chrony.conf and the agent config want a bare literal."""

    if value.startswith("[") and value.endswith("]"):
        return value[1:-1]
    return value


def validate_psk(psk: str, confirm: str) -> Check:
    if psk != confirm:
        return False, "PSK entries do not match"
    if len(psk) != PSK_LENGTH:
        return False, f"PSK must be exactly {PSK_LENGTH} characters (got {len(psk)})"
    return True, ""


def validate_db_identifier(value: str) -> Check:
    if not _DB_IDENT_RE.match(value or ""):
        return False, "use 1-32 letters, digits or underscores, not starting with a digit"
    return True, ""


def validate_db_password(password: str, confirm: str) -> Check:
    if password != confirm:
        return False, "passwords do not match"
    if len(password) < MIN_DB_PASSWORD_LENGTH:
        return False, f"password must be at least {MIN_DB_PASSWORD_LENGTH} characters"
    if any(c.isspace() for c in password):
        return False, "password must not contain whitespace"
    return True, ""


def _ask(
    console: Console,
    label: str,
    validator: Callable[[str], Check],
    normalize: Optional[Callable[[str], str]] = None,
) -> str:
    while True:
        value = console.prompt(f"{label}: ")
        ok, reason = validator(value)
        if ok:
            if normalize is not None:
                value = normalize(value)
            console.echo(f"    {label}: {value}")
            return value
        console.error(f"Invalid {label.lower()}: {reason}; retry.")


def _ask_secret_pair(
    console: Console,
    label: str,
    validator: Callable[[str, str], Check],
) -> str:
    while True:
        first = console.prompt_secret(f"{label}: ")
        second = console.prompt_secret(f"Confirm {label}: ")
        ok, reason = validator(first, second)
        if ok:
            console.echo(f"    {label} accepted ({len(first)} characters)")
            return first
        console.error(f"{reason}; retry.")


def collect_parameters(console: Console, *, db_name: str) -> ProvisioningParameters:
    """Prompt until every value is valid and the operator confirms the set."""

    while True:
        console.echo()
        console.status("Provisioning parameters")
        time_server = _ask(console, "Time server", validate_address, normalize_address)
        proxy_name = _ask(console, "Proxy hostname", validate_hostname)
        server_address = _ask(console, "Upstream server address", validate_address, normalize_address)
        psk = _ask_secret_pair(console, f"{PSK_LENGTH}-character PSK", validate_psk)
        db_user = _ask(console, "Database user", validate_db_identifier)
        db_password = _ask_secret_pair(console, "Database password", validate_db_password)

        params = ProvisioningParameters(
            time_server=time_server,
            proxy_name=proxy_name,
            server_address=server_address,
            psk=psk,
            db_name=db_name,
            db_user=db_user,
            db_password=db_password,
        )

        console.echo()
        console.echo("Summary:")
        console.echo(f"    Time server:      {params.time_server}")
        console.echo(f"    Proxy hostname:   {params.proxy_name}")
        console.echo(f"    PSK identity:     {params.psk_identity}")
        console.echo(f"    Upstream server:  {params.server_address}")
        console.echo(f"    Database:         {params.db_name} (user {params.db_user})")
        if console.confirm("Proceed with these values?"):
            logger.info("Parameters accepted: %r", params)
            return params
        console.status("Starting over")
