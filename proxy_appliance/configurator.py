from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Dict, Optional, Tuple

from .appliance_config import ApplianceConfig
from .errors import ConfigurationError
from .lib import net, system
from .lib.conffile import ensure_line, update_config_file
from .lib.database import ensure_database
from .lib.pkg import dnf_install, write_local_repo
from .lib.services import ServiceState, enable_service, restart_service, try_start_service
from .params import ProvisioningParameters

logger = logging.getLogger(__name__)

TLS_HEADER = "# TLS/PSK settings (managed by proxy-appliance)"


def write_secret_file(path: Path, secret: str, *, owner: Optional[str] = None, dry_run: bool = False) -> None:
    """Write ``secret`` readable and writable by its owner only (0600)."""

    if dry_run:
        logger.info("Would write secret file %s (0600)", str(path))
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    # O_CREAT's mode is ignored for an existing file; tighten before writing.
    os.fchmod(fd, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(secret + "\n")
    if owner:
        try:
            shutil.chown(str(path), user=owner, group=owner)
        except (LookupError, PermissionError) as e:
            logger.warning("Could not hand %s to %s: %s", str(path), owner, e)
    logger.info("Wrote secret file %s (0600)", str(path))


def agent_settings(cfg: ApplianceConfig, params: ProvisioningParameters) -> Tuple[Dict[str, str], Dict[str, str]]:
    """The agent config keys we own: (replaced in place, TLS block)."""

    core = {
        "Server": params.server_address,
        "Hostname": params.proxy_name,
        "DBName": params.db_name,
        "DBUser": params.db_user,
        "DBPassword": params.db_password,
    }
    tls = {
        "TLSPSKFile": cfg.psk_file,
        "TLSPSKIdentity": params.psk_identity,
        "TLSConnect": "psk",
        "TLSAccept": "psk",
    }
    return core, tls


def configure_agent(cfg: ApplianceConfig, params: ProvisioningParameters, *, dry_run: bool = False) -> bool:
    conf = cfg.host_path(cfg.agent_conf)
    if not conf.exists() and not dry_run:
        raise ConfigurationError(f"{cfg.agent_conf} not found; was the agent package installed?")
    core, tls = agent_settings(cfg, params)
    changed = update_config_file(conf, core, dry_run=dry_run)
    changed = update_config_file(conf, tls, header=TLS_HEADER, dry_run=dry_run) or changed
    return changed


def configure_time_server(cfg: ApplianceConfig, time_server: str, *, dry_run: bool = False) -> None:
    if ensure_line(cfg.host_path(cfg.chrony_conf), f"server {time_server} iburst", dry_run=dry_run):
        restart_service("chronyd", dry_run=dry_run)


def configure_packages(
    cfg: ApplianceConfig,
    params: ProvisioningParameters,
    *,
    dry_run: bool = False,
) -> Dict[str, ServiceState]:
    """Install and configure the database and agent. Every action is repeatable."""

    services: Dict[str, ServiceState] = {}

    baseurl = cfg.local_repo_baseurl
    if baseurl:
        write_local_repo(cfg.host_path(cfg.repo_file), name="zabbix-local", baseurl=baseurl, dry_run=dry_run)

    for name in cfg.core_services:
        services[name] = enable_service(name, dry_run=dry_run)

    system.set_locale(cfg.locale, cfg.keymap, dry_run=dry_run)
    system.set_timezone(cfg.timezone, dry_run=dry_run)
    system.set_hostname(params.proxy_name, dry_run=dry_run)

    if cfg.configure_dhcp:
        ifaces = net.list_interfaces(str(cfg.host_path("/sys/class/net")))
        net.configure_dhcp(ifaces, dry_run=dry_run)

    dnf_install(cfg.packages, tries=cfg.retry_tries, base_delay=cfg.retry_base_delay, dry_run=dry_run)

    configure_time_server(cfg, params.time_server, dry_run=dry_run)

    services[cfg.database_service] = enable_service(cfg.database_service, dry_run=dry_run)
    ensure_database(params.db_name, params.db_user, params.db_password, dry_run=dry_run)

    write_secret_file(cfg.host_path(cfg.psk_file), params.psk, owner=cfg.agent_user, dry_run=dry_run)
    configure_agent(cfg, params, dry_run=dry_run)

    services[cfg.agent_service] = try_start_service(cfg.agent_service, dry_run=dry_run)

    logger.info("Configured services: %s", ", ".join(sorted(services)))
    return services
