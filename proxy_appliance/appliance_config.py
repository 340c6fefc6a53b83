from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

DEFAULT_CONFIG_PATH = "/etc/proxy-appliance/appliance.yaml"

RFC1918_NETWORKS = ["10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"]


@dataclass(frozen=True)
class ApplianceConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    def _section(self, name: str) -> Dict[str, Any]:
        sec = self.raw.get(name) or {}
        if not isinstance(sec, dict):
            raise ValueError(f"appliance config: {name} must be a mapping")
        return sec

    def _list(self, section: str, key: str, default: List[Any]) -> List[Any]:
        value = self._section(section).get(key)
        if value is None:
            return list(default)
        if not isinstance(value, list):
            raise ValueError(f"appliance config: {section}.{key} must be a list")
        return list(value)

    # --- paths ---------------------------------------------------------

    @property
    def sysroot(self) -> str:
        return str(self._section("paths").get("sysroot") or "/")

    def host_path(self, path: str) -> Path:
        """Map an absolute target path onto the sysroot used for file I/O."""
        return Path(self.sysroot) / str(path).lstrip("/")

    @property
    def data_dir(self) -> str:
        return str(self._section("paths").get("data_dir") or "/data")

    @property
    def log_dir(self) -> str:
        return str(self._section("paths").get("log_dir") or "/var/log")

    @property
    def data_log_dir(self) -> str:
        return str(self._section("paths").get("data_log_dir") or f"{self.data_dir}/logs")

    @property
    def data_subdirs(self) -> List[str]:
        return [str(d) for d in self._list("paths", "data_subdirs", ["logs", "zabbix", "zabbix-pkgs"])]

    @property
    def fstab(self) -> str:
        return str(self._section("paths").get("fstab") or "/etc/fstab")

    @property
    def agent_conf(self) -> str:
        return str(self._section("paths").get("agent_conf") or "/etc/zabbix/zabbix_proxy.conf")

    @property
    def psk_file(self) -> str:
        return str(self._section("paths").get("psk_file") or "/etc/zabbix/zabbix_proxy.psk")

    @property
    def chrony_conf(self) -> str:
        return str(self._section("paths").get("chrony_conf") or "/etc/chrony.conf")

    @property
    def journald_conf(self) -> str:
        return str(self._section("paths").get("journald_conf") or "/etc/systemd/journald.conf")

    @property
    def repo_file(self) -> str:
        return str(self._section("paths").get("repo_file") or "/etc/yum.repos.d/zabbix-local.repo")

    @property
    def state_path(self) -> str:
        return str(self._section("paths").get("state") or "/var/lib/proxy-appliance/state.json")

    @property
    def marker_path(self) -> str:
        return str(self._section("paths").get("marker") or "/var/lib/proxy-appliance/firstboot.done")

    @property
    def log_file(self) -> str:
        return str(self._section("paths").get("log_file") or "/var/log/proxy-appliance-firstboot.log")

    @property
    def firstboot_hooks(self) -> List[str]:
        return [str(p) for p in self._list("paths", "firstboot_hooks", ["/etc/rc.d/rc.local"])]

    @property
    def script_path(self) -> Optional[str]:
        value = self._section("paths").get("script")
        return str(value) if value else None

    # --- disk ----------------------------------------------------------

    @property
    def reserved_system_mib(self) -> int:
        return int(self._section("disk").get("reserved_system_mib", 4096))

    @property
    def min_data_mib(self) -> int:
        return int(self._section("disk").get("min_data_mib", 92160))

    @property
    def data_warn_gib(self) -> int:
        return int(self._section("disk").get("data_warn_gib", 85))

    # --- packages & services ------------------------------------------

    @property
    def packages(self) -> List[str]:
        return [
            str(p)
            for p in self._list(
                "packages",
                "install",
                ["zabbix-proxy-mysql", "zabbix-selinux-policy", "mysql-server", "acl"],
            )
        ]

    @property
    def local_repo_baseurl(self) -> Optional[str]:
        value = self._section("packages").get("local_repo")
        if value is None:
            return f"file://{self.data_dir}/zabbix-pkgs"
        return str(value) or None

    @property
    def core_services(self) -> List[str]:
        return [str(s) for s in self._list("services", "core", ["NetworkManager", "chronyd", "firewalld"])]

    @property
    def database_service(self) -> str:
        return str(self._section("services").get("database") or "mysqld")

    @property
    def agent_service(self) -> str:
        return str(self._section("services").get("agent") or "zabbix-proxy")

    @property
    def agent_user(self) -> str:
        return str(self._section("services").get("agent_user") or "zabbix")

    @property
    def disabled_services(self) -> List[str]:
        return [
            str(s)
            for s in self._list(
                "services",
                "disable",
                ["sshd", "cups", "ModemManager", "bluetooth", "avahi-daemon"],
            )
        ]

    # --- database -------------------------------------------------------

    @property
    def db_name(self) -> str:
        return str(self._section("database").get("name") or "zabbix_proxy")

    # --- firewall -------------------------------------------------------

    @property
    def firewall(self) -> Dict[str, Any]:
        sec = self._section("firewall")
        return {
            "default_zone": str(sec.get("default_zone") or "drop"),
            "trusted_zone": str(sec.get("trusted_zone") or "proxy-inbound"),
            "private_sources": [str(n) for n in self._list("firewall", "private_sources", RFC1918_NETWORKS)],
            "inbound_services": [str(s) for s in self._list("firewall", "inbound_services", ["http", "https"])],
            "inbound_ports": [str(p) for p in self._list("firewall", "inbound_ports", ["10051/tcp"])],
            "egress_exceptions": [str(n) for n in self._list("firewall", "egress_exceptions", [])],
        }

    # --- accounts -------------------------------------------------------

    @property
    def restricted_account(self) -> str:
        return str(self._section("account").get("name") or "zabbixlog")

    @property
    def privileged_account(self) -> str:
        return str(self._section("account").get("privileged") or "root")

    @property
    def nologin_shell(self) -> str:
        return str(self._section("account").get("nologin_shell") or "/sbin/nologin")

    # --- system ---------------------------------------------------------

    @property
    def locale(self) -> str:
        return str(self._section("system").get("locale") or "en_US.UTF-8")

    @property
    def keymap(self) -> str:
        return str(self._section("system").get("keymap") or "us")

    @property
    def timezone(self) -> str:
        return str(self._section("system").get("timezone") or "UTC")

    @property
    def configure_dhcp(self) -> bool:
        return bool(self._section("system").get("configure_dhcp", True))

    # --- report / retry -------------------------------------------------

    @property
    def ticket_contact(self) -> str:
        return str(self._section("report").get("ticket_contact") or "the network administration team")

    @property
    def retry_tries(self) -> int:
        return int(self._section("retry").get("tries", 3))

    @property
    def retry_base_delay(self) -> float:
        return float(self._section("retry").get("base_delay", 2.0))


def load_appliance_config(path: Optional[str]) -> ApplianceConfig:
    """Load the appliance YAML config; ``None`` means built-in defaults."""

    if path is None:
        return ApplianceConfig(raw={})

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("appliance config must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError("appliance config must contain a mapping/object")

    return ApplianceConfig(raw=raw)
