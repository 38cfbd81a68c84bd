"""Configuration loader for sweep."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DIRECTORY_BACKENDS = ("none", "inventory", "ldap")
PROBE_METHODS = ("ping", "tcp")


@dataclass
class Defaults:
    """Engine defaults that a single call may override."""

    probe_method: str = "ping"
    probe_count: int = 1
    probe_timeout: float = 2.0
    probe_port: int = 22
    host_timeout: float = 120.0
    max_workers: int = 32
    table_threshold: int = 25


@dataclass
class SSHConfig:
    """Connection settings for remote sessions."""

    user: str = "root"
    port: int = 22
    ssh_key: Path = field(default_factory=lambda: Path("~/.ssh/id_rsa").expanduser())
    connect_timeout: float = 10.0
    known_hosts: str | None = None


@dataclass
class DirectoryConfig:
    """Directory service used to expand host prefixes."""

    backend: str = "none"
    inventory: Path | None = None
    server: str | None = None
    base_dn: str | None = None
    user: str | None = None
    password_env: str = "SWEEP_LDAP_PASSWORD"
    use_ssl: bool = True
    timeout: float = 10.0


@dataclass
class EngineConfig:
    """Main configuration for the engine."""

    defaults: Defaults = field(default_factory=Defaults)
    ssh: SSHConfig = field(default_factory=SSHConfig)
    directory: DirectoryConfig = field(default_factory=DirectoryConfig)
    report_root: Path = field(default_factory=lambda: Path("reports"))
    source_path: Path | None = None  # Path to the original config file


def load_config(config_path: str | Path) -> EngineConfig:
    """Load and validate configuration from a YAML file."""
    config_path = Path(config_path).expanduser().resolve()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    config = _parse_config(raw, config_path.parent)
    config.source_path = config_path
    return config


def _parse_config(raw: dict[str, Any], base_dir: Path) -> EngineConfig:
    """Parse raw YAML data into EngineConfig object."""
    report_root = Path(raw.get("report_root", "reports")).expanduser()
    if not report_root.is_absolute():
        report_root = base_dir / report_root

    return EngineConfig(
        defaults=_parse_defaults(_section(raw, "defaults")),
        ssh=_parse_ssh(_section(raw, "ssh")),
        directory=_parse_directory(_section(raw, "directory"), base_dir),
        report_root=report_root,
    )


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return value


def _parse_defaults(raw: dict[str, Any]) -> Defaults:
    """Parse the defaults section."""
    base = Defaults()
    defaults = Defaults(
        probe_method=str(raw.get("probe_method", base.probe_method)).lower(),
        probe_count=int(raw.get("probe_count", base.probe_count)),
        probe_timeout=float(raw.get("probe_timeout", base.probe_timeout)),
        probe_port=int(raw.get("probe_port", base.probe_port)),
        host_timeout=float(raw.get("host_timeout", base.host_timeout)),
        max_workers=int(raw.get("max_workers", base.max_workers)),
        table_threshold=int(raw.get("table_threshold", base.table_threshold)),
    )

    if defaults.probe_method not in PROBE_METHODS:
        raise ValueError(
            f"Unknown probe_method '{defaults.probe_method}' "
            f"(expected one of: {', '.join(PROBE_METHODS)})"
        )
    for name in ("probe_count", "probe_timeout", "host_timeout", "max_workers"):
        if getattr(defaults, name) <= 0:
            raise ValueError(f"'{name}' must be greater than zero")
    if defaults.table_threshold < 0:
        raise ValueError("'table_threshold' must not be negative")

    return defaults


def _parse_ssh(raw: dict[str, Any]) -> SSHConfig:
    """Parse the ssh section."""
    base = SSHConfig()
    ssh_key = base.ssh_key
    if "ssh_key" in raw:
        ssh_key = Path(raw["ssh_key"]).expanduser()
    return SSHConfig(
        user=raw.get("user", base.user),
        port=int(raw.get("port", base.port)),
        ssh_key=ssh_key,
        connect_timeout=float(raw.get("connect_timeout", base.connect_timeout)),
        known_hosts=raw.get("known_hosts"),
    )


def _parse_directory(raw: dict[str, Any], base_dir: Path) -> DirectoryConfig:
    """Parse the directory section."""
    backend = str(raw.get("backend", "none")).lower()
    if backend not in DIRECTORY_BACKENDS:
        raise ValueError(
            f"Unknown directory backend '{backend}' "
            f"(expected one of: {', '.join(DIRECTORY_BACKENDS)})"
        )

    inventory = None
    if raw.get("inventory"):
        inventory = Path(raw["inventory"]).expanduser()
        if not inventory.is_absolute():
            inventory = base_dir / inventory

    directory = DirectoryConfig(
        backend=backend,
        inventory=inventory,
        server=raw.get("server"),
        base_dn=raw.get("base_dn"),
        user=raw.get("user"),
        password_env=raw.get("password_env", "SWEEP_LDAP_PASSWORD"),
        use_ssl=bool(raw.get("use_ssl", True)),
        timeout=float(raw.get("timeout", 10.0)),
    )

    if backend == "inventory" and directory.inventory is None:
        raise ValueError("Directory backend 'inventory' requires an 'inventory' path")
    if backend == "ldap" and not (directory.server and directory.base_dn):
        raise ValueError("Directory backend 'ldap' requires 'server' and 'base_dn'")

    return directory
