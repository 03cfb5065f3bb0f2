"""Configuration loading and validation for mini-accessgate."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from threading import RLock
from typing import Any, List, Mapping, Optional

log = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Configuration error exception

    This exception is raised whenever the configuration
    files are structurally invalid. Single unparsable rule
    entries are not configuration errors, the access checker
    drops them."""


@dataclass(slots=True)
class ListenConfig:
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass(slots=True)
class AdminConfig:
    """Administration interface configuration

    Loopback peers may always use the admin endpoints. ``networks``
    extends that to additional CIDR ranges."""

    networks: List[str] = field(default_factory=list)


@dataclass(slots=True)
class LoggingConfig:
    """Logging configuration

    Specifies the log level, an optional log file, if we should
    run an access log and if rejected peers are logged"""

    level: str = "INFO"
    access_log: bool = True
    log_denials: bool = True
    file: Optional[str] = None


@dataclass(slots=True)
class ReloadConfig:
    """SIGHUP handler

    If enabled the SIGHUP handler rebuilds the access rules from disk"""

    enable_sighup: bool = True


@dataclass(slots=True)
class DaemonConfig:
    listen: ListenConfig = field(default_factory=ListenConfig)
    admin: AdminConfig = field(default_factory=AdminConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    reload: ReloadConfig = field(default_factory=ReloadConfig)


@dataclass(slots=True)
class AccessConfig:
    allow: List[str] = field(default_factory=list)
    deny: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ConfigBundle:
    daemon: DaemonConfig
    access: AccessConfig


def _load_list(value: Any, ctx: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"Expected list for {ctx}")
    return value


def _load_mapping(value: Any, ctx: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected mapping for {ctx}")
    return value


def _load_string_list(value: Any, ctx: str) -> List[str]:
    items = _load_list(value, ctx)
    for item in items:
        if not isinstance(item, str):
            raise ConfigError(f"Expected string entries in {ctx}, got {item!r}")
    return list(items)


def load_access_config(path: Path) -> AccessConfig:
    data = _load_json(path)
    if not isinstance(data, Mapping):
        raise ConfigError("access.json must contain an object")

    return AccessConfig(
        allow=_load_string_list(data.get("allow"), "allow"),
        deny=_load_string_list(data.get("deny"), "deny"),
    )


def load_daemon_config(path: Path) -> DaemonConfig:
    data = _load_json(path)
    if not isinstance(data, Mapping):
        raise ConfigError("daemon.json must contain an object")

    listen_raw = _load_mapping(data.get("listen"), "listen")
    admin_raw = _load_mapping(data.get("admin"), "admin")
    logging_raw = _load_mapping(data.get("logging"), "logging")
    reload_raw = _load_mapping(data.get("reload"), "reload")

    try:
        port = int(listen_raw.get("port", 8080))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid listen.port: {listen_raw.get('port')!r}") from exc

    listen = ListenConfig(
        host=str(listen_raw.get("host", "127.0.0.1")),
        port=port,
    )

    admin = AdminConfig(
        networks=_load_string_list(admin_raw.get("networks"), "admin.networks"),
    )

    logging_cfg = LoggingConfig(
        level=str(logging_raw.get("level", "INFO")),
        access_log=bool(logging_raw.get("access_log", True)),
        log_denials=bool(logging_raw.get("log_denials", True)),
        file=(
            str(logging_raw.get("file"))
            if logging_raw.get("file") is not None
            else None
        ),
    )

    reload_cfg = ReloadConfig(enable_sighup=bool(reload_raw.get("enable_sighup", True)))

    return DaemonConfig(
        listen=listen,
        admin=admin,
        logging=logging_cfg,
        reload=reload_cfg,
    )


def _load_json(path: Path) -> Any:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:
        raise ConfigError(f"Unable to read {path}: {exc}") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc


class ConfigManager:
    """Reads daemon.json and access.json together.

    The lock keeps a SIGHUP reload and an admin reload from interleaving
    their reads of the two files."""

    def __init__(self, daemon_path: Path, access_path: Path):
        self._daemon_path = daemon_path
        self._access_path = access_path
        self._lock = RLock()

    def load(self) -> ConfigBundle:
        with self._lock:
            log.debug("Loading %s and %s", self._daemon_path, self._access_path)
            daemon = load_daemon_config(self._daemon_path)
            access = load_access_config(self._access_path)
            return ConfigBundle(daemon=daemon, access=access)


__all__ = [
    "AccessConfig",
    "AdminConfig",
    "ConfigBundle",
    "ConfigError",
    "ConfigManager",
    "DaemonConfig",
    "ListenConfig",
    "LoggingConfig",
    "ReloadConfig",
    "load_access_config",
    "load_daemon_config",
]
