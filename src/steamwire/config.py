"""Configuration loading for the query and RCON clients."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from steamwire.errors import ConfigError

CONFIG_DIR = Path.home() / ".config" / "steamwire"
CONFIG_FILE = CONFIG_DIR / "config.toml"
HISTORY_FILE = CONFIG_DIR / "history"

DEFAULT_PORT = 27015
DEFAULT_TIMEOUT_MS = 1000


@dataclass(frozen=True)
class ServerConfig:
    """Configuration for a single game server."""

    name: str
    host: str
    port: int = DEFAULT_PORT
    rcon_port: int | None = None
    password: str | None = None

    @property
    def effective_rcon_port(self) -> int:
        """RCON listens on the query port unless configured otherwise."""
        return self.rcon_port if self.rcon_port is not None else self.port


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    default_server: str | None = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    servers: dict[str, ServerConfig] = field(default_factory=dict)


def load_config(path: Path = CONFIG_FILE) -> AppConfig:
    """Load and parse the configuration file.

    Returns an empty configuration if no config file exists.
    """
    if not path.exists():
        return AppConfig()

    try:
        with path.open("rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid config file {path}: {e}"
        raise ConfigError(msg) from e

    defaults = raw.get("defaults", {})
    timeout_ms = _parse_int(defaults, "timeout_ms", DEFAULT_TIMEOUT_MS, "defaults")

    servers: dict[str, ServerConfig] = {}
    for key, val in raw.get("servers", {}).items():
        if "host" not in val:
            msg = f"Server '{key}' has no host"
            raise ConfigError(msg)
        where = f"servers.{key}"
        port = _parse_int(val, "port", DEFAULT_PORT, where)
        servers[key] = ServerConfig(
            name=val.get("name", key),
            host=val["host"],
            port=port,
            rcon_port=_parse_int(val, "rcon_port", None, where),
            password=val.get("password"),
        )

    return AppConfig(
        default_server=defaults.get("server"),
        timeout_ms=timeout_ms,
        servers=servers,
    )


def _parse_int(section: dict, key: str, default: int | None, where: str) -> int | None:
    """Read an integer option, rejecting values of any other type."""
    value = section.get(key, default)
    if value is not None and (not isinstance(value, int) or isinstance(value, bool)):
        msg = f"'{key}' in [{where}] must be an integer, got {value!r}"
        raise ConfigError(msg)
    return value


def ensure_config_dir() -> None:
    """Create the config directory if it does not exist."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
