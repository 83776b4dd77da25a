from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from quote_sidecar.exceptions import ConfigError

# QUOTE_SIDECAR_SERVER__PORT -> server.port
ENV_PREFIX = "QUOTE_SIDECAR"
PREFIX_SEPARATOR = "_"
NESTING_SEPARATOR = "__"

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 9999
DEFAULT_SHUTDOWN_TIMEOUT_SEC = 60.0

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def env_name(key: str) -> str:
    parts = [part.upper() for part in key.split(".")]
    return f"{ENV_PREFIX}{PREFIX_SEPARATOR}{NESTING_SEPARATOR.join(parts)}"


class _Env:
    def __init__(self, environ: Mapping[str, str]) -> None:
        prefix = f"{ENV_PREFIX}{PREFIX_SEPARATOR}"
        self._values = {
            name.upper(): value for name, value in environ.items() if name.upper().startswith(prefix)
        }

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._values.get(env_name(key))
        if value is None or value == "":
            return default
        return value

    def get_int(self, key: str, default: int, minimum: int, maximum: int) -> int:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            value = int(raw.strip())
        except ValueError:
            raise ConfigError(f"{env_name(key)} must be an integer, got {raw!r}", env_name(key), raw)
        if not minimum <= value <= maximum:
            raise ConfigError(
                f"{env_name(key)} must be between {minimum} and {maximum}, got {raw!r}", env_name(key), raw
            )
        return value

    def get_float(self, key: str, default: Optional[float], allow_zero: bool = True) -> Optional[float]:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            value = float(raw.strip())
        except ValueError:
            raise ConfigError(f"{env_name(key)} must be a number, got {raw!r}", env_name(key), raw)
        if value != value or value < 0 or (value == 0 and not allow_zero):
            bound = "non-negative" if allow_zero else "positive"
            raise ConfigError(f"{env_name(key)} must be {bound}, got {raw!r}", env_name(key), raw)
        return value

    def get_bool(self, key: str, default: bool = False) -> bool:
        raw = self.get(key)
        if raw is None:
            return default
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigError(f"{env_name(key)} must be a boolean, got {raw!r}", env_name(key), raw)


@dataclass(frozen=True)
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT_SEC


@dataclass(frozen=True)
class ClientConfig:
    endpoint: Optional[str] = None
    """guest-agent socket path or URL; None uses the SDK default."""

    timeout: Optional[float] = None
    """Deadline for each client call in seconds; None waits forever."""


@dataclass(frozen=True)
class LogConfig:
    debug: bool = False


@dataclass(frozen=True)
class Config:
    server: ServerConfig = field(default_factory=ServerConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    log: LogConfig = field(default_factory=LogConfig)

    @property
    def bind_addr(self) -> str:
        return f"{self.server.host}:{self.server.port}"


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Build the sidecar configuration from QUOTE_SIDECAR_* variables.

    Unset or empty variables fall back to their defaults.

    Raises:
        ConfigError: A variable is set to a value of the wrong type.
    """
    values = _Env(os.environ if environ is None else environ)
    server = ServerConfig(
        host=values.get("server.host", DEFAULT_HOST),
        port=values.get_int("server.port", DEFAULT_PORT, 0, 65535),
        shutdown_timeout=values.get_float("server.shutdown_timeout", DEFAULT_SHUTDOWN_TIMEOUT_SEC),
    )
    client = ClientConfig(
        endpoint=values.get("client.endpoint"),
        timeout=values.get_float("client.timeout", None, allow_zero=False),
    )
    return Config(server=server, client=client, log=LogConfig(debug=values.get_bool("log.debug")))
