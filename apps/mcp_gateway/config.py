"""Gateway settings resolved from defaults, a YAML file, the environment and CLI flags."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

__all__ = ["ConfigurationError", "GatewaySettings", "load_settings"]

LOGGER = logging.getLogger("mcp_gateway.config")

_LOCAL_PORT = 3000
_HOSTED_PORT = 8080
_HOSTED_MARKER = "WEBSITE_SITE_NAME"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "WARN", "ERROR", "CRITICAL")


class ConfigurationError(ValueError):
    """Raised when gateway settings are missing or malformed."""


@dataclass(frozen=True, slots=True)
class GatewaySettings:
    """Immutable runtime configuration for one gateway process."""

    host: str = "0.0.0.0"
    port: int = _LOCAL_PORT
    confluence_base_url: str | None = None
    confluence_email: str | None = None
    confluence_api_token: str | None = None
    upstream_timeout_seconds: float = 30.0
    allowed_origins: tuple[str, ...] = ()
    session_ttl_seconds: float = 3600.0
    max_body_bytes: int = 1_048_576
    sse_keepalive_seconds: float = 0.0
    tools: tuple[str, ...] | None = None
    log_dir: Path | None = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"port must be between 1 and 65535, got {self.port}")
        if self.upstream_timeout_seconds <= 0:
            raise ConfigurationError("upstream_timeout_seconds must be positive")
        if self.session_ttl_seconds < 0:
            raise ConfigurationError("session_ttl_seconds must be zero or positive")
        if self.max_body_bytes <= 0:
            raise ConfigurationError("max_body_bytes must be a positive integer")
        if self.sse_keepalive_seconds < 0:
            raise ConfigurationError("sse_keepalive_seconds must be zero or positive")
        level = self.log_level.upper()
        if level not in _LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level '{self.log_level}'")
        object.__setattr__(self, "log_level", "WARNING" if level == "WARN" else level)

    @property
    def has_confluence_credentials(self) -> bool:
        return bool(
            self.confluence_base_url and self.confluence_email and self.confluence_api_token
        )

    def missing_confluence_settings(self) -> list[str]:
        """Names of the environment variables still needed to reach Confluence."""

        missing = []
        if not self.confluence_base_url:
            missing.append("CONFLUENCE_BASE_URL")
        if not self.confluence_email:
            missing.append("CONFLUENCE_EMAIL")
        if not self.confluence_api_token:
            missing.append("CONFLUENCE_API_TOKEN")
        return missing


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _str_list(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        raise ConfigurationError(f"Expected a list or comma-separated string, got {value!r}")
    return tuple(item.strip() for item in items if item.strip())


def _optional_str_list(value: Any) -> tuple[str, ...] | None:
    items = _str_list(value)
    return items or None


def _integer(value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"Expected an integer, got {value!r}")
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ConfigurationError(f"Expected an integer, got {value!r}") from exc


def _number(value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"Expected a number, got {value!r}")
    try:
        return float(str(value).strip())
    except ValueError as exc:
        raise ConfigurationError(f"Expected a number, got {value!r}") from exc


def _path(value: Any) -> Path | None:
    text = _optional_str(value)
    return Path(text) if text else None


_COERCERS: dict[str, Callable[[Any], Any]] = {
    "host": lambda value: _optional_str(value) or "0.0.0.0",
    "port": _integer,
    "confluence_base_url": _optional_str,
    "confluence_email": _optional_str,
    "confluence_api_token": _optional_str,
    "upstream_timeout_seconds": _number,
    "allowed_origins": _str_list,
    "session_ttl_seconds": _number,
    "max_body_bytes": _integer,
    "sse_keepalive_seconds": _number,
    "tools": _optional_str_list,
    "log_dir": _path,
    "log_level": lambda value: str(value).strip(),
}

_ENV_VARS: dict[str, str] = {
    "host": "MCP_HOST",
    "confluence_base_url": "CONFLUENCE_BASE_URL",
    "confluence_email": "CONFLUENCE_EMAIL",
    "confluence_api_token": "CONFLUENCE_API_TOKEN",
    "upstream_timeout_seconds": "CONFLUENCE_TIMEOUT_SECONDS",
    "allowed_origins": "ALLOWED_ORIGINS",
    "session_ttl_seconds": "MCP_SESSION_TTL_SECONDS",
    "max_body_bytes": "MCP_MAX_BODY_BYTES",
    "sse_keepalive_seconds": "MCP_SSE_KEEPALIVE_SECONDS",
    "tools": "MCP_TOOLS",
    "log_dir": "MCP_LOG_DIR",
    "log_level": "MCP_LOG_LEVEL",
}


def _coerce(name: str, value: Any, *, source: str) -> Any:
    try:
        return _COERCERS[name](value)
    except ConfigurationError as exc:
        raise ConfigurationError(f"{source}: invalid value for '{name}': {exc}") from exc


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        try:
            document = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Failed to parse YAML in {path}: {exc}") from exc
    if not isinstance(document, Mapping):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    known = {spec.name for spec in fields(GatewaySettings)}
    values: dict[str, Any] = {}
    for key, raw in document.items():
        name = str(key).replace("-", "_")
        if name not in known:
            raise ConfigurationError(f"{path}: unknown setting '{key}'")
        values[name] = _coerce(name, raw, source=str(path))
    return values


def _env_port(env: Mapping[str, str]) -> int | None:
    # Hosting platforms sometimes set PORT to a placeholder such as "not required".
    raw = (env.get("PORT") or "").strip()
    if raw.isdigit():
        return int(raw)
    return None


def _load_env(env: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for name, variable in _ENV_VARS.items():
        raw = env.get(variable)
        if raw is None or not raw.strip():
            continue
        values[name] = _coerce(name, raw, source=f"${variable}")
    port = _env_port(env)
    if port is not None:
        values["port"] = port
    return values


def load_settings(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> GatewaySettings:
    """Resolve settings; later layers win: defaults, YAML, environment, overrides.

    ``overrides`` holds explicit CLI values; ``None`` entries are ignored.
    """

    environ = os.environ if env is None else env
    default_port = _HOSTED_PORT if environ.get(_HOSTED_MARKER) else _LOCAL_PORT
    values: dict[str, Any] = {"port": default_port}
    if config_path is not None:
        values.update(_load_yaml(Path(config_path)))
    values.update(_load_env(environ))
    for name, raw in (overrides or {}).items():
        if raw is None:
            continue
        if name not in _COERCERS:
            raise ConfigurationError(f"Unknown setting '{name}'")
        values[name] = _coerce(name, raw, source="command line")
    settings = GatewaySettings(**values)
    LOGGER.debug(
        "Resolved settings host=%s port=%s tools=%s credentials=%s",
        settings.host,
        settings.port,
        settings.tools or "all",
        settings.has_confluence_credentials,
    )
    return settings

