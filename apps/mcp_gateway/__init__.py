"""Confluence MCP gateway package (lazy exports)."""
from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING

__all__ = ["GatewaySettings", "create_app", "load_settings", "main"]

_EXPORT_MAP = {
    "GatewaySettings": "apps.mcp_gateway.config",
    "load_settings": "apps.mcp_gateway.config",
    "create_app": "apps.mcp_gateway.http.main",
    "main": "apps.mcp_gateway.cli",
}

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from .cli import main
    from .config import GatewaySettings, load_settings
    from .http.main import create_app


def __getattr__(name: str):  # pragma: no cover - thin loader
    if name not in _EXPORT_MAP:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(_EXPORT_MAP[name])
    value = getattr(module, name)
    globals()[name] = value
    return value
