"""Protocol core for the MCP gateway (lazy exports)."""
from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING

__all__ = [
    "CanonicalError",
    "DispatchContext",
    "EnvelopeParseError",
    "InvalidEnvelopeError",
    "McpDispatcher",
    "MessageEnvelope",
    "RegisteredTool",
    "ServerInfo",
    "SessionStore",
    "ToolDescriptor",
    "ToolRegistry",
    "normalize_body",
]

_EXPORT_MAP = {
    "CanonicalError": "apps.mcp_gateway.service.errors",
    "EnvelopeParseError": "apps.mcp_gateway.service.errors",
    "InvalidEnvelopeError": "apps.mcp_gateway.service.errors",
    "DispatchContext": "apps.mcp_gateway.service.dispatcher",
    "McpDispatcher": "apps.mcp_gateway.service.dispatcher",
    "ServerInfo": "apps.mcp_gateway.service.dispatcher",
    "MessageEnvelope": "apps.mcp_gateway.service.envelope",
    "normalize_body": "apps.mcp_gateway.service.envelope",
    "RegisteredTool": "apps.mcp_gateway.service.registry",
    "ToolDescriptor": "apps.mcp_gateway.service.registry",
    "ToolRegistry": "apps.mcp_gateway.service.registry",
    "SessionStore": "apps.mcp_gateway.service.sessions",
}

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from .dispatcher import DispatchContext, McpDispatcher, ServerInfo
    from .envelope import MessageEnvelope, normalize_body
    from .errors import CanonicalError, EnvelopeParseError, InvalidEnvelopeError
    from .registry import RegisteredTool, ToolDescriptor, ToolRegistry
    from .sessions import SessionStore


def __getattr__(name: str):  # pragma: no cover - thin loader
    if name not in _EXPORT_MAP:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(_EXPORT_MAP[name])
    value = getattr(module, name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:  # pragma: no cover - thin loader
    return sorted(set(globals()) | set(__all__))
