"""Confluence tools served through the MCP gateway."""

from .client import ConfluenceClient, client_from_settings  # noqa: F401
from .tools import (  # noqa: F401
    DESCRIPTORS,
    TOOL_ALIASES,
    TOOL_NAMES,
    WikiToolset,
    build_cql,
    build_registry,
)

__all__ = [
    "ConfluenceClient",
    "DESCRIPTORS",
    "TOOL_ALIASES",
    "TOOL_NAMES",
    "WikiToolset",
    "build_cql",
    "build_registry",
    "client_from_settings",
]
