"""HTTP transport for the MCP gateway."""

from .main import build_dispatcher, create_app  # noqa: F401

__all__ = ["build_dispatcher", "create_app"]
