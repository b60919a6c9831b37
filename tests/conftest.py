from __future__ import annotations

import pathlib
import sys

import pytest

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from apps.mcp_gateway.config import GatewaySettings  # noqa: E402

CONFLUENCE_ENV_VARS = (
    "CONFLUENCE_BASE_URL",
    "CONFLUENCE_EMAIL",
    "CONFLUENCE_API_TOKEN",
    "CONFLUENCE_TIMEOUT_SECONDS",
    "MCP_HOST",
    "MCP_TOOLS",
    "MCP_LOG_DIR",
    "MCP_LOG_LEVEL",
    "MCP_SESSION_TTL_SECONDS",
    "MCP_MAX_BODY_BYTES",
    "MCP_SSE_KEEPALIVE_SECONDS",
    "ALLOWED_ORIGINS",
    "PORT",
    "WEBSITE_SITE_NAME",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in CONFLUENCE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="session")
def repo_root() -> pathlib.Path:
    return REPO_ROOT


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(
        confluence_base_url="https://example.atlassian.net",
        confluence_email="bot@example.com",
        confluence_api_token="token-123",
    )
