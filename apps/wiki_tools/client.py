"""Async Confluence REST client used by the wiki tools."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from apps.mcp_gateway.config import GatewaySettings
from pkgs.pagination import Page, PageRequest, UpstreamError

__all__ = ["ConfluenceClient", "SEARCH_PATH", "client_from_settings"]

logger = logging.getLogger("mcp_gateway.upstream")

SEARCH_PATH = "/wiki/rest/api/search"


def _links(payload: Mapping[str, Any]) -> dict[str, str]:
    raw = payload.get("_links")
    if not isinstance(raw, Mapping):
        return {}
    return {str(key): value for key, value in raw.items() if isinstance(value, str)}


def _optional_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None


class ConfluenceClient:
    """Thin wrapper over :class:`httpx.AsyncClient` for the Confluence search API.

    Non-success answers raise :class:`UpstreamError` carrying the status and a
    truncated body. ``transport`` is passed straight to httpx so callers can
    substitute an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            auth=httpx.BasicAuth(email, api_token),
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def page_url(self, path: str | None) -> str | None:
        """Absolute browser URL for a ``webui`` style path."""

        if not path:
            return None
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        if path.startswith("/wiki/"):
            return f"{self._base_url}{path}"
        return f"{self._base_url}/wiki{path}"

    async def search_page(self, cql: str, request: PageRequest) -> Page:
        """Fetch one page of CQL search results."""

        params: dict[str, Any] = {"cql": cql, "limit": request.limit}
        if request.cursor is not None:
            params["cursor"] = request.cursor
        elif request.start is not None:
            params["start"] = request.start

        try:
            response = await self._client.get(SEARCH_PATH, params=params)
        except httpx.HTTPError as exc:
            logger.warning("Confluence request to %s failed: %s", SEARCH_PATH, exc)
            raise UpstreamError(502, str(exc), reason="Upstream unreachable") from exc

        logger.debug("GET %s -> %s", SEARCH_PATH, response.status_code)
        if not response.is_success:
            logger.warning("Confluence API %s for %s", response.status_code, SEARCH_PATH)
            raise UpstreamError(
                response.status_code,
                response.text,
                reason=f"Confluence API {response.status_code}",
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(
                response.status_code,
                response.text,
                reason="Confluence returned a non-JSON body",
            ) from exc
        if not isinstance(payload, Mapping):
            raise UpstreamError(
                response.status_code,
                response.text,
                reason="Confluence returned an unexpected body",
            )

        results = payload.get("results")
        return Page(
            items=list(results) if isinstance(results, list) else [],
            links=_links(payload),
            start=_optional_int(payload.get("start")),
            limit=_optional_int(payload.get("limit")),
            total_size=_optional_int(payload.get("totalSize")),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ConfluenceClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def client_from_settings(
    settings: GatewaySettings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ConfluenceClient | None:
    """Return a client for the configured site, or ``None`` without credentials."""

    if not settings.has_confluence_credentials:
        return None
    return ConfluenceClient(
        settings.confluence_base_url or "",
        settings.confluence_email or "",
        settings.confluence_api_token or "",
        timeout=settings.upstream_timeout_seconds,
        transport=transport,
    )
