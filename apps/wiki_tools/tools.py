"""Confluence tool descriptors and handlers."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from functools import partial
from types import MappingProxyType
from typing import Any

from apps.mcp_gateway.config import ConfigurationError, GatewaySettings
from apps.mcp_gateway.service.errors import CanonicalError
from apps.mcp_gateway.service.registry import RegisteredTool, ToolDescriptor, ToolRegistry
from pkgs.pagination import (
    AggregationFailure,
    CursorTokenError,
    PaginationAggregator,
    decode_cursor_token,
)

from .client import ConfluenceClient

__all__ = [
    "DESCRIPTORS",
    "TOOL_ALIASES",
    "TOOL_NAMES",
    "WikiToolset",
    "build_registry",
    "build_cql",
]

logger = logging.getLogger("mcp_gateway.tools")

# Historical tool names still sent by older clients.
TOOL_ALIASES: Mapping[str, str] = MappingProxyType({"searchPages": "search"})

SEARCH_DEFAULT_LIMIT = 50
SEARCH_DEFAULT_MAX_RESULTS = 100
LABEL_DEFAULT_LIMIT = 10
MAX_PAGE_SIZE = 100

_HIGHLIGHT_MARKERS = re.compile(r"@@@(?:end)?hl@@@")

SEARCH = ToolDescriptor(
    name="search",
    description=(
        "Search Confluence pages by free text, optionally inside one space. "
        "Follows result pages until maxResults items are collected."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Free-text search terms"},
            "spaceKey": {"type": "string", "description": "Restrict to a space (e.g., DOC)"},
            "limit": {
                "type": "integer",
                "description": "Page size per upstream call (default 50, max 100)",
            },
            "start": {
                "type": "integer",
                "minimum": 0,
                "description": "Offset of the first result; ignored when cursor is set",
            },
            "cursor": {
                "type": "string",
                "description": "nextCursor value returned by a previous call",
            },
            "maxResults": {
                "type": "integer",
                "minimum": 0,
                "description": "Total results to collect (default 100, 0 = no budget)",
            },
            "autoPaginate": {
                "type": "boolean",
                "description": "Follow next pages automatically (default true)",
            },
        },
        "required": ["query"],
        "additionalProperties": False,
    },
)

SEARCH_BY_LABEL = ToolDescriptor(
    name="searchByLabelInSpace",
    description=(
        "Search pages by label within a space, sorted by latest modified; "
        "returns up to limit results (default 10)."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "label": {"type": "string", "description": "Confluence label (e.g., administration)"},
            "spaceKey": {"type": "string", "description": "Space key (e.g., DOC)"},
            "limit": {"type": "integer", "description": "Max results (default 10, max 100)"},
        },
        "required": ["label", "spaceKey"],
        "additionalProperties": False,
    },
)

DESCRIBE_TOOLS = ToolDescriptor(
    name="describeTools",
    description="List the tools available on this gateway with their input schemas.",
    input_schema={"type": "object", "properties": {}, "additionalProperties": False},
)

DESCRIPTORS: tuple[ToolDescriptor, ...] = (SEARCH, SEARCH_BY_LABEL, DESCRIBE_TOOLS)
TOOL_NAMES: tuple[str, ...] = tuple(descriptor.name for descriptor in DESCRIPTORS)


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_cql(
    *,
    text: str | None = None,
    label: str | None = None,
    space_key: str | None = None,
    newest_first: bool = False,
) -> str:
    clauses = ["type=page"]
    if text:
        clauses.append(f"text ~ {_quote(text)}")
    if label:
        clauses.append(f"label = {_quote(label)}")
    if space_key:
        clauses.append(f"space = {_quote(space_key)}")
    cql = " and ".join(clauses)
    if newest_first:
        cql += " ORDER BY lastmodified desc"
    return cql


def _clamp(value: Any, default: int, *, low: int = 1, high: int = MAX_PAGE_SIZE) -> int:
    try:
        number = int(value) if value is not None else default
    except (TypeError, ValueError):
        number = default
    return max(low, min(number, high))


class WikiToolset:
    """Handlers for the Confluence tools of one deployment.

    ``client`` is ``None`` when credentials are not configured; every tool
    that needs the upstream then answers with a ``CONFIGURATION_ERROR``
    result instead of failing at startup.
    """

    def __init__(
        self,
        client: ConfluenceClient | None,
        descriptors: Sequence[ToolDescriptor],
        *,
        missing_settings: Sequence[str] = (),
    ) -> None:
        self._client = client
        self._descriptors = tuple(descriptors)
        self._missing_settings = list(missing_settings)

    def _configuration_error(self) -> dict[str, Any]:
        missing = self._missing_settings or [
            "CONFLUENCE_BASE_URL",
            "CONFLUENCE_EMAIL",
            "CONFLUENCE_API_TOKEN",
        ]
        return CanonicalError.to_tool_error(
            "CONFIGURATION_ERROR",
            "Missing Confluence credentials. Set " + ", ".join(missing) + ".",
            missing=missing,
        )

    def _result_entry(self, raw: Any) -> dict[str, Any] | None:
        if not isinstance(raw, Mapping):
            return None
        content = raw.get("content") if isinstance(raw.get("content"), Mapping) else {}
        content_links = content.get("_links") if isinstance(content.get("_links"), Mapping) else {}
        link = raw.get("url") or content_links.get("webui")
        entry: dict[str, Any] = {
            "id": content.get("id") or raw.get("id"),
            "title": raw.get("title") or content.get("title"),
            "url": self._client.page_url(link) if self._client is not None else link,
        }
        excerpt = raw.get("excerpt")
        if isinstance(excerpt, str):
            cleaned = _HIGHLIGHT_MARKERS.sub("", excerpt).strip()
            if cleaned:
                entry["excerpt"] = cleaned
        return entry

    async def _run(
        self,
        client: ConfluenceClient,
        cql: str,
        *,
        page_size: int,
        start: int | None = None,
        cursor: str | None = None,
        budget: int = 0,
        auto_continue: bool = True,
    ) -> dict[str, Any]:
        aggregator = PaginationAggregator(partial(client.search_page, cql))
        outcome = await aggregator.collect(
            page_size=page_size,
            start=start,
            cursor=cursor,
            budget=budget,
            auto_continue=auto_continue,
        )
        if isinstance(outcome, AggregationFailure):
            detail = outcome.body or outcome.reason
            return CanonicalError.to_tool_error(
                "UPSTREAM_ERROR",
                f"Confluence API {outcome.status}: {detail}",
                status=outcome.status,
                itemsFetched=len(outcome.items_so_far),
                pagesFetched=outcome.pages_fetched,
            )
        results = [entry for entry in map(self._result_entry, outcome.items) if entry]
        return {"cql": cql, "results": results, "pagination": outcome.pagination()}

    async def search(self, arguments: Mapping[str, Any]) -> dict[str, Any]:
        client = self._client
        if client is None:
            return self._configuration_error()
        try:
            cursor = decode_cursor_token(arguments.get("cursor"))
        except CursorTokenError as exc:
            return CanonicalError.to_tool_error("INVALID_INPUT", str(exc), field="cursor")
        space_key = str(arguments.get("spaceKey") or "").strip() or None
        cql = build_cql(text=str(arguments["query"]).strip(), space_key=space_key)
        max_results = arguments.get("maxResults")
        return await self._run(
            client,
            cql,
            page_size=_clamp(arguments.get("limit"), SEARCH_DEFAULT_LIMIT),
            start=arguments.get("start"),
            cursor=cursor,
            budget=SEARCH_DEFAULT_MAX_RESULTS if max_results is None else int(max_results),
            auto_continue=bool(arguments.get("autoPaginate", True)),
        )

    async def search_by_label_in_space(self, arguments: Mapping[str, Any]) -> dict[str, Any]:
        client = self._client
        if client is None:
            return self._configuration_error()
        limit = _clamp(arguments.get("limit"), LABEL_DEFAULT_LIMIT)
        cql = build_cql(
            label=str(arguments["label"]).strip(),
            space_key=str(arguments["spaceKey"]).strip(),
            newest_first=True,
        )
        return await self._run(client, cql, page_size=limit, budget=limit, auto_continue=False)

    async def describe_tools(self, arguments: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "tools": [descriptor.to_dict() for descriptor in self._descriptors],
            "aliases": dict(TOOL_ALIASES),
        }


def _select(names: Sequence[str] | None) -> tuple[ToolDescriptor, ...]:
    if not names:
        return DESCRIPTORS
    by_name = {descriptor.name: descriptor for descriptor in DESCRIPTORS}
    unknown = [name for name in names if name not in by_name]
    if unknown:
        raise ConfigurationError(
            "Unknown tool(s) in MCP_TOOLS: "
            + ", ".join(unknown)
            + f" (known: {', '.join(TOOL_NAMES)})"
        )
    return tuple(by_name[name] for name in dict.fromkeys(names))


def build_registry(
    settings: GatewaySettings,
    *,
    client: ConfluenceClient | None = None,
) -> ToolRegistry:
    """Build the tool registry selected by ``settings.tools``.

    Without a ``client`` the upstream tools stay registered but answer with a
    configuration error naming the settings that are still missing.
    """

    descriptors = _select(settings.tools)
    if client is None:
        logger.warning(
            "Confluence credentials are not configured; upstream tools will report %s",
            ", ".join(settings.missing_confluence_settings()),
        )
    toolset = WikiToolset(
        client,
        descriptors,
        missing_settings=settings.missing_confluence_settings() if client is None else (),
    )
    handlers = {
        SEARCH.name: toolset.search,
        SEARCH_BY_LABEL.name: toolset.search_by_label_in_space,
        DESCRIBE_TOOLS.name: toolset.describe_tools,
    }
    tools = [RegisteredTool(descriptor, handlers[descriptor.name]) for descriptor in descriptors]
    return ToolRegistry(tools, aliases=TOOL_ALIASES)
