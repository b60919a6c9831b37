"""Cursor-following aggregation over paginated upstream listings."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .cursors import encode_cursor_token, extract_cursor

__all__ = [
    "HARD_PAGE_CEILING",
    "AggregationFailure",
    "AggregationResult",
    "AggregationSuccess",
    "Page",
    "PageFetcher",
    "PageRequest",
    "PaginationAggregator",
    "StopReason",
    "UpstreamError",
]

logger = logging.getLogger("mcp_gateway.pagination")

# Bounds the number of upstream calls per aggregation regardless of budget.
HARD_PAGE_CEILING = 20

_BODY_SNIPPET_CHARS = 500


class UpstreamError(RuntimeError):
    """Raised by page fetchers when the upstream answers with a non-success status."""

    def __init__(self, status: int, body: str = "", *, reason: str | None = None) -> None:
        self.status = int(status)
        self.body = (body or "")[:_BODY_SNIPPET_CHARS]
        self.reason = reason or f"Upstream API {self.status}"
        detail = self.body or self.reason
        super().__init__(f"{self.reason}: {detail}")


@dataclass(frozen=True, slots=True)
class PageRequest:
    """Parameters handed to a page fetcher for a single upstream call."""

    limit: int
    cursor: str | None = None
    start: int | None = None


@dataclass(frozen=True, slots=True)
class Page:
    """One page of upstream results plus its link metadata."""

    items: Sequence[Any]
    links: Mapping[str, str] = field(default_factory=dict)
    start: int | None = None
    limit: int | None = None
    total_size: int | None = None

    @property
    def next_cursor(self) -> str | None:
        return extract_cursor(self.links.get("next"))

    @property
    def prev_cursor(self) -> str | None:
        return extract_cursor(self.links.get("prev"))


PageFetcher = Callable[[PageRequest], Awaitable[Page]]


class StopReason:
    EXHAUSTED = "exhausted"
    SINGLE_PAGE = "single_page"
    BUDGET = "budget"
    PAGE_CEILING = "page_ceiling"


@dataclass(frozen=True, slots=True)
class AggregationSuccess:
    items: tuple[Any, ...]
    next_cursor: str | None
    prev_cursor: str | None
    pages_fetched: int
    stop_reason: str
    start: int
    limit: int
    total_size: int | None = None

    ok = True

    @property
    def terminal_cursor(self) -> str | None:
        return self.next_cursor

    def pagination(self) -> dict[str, Any]:
        """Caller-facing pagination metadata with opaque cursor tokens."""

        payload: dict[str, Any] = {
            "start": self.start,
            "limit": self.limit,
            "size": len(self.items),
            "pagesFetched": self.pages_fetched,
            "stopReason": self.stop_reason,
        }
        if self.total_size is not None:
            payload["totalSize"] = self.total_size
        next_token = encode_cursor_token(self.next_cursor)
        if next_token is not None:
            payload["nextCursor"] = next_token
        prev_token = encode_cursor_token(self.prev_cursor)
        if prev_token is not None:
            payload["prevCursor"] = prev_token
        return payload


@dataclass(frozen=True, slots=True)
class AggregationFailure:
    """Upstream failure; ``items_so_far`` is kept for callers that opt into partial data."""

    reason: str
    status: int
    body: str
    items_so_far: tuple[Any, ...]
    pages_fetched: int

    ok = False


AggregationResult = AggregationSuccess | AggregationFailure


class PaginationAggregator:
    """Walk a paginated upstream listing until a termination condition holds.

    The loop stops when the upstream stops returning a next cursor, when
    auto-continue is disabled (after the first page), when the result budget
    is met, or when the page ceiling is reached. Any :class:`UpstreamError`
    aborts the walk and yields an :class:`AggregationFailure`.
    """

    def __init__(self, fetch_page: PageFetcher, *, max_pages: int = HARD_PAGE_CEILING) -> None:
        if max_pages <= 0:
            raise ValueError("max_pages must be a positive integer")
        if max_pages > HARD_PAGE_CEILING:
            logger.warning(
                "Requested page ceiling %d exceeds hard ceiling %d; clamping",
                max_pages,
                HARD_PAGE_CEILING,
            )
            max_pages = HARD_PAGE_CEILING
        self._fetch_page = fetch_page
        self._max_pages = max_pages

    @property
    def max_pages(self) -> int:
        return self._max_pages

    async def collect(
        self,
        *,
        page_size: int,
        start: int | None = None,
        cursor: str | None = None,
        budget: int = 0,
        auto_continue: bool = True,
    ) -> AggregationResult:
        if page_size <= 0:
            raise ValueError("page_size must be a positive integer")
        if budget < 0:
            raise ValueError("budget must be zero (unbounded) or positive")

        items: list[Any] = []
        pages_fetched = 0
        next_cursor = cursor
        first_start = 0 if cursor else max(int(start or 0), 0)
        prev_cursor: str | None = None
        total_size: int | None = None
        stop_reason = StopReason.EXHAUSTED

        while True:
            limit = page_size
            if budget:
                limit = min(page_size, budget - len(items))
            request = PageRequest(
                limit=limit,
                cursor=next_cursor,
                start=first_start if pages_fetched == 0 and next_cursor is None else None,
            )
            try:
                page = await self._fetch_page(request)
            except UpstreamError as exc:
                logger.warning(
                    "Upstream page fetch failed after %d page(s): %s", pages_fetched, exc
                )
                return AggregationFailure(
                    reason=exc.reason,
                    status=exc.status,
                    body=exc.body,
                    items_so_far=tuple(items),
                    pages_fetched=pages_fetched,
                )
            pages_fetched += 1
            items.extend(page.items)
            if pages_fetched == 1 and page.start is not None:
                first_start = page.start
            if page.total_size is not None:
                total_size = page.total_size
            prev_cursor = page.prev_cursor
            next_cursor = page.next_cursor

            if next_cursor is None:
                stop_reason = StopReason.EXHAUSTED
                break
            if not auto_continue:
                stop_reason = StopReason.SINGLE_PAGE
                break
            if budget and len(items) >= budget:
                stop_reason = StopReason.BUDGET
                break
            if pages_fetched >= self._max_pages:
                stop_reason = StopReason.PAGE_CEILING
                break

        if budget:
            del items[budget:]
        logger.debug(
            "Aggregated %d item(s) over %d page(s); stop=%s",
            len(items),
            pages_fetched,
            stop_reason,
        )
        return AggregationSuccess(
            items=tuple(items),
            next_cursor=next_cursor,
            prev_cursor=prev_cursor,
            pages_fetched=pages_fetched,
            stop_reason=stop_reason,
            start=first_start,
            limit=page_size,
            total_size=total_size,
        )
