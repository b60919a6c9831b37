"""Pagination package exports for cursor-following upstream listings."""

from .aggregator import (  # noqa: F401
    HARD_PAGE_CEILING,
    AggregationFailure,
    AggregationResult,
    AggregationSuccess,
    Page,
    PageFetcher,
    PageRequest,
    PaginationAggregator,
    StopReason,
    UpstreamError,
)
from .cursors import (  # noqa: F401
    CursorTokenError,
    decode_cursor_token,
    encode_cursor_token,
    extract_cursor,
)

__all__ = [
    "HARD_PAGE_CEILING",
    "AggregationFailure",
    "AggregationResult",
    "AggregationSuccess",
    "CursorTokenError",
    "Page",
    "PageFetcher",
    "PageRequest",
    "PaginationAggregator",
    "StopReason",
    "UpstreamError",
    "decode_cursor_token",
    "encode_cursor_token",
    "extract_cursor",
]
