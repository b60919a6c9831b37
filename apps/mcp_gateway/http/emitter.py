"""Serialise JSON-RPC responses as one JSON body or as server-sent events."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse, StreamingResponse

__all__ = [
    "SESSION_HEADER",
    "STREAM_HEADERS",
    "format_sse_comment",
    "format_sse_event",
    "render_json",
    "render_stream",
    "keepalive_stream",
]

logger = logging.getLogger("mcp_gateway.http")

SESSION_HEADER = "Mcp-Session-Id"
STREAM_HEADERS: Mapping[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def format_sse_event(payload: Mapping[str, Any], *, event: str = "message") -> str:
    data = json.dumps(payload, separators=(",", ":"), default=str)
    return f"event: {event}\ndata: {data}\n\n"


def format_sse_comment(text: str = "keep-alive") -> str:
    return f": {text}\n\n"


def _headers(session_id: str | None, extra: Mapping[str, str] | None = None) -> dict[str, str]:
    headers = dict(extra or {})
    if session_id is not None:
        headers[SESSION_HEADER] = session_id
    return headers


def render_json(
    responses: list[dict[str, Any]],
    *,
    batched: bool,
    session_id: str | None = None,
) -> JSONResponse:
    """Return the responses for one body, keeping the request's batch shape."""

    content: Any = responses if batched else responses[0]
    return JSONResponse(content=content, headers=_headers(session_id))


def render_stream(
    request: Request,
    responses: AsyncIterator[dict[str, Any]],
    *,
    session_id: str | None = None,
) -> StreamingResponse:
    """Stream each response as an ``event: message`` frame, in order.

    Writing stops once the client disconnects; a fetch already in flight for
    the current message still runs to completion.
    """

    async def stream() -> AsyncIterator[str]:
        async for response in responses:
            if await request.is_disconnected():
                logger.debug("Client disconnected; dropping remaining events")
                break
            yield format_sse_event(response)

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers=_headers(session_id, STREAM_HEADERS),
    )


def keepalive_stream(request: Request, *, interval_seconds: float) -> StreamingResponse:
    """Open a GET event stream that idles with comment frames.

    An interval of zero closes the stream as soon as the headers are sent.
    """

    async def stream() -> AsyncIterator[str]:
        if interval_seconds <= 0:
            return
        while not await request.is_disconnected():
            yield format_sse_comment()
            await asyncio.sleep(interval_seconds)

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers=dict(STREAM_HEADERS),
    )
