from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

from apps.mcp_gateway.http.emitter import (
    SESSION_HEADER,
    format_sse_comment,
    format_sse_event,
    keepalive_stream,
    render_json,
    render_stream,
)


class DisconnectingRequest:
    """Reports the client as connected for the first ``connected_polls`` checks."""

    def __init__(self, connected_polls: int) -> None:
        self.connected_polls = connected_polls
        self.polls = 0

    async def is_disconnected(self) -> bool:
        self.polls += 1
        return self.polls > self.connected_polls


async def _responses(count: int) -> AsyncIterator[dict[str, Any]]:
    for index in range(count):
        yield {"jsonrpc": "2.0", "id": index, "result": {}}


def _drain(response: Any) -> list[str]:
    async def run() -> list[str]:
        return [chunk async for chunk in response.body_iterator]

    return asyncio.run(run())


def test_event_frame_layout() -> None:
    frame = format_sse_event({"jsonrpc": "2.0", "id": 1, "result": {"ok": True}})

    assert frame.startswith("event: message\ndata: ")
    assert frame.endswith("\n\n")
    data = frame.split("data: ", 1)[1].strip()
    assert "\n" not in data
    assert json.loads(data)["result"] == {"ok": True}


def test_keepalive_comment() -> None:
    assert format_sse_comment() == ": keep-alive\n\n"


def test_render_json_preserves_batch_shape() -> None:
    response = {"jsonrpc": "2.0", "id": 1, "result": {}}

    single = render_json([response], batched=False)
    batch = render_json([response], batched=True, session_id="s-1")

    assert json.loads(single.body) == response
    assert SESSION_HEADER.lower() not in single.headers
    assert json.loads(batch.body) == [response]
    assert batch.headers[SESSION_HEADER] == "s-1"


def test_stream_emits_every_response_while_connected() -> None:
    request = DisconnectingRequest(connected_polls=10)

    response = render_stream(request, _responses(3), session_id="s-1")  # type: ignore[arg-type]
    frames = _drain(response)

    assert [json.loads(frame.split("data: ", 1)[1])["id"] for frame in frames] == [0, 1, 2]
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers[SESSION_HEADER] == "s-1"


def test_stream_stops_writing_after_disconnect() -> None:
    request = DisconnectingRequest(connected_polls=2)

    frames = _drain(render_stream(request, _responses(5)))  # type: ignore[arg-type]

    assert frames == [
        format_sse_event({"jsonrpc": "2.0", "id": 0, "result": {}}),
        format_sse_event({"jsonrpc": "2.0", "id": 1, "result": {}}),
    ]
    assert request.polls == 3


def test_keepalive_stream_sends_comments_until_disconnect() -> None:
    request = DisconnectingRequest(connected_polls=3)

    response = keepalive_stream(request, interval_seconds=0.001)  # type: ignore[arg-type]
    frames = _drain(response)

    assert frames == [": keep-alive\n\n"] * 3
    assert request.polls == 4
    assert response.media_type == "text/event-stream"


def test_keepalive_stream_with_zero_interval_closes_at_once() -> None:
    request = DisconnectingRequest(connected_polls=100)

    frames = _drain(keepalive_stream(request, interval_seconds=0))  # type: ignore[arg-type]

    assert frames == []
    assert request.polls == 0
