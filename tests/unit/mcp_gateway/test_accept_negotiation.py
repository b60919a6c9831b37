from __future__ import annotations

import pytest

from apps.mcp_gateway.http.negotiation import (
    accepts_event_stream,
    parse_accept,
    prefers_event_stream,
)


def test_parse_accept_reads_quality_values() -> None:
    qualities = parse_accept("application/json;q=0.5, text/event-stream; q=0.9, */*")

    assert qualities == {
        "application/json": 0.5,
        "text/event-stream": 0.9,
        "*/*": 1.0,
    }


@pytest.mark.parametrize("raw", ["abc", "", "2.5", "-1", "nan"])
def test_invalid_quality_counts_as_one(raw: str) -> None:
    assert parse_accept(f"text/event-stream;q={raw}") == {"text/event-stream": 1.0}


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        (None, False),
        ("", False),
        ("*/*", False),
        ("application/json", False),
        ("text/event-stream", False),
        ("application/json, text/event-stream", False),
        ("text/event-stream, application/json;q=0.9", True),
        ("application/json;q=0.1, text/event-stream;q=0.2", True),
        ("application/json;q=0.5, text/event-stream;q=0.5", False),
        ("text/event-stream;q=1.0, application/json;q=1.0", False),
        ("TEXT/EVENT-STREAM, application/json;q=0", True),
        ("text/event-stream;q=0, application/json;q=0", False),
    ],
)
def test_prefers_event_stream(header: str | None, expected: bool) -> None:
    assert prefers_event_stream(header) is expected


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        (None, False),
        ("application/json", False),
        ("text/event-stream", True),
        ("application/json, text/event-stream;q=0.1", True),
        ("text/event-stream;q=0", False),
    ],
)
def test_accepts_event_stream(header: str | None, expected: bool) -> None:
    assert accepts_event_stream(header) is expected
