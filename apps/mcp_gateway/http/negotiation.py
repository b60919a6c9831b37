"""``Accept`` header parsing and response transport selection."""

from __future__ import annotations

__all__ = [
    "EVENT_STREAM",
    "JSON",
    "accepts_event_stream",
    "parse_accept",
    "prefers_event_stream",
]

EVENT_STREAM = "text/event-stream"
JSON = "application/json"


def _parse_quality(raw: str) -> float:
    try:
        quality = float(raw)
    except ValueError:
        return 1.0
    if not 0.0 <= quality <= 1.0:
        return 1.0
    return quality


def parse_accept(header: str | None) -> dict[str, float]:
    """Map each media range in ``header`` to its quality value.

    A range listed more than once keeps its first quality. Unparseable or
    out-of-range ``q`` values count as ``1.0``.
    """

    qualities: dict[str, float] = {}
    if not header:
        return qualities
    for entry in header.split(","):
        parts = entry.split(";")
        media_range = parts[0].strip().lower()
        if not media_range:
            continue
        quality = 1.0
        for param in parts[1:]:
            key, _, value = param.partition("=")
            if key.strip().lower() == "q":
                quality = _parse_quality(value.strip())
        qualities.setdefault(media_range, quality)
    return qualities


def prefers_event_stream(header: str | None) -> bool:
    """Return ``True`` when the caller ranks an event stream above JSON.

    JSON is the default (``1.0`` when not listed) and wins ties, so a bare
    ``*/*`` or a missing header selects a single JSON body.
    """

    qualities = parse_accept(header)
    stream_q = qualities.get(EVENT_STREAM, 0.0)
    json_q = qualities.get(JSON, 1.0)
    return stream_q > json_q


def accepts_event_stream(header: str | None) -> bool:
    return parse_accept(header).get(EVENT_STREAM, 0.0) > 0.0
