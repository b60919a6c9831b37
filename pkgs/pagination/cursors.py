"""Cursor helpers shared by paginated upstream listings.

Upstream services hand back continuation cursors embedded in "next" and
"prev" links (``/rest/api/search?cursor=...&limit=25``).  The raw cursor is
never interpreted locally: it is lifted out of the link, wrapped into an
opaque token for callers, and unwrapped again verbatim when a caller resumes.
"""

from __future__ import annotations

import base64
import binascii
import re
from urllib.parse import unquote

__all__ = [
    "CursorTokenError",
    "decode_cursor_token",
    "encode_cursor_token",
    "extract_cursor",
]

_CURSOR_PATTERN = re.compile(r"[?&]cursor=([^&#]*)")


class CursorTokenError(ValueError):
    """Raised when a caller-supplied cursor token cannot be decoded."""


def extract_cursor(link: str | None) -> str | None:
    """Return the unquoted ``cursor`` query value embedded in ``link``."""

    if not link:
        return None
    match = _CURSOR_PATTERN.search(link)
    if match is None:
        return None
    value = unquote(match.group(1))
    return value or None


def encode_cursor_token(cursor: str | None) -> str | None:
    if cursor is None:
        return None
    encoded = base64.urlsafe_b64encode(cursor.encode("utf-8")).decode("ascii")
    return encoded.rstrip("=")


def decode_cursor_token(token: str | None) -> str | None:
    """Reverse :func:`encode_cursor_token`; blank tokens decode to ``None``."""

    if token is None:
        return None
    stripped = token.strip()
    if not stripped:
        return None
    padded = stripped + "=" * (-len(stripped) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        cursor = raw.decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise CursorTokenError(f"Cursor token {token!r} is not valid") from exc
    if not cursor:
        raise CursorTokenError(f"Cursor token {token!r} is empty")
    return cursor
