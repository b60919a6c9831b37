from __future__ import annotations

import base64

import pytest

from pkgs.pagination import (
    CursorTokenError,
    Page,
    decode_cursor_token,
    encode_cursor_token,
    extract_cursor,
)


@pytest.mark.parametrize(
    ("link", "expected"),
    [
        ("/rest/api/search?next=true&cursor=abc123&limit=25", "abc123"),
        ("/rest/api/search?cursor=_sa_WyJ%3D%22%5D&limit=25", '_sa_WyJ="]'),
        ("https://site/wiki/rest/api/search?limit=5&cursor=xyz#frag", "xyz"),
        ("/rest/api/search?cursor=last", "last"),
        ("/rest/api/search?next=true&cursor=&limit=25", None),
        ("/rest/api/search?precursor=nope&limit=25", None),
        ("/rest/api/search?start=25&limit=25", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_cursor(link: str | None, expected: str | None) -> None:
    assert extract_cursor(link) == expected


def test_page_exposes_next_and_prev_cursors() -> None:
    page = Page(
        items=[1, 2],
        links={
            "next": "/rest/api/search?cursor=n1&limit=2",
            "prev": "/rest/api/search?cursor=p0&limit=2",
            "base": "https://site/wiki",
        },
    )

    assert page.next_cursor == "n1"
    assert page.prev_cursor == "p0"
    assert Page(items=[]).next_cursor is None


def test_token_is_unpadded_urlsafe_base64() -> None:
    cursor = "_sa_WyJcdDEyMyIsIjQ1NiJd?/+"

    token = encode_cursor_token(cursor)

    assert token is not None
    assert "=" not in token
    assert "+" not in token and "/" not in token
    padded = token + "=" * (-len(token) % 4)
    assert base64.urlsafe_b64decode(padded).decode("utf-8") == cursor
    assert decode_cursor_token(token) == cursor


def test_none_and_blank_tokens_decode_to_none() -> None:
    assert encode_cursor_token(None) is None
    assert decode_cursor_token(None) is None
    assert decode_cursor_token("") is None
    assert decode_cursor_token("   ") is None


@pytest.mark.parametrize("token", ["a", "__4", "é", "!!!!"])
def test_undecodable_tokens_raise(token: str) -> None:
    with pytest.raises(CursorTokenError):
        decode_cursor_token(token)
