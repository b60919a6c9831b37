from __future__ import annotations

import json

import pytest

pytest.importorskip("pydantic")

from apps.mcp_gateway.service.envelope import (
    MessageEnvelope,
    normalize_body,
    normalize_method,
)
from apps.mcp_gateway.service.errors import EnvelopeParseError, InvalidEnvelopeError

PING = {"jsonrpc": "2.0", "id": 1, "method": "ping"}
LIST = {"jsonrpc": "2.0", "id": 2, "method": "tools/list"}


def test_single_object_is_one_unbatched_message() -> None:
    body = normalize_body(json.dumps(PING).encode("utf-8"))

    assert body.messages == (PING,)
    assert body.batched is False


def test_array_preserves_order_and_is_batched() -> None:
    body = normalize_body(json.dumps([PING, LIST]))

    assert body.messages == (PING, LIST)
    assert body.batched is True


def test_json_string_holding_json_is_decoded_again() -> None:
    body = normalize_body(json.dumps(json.dumps(PING)))

    assert body.messages == (PING,)


@pytest.mark.parametrize("key", ["requests", "messages", "batch"])
def test_batch_wrapper_keys_unwrap(key: str) -> None:
    body = normalize_body({key: [PING, LIST]})

    assert body.messages == (PING, LIST)
    assert body.batched is True


@pytest.mark.parametrize("key", ["body", "payload"])
def test_nested_body_wrapper_keys_unwrap(key: str) -> None:
    body = normalize_body({key: json.dumps(PING)})

    assert body.messages == (PING,)
    assert body.batched is False


def test_wrapper_keys_ignored_when_method_present() -> None:
    message = {"id": 3, "method": "tools/call", "params": {}, "body": {"id": 9}}

    body = normalize_body(message)

    assert body.messages == (message,)


def test_nested_wrappers_unwrap_within_depth() -> None:
    body = normalize_body({"payload": {"body": {"requests": [PING]}}})

    assert body.messages == (PING,)
    assert body.batched is True


@pytest.mark.parametrize("raw", [b"", "   ", None])
def test_empty_body_is_an_empty_object(raw: object) -> None:
    body = normalize_body(raw)

    assert body.messages == ({},)


def test_empty_array_yields_no_messages() -> None:
    body = normalize_body("[]")

    assert body.messages == ()
    assert body.batched is True


@pytest.mark.parametrize("raw", ["{not json", b"\xff\xfe", '"{broken"'])
def test_undecodable_bodies_raise_parse_error(raw: object) -> None:
    with pytest.raises(EnvelopeParseError):
        normalize_body(raw)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("tools/list", "tools/list"),
        ("TOOLS.LIST", "tools/list"),
        ("tools_call", "tools/call"),
        ("mcp/tools/list", "tools/list"),
        ("MCP.tools_call", "tools/call"),
        ("tool/call", "tools/call"),
        ("notifications_initialized", "notifications/initialized"),
        ("mcp.notifications.initialized", "notifications/initialized"),
        ("  Ping ", "ping"),
    ],
)
def test_normalize_method(raw: str, expected: str) -> None:
    assert normalize_method(raw) == expected


def test_envelope_classification() -> None:
    request = MessageEnvelope.from_raw({"id": 0, "method": "ping"})
    notification = MessageEnvelope.from_raw({"method": "notifications/initialized"})
    null_id = MessageEnvelope.from_raw({"id": None, "method": "ping"})
    bare = MessageEnvelope.from_raw({"id": 7})

    assert request.is_notification is False
    assert notification.is_notification is True
    assert null_id.is_notification is True
    assert bare.is_notification is False
    assert bare.method is None


def test_blank_method_counts_as_missing() -> None:
    envelope = MessageEnvelope.from_raw({"id": 1, "method": "   "})

    assert envelope.method is None
    assert envelope.normalized_method is None


def test_non_object_message_is_invalid_request() -> None:
    with pytest.raises(InvalidEnvelopeError) as excinfo:
        MessageEnvelope.from_raw(42)

    assert excinfo.value.canonical == "INVALID_REQUEST"
    assert excinfo.value.request_id is None


def test_non_string_method_is_invalid_request() -> None:
    with pytest.raises(InvalidEnvelopeError) as excinfo:
        MessageEnvelope.from_raw({"id": 5, "method": 12})

    assert excinfo.value.canonical == "INVALID_REQUEST"
    assert excinfo.value.request_id == 5


def test_non_object_params_is_invalid_params() -> None:
    with pytest.raises(InvalidEnvelopeError) as excinfo:
        MessageEnvelope.from_raw({"id": "a", "method": "tools/call", "params": [1, 2]})

    assert excinfo.value.canonical == "INVALID_PARAMS"
    assert excinfo.value.request_id == "a"
