"""Canonical error mappings shared by the dispatcher and the tool handlers."""
from __future__ import annotations

import pytest

from apps.mcp_gateway.service.errors import CanonicalError

JSONRPC_EXPECTATIONS = {
    "PARSE_ERROR": -32700,
    "INVALID_REQUEST": -32600,
    "METHOD_NOT_FOUND": -32601,
    "INVALID_PARAMS": -32602,
    "INTERNAL_ERROR": -32603,
}

RETRYABLE = {
    "MISSING_INPUT": False,
    "INVALID_INPUT": False,
    "UPSTREAM_ERROR": True,
    "CONFIGURATION_ERROR": False,
}


def test_codes_are_declared() -> None:
    assert set(CanonicalError.protocol_codes()) == set(JSONRPC_EXPECTATIONS)
    assert set(CanonicalError.tool_codes()) == set(RETRYABLE)


@pytest.mark.parametrize(("code", "number"), sorted(JSONRPC_EXPECTATIONS.items()))
def test_jsonrpc_error_payload(code: str, number: int) -> None:
    payload = CanonicalError.to_jsonrpc_error(code)

    assert CanonicalError.jsonrpc_code(code) == number
    assert payload["code"] == number
    assert isinstance(payload["message"], str) and payload["message"]
    assert "data" not in payload


def test_jsonrpc_error_custom_message_and_data() -> None:
    payload = CanonicalError.to_jsonrpc_error(
        "METHOD_NOT_FOUND", "Tool not found: x", data={"name": "x"}
    )

    assert payload == {"code": -32601, "message": "Tool not found: x", "data": {"name": "x"}}


@pytest.mark.parametrize(("code", "retryable"), sorted(RETRYABLE.items()))
def test_tool_error_shape(code: str, retryable: bool) -> None:
    payload = CanonicalError.to_tool_error(code, status=None, detail="d")

    assert set(payload) == {"error"}
    assert payload["error"]["code"] == code
    assert payload["error"]["retryable"] is retryable
    assert payload["error"]["detail"] == "d"
    assert "status" not in payload["error"]


def test_missing_input_enumerates_names() -> None:
    payload = CanonicalError.missing_input(["label", "spaceKey"])

    assert payload["error"]["code"] == "MISSING_INPUT"
    assert payload["error"]["missing"] == ["label", "spaceKey"]
    assert "label" in payload["error"]["message"]
    assert [item["name"] for item in payload["needInput"]["inputs"]] == ["label", "spaceKey"]


def test_unknown_codes_raise_key_error() -> None:
    with pytest.raises(KeyError):
        CanonicalError.to_jsonrpc_error("MISSING_INPUT")
    with pytest.raises(KeyError):
        CanonicalError.to_tool_error("PARSE_ERROR")
