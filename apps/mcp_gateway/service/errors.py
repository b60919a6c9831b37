from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

__all__ = [
    "CanonicalError",
    "EnvelopeParseError",
    "InvalidEnvelopeError",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
]

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class EnvelopeParseError(ValueError):
    """Raised when a request body cannot be decoded as structured data."""


class InvalidEnvelopeError(ValueError):
    """Raised when a decoded message does not have a usable JSON-RPC shape."""

    def __init__(self, canonical: str, message: str, *, request_id: Any = None) -> None:
        super().__init__(message)
        self.canonical = canonical
        self.request_id = request_id


@dataclass(frozen=True)
class _ProtocolSpec:
    code: str
    jsonrpc_code: int
    message: str


@dataclass(frozen=True)
class _ToolResultSpec:
    code: str
    description: str
    retryable: bool
    message: str


class CanonicalError:
    """Canonical error codes shared by the dispatcher and tool handlers.

    Protocol errors travel in the JSON-RPC ``error`` member. Tool errors are
    carried inside a successful ``result`` so callers that only inspect
    results can still recover from them.
    """

    _PROTOCOL_SPECS: tuple[_ProtocolSpec, ...] = (
        _ProtocolSpec("PARSE_ERROR", PARSE_ERROR, "Parse error"),
        _ProtocolSpec("INVALID_REQUEST", INVALID_REQUEST, "Invalid request"),
        _ProtocolSpec("METHOD_NOT_FOUND", METHOD_NOT_FOUND, "Method not found"),
        _ProtocolSpec("INVALID_PARAMS", INVALID_PARAMS, "Invalid params"),
        _ProtocolSpec("INTERNAL_ERROR", INTERNAL_ERROR, "Internal error"),
    )

    _TOOL_SPECS: tuple[_ToolResultSpec, ...] = (
        _ToolResultSpec(
            "MISSING_INPUT",
            "A required tool argument was not supplied",
            False,
            "Missing required input",
        ),
        _ToolResultSpec(
            "INVALID_INPUT",
            "Tool arguments failed schema validation",
            False,
            "Invalid input",
        ),
        _ToolResultSpec(
            "UPSTREAM_ERROR",
            "The upstream service answered with a non-success status",
            True,
            "Upstream request failed",
        ),
        _ToolResultSpec(
            "CONFIGURATION_ERROR",
            "The gateway lacks configuration needed to reach the upstream",
            False,
            "Gateway is not configured",
        ),
    )

    _JSONRPC_MAP: dict[str, _ProtocolSpec] = {spec.code: spec for spec in _PROTOCOL_SPECS}
    _TOOL_MAP: dict[str, _ToolResultSpec] = {spec.code: spec for spec in _TOOL_SPECS}

    @classmethod
    def protocol_codes(cls) -> Sequence[str]:
        return tuple(spec.code for spec in cls._PROTOCOL_SPECS)

    @classmethod
    def tool_codes(cls) -> Sequence[str]:
        return tuple(spec.code for spec in cls._TOOL_SPECS)

    @staticmethod
    def _lookup(code: str, mapping: Mapping[str, object], *, context: str) -> object:
        if code not in mapping:
            raise KeyError(f"{code} does not have a mapping for {context}")
        return mapping[code]

    @classmethod
    def jsonrpc_code(cls, code: str) -> int:
        spec = cls._lookup(code, cls._JSONRPC_MAP, context="JSON-RPC error")
        if not isinstance(spec, _ProtocolSpec):  # pragma: no cover
            raise TypeError("error mapping must resolve to _ProtocolSpec")
        return spec.jsonrpc_code

    @classmethod
    def to_jsonrpc_error(
        cls,
        code: str,
        message: str | None = None,
        *,
        data: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Materialise the ``error`` member of a JSON-RPC response."""

        spec = cls._lookup(code, cls._JSONRPC_MAP, context="JSON-RPC error")
        if not isinstance(spec, _ProtocolSpec):  # pragma: no cover
            raise TypeError("error mapping must resolve to _ProtocolSpec")
        payload: dict[str, Any] = {
            "code": spec.jsonrpc_code,
            "message": message or spec.message,
        }
        if data:
            payload["data"] = dict(data)
        return payload

    @classmethod
    def to_tool_error(cls, code: str, message: str | None = None, **details: Any) -> dict[str, Any]:
        """Materialise a tool ``result`` describing a recoverable failure."""

        spec = cls._lookup(code, cls._TOOL_MAP, context="tool result error")
        if not isinstance(spec, _ToolResultSpec):  # pragma: no cover
            raise TypeError("error mapping must resolve to _ToolResultSpec")
        error: dict[str, Any] = {
            "code": spec.code,
            "message": message or spec.message,
            "retryable": spec.retryable,
        }
        for key, value in details.items():
            if value is not None:
                error[key] = value
        return {"error": error}

    @classmethod
    def missing_input(cls, names: Sequence[str]) -> dict[str, Any]:
        """Tool result asking the caller to supply ``names``."""

        missing = list(names)
        message = "Missing required input: " + ", ".join(missing)
        payload = cls.to_tool_error("MISSING_INPUT", message, missing=missing)
        payload["needInput"] = {
            "inputs": [
                {"name": name, "message": f"Please provide a value for '{name}'."}
                for name in missing
            ]
        }
        return payload
