"""JSON-RPC message envelopes and request-body normalisation."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .errors import EnvelopeParseError, InvalidEnvelopeError

__all__ = [
    "BATCH_WRAPPER_KEYS",
    "BODY_WRAPPER_KEYS",
    "MessageEnvelope",
    "NormalizedBody",
    "normalize_body",
    "normalize_method",
]

# Keys used by connector gateways to wrap a batch of requests.
BATCH_WRAPPER_KEYS: tuple[str, ...] = ("requests", "messages", "batch")
# Keys used by intermediaries to nest the real request body.
BODY_WRAPPER_KEYS: tuple[str, ...] = ("body", "payload")

_MAX_UNWRAP_DEPTH = 4
_METHOD_SEPARATORS = re.compile(r"[._]")
_PROTOCOL_PREFIX = "mcp/"

METHOD_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "tool/call": "tools/call",
        "tool/list": "tools/list",
    }
)


def normalize_method(raw: str) -> str:
    """Case-fold ``raw`` and map ``.``/``_`` separators onto ``/``.

    A leading ``mcp/`` protocol prefix is dropped, so ``MCP.tools_list`` and
    ``tools/list`` name the same method.
    """

    method = _METHOD_SEPARATORS.sub("/", raw.strip().lower())
    if method.startswith(_PROTOCOL_PREFIX):
        method = method[len(_PROTOCOL_PREFIX) :]
    return METHOD_ALIASES.get(method, method)


class MessageEnvelope(BaseModel):
    """One JSON-RPC message after shape checks."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Any = Field(default=None)
    method: str | None = Field(default=None)
    params: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, message: Any) -> MessageEnvelope:
        if not isinstance(message, Mapping):
            raise InvalidEnvelopeError(
                "INVALID_REQUEST", "Invalid request: expected a JSON object"
            )
        request_id = message.get("id")
        method = message.get("method")
        if method is not None and not isinstance(method, str):
            raise InvalidEnvelopeError(
                "INVALID_REQUEST",
                "Invalid request: method must be a string",
                request_id=request_id,
            )
        raw_params = message.get("params")
        if raw_params is None:
            params: dict[str, Any] = {}
        elif isinstance(raw_params, Mapping):
            params = dict(raw_params)
        else:
            raise InvalidEnvelopeError(
                "INVALID_PARAMS",
                "Invalid params: expected object",
                request_id=request_id,
            )
        if method is not None and not method.strip():
            method = None
        return cls(id=request_id, method=method, params=params)

    @property
    def is_notification(self) -> bool:
        """Notifications carry a method and no id; they never get a response."""

        return self.method is not None and self.id is None

    @property
    def normalized_method(self) -> str | None:
        if self.method is None:
            return None
        return normalize_method(self.method)


@dataclass(frozen=True, slots=True)
class NormalizedBody:
    """Ordered messages decoded from one HTTP body."""

    messages: tuple[Any, ...]
    batched: bool


def _decode(raw: str | bytes | bytearray) -> Any:
    text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
    if not text.strip():
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise EnvelopeParseError(f"Parse error: {exc}") from exc


def _unwrap(value: Mapping[str, Any]) -> Any | None:
    if "method" in value:
        return None
    for key in BATCH_WRAPPER_KEYS + BODY_WRAPPER_KEYS:
        if key in value:
            return value[key]
    return None


def normalize_body(raw: Any) -> NormalizedBody:
    """Flatten a raw request body into an ordered sequence of messages.

    ``raw`` may be bytes, a JSON string (possibly a string holding JSON), a
    mapping, or a sequence. Connector wrapper keys are unwrapped. A body that
    cannot be decoded raises :class:`EnvelopeParseError`; an empty body is an
    empty object, which later resolves to an implicit ``initialize``.
    """

    try:
        value = _decode(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
        for _ in range(_MAX_UNWRAP_DEPTH):
            if isinstance(value, str):
                value = _decode(value)
                continue
            if isinstance(value, Mapping):
                inner = _unwrap(value)
                if inner is None:
                    break
                value = inner
                continue
            break
    except UnicodeDecodeError as exc:
        raise EnvelopeParseError(f"Parse error: {exc}") from exc

    if value is None:
        value = {}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return NormalizedBody(messages=tuple(value), batched=True)
    # Scalars pass through and are rejected per message as invalid requests.
    return NormalizedBody(messages=(value,), batched=False)
