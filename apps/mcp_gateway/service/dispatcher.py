from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from apps.mcp_gateway.logging import DispatchLogEvent, JsonLogWriter
from apps.mcp_gateway.observability import log_event

from .envelope import MessageEnvelope
from .errors import CanonicalError, InvalidEnvelopeError
from .registry import ToolRegistry
from .sessions import SessionStore

__all__ = [
    "DEFAULT_PROTOCOL_VERSION",
    "DispatchContext",
    "McpDispatcher",
    "ServerInfo",
    "make_error",
    "make_result",
]

logger = logging.getLogger("mcp_gateway.dispatch")

DEFAULT_PROTOCOL_VERSION = "2024-11-05"

_INITIALIZE = "initialize"
_INITIALIZED = "notifications/initialized"


def make_result(request_id: Any, result: Mapping[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": dict(result)}


def make_error(
    request_id: Any, code: str, message: str | None = None, **data: Any
) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": CanonicalError.to_jsonrpc_error(code, message, data=data or None),
    }


@dataclass(frozen=True, slots=True)
class ServerInfo:
    name: str = "Confluence MCP Gateway"
    version: str = "0.1.0"
    instructions: str = (
        "You can search Confluence pages by text or by label within a space. "
        "Ask for any missing inputs before calling a tool. Prefer tools over knowledge."
    )

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "version": self.version}


@dataclass(slots=True)
class DispatchContext:
    """Per-HTTP-request state shared by every message in one body."""

    session_id: str
    transport: str = "json"
    trace_id: str = field(default_factory=lambda: uuid4().hex)


@dataclass(slots=True)
class _Outcome:
    response: dict[str, Any] | None
    tool: str | None = None


class McpDispatcher:
    """Route JSON-RPC messages to protocol methods and registered tools.

    Each message is handled independently; the only shared state is the
    session id carried on the :class:`DispatchContext`. Notifications are
    executed but never answered.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        sessions: SessionStore,
        *,
        server_info: ServerInfo | None = None,
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
        log_writer: JsonLogWriter | None = None,
    ) -> None:
        self._registry = registry
        self._sessions = sessions
        self._server_info = server_info or ServerInfo()
        self._protocol_version = protocol_version
        self._log_writer = log_writer

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    def open_context(
        self, session_header: str | None, *, transport: str = "json"
    ) -> DispatchContext:
        """Resolve and touch the caller's session for one HTTP request."""

        session_id = self._sessions.resolve(session_header)
        self._sessions.touch(session_id)
        return DispatchContext(session_id=session_id, transport=transport)

    # Batch-level helpers ----------------------------------------------

    @staticmethod
    def _classify(message: Any) -> MessageEnvelope | None:
        try:
            return MessageEnvelope.from_raw(message)
        except InvalidEnvelopeError:
            return None

    def all_notifications(self, messages: Sequence[Any]) -> bool:
        """True when ``messages`` is non-empty and nothing in it expects a reply."""

        if not messages:
            return False
        for message in messages:
            envelope = self._classify(message)
            if envelope is None or not envelope.is_notification:
                return False
        return True

    def requires_session_header(self, messages: Sequence[Any]) -> bool:
        """True when any request in ``messages`` resolves to ``initialize``."""

        for message in messages:
            envelope = self._classify(message)
            if envelope is None or envelope.is_notification:
                continue
            if envelope.normalized_method in (None, _INITIALIZE):
                return True
        return False

    async def iter_responses(
        self, messages: Sequence[Any], context: DispatchContext
    ) -> AsyncIterator[dict[str, Any]]:
        for message in messages:
            response = await self.handle(message, context)
            if response is not None:
                yield response

    async def dispatch(
        self, messages: Sequence[Any], context: DispatchContext
    ) -> list[dict[str, Any]]:
        return [response async for response in self.iter_responses(messages, context)]

    # Single message ---------------------------------------------------

    async def handle(
        self, message: Any, context: DispatchContext
    ) -> dict[str, Any] | None:
        started = time.perf_counter()
        try:
            envelope = MessageEnvelope.from_raw(message)
        except InvalidEnvelopeError as exc:
            response = make_error(exc.request_id, exc.canonical, str(exc))
            self._record(context, None, exc.request_id, response, started)
            return response

        method = envelope.normalized_method or _INITIALIZE
        outcome = await self._execute(method, envelope, context)
        if envelope.is_notification:
            self._record(context, method, None, None, started, tool=outcome.tool)
            return None
        self._record(context, method, envelope.id, outcome.response, started, tool=outcome.tool)
        return outcome.response

    async def _execute(
        self, method: str, envelope: MessageEnvelope, context: DispatchContext
    ) -> _Outcome:
        request_id = envelope.id
        if method == _INITIALIZE:
            return _Outcome(make_result(request_id, self._initialize_result(context)))
        if method in (_INITIALIZED, "initialized"):
            return _Outcome(make_result(request_id, {"acknowledged": True}))
        if method == "tools/list":
            return _Outcome(make_result(request_id, {"tools": self._registry.descriptors()}))
        if method == "tools/call":
            return await self._call_tool(envelope)
        if method == "ping":
            return _Outcome(make_result(request_id, {}))
        return _Outcome(
            make_error(request_id, "METHOD_NOT_FOUND", f"Unknown method: {envelope.method}")
        )

    def _initialize_result(self, context: DispatchContext) -> dict[str, Any]:
        return {
            "protocolVersion": self._protocol_version,
            "serverInfo": self._server_info.to_dict(),
            "capabilities": {"tools": {"list": True, "call": True}},
            "tools": self._registry.descriptors(),
            "instructions": self._server_info.instructions,
            "sessionId": context.session_id,
        }

    async def _call_tool(self, envelope: MessageEnvelope) -> _Outcome:
        request_id = envelope.id
        params = envelope.params
        name = params.get("name")
        if not isinstance(name, str) or not name.strip():
            return _Outcome(
                make_error(request_id, "INVALID_PARAMS", "Invalid params: name must be a string")
            )
        raw_arguments = params.get("arguments")
        if raw_arguments is None:
            arguments: dict[str, Any] = {}
        elif isinstance(raw_arguments, Mapping):
            arguments = dict(raw_arguments)
        else:
            return _Outcome(
                make_error(
                    request_id,
                    "INVALID_PARAMS",
                    "Invalid params: arguments must be an object",
                ),
                tool=name,
            )

        tool = self._registry.resolve(name)
        if tool is None:
            return _Outcome(
                make_error(request_id, "METHOD_NOT_FOUND", f"Tool not found: {name}"),
                tool=name,
            )

        rejection = self._registry.check_arguments(tool, arguments)
        if rejection is not None:
            return _Outcome(make_result(request_id, rejection), tool=tool.name)

        try:
            result = await tool.handler(arguments)
        except Exception:
            logger.exception("Tool %s failed", tool.name)
            return _Outcome(
                make_error(request_id, "INTERNAL_ERROR", f"Tool {tool.name} failed"),
                tool=tool.name,
            )
        return _Outcome(make_result(request_id, result), tool=tool.name)

    # Logging ----------------------------------------------------------

    def _record(
        self,
        context: DispatchContext,
        method: str | None,
        request_id: Any,
        response: Mapping[str, Any] | None,
        started: float,
        *,
        tool: str | None = None,
    ) -> None:
        duration_ms = round((time.perf_counter() - started) * 1000, 3)
        if response is None:
            status = "notification"
        elif "error" in response:
            status = "error"
        else:
            status = "ok"
        error = response.get("error") if response is not None else None
        log_event(
            trace_id=context.trace_id,
            transport=context.transport,
            status=status,
            method=method,
            session_id=context.session_id,
            request_id=request_id,
            tool=tool,
            duration_ms=duration_ms,
        )
        if self._log_writer is None:
            return
        self._log_writer.write(
            DispatchLogEvent(
                ts=datetime.now(UTC),
                trace_id=context.trace_id,
                session_id=context.session_id,
                request_id=request_id,
                method=method,
                transport=context.transport,
                status=status,
                duration_ms=duration_ms,
                tool=tool,
                error=error,
            )
        )
