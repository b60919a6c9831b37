from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from apps.mcp_gateway.config import GatewaySettings
from apps.mcp_gateway.service.dispatcher import McpDispatcher, make_error
from apps.mcp_gateway.service.envelope import normalize_body
from apps.mcp_gateway.service.errors import EnvelopeParseError

from .emitter import SESSION_HEADER, keepalive_stream, render_json, render_stream
from .negotiation import accepts_event_stream, prefers_event_stream

__all__ = ["MCP_PATHS", "build_router"]

logger = logging.getLogger("mcp_gateway.http")

# Connector gateways insert a connection and/or API name segment before /mcp.
MCP_PATHS: tuple[str, ...] = (
    "/mcp",
    "/{connection_id}/mcp",
    "/apim/{api_name}/mcp",
    "/apim/{api_name}/{connection_id}/mcp",
)


async def _one(response: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
    yield response


def _too_large() -> JSONResponse:
    return JSONResponse(
        {"error": "Payload Too Large"},
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    )


def build_router(dispatcher: McpDispatcher, settings: GatewaySettings) -> APIRouter:
    router = APIRouter()

    async def post_mcp(request: Request) -> Response:
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > settings.max_body_bytes:
            return _too_large()
        # Chunked uploads carry no length; count bytes as they arrive.
        chunks: list[bytes] = []
        received = 0
        async for chunk in request.stream():
            received += len(chunk)
            if received > settings.max_body_bytes:
                return _too_large()
            chunks.append(chunk)
        raw = b"".join(chunks)

        stream = prefers_event_stream(request.headers.get("accept"))
        context = dispatcher.open_context(
            request.headers.get(SESSION_HEADER),
            transport="stream" if stream else "json",
        )

        try:
            body = normalize_body(raw)
        except EnvelopeParseError as exc:
            logger.info("Rejecting undecodable body: %s", exc)
            error = make_error(None, "PARSE_ERROR", str(exc))
            if stream:
                return render_stream(request, _one(error))
            return JSONResponse(error)

        messages = body.messages
        if not messages:
            if stream:
                return render_stream(request, dispatcher.iter_responses((), context))
            return JSONResponse(
                make_error(None, "INVALID_REQUEST", "Invalid request: empty batch")
            )

        if dispatcher.all_notifications(messages):
            await dispatcher.dispatch(messages, context)
            return Response(status_code=status.HTTP_202_ACCEPTED)

        session_id = context.session_id if dispatcher.requires_session_header(messages) else None
        if stream:
            return render_stream(
                request,
                dispatcher.iter_responses(messages, context),
                session_id=session_id,
            )
        responses = await dispatcher.dispatch(messages, context)
        return render_json(responses, batched=body.batched, session_id=session_id)

    async def get_mcp(request: Request) -> Response:
        if not accepts_event_stream(request.headers.get("accept")):
            return PlainTextResponse(
                "Method Not Allowed", status_code=status.HTTP_405_METHOD_NOT_ALLOWED
            )
        return keepalive_stream(request, interval_seconds=settings.sse_keepalive_seconds)

    for path in MCP_PATHS:
        router.add_api_route(path, post_mcp, methods=["POST"], include_in_schema=False)
        router.add_api_route(path, get_mcp, methods=["GET"], include_in_schema=False)

    @router.get("/healthz", response_class=PlainTextResponse)
    def health() -> str:
        return "ok"

    @router.get("/", response_class=PlainTextResponse)
    def root() -> str:
        return "ok"

    return router
