from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from apps.mcp_gateway.config import GatewaySettings
from apps.mcp_gateway.logging import JsonLogWriter
from apps.mcp_gateway.service.dispatcher import McpDispatcher
from apps.mcp_gateway.service.sessions import SessionStore
from apps.wiki_tools import ConfluenceClient, build_registry, client_from_settings

from .emitter import SESSION_HEADER
from .routes import build_router

__all__ = ["build_dispatcher", "create_app"]

logger = logging.getLogger("mcp_gateway.http")


def build_dispatcher(
    settings: GatewaySettings,
    *,
    client: ConfluenceClient | None = None,
    log_writer: JsonLogWriter | None = None,
) -> McpDispatcher:
    """Wire the tool registry and session store selected by ``settings``."""

    registry = build_registry(settings, client=client)
    sessions = SessionStore(ttl_seconds=settings.session_ttl_seconds)
    return McpDispatcher(registry, sessions, log_writer=log_writer)


def create_app(
    settings: GatewaySettings | None = None,
    *,
    client: ConfluenceClient | None = None,
    enable_openapi: bool = False,
) -> FastAPI:
    """Return a FastAPI application exposing the MCP gateway endpoints.

    ``client`` overrides the Confluence client built from ``settings``; tests
    pass one backed by ``httpx.MockTransport``.
    """

    settings = settings or GatewaySettings()
    upstream = client if client is not None else client_from_settings(settings)
    log_writer = JsonLogWriter(settings.log_dir) if settings.log_dir is not None else None
    dispatcher = build_dispatcher(settings, client=upstream, log_writer=log_writer)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "MCP gateway ready on %s:%s with tools: %s",
            settings.host,
            settings.port,
            ", ".join(dispatcher.registry.names),
        )
        try:
            yield
        finally:
            if upstream is not None:
                await upstream.aclose()
            if log_writer is not None:
                log_writer.close()

    docs_url = "/docs" if enable_openapi else None
    openapi_url = "/openapi.json" if enable_openapi else None
    app = FastAPI(
        title="Confluence MCP Gateway",
        docs_url=docs_url,
        openapi_url=openapi_url,
        lifespan=lifespan,
    )

    origins = list(settings.allowed_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=bool(origins),
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[SESSION_HEADER],
    )

    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Request error on %s %s", request.method, request.url.path, exc_info=exc
        )
        return JSONResponse({"error": "Internal Server Error"}, status_code=500)

    app.add_exception_handler(Exception, unhandled_error)
    app.include_router(build_router(dispatcher, settings))
    app.state.dispatcher = dispatcher
    app.state.settings = settings
    return app
