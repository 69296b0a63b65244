"""
Streamable HTTP transport: a FastAPI app hosting the MCP endpoint.
"""

from __future__ import annotations

import contextlib
import uuid
from typing import AsyncIterator

import anyio
import uvicorn
from fastapi import FastAPI
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .. import __version__
from ..core.logging import get_logger
from .app import TheHiveMcpServer


logger = get_logger("thehive_mcp.server.http")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdMiddleware:
    """
    Echo the caller's ``X-Request-ID`` or generate one for every response.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = Headers(scope=scope).get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
            await send(message)

        await self.app(scope, receive, send_with_request_id)


class McpEndpoint:
    """
    ASGI endpoint that hands requests to the session manager.
    """

    def __init__(self, manager: StreamableHTTPSessionManager) -> None:
        self.manager = manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.manager.handle_request(scope, receive, send)


def create_app(mcp_server: TheHiveMcpServer, endpoint_path: str = "/mcp") -> FastAPI:
    manager = StreamableHTTPSessionManager(app=mcp_server.server, stateless=False)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with manager.run():
            async with anyio.create_task_group() as tg:
                if mcp_server.heartbeat is not None:
                    tg.start_soon(mcp_server.heartbeat.run)
                logger.info("MCP endpoint ready at %s", endpoint_path)
                try:
                    yield
                finally:
                    tg.cancel_scope.cancel()
        logger.info("MCP endpoint stopped")

    app = FastAPI(
        title="TheHive MCP",
        description="Model Context Protocol server for TheHive",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(RequestIdMiddleware)

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"status": "ok", "version": __version__}

    app.add_route(endpoint_path, McpEndpoint(manager), methods=["GET", "POST", "DELETE"])
    return app


def serve_http(mcp_server: TheHiveMcpServer, host: str, port: int, endpoint_path: str, log_level: str) -> None:
    app = create_app(mcp_server, endpoint_path)
    logger.info("Starting HTTP server on %s:%d (endpoint=%s, stateless=False)", host, port, endpoint_path)
    uvicorn.run(app, host=host, port=port, log_level=log_level)
