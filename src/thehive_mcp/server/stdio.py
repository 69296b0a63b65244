"""
stdio transport. stdout carries MCP frames only; logs go to stderr.
"""

from __future__ import annotations

import anyio
from mcp.server.stdio import stdio_server

from ..core.logging import get_logger
from .app import TheHiveMcpServer


logger = get_logger("thehive_mcp.server.stdio")


async def run_stdio(mcp_server: TheHiveMcpServer) -> None:
    server = mcp_server.server
    logger.info("Starting stdio server")
    async with stdio_server() as (read_stream, write_stream):
        async with anyio.create_task_group() as tg:
            if mcp_server.heartbeat is not None:
                tg.start_soon(mcp_server.heartbeat.run)
            await server.run(read_stream, write_stream, server.create_initialization_options())
            tg.cancel_scope.cancel()
    logger.info("stdio server stopped")


def serve_stdio(mcp_server: TheHiveMcpServer) -> None:
    anyio.run(run_stdio, mcp_server)
