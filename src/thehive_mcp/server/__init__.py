"""
MCP server wiring and the stdio and streamable HTTP transports.
"""

from .app import TheHiveMcpServer
from .context import HttpContextBuilder, StaticContextBuilder, build_stdio_context
from .heartbeat import SessionHeartbeat

__all__ = [
    "HttpContextBuilder",
    "SessionHeartbeat",
    "StaticContextBuilder",
    "TheHiveMcpServer",
    "build_stdio_context",
]
