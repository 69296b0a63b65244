"""
Keep-alive pings for connected MCP sessions.
"""

from __future__ import annotations

import weakref
from typing import Any

import anyio
from mcp.shared.exceptions import McpError

from ..core.logging import get_logger


logger = get_logger("thehive_mcp.server.heartbeat")


class SessionHeartbeat:
    """
    Tracks the sessions seen by request handlers and pings them at a fixed
    interval. A session whose ping fails or times out is dropped; closed
    sessions disappear on their own once garbage collected.
    """

    def __init__(self, interval_seconds: float) -> None:
        self.interval_seconds = interval_seconds
        self._sessions: "weakref.WeakSet[Any]" = weakref.WeakSet()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session: Any) -> bool:
        return session in self._sessions

    def track(self, session: Any) -> None:
        if session is None or session in self._sessions:
            return
        self._sessions.add(session)
        logger.info("Registered MCP session (%d tracked)", len(self._sessions))

    async def ping_all(self) -> None:
        for session in list(self._sessions):
            try:
                with anyio.fail_after(self.interval_seconds):
                    await session.send_ping()
            except (McpError, TimeoutError, anyio.ClosedResourceError, anyio.BrokenResourceError) as exc:
                logger.info("Dropping MCP session after failed ping: %r", exc)
                self._sessions.discard(session)

    async def run(self) -> None:
        if self.interval_seconds <= 0:
            logger.info("Heartbeat disabled")
            return
        logger.info("Heartbeat every %.1fs", self.interval_seconds)
        while True:
            await anyio.sleep(self.interval_seconds)
            await self.ping_all()
