"""
Per-request state shared by tools, resources and prompts.

One ``RequestContext`` is bound to a ``ContextVar`` for the duration of an
MCP request. Worker threads started with ``anyio.to_thread`` copy the
caller's context, so the confirmation gate sees the same record.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Any, Iterator, Optional

from .core.credentials import Credentials
from .core.errors import ConfigError
from .integrations.thehive.client import TheHiveClient
from .permissions.policy import Policy


CLIENT_NOT_CONFIGURED = "TheHive client not configured. Check THEHIVE_URL and credentials"
PERMISSIONS_NOT_CONFIGURED = "permissions not configured. Check PERMISSIONS_CONFIG"


@dataclass
class RequestContext:
    """
    Everything a handler needs to serve one MCP request.

    ``auth_error`` holds a credential failure found while building the
    context; handlers must surface it before doing any work.
    """

    client: Optional[TheHiveClient] = None
    permissions: Optional[Policy] = None
    credentials: Optional[Credentials] = None
    completion: Any = None
    auth_error: Optional[Exception] = None
    request_id: Any = None
    session: Any = None

    def require_client(self) -> TheHiveClient:
        if self.client is None:
            raise ConfigError(CLIENT_NOT_CONFIGURED)
        return self.client

    def require_permissions(self) -> Policy:
        if self.permissions is None:
            raise ConfigError(PERMISSIONS_NOT_CONFIGURED)
        return self.permissions

    def bind(self, session: Any = None, request_id: Any = None) -> "RequestContext":
        """
        Copy of this context attached to a specific MCP session and request.
        """

        return replace(self, session=session, request_id=request_id)


_current: ContextVar[Optional[RequestContext]] = ContextVar("thehive_mcp_request_context", default=None)


def current_context() -> Optional[RequestContext]:
    return _current.get()


@contextmanager
def use_context(ctx: RequestContext) -> Iterator[RequestContext]:
    token = _current.set(ctx)
    try:
        yield ctx
    finally:
        _current.reset(token)
