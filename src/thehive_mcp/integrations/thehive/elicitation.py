"""
Human-in-the-loop confirmation of mutating TheHive calls via MCP elicitation.

The HTTP adapter runs in a worker thread (tool handlers call TheHive through
``anyio.to_thread``), so ``confirm_with_current_session`` hops back onto the
event loop with ``anyio.from_thread.run`` to talk to the MCP client. The
thread inherits the caller's context variables, which is how it finds the
session of the request that triggered the call.
"""

from __future__ import annotations

import json
from typing import Any, Optional
from urllib.parse import urlsplit

import anyio.from_thread
import requests
from mcp import types
from mcp.shared.exceptions import McpError

from ...core.errors import ElicitationDeclined, IntegrationError
from ...core.logging import get_logger


logger = get_logger("thehive_mcp.integrations.thehive.elicitation")

MUTATING_METHODS = frozenset({"POST", "PATCH", "DELETE"})
QUERY_ENDPOINT = "/api/v1/query"
MAX_RAW_BODY = 500


def requires_confirmation(method: str, url: str) -> bool:
    """
    True for POST/PATCH/DELETE calls, except the read-only query endpoint.
    """

    if method.upper() not in MUTATING_METHODS:
        return False
    path = urlsplit(url).path
    return not path.endswith(QUERY_ENDPOINT)


def format_request_details(method: str, url: str, body: bytes, content_type: str = "") -> str:
    lines = [f"Method: {method}", f"URL: {url}"]
    if not body:
        lines.append("(No payload)")
        return "\n".join(lines)

    lines.append("Payload:")
    text = body.decode("utf-8", errors="replace")
    if "application/json" in content_type.lower():
        try:
            lines.append(json.dumps(json.loads(text), indent=2, ensure_ascii=False))
        except ValueError:
            lines.append(text)
    else:
        if len(body) > MAX_RAW_BODY:
            text = body[:MAX_RAW_BODY].decode("utf-8", errors="replace") + "... (truncated)"
        lines.append(text)
    return "\n".join(lines)


def confirmation_schema(method: str) -> dict:
    return {
        "type": "object",
        "properties": {
            "confirm": {
                "type": "boolean",
                "description": f"Confirm execution of {method} request",
            },
        },
        "required": ["confirm"],
    }


def client_supports_elicitation(session: Any) -> bool:
    return session.check_client_capability(
        types.ClientCapabilities(elicitation=types.ElicitationCapability())
    )


async def request_confirmation(
    session: Any,
    method: str,
    url: str,
    body: bytes,
    content_type: str = "",
    related_request_id: Optional[types.RequestId] = None,
) -> None:
    """
    Ask the MCP client to confirm a call. Returns when the call may proceed.

    Clients without the elicitation capability are let through; a decline
    or cancel raises ``ElicitationDeclined``; anything unexpected fails
    closed.
    """

    if not client_supports_elicitation(session):
        logger.warning(
            "Client does not support elicitation, allowing request by default: %s %s",
            method,
            url,
        )
        return

    details = format_request_details(method, url, body, content_type)
    logger.info("Requesting elicitation from user: %s %s", method, url)

    try:
        result = await session.elicit(
            f"Confirm {method} request to TheHive API?\n\n{details}",
            confirmation_schema(method),
            related_request_id,
        )
    except McpError as exc:
        if exc.error.code == types.METHOD_NOT_FOUND:
            logger.warning(
                "Client rejected elicitation as unsupported, allowing request: %s %s",
                method,
                url,
            )
            return
        raise IntegrationError(
            f"elicitation request failed: {exc} for request details: {details}"
        ) from exc

    if result.action == "accept":
        content = result.content or {}
        if content.get("confirm") is False:
            logger.info("User answered no to request: %s %s", method, url)
            raise ElicitationDeclined("request declined by user")
        logger.info("User confirmed request: %s %s", method, url)
        return
    if result.action == "decline":
        logger.info("User declined request: %s %s", method, url)
        raise ElicitationDeclined("request declined by user")
    if result.action == "cancel":
        logger.info("User cancelled request: %s %s", method, url)
        raise ElicitationDeclined("request cancelled by user")

    raise IntegrationError(f"unexpected elicitation response action: {result.action}")


def confirm_with_current_session(request: requests.PreparedRequest) -> None:
    """
    ``ConfirmFn`` used in production: confirm through the MCP session bound
    to the current request context.
    """

    from ...context import current_context

    ctx = current_context()
    if ctx is None or ctx.session is None:
        logger.warning(
            "No MCP session for confirmation, allowing request: %s %s",
            request.method,
            request.url,
        )
        return

    body = request.body or b""
    if isinstance(body, str):
        body = body.encode("utf-8")

    anyio.from_thread.run(
        request_confirmation,
        ctx.session,
        request.method or "",
        request.url or "",
        body,
        request.headers.get("Content-Type", ""),
        ctx.request_id,
    )
