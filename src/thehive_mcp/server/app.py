"""
The MCP server: tools, resources and prompts on a low-level ``Server``.

Every handler builds the request context for the current MCP request,
binds it to the session and request id, and runs with it set as the
current context so the confirmation gate and the completion layer can
reach the session from worker threads.
"""

from __future__ import annotations

import functools
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import anyio
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.shared.exceptions import McpError

from .. import __version__
from ..context import RequestContext, use_context
from ..core.errors import TheHiveMcpError, ValidationError
from ..core.logging import get_logger
from ..prompts import PROMPTS, PromptAssembler
from ..resources.registry import ResourceRegistry
from ..tools import Tool, ToolError, run_tool
from ..tools.base import error_result
from .heartbeat import SessionHeartbeat


logger = get_logger("thehive_mcp.server")

SERVER_NAME = "TheHiveMCP"

INSTRUCTIONS = """This server gives access to a TheHive instance: alerts, cases, tasks and observables.

Start by exploring the resources with get-resource (schemas, metadata, documentation).
Use search-entities with a natural language query to find entities, manage-entities to change them and execute-automation to run Cortex analyzers and responders.
Changes to TheHive may require your confirmation."""

ContextBuilder = Callable[[Any], RequestContext]


class TheHiveMcpServer:
    """
    Wires tools, resources and prompts to a low-level MCP ``Server``.
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        assembler: PromptAssembler,
        tools: Dict[str, Tool],
        context_builder: ContextBuilder,
        heartbeat: Optional[SessionHeartbeat] = None,
    ) -> None:
        self.registry = registry
        self.assembler = assembler
        self.tools = tools
        self.context_builder = context_builder
        self.heartbeat = heartbeat
        self.server: Server = Server(SERVER_NAME, version=__version__, instructions=INSTRUCTIONS)
        self._register()

    @asynccontextmanager
    async def request_scope(self, method: str, name: str = "") -> AsyncIterator[RequestContext]:
        """
        Build, bind and install the context for the current MCP request.
        """

        request_context = self.server.request_context
        session = request_context.session
        request_id = request_context.request_id
        if self.heartbeat is not None:
            self.heartbeat.track(session)

        logger.info("MCP request %s %s (request_id=%s)", method, name, request_id)
        ctx = self.context_builder(request_context.request).bind(session=session, request_id=request_id)
        started = time.monotonic()
        try:
            with use_context(ctx):
                yield ctx
        except Exception as exc:
            logger.error("MCP request %s %s failed: %s", method, name, exc)
            raise
        finally:
            if getattr(self.context_builder, "owns_clients", False) and ctx.client is not None:
                ctx.client.close()
            logger.debug(
                "MCP request %s %s finished in %.0f ms",
                method,
                name,
                (time.monotonic() - started) * 1000,
            )

    # Tools

    async def list_tools(self) -> List[types.Tool]:
        return [tool.definition() for tool in self.tools.values()]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> types.CallToolResult:
        tool = self.tools.get(name)
        if tool is None:
            return error_result(ToolError(f"tool not found: {name}"))
        async with self.request_scope("tools/call", name) as ctx:
            return await run_tool(tool, ctx, arguments)

    # Resources

    async def list_resources(self) -> List[types.Resource]:
        return [
            types.Resource(
                uri=descriptor.uri,
                name=descriptor.name,
                description=descriptor.description,
                mimeType=descriptor.mime_type,
            )
            for descriptor in self.registry.descriptors()
        ]

    async def read_resource(self, uri: Any) -> List[ReadResourceContents]:
        uri = str(uri)
        async with self.request_scope("resources/read", uri) as ctx:
            if ctx.auth_error is not None:
                raise _protocol_error(types.INVALID_REQUEST, str(ctx.auth_error))
            try:
                entry, text = await anyio.to_thread.run_sync(functools.partial(self.registry.read, uri, ctx))
            except ValidationError as exc:
                raise _protocol_error(types.INVALID_PARAMS, str(exc)) from exc
            except TheHiveMcpError as exc:
                raise _protocol_error(types.INTERNAL_ERROR, f"failed to read resource {uri}: {exc}") from exc
        return [ReadResourceContents(content=text, mime_type=entry.descriptor.mime_type)]

    # Prompts

    async def list_prompts(self) -> List[types.Prompt]:
        return list(PROMPTS.values())

    async def get_prompt(self, name: str, arguments: Optional[Dict[str, str]]) -> types.GetPromptResult:
        async with self.request_scope("prompts/get", name) as ctx:
            if ctx.auth_error is not None:
                raise _protocol_error(types.INVALID_REQUEST, str(ctx.auth_error))
            try:
                return await anyio.to_thread.run_sync(
                    functools.partial(self.assembler.get_prompt, ctx, name, arguments)
                )
            except ValidationError as exc:
                raise _protocol_error(types.INVALID_PARAMS, str(exc)) from exc
            except TheHiveMcpError as exc:
                raise _protocol_error(types.INTERNAL_ERROR, f"failed to build prompt {name}: {exc}") from exc

    def _register(self) -> None:
        server = self.server
        server.list_tools()(self.list_tools)
        # Arguments are checked by each tool so callers get its own messages.
        server.call_tool(validate_input=False)(self.call_tool)
        server.list_resources()(self.list_resources)
        server.read_resource()(self.read_resource)
        server.list_prompts()(self.list_prompts)
        server.get_prompt()(self.get_prompt)


def _protocol_error(code: int, message: str) -> McpError:
    return McpError(types.ErrorData(code=code, message=message))
