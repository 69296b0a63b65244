"""
Protocol-level tests: an in-memory MCP client talking to the server.
"""

import json

import pytest
from mcp import types
from mcp.shared.exceptions import McpError
from mcp.shared.memory import create_connected_server_and_client_session

from thehive_mcp.context import RequestContext
from thehive_mcp.core.errors import ConfigError
from thehive_mcp.server.app import SERVER_NAME, TheHiveMcpServer
from thehive_mcp.server.context import StaticContextBuilder
from thehive_mcp.server.heartbeat import SessionHeartbeat
from thehive_mcp.tools import build_tools


@pytest.fixture
def heartbeat():
    return SessionHeartbeat(30)


@pytest.fixture
def make_server(registry, assembler, heartbeat):
    def make(ctx):
        tools = build_tools(registry, assembler)
        return TheHiveMcpServer(registry, assembler, tools, StaticContextBuilder(ctx), heartbeat=heartbeat)

    return make


class TestMcpServer:
    """Test tools, resources and prompts over the MCP protocol."""

    @pytest.mark.asyncio
    async def test_initialize_and_list(self, make_server, ctx):
        """Test the advertised tools, resources and prompts."""
        server = make_server(ctx)
        async with create_connected_server_and_client_session(server.server) as client:
            tools = await client.list_tools()
            resources = await client.list_resources()
            prompts = await client.list_prompts()

        assert {t.name for t in tools.tools} == {
            "search-entities",
            "manage-entities",
            "execute-automation",
            "get-resource",
        }
        assert any(str(r.uri) == "hive://catalog" for r in resources.resources)
        assert {p.name for p in prompts.prompts} == {"base-system-prompt", "build-filters"}
        assert server.server.name == SERVER_NAME

    @pytest.mark.asyncio
    async def test_call_tool(self, make_server, ctx, heartbeat):
        """Test a tool call and session tracking."""
        server = make_server(ctx)
        async with create_connected_server_and_client_session(server.server) as client:
            result = await client.call_tool("get-resource", {"uri": "hive://schema"})
            assert len(heartbeat) == 1

        assert result.isError is False
        assert json.loads(result.content[0].text)["category"] == "schema"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, make_server, ctx):
        """Test calling a tool that does not exist."""
        server = make_server(ctx)
        async with create_connected_server_and_client_session(server.server) as client:
            result = await client.call_tool("drop-database", {})

        assert result.isError is True
        assert json.loads(result.content[0].text)["message"] == "tool not found: drop-database"

    @pytest.mark.asyncio
    async def test_read_resource(self, make_server, ctx):
        """Test reading a packaged resource."""
        server = make_server(ctx)
        async with create_connected_server_and_client_session(server.server) as client:
            result = await client.read_resource("hive://schema/alert")

        content = result.contents[0]
        assert isinstance(content, types.TextResourceContents)
        assert content.mimeType == "application/json"
        json.loads(content.text)

    @pytest.mark.asyncio
    async def test_read_resource_auth_error(self, make_server, admin_policy):
        """Test resources report the deferred authentication error."""
        server = make_server(RequestContext(permissions=admin_policy, auth_error=ConfigError("bad credentials")))
        async with create_connected_server_and_client_session(server.server) as client:
            with pytest.raises(McpError) as exc_info:
                await client.read_resource("hive://schema/alert")

        assert exc_info.value.error.code == types.INVALID_REQUEST
        assert exc_info.value.error.message == "bad credentials"

    @pytest.mark.asyncio
    async def test_read_unknown_resource(self, make_server, ctx):
        """Test an unknown resource URI."""
        server = make_server(ctx)
        async with create_connected_server_and_client_session(server.server) as client:
            with pytest.raises(McpError) as exc_info:
                await client.read_resource("hive://nothing/here")

        assert exc_info.value.error.code == types.INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_get_prompt(self, make_server, admin_policy):
        """Test building the filter prompt over the protocol."""
        server = make_server(RequestContext(permissions=admin_policy))
        async with create_connected_server_and_client_session(server.server) as client:
            result = await client.get_prompt("build-filters", {"query": "open cases", "entity-type": "case"})
            with pytest.raises(McpError) as exc_info:
                await client.get_prompt("build-filters", {"entity-type": "case"})

        assert result.messages[-1].content.text == "open cases"
        assert exc_info.value.error.message == "query argument is required"
