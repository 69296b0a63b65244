"""
Unit tests for the checks every tool call goes through.
"""

import json

import pytest

from thehive_mcp.context import RequestContext
from thehive_mcp.core.errors import ConfigError, UpstreamError
from thehive_mcp.tools import build_tools, run_tool
from thehive_mcp.tools.errors import ToolError, from_exception


def _error(result):
    assert result.isError is True
    return json.loads(result.content[0].text)


@pytest.fixture
def tools(registry, assembler):
    return build_tools(registry, assembler)


class TestToolError:
    """Test the structured error payload."""

    def test_to_dict(self):
        """Test optional fields appear only when set."""
        assert ToolError("boom").to_dict() == {"error": True, "message": "boom"}
        error = ToolError("boom").hint("try again").schema("case", "create").api({"type": "BadRequest"})
        assert error.to_dict() == {
            "error": True,
            "message": "boom",
            "hints": ["try again", "Use get-resource 'hive://schema/case/create' for field definitions"],
            "apiResponse": {"type": "BadRequest"},
        }

    def test_from_upstream(self):
        """Test TheHive's body is kept as the API response."""
        error = from_exception(UpstreamError(400, {"message": "bad"}), "failed to create case")
        data = error.to_dict()
        assert data["message"] == "failed to create case"
        assert data["cause"].startswith("TheHive error 400")
        assert data["apiResponse"] == {"message": "bad"}


class TestRunTool:
    """Test the ordering of checks in front of every tool."""

    @pytest.mark.asyncio
    async def test_auth_error_first(self, tools, admin_policy):
        """Test a deferred authentication error is reported before anything else."""
        ctx = RequestContext(permissions=admin_policy, auth_error=ConfigError("TheHive authentication failed: 401"))
        result = await run_tool(tools["get-resource"], ctx, {})
        assert _error(result)["message"] == "TheHive authentication failed: 401"

    @pytest.mark.asyncio
    async def test_tool_not_permitted(self, tools, client, read_only_policy):
        """Test the policy's tool switch."""
        ctx = RequestContext(client=client, permissions=read_only_policy)
        result = await run_tool(tools["manage-entities"], ctx, {"operation": "delete", "entity-type": "case"})
        assert _error(result)["message"] == "tool manage-entities is not permitted by your permissions configuration"
        client.delete_entity.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_parameters(self, tools, ctx):
        """Test arguments of the wrong type."""
        result = await run_tool(tools["search-entities"], ctx, {"entity-type": "case", "query": "x", "limit": "many"})
        error = _error(result)
        assert error["message"] == "invalid parameters for search-entities"
        assert "limit" in error["cause"]

    @pytest.mark.asyncio
    async def test_missing_permissions(self, tools, client):
        """Test a context without a policy."""
        result = await run_tool(tools["get-resource"], RequestContext(client=client), {})
        assert _error(result)["message"].startswith("permissions not configured")

    @pytest.mark.asyncio
    async def test_success(self, tools, ctx):
        """Test a successful call carries text and structured content."""
        result = await run_tool(tools["get-resource"], ctx, {"uri": "hive://schema"})
        assert result.isError is False
        assert result.structuredContent["category"] == "schema"
        assert json.loads(result.content[0].text) == result.structuredContent

    @pytest.mark.asyncio
    async def test_unknown_arguments_ignored(self, tools, ctx):
        """Test arguments a tool does not define are ignored rather than rejected."""
        result = await run_tool(tools["get-resource"], ctx, {"uri": "hive://schema", "verbose": True})
        assert result.isError is False
        assert result.structuredContent["category"] == "schema"

    def test_definitions(self, tools):
        """Test tool schemas use the hyphenated parameter names."""
        definition = tools["search-entities"].definition()
        assert definition.name == "search-entities"
        assert "entity-type" in definition.inputSchema["properties"]
        assert definition.inputSchema["required"] == ["entity-type", "query"]
        assert set(tools) == {"search-entities", "manage-entities", "execute-automation", "get-resource"}
