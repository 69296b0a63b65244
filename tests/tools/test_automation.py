"""
Unit tests for execute-automation.
"""

import json

import pytest

from thehive_mcp.context import RequestContext
from thehive_mcp.core.errors import UpstreamError
from thehive_mcp.permissions.loader import parse_yaml
from thehive_mcp.tools import run_tool
from thehive_mcp.tools.automation import AutomationTool


RESTRICTED_POLICY = """
version: "1.0"
permissions:
  tools:
    execute-automation:
      allowed: true
      analyzer_restrictions:
        mode: allow_list
        allowed: ["VirusTotal_GetReport_3_1"]
  responders:
    mode: block_list
    blocked: ["Shutdown"]
"""


@pytest.fixture
def tool():
    return AutomationTool()


def _payload(result):
    return json.loads(result.content[0].text)


class TestAutomationValidation:
    """Test operation parameters and automation permissions."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "arguments,message",
        [
            ({"operation": "run"}, "invalid operation 'run'"),
            ({"operation": "run-analyzer", "observable-id": "~o"}, "analyzer-id is required"),
            ({"operation": "run-analyzer", "analyzer-id": "A"}, "observable-id is required"),
            ({"operation": "run-responder", "entity-type": "case", "entity-id": "~1"}, "responder-id is required"),
            ({"operation": "run-responder", "responder-id": "R", "entity-id": "~1"}, "entity-type is required"),
            ({"operation": "run-responder", "responder-id": "R", "entity-type": "case"}, "entity-id is required"),
            ({"operation": "get-job-status"}, "job-id is required"),
            ({"operation": "get-action-status", "entity-type": "case", "entity-id": "~1"}, "action-id is required"),
        ],
    )
    async def test_rejected(self, tool, ctx, client, arguments, message):
        """Test missing parameters per operation."""
        result = await run_tool(tool, ctx, arguments)
        assert result.isError
        assert _payload(result)["message"].startswith(message)
        assert client.mock_calls == []

    @pytest.mark.asyncio
    async def test_analyzer_not_permitted(self, tool, client):
        """Test tool-level analyzer restrictions."""
        ctx = RequestContext(client=client, permissions=parse_yaml(RESTRICTED_POLICY))
        result = await run_tool(
            tool, ctx, {"operation": "run-analyzer", "analyzer-id": "Shodan_Host", "observable-id": "~o"}
        )
        assert _payload(result)["message"] == "analyzer 'Shodan_Host' is not permitted by your permissions configuration"
        client.create_analyzer_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_responder_blocked(self, tool, client):
        """Test the global responder block list."""
        ctx = RequestContext(client=client, permissions=parse_yaml(RESTRICTED_POLICY))
        result = await run_tool(
            tool,
            ctx,
            {"operation": "run-responder", "responder-id": "Shutdown", "entity-type": "case", "entity-id": "~1"},
        )
        assert _payload(result)["message"] == "responder 'Shutdown' is not permitted by your permissions configuration"


class TestAutomationOperations:
    """Test operations against a mocked TheHive client."""

    @pytest.mark.asyncio
    async def test_run_analyzer(self, tool, ctx, client):
        """Test a job is created on the default Cortex instance."""
        client.create_analyzer_job.return_value = {
            "_id": "~job",
            "analyzerName": "VirusTotal",
            "status": "Waiting",
            "startDate": 1705314600000,
        }
        result = await run_tool(tool, ctx, {"operation": "run-analyzer", "analyzer-id": "VT", "observable-id": "~o"})

        client.create_analyzer_job.assert_called_once_with("VT", "local", "~o", None)
        data = result.structuredContent
        assert data["analyzerName"] == "VirusTotal"
        assert data["job"]["startDate"] == "15-01-2024T10:30:00"
        assert "Job ID: ~job" in data["message"]

    @pytest.mark.asyncio
    async def test_run_responder(self, tool, ctx, client):
        """Test a responder action on a case."""
        client.create_responder_action.return_value = {"_id": "~act", "status": "Waiting", "responderName": "Mailer"}
        result = await run_tool(
            tool,
            ctx,
            {
                "operation": "run-responder",
                "responder-id": "Mailer_1_0",
                "entity-type": "case",
                "entity-id": "~1",
                "cortex-id": "cortex2",
                "parameters": {"to": "soc@example.com"},
            },
        )

        client.create_responder_action.assert_called_once_with(
            "Mailer_1_0", "case", "~1", "cortex2", {"to": "soc@example.com"}
        )
        assert result.structuredContent["message"] == "Responder action created successfully. Action ID: ~act. Status: Waiting"

    @pytest.mark.asyncio
    async def test_job_status_with_report(self, tool, ctx, client):
        """Test a finished job with its report."""
        client.get_analyzer_job.return_value = {
            "analyzerId": "VT",
            "status": "Success",
            "startDate": 1705314600000,
            "endDate": 1705314600000,
            "report": {"summary": {"taxonomies": []}},
        }
        result = await run_tool(tool, ctx, {"operation": "get-job-status", "job-id": "~job"})

        data = result.structuredContent
        assert data["status"] == "Success"
        assert data["endDate"] == "15-01-2024T10:30:00"
        assert data["message"] == "Job completed with status: Success. Report available."

    @pytest.mark.asyncio
    async def test_job_status_pending(self, tool, ctx, client):
        """Test a job without a report yet."""
        client.get_analyzer_job.return_value = {"status": "InProgress", "startDate": 0}
        result = await run_tool(tool, ctx, {"operation": "get-job-status", "job-id": "~job"})

        data = result.structuredContent
        assert data["message"] == "Job status: InProgress. No report available yet."
        assert "report" not in data

    @pytest.mark.asyncio
    async def test_action_status(self, tool, ctx, client):
        """Test the action is found among the entity's actions."""
        client.list_actions.return_value = [
            {"_id": "~other", "status": "Success"},
            {"_id": "~act", "status": "Failure", "responderId": "R", "startDate": 1705314600000},
        ]
        result = await run_tool(
            tool,
            ctx,
            {"operation": "get-action-status", "action-id": "~act", "entity-type": "alert", "entity-id": "~a"},
        )

        data = result.structuredContent
        assert data["status"] == "Failure"
        assert data["responderId"] == "R"
        client.list_actions.assert_called_once_with("alert", "~a")

    @pytest.mark.asyncio
    async def test_action_not_found(self, tool, ctx, client):
        """Test an unknown action ID."""
        client.list_actions.return_value = []
        result = await run_tool(
            tool,
            ctx,
            {"operation": "get-action-status", "action-id": "~x", "entity-type": "case", "entity-id": "~1"},
        )
        assert _payload(result)["message"] == "action with ID ~x not found for entity case:~1"

    @pytest.mark.asyncio
    async def test_upstream_failure(self, tool, ctx, client):
        """Test upstream failures name the operation."""
        client.get_analyzer_job.side_effect = UpstreamError(404, {"type": "NotFound"})
        result = await run_tool(tool, ctx, {"operation": "get-job-status", "job-id": "~job"})

        payload = _payload(result)
        assert payload["message"] == "get-job-status failed"
        assert payload["apiResponse"] == {"type": "NotFound"}
