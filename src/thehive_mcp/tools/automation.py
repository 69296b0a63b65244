"""
execute-automation: run Cortex analyzers and responders through TheHive
and follow their jobs and actions.
"""

from __future__ import annotations

import functools
from typing import Any, Dict, Optional

import anyio
from pydantic import ConfigDict, Field

from ..core.errors import AuthorizationError, ElicitationDeclined, TheHiveMcpError
from ..core.logging import get_logger
from ..permissions.policy import EXECUTE_AUTOMATION
from ..shaping import ENTITY_TYPES, parse_date_fields
from .base import Tool, ToolParams
from .errors import ToolError, from_exception


logger = get_logger("thehive_mcp.tools.automation")

RUN_ANALYZER = "run-analyzer"
RUN_RESPONDER = "run-responder"
GET_JOB_STATUS = "get-job-status"
GET_ACTION_STATUS = "get-action-status"
OPERATIONS = (RUN_ANALYZER, RUN_RESPONDER, GET_JOB_STATUS, GET_ACTION_STATUS)

DEFAULT_CORTEX_ID = "local"

DESCRIPTION = """Execute Cortex automation in TheHive.

Operations:
- run-analyzer: run an analyzer (analyzer-id) on an observable (observable-id). Returns the job to follow with get-job-status.
- run-responder: run a responder (responder-id) on an entity (entity-type, entity-id).
- get-job-status: status and report of an analyzer job (job-id).
- get-action-status: status of a responder action (action-id) on its entity (entity-type, entity-id).

Available analyzers: get-resource 'hive://metadata/automation/analyzers'.
Available responders: get-resource 'hive://metadata/automation/responders?entityType=<type>&entityId=<id>'.
Only analyzers and responders allowed by your permissions configuration can be run."""


class AutomationParams(ToolParams):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={"required": ["operation"]},
    )

    operation: str = Field("", description="The operation to perform.", json_schema_extra={"enum": list(OPERATIONS)})
    analyzer_id: str = Field(
        "",
        alias="analyzer-id",
        description="Analyzer ID for run-analyzer. See hive://metadata/automation/analyzers",
    )
    responder_id: str = Field(
        "",
        alias="responder-id",
        description="Responder ID for run-responder. See hive://metadata/automation/responders",
    )
    cortex_id: str = Field(
        DEFAULT_CORTEX_ID,
        alias="cortex-id",
        description="Cortex instance to run the analyzer or responder on.",
    )
    observable_id: str = Field("", alias="observable-id", description="Observable to analyze for run-analyzer.")
    entity_type: str = Field(
        "",
        alias="entity-type",
        description="Entity type for run-responder and get-action-status.",
        json_schema_extra={"enum": list(ENTITY_TYPES)},
    )
    entity_id: str = Field("", alias="entity-id", description="Entity ID for run-responder and get-action-status.")
    job_id: str = Field("", alias="job-id", description="Job ID for get-job-status.")
    action_id: str = Field("", alias="action-id", description="Action ID for get-action-status.")
    parameters: Optional[Dict[str, Any]] = Field(
        None,
        description="Optional analyzer or responder configuration.",
    )


class AutomationTool(Tool[AutomationParams]):
    name = EXECUTE_AUTOMATION
    description = DESCRIPTION
    params_model = AutomationParams

    def validate_permissions(self, ctx: Any, params: AutomationParams) -> None:
        policy = ctx.require_permissions()
        if params.operation == RUN_ANALYZER and params.analyzer_id:
            if not policy.is_analyzer_allowed(params.analyzer_id, self.name):
                raise AuthorizationError(
                    f"analyzer '{params.analyzer_id}' is not permitted by your permissions configuration"
                )
        if params.operation == RUN_RESPONDER and params.responder_id:
            if not policy.is_responder_allowed(params.responder_id, self.name):
                raise AuthorizationError(
                    f"responder '{params.responder_id}' is not permitted by your permissions configuration"
                )

    def validate_params(self, params: AutomationParams) -> None:
        operation = params.operation
        if operation not in OPERATIONS:
            raise ToolError(
                f"invalid operation '{operation}'. Must be one of: "
                "'run-analyzer', 'run-responder', 'get-job-status', 'get-action-status'"
            )
        params.cortex_id = params.cortex_id or DEFAULT_CORTEX_ID

        if operation == RUN_ANALYZER:
            if not params.analyzer_id:
                raise ToolError("analyzer-id is required for run-analyzer operations").hint(
                    "Get available analyzers from get-resource 'hive://metadata/automation/analyzers'"
                )
            if not params.observable_id:
                raise ToolError("observable-id is required for run-analyzer operations")
        elif operation == RUN_RESPONDER:
            if not params.responder_id:
                raise ToolError("responder-id is required for run-responder operations").hint(
                    "Get available responders from get-resource "
                    "'hive://metadata/automation/responders?entityType=<type>&entityId=<id>'"
                )
            self._require_entity(params)
        elif operation == GET_JOB_STATUS:
            if not params.job_id:
                raise ToolError("job-id is required for get-job-status operations")
        else:
            if not params.action_id:
                raise ToolError("action-id is required for get-action-status operations")
            self._require_entity(params)

    @staticmethod
    def _require_entity(params: AutomationParams) -> None:
        if params.entity_type not in ENTITY_TYPES:
            raise ToolError(
                f"entity-type is required for {params.operation} operations. "
                "Must be one of: 'case', 'alert', 'task', 'observable'"
            )
        if not params.entity_id:
            raise ToolError(f"entity-id is required for {params.operation} operations")

    async def handle(self, ctx: Any, params: AutomationParams) -> Dict[str, Any]:
        client = ctx.require_client()
        logger.info(
            "execute-automation %s (analyzer=%s, responder=%s, cortex=%s)",
            params.operation,
            params.analyzer_id,
            params.responder_id,
            params.cortex_id,
        )
        operation = getattr(self, "_" + params.operation.replace("-", "_"))
        try:
            return await anyio.to_thread.run_sync(functools.partial(operation, client, params))
        except ElicitationDeclined:
            raise
        except TheHiveMcpError as exc:
            raise from_exception(exc, f"{params.operation} failed").hint(
                "Check that the IDs are correct and that Cortex is reachable from TheHive"
            ) from exc

    def _run_analyzer(self, client: Any, params: AutomationParams) -> Dict[str, Any]:
        job = client.create_analyzer_job(
            params.analyzer_id, params.cortex_id, params.observable_id, params.parameters
        ) or {}
        job_id = job.get("_id", "")
        logger.info("Analyzer job %s created for %s (%s)", job_id, params.analyzer_id, job.get("status"))
        return {
            "operation": RUN_ANALYZER,
            "analyzerId": params.analyzer_id,
            "analyzerName": job.get("analyzerName", ""),
            "job": parse_date_fields(job),
            "message": f"Analyzer job created successfully. Job ID: {job_id}. Use get-job-status to check progress.",
        }

    def _run_responder(self, client: Any, params: AutomationParams) -> Dict[str, Any]:
        action = client.create_responder_action(
            params.responder_id,
            params.entity_type,
            params.entity_id,
            params.cortex_id,
            params.parameters,
        ) or {}
        action_id = action.get("_id", "")
        status = action.get("status", "")
        logger.info("Responder action %s created for %s (%s)", action_id, params.responder_id, status)
        return {
            "operation": RUN_RESPONDER,
            "responderId": params.responder_id,
            "responderName": action.get("responderName", ""),
            "action": parse_date_fields(action),
            "message": f"Responder action created successfully. Action ID: {action_id}. Status: {status}",
        }

    def _get_job_status(self, client: Any, params: AutomationParams) -> Dict[str, Any]:
        job = client.get_analyzer_job(params.job_id) or {}
        status = job.get("status", "")
        result: Dict[str, Any] = {
            "operation": GET_JOB_STATUS,
            "jobId": params.job_id,
            "analyzerId": job.get("analyzerId", ""),
            "analyzerName": job.get("analyzerName", ""),
            "status": status,
            "startDate": job.get("startDate", 0),
        }
        if job.get("endDate"):
            result["endDate"] = job["endDate"]
        if job.get("report"):
            result["report"] = job["report"]
            result["message"] = f"Job completed with status: {status}. Report available."
        else:
            result["message"] = f"Job status: {status}. No report available yet."
        return parse_date_fields(result)

    def _get_action_status(self, client: Any, params: AutomationParams) -> Dict[str, Any]:
        actions = client.list_actions(params.entity_type, params.entity_id) or []
        for action in actions:
            if action.get("_id") == params.action_id:
                return parse_date_fields(
                    {
                        "operation": GET_ACTION_STATUS,
                        "actionId": params.action_id,
                        "responderId": action.get("responderId", ""),
                        "responderName": action.get("responderName", ""),
                        "status": action.get("status", ""),
                        "startDate": action.get("startDate", 0),
                        "endDate": action.get("endDate"),
                        "report": action.get("report"),
                    }
                )
        raise ToolError(
            f"action with ID {params.action_id} not found for entity {params.entity_type}:{params.entity_id}"
        ).hint("Check the action ID returned by run-responder")
