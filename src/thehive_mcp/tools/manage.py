"""
manage-entities: create, update, delete, comment on, promote and merge
TheHive entities.

Every mutating call goes through the confirmation gate on the upstream
client, so the user may decline it. A declined confirmation stops the whole
operation; other per-id failures of batch operations are reported next to
the id and the batch carries on.
"""

from __future__ import annotations

import functools
from typing import Any, Callable, Dict, List, Optional

import anyio
from pydantic import ConfigDict, Field

from ..core.errors import AuthorizationError, ElicitationDeclined, IntegrationError, TheHiveMcpError
from ..core.logging import get_logger
from ..permissions.policy import ENTITY_OPERATIONS, MANAGE_ENTITIES
from ..shaping import (
    ENTITY_ALERT,
    ENTITY_CASE,
    ENTITY_OBSERVABLE,
    ENTITY_TASK,
    ENTITY_TYPES,
    parse_date_fields,
    shape_entity,
)
from ..translation.dates import translate_dates_to_timestamps
from .base import Tool, ToolParams
from .errors import ToolError, from_exception


logger = get_logger("thehive_mcp.tools.manage")

DESCRIPTION = """Create, update, delete, comment on, promote or merge entities in TheHive.

Operations:
- create: entity-data is required. Tasks need the parent case ID and observables the parent case or alert ID in entity-ids (exactly one).
- update: entity-ids and entity-data are required. The same data is applied to every ID.
- delete: entity-ids are required. This is irreversible.
- comment: entity-ids and comment are required. Adds a comment to cases and a task log to tasks.
- promote: turn one alert (entity-ids) into a case. entity-data may carry case fields such as caseTemplate.
- merge: cases (at least 2 IDs in entity-ids), alerts into a case (entity-ids plus target-id), or deduplicate the observables of a case (target-id).

Dates in entity-data may be written as YYYY-MM-DDTHH:MM:SS; they are converted to timestamps.
Read get-resource 'hive://schema/<entity>/create' or 'hive://schema/<entity>/update' for the accepted fields.
Mutating requests may ask you to confirm them before they are sent."""


class ManageParams(ToolParams):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={"required": ["operation", "entity-type"]},
    )

    operation: str = Field(
        "",
        description="Operation to perform.",
        json_schema_extra={"enum": list(ENTITY_OPERATIONS)},
    )
    entity_type: str = Field(
        "",
        alias="entity-type",
        description="Type of entity to act on.",
        json_schema_extra={"enum": list(ENTITY_TYPES)},
    )
    entity_ids: List[str] = Field(
        default_factory=list,
        alias="entity-ids",
        description="Entity IDs for update, delete, comment, promote and merge; the parent ID for task and observable creation.",
    )
    entity_data: Optional[Dict[str, Any]] = Field(
        None,
        alias="entity-data",
        description="Entity fields for create, update and promote, as described by the entity schema.",
    )
    comment: str = Field("", description="Comment text (case comment or task log).")
    target_id: str = Field(
        "",
        alias="target-id",
        description="Case ID to merge alerts into, or whose observables to deduplicate.",
    )


class ManageTool(Tool[ManageParams]):
    name = MANAGE_ENTITIES
    description = DESCRIPTION
    params_model = ManageParams

    def validate_permissions(self, ctx: Any, params: ManageParams) -> None:
        _check_choices(params)
        policy = ctx.require_permissions()
        if not policy.is_entity_operation_allowed(params.entity_type, params.operation):
            raise AuthorizationError(
                f"operation '{params.operation}' on entity type '{params.entity_type}' "
                "is not permitted by your permissions configuration"
            )

    def validate_params(self, params: ManageParams) -> None:
        _check_choices(params)
        _VALIDATORS[params.operation](params)

    async def handle(self, ctx: Any, params: ManageParams) -> Dict[str, Any]:
        client = ctx.require_client()
        logger.info(
            "manage-entities %s on %s (ids=%s, data=%s)",
            params.operation,
            params.entity_type,
            params.entity_ids,
            params.entity_data is not None,
        )
        operation = getattr(self, f"_{params.operation}")
        return await anyio.to_thread.run_sync(functools.partial(operation, client, params))

    # Operations run in a worker thread so the confirmation gate can wait
    # on the event loop.

    def _create(self, client: Any, params: ManageParams) -> Dict[str, Any]:
        entity = params.entity_type
        data = translate_dates_to_timestamps(dict(params.entity_data or {}))

        try:
            if entity == ENTITY_ALERT:
                result = client.create_alert(data)
            elif entity == ENTITY_CASE:
                result = client.create_case(data)
            elif entity == ENTITY_TASK:
                result = client.create_task_in_case(params.entity_ids[0], data)
            else:
                result = self._create_observable(client, params.entity_ids[0], data)
        except ElicitationDeclined:
            raise
        except TheHiveMcpError as exc:
            raise (
                from_exception(exc, f"failed to create {entity}")
                .hint("Check required fields and permissions")
                .schema(entity, "create")
            ) from exc

        return {"operation": "create", "entityType": entity, "result": shape_entity(result, entity)}

    @staticmethod
    def _create_observable(client: Any, parent_id: str, data: Dict[str, Any]) -> Any:
        try:
            return client.create_observable_in_case(parent_id, data)
        except ElicitationDeclined:
            raise
        except TheHiveMcpError as exc:
            logger.info("Observable creation in case %s failed (%s), trying alert", parent_id, exc)
            case_error = exc
        try:
            return client.create_observable_in_alert(parent_id, data)
        except ElicitationDeclined:
            raise
        except TheHiveMcpError as exc:
            raise IntegrationError(
                f"no case or alert accepted the observable for {parent_id}: "
                f"as case: {case_error}; as alert: {exc}"
            ) from exc

    def _update(self, client: Any, params: ManageParams) -> Dict[str, Any]:
        data = translate_dates_to_timestamps(dict(params.entity_data or {}))

        def update(entity_id: str) -> Dict[str, Any]:
            client.update_entity(params.entity_type, entity_id, data)
            return {"id": entity_id, "result": "updated"}

        return self._batch(params, update)

    def _delete(self, client: Any, params: ManageParams) -> Dict[str, Any]:
        def delete(entity_id: str) -> Dict[str, Any]:
            client.delete_entity(params.entity_type, entity_id)
            return {"id": entity_id, "deleted": True}

        return self._batch(params, delete)

    def _comment(self, client: Any, params: ManageParams) -> Dict[str, Any]:
        def comment(entity_id: str) -> Dict[str, Any]:
            if params.entity_type == ENTITY_CASE:
                result = client.comment_case(entity_id, params.comment)
            else:
                result = client.add_task_log(entity_id, params.comment)
            if isinstance(result, dict):
                result = parse_date_fields(result)
            return {"id": entity_id, "result": result}

        return self._batch(params, comment)

    @staticmethod
    def _batch(params: ManageParams, action: Callable[[str], Dict[str, Any]]) -> Dict[str, Any]:
        results = []
        for entity_id in params.entity_ids:
            try:
                results.append(action(entity_id))
            except ElicitationDeclined:
                raise
            except TheHiveMcpError as exc:
                logger.warning(
                    "%s of %s %s failed: %s", params.operation, params.entity_type, entity_id, exc
                )
                results.append({"id": entity_id, "error": str(exc)})
        return {"operation": params.operation, "entityType": params.entity_type, "results": results}

    def _promote(self, client: Any, params: ManageParams) -> Dict[str, Any]:
        alert_id = params.entity_ids[0]
        data = translate_dates_to_timestamps(dict(params.entity_data or {}))
        try:
            result = client.promote_alert(alert_id, data)
        except ElicitationDeclined:
            raise
        except TheHiveMcpError as exc:
            raise (
                from_exception(exc, f"failed to promote alert {alert_id} to case")
                .hint("Check that the alert exists and you have permissions")
            ) from exc
        return {
            "operation": "promote",
            "entityType": ENTITY_ALERT,
            "alertId": alert_id,
            "result": shape_entity(result, ENTITY_CASE),
        }

    def _merge(self, client: Any, params: ManageParams) -> Dict[str, Any]:
        entity = params.entity_type
        ids = params.entity_ids
        try:
            if entity == ENTITY_CASE:
                result = client.merge_cases(ids)
                return {
                    "operation": "merge",
                    "entityType": entity,
                    "mergedIds": ids,
                    "result": shape_entity(result, ENTITY_CASE),
                }
            if entity == ENTITY_ALERT:
                if len(ids) == 1:
                    result = client.merge_alert_into_case(ids[0], params.target_id)
                else:
                    result = client.bulk_merge_alerts_into_case(ids, params.target_id)
                return {
                    "operation": "merge",
                    "entityType": entity,
                    "mergedIds": ids,
                    "targetCaseId": params.target_id,
                    "result": shape_entity(result, ENTITY_CASE),
                }
            result = client.merge_observables(params.target_id)
        except ElicitationDeclined:
            raise
        except TheHiveMcpError as exc:
            raise (
                from_exception(exc, f"failed to merge {entity}s")
                .hint("Check that the entities exist and you have permissions")
            ) from exc

        return {
            "operation": "merge",
            "entityType": ENTITY_OBSERVABLE,
            "targetCaseId": params.target_id,
            "result": result if result is not None else "merge completed",
        }


def _check_choices(params: ManageParams) -> None:
    if params.operation not in ENTITY_OPERATIONS:
        raise ToolError(
            f"invalid operation '{params.operation}'. Must be one of: "
            + ", ".join(f"'{op}'" for op in ENTITY_OPERATIONS)
        )
    if params.entity_type not in ENTITY_TYPES:
        raise ToolError(
            f"invalid entity-type '{params.entity_type}'. Must be one of: 'alert', 'case', 'task', 'observable'"
        )


def _validate_create(params: ManageParams) -> None:
    entity = params.entity_type
    if params.entity_data is None:
        raise ToolError("entity-data is required for create operations").schema(entity, "create")
    if entity in (ENTITY_TASK, ENTITY_OBSERVABLE):
        if not params.entity_ids:
            raise ToolError(f"{entity} creation requires a parent case or alert ID in entity-ids parameter")
        if len(params.entity_ids) > 1:
            raise ToolError(
                f"{entity} creation requires exactly one parent ID in entity-ids, got {len(params.entity_ids)}"
            )


def _validate_update(params: ManageParams) -> None:
    if not params.entity_ids:
        raise ToolError("entity-ids is required for update operations")
    if params.entity_data is None:
        raise ToolError("entity-data is required for update operations").schema(params.entity_type, "update")


def _validate_delete(params: ManageParams) -> None:
    if not params.entity_ids:
        raise ToolError("entity-ids is required for delete operations. WARNING: This operation is irreversible")


def _validate_comment(params: ManageParams) -> None:
    if not params.entity_ids:
        raise ToolError("entity-ids is required for comment operations")
    if not params.comment:
        raise ToolError("comment is required for comment operations")
    if params.entity_type not in (ENTITY_CASE, ENTITY_TASK):
        raise ToolError(
            f"comment operation is only supported for case and task entities, got '{params.entity_type}'"
        ).hint("For cases a comment is added; for tasks a task log is added")


def _validate_promote(params: ManageParams) -> None:
    if params.entity_type != ENTITY_ALERT:
        raise ToolError(f"promote operation is only supported for alerts, got '{params.entity_type}'")
    if len(params.entity_ids) != 1:
        raise ToolError(f"promote requires exactly one alert ID in entity-ids, got {len(params.entity_ids)}")


def _validate_merge(params: ManageParams) -> None:
    entity = params.entity_type
    if entity == ENTITY_CASE:
        if len(params.entity_ids) < 2:
            raise ToolError(f"case merge requires at least 2 case IDs in entity-ids, got {len(params.entity_ids)}")
    elif entity == ENTITY_ALERT:
        if not params.entity_ids:
            raise ToolError("alert merge requires at least one alert ID in entity-ids")
        if not params.target_id:
            raise ToolError("alert merge requires target-id (the case ID to merge into)")
    elif entity == ENTITY_OBSERVABLE:
        if not params.target_id:
            raise ToolError("observable merge requires target-id (the case ID whose observables to deduplicate)")
    else:
        raise ToolError(f"merge operation is not supported for entity type '{entity}'")


_VALIDATORS: Dict[str, Callable[[ManageParams], None]] = {
    "create": _validate_create,
    "update": _validate_update,
    "delete": _validate_delete,
    "comment": _validate_comment,
    "promote": _validate_promote,
    "merge": _validate_merge,
}
