"""
Result shaping: entity field catalogues, date rendering and column
projection for everything returned to the MCP client.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping

from .core.errors import ValidationError
from .core.logging import get_logger


logger = get_logger("thehive_mcp.shaping")

ENTITY_ALERT = "alert"
ENTITY_CASE = "case"
ENTITY_TASK = "task"
ENTITY_OBSERVABLE = "observable"

ENTITY_TYPES = (ENTITY_ALERT, ENTITY_CASE, ENTITY_TASK, ENTITY_OBSERVABLE)

RENDERED_DATE_FORMAT = "%d-%m-%YT%H:%M:%S"

DATE_FIELDS = frozenset(
    {
        "date",
        "startDate",
        "endDate",
        "sightedAt",
        "dueDate",
        "occurDate",
        "lastSyncDate",
        "_createdAt",
        "_updatedAt",
        "newDate",
        "inProgressDate",
        "closedDate",
        "importedDate",
        "alertDate",
        "alertNewDate",
        "alertInProgressDate",
        "alertImportedDate",
        "createdAt",
        "updatedAt",
        "lastSuccessDate",
        "lastErrorDate",
        "validFrom",
        "expiresAt",
        "includeInTimeline",
    }
)

_COMMON_FIELDS = ["_id", "_type", "_createdBy", "_updatedBy", "_createdAt", "_updatedAt"]

# Every top-level field TheHive returns for each entity; the search tool
# excludes whatever is not kept.
ENTITY_FIELDS: Dict[str, List[str]] = {
    ENTITY_ALERT: _COMMON_FIELDS
    + [
        "type",
        "source",
        "sourceRef",
        "externalLink",
        "title",
        "description",
        "severity",
        "severityLabel",
        "date",
        "tags",
        "tlp",
        "tlpLabel",
        "pap",
        "papLabel",
        "follow",
        "customFields",
        "caseTemplate",
        "observableCount",
        "caseId",
        "status",
        "stage",
        "assignee",
        "summary",
        "extraData",
        "newDate",
        "inProgressDate",
        "closedDate",
        "importedDate",
        "timeToDetect",
        "timeToTriage",
        "timeToQualify",
        "timeToAcknowledge",
    ],
    ENTITY_CASE: _COMMON_FIELDS
    + [
        "number",
        "title",
        "description",
        "severity",
        "severityLabel",
        "startDate",
        "endDate",
        "tags",
        "flag",
        "tlp",
        "tlpLabel",
        "pap",
        "papLabel",
        "status",
        "stage",
        "summary",
        "impactStatus",
        "assignee",
        "customFields",
        "userPermissions",
        "extraData",
        "newDate",
        "inProgressDate",
        "closedDate",
        "alertDate",
        "alertNewDate",
        "alertInProgressDate",
        "alertImportedDate",
        "timeToDetect",
        "timeToTriage",
        "timeToQualify",
        "timeToAcknowledge",
        "timeToResolve",
        "handlingDuration",
    ],
    ENTITY_TASK: _COMMON_FIELDS
    + [
        "title",
        "group",
        "description",
        "status",
        "flag",
        "startDate",
        "endDate",
        "assignee",
        "order",
        "dueDate",
        "mandatory",
        "extraData",
    ],
    ENTITY_OBSERVABLE: _COMMON_FIELDS
    + [
        "dataType",
        "data",
        "startDate",
        "attachment",
        "tlp",
        "tlpLabel",
        "pap",
        "papLabel",
        "tags",
        "ioc",
        "sighted",
        "sightedAt",
        "reports",
        "message",
        "extraData",
        "ignoreSimilarity",
        "isOwner",
    ],
}

_TASK_COLUMNS = ["_id", "title", "status", "assignee", "dueDate", "_createdAt"]
_OBSERVABLE_COLUMNS = ["_id", "dataType", "data", "ioc", "sighted", "tags", "_createdAt"]

# Default projection per entity type and per related-entity expansion.
DEFAULT_FIELDS: Dict[str, List[str]] = {
    ENTITY_ALERT: ["_id", "title", "severity", "status", "source", "tags", "_createdAt"],
    ENTITY_CASE: ["_id", "number", "title", "severity", "status", "assignee", "tags", "_createdAt"],
    ENTITY_TASK: _TASK_COLUMNS,
    ENTITY_OBSERVABLE: _OBSERVABLE_COLUMNS,
    "tasks": _TASK_COLUMNS,
    "observables": _OBSERVABLE_COLUMNS,
    "comments": ["_id", "message", "_createdBy", "_createdAt"],
    "pages": ["_id", "title", "category", "content", "_createdAt"],
    "attachments": ["_id", "name", "contentType", "size", "_createdAt"],
    "task-logs": ["_id", "message", "date", "_createdBy"],
}

FALLBACK_COLUMNS = ["_id", "title", "url"]


def default_columns(name: str) -> List[str]:
    return list(DEFAULT_FIELDS.get(name, FALLBACK_COLUMNS))


def render_timestamp(value: int) -> str:
    """
    Render epoch milliseconds as ``DD-MM-YYYYTHH:MM:SS`` (UTC); 0 is empty.
    """

    if value == 0:
        return ""
    moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    return moment.strftime(RENDERED_DATE_FORMAT)


def parse_date_fields(entity: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of ``entity`` with known date fields rendered as strings.
    """

    shaped: Dict[str, Any] = {}
    for key, value in entity.items():
        if key not in DATE_FIELDS or value is None:
            shaped[key] = value
            continue
        # bool is an int subclass but never a timestamp.
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.error("Date field %s is not a number (%r)", key, value)
            raise ValidationError(
                f"date field {key} is not a number, got {type(value).__name__}"
            )
        shaped[key] = render_timestamp(int(value))
    return shaped


def parse_date_fields_in_list(entities: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [parse_date_fields(entity) for entity in entities]


def project(entity: Mapping[str, Any], columns: Iterable[str]) -> Dict[str, Any]:
    """
    Keep only ``columns`` that are present in ``entity``.
    """

    return {column: entity[column] for column in columns if column in entity}


def shape_entity(entity: Any, entity_type: str) -> Any:
    """
    Date-render and project a single upstream record to its default columns.

    Lists are shaped element by element; anything that is not a mapping is
    returned unchanged.
    """

    if isinstance(entity, list):
        return [shape_entity(item, entity_type) for item in entity]
    if not isinstance(entity, Mapping):
        return entity
    return project(parse_date_fields(entity), default_columns(entity_type))
