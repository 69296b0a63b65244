"""
Related-entity expansion for search results.

Each supported expansion runs ``get<Parent>(id) | <children>`` against the
query endpoint and attaches the date-rendered, projected children to the
parent record under the expansion name.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, MutableMapping, Sequence

from .core.errors import IntegrationError, TheHiveMcpError, ValidationError
from .core.logging import get_logger
from .integrations.thehive.client import TheHiveClient
from .shaping import (
    ENTITY_ALERT,
    ENTITY_CASE,
    ENTITY_OBSERVABLE,
    ENTITY_TASK,
    parse_date_fields_in_list,
    project,
    default_columns,
)
from .translation.pipeline import child_query


logger = get_logger("thehive_mcp.expansion")


@dataclass(frozen=True)
class ChildQuery:
    parent_operation: str
    child_operation: str


_CASE = "getCase"
_ALERT = "getAlert"
_TASK = "getTask"

ADDITIONAL_QUERIES: Dict[str, Dict[str, ChildQuery]] = {
    ENTITY_CASE: {
        "tasks": ChildQuery(_CASE, "tasks"),
        "observables": ChildQuery(_CASE, "observables"),
        "comments": ChildQuery(_CASE, "comments"),
        "pages": ChildQuery(_CASE, "pages"),
        "attachments": ChildQuery(_CASE, "attachments"),
    },
    ENTITY_ALERT: {
        "observables": ChildQuery(_ALERT, "observables"),
        "comments": ChildQuery(_ALERT, "comments"),
        "pages": ChildQuery(_ALERT, "pages"),
        "attachments": ChildQuery(_ALERT, "attachments"),
    },
    ENTITY_TASK: {
        "task-logs": ChildQuery(_TASK, "logs"),
    },
    ENTITY_OBSERVABLE: {},
}


def get_supported_queries(entity_type: str) -> List[str]:
    return sorted(ADDITIONAL_QUERIES.get(entity_type, {}))


def validate_query(entity_type: str, query_name: str) -> None:
    queries = ADDITIONAL_QUERIES.get(entity_type)
    if queries is None:
        raise ValidationError(f"entity type '{entity_type}' not supported")
    if query_name not in queries:
        raise ValidationError(
            f"unsupported additional query '{query_name}' for entity type '{entity_type}'"
        )


def fetch_children(client: TheHiveClient, query: ChildQuery, parent_id: str) -> List[Dict[str, Any]]:
    pipeline = child_query(query.parent_operation, parent_id, query.child_operation)
    raw = client.query(pipeline.query)
    if not isinstance(raw, list):
        raise ValidationError(
            f"unexpected result for {query.child_operation}: expected a list, got {type(raw).__name__}"
        )
    return parse_date_fields_in_list(raw)


def expand_entities(
    client: TheHiveClient,
    entity_type: str,
    entities: Sequence[MutableMapping[str, Any]],
    additional_queries: Sequence[str],
) -> Sequence[MutableMapping[str, Any]]:
    """
    Attach every requested child collection to each entity, in place.

    All query names are checked before anything is fetched; the first
    failing fetch aborts the expansion.
    """

    if not additional_queries:
        return entities

    for name in additional_queries:
        validate_query(entity_type, name)
    queries = ADDITIONAL_QUERIES[entity_type]

    for index, entity in enumerate(entities):
        entity_id = entity.get("_id")
        if not isinstance(entity_id, str):
            raise ValidationError(f"entity at index {index} missing _id field")

        for name in additional_queries:
            try:
                children = fetch_children(client, queries[name], entity_id)
            except TheHiveMcpError as exc:
                raise IntegrationError(
                    f"failed to get {name} for {entity_type} ID {entity_id}: {exc}"
                ) from exc
            columns = default_columns(name)
            entity[name] = [project(child, columns) for child in children]
            logger.debug(
                "Expanded %s %s with %d %s", entity_type, entity_id, len(children), name
            )

    return entities
