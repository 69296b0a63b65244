"""
Assembly of TheHive ``/api/v1/query`` pipelines.

A pipeline is an ordered list of named operations: ``list<Entity>``, then
``filter``, then either ``sort`` and ``page`` or a terminal ``count``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..core.errors import ValidationError
from ..shaping import ENTITY_FIELDS
from .dates import translate_dates_to_timestamps


LEAF_OPERATORS = (
    "_eq",
    "_ne",
    "_gt",
    "_gte",
    "_lt",
    "_lte",
    "_between",
    "_like",
    "_in",
    "_startsWith",
    "_endsWith",
    "_has",
    "_id",
    "_any",
    "_match",
)


@dataclass
class HiveQuery:
    """
    Request body for TheHive's query endpoint.
    """

    query: List[Dict[str, Any]]
    exclude_fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"query": self.query}
        if self.exclude_fields:
            body["excludeFields"] = self.exclude_fields
        return body


def list_operation(entity_type: str) -> Dict[str, Any]:
    return {"_name": f"list{entity_type[:1].upper()}{entity_type[1:]}"}


def filter_operation(filters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    op = translate_dates_to_timestamps(dict(filters or {}))
    op["_name"] = "filter"
    return op


def sort_operation(sort_by: str, sort_order: str) -> Dict[str, Any]:
    return {"_name": "sort", "_fields": [{sort_by: sort_order}]}


def page_operation(limit: int, extra_data: Sequence[str]) -> Dict[str, Any]:
    return {"_name": "page", "from": 0, "to": limit, "extraData": list(extra_data)}


def excluded_fields(
    entity_type: str,
    kept_columns: Sequence[str],
    extra_data: Sequence[str],
) -> List[str]:
    """
    All known fields of the entity minus the kept ones.

    ``extraData`` stays when extra data was requested, otherwise the page
    operation's extras would be stripped again.
    """

    excluded = []
    for name in ENTITY_FIELDS.get(entity_type, []):
        if name in kept_columns:
            continue
        if name == "extraData" and extra_data:
            continue
        excluded.append(name)
    return excluded


def build_query(
    entity_type: str,
    filters: Optional[Mapping[str, Any]],
    *,
    sort_by: str,
    sort_order: str,
    limit: int,
    kept_columns: Sequence[str],
    extra_data: Sequence[str] = (),
    count: bool = False,
) -> HiveQuery:
    operations = [list_operation(entity_type), filter_operation(filters)]
    if count:
        operations.append({"_name": "count"})
    else:
        operations.append(sort_operation(sort_by, sort_order))
        operations.append(page_operation(limit, extra_data))

    return HiveQuery(
        query=operations,
        exclude_fields=excluded_fields(entity_type, kept_columns, extra_data),
    )


def child_query(parent_operation: str, parent_id: str, child_operation: str) -> HiveQuery:
    """
    ``get<Parent>(id) | <children>`` pipeline used for related-entity expansion.
    """

    return HiveQuery(
        query=[
            {"_name": parent_operation, "idOrName": parent_id},
            {"_name": child_operation},
        ]
    )


def validate_filter(tree: Any, path: str = "filters") -> None:
    """
    Structural check of a filter tree.

    Compound operators must carry subtrees; leaf operators must carry a
    mapping. Field-name shorthand keys (no leading underscore) are accepted
    as TheHive does.
    """

    if not isinstance(tree, Mapping):
        raise ValidationError(f"{path} must be an object, got {type(tree).__name__}")

    for key, value in tree.items():
        if key in ("_and", "_or"):
            if not isinstance(value, list):
                raise ValidationError(f"{path}.{key} must be an array of filters")
            for index, sub in enumerate(value):
                validate_filter(sub, f"{path}.{key}[{index}]")
        elif key == "_not":
            subs = value if isinstance(value, list) else [value]
            for index, sub in enumerate(subs):
                validate_filter(sub, f"{path}._not[{index}]")
        elif key in ("_id", "_any", "_name"):
            continue
        elif key in LEAF_OPERATORS:
            if not isinstance(value, Mapping):
                raise ValidationError(f"{path}.{key} must be an object with _field")
        elif key.startswith("_"):
            raise ValidationError(f"{path}: unknown filter operator '{key}'")
