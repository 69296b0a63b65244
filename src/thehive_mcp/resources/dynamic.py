"""
Dynamic resources: live metadata fetched from TheHive with the caller's
credentials.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from ..core.errors import ValidationError
from ..core.logging import get_logger
from ..permissions.policy import EXECUTE_AUTOMATION
from .registry import ResourceDescriptor, ResourceRegistry


logger = get_logger("thehive_mcp.resources.dynamic")

USER_FIELDS = ("_id", "name", "email", "organisation", "profile", "type")

RESPONDERS_USAGE = (
    "entityType and entityId query parameters are required. "
    "Example: hive://metadata/automation/responders?entityType=case&entityId=~123456"
)


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def simplify_users(users: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{field: user.get(field, "") for field in USER_FIELDS} for user in users or []]


def current_user(ctx: Any, params: Dict[str, str]) -> str:
    return _dump(ctx.require_client().current_user())


def users(ctx: Any, params: Dict[str, str]) -> str:
    return _dump(simplify_users(ctx.require_client().run_named_query("listUser")))


def case_templates(ctx: Any, params: Dict[str, str]) -> str:
    return _dump(ctx.require_client().run_named_query("listCaseTemplate"))


def case_statuses(ctx: Any, params: Dict[str, str]) -> str:
    return _dump(ctx.require_client().run_named_query("listCaseStatus"))


def observable_types(ctx: Any, params: Dict[str, str]) -> str:
    return _dump(ctx.require_client().run_named_query("listObservableType"))


def custom_fields(ctx: Any, params: Dict[str, str]) -> str:
    return _dump(ctx.require_client().list_custom_fields())


def _permitted(items: List[Dict[str, Any]], allowed: List[str]) -> List[Dict[str, Any]]:
    return [item for item in items if item.get("name") in allowed]


def analyzers(ctx: Any, params: Dict[str, str]) -> str:
    """
    Analyzers known to Cortex, narrowed to those the policy lets the caller run.
    """

    items = ctx.require_client().list_analyzers() or []
    policy = ctx.require_permissions()
    allowed = policy.get_allowed_analyzers([item.get("name", "") for item in items], EXECUTE_AUTOMATION)
    if len(allowed) < len(items):
        logger.info("Hid %d analyzers not permitted by policy", len(items) - len(allowed))
    return _dump(_permitted(items, allowed))


def responders(ctx: Any, params: Dict[str, str]) -> str:
    entity_type = params.get("entityType", "")
    entity_id = params.get("entityId", "")
    if not entity_type or not entity_id:
        raise ValidationError(RESPONDERS_USAGE)

    items = ctx.require_client().list_responders(entity_type, entity_id) or []
    policy = ctx.require_permissions()
    allowed = policy.get_allowed_responders([item.get("name", "") for item in items], EXECUTE_AUTOMATION)
    return _dump(_permitted(items, allowed))


def permissions_summary(ctx: Any, params: Dict[str, str]) -> str:
    return _dump(ctx.require_permissions().summary())


_DYNAMIC_RESOURCES = (
    ("hive://config/current-user", "Current User", "Currently authenticated user information", current_user),
    ("hive://config/permissions", "Permissions", "Tools, entity operations and automation allowed by the active permissions policy", permissions_summary),
    ("hive://metadata/organization/users", "Users", "List of users in the organization for assignment", users),
    ("hive://metadata/entities/case/templates", "Case Templates", "Available case templates with predefined tasks and fields", case_templates),
    ("hive://metadata/entities/case/statuses", "Case Statuses", "Available status values for cases (New, InProgress, Resolved, etc.)", case_statuses),
    ("hive://metadata/entities/observable/types", "Observable Types", "Available observable data types (ip, domain, hash, url, etc.)", observable_types),
    ("hive://metadata/entities/custom-fields", "Custom Fields", "Organization-defined custom fields across all entities", custom_fields),
    ("hive://metadata/automation/analyzers", "Analyzers", "Available Cortex analyzers for observable enrichment", analyzers),
    ("hive://metadata/automation/responders", "Responders", "Available Cortex responders for active response. Requires entityType and entityId query parameters.", responders),
)


def register_dynamic_resources(registry: ResourceRegistry) -> None:
    for uri, name, description, handler in _DYNAMIC_RESOURCES:
        registry.register(ResourceDescriptor(uri, name, description), handler)
