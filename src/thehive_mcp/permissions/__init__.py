"""
Declarative permissions: policy model, loaders and filter merging.
"""

from .filters import PermissionInfo, merge_filters
from .loader import load_admin, load_default, load_from_file, load_permissions
from .policy import (
    EXECUTE_AUTOMATION,
    GET_RESOURCE,
    KNOWN_TOOLS,
    MANAGE_ENTITIES,
    SEARCH_ENTITIES,
    AutomationRule,
    Policy,
    ToolPermission,
)

__all__ = [
    "AutomationRule",
    "EXECUTE_AUTOMATION",
    "GET_RESOURCE",
    "KNOWN_TOOLS",
    "MANAGE_ENTITIES",
    "PermissionInfo",
    "Policy",
    "SEARCH_ENTITIES",
    "ToolPermission",
    "load_admin",
    "load_default",
    "load_from_file",
    "load_permissions",
    "merge_filters",
]
