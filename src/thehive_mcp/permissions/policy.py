"""
Permissions policy model and authorization queries.

A policy is parsed from YAML once and is immutable afterwards, so every
query below is a pure read and safe to call from concurrent requests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..core.errors import PolicyError, ValidationError
from ..translation.pipeline import validate_filter


SUPPORTED_VERSION = "1.0"

SEARCH_ENTITIES = "search-entities"
MANAGE_ENTITIES = "manage-entities"
EXECUTE_AUTOMATION = "execute-automation"
GET_RESOURCE = "get-resource"

KNOWN_TOOLS = (SEARCH_ENTITIES, MANAGE_ENTITIES, EXECUTE_AUTOMATION, GET_RESOURCE)

ALLOW_LIST = "allow_list"
BLOCK_LIST = "block_list"

ENTITY_OPERATIONS = ("create", "update", "delete", "comment", "promote", "merge")


@dataclass(frozen=True)
class AutomationRule:
    """
    Allow/block list for analyzers or responders.
    """

    mode: str = ""
    allowed: List[str] = field(default_factory=list)
    blocked: List[str] = field(default_factory=list)

    def permits(self, name: str) -> bool:
        if self.mode == ALLOW_LIST:
            if not self.allowed:
                return False
            return "*" in self.allowed or name in self.allowed
        if self.mode == BLOCK_LIST:
            return name not in self.blocked
        # Missing or unknown mode denies.
        return False

    def validate(self, label: str) -> None:
        if self.mode and self.mode not in (ALLOW_LIST, BLOCK_LIST):
            raise PolicyError(
                f"invalid {label} mode: {self.mode} (must be 'allow_list' or 'block_list')"
            )
        if self.mode == ALLOW_LIST and self.blocked:
            raise PolicyError(f"{label}: cannot specify 'blocked' list when mode is 'allow_list'")
        if self.mode == BLOCK_LIST and self.allowed:
            raise PolicyError(f"{label}: cannot specify 'allowed' list when mode is 'block_list'")

    def to_dict(self) -> Dict[str, Any]:
        return {"mode": self.mode, "allowed": list(self.allowed), "blocked": list(self.blocked)}

    @classmethod
    def from_dict(cls, raw: Any, label: str) -> "AutomationRule":
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise PolicyError(f"{label} must be a mapping")
        return cls(
            mode=str(raw.get("mode") or ""),
            allowed=_string_list(raw.get("allowed"), f"{label}.allowed"),
            blocked=_string_list(raw.get("blocked"), f"{label}.blocked"),
        )


@dataclass(frozen=True)
class ToolPermission:
    """
    Per-tool settings: whether the tool may be called, the filter predicate
    forced into its queries, and optional automation or entity restrictions.
    """

    allowed: bool = False
    filters: Optional[Dict[str, Any]] = None
    analyzer_restrictions: Optional[AutomationRule] = None
    responder_restrictions: Optional[AutomationRule] = None
    entity_permissions: Dict[str, Dict[str, bool]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"allowed": self.allowed}
        if self.filters:
            out["filters"] = self.filters
        if self.analyzer_restrictions is not None:
            out["analyzer_restrictions"] = self.analyzer_restrictions.to_dict()
        if self.responder_restrictions is not None:
            out["responder_restrictions"] = self.responder_restrictions.to_dict()
        if self.entity_permissions:
            out["entity_permissions"] = self.entity_permissions
        return out

    @classmethod
    def from_dict(cls, name: str, raw: Any) -> "ToolPermission":
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise PolicyError(f"tool {name} must be a mapping")

        filters = raw.get("filters")
        if filters is not None and not isinstance(filters, Mapping):
            raise PolicyError(f"tool {name}: filters must be a mapping")

        entity_permissions: Dict[str, Dict[str, bool]] = {}
        for entity, ops in (raw.get("entity_permissions") or {}).items():
            if not isinstance(ops, Mapping):
                raise PolicyError(f"tool {name}: entity_permissions.{entity} must be a mapping")
            entity_permissions[str(entity)] = {
                op: bool(ops.get(op, False)) for op in ENTITY_OPERATIONS
            }

        analyzer = raw.get("analyzer_restrictions")
        responder = raw.get("responder_restrictions")
        return cls(
            allowed=bool(raw.get("allowed", False)),
            filters=dict(filters) if filters else None,
            analyzer_restrictions=(
                AutomationRule.from_dict(analyzer, f"{name} analyzer_restrictions")
                if analyzer is not None
                else None
            ),
            responder_restrictions=(
                AutomationRule.from_dict(responder, f"{name} responder_restrictions")
                if responder is not None
                else None
            ),
            entity_permissions=entity_permissions,
        )


@dataclass(frozen=True)
class Policy:
    """
    A loaded permissions policy.
    """

    version: str
    tools: Dict[str, ToolPermission] = field(default_factory=dict)
    analyzers: AutomationRule = field(default_factory=AutomationRule)
    responders: AutomationRule = field(default_factory=AutomationRule)

    @classmethod
    def from_dict(cls, raw: Any) -> "Policy":
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise PolicyError("permissions configuration must be a mapping")

        section = raw.get("permissions") or {}
        if not isinstance(section, Mapping):
            raise PolicyError("'permissions' must be a mapping")

        tools_raw = section.get("tools") or {}
        if not isinstance(tools_raw, Mapping):
            raise PolicyError("'permissions.tools' must be a mapping")

        version = raw.get("version")
        return cls(
            version="" if version is None else str(version),
            tools={
                str(name): ToolPermission.from_dict(str(name), value)
                for name, value in tools_raw.items()
            },
            analyzers=AutomationRule.from_dict(section.get("analyzers"), "analyzers"),
            responders=AutomationRule.from_dict(section.get("responders"), "responders"),
        )

    def validate(self) -> None:
        """
        Check version, tool names and automation list consistency.
        """

        if not self.version:
            raise PolicyError("version is required")
        if self.version != SUPPORTED_VERSION:
            raise PolicyError(
                f"unsupported version: {self.version} (supported: {SUPPORTED_VERSION})"
            )

        for name in self.tools:
            if name not in KNOWN_TOOLS:
                raise PolicyError(f"invalid tools configuration: unknown tool: {name}")

        self.analyzers.validate("analyzers")
        self.responders.validate("responders")

        for name, perm in self.tools.items():
            if perm.analyzer_restrictions is not None:
                perm.analyzer_restrictions.validate(f"{name} analyzer_restrictions")
            if perm.responder_restrictions is not None:
                perm.responder_restrictions.validate(f"{name} responder_restrictions")

        for name, perm in self.tools.items():
            if perm.filters:
                try:
                    validate_filter(perm.filters, f"{name}.filters")
                except ValidationError as exc:
                    raise PolicyError(f"invalid tools configuration: {exc}") from exc

    # Queries

    def is_tool_allowed(self, tool: str) -> bool:
        perm = self.tools.get(tool)
        return perm is not None and perm.allowed

    def is_entity_operation_allowed(self, entity: str, operation: str) -> bool:
        perm = self.tools.get(MANAGE_ENTITIES)
        if perm is None or not perm.allowed:
            return False
        if not perm.entity_permissions:
            return True
        ops = perm.entity_permissions.get(entity)
        if ops is None:
            return False
        return ops.get(operation, False)

    def get_tool_filters(self, tool: str) -> Optional[Dict[str, Any]]:
        perm = self.tools.get(tool)
        if perm is None:
            return None
        return perm.filters

    def is_analyzer_allowed(self, name: str, tool: Optional[str] = None) -> bool:
        if tool:
            perm = self.tools.get(tool)
            if perm is not None and perm.analyzer_restrictions is not None:
                return perm.analyzer_restrictions.permits(name)
        return self.analyzers.permits(name)

    def is_responder_allowed(self, name: str, tool: Optional[str] = None) -> bool:
        if tool:
            perm = self.tools.get(tool)
            if perm is not None and perm.responder_restrictions is not None:
                return perm.responder_restrictions.permits(name)
        return self.responders.permits(name)

    def get_allowed_analyzers(self, names: Iterable[str], tool: Optional[str] = None) -> List[str]:
        return [name for name in names if self.is_analyzer_allowed(name, tool)]

    def get_allowed_responders(self, names: Iterable[str], tool: Optional[str] = None) -> List[str]:
        return [name for name in names if self.is_responder_allowed(name, tool)]

    def summary(self) -> Dict[str, Any]:
        """
        JSON-friendly view of the policy, served as hive://config/permissions.
        """

        return {
            "version": self.version,
            "tools": {
                name: self.tools[name].to_dict() if name in self.tools else {"allowed": False}
                for name in KNOWN_TOOLS
            },
            "analyzers": self.analyzers.to_dict(),
            "responders": self.responders.to_dict(),
        }


def _string_list(value: Any, label: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise PolicyError(f"{label} must be a list of strings")
    return [str(item) for item in value]
