"""
Static resources: entity schemas, rules, facts and the catalog, all read
from the packaged ``assets`` directory.
"""

from __future__ import annotations

from datetime import datetime
import json
from pathlib import Path
from typing import Any, Dict

from jinja2 import Template

from ..core.errors import ValidationError
from .registry import ResourceDescriptor, ResourceRegistry


ASSETS_DIR = Path(__file__).with_name("assets")

JSON = "application/json"
TEXT = "text/plain"

SCHEMA_ENTITIES = ("alert", "case", "task", "observable")
SCHEMA_OPERATIONS = ("create", "update")

CATALOG: Dict[str, Any] = {
    "categories": [
        {
            "name": "config",
            "description": "Current session and system configuration. Includes authenticated user info, server time and the active permissions.",
            "resources": ["current-user", "server-time", "permissions"],
        },
        {
            "name": "schema",
            "description": "Entity field definitions and data types. Query these to understand what fields are available for each entity type and their constraints.",
            "resources": [
                "alert",
                "alert/create",
                "alert/update",
                "case",
                "case/create",
                "case/update",
                "task",
                "task/create",
                "task/update",
                "observable",
                "observable/create",
                "observable/update",
                "case-template",
                "filter",
            ],
        },
        {
            "name": "metadata",
            "description": "Available options, enumerations, and choices. Use these to get valid values for assignments and entity properties.",
            "subcategories": [
                {
                    "name": "entities",
                    "description": "Entity-specific metadata like statuses, templates, and types",
                    "resources": ["case/statuses", "case/templates", "observable/types", "custom-fields"],
                },
                {
                    "name": "automation",
                    "description": "Cortex integration resources for analyzers and responders",
                    "resources": ["analyzers", "responders"],
                },
                {
                    "name": "organization",
                    "description": "Organization settings and user management",
                    "resources": ["users"],
                },
            ],
        },
        {
            "name": "docs",
            "description": "Documentation about TheHive platform, entities, and workflows. Read these to understand best practices.",
            "subcategories": [
                {
                    "name": "overview",
                    "description": "Platform-wide documentation and general information",
                    "resources": ["platform"],
                },
                {
                    "name": "entities",
                    "description": "Entity-specific guides and best practices",
                    "resources": ["alert", "case", "task", "observable"],
                },
                {
                    "name": "automation",
                    "description": "Automation workflow guides for analyzers and responders",
                    "resources": ["analyzers", "responders"],
                },
            ],
        },
        {
            "name": "rule",
            "description": "Rules the filter-building model follows: formatting, integrity and filtering.",
            "resources": ["formatting", "integrity", "filtering"],
        },
    ],
}

CATALOG_USAGE = {
    "discover": "Use get-resource tool without parameters to list all categories",
    "browse": "Use get-resource tool with category to list resources in that category",
    "fetch": "Use get-resource tool with full URI to fetch specific resource",
}


def _read_asset(relative: str) -> str:
    path = ASSETS_DIR / relative
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValidationError(f"failed to read {relative}: {exc}") from exc


def schema_text(name: str) -> str:
    """
    Schema JSON for ``alert``, ``case/create``, ``filter`` and so on.
    """

    return _read_asset(f"schema/{name.replace('/', '-')}.json")


def rule_text(name: str) -> str:
    return _read_asset(f"rules/{name}.txt")


def current_date() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def fact_text(name: str) -> str:
    """
    Fact text, rendered with the current date available as ``CurrentDate``.
    """

    return Template(_read_asset(f"facts/{name}.txt")).render(CurrentDate=current_date())


def catalog_text() -> str:
    catalog = dict(CATALOG)
    catalog["usage"] = CATALOG_USAGE
    return json.dumps(catalog, indent=2)


def _static(text_fn, *args: str):
    # Static handlers ignore the request context and query parameters.
    def handler(ctx: Any, params: Dict[str, str]) -> str:
        return text_fn(*args)

    return handler


_FACT_RESOURCES = (
    ("hive://config/server-time", "Server Time", "Current server date/time for timestamp calculations", "date"),
    ("hive://docs/overview/platform", "TheHive Overview", "General facts about TheHive platform, workflow, and capabilities", "thehive"),
    ("hive://docs/entities/alert", "Alert Documentation", "How alerts work, lifecycle, and best practices", "alert"),
    ("hive://docs/entities/case", "Case Documentation", "How cases work, closure, templates and merging", "case"),
    ("hive://docs/entities/task", "Task Documentation", "How tasks work, assignment, and task groups", "task"),
    ("hive://docs/entities/observable", "Observable Documentation", "How observables work, IOC types, enrichment workflow", "observable"),
    ("hive://docs/automation/analyzers", "Analyzer Documentation", "How analyzers work and how to follow their jobs", "analyzer"),
    ("hive://docs/automation/responders", "Responder Documentation", "How responders work, active response workflow, and PAP considerations", "responder"),
)

_RULES = (
    ("formatting", "Formatting Rule", "How filters must be written"),
    ("integrity", "Integrity Rule", "Which values filters may use"),
    ("filtering", "Filtering Rule", "How requests map to filter operators"),
)


def register_static_resources(registry: ResourceRegistry) -> None:
    for entity in SCHEMA_ENTITIES:
        title = entity.capitalize()
        registry.register(
            ResourceDescriptor(
                f"hive://schema/{entity}",
                f"{title} Schema",
                f"Available fields, types, and constraints for {entity}s",
                JSON,
            ),
            _static(schema_text, entity),
        )
        for operation in SCHEMA_OPERATIONS:
            registry.register(
                ResourceDescriptor(
                    f"hive://schema/{entity}/{operation}",
                    f"{title} {operation.capitalize()} Schema",
                    f"Fields accepted when {operation[:-1]}ing a {entity} with manage-entities",
                    JSON,
                ),
                _static(schema_text, f"{entity}/{operation}"),
            )

    registry.register(
        ResourceDescriptor("hive://schema/case-template", "Case Template Schema", "Structure of case templates", JSON),
        _static(schema_text, "case-template"),
    )
    registry.register(
        ResourceDescriptor("hive://schema/filter", "Filter Schema", "TheHive filter data structure", JSON),
        _static(schema_text, "filter"),
    )

    for name, title, description in _RULES:
        registry.register(
            ResourceDescriptor(f"hive://rule/{name}", title, description, TEXT),
            _static(rule_text, name),
        )

    for uri, title, description, fact in _FACT_RESOURCES:
        registry.register(ResourceDescriptor(uri, title, description, TEXT), _static(fact_text, fact))

    registry.register(
        ResourceDescriptor(
            "hive://catalog",
            "Resource Catalog",
            "Directory of all available resource categories and their purposes. This is the starting point for exploring resources.",
            JSON,
        ),
        _static(catalog_text),
    )
    registry.register_category_metadata(CATALOG["categories"])
