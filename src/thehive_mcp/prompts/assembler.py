"""
Prompt assembly from Jinja2 templates and packaged resources.

A template sees three groups of variables:

- ``StaticData``: packaged facts, schemas and rules, read through the
  resource registry on every call;
- ``DynamicData``: live metadata fetched from TheHive with the caller's
  credentials (a failed fetch renders as a placeholder);
- ``CustomData``: values supplied by the caller.

The rendered template becomes the first message of the prompt, followed by
the few-shot examples, optional user data and the user query.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from jinja2 import Environment, FileSystemLoader
from mcp import types

from ..core.errors import TheHiveMcpError, ValidationError
from ..core.logging import get_logger
from ..llm.messages import assistant_message, user_message
from ..resources.registry import ResourceRegistry
from ..resources.static import fact_text, schema_text
from ..shaping import ENTITY_TYPES


logger = get_logger("thehive_mcp.prompts")

TEMPLATES_DIR = Path(__file__).with_name("templates")
EXAMPLES_DIR = Path(__file__).with_name("examples")

BASE_SYSTEM_PROMPT = "base-system-prompt"
BUILD_FILTERS = "build-filters"

STATIC_BINDINGS: Dict[str, str] = {
    "DateFacts": "hive://config/server-time",
    "HiveFacts": "hive://docs/overview/platform",
    "AlertFacts": "hive://docs/entities/alert",
    "CaseFacts": "hive://docs/entities/case",
    "TaskFacts": "hive://docs/entities/task",
    "ObservableFacts": "hive://docs/entities/observable",
    "AnalyzerFacts": "hive://docs/automation/analyzers",
    "ResponderFacts": "hive://docs/automation/responders",
    "AlertSchema": "hive://schema/alert",
    "CaseSchema": "hive://schema/case",
    "TaskSchema": "hive://schema/task",
    "ObservableSchema": "hive://schema/observable",
    "FilterSchema": "hive://schema/filter",
    "Formatting": "hive://rule/formatting",
    "Integrity": "hive://rule/integrity",
    "Filtering": "hive://rule/filtering",
}

DYNAMIC_BINDINGS: Dict[str, str] = {
    "AvailableUsers": "hive://metadata/organization/users",
    "AvailableCaseTemplates": "hive://metadata/entities/case/templates",
    "AvailableCaseStatuses": "hive://metadata/entities/case/statuses",
    "AvailableObservableTypes": "hive://metadata/entities/observable/types",
    "CurrentUser": "hive://config/current-user",
}

# Advertised through prompts/list.
PROMPTS: Dict[str, types.Prompt] = {
    BASE_SYSTEM_PROMPT: types.Prompt(
        name=BASE_SYSTEM_PROMPT,
        description="System prompt describing TheHive, its entities and how to use this server's tools",
        arguments=[],
    ),
    BUILD_FILTERS: types.Prompt(
        name=BUILD_FILTERS,
        description="Translate a natural-language search into TheHive query filters for one entity type",
        arguments=[
            types.PromptArgument(name="query", description="Natural-language search request", required=True),
            types.PromptArgument(
                name="entity-type",
                description="Entity to search: alert, case, task or observable",
                required=True,
            ),
        ],
    ),
}


@dataclass
class PromptConfig:
    template: str
    description: str = ""
    examples: Optional[str] = None
    user_data: str = ""
    user_query: str = ""
    custom: Dict[str, Any] = field(default_factory=dict)


class PromptAssembler:
    def __init__(
        self,
        registry: ResourceRegistry,
        templates_dir: Path = TEMPLATES_DIR,
        examples_dir: Path = EXAMPLES_DIR,
    ) -> None:
        self.registry = registry
        self.examples_dir = Path(examples_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def static_data(self, ctx: Any) -> Dict[str, str]:
        return {name: self.registry.read(uri, ctx)[1] for name, uri in STATIC_BINDINGS.items()}

    def dynamic_data(self, ctx: Any) -> Dict[str, str]:
        data = {}
        for name, uri in DYNAMIC_BINDINGS.items():
            try:
                data[name] = self.registry.read(uri, ctx)[1]
            except TheHiveMcpError as exc:
                logger.warning("Failed to load %s for prompt: %s", uri, exc)
                data[name] = f"(unavailable: failed to load {uri}: {exc})"
        return data

    def render(self, template: str, ctx: Any, custom: Optional[Dict[str, Any]] = None) -> str:
        return self.env.get_template(template).render(
            StaticData=self.static_data(ctx),
            DynamicData=self.dynamic_data(ctx),
            CustomData=custom or {},
        )

    def load_examples(self, name: str) -> List[types.PromptMessage]:
        """
        Messages for the few-shot file ``name``; a missing file yields none.

        Each example contributes an optional ``data`` user message, then the
        ``user`` and ``assistant`` turns.
        """

        path = self.examples_dir / name
        if not path.exists():
            logger.debug("No examples file %s", path)
            return []

        with path.open("r", encoding="utf-8") as handle:
            examples = yaml.safe_load(handle) or []

        messages: List[types.PromptMessage] = []
        for example in examples:
            if example.get("data"):
                messages.append(user_message(example["data"]))
            if example.get("user"):
                messages.append(user_message(example["user"]))
            if example.get("assistant"):
                messages.append(assistant_message(example["assistant"]))
        return messages

    def build(self, ctx: Any, config: PromptConfig) -> types.GetPromptResult:
        messages = [user_message(self.render(config.template, ctx, config.custom))]
        if config.examples:
            messages.extend(self.load_examples(config.examples))
        if config.user_data:
            messages.append(user_message(config.user_data))
        if config.user_query:
            messages.append(user_message(config.user_query))
        return types.GetPromptResult(description=config.description, messages=messages)

    def base_system_prompt(self, ctx: Any) -> types.GetPromptResult:
        return self.build(
            ctx,
            PromptConfig(
                template="base_system_prompt.j2",
                description=PROMPTS[BASE_SYSTEM_PROMPT].description or "",
            ),
        )

    def build_filters_prompt(self, ctx: Any, user_query: str, entity_type: str) -> types.GetPromptResult:
        if entity_type not in ENTITY_TYPES:
            raise ValidationError(
                f"invalid entity-type '{entity_type}'. Must be one of: 'alert', 'case', 'task', 'observable'"
            )
        return self.build(
            ctx,
            PromptConfig(
                template="build_filters.j2",
                description=PROMPTS[BUILD_FILTERS].description or "",
                examples="build_filters_examples.yaml",
                user_query=user_query,
                custom={
                    "EntityType": entity_type,
                    "EntitySchema": schema_text(entity_type),
                    "EntityFacts": fact_text(entity_type),
                },
            ),
        )

    def get_prompt(self, ctx: Any, name: str, arguments: Optional[Dict[str, str]] = None) -> types.GetPromptResult:
        arguments = arguments or {}
        if name == BASE_SYSTEM_PROMPT:
            return self.base_system_prompt(ctx)
        if name == BUILD_FILTERS:
            query = arguments.get("query", "")
            entity_type = arguments.get("entity-type", "")
            if not query:
                raise ValidationError("query argument is required")
            if not entity_type:
                raise ValidationError("entity-type argument is required")
            return self.build_filters_prompt(ctx, query, entity_type)
        raise ValidationError(f"prompt not found: {name}")
