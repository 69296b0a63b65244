"""
search-entities: natural-language search over alerts, cases, tasks and
observables.

The query is translated to TheHive filters by a language model, merged with
the policy's filters for this tool and run against the query endpoint. When
TheHive rejects the filters, the rejection is fed back to the model and the
search is tried again.
"""

from __future__ import annotations

import functools
import json
from typing import Any, Dict, List, Sequence

import anyio
from mcp import types
from pydantic import ConfigDict, Field

from ..core.errors import IntegrationError, TranslationError, UpstreamError, ValidationError
from ..core.logging import get_logger
from ..expansion import expand_entities, validate_query
from ..llm.messages import assistant_message, user_message
from ..permissions.filters import PermissionInfo, merge_filters
from ..permissions.policy import SEARCH_ENTITIES
from ..prompts.assembler import PromptAssembler
from ..shaping import ENTITY_TYPES, default_columns, parse_date_fields_in_list
from ..translation.pipeline import build_query, validate_filter
from ..translation.translator import FilterResult, parse_query
from .base import Tool, ToolParams
from .errors import ToolError


logger = get_logger("thehive_mcp.tools.search")

MAX_SEARCH_RETRIES = 3
DEFAULT_LIMIT = 10
MAX_LIMIT = 1000
SORT_ORDERS = ("asc", "desc")

DESCRIPTION = """Search for entities in TheHive using natural language queries.

The query is translated to TheHive filters by a language model. Describe what you are looking for in plain words.

Examples:
- "high severity alerts from last week"
- "open cases assigned to john@example.com"
- "all tasks with status waiting"
- "observables containing malware in the last month"
- "latest phishing alerts with severity greater than 2"

The search understands severity levels, status and stage, date ranges (last week, yesterday, ...), assignees, tags and keywords, and sorting (latest, oldest).

For statistics use count=true to get only the number of matching entities; otherwise results are limited by the limit parameter.
Columns chosen by the translator take precedence over extra-columns. Read the entity schema (get-resource 'hive://schema/<entity>') for available fields, extra data and additional queries. An investigation should start by exploring the resources with get-resource."""


class SearchParams(ToolParams):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={"required": ["entity-type", "query"]},
    )

    entity_type: str = Field(
        "",
        alias="entity-type",
        description="Type of entity to search for.",
        json_schema_extra={"enum": list(ENTITY_TYPES)},
    )
    query: str = Field(
        "",
        description=(
            "Natural language description of the entities to find. It is converted to TheHive "
            "filters, which are returned with the results for transparency."
        ),
    )
    sort_by: str = Field("_createdAt", alias="sort-by", description="Column to sort the results by.")
    sort_order: str = Field(
        "desc",
        alias="sort-order",
        description="Sort order ('asc' or 'desc'). Default is 'desc'.",
        json_schema_extra={"enum": list(SORT_ORDERS)},
    )
    limit: int = Field(
        DEFAULT_LIMIT,
        description="Number of results to return (at most 1000). Not applicable if count=true.",
    )
    extra_columns: List[str] = Field(
        default_factory=list,
        alias="extra-columns",
        description="Columns to keep in the output. Defaults are entity-specific.",
    )
    extra_data: List[str] = Field(
        default_factory=list,
        alias="extra-data",
        description="Additional data fields to include in the output, as listed in the entity schema.",
    )
    additional_queries: List[str] = Field(
        default_factory=list,
        alias="additional-queries",
        description=(
            "Related collections to attach to each result, e.g. tasks or observables of cases. "
            "Supported values depend on the entity type."
        ),
    )
    count: bool = Field(False, description="Return only the number of matching entities.")


class SearchTool(Tool[SearchParams]):
    name = SEARCH_ENTITIES
    description = DESCRIPTION
    params_model = SearchParams

    def __init__(self, assembler: PromptAssembler) -> None:
        self.assembler = assembler

    def validate_params(self, params: SearchParams) -> None:
        if params.entity_type not in ENTITY_TYPES:
            raise ToolError(
                f"invalid entity-type '{params.entity_type}'. Must be one of: 'alert', 'case', 'task', 'observable'"
            )
        if not params.query:
            raise ToolError(
                "query parameter is required. Provide a natural language description of what to search for, "
                "e.g., 'high severity alerts from last week'"
            )

        params.sort_by = params.sort_by or "_createdAt"
        params.sort_order = params.sort_order or "desc"
        if params.sort_order not in SORT_ORDERS:
            raise ToolError(f"invalid sort-order '{params.sort_order}'. Must be 'asc' or 'desc'")

        if params.limit < 0:
            raise ToolError("limit must be a non-negative integer")
        if params.limit > MAX_LIMIT:
            raise ToolError(f"limit cannot exceed {MAX_LIMIT} entities")
        params.limit = params.limit or DEFAULT_LIMIT

        if not params.extra_columns:
            params.extra_columns = default_columns(params.entity_type)

        for name in params.additional_queries:
            try:
                validate_query(params.entity_type, name)
            except ValidationError as exc:
                raise ToolError(str(exc)).schema(params.entity_type) from exc

    async def handle(self, ctx: Any, params: SearchParams) -> Dict[str, Any]:
        client = ctx.require_client()
        policy_filters = ctx.require_permissions().get_tool_filters(self.name)
        user_query = params.model_dump_json(by_alias=True, indent=2)

        feedback: List[types.PromptMessage] = []
        for attempt in range(1, MAX_SEARCH_RETRIES + 1):
            filters = await self.translate(ctx, params, user_query, feedback)

            merged, applied = merge_filters(filters.raw_filters, policy_filters)
            if applied:
                logger.info("Merged permission filters into %s search", params.entity_type)
            merged = dict(merged or {})

            try:
                validate_filter(merged)
                raw = await self.execute(client, params, filters, merged)
            except (ValidationError, UpstreamError) as exc:
                logger.warning("Search attempt %d failed, retrying: %s", attempt, exc)
                feedback = feedback + [
                    assistant_message(json.dumps(filters.raw_filters, indent=2)),
                    user_message(
                        f"The previous filters resulted in an error: {exc}. Please adjust the filters accordingly."
                    ),
                ]
                continue
            except IntegrationError as exc:
                raise ToolError("failed to execute search query").caused_by(exc) from exc

            results = self.shape(params, raw)
            if not params.count:
                results = await self.expand(client, params.entity_type, results, filters.additional_queries)
            result = search_result(results, params, merged)
            if applied:
                result["permissions"] = PermissionInfo.filtered().to_dict()
            return result

        raise (
            ToolError("maximum search retries exceeded")
            .hint("The query could not be translated to valid TheHive filters")
            .hint("Try simplifying your search criteria or using more specific field names")
        )

    async def translate(
        self,
        ctx: Any,
        params: SearchParams,
        user_query: str,
        feedback: Sequence[types.PromptMessage],
    ) -> FilterResult:
        try:
            filters = await parse_query(ctx, self.assembler, user_query, params.entity_type, feedback)
        except (TranslationError, ValidationError, IntegrationError) as exc:
            raise (
                ToolError("failed to parse natural language query")
                .caused_by(exc)
                .hint("Try rephrasing your query or check that the entity type supports the fields you're searching for")
                .schema(params.entity_type)
            ) from exc

        logger.info("Parsed natural language query for %s: %s", params.entity_type, filters.raw_filters)
        return filters

    async def execute(
        self,
        client: Any,
        params: SearchParams,
        filters: FilterResult,
        merged: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        # Translator choices win when set and valid; the tool parameters fill the rest.
        sort_order = filters.sort_order if filters.sort_order in SORT_ORDERS else params.sort_order
        limit = params.limit
        if filters.num_results is not None and 0 < filters.num_results <= MAX_LIMIT:
            limit = filters.num_results
        query = build_query(
            params.entity_type,
            merged,
            sort_by=filters.sort_by or params.sort_by,
            sort_order=sort_order,
            limit=limit,
            kept_columns=filters.kept_columns or params.extra_columns,
            extra_data=filters.extra_data or params.extra_data,
            count=params.count,
        )
        logger.debug("Built TheHive query: %s", json.dumps(query.to_dict()))

        raw = await anyio.to_thread.run_sync(
            functools.partial(client.query, query.query, query.exclude_fields)
        )
        if params.count:
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                raise IntegrationError(f"unexpected count result from TheHive: {raw!r}")
            return [{"_count": int(raw)}]
        if not isinstance(raw, list):
            raise IntegrationError(f"unexpected result type from TheHive: expected a list, got {type(raw).__name__}")
        for index, item in enumerate(raw):
            if not isinstance(item, dict):
                raise IntegrationError(f"unexpected item type in results at index {index}: {type(item).__name__}")

        logger.debug("Query returned %d %ss", len(raw), params.entity_type)
        return raw

    def shape(self, params: SearchParams, raw: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if params.count:
            return raw
        try:
            return parse_date_fields_in_list(raw)
        except ValidationError as exc:
            raise ToolError("failed to render dates in search results").caused_by(exc) from exc

    async def expand(
        self,
        client: Any,
        entity_type: str,
        results: List[Dict[str, Any]],
        additional_queries: Sequence[str],
    ) -> List[Dict[str, Any]]:
        if not additional_queries:
            return results
        try:
            await anyio.to_thread.run_sync(
                functools.partial(expand_entities, client, entity_type, results, list(additional_queries))
            )
        except (ValidationError, IntegrationError) as exc:
            raise ToolError("failed to perform additional queries").caused_by(exc).schema(entity_type) from exc
        return results


def search_result(results: List[Dict[str, Any]], params: SearchParams, filters: Dict[str, Any]) -> Dict[str, Any]:
    if params.count:
        count = results[0]["_count"] if results else 0
    else:
        count = len(results)
    return {
        "count": count,
        "countOnly": params.count,
        "entityType": params.entity_type,
        "query": params.query,
        "filters": filters,
        "results": results,
    }
