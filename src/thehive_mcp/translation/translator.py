"""
Natural-language to TheHive filter translation.

The ``build-filters`` prompt is sent to whichever completion back-end the
request can use, and the reply is parsed into a ``FilterResult``.
"""

from __future__ import annotations

import functools
from typing import Any, Dict, List, Optional, Sequence

import anyio
from mcp import types
from pydantic import BaseModel, Field

from ..core.logging import get_logger
from ..llm import complete_structured, select_provider
from ..prompts.assembler import PromptAssembler


logger = get_logger("thehive_mcp.translation")


class FilterResult(BaseModel):
    raw_filters: Dict[str, Any] = Field(
        default_factory=dict,
        description="TheHive filter tree built from _and/_or/_not and leaf operators such as _eq, _like or _between",
    )
    sort_by: Optional[str] = Field(default=None, description="Field to sort the results by; omit to keep the requested sort")
    sort_order: Optional[str] = Field(default=None, description="Sort order, asc or desc; omit to keep the requested order")
    num_results: Optional[int] = Field(default=None, description="Maximum number of results; omit to keep the requested limit")
    kept_columns: List[str] = Field(
        default_factory=list,
        description="Fields to return for each entity; empty means the entity's default columns",
    )
    extra_data: List[str] = Field(default_factory=list, description="Extra data values to request")
    additional_queries: List[str] = Field(
        default_factory=list,
        description="Related collections to attach to each result, such as tasks or observables",
    )


async def parse_query(
    ctx: Any,
    assembler: PromptAssembler,
    user_query: str,
    entity_type: str,
    additional_messages: Sequence[types.PromptMessage] = (),
) -> FilterResult:
    """
    Translate ``user_query`` (the search parameters as JSON) into filters.

    ``additional_messages`` carry the feedback from earlier attempts whose
    filters TheHive rejected.
    """

    prompt = await anyio.to_thread.run_sync(
        functools.partial(assembler.build_filters_prompt, ctx, user_query, entity_type)
    )
    messages = list(prompt.messages) + list(additional_messages)

    provider = select_provider(ctx)
    logger.debug(
        "Translating %s query with %s (%d messages)", entity_type, provider.name, len(messages)
    )
    return await complete_structured(provider, messages, FilterResult)
