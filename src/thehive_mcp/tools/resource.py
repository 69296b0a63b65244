"""
get-resource: browse the ``hive://`` resource tree or fetch one resource.
"""

from __future__ import annotations

import functools
import json
from typing import Any, Dict

import anyio
from pydantic import Field

from ..core.errors import TheHiveMcpError
from ..core.logging import get_logger
from ..permissions.policy import GET_RESOURCE
from ..resources.registry import ResourceRegistry
from ..resources.uri import CATALOG_URI, SCHEME, category_path, parse_uri
from .base import Tool, ToolParams
from .errors import ToolError, from_exception


logger = get_logger("thehive_mcp.tools.resource")

DESCRIPTION = """Access TheHive resources: documentation, schemas and metadata.

Resources are organized hierarchically:
- hive://catalog - directory of all categories
- hive://config/* - session and system info
- hive://schema/* - entity field definitions
- hive://metadata/* - available options and choices
- hive://docs/* - documentation and guides
- hive://rule/* - rules followed when building search filters

Usage:
- call without parameters to list all categories
- give a category URI to list its resources and subcategories
- give a resource URI to fetch its content; query parameters are passed to the resource

Examples:
- get-resource()
- get-resource(uri="hive://schema")
- get-resource(uri="hive://metadata/automation")
- get-resource(uri="hive://schema/alert")
- get-resource(uri="hive://metadata/automation/responders?entityType=case&entityId=~123")

Start every investigation here, then drill down before using the other tools."""


class ResourceParams(ToolParams):
    uri: str = Field(
        "",
        description="Resource or category URI, e.g. 'hive://schema/alert' or 'hive://metadata/automation'. Omit to list all categories.",
    )


class ResourceTool(Tool[ResourceParams]):
    name = GET_RESOURCE
    description = DESCRIPTION
    params_model = ResourceParams

    def __init__(self, registry: ResourceRegistry) -> None:
        self.registry = registry

    async def handle(self, ctx: Any, params: ResourceParams) -> Dict[str, Any]:
        uri = params.uri.strip() or CATALOG_URI
        base, _ = parse_uri(uri)

        if self.registry.find(base) is not None:
            return await self.fetch(ctx, uri)
        return self.browse(base)

    async def fetch(self, ctx: Any, uri: str) -> Dict[str, Any]:
        logger.info("Fetching resource %s", uri)
        try:
            entry, text = await anyio.to_thread.run_sync(functools.partial(self.registry.read, uri, ctx))
        except TheHiveMcpError as exc:
            raise from_exception(exc, f"failed to fetch resource {uri}").hint(
                "Dynamic resources need a working TheHive connection"
            ) from exc

        descriptor = entry.descriptor
        response: Dict[str, Any] = {
            "uri": descriptor.uri,
            "name": descriptor.name,
            "mimeType": descriptor.mime_type,
        }
        try:
            response["data"] = json.loads(text)
        except ValueError:
            response["content"] = text
        return response

    def browse(self, base: str) -> Dict[str, Any]:
        category = category_path(base)
        logger.info("Browsing category %s", category)
        resources, subcategories = self.registry.list_by_category(category)
        if not resources and not subcategories:
            raise ToolError(
                f"category '{category}' not found or empty. Use get-resource without parameters to see "
                "available categories, or try: 'schema', 'metadata', 'docs', 'config'"
            )
        return {
            "category": category,
            "uri": f"{SCHEME}{category}/",
            "subcategories": subcategories,
            "resources": resources,
        }
