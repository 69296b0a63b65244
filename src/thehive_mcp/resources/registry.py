"""
URI-keyed registry of readable resources.

Resources are registered once at startup; lookups and listings afterwards
are read-only and safe to share between concurrent requests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..core.errors import ValidationError
from .uri import CATALOG_URI, SCHEME, category_path, normalize_uri, parse_uri


# Handlers receive the request context and the URI's query parameters and
# return the resource body as text.
ResourceHandler = Callable[[Any, Dict[str, str]], str]


@dataclass(frozen=True)
class ResourceDescriptor:
    uri: str
    name: str
    description: str = ""
    mime_type: str = "application/json"


@dataclass(frozen=True)
class ResourceEntry:
    descriptor: ResourceDescriptor
    handler: ResourceHandler


class ResourceRegistry:
    """
    Resources keyed by exact URI, plus category descriptions for browsing.
    """

    def __init__(self) -> None:
        self._resources: Dict[str, ResourceEntry] = {}
        self._category_descriptions: Dict[str, str] = {}

    def register(self, descriptor: ResourceDescriptor, handler: ResourceHandler) -> None:
        self._resources[normalize_uri(descriptor.uri)] = ResourceEntry(descriptor, handler)

    def register_category_metadata(self, categories: Iterable[Mapping[str, Any]]) -> None:
        """
        Store category and subcategory descriptions from the catalog.
        """

        for category in categories:
            name = category["name"]
            self._category_descriptions[name] = category.get("description", "")
            for sub in category.get("subcategories", []):
                self._category_descriptions[f"{name}/{sub['name']}"] = sub.get("description", "")

    def find(self, uri: str) -> Optional[ResourceEntry]:
        return self._resources.get(normalize_uri(uri))

    def get(self, uri: str) -> ResourceEntry:
        entry = self.find(uri)
        if entry is None:
            raise ValidationError(
                f"resource not found: {uri}. Use get-resource without parameters to see "
                "available resources, or check the URI format (e.g., 'hive://schema/alert')"
            )
        return entry

    def read(self, uri: str, ctx: Any) -> Tuple[ResourceEntry, str]:
        """
        Resolve ``uri`` (query parameters included) and run its handler.
        """

        base, params = parse_uri(uri)
        entry = self.get(base)
        return entry, entry.handler(ctx, params)

    def descriptors(self) -> List[ResourceDescriptor]:
        return [self._resources[uri].descriptor for uri in sorted(self._resources)]

    def list_by_category(self, category: str) -> Tuple[List[Dict[str, str]], List[Dict[str, str]]]:
        """
        Resources directly under ``category`` and the subcategories below it.

        A URI one segment below the prefix is a resource; anything deeper
        contributes its first segment as a subcategory, unless that segment
        is itself a resource (e.g. ``schema/alert`` with its ``create`` and
        ``update`` variants), in which case the deeper URI is listed as a
        resource too. Every URI therefore appears under exactly one kind.
        The catalog itself is never listed.
        """

        path = category_path(category) if category else ""
        prefix = f"{SCHEME}{path}/" if path else SCHEME

        resources: List[Dict[str, str]] = []
        subcategories: Dict[str, Dict[str, str]] = {}

        for uri in sorted(self._resources):
            if uri == CATALOG_URI or not uri.startswith(prefix):
                continue
            relative = uri[len(prefix):]
            name = relative.split("/", 1)[0]
            if "/" not in relative or f"{prefix}{name}" in self._resources:
                descriptor = self._resources[uri].descriptor
                resources.append(
                    {"uri": uri, "name": descriptor.name, "description": descriptor.description}
                )
                continue

            if name in subcategories:
                continue
            full_path = f"{path}/{name}" if path else name
            subcategories[name] = {
                "name": name,
                "uri": f"{SCHEME}{full_path}/",
                "description": self._category_descriptions.get(full_path, ""),
            }

        return resources, list(subcategories.values())
