"""
Read-only ``hive://`` resources: packaged schemas and documentation plus
live metadata from TheHive.
"""

from .dynamic import register_dynamic_resources
from .registry import ResourceDescriptor, ResourceEntry, ResourceRegistry
from .static import register_static_resources
from .uri import CATALOG_URI, normalize_uri, parse_uri


def build_registry() -> ResourceRegistry:
    registry = ResourceRegistry()
    register_static_resources(registry)
    register_dynamic_resources(registry)
    return registry


__all__ = [
    "CATALOG_URI",
    "ResourceDescriptor",
    "ResourceEntry",
    "ResourceRegistry",
    "build_registry",
    "normalize_uri",
    "parse_uri",
]
