"""
Natural-language query translation and TheHive query assembly.

Only the leaf modules are re-exported here; ``translation.translator``
depends on the prompt and resource layers and is imported directly.
"""

from .dates import translate_dates_to_timestamps
from .pipeline import HiveQuery, build_query, child_query, validate_filter

__all__ = [
    "HiveQuery",
    "build_query",
    "child_query",
    "translate_dates_to_timestamps",
    "validate_filter",
]
