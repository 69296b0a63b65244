"""
``hive://`` URI helpers.
"""

from __future__ import annotations

from typing import Dict, Tuple
from urllib.parse import parse_qsl


SCHEME = "hive://"
CATALOG_URI = "hive://catalog"


def normalize_uri(uri: str) -> str:
    """
    Add the ``hive://`` scheme if missing and drop trailing slashes.

    Idempotent, and the result always starts with ``hive://``.
    """

    value = uri.strip()
    if not value.startswith(SCHEME):
        value = SCHEME + value.lstrip("/")
    path = value[len(SCHEME):].rstrip("/")
    return SCHEME + path


def split_query(uri: str) -> Tuple[str, Dict[str, str]]:
    """
    Split ``uri`` into its base and its query parameters.
    """

    base, _, query = uri.partition("?")
    return base, dict(parse_qsl(query, keep_blank_values=True))


def parse_uri(uri: str) -> Tuple[str, Dict[str, str]]:
    """
    Normalize ``uri`` and separate the query parameters used as handler
    arguments.
    """

    base, params = split_query(uri.strip())
    return normalize_uri(base), params


def category_path(uri: str) -> str:
    """
    Path of a normalized URI below the scheme, e.g. ``metadata/entities``.
    """

    return normalize_uri(uri)[len(SCHEME):]
