"""
ISO date strings to epoch milliseconds inside filter trees and entity data.
"""

from __future__ import annotations

from datetime import datetime, timezone
import re
from typing import Any, Optional

ISO_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")


def to_timestamp(value: str) -> Optional[int]:
    """
    Epoch milliseconds for a ``YYYY-MM-DDTHH:MM:SS`` string (UTC), else None.
    """

    if not _ISO_DATE.fullmatch(value):
        return None
    try:
        moment = datetime.strptime(value, ISO_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None
    return int(moment.timestamp() * 1000)


def translate_dates_to_timestamps(tree: Any) -> Any:
    """
    Return a copy of ``tree`` with every parseable date string replaced by
    epoch milliseconds.

    Dicts and lists are walked recursively and keep their shape; numbers
    and non-date strings pass through, so a second pass changes nothing.
    """

    if isinstance(tree, dict):
        return {key: translate_dates_to_timestamps(value) for key, value in tree.items()}
    if isinstance(tree, list):
        return [translate_dates_to_timestamps(item) for item in tree]
    if isinstance(tree, str):
        timestamp = to_timestamp(tree)
        return tree if timestamp is None else timestamp
    return tree
