"""
Pull a JSON object out of a free-form model reply.
"""

from __future__ import annotations

import re
from typing import Type, TypeVar

from pydantic import BaseModel


_FENCED_BLOCK = re.compile(r"```(?:json)?\s*\n(.*?)```", re.DOTALL)

ModelT = TypeVar("ModelT", bound=BaseModel)


def extract_json(content: str) -> str:
    """
    Return the JSON candidate inside ``content``.

    The first fenced block wins when there is one; the candidate is then
    narrowed to the span between the first ``{`` and the last ``}``.
    """

    if "```" in content:
        match = _FENCED_BLOCK.search(content)
        if match:
            content = match.group(1)

    start = content.find("{")
    end = content.rfind("}")
    if start != -1 and end > start:
        content = content[start : end + 1]
    return content.strip()


def parse_reply(content: str, target: Type[ModelT]) -> ModelT:
    """
    Parse a model reply into ``target``; raises ``pydantic.ValidationError``.
    """

    return target.model_validate_json(extract_json(content))
