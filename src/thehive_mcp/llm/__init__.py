"""
Language-model completion: reply extraction, the structured retry loop and
the two completion back-ends (MCP sampling and an OpenAI-compatible API).
"""

from .completion import (
    MAX_COMPLETION_RETRIES,
    CompletionProvider,
    OpenAIProvider,
    SamplingProvider,
    complete_structured,
    select_provider,
    set_default_provider,
)
from .extraction import extract_json, parse_reply
from .messages import assistant_message, message_text, user_message

__all__ = [
    "MAX_COMPLETION_RETRIES",
    "CompletionProvider",
    "OpenAIProvider",
    "SamplingProvider",
    "assistant_message",
    "complete_structured",
    "extract_json",
    "message_text",
    "parse_reply",
    "select_provider",
    "set_default_provider",
    "user_message",
]
