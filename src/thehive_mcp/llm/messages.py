"""
Helpers for the role-tagged prompt messages exchanged with models.

Messages are MCP ``PromptMessage`` objects throughout, so prompts returned
by ``prompts/get`` can be fed to either completion back-end unchanged.
"""

from __future__ import annotations

from mcp import types


def user_message(text: str) -> types.PromptMessage:
    return types.PromptMessage(role="user", content=types.TextContent(type="text", text=text))


def assistant_message(text: str) -> types.PromptMessage:
    return types.PromptMessage(role="assistant", content=types.TextContent(type="text", text=text))


def message_text(message: types.PromptMessage) -> str:
    content = message.content
    if isinstance(content, types.TextContent):
        return content.text
    return ""
