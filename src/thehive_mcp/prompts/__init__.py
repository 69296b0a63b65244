"""
Prompts served over MCP and used internally by the query translator.
"""

from .assembler import (
    BASE_SYSTEM_PROMPT,
    BUILD_FILTERS,
    PROMPTS,
    PromptAssembler,
    PromptConfig,
)

__all__ = [
    "BASE_SYSTEM_PROMPT",
    "BUILD_FILTERS",
    "PROMPTS",
    "PromptAssembler",
    "PromptConfig",
]
