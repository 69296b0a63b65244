"""
The four MCP tools and the middleware every call goes through.
"""

from typing import Dict

from ..prompts.assembler import PromptAssembler
from ..resources.registry import ResourceRegistry
from .automation import AutomationTool
from .base import Tool, run_tool
from .errors import ToolError
from .manage import ManageTool
from .resource import ResourceTool
from .search import SearchTool


def build_tools(registry: ResourceRegistry, assembler: PromptAssembler) -> Dict[str, Tool]:
    tools = [SearchTool(assembler), ManageTool(), AutomationTool(), ResourceTool(registry)]
    return {tool.name: tool for tool in tools}


__all__ = [
    "AutomationTool",
    "ManageTool",
    "ResourceTool",
    "SearchTool",
    "Tool",
    "ToolError",
    "build_tools",
    "run_tool",
]
