"""
Shared machinery for MCP tools.

Every tool declares a pydantic parameter model (hyphenated aliases on the
wire) and three steps: ``validate_permissions``, ``validate_params`` and
``handle``. ``run_tool`` wraps them with the checks every call needs,
in order: deferred authentication error, tool permission, the tool's own
checks, then the handler. Failures become structured error results rather
than protocol errors.
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict, Generic, Mapping, Optional, Type, TypeVar

from mcp import types
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from ..core.errors import AuthorizationError, TheHiveMcpError
from ..core.logging import get_logger
from ..permissions.policy import Policy
from .errors import ToolError, from_exception


logger = get_logger("thehive_mcp.tools")

ParamsT = TypeVar("ParamsT", bound="ToolParams")


class ToolParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def dump_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def success_result(data: Dict[str, Any]) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=dump_json(data))],
        structuredContent=data,
        isError=False,
    )


def error_result(error: ToolError) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=dump_json(error.to_dict()))],
        isError=True,
    )


class Tool(Generic[ParamsT]):
    name: str = ""
    description: str = ""
    params_model: Type[ParamsT]

    def definition(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.params_model.model_json_schema(by_alias=True),
        )

    def parse(self, arguments: Optional[Mapping[str, Any]]) -> ParamsT:
        try:
            return self.params_model.model_validate(dict(arguments or {}))
        except PydanticValidationError as exc:
            raise ToolError(f"invalid parameters for {self.name}").caused_by(exc) from exc

    def validate_permissions(self, ctx: Any, params: ParamsT) -> None:
        """
        Checks beyond the tool-level permission; the default has none.
        """

    def validate_params(self, params: ParamsT) -> None:
        pass

    async def handle(self, ctx: Any, params: ParamsT) -> Dict[str, Any]:
        raise NotImplementedError


def check_tool_allowed(policy: Policy, tool_name: str) -> None:
    if not policy.is_tool_allowed(tool_name):
        raise AuthorizationError(f"tool {tool_name} is not permitted by your permissions configuration")


async def run_tool(tool: Tool, ctx: Any, arguments: Optional[Mapping[str, Any]]) -> types.CallToolResult:
    started = time.monotonic()
    try:
        if ctx.auth_error is not None:
            raise ToolError(str(ctx.auth_error))

        check_tool_allowed(ctx.require_permissions(), tool.name)
        params = tool.parse(arguments)
        tool.validate_permissions(ctx, params)
        tool.validate_params(params)
        data = await tool.handle(ctx, params)
    except ToolError as exc:
        logger.warning("Tool %s failed: %s", tool.name, exc.message)
        return error_result(exc)
    except AuthorizationError as exc:
        logger.warning("Tool %s denied: %s", tool.name, exc)
        return error_result(from_exception(exc))
    except TheHiveMcpError as exc:
        logger.error("Tool %s failed: %s", tool.name, exc)
        return error_result(from_exception(exc))
    finally:
        logger.debug("Tool %s finished in %.0f ms", tool.name, (time.monotonic() - started) * 1000)

    return success_result(data)
