"""
Tool-facing errors.

A ``ToolError`` is what the MCP client sees when a tool call fails: a
message, an optional cause, remediation hints and, when TheHive answered,
its response body.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..core.errors import TheHiveMcpError, UpstreamError


class ToolError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.cause: Optional[str] = None
        self.hints: List[str] = []
        self.api_response: Any = None

    def hint(self, text: str) -> "ToolError":
        self.hints.append(text)
        return self

    def schema(self, entity: str, operation: str = "") -> "ToolError":
        if operation:
            return self.hint(f"Use get-resource 'hive://schema/{entity}/{operation}' for field definitions")
        return self.hint(f"Use get-resource 'hive://schema/{entity}' for available fields")

    def api(self, response: Any) -> "ToolError":
        self.api_response = response
        return self

    def caused_by(self, exc: BaseException) -> "ToolError":
        self.cause = str(exc)
        return self

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"error": True, "message": self.message}
        if self.cause:
            data["cause"] = self.cause
        if self.hints:
            data["hints"] = list(self.hints)
        if self.api_response is not None:
            data["apiResponse"] = self.api_response
        return data


def from_exception(exc: TheHiveMcpError, message: Optional[str] = None) -> ToolError:
    """
    Wrap a server error, keeping TheHive's response body when there is one.

    Without ``message`` the error text itself is the tool message.
    """

    error = ToolError(message or str(exc))
    if message:
        error.caused_by(exc)
    if isinstance(exc, UpstreamError):
        error.api(exc.payload)
    return error
