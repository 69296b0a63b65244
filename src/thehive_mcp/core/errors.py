"""
Core error types for the TheHive MCP server.

These exceptions provide a common base for all raised errors across the
project so that callers (transports, tool middleware, the CLI) can handle
them in a consistent way.
"""

from __future__ import annotations

from typing import Any, Optional


class TheHiveMcpError(Exception):
    """
    Base exception for all server-specific errors.
    """


class ConfigError(TheHiveMcpError):
    """
    Raised when configuration is missing, invalid, or inconsistent.
    """


class CredentialsError(ConfigError):
    """
    Raised when TheHive or OpenAI credentials fail validation.

    ``kind`` is one of ``missing-url``, ``invalid-url``, ``missing-auth``,
    ``invalid-api-key``, ``missing-credentials`` or ``invalid-openai``.
    """

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class PolicyError(TheHiveMcpError):
    """
    Raised when a permissions policy cannot be loaded or fails validation.
    """


class AuthorizationError(TheHiveMcpError):
    """
    Raised when the active policy denies a tool, operation or automation.
    """


class ValidationError(TheHiveMcpError):
    """
    Raised when tool parameters or input data fail validation.
    """


class TranslationError(TheHiveMcpError):
    """
    Raised when a language model reply cannot be turned into filters.
    """


class IntegrationError(TheHiveMcpError):
    """
    Raised when TheHive (or another external service) fails or returns an
    unexpected response.
    """


class UpstreamError(IntegrationError):
    """
    Raised for non-success HTTP responses from TheHive.
    """

    def __init__(self, status_code: int, payload: Any, message: Optional[str] = None) -> None:
        super().__init__(message or f"TheHive error {status_code}: {payload}")
        self.status_code = status_code
        self.payload = payload


class ElicitationDeclined(IntegrationError):
    """
    Raised when the MCP client declines or cancels a confirmation request.
    """
