"""
Credential records for TheHive and the OpenAI-compatible completion API.

A ``Credentials`` record is created once at startup for the stdio
transport, or per request from HTTP headers. It is validated before any
client is built and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from .config import (
    DEFAULT_OPENAI_BASE_URL,
    DEFAULT_OPENAI_MAX_TOKENS,
    DEFAULT_OPENAI_MODEL,
    OpenAIConfig,
    TheHiveConfig,
)
from .errors import CredentialsError


CREDENTIAL_MESSAGES = {
    "missing-url": "THEHIVE_URL environment variable is required",
    "invalid-url": "invalid TheHive URL format",
    "missing-auth": "either API key or username/password must be provided",
    "invalid-api-key": "API key cannot be empty or 'dummy'",
    "missing-credentials": "both username and password are required for basic auth",
}

_SENTINEL_KEY = "dummy"


def credentials_error(kind: str) -> CredentialsError:
    return CredentialsError(kind, CREDENTIAL_MESSAGES[kind])


def _is_absolute_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


def extract_bearer_token(header: str) -> str:
    """
    Strip an optional, case-insensitive ``Bearer `` prefix from a header.
    """

    value = header.strip()
    if value[:7].lower() == "bearer ":
        value = value[7:]
    return value.strip()


@dataclass
class OpenAICredentials:
    """
    Settings for an OpenAI-compatible completion endpoint.
    """

    api_key: str
    base_url: str = DEFAULT_OPENAI_BASE_URL
    model: str = DEFAULT_OPENAI_MODEL
    max_tokens: int = DEFAULT_OPENAI_MAX_TOKENS

    def validate(self) -> None:
        if self.api_key.lower() == _SENTINEL_KEY:
            raise CredentialsError("invalid-openai", "OpenAI API key cannot be 'dummy'")
        if not self.base_url:
            self.base_url = DEFAULT_OPENAI_BASE_URL
        if not _is_absolute_url(self.base_url):
            raise CredentialsError("invalid-openai", f"invalid OpenAI base URL: {self.base_url}")
        if not self.model:
            self.model = DEFAULT_OPENAI_MODEL
        if self.max_tokens <= 0:
            self.max_tokens = DEFAULT_OPENAI_MAX_TOKENS

    @classmethod
    def from_config(cls, config: OpenAIConfig) -> "OpenAICredentials":
        return cls(
            api_key=config.api_key,
            base_url=config.base_url,
            model=config.model,
            max_tokens=config.max_tokens,
        )


@dataclass
class Credentials:
    """
    TheHive connection credentials.

    One authentication method is used per client: a non-sentinel API key
    when present, otherwise a complete username/password pair.
    """

    url: str
    api_key: str = ""
    username: str = ""
    password: str = ""
    organisation: str = ""
    openai: Optional[OpenAICredentials] = None

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key) and self.api_key.lower() != _SENTINEL_KEY

    @property
    def has_basic_auth(self) -> bool:
        return bool(self.username) and bool(self.password)

    def validate(self) -> None:
        """
        Raise ``CredentialsError`` describing the first problem found.
        """

        if not self.url:
            raise credentials_error("missing-url")
        if not _is_absolute_url(self.url):
            raise credentials_error("invalid-url")

        if not self.has_api_key and not self.has_basic_auth:
            raise credentials_error("missing-auth")
        if self.api_key.lower() == _SENTINEL_KEY:
            raise credentials_error("invalid-api-key")
        if bool(self.username) != bool(self.password):
            raise credentials_error("missing-credentials")

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")

    @classmethod
    def from_config(cls, config: TheHiveConfig) -> "Credentials":
        return cls(
            url=config.url,
            api_key=config.api_key,
            username=config.username,
            password=config.password,
            organisation=config.organisation,
        )
