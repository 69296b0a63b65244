"""
Building the request context for each transport.

stdio builds one context at startup from the process configuration. The
HTTP transport builds one per MCP request from the request headers, using
the process configuration for anything a header leaves out. Credential
problems never abort a request here: they are stored as the deferred
authentication error and reported by the first tool call.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping, Optional

from ..context import RequestContext
from ..core.config import AppConfig
from ..core.credentials import Credentials, OpenAICredentials, extract_bearer_token
from ..core.errors import ConfigError, TheHiveMcpError
from ..core.logging import get_logger
from ..integrations.thehive.client import TheHiveClient
from ..integrations.thehive.elicitation import confirm_with_current_session
from ..llm.completion import OpenAIProvider
from ..permissions.policy import Policy


logger = get_logger("thehive_mcp.server.context")

HEADER_AUTHORIZATION = "Authorization"
HEADER_THEHIVE_API_KEY = "X-TheHive-Api-Key"
HEADER_THEHIVE_ORG = "X-TheHive-Org"
HEADER_THEHIVE_URL = "X-TheHive-Url"
HEADER_OPENAI_API_KEY = "X-OpenAI-Api-Key"
HEADER_OPENAI_BASE_URL = "X-OpenAI-Base-Url"
HEADER_OPENAI_MODEL = "X-OpenAI-Model-Name"
HEADER_OPENAI_MAX_TOKENS = "X-OpenAI-Max-Tokens"


def build_client(credentials: Credentials, config: AppConfig) -> TheHiveClient:
    credentials.validate()
    logger.info(
        "Created TheHive client (url=%s, organisation=%s, using_api_key=%s)",
        credentials.base_url,
        credentials.organisation,
        credentials.has_api_key,
    )
    return TheHiveClient.from_credentials(
        credentials,
        confirm=confirm_with_current_session,
        timeout_seconds=config.thehive.timeout_seconds,
    )


def build_completion(credentials: OpenAICredentials) -> Optional[OpenAIProvider]:
    """
    OpenAI provider for ``credentials``, or None without an API key.

    Invalid settings are logged and ignored; completion is optional.
    """

    if not credentials.api_key:
        logger.debug("No OpenAI API key provided, skipping OpenAI client creation")
        return None
    try:
        credentials.validate()
    except ConfigError as exc:
        logger.warning("Failed to create OpenAI client: %s", exc)
        return None
    logger.info(
        "Created OpenAI client (base_url=%s, model=%s, max_tokens=%d)",
        credentials.base_url,
        credentials.model,
        credentials.max_tokens,
    )
    return OpenAIProvider(credentials)


def build_stdio_context(config: AppConfig, policy: Policy) -> RequestContext:
    ctx = RequestContext(permissions=policy)
    credentials = Credentials.from_config(config.thehive)
    ctx.credentials = credentials

    try:
        ctx.client = build_client(credentials, config)
    except ConfigError as exc:
        logger.warning("Failed to create TheHive client from environment variables: %s", exc)
        ctx.auth_error = exc
    else:
        try:
            ctx.client.ping()
        except TheHiveMcpError as exc:
            logger.error("TheHive authentication failed: %s", exc)
            ctx.auth_error = ConfigError(f"TheHive authentication failed: {exc}")
        else:
            logger.info("TheHive authentication validated successfully")

    ctx.completion = build_completion(OpenAICredentials.from_config(config.openai))
    return ctx


def _header(headers: Mapping[str, str], name: str, default: str = "") -> str:
    return headers.get(name) or default


def credentials_from_headers(headers: Mapping[str, str], config: AppConfig) -> Credentials:
    """
    TheHive and OpenAI credentials for one HTTP request.

    ``X-TheHive-Api-Key`` wins over ``Authorization``; both fall back to
    the configured API key. Basic-auth settings only come from the
    process configuration.
    """

    defaults = config.thehive
    authorization = headers.get(HEADER_AUTHORIZATION, "")
    api_key = (
        headers.get(HEADER_THEHIVE_API_KEY)
        or extract_bearer_token(authorization)
        or defaults.api_key
    )

    max_tokens = config.openai.max_tokens
    raw_max_tokens = headers.get(HEADER_OPENAI_MAX_TOKENS, "")
    if raw_max_tokens:
        try:
            max_tokens = int(raw_max_tokens)
        except ValueError:
            logger.warning("Ignoring invalid %s header: %r", HEADER_OPENAI_MAX_TOKENS, raw_max_tokens)

    openai_credentials = OpenAICredentials(
        api_key=_header(headers, HEADER_OPENAI_API_KEY, config.openai.api_key),
        base_url=_header(headers, HEADER_OPENAI_BASE_URL, config.openai.base_url),
        model=_header(headers, HEADER_OPENAI_MODEL, config.openai.model),
        max_tokens=max_tokens,
    )

    return Credentials(
        url=_header(headers, HEADER_THEHIVE_URL, defaults.url),
        api_key=api_key,
        username=defaults.username,
        password=defaults.password,
        organisation=_header(headers, HEADER_THEHIVE_ORG, defaults.organisation),
        openai=openai_credentials,
    )


class HttpContextBuilder:
    """
    Builds a fresh ``RequestContext`` from the headers of each HTTP request.
    """

    owns_clients = True

    def __init__(self, config: AppConfig, policy: Policy) -> None:
        self.config = config
        self.policy = policy

    def __call__(self, request: Any) -> RequestContext:
        headers = getattr(request, "headers", None) or {}
        credentials = credentials_from_headers(headers, self.config)
        ctx = RequestContext(permissions=self.policy, credentials=credentials)

        try:
            ctx.client = build_client(credentials, self.config)
        except ConfigError as exc:
            logger.warning("Failed to add TheHive client to context: %s", exc)
            ctx.auth_error = exc

        if credentials.openai is not None:
            ctx.completion = build_completion(credentials.openai)
        return ctx


class StaticContextBuilder:
    """
    Returns copies of one context built at startup.
    """

    owns_clients = False

    def __init__(self, ctx: RequestContext) -> None:
        self.ctx = ctx

    def __call__(self, request: Any) -> RequestContext:
        return replace(self.ctx)
