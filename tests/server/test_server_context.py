"""
Unit tests for per-transport request context building.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from thehive_mcp.context import RequestContext
from thehive_mcp.core.config import AppConfig
from thehive_mcp.core.credentials import OpenAICredentials
from thehive_mcp.core.errors import CredentialsError, UpstreamError
from thehive_mcp.llm.completion import OpenAIProvider
from thehive_mcp.server.context import (
    HttpContextBuilder,
    StaticContextBuilder,
    build_completion,
    build_stdio_context,
    credentials_from_headers,
)


@pytest.fixture
def config():
    config = AppConfig()
    config.thehive.url = "https://hive.example.com"
    config.thehive.api_key = "env-key"
    config.thehive.organisation = "SOC"
    return config


class TestCredentialsFromHeaders:
    """Test header precedence over the process configuration."""

    def test_defaults(self, config):
        """Test no headers falls back to the configuration."""
        credentials = credentials_from_headers({}, config)
        assert credentials.url == "https://hive.example.com"
        assert credentials.api_key == "env-key"
        assert credentials.organisation == "SOC"

    def test_api_key_header_wins(self, config):
        """Test X-TheHive-Api-Key over Authorization."""
        headers = {"X-TheHive-Api-Key": "header-key", "Authorization": "Bearer bearer-key"}
        assert credentials_from_headers(headers, config).api_key == "header-key"

    def test_bearer_token(self, config):
        """Test the bearer token when no API key header is sent."""
        headers = {"Authorization": "bearer bearer-key", "X-TheHive-Url": "https://other", "X-TheHive-Org": "Blue"}
        credentials = credentials_from_headers(headers, config)
        assert credentials.api_key == "bearer-key"
        assert credentials.url == "https://other"
        assert credentials.organisation == "Blue"

    def test_openai_headers(self, config):
        """Test OpenAI settings per request, with a bad max-tokens ignored."""
        headers = {
            "X-OpenAI-Api-Key": "sk-1",
            "X-OpenAI-Model-Name": "gpt-4o",
            "X-OpenAI-Max-Tokens": "lots",
        }
        openai = credentials_from_headers(headers, config).openai
        assert openai.api_key == "sk-1"
        assert openai.model == "gpt-4o"
        assert openai.max_tokens == config.openai.max_tokens

    def test_basic_auth_from_config_only(self, config):
        """Test username and password come from the configuration."""
        config.thehive.api_key = ""
        config.thehive.username = "bob"
        config.thehive.password = "pw"
        credentials = credentials_from_headers({}, config)
        assert credentials.has_basic_auth
        assert not credentials.has_api_key


class TestHttpContextBuilder:
    """Test per-request contexts."""

    def test_client_built(self, config, admin_policy):
        """Test valid credentials produce a client owned by the request."""
        builder = HttpContextBuilder(config, admin_policy)
        ctx = builder(SimpleNamespace(headers={"X-OpenAI-Api-Key": "sk-1"}))

        assert builder.owns_clients is True
        assert ctx.auth_error is None
        assert ctx.client.base_url == "https://hive.example.com"
        assert ctx.permissions is admin_policy
        assert isinstance(ctx.completion, OpenAIProvider)
        ctx.client.close()

    def test_auth_error_deferred(self, admin_policy):
        """Test missing credentials are stored rather than raised."""
        ctx = HttpContextBuilder(AppConfig(), admin_policy)(SimpleNamespace(headers={}))
        assert ctx.client is None
        assert isinstance(ctx.auth_error, CredentialsError)
        assert ctx.auth_error.kind == "missing-url"
        assert ctx.completion is None

    def test_no_request(self, config, admin_policy):
        """Test a request without headers uses the configuration."""
        ctx = HttpContextBuilder(config, admin_policy)(None)
        assert ctx.credentials.api_key == "env-key"
        ctx.client.close()


class TestStdioContext:
    """Test the single stdio context."""

    def test_ping_failure(self, config, admin_policy):
        """Test a failed authentication check becomes the deferred error."""
        with patch(
            "thehive_mcp.integrations.thehive.client.TheHiveClient.ping",
            side_effect=UpstreamError(401, {"type": "AuthenticationError"}),
        ):
            ctx = build_stdio_context(config, admin_policy)

        assert str(ctx.auth_error).startswith("TheHive authentication failed: TheHive error 401")
        assert ctx.client is not None

    def test_ping_success(self, config, admin_policy):
        """Test a working connection."""
        with patch("thehive_mcp.integrations.thehive.client.TheHiveClient.ping", return_value=True):
            ctx = build_stdio_context(config, admin_policy)
        assert ctx.auth_error is None

    def test_invalid_credentials(self, admin_policy):
        """Test invalid environment credentials do not stop the server."""
        config = AppConfig()
        config.thehive.url = "https://hive"
        config.thehive.api_key = "dummy"
        ctx = build_stdio_context(config, admin_policy)
        assert ctx.client is None
        assert ctx.auth_error.kind == "missing-auth"

    def test_static_builder_copies(self):
        """Test each request gets its own copy of the startup context."""
        base = RequestContext()
        builder = StaticContextBuilder(base)
        first = builder(None)
        assert first is not base
        assert builder(None) is not first
        assert builder.owns_clients is False


class TestBuildCompletion:
    """Test the optional OpenAI provider."""

    def test_no_key(self):
        """Test no provider without an API key."""
        assert build_completion(OpenAICredentials(api_key="")) is None

    def test_invalid_settings(self):
        """Test invalid settings are ignored."""
        assert build_completion(OpenAICredentials(api_key="sk", base_url="not a url")) is None

    def test_provider(self):
        """Test a provider with defaults filled in."""
        provider = build_completion(OpenAICredentials(api_key="sk", model="", max_tokens=0))
        assert provider.model == "gpt-4"
        assert provider.max_tokens == 32000
