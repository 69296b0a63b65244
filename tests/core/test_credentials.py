"""
Unit tests for credential validation and header parsing.
"""

import pytest

from thehive_mcp.core.config import DEFAULT_OPENAI_BASE_URL, DEFAULT_OPENAI_MODEL, TheHiveConfig
from thehive_mcp.core.credentials import Credentials, OpenAICredentials, extract_bearer_token
from thehive_mcp.core.errors import ConfigError, CredentialsError


class TestCredentialsValidate:
    """Test the order and messages of TheHive credential checks."""

    def test_api_key_is_valid(self):
        """Test a URL plus API key passes."""
        Credentials(url="https://hive.example.com", api_key="secret").validate()

    def test_basic_auth_is_valid(self):
        """Test a URL plus username/password passes."""
        Credentials(url="https://hive.example.com", username="bob", password="pw").validate()

    def test_missing_url(self):
        """Test an empty URL is reported first."""
        with pytest.raises(CredentialsError) as exc_info:
            Credentials(url="", api_key="dummy").validate()
        assert exc_info.value.kind == "missing-url"
        assert str(exc_info.value) == "THEHIVE_URL environment variable is required"

    def test_invalid_url(self):
        """Test a relative URL is rejected."""
        with pytest.raises(CredentialsError) as exc_info:
            Credentials(url="hive.example.com", api_key="secret").validate()
        assert exc_info.value.kind == "invalid-url"
        assert str(exc_info.value) == "invalid TheHive URL format"

    def test_missing_auth(self):
        """Test no usable auth method at all."""
        with pytest.raises(CredentialsError) as exc_info:
            Credentials(url="https://hive.example.com").validate()
        assert exc_info.value.kind == "missing-auth"
        assert str(exc_info.value) == "either API key or username/password must be provided"

    def test_dummy_key_alone_is_missing_auth(self):
        """Test the sentinel key does not count as an auth method."""
        with pytest.raises(CredentialsError) as exc_info:
            Credentials(url="https://hive.example.com", api_key="DUMMY").validate()
        assert exc_info.value.kind == "missing-auth"

    def test_dummy_key_with_basic_auth_is_rejected(self):
        """Test the sentinel key is rejected even when basic auth is complete."""
        creds = Credentials(url="https://hive.example.com", api_key="dummy", username="bob", password="pw")
        with pytest.raises(CredentialsError) as exc_info:
            creds.validate()
        assert exc_info.value.kind == "invalid-api-key"
        assert str(exc_info.value) == "API key cannot be empty or 'dummy'"

    def test_half_basic_auth_with_api_key(self):
        """Test a username without password is rejected even with an API key."""
        creds = Credentials(url="https://hive.example.com", api_key="secret", username="bob")
        with pytest.raises(CredentialsError) as exc_info:
            creds.validate()
        assert exc_info.value.kind == "missing-credentials"
        assert str(exc_info.value) == "both username and password are required for basic auth"

    def test_credentials_error_is_config_error(self):
        """Test callers can catch credential problems as config errors."""
        with pytest.raises(ConfigError):
            Credentials(url="").validate()

    def test_base_url_strips_trailing_slash(self):
        """Test the trailing slash is removed from the base URL."""
        assert Credentials(url="https://hive.example.com/").base_url == "https://hive.example.com"

    def test_from_config(self):
        """Test building credentials from configuration."""
        config = TheHiveConfig(url="https://hive", api_key="k", organisation="org")
        creds = Credentials.from_config(config)
        assert creds.url == "https://hive"
        assert creds.api_key == "k"
        assert creds.organisation == "org"
        assert creds.has_api_key
        assert not creds.has_basic_auth


class TestOpenAICredentials:
    """Test OpenAI credential validation and defaults."""

    def test_defaults_applied(self):
        """Test empty base URL and model fall back to defaults."""
        creds = OpenAICredentials(api_key="sk", base_url="", model="", max_tokens=0)
        creds.validate()
        assert creds.base_url == DEFAULT_OPENAI_BASE_URL
        assert creds.model == DEFAULT_OPENAI_MODEL
        assert creds.max_tokens > 0

    def test_dummy_key_rejected(self):
        """Test the sentinel key is rejected."""
        with pytest.raises(CredentialsError, match="OpenAI API key cannot be 'dummy'"):
            OpenAICredentials(api_key="dummy").validate()

    def test_invalid_base_url(self):
        """Test a base URL without scheme is rejected."""
        with pytest.raises(CredentialsError):
            OpenAICredentials(api_key="sk", base_url="not a url").validate()


class TestExtractBearerToken:
    """Test Authorization header parsing."""

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc", "abc"),
            ("bearer abc", "abc"),
            ("BEARER   abc  ", "abc"),
            ("abc", "abc"),
            ("", ""),
        ],
    )
    def test_strips_prefix(self, header, expected):
        """Test one case-insensitive bearer prefix and whitespace are removed."""
        assert extract_bearer_token(header) == expected
