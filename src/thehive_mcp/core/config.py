"""
Configuration models and loading logic for the TheHive MCP server.

The goal of this module is to provide a single place where runtime
configuration (TheHive URL and credentials, OpenAI settings, transport
options, logging) is defined and loaded from the environment. The CLI
layers command line flags on top of what ``load_config`` returns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
import re
from typing import Optional, Tuple

from .errors import ConfigError


DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL = "gpt-4"
DEFAULT_OPENAI_MAX_TOKENS = 32000
DEFAULT_ENDPOINT_PATH = "/mcp"
DEFAULT_HEARTBEAT = "30s"

TRANSPORTS = ("stdio", "http")

_LOG_LEVELS = {
    "debug": "DEBUG",
    "info": "INFO",
    "warn": "WARNING",
    "warning": "WARNING",
    "error": "ERROR",
}


@dataclass
class TheHiveConfig:
    """
    Connection settings for TheHive.
    """

    url: str = ""
    api_key: str = ""
    username: str = ""
    password: str = ""
    organisation: str = ""
    timeout_seconds: int = 30


@dataclass
class OpenAIConfig:
    """
    Settings for the server-hosted completion client.
    """

    base_url: str = DEFAULT_OPENAI_BASE_URL
    api_key: str = ""
    model: str = DEFAULT_OPENAI_MODEL
    max_tokens: int = DEFAULT_OPENAI_MAX_TOKENS


@dataclass
class ServerConfig:
    """
    Transport and policy settings for the MCP server.
    """

    transport: str = "http"
    endpoint_path: str = DEFAULT_ENDPOINT_PATH
    heartbeat: str = DEFAULT_HEARTBEAT
    addr: str = ""
    bind_host: str = ""
    port: str = ""
    permissions_config: str = ""


@dataclass
class LoggingConfig:
    """
    Logging-related configuration.
    """

    log_level: str = "info"


@dataclass
class AppConfig:
    """
    Top-level configuration.
    """

    thehive: TheHiveConfig = field(default_factory=TheHiveConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _require_env(name: str) -> str:
    """
    Read a required environment variable or raise ConfigError if missing.
    """

    value = os.getenv(name)
    if not value:
        raise ConfigError(f"Required environment variable {name!r} is not set")
    return value


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer") from exc


def load_config() -> AppConfig:
    """
    Load configuration from environment variables.

    Environment variables:
        THEHIVE_URL, THEHIVE_API_KEY, THEHIVE_USERNAME, THEHIVE_PASSWORD,
        THEHIVE_ORGANISATION: TheHive connection and credentials.
        PERMISSIONS_CONFIG: "admin", "read_only" or a path to a YAML policy.
        MCP_SERVER_ENDPOINT: HTTP endpoint path (default: "/mcp").
        MCP_HEARTBEAT_INTERVAL: Session heartbeat interval (default: "30s").
        MCP_BIND_HOST, MCP_PORT: HTTP bind address when --addr is not given.
        LOG_LEVEL: debug, info, warn or error (default: "info").
        OPENAI_BASE_URL, OPENAI_API_KEY, OPENAI_MODEL, OPENAI_MAX_TOKENS:
            Server-hosted completion client.

    Nothing here is required: TheHive credentials are validated when the
    request context is built, and the bind address only when the HTTP
    transport starts.
    """

    thehive_cfg = TheHiveConfig(
        url=os.getenv("THEHIVE_URL", ""),
        api_key=os.getenv("THEHIVE_API_KEY", ""),
        username=os.getenv("THEHIVE_USERNAME", ""),
        password=os.getenv("THEHIVE_PASSWORD", ""),
        organisation=os.getenv("THEHIVE_ORGANISATION", ""),
    )

    openai_cfg = OpenAIConfig(
        base_url=os.getenv("OPENAI_BASE_URL") or DEFAULT_OPENAI_BASE_URL,
        api_key=os.getenv("OPENAI_API_KEY", ""),
        model=os.getenv("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
        max_tokens=_int_env("OPENAI_MAX_TOKENS", DEFAULT_OPENAI_MAX_TOKENS),
    )

    server_cfg = ServerConfig(
        endpoint_path=os.getenv("MCP_SERVER_ENDPOINT") or DEFAULT_ENDPOINT_PATH,
        heartbeat=os.getenv("MCP_HEARTBEAT_INTERVAL") or DEFAULT_HEARTBEAT,
        bind_host=os.getenv("MCP_BIND_HOST", ""),
        port=os.getenv("MCP_PORT", ""),
        permissions_config=os.getenv("PERMISSIONS_CONFIG", ""),
    )

    logging_cfg = LoggingConfig(log_level=os.getenv("LOG_LEVEL") or "info")

    return AppConfig(
        thehive=thehive_cfg,
        openai=openai_cfg,
        server=server_cfg,
        logging=logging_cfg,
    )


def normalize_log_level(level: str) -> str:
    """
    Map a user-facing level name to a ``logging`` level name.
    """

    try:
        return _LOG_LEVELS[level.strip().lower()]
    except KeyError as exc:
        raise ConfigError(
            f"invalid log level {level!r} (must be one of debug, info, warn, error)"
        ) from exc


_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str) -> float:
    """
    Parse a duration such as ``30s``, ``1m30s`` or ``500ms`` into seconds.

    A bare number is read as seconds.
    """

    text = value.strip()
    if not text:
        raise ConfigError("heartbeat interval must not be empty")

    try:
        seconds = float(text)
    except ValueError:
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
        if pos != len(text) or pos == 0:
            raise ConfigError(f"invalid heartbeat interval {value!r}")

    if seconds <= 0:
        raise ConfigError(f"heartbeat interval must be positive, got {value!r}")
    return seconds


def resolve_bind_address(server: ServerConfig) -> Tuple[str, int]:
    """
    Work out the HTTP bind address from ``--addr`` or MCP_BIND_HOST/MCP_PORT.
    """

    addr: Optional[str] = server.addr
    if not addr:
        host = server.bind_host or _require_env("MCP_BIND_HOST")
        port = server.port or _require_env("MCP_PORT")
        addr = f"{host}:{port}"

    host, sep, port_raw = addr.rpartition(":")
    if not sep or not port_raw:
        raise ConfigError(f"invalid bind address {addr!r} (expected HOST:PORT)")
    try:
        port_num = int(port_raw)
    except ValueError as exc:
        raise ConfigError(f"invalid port in bind address {addr!r}") from exc
    return host.strip("[]") or "0.0.0.0", port_num
