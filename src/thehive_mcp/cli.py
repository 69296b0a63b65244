"""
Command line entry point.

Every option has a matching environment variable; a flag wins over the
environment, which wins over the built-in default. A ``.env`` file in the
working directory is loaded first and never overrides variables that are
already set.
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from . import __version__
from .core.config import TRANSPORTS, AppConfig, load_config, normalize_log_level, parse_duration, resolve_bind_address
from .core.credentials import OpenAICredentials
from .core.errors import ConfigError, PolicyError
from .core.logging import configure_logging, get_logger
from .llm.completion import set_default_provider
from .permissions.loader import load_permissions
from .permissions.policy import Policy
from .prompts import PromptAssembler
from .resources import build_registry
from .server.app import TheHiveMcpServer
from .server.context import HttpContextBuilder, StaticContextBuilder, build_completion, build_stdio_context
from .server.heartbeat import SessionHeartbeat
from .tools import build_tools


logger = get_logger("thehive_mcp.cli")

LOG_LEVEL_CHOICES = ("debug", "info", "warn", "error")

# (flag, dest, env var, help)
_STRING_OPTIONS = (
    ("--thehive-url", "thehive_url", "THEHIVE_URL", "TheHive base URL"),
    ("--thehive-api-key", "thehive_api_key", "THEHIVE_API_KEY", "TheHive API key"),
    ("--thehive-username", "thehive_username", "THEHIVE_USERNAME", "TheHive username for basic auth"),
    ("--thehive-password", "thehive_password", "THEHIVE_PASSWORD", "TheHive password for basic auth"),
    ("--thehive-organisation", "thehive_organisation", "THEHIVE_ORGANISATION", "TheHive organisation"),
    (
        "--permissions-config",
        "permissions_config",
        "PERMISSIONS_CONFIG",
        "'admin', 'read_only' or a path to a YAML permissions file (default: read_only)",
    ),
    ("--mcp-endpoint-path", "mcp_endpoint_path", "MCP_SERVER_ENDPOINT", "HTTP endpoint path (default: /mcp)"),
    (
        "--mcp-heartbeat-interval",
        "mcp_heartbeat_interval",
        "MCP_HEARTBEAT_INTERVAL",
        "session heartbeat interval, e.g. 30s or 1m (default: 30s)",
    ),
    ("--openai-base-url", "openai_base_url", "OPENAI_BASE_URL", "OpenAI-compatible API base URL"),
    ("--openai-api-key", "openai_api_key", "OPENAI_API_KEY", "OpenAI API key"),
    ("--openai-model", "openai_model", "OPENAI_MODEL", "model name (default: gpt-4)"),
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thehive-mcp",
        description="Model Context Protocol server for TheHive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    for flag, dest, env, help_text in _STRING_OPTIONS:
        parser.add_argument(flag, dest=dest, default=None, help=f"{help_text} [env: {env}]")

    parser.add_argument(
        "--transport",
        choices=TRANSPORTS,
        default="http",
        help="MCP transport (default: http)",
    )
    parser.add_argument(
        "--addr",
        default=None,
        help="HTTP bind address HOST:PORT [env: MCP_BIND_HOST and MCP_PORT]",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVEL_CHOICES,
        default=None,
        help="log level (default: info) [env: LOG_LEVEL]",
    )
    parser.add_argument(
        "--openai-max-tokens",
        type=int,
        default=None,
        help="maximum completion tokens (default: 32000) [env: OPENAI_MAX_TOKENS]",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def apply_args(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """
    Layer command line flags over the environment configuration.
    """

    def override(current, value):
        return current if value is None else value

    thehive = config.thehive
    thehive.url = override(thehive.url, args.thehive_url)
    thehive.api_key = override(thehive.api_key, args.thehive_api_key)
    thehive.username = override(thehive.username, args.thehive_username)
    thehive.password = override(thehive.password, args.thehive_password)
    thehive.organisation = override(thehive.organisation, args.thehive_organisation)

    server = config.server
    server.transport = args.transport
    server.addr = override(server.addr, args.addr)
    server.endpoint_path = override(server.endpoint_path, args.mcp_endpoint_path)
    server.heartbeat = override(server.heartbeat, args.mcp_heartbeat_interval)
    server.permissions_config = override(server.permissions_config, args.permissions_config)

    openai_cfg = config.openai
    openai_cfg.base_url = override(openai_cfg.base_url, args.openai_base_url)
    openai_cfg.api_key = override(openai_cfg.api_key, args.openai_api_key)
    openai_cfg.model = override(openai_cfg.model, args.openai_model)
    openai_cfg.max_tokens = override(openai_cfg.max_tokens, args.openai_max_tokens)

    config.logging.log_level = override(config.logging.log_level, args.log_level)
    return config


def build_server(config: AppConfig, policy: Policy, heartbeat: SessionHeartbeat) -> TheHiveMcpServer:
    registry = build_registry()
    assembler = PromptAssembler(registry)
    tools = build_tools(registry, assembler)

    if config.server.transport == "stdio":
        context_builder = StaticContextBuilder(build_stdio_context(config, policy))
    else:
        context_builder = HttpContextBuilder(config, policy)

    return TheHiveMcpServer(registry, assembler, tools, context_builder, heartbeat=heartbeat)


def run(config: AppConfig) -> None:
    transport = config.server.transport
    if transport not in TRANSPORTS:
        raise ConfigError(f"unknown transport {transport!r} (must be one of {', '.join(TRANSPORTS)})")

    level = normalize_log_level(config.logging.log_level)
    heartbeat_seconds = parse_duration(config.server.heartbeat)
    bind = resolve_bind_address(config.server) if transport == "http" else None

    # stdout carries protocol frames on stdio.
    configure_logging(config.logging, stream=sys.stderr if transport == "stdio" else sys.stdout)
    logger.info("Starting TheHive MCP %s (transport=%s)", __version__, transport)

    policy = load_permissions(config.server.permissions_config)
    logger.info("Permissions loaded (version %s)", policy.version)

    set_default_provider(build_completion(OpenAICredentials.from_config(config.openai)))
    mcp_server = build_server(config, policy, SessionHeartbeat(heartbeat_seconds))

    if transport == "stdio":
        from .server.stdio import serve_stdio

        serve_stdio(mcp_server)
    else:
        from .server.http import serve_http

        host, port = bind
        serve_http(mcp_server, host, port, config.server.endpoint_path, level.lower())


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv(override=False)
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    try:
        config = apply_args(load_config(), args)
        run(config)
    except (ConfigError, PolicyError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
