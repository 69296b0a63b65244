"""
Shared logging configuration for the TheHive MCP server.

This module centralizes logging setup so that all components (core,
permissions, the TheHive client, tools, transports) log in a consistent
way. With the stdio transport stdout carries protocol frames, so logs must
go to stderr.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Optional

from .config import LoggingConfig, normalize_log_level


def configure_logging(
    config: Optional[LoggingConfig] = None,
    stream: Optional[IO[str]] = None,
) -> None:
    """
    Configure application-wide logging.

    This function is idempotent: calling it multiple times will not
    re-add handlers if they already exist.
    """

    if config is None:
        config = LoggingConfig()

    level = normalize_log_level(config.log_level)

    root_logger = logging.getLogger()

    # Avoid configuring logging twice.
    if getattr(root_logger, "_thehive_mcp_logging_configured", False):
        return

    root_logger.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s [%(message)s]",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # urllib3 logs every connection at DEBUG; the HTTP logging adapter
    # already covers upstream traffic.
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    # Mark as configured
    root_logger._thehive_mcp_logging_configured = True  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    """
    Convenience helper to get a logger for a given module or subsystem.
    """

    return logging.getLogger(name)
