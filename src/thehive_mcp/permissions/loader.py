"""
Load permissions policies from YAML files or the built-in presets.
"""

from __future__ import annotations

from pathlib import Path
from typing import Union

import yaml

from ..core.errors import PolicyError
from ..core.logging import get_logger
from .policy import (
    ALLOW_LIST,
    EXECUTE_AUTOMATION,
    GET_RESOURCE,
    MANAGE_ENTITIES,
    SEARCH_ENTITIES,
    AutomationRule,
    Policy,
    ToolPermission,
)


logger = get_logger("thehive_mcp.permissions")

DEFAULT_POLICY_FILE = Path(__file__).with_name("default_permissions.yaml")

ADMIN = "admin"
READ_ONLY = "read_only"


def parse_yaml(data: Union[str, bytes]) -> Policy:
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise PolicyError(f"failed to unmarshal YAML: {exc}") from exc
    return Policy.from_dict(raw)


def load_from_file(path: Union[str, Path]) -> Policy:
    """
    Read, parse and validate a policy file.
    """

    try:
        data = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise PolicyError(f"failed to read permissions file: {exc}") from exc

    try:
        policy = parse_yaml(data)
    except PolicyError as exc:
        raise PolicyError(f"failed to parse permissions file: {exc}") from exc

    try:
        policy.validate()
    except PolicyError as exc:
        raise PolicyError(f"invalid permissions configuration: {exc}") from exc

    return policy


def load_default() -> Policy:
    """
    The packaged read-only policy.
    """

    try:
        data = DEFAULT_POLICY_FILE.read_text(encoding="utf-8")
    except OSError as exc:
        raise PolicyError(f"failed to load default permissions: {exc}") from exc
    return parse_yaml(data)


def load_admin() -> Policy:
    """
    Everything allowed, including every analyzer and responder.
    """

    return Policy(
        version="1.0",
        tools={
            SEARCH_ENTITIES: ToolPermission(allowed=True),
            MANAGE_ENTITIES: ToolPermission(allowed=True),
            EXECUTE_AUTOMATION: ToolPermission(allowed=True),
            GET_RESOURCE: ToolPermission(allowed=True),
        },
        analyzers=AutomationRule(mode=ALLOW_LIST, allowed=["*"]),
        responders=AutomationRule(mode=ALLOW_LIST, allowed=["*"]),
    )


def load_permissions(source: str) -> Policy:
    """
    Resolve a permissions source.

    ``"admin"`` gives the all-allow preset, ``"read_only"`` or an empty
    string the packaged default; anything else is a path to a YAML file.
    """

    if source == ADMIN:
        logger.debug("Using admin permissions preset")
        return load_admin()
    if source in ("", READ_ONLY):
        logger.debug("Using default read-only permissions")
        return load_default()

    logger.debug("Loading permissions from %s", source)
    return load_from_file(source)
