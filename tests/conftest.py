"""
Shared fixtures: policies, a mocked TheHive client and request contexts.
"""

from unittest.mock import MagicMock

import pytest

from thehive_mcp.context import RequestContext
from thehive_mcp.integrations.thehive.client import TheHiveClient
from thehive_mcp.permissions.loader import load_admin, load_default
from thehive_mcp.prompts import PromptAssembler
from thehive_mcp.resources import build_registry


@pytest.fixture
def admin_policy():
    return load_admin()


@pytest.fixture
def read_only_policy():
    return load_default()


@pytest.fixture
def client():
    return MagicMock(spec=TheHiveClient)


@pytest.fixture
def ctx(client, admin_policy):
    return RequestContext(client=client, permissions=admin_policy)


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def assembler(registry):
    return PromptAssembler(registry)
