"""
Unit tests for policy loading, validation and authorization queries.
"""

import textwrap

import pytest

from thehive_mcp.core.errors import PolicyError
from thehive_mcp.permissions import (
    EXECUTE_AUTOMATION,
    GET_RESOURCE,
    MANAGE_ENTITIES,
    SEARCH_ENTITIES,
    load_from_file,
    load_permissions,
)
from thehive_mcp.permissions.loader import parse_yaml


POLICY_YAML = textwrap.dedent(
    """
    version: "1.0"
    permissions:
      tools:
        search-entities:
          allowed: true
          filters:
            _eq:
              _field: tlp
              _value: 1
        manage-entities:
          allowed: true
          entity_permissions:
            case:
              create: true
              comment: true
            alert:
              promote: true
        execute-automation:
          allowed: true
          analyzer_restrictions:
            mode: allow_list
            allowed: ["VirusTotal_GetReport_3_1"]
        get-resource:
          allowed: true
      analyzers:
        mode: block_list
        blocked: ["Shodan_Host_1_0"]
      responders:
        mode: allow_list
        allowed: ["Mailer_1_0"]
    """
)


@pytest.fixture
def policy():
    parsed = parse_yaml(POLICY_YAML)
    parsed.validate()
    return parsed


def write_policy(tmp_path, text):
    path = tmp_path / "permissions.yaml"
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


class TestLoadPermissions:
    """Test policy sources."""

    def test_default_is_read_only(self):
        """Test the packaged default allows only reading tools."""
        policy = load_permissions("")
        assert policy.is_tool_allowed(SEARCH_ENTITIES)
        assert policy.is_tool_allowed(GET_RESOURCE)
        assert not policy.is_tool_allowed(MANAGE_ENTITIES)
        assert not policy.is_tool_allowed(EXECUTE_AUTOMATION)
        assert not policy.is_analyzer_allowed("anything")

    def test_read_only_keyword(self):
        """Test 'read_only' resolves to the packaged default."""
        assert load_permissions("read_only") == load_permissions("")

    def test_admin_allows_everything(self):
        """Test the admin preset."""
        policy = load_permissions("admin")
        for tool in (SEARCH_ENTITIES, MANAGE_ENTITIES, EXECUTE_AUTOMATION, GET_RESOURCE):
            assert policy.is_tool_allowed(tool)
        assert policy.is_entity_operation_allowed("case", "delete")
        assert policy.is_analyzer_allowed("Any_Analyzer")
        assert policy.is_responder_allowed("Any_Responder")

    def test_from_file(self, tmp_path):
        """Test loading a policy file by path."""
        path = write_policy(tmp_path, POLICY_YAML)
        policy = load_permissions(str(path))
        assert policy.version == "1.0"
        assert policy.is_tool_allowed(MANAGE_ENTITIES)

    def test_missing_file(self, tmp_path):
        """Test a missing file is a policy error."""
        with pytest.raises(PolicyError, match="failed to read permissions file"):
            load_from_file(tmp_path / "nope.yaml")

    def test_malformed_yaml(self, tmp_path):
        """Test invalid YAML is a policy error."""
        path = write_policy(tmp_path, "version: [1.0\n")
        with pytest.raises(PolicyError, match="failed to parse permissions file"):
            load_from_file(path)


class TestPolicyValidation:
    """Test the exact validation messages."""

    def test_missing_version(self, tmp_path):
        """Test version is required."""
        path = write_policy(tmp_path, "permissions: {}\n")
        with pytest.raises(PolicyError, match="version is required"):
            load_from_file(path)

    def test_unsupported_version(self):
        """Test only version 1.0 is supported."""
        policy = parse_yaml('version: "2.0"\n')
        with pytest.raises(PolicyError) as exc_info:
            policy.validate()
        assert str(exc_info.value) == "unsupported version: 2.0 (supported: 1.0)"

    def test_unknown_tool(self):
        """Test unknown tool names are rejected."""
        policy = parse_yaml('version: "1.0"\npermissions:\n  tools:\n    rm-rf:\n      allowed: true\n')
        with pytest.raises(PolicyError) as exc_info:
            policy.validate()
        assert str(exc_info.value) == "invalid tools configuration: unknown tool: rm-rf"

    def test_invalid_mode(self):
        """Test automation modes other than allow_list/block_list."""
        policy = parse_yaml('version: "1.0"\npermissions:\n  analyzers:\n    mode: maybe\n')
        with pytest.raises(PolicyError) as exc_info:
            policy.validate()
        assert str(exc_info.value) == "invalid analyzers mode: maybe (must be 'allow_list' or 'block_list')"

    def test_blocked_with_allow_list(self):
        """Test a blocked list is not allowed in allow_list mode."""
        policy = parse_yaml(
            'version: "1.0"\npermissions:\n  responders:\n    mode: allow_list\n    blocked: ["x"]\n'
        )
        with pytest.raises(PolicyError) as exc_info:
            policy.validate()
        assert str(exc_info.value) == "responders: cannot specify 'blocked' list when mode is 'allow_list'"

    def test_invalid_tool_filter(self):
        """Test tool filters are structurally checked."""
        policy = parse_yaml(
            'version: "1.0"\npermissions:\n  tools:\n    search-entities:\n      allowed: true\n'
            "      filters:\n        _bogus: {}\n"
        )
        with pytest.raises(PolicyError, match="invalid tools configuration"):
            policy.validate()


class TestAuthorizationQueries:
    """Test the policy's read-only queries."""

    def test_tool_allowed(self, policy):
        """Test tool-level permission."""
        assert policy.is_tool_allowed(SEARCH_ENTITIES)
        assert not policy.is_tool_allowed("unknown-tool")

    def test_entity_operations(self, policy):
        """Test the entity operation matrix; missing entries deny."""
        assert policy.is_entity_operation_allowed("case", "create")
        assert policy.is_entity_operation_allowed("case", "comment")
        assert not policy.is_entity_operation_allowed("case", "delete")
        assert policy.is_entity_operation_allowed("alert", "promote")
        assert not policy.is_entity_operation_allowed("task", "update")

    def test_entity_operations_without_matrix(self):
        """Test an allowed manage tool without a matrix allows everything."""
        policy = parse_yaml('version: "1.0"\npermissions:\n  tools:\n    manage-entities:\n      allowed: true\n')
        assert policy.is_entity_operation_allowed("observable", "merge")

    def test_entity_operations_when_tool_denied(self, read_only_policy):
        """Test a denied manage tool denies every operation."""
        assert not read_only_policy.is_entity_operation_allowed("case", "create")

    def test_tool_filters(self, policy):
        """Test the filter attached to a tool."""
        assert policy.get_tool_filters(SEARCH_ENTITIES) == {"_eq": {"_field": "tlp", "_value": 1}}
        assert policy.get_tool_filters(GET_RESOURCE) is None

    def test_analyzer_tool_override(self, policy):
        """Test per-tool analyzer restrictions replace the global list."""
        assert policy.is_analyzer_allowed("VirusTotal_GetReport_3_1", EXECUTE_AUTOMATION)
        assert not policy.is_analyzer_allowed("Abuse_Finder_3_0", EXECUTE_AUTOMATION)
        # Global block list without a tool.
        assert policy.is_analyzer_allowed("Abuse_Finder_3_0")
        assert not policy.is_analyzer_allowed("Shodan_Host_1_0")

    def test_responders(self, policy):
        """Test the global responder allow list."""
        assert policy.is_responder_allowed("Mailer_1_0", EXECUTE_AUTOMATION)
        assert not policy.is_responder_allowed("Wazuh_1_0", EXECUTE_AUTOMATION)

    def test_allowed_name_lists(self, policy):
        """Test filtering lists of names through the policy."""
        names = ["VirusTotal_GetReport_3_1", "Shodan_Host_1_0"]
        assert policy.get_allowed_analyzers(names, EXECUTE_AUTOMATION) == ["VirusTotal_GetReport_3_1"]
        assert policy.get_allowed_responders(["Mailer_1_0", "Other"]) == ["Mailer_1_0"]

    def test_summary(self, policy):
        """Test the summary lists every known tool."""
        summary = policy.summary()
        assert summary["version"] == "1.0"
        assert set(summary["tools"]) == {SEARCH_ENTITIES, MANAGE_ENTITIES, EXECUTE_AUTOMATION, GET_RESOURCE}
        assert summary["analyzers"]["mode"] == "block_list"
