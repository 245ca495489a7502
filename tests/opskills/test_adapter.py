"""Tests for skill <-> MCP conversions."""

from pathlib import Path

import pytest
from mcp.types import CallToolResult, TextContent

from opskills.errors import InvalidSkillURIError
from opskills.skill import adapter
from opskills.skill.types import ExecutionResult, Skill


@pytest.fixture
def kubekey():
    return Skill(name="kubekey", description="Manage clusters", base_path=Path("/skills/kubekey"))


class TestTools:
    def test_skill_to_tool(self, kubekey):
        """A skill becomes a tool with the fixed action/params schema."""
        tool = adapter.skill_to_tool(kubekey)
        assert tool.name == "kubekey"
        assert tool.description == "Manage clusters"
        assert tool.inputSchema["type"] == "object"
        assert tool.inputSchema["required"] == ["action"]
        assert tool.inputSchema["properties"]["action"]["type"] == "string"
        assert tool.inputSchema["properties"]["params"]["type"] == "object"

    def test_tool_call_round_trip(self, kubekey):
        """Valid tool arguments validate cleanly and flatten into params."""
        tool = adapter.skill_to_tool(kubekey)
        arguments = {"action": "create", "params": {"foo": "bar"}}
        assert adapter.validate_tool_arguments(tool, arguments) == []
        assert adapter.tool_call_to_params(arguments) == {"action": "create", "foo": "bar"}

    def test_skills_to_tools_keeps_order(self, kubekey):
        """Tools come back in registry order."""
        other = Skill(name="echo", description="", base_path=Path("/skills/echo"))
        assert [t.name for t in adapter.skills_to_tools([kubekey, other])] == ["kubekey", "echo"]


class TestToolCallToParams:
    def test_empty_arguments(self):
        """None and {} both give empty params."""
        assert adapter.tool_call_to_params(None) == {}
        assert adapter.tool_call_to_params({}) == {}

    def test_other_keys_pass_through(self):
        """Keys other than action and params are copied as-is."""
        params = adapter.tool_call_to_params({"nodes": 3, "dry_run": True})
        assert params == {"nodes": 3, "dry_run": True}

    def test_non_string_action_is_dropped(self):
        """A non-string action does not select a script."""
        assert adapter.tool_call_to_params({"action": 5}) == {}

    def test_non_dict_params_is_dropped(self):
        """Only an object-valued params is flattened."""
        assert adapter.tool_call_to_params({"params": "x"}) == {}
        assert adapter.tool_call_to_params({"params": ["a"], "nodes": 3}) == {"nodes": 3}

    def test_top_level_overrides_nested(self):
        """Top-level keys win over the same key inside params."""
        params = adapter.tool_call_to_params({"params": {"a": 1, "b": 2}, "b": 3})
        assert params == {"a": 1, "b": 3}


class TestValidateToolArguments:
    def test_type_mismatch(self, kubekey):
        """Declared properties with the wrong JSON type are reported."""
        tool = adapter.skill_to_tool(kubekey)
        problems = adapter.validate_tool_arguments(tool, {"action": 1, "params": []})
        assert len(problems) == 2
        assert "action" in problems[0]
        assert "expected string, got number" in problems[0]

    def test_bool_is_not_a_number(self):
        """A boolean does not satisfy a number or integer property."""
        from mcp.types import Tool

        tool = Tool(name="t", inputSchema={"type": "object", "properties": {"n": {"type": "number"}}})
        assert adapter.validate_tool_arguments(tool, {"n": True})
        assert adapter.validate_tool_arguments(tool, {"n": 1.5}) == []

    def test_missing_and_undeclared_not_reported(self, kubekey):
        """Only types are checked, not presence or extra keys."""
        tool = adapter.skill_to_tool(kubekey)
        assert adapter.validate_tool_arguments(tool, {"extra": object()}) == []


class TestSkillURI:
    def test_parse_script_uri(self):
        """A script URI splits into skill name and resource path."""
        assert adapter.parse_skill_uri("skill://kubekey/script/create_cluster.sh") == (
            "kubekey",
            "script/create_cluster.sh",
        )

    def test_parse_splits_on_first_separator_only(self):
        """Only the first slash separates name from path."""
        assert adapter.parse_skill_uri("skill://k/config/a/b.yaml") == ("k", "config/a/b.yaml")

    def test_name_only(self):
        """A URI without a path yields an empty path."""
        assert adapter.parse_skill_uri("skill://kubekey") == ("kubekey", "")

    @pytest.mark.parametrize("uri", ["kubekey/skill.md", "file:///etc/passwd", "skill:///skill.md", ""])
    def test_rejects(self, uri):
        """Wrong scheme or empty skill name is rejected."""
        with pytest.raises(InvalidSkillURIError):
            adapter.parse_skill_uri(uri)

    def test_build(self):
        """build_skill_uri joins prefix, name and path."""
        assert adapter.build_skill_uri("kubekey", "skill.md") == "skill://kubekey/skill.md"


class TestResources:
    def test_doc_script_and_config_resources(self, kubekey):
        """Docs, scripts and example configs each get a typed resource."""
        resources = adapter.skills_to_resources(
            [kubekey],
            scripts={"kubekey": ["add_nodes.sh", "create_cluster.sh"]},
            configs={"kubekey": ["cluster-config.yaml"]},
        )
        uris = [str(r.uri) for r in resources]
        assert uris == [
            "skill://kubekey/skill.md",
            "skill://kubekey/script/add_nodes.sh",
            "skill://kubekey/script/create_cluster.sh",
            "skill://kubekey/config/cluster-config.yaml",
        ]
        assert [r.mimeType for r in resources] == [
            "text/markdown",
            "text/x-shellscript",
            "text/x-shellscript",
            "application/yaml",
        ]

    def test_doc_only_without_listings(self, kubekey):
        """Without listings only the SKILL.md resource is produced."""
        resources = adapter.skills_to_resources([kubekey])
        assert len(resources) == 1
        assert resources[0].name == "kubekey Skill Documentation"


class TestResultConversion:
    def test_success(self):
        """Success maps to one text block and isError false."""
        result = adapter.execution_result_to_tool_result(ExecutionResult(success=True, output="done"))
        assert not result.isError
        assert len(result.content) == 1
        assert result.content[0].text == "done"
        assert result.structuredContent is None

    def test_failure_is_flagged_not_raised(self):
        """Failure sets isError and carries the exit code."""
        result = adapter.execution_result_to_tool_result(
            ExecutionResult(success=False, error="boom", exit_code=3)
        )
        assert result.isError
        assert result.content[0].text == "Error: boom"
        assert result.structuredContent == {"error": "boom", "exit_code": 3}

    def test_back_to_execution_result(self):
        """Text blocks are joined back into the output."""
        result = adapter.tool_result_to_execution_result(
            CallToolResult(
                content=[TextContent(type="text", text="a"), TextContent(type="text", text="b")]
            ),
            duration_ms=12.5,
        )
        assert result.success
        assert result.output == "a\nb\n"
        assert result.error == ""
        assert result.exit_code == 0
        assert result.duration_ms == 12.5

    def test_error_round_trip_keeps_exit_code(self):
        """The exit code survives a server-to-client round trip."""
        tool_result = adapter.execution_result_to_tool_result(
            ExecutionResult(success=False, error="boom", exit_code=3)
        )
        result = adapter.tool_result_to_execution_result(tool_result)
        assert not result.success
        assert result.error == "Error: boom\n"
        assert result.exit_code == 3

    def test_error_without_structured_content(self):
        """Errors without structured content default to exit code 1."""
        result = adapter.tool_result_to_execution_result(
            CallToolResult(content=[TextContent(type="text", text="x")], isError=True)
        )
        assert result.exit_code == 1
