"""Tests for the direct executor and the subprocess primitive."""

import sys
import time

import pytest

from opskills.direct.executor import DirectExecutor, stringify_param
from opskills.primitives.subprocess import SubprocessPrimitive, SubprocessResult


class TestSubprocessPrimitive:
    """Test SubprocessPrimitive.execute."""

    @pytest.mark.asyncio
    async def test_captures_output(self):
        """stdout, stderr and the return code are captured."""
        result = await SubprocessPrimitive().execute(
            {"command": sys.executable, "args": ["-c", "import sys; print('hi'); print('err', file=sys.stderr)"]}
        )
        assert isinstance(result, SubprocessResult)
        assert result.success is True
        assert result.stdout == "hi\n"
        assert result.stderr == "err\n"
        assert result.return_code == 0
        assert result.timed_out is False

    @pytest.mark.asyncio
    async def test_env_and_stdin(self):
        """Extra env is merged and input reaches stdin."""
        result = await SubprocessPrimitive().execute(
            {
                "command": sys.executable,
                "args": ["-c", "import os, sys; print(os.environ['X_TEST'] + sys.stdin.read())"],
                "env": {"X_TEST": "a"},
                "input_data": "b",
            }
        )
        assert result.stdout.strip() == "ab"

    @pytest.mark.asyncio
    async def test_missing_command(self):
        """A missing executable is a failed result."""
        result = await SubprocessPrimitive().execute({"command": "/nonexistent/binary-xyz"})
        assert result.success is False
        assert result.return_code == 127

    @pytest.mark.asyncio
    async def test_no_command(self):
        """An empty command is a failed result."""
        result = await SubprocessPrimitive().execute({})
        assert result.success is False
        assert result.stderr == "No command specified"

    @pytest.mark.asyncio
    async def test_timeout_kills(self):
        """The process is killed when the timeout expires."""
        start = time.monotonic()
        result = await SubprocessPrimitive().execute(
            {"command": sys.executable, "args": ["-c", "import time; time.sleep(30)"], "timeout": 0.5}
        )
        assert time.monotonic() - start < 10
        assert result.timed_out is True
        assert result.success is False
        assert "timeout" in result.stderr


class TestStringifyParam:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("x", "x"),
            (True, "true"),
            (False, "false"),
            (None, ""),
            (3, "3"),
            (1.5, "1.5"),
            ({"a": [1, 2]}, '{"a":[1,2]}'),
            ([1, "b"], '[1,"b"]'),
        ],
    )
    def test_stringify(self, value, expected):
        """Parameters are stringified for env and args."""
        assert stringify_param(value) == expected


class TestScriptSelection:
    """Test DirectExecutor.find_script."""

    def test_explicit_script_wins(self, echo_skill):
        """An explicit script param beats the action."""
        path = DirectExecutor().find_script(echo_skill, {"script": "fail.sh", "action": "create"})
        assert path.name == "fail.sh"

    def test_explicit_script_must_exist(self, echo_skill):
        """A missing explicit script raises ScriptNotFoundError."""
        from opskills.errors import ScriptNotFoundError

        with pytest.raises(ScriptNotFoundError):
            DirectExecutor().find_script(echo_skill, {"script": "missing.sh"})

    def test_action_maps_to_script(self, echo_skill):
        """action selects <action>.sh."""
        assert DirectExecutor().find_script(echo_skill, {"action": "create"}).name == "create.sh"

    def test_unknown_action_falls_back_to_main(self, echo_skill):
        """An unmatched action falls back to main.sh."""
        assert DirectExecutor().find_script(echo_skill, {"action": "nope"}).name == "main.sh"

    def test_first_script_in_sorted_order(self, kubekey_skill):
        """Without main.sh the first script by name is used."""
        assert DirectExecutor().find_script(kubekey_skill, {}).name == "add_nodes.sh"


class TestPrepareExecution:
    def test_env_and_args(self, echo_skill):
        """Params become SKILL_PARAM_ env vars and --key value args."""
        args, env = DirectExecutor().prepare_execution(
            echo_skill,
            {"action": "create", "script": "x.sh", "foo": "bar", "flag": "-v", "on": True},
        )
        assert args == ["--foo", "bar", "--on", "true"]
        assert env["SKILL_NAME"] == "echo"
        assert env["SKILL_BASE_PATH"] == str(echo_skill.base_path)
        assert env["SKILL_SCRIPTS_PATH"] == str(echo_skill.scripts_path)
        assert env["SKILL_PARAM_foo"] == "bar"
        assert env["SKILL_PARAM_flag"] == "-v"
        assert env["SKILL_PARAM_on"] == "true"
        assert "SKILL_PARAM_action" not in env
        assert "SKILL_PARAM_script" not in env


class TestDirectExecutor:
    """Test DirectExecutor.execute end to end with bash scripts."""

    @pytest.mark.asyncio
    async def test_main_script(self, echo_skill):
        """main.sh runs in the skill directory."""
        result = await DirectExecutor().execute(echo_skill, {"foo": "bar"})
        assert result.success is True
        assert result.exit_code == 0
        assert "script=main" in result.output
        assert "args=--foo bar" in result.output
        assert "name=echo" in result.output
        assert f"cwd={echo_skill.scripts_path.resolve()}" in result.output

    @pytest.mark.asyncio
    async def test_action_script_gets_params(self, echo_skill):
        """The action script receives its params."""
        result = await DirectExecutor().execute(
            echo_skill, {"action": "create", "foo": "bar"}
        )
        assert "script=create" in result.output
        assert "foo=bar" in result.output

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, echo_skill):
        """A non-zero exit is a failed result with stderr."""
        result = await DirectExecutor().execute(echo_skill, {"action": "fail"})
        assert result.success is False
        assert result.exit_code == 3
        assert result.error == "boom\n"
        assert result.output == "about to fail\n"

    @pytest.mark.asyncio
    async def test_timeout_reports_failure(self, echo_skill):
        """A timed-out script is a failed result."""
        start = time.monotonic()
        result = await DirectExecutor(timeout=0.5).execute(echo_skill, {"action": "sleep"})
        assert time.monotonic() - start < 10
        assert result.success is False
        assert result.exit_code == -1
        assert "timeout" in result.error

    @pytest.mark.asyncio
    async def test_missing_script_is_a_result(self, echo_skill):
        """A missing script is reported, not raised."""
        result = await DirectExecutor().execute(echo_skill, {"script": "missing.sh"})
        assert result.success is False
        assert result.exit_code == -1
        assert "script not found" in result.error

    @pytest.mark.asyncio
    async def test_no_scripts_directory(self, tmp_path):
        """A skill without scripts/ is a failed result."""
        from opskills.skill.types import Skill

        skill = Skill(name="empty", description="", base_path=tmp_path / "empty")
        result = await DirectExecutor().execute(skill)
        assert result.success is False
        assert result.exit_code == -1
