"""DirectExecutor - run a skill's script on this machine.

Script selection, in order:
    1. params["script"]            (must exist)
    2. params["action"] + ".sh"    (if present)
    3. main.sh
    4. first *.sh in sorted directory order

Every other parameter reaches the script twice: as SKILL_PARAM_<key> in the
environment and, unless its value starts with "-", as a "--key value" pair.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from opskills.constants import DEFAULT_SCRIPT_TIMEOUT, PARAM_ENV_PREFIX
from opskills.errors import ScriptNotFoundError
from opskills.primitives.subprocess import SubprocessPrimitive
from opskills.skill.types import ExecutionParams, ExecutionResult, Skill

# Parameters consumed by script selection, never forwarded to the script
_SELECTION_KEYS = ("script", "action")


def stringify_param(value: Any) -> str:
    """Render a parameter value for argv / environment use."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


class DirectExecutor:
    """Executes skills by running their bash scripts."""

    def __init__(
        self,
        timeout: float = DEFAULT_SCRIPT_TIMEOUT,
        shell: str = "bash",
        primitive: Optional[SubprocessPrimitive] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize direct executor.

        Args:
            timeout: Hard wall-clock limit per script, in seconds.
            shell: Interpreter used to run scripts.
            primitive: Subprocess primitive (injectable for tests).
            logger: Logger to use instead of the module logger.
        """
        self.timeout = timeout
        self.shell = shell
        self.primitive = primitive or SubprocessPrimitive()
        self.logger = logger or logging.getLogger(__name__)

    async def execute(self, skill: Skill, params: Optional[ExecutionParams] = None) -> ExecutionResult:
        """Execute a skill with the given parameters.

        Never raises for execution failures: missing scripts, non-zero exits
        and timeouts all come back as a failed ExecutionResult.
        """
        params = params or {}

        try:
            script_path = self.find_script(skill, params)
        except ScriptNotFoundError as e:
            self.logger.warning(f"Skill {skill.name}: {e.message}")
            return ExecutionResult(success=False, error=e.message, exit_code=-1)

        args, env = self.prepare_execution(skill, params)
        self.logger.info(f"Running {script_path.name} for skill {skill.name}")

        proc_result = await self.primitive.execute(
            {
                "command": self.shell,
                "args": [str(script_path), *args],
                "cwd": str(script_path.parent),
                "env": env,
                "timeout": self.timeout,
            }
        )

        if proc_result.timed_out:
            self.logger.warning(
                f"Skill {skill.name}: {script_path.name} killed after {self.timeout}s"
            )
            return ExecutionResult(
                success=False,
                output=proc_result.stdout,
                error=f"script execution timeout after {self.timeout}s",
                exit_code=-1,
                duration_ms=proc_result.duration_ms,
            )

        if not proc_result.success:
            self.logger.warning(
                f"Skill {skill.name}: {script_path.name} exited with code {proc_result.return_code}"
            )

        return ExecutionResult(
            success=proc_result.success,
            output=proc_result.stdout,
            error=proc_result.stderr,
            exit_code=proc_result.return_code,
            duration_ms=proc_result.duration_ms,
        )

    def find_script(self, skill: Skill, params: ExecutionParams) -> Path:
        """Select the script to run.

        Raises:
            ScriptNotFoundError: If an explicit script is missing or the
                scripts directory holds no *.sh file.
        """
        scripts_dir = skill.scripts_path

        script_name = params.get("script")
        if isinstance(script_name, str) and script_name:
            script_path = scripts_dir / Path(script_name).name
            if script_path.is_file():
                return script_path
            raise ScriptNotFoundError(f"script not found: {script_path}")

        action = params.get("action")
        if isinstance(action, str) and action:
            script_path = scripts_dir / f"{Path(action).name}.sh"
            if script_path.is_file():
                return script_path

        if not scripts_dir.is_dir():
            raise ScriptNotFoundError(f"failed to read scripts directory: {scripts_dir}")

        scripts = skill.list_scripts()
        if "main.sh" in scripts:
            return scripts_dir / "main.sh"
        if scripts:
            return scripts_dir / scripts[0]

        raise ScriptNotFoundError(f"no script found in {scripts_dir}")

    def prepare_execution(self, skill: Skill, params: ExecutionParams) -> Tuple[List[str], Dict[str, str]]:
        """Build script arguments and environment variables."""
        args: List[str] = []
        env: Dict[str, str] = {
            "SKILL_NAME": skill.name,
            "SKILL_BASE_PATH": str(skill.base_path),
            "SKILL_SCRIPTS_PATH": str(skill.scripts_path),
        }

        for key, value in params.items():
            if key in _SELECTION_KEYS:
                continue

            value_str = stringify_param(value)
            env[f"{PARAM_ENV_PREFIX}{key}"] = value_str

            if value_str and not value_str.startswith("-"):
                args.extend([f"--{key}", value_str])

        return args, env
