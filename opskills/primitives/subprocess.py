"""Subprocess execution primitive.

Runs one command to completion with captured output and a hard wall-clock
timeout. Expected failures (non-zero exit, timeout, missing binary) are
returned as a SubprocessResult, never raised.
"""

import asyncio
import os
import signal
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class SubprocessResult:
    """Result of subprocess execution.

    Attributes:
        success: True if return code is 0.
        stdout: Standard output from process.
        stderr: Standard error from process.
        return_code: Exit code from process (-1 when it never finished).
        duration_ms: Time taken for execution in milliseconds.
        timed_out: True if the process was killed by the timeout.
    """

    success: bool
    stdout: str
    stderr: str
    return_code: int
    duration_ms: float
    timed_out: bool = False


class SubprocessPrimitive:
    """Execute commands via asyncio subprocesses."""

    async def execute(self, config: Dict[str, Any]) -> SubprocessResult:
        """Execute a command and wait for it.

        Args:
            config: Configuration dict with keys:
                - command: Command to execute (required)
                - args: List of arguments (optional)
                - cwd: Working directory (optional)
                - input_data: Data to pipe to stdin (optional)
                - env: Environment variables merged over os.environ (optional)
                - timeout: Timeout in seconds (default: 300)

        Returns:
            SubprocessResult with execution details.
        """
        start_time = time.time()

        command = config.get("command")
        args: List[str] = [str(arg) for arg in config.get("args", [])]
        cwd = config.get("cwd")
        input_data = config.get("input_data")
        timeout = config.get("timeout", 300)

        if not command:
            return SubprocessResult(
                success=False,
                stdout="",
                stderr="No command specified",
                return_code=-1,
                duration_ms=(time.time() - start_time) * 1000,
            )

        process_env = self._prepare_env(config.get("env", {}))

        try:
            proc = await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=cwd,
                env=process_env,
                stdin=asyncio.subprocess.PIPE if input_data else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                # Own process group so a timeout kills the script's children too
                start_new_session=os.name == "posix",
            )
        except FileNotFoundError:
            return SubprocessResult(
                success=False,
                stdout="",
                stderr=f"command not found: {command}",
                return_code=127,
                duration_ms=(time.time() - start_time) * 1000,
            )
        except OSError as e:
            return SubprocessResult(
                success=False,
                stdout="",
                stderr=f"failed to start {command}: {e}",
                return_code=-1,
                duration_ms=(time.time() - start_time) * 1000,
            )

        stdin_bytes = input_data.encode("utf-8") if input_data else None

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(stdin_bytes),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            await self._kill(proc)
            return SubprocessResult(
                success=False,
                stdout="",
                stderr=f"execution timeout after {timeout} seconds",
                return_code=-1,
                duration_ms=(time.time() - start_time) * 1000,
                timed_out=True,
            )
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        return_code = proc.returncode if proc.returncode is not None else -1
        return SubprocessResult(
            success=return_code == 0,
            stdout=stdout_bytes.decode("utf-8", errors="replace") if stdout_bytes else "",
            stderr=stderr_bytes.decode("utf-8", errors="replace") if stderr_bytes else "",
            return_code=return_code,
            duration_ms=(time.time() - start_time) * 1000,
        )

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        """Kill the process (and its group on POSIX) and reap it."""
        if proc.returncode is None:
            try:
                if os.name == "posix":
                    os.killpg(proc.pid, signal.SIGKILL)
                else:
                    proc.kill()
            except ProcessLookupError:
                pass
        await proc.wait()

    def _prepare_env(self, config_env: Optional[Dict[str, Any]]) -> Dict[str, str]:
        """Merge config env over os.environ."""
        result = os.environ.copy()
        for key, value in (config_env or {}).items():
            if value is not None:
                result[str(key)] = str(value)
        return result
