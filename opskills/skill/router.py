"""Execution router.

Decides per invocation whether a skill runs through the direct executor or is
forwarded as a tools/call to its configured external MCP server.

    direct  registry lookup, then DirectExecutor
    mcp     ExternalServerManager client, tools/call, result conversion
    auto    same as direct

Forwarded failures propagate to the caller unchanged; nothing is retried.
"""

import logging
import time
from typing import Optional

from opskills.constants import ExecutionMode
from opskills.direct.executor import DirectExecutor
from opskills.errors import ConfigurationError
from opskills.mcp.manager import ExternalServerManager
from opskills.skill.adapter import tool_result_to_execution_result
from opskills.skill.config import BridgeConfig, default_config
from opskills.skill.registry import SkillRegistry
from opskills.skill.types import ExecutionParams, ExecutionResult


class ExecutionRouter:
    """Routes skill executions to the direct executor or an external server."""

    def __init__(
        self,
        registry: SkillRegistry,
        config: Optional[BridgeConfig] = None,
        direct_executor: Optional[DirectExecutor] = None,
        manager: Optional[ExternalServerManager] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.config = config or default_config()
        self.logger = logger or logging.getLogger(__name__)
        self.direct_executor = direct_executor or DirectExecutor(logger=self.logger)
        self.manager = manager or ExternalServerManager(self.config.mcp_servers, logger=self.logger)

    def resolve_mode(self, skill_name: str) -> ExecutionMode:
        skill_config = self.config.get_skill_config(skill_name)
        if skill_config is None:
            return ExecutionMode.AUTO
        return skill_config.execution_mode

    async def execute(self, skill_name: str, params: Optional[ExecutionParams] = None) -> ExecutionResult:
        """Execute a skill.

        Raises:
            SkillNotFoundError: Direct execution of an unregistered skill.
            ConfigurationError: Forwarded skill without an mcp_server.
            ServerNotConnectedError: The external server is unknown or
                could not be started.
            RPCError, CallCancelledError, ConnectionClosedError: The
                forwarded call failed.
        """
        params = params or {}
        mode = self.resolve_mode(skill_name)
        self.logger.debug(f"Executing skill {skill_name} in {mode.value} mode")

        if mode == ExecutionMode.MCP:
            return await self._execute_forwarded(skill_name, params)
        return await self._execute_direct(skill_name, params)

    async def _execute_direct(self, skill_name: str, params: ExecutionParams) -> ExecutionResult:
        skill = self.registry.get(skill_name)
        return await self.direct_executor.execute(skill, params)

    async def _execute_forwarded(self, skill_name: str, params: ExecutionParams) -> ExecutionResult:
        skill_config = self.config.get_skill_config(skill_name)
        server_name = skill_config.mcp_server if skill_config else None
        if not server_name:
            raise ConfigurationError(
                f"MCP server not configured for skill: {skill_name}",
                field=f"skills.{skill_name}.mcp_server",
            )

        connection = await self.manager.connect(server_name)

        start_time = time.time()
        result = await connection.client.call_tool(skill_name, params, timeout=connection.call_timeout)
        duration_ms = (time.time() - start_time) * 1000

        self.logger.info(
            f"Skill {skill_name} forwarded to {server_name} "
            f"(isError={result.isError}, {duration_ms:.0f}ms)"
        )
        return tool_result_to_execution_result(result, duration_ms)

    async def close(self) -> None:
        await self.manager.close()
