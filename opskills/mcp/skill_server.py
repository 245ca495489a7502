"""MCP server exposing a skill registry.

Every registered skill becomes a tool (run through the direct executor) and a
set of resources: its SKILL.md, its scripts and its example configs.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.types import (
    CallToolRequestParams,
    CallToolResult,
    ListResourcesResult,
    ListToolsResult,
    ReadResourceRequestParams,
    ReadResourceResult,
    ResourcesCapability,
    ServerCapabilities,
    TextResourceContents,
    ToolsCapability,
)
from pydantic import ValidationError

from opskills import __version__
from opskills.constants import EXAMPLES_DIR, SERVER_NAME, ErrorCode, Method
from opskills.direct.executor import DirectExecutor
from opskills.errors import RPCError, UnknownResourceError
from opskills.mcp.server import MCPServer
from opskills.skill import adapter
from opskills.skill.registry import SkillRegistry
from opskills.skill.types import Skill


def list_example_configs(skill: Skill) -> List[str]:
    """Names of the files under <base>/examples, sorted."""
    examples_dir = skill.base_path / EXAMPLES_DIR
    if not examples_dir.is_dir():
        return []
    return sorted(entry.name for entry in examples_dir.iterdir() if entry.is_file())


class SkillServer:
    """Serves tools/list, tools/call, resources/list, resources/read and ping."""

    def __init__(
        self,
        registry: SkillRegistry,
        executor: Optional[DirectExecutor] = None,
        name: str = SERVER_NAME,
        version: str = __version__,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.logger = logger or logging.getLogger(__name__)
        self.executor = executor or DirectExecutor(logger=self.logger)
        self.server = MCPServer(
            name,
            version,
            capabilities=ServerCapabilities(
                tools=ToolsCapability(listChanged=False),
                resources=ResourcesCapability(subscribe=False, listChanged=False),
            ),
            logger=self.logger,
        )
        self._register_handlers()

    def _register_handlers(self) -> None:
        self.server.register_handler(Method.TOOLS_LIST, self.handle_tools_list)
        self.server.register_handler(Method.TOOLS_CALL, self.handle_tools_call)
        self.server.register_handler(Method.RESOURCES_LIST, self.handle_resources_list)
        self.server.register_handler(Method.RESOURCES_READ, self.handle_resources_read)
        self.server.register_handler(Method.PING, self.handle_ping)

    async def handle_tools_list(self, params: Any) -> ListToolsResult:
        return ListToolsResult(tools=adapter.skills_to_tools(self.registry.list()))

    async def handle_tools_call(self, params: Any) -> CallToolResult:
        try:
            call = CallToolRequestParams.model_validate(params or {})
        except ValidationError as e:
            raise RPCError(
                ErrorCode.INVALID_PARAMS, f"invalid tool call parameters: {e.error_count()} error(s)"
            ) from e

        skill = self.registry.get(call.name)
        arguments: Dict[str, Any] = call.arguments or {}

        problems = adapter.validate_tool_arguments(adapter.skill_to_tool(skill), arguments)
        if problems:
            raise RPCError(ErrorCode.INVALID_PARAMS, "; ".join(problems))

        result = await self.executor.execute(skill, adapter.tool_call_to_params(arguments))
        self.logger.info(
            f"Tool {skill.name} finished (success={result.success}, exit_code={result.exit_code})"
        )
        return adapter.execution_result_to_tool_result(result)

    async def handle_resources_list(self, params: Any) -> ListResourcesResult:
        skills = self.registry.list()
        scripts = {skill.name: skill.list_scripts() for skill in skills}
        configs = {skill.name: list_example_configs(skill) for skill in skills}
        return ListResourcesResult(resources=adapter.skills_to_resources(skills, scripts, configs))

    async def handle_resources_read(self, params: Any) -> ReadResourceResult:
        try:
            request = ReadResourceRequestParams.model_validate(params or {})
        except ValidationError as e:
            raise RPCError(
                ErrorCode.INVALID_PARAMS, f"invalid resource read parameters: {e.error_count()} error(s)"
            ) from e

        uri = str(request.uri)
        skill_name, resource_path = adapter.parse_skill_uri(uri)
        skill = self.registry.get(skill_name)

        path, mime_type = self._resolve_resource(skill, resource_path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise UnknownResourceError(f"failed to read {resource_path}: {e}", e) from e

        return ReadResourceResult(
            contents=[TextResourceContents(uri=uri, mimeType=mime_type, text=text)]
        )

    async def handle_ping(self, params: Any) -> Dict[str, Any]:
        return {}

    def _resolve_resource(self, skill: Skill, resource_path: str):
        if resource_path == adapter.DOC_PATH:
            return skill.descriptor_path, adapter.MARKDOWN_MIME

        kind, _, file_name = resource_path.partition("/")
        # exactly one level below the kind
        if file_name and "/" not in file_name:
            file_name = Path(file_name).name
            if kind == adapter.SCRIPT_KIND:
                return skill.scripts_path / file_name, adapter.SHELL_MIME
            if kind == adapter.CONFIG_KIND:
                return skill.base_path / EXAMPLES_DIR / file_name, adapter.YAML_MIME

        raise UnknownResourceError(f"unknown resource type: {resource_path}")

    async def serve_stdio(self) -> None:
        self.logger.info(
            f"Serving {self.registry.count()} skill(s) over stdio: {', '.join(self.registry.names())}"
        )
        await self.server.serve_stdio()
