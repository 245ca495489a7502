"""Skill <-> MCP translation.

Pure conversions between skill descriptors / execution results and the MCP
tool, resource and content types. Nothing here touches the filesystem: script
listings are passed in by the caller.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from mcp.types import CallToolResult, Resource, TextContent, Tool

from opskills.constants import SKILL_URI_PREFIX
from opskills.errors import InvalidSkillURIError
from opskills.skill.types import ExecutionParams, ExecutionResult, Skill

MARKDOWN_MIME = "text/markdown"
SHELL_MIME = "text/x-shellscript"
YAML_MIME = "application/yaml"

# Resource kinds under skill://<name>/
DOC_PATH = "skill.md"
SCRIPT_KIND = "script"
CONFIG_KIND = "config"

_JSON_TYPES = {
    "string": (str,),
    "number": (int, float),
    "integer": (int,),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (dict,),
    "null": (type(None),),
}


def tool_input_schema() -> Dict[str, Any]:
    """Generic tool schema: the skill interprets action and params itself."""
    return {
        "type": "object",
        "properties": {
            "action": {
                "type": "string",
                "description": "The action to perform (e.g., create_cluster, add_nodes, etc.)",
            },
            "params": {
                "type": "object",
                "description": "Additional parameters for the action",
                "properties": {},
            },
        },
        "required": ["action"],
    }


def skill_to_tool(skill: Skill) -> Tool:
    return Tool(
        name=skill.name,
        description=skill.description,
        inputSchema=tool_input_schema(),
    )


def skills_to_tools(skills: Sequence[Skill]) -> List[Tool]:
    return [skill_to_tool(skill) for skill in skills]


def build_skill_uri(skill_name: str, path: str) -> str:
    """skill://<name>/<path>"""
    return f"{SKILL_URI_PREFIX}{skill_name}/{path}"


def parse_skill_uri(uri: str) -> Tuple[str, str]:
    """Split a skill URI into (skill name, resource path).

    Only the first "/" after the prefix separates the two, so the resource
    path keeps any further separators.

    Raises:
        InvalidSkillURIError: If the prefix is missing or the name is empty.
    """
    if not isinstance(uri, str) or not uri.startswith(SKILL_URI_PREFIX):
        raise InvalidSkillURIError(str(uri))

    rest = uri[len(SKILL_URI_PREFIX):]
    name, _, path = rest.partition("/")
    if not name:
        raise InvalidSkillURIError(uri)
    return name, path


def skill_doc_resource(skill: Skill) -> Resource:
    return Resource(
        uri=build_skill_uri(skill.name, DOC_PATH),
        name=f"{skill.name} Skill Documentation",
        description=skill.description,
        mimeType=MARKDOWN_MIME,
    )


def skill_script_resource(skill_name: str, script_name: str) -> Resource:
    return Resource(
        uri=build_skill_uri(skill_name, f"{SCRIPT_KIND}/{script_name}"),
        name=f"{skill_name}: {script_name}",
        description=f"Script file for {skill_name}",
        mimeType=SHELL_MIME,
    )


def skill_config_resource(skill_name: str, config_name: str) -> Resource:
    return Resource(
        uri=build_skill_uri(skill_name, f"{CONFIG_KIND}/{config_name}"),
        name=f"{skill_name} Configuration: {config_name}",
        description=f"Configuration file for {skill_name} skill",
        mimeType=YAML_MIME,
    )


def skills_to_resources(
    skills: Sequence[Skill],
    scripts: Optional[Mapping[str, Sequence[str]]] = None,
    configs: Optional[Mapping[str, Sequence[str]]] = None,
) -> List[Resource]:
    """One documentation resource per skill plus one per listed file.

    Args:
        skills: Skills to describe.
        scripts: Script file names per skill name, as found on disk.
        configs: Example config file names per skill name.
    """
    scripts = scripts or {}
    configs = configs or {}
    resources: List[Resource] = []
    for skill in skills:
        resources.append(skill_doc_resource(skill))
        for script_name in scripts.get(skill.name, []):
            resources.append(skill_script_resource(skill.name, script_name))
        for config_name in configs.get(skill.name, []):
            resources.append(skill_config_resource(skill.name, config_name))
    return resources


def tool_call_to_params(arguments: Optional[Mapping[str, Any]]) -> ExecutionParams:
    """Convert tools/call arguments to skill execution parameters.

    A string "action" becomes a top-level parameter, a "params" object is
    flattened one level, and every other argument passes through unchanged.
    """
    params: ExecutionParams = {}
    if not arguments:
        return params

    action = arguments.get("action")
    if isinstance(action, str):
        params["action"] = action

    nested = arguments.get("params")
    if isinstance(nested, dict):
        params.update(nested)

    for key, value in arguments.items():
        if key not in ("action", "params"):
            params[key] = value

    return params


def validate_tool_arguments(tool: Tool, arguments: Optional[Mapping[str, Any]]) -> List[str]:
    """Type-check arguments against the properties the tool schema declares.

    Returns:
        One message per mismatching argument; empty when all declared
        arguments have the declared JSON type. Undeclared arguments and
        missing ones are not reported.
    """
    problems: List[str] = []
    properties = (tool.inputSchema or {}).get("properties") or {}
    for key, value in (arguments or {}).items():
        definition = properties.get(key)
        if not isinstance(definition, dict):
            continue
        expected = definition.get("type")
        allowed = _JSON_TYPES.get(expected) if isinstance(expected, str) else None
        if allowed is None:
            continue
        # bool is an int subclass
        is_bool = isinstance(value, bool)
        if (is_bool and expected != "boolean") or not isinstance(value, allowed):
            problems.append(
                f"type mismatch for field {key}: expected {expected}, got {_json_type(value)}"
            )
    return problems


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "unknown"


def execution_result_to_tool_result(result: ExecutionResult) -> CallToolResult:
    """Convert a skill result into a tools/call result.

    A failed script is still a successful RPC: the failure is flagged with
    isError and described in the content.
    """
    if result.success:
        return CallToolResult(content=[TextContent(type="text", text=result.output)])

    return CallToolResult(
        content=[TextContent(type="text", text=f"Error: {result.error}")],
        structuredContent={"error": result.error, "exit_code": result.exit_code},
        isError=True,
    )


def tool_result_to_execution_result(result: CallToolResult, duration_ms: float = 0.0) -> ExecutionResult:
    """Convert a tools/call result received from a server into an ExecutionResult."""
    success = not result.isError
    texts = [
        f"{block.text}\n" for block in result.content if isinstance(block, TextContent)
    ]
    structured = result.structuredContent or {}

    exit_code = structured.get("exit_code")
    if not isinstance(exit_code, int) or isinstance(exit_code, bool):
        exit_code = 0 if success else 1

    text = "".join(texts)
    return ExecutionResult(
        success=success,
        output=text if success else "",
        error="" if success else text,
        exit_code=exit_code,
        duration_ms=duration_ms,
    )
