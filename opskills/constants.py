"""opskills constants

Method names, JSON-RPC error codes, execution modes and the defaults shared by
the protocol bridge and the direct executor.
"""

from enum import Enum

JSONRPC_VERSION = "2.0"

# Protocol revision sent by the client and echoed by the server.
PROTOCOL_VERSION = "2024-11-05"

CLIENT_NAME = "opskills-agent"
SERVER_NAME = "opskills-mcp-server"

SKILL_URI_PREFIX = "skill://"
SKILL_DESCRIPTOR = "SKILL.md"
SCRIPTS_DIR = "scripts"
EXAMPLES_DIR = "examples"

# Prefix for parameters exported to skill scripts as environment variables
PARAM_ENV_PREFIX = "SKILL_PARAM_"

DEFAULT_SCRIPT_TIMEOUT = 30 * 60
DEFAULT_CALL_TIMEOUT = 30.0
DEFAULT_STOP_GRACE = 3.0

# asyncio's default 64KiB line limit is too small for large tool results
STREAM_LIMIT = 16 * 1024 * 1024


class Method:
    """MCP method names."""

    INITIALIZE = "initialize"
    INITIALIZED = "initialized"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    RESOURCES_LIST = "resources/list"
    RESOURCES_READ = "resources/read"
    PROMPTS_LIST = "prompts/list"
    PROMPTS_GET = "prompts/get"
    PING = "ping"
    SHUTDOWN = "shutdown"


class ErrorCode:
    """Standard JSON-RPC error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    ALL = [PARSE_ERROR, INVALID_REQUEST, METHOD_NOT_FOUND, INVALID_PARAMS, INTERNAL_ERROR]


class ExecutionMode(str, Enum):
    """How the router runs a skill."""

    DIRECT = "direct"
    MCP = "mcp"
    AUTO = "auto"


class ServerType:
    """External server transport types accepted in configuration."""

    STDIO = "stdio"
    HTTP = "http"
    SSE = "sse"

    ALL = [STDIO, HTTP, SSE]
    SUPPORTED = [STDIO]
