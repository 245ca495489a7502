"""MCP bridge: stdio transport, client, connections and servers."""

from opskills.mcp.client import MCPClient
from opskills.mcp.connection import Connection, ConnectionState
from opskills.mcp.manager import ExternalServerManager
from opskills.mcp.server import MCPServer
from opskills.mcp.transport import StdioTransport

__all__ = [
    "Connection",
    "ConnectionState",
    "ExternalServerManager",
    "MCPClient",
    "MCPServer",
    "StdioTransport",
]
