"""External MCP server manager.

Keeps one initialized Connection per configured server name, created lazily
on first use. Creation is serialized, so asking for a server that is already
cached never spawns a second process. Connections whose process has died are
evicted and re-created on the next request.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from mcp.types import Implementation, Tool

from opskills.constants import ServerType
from opskills.errors import BridgeError, ConfigurationError, ServerNotConnectedError
from opskills.mcp.client import MCPClient
from opskills.mcp.connection import Connection
from opskills.skill.config import ServerConfig


class ExternalServerManager:
    """Connection cache keyed by external server name."""

    def __init__(
        self,
        servers: Dict[str, ServerConfig],
        client_info: Optional[Implementation] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.servers = dict(servers)
        self.client_info = client_info
        self.logger = logger or logging.getLogger(__name__)
        self._connections: Dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    async def connect(self, server_name: str) -> Connection:
        """Return the live connection for a server, creating it if needed.

        Raises:
            ServerNotConnectedError: Unknown server, or the process could not
                be started or initialized.
            ConfigurationError: The server's transport type is not supported.
        """
        existing = self._live(server_name)
        if existing is not None:
            return existing

        async with self._lock:
            # another caller may have connected while we waited
            existing = self._live(server_name)
            if existing is not None:
                return existing

            stale = self._connections.pop(server_name, None)
            if stale is not None:
                self.logger.warning(f"MCP server {server_name} is no longer running, reconnecting")
                await stale.stop()

            config = self.servers.get(server_name)
            if config is None:
                raise ServerNotConnectedError(server_name, "no such server configured")
            if config.type not in ServerType.SUPPORTED:
                raise ConfigurationError(
                    f"unsupported server type for {server_name}: {config.type}",
                    field=f"mcp_servers.{server_name}.type",
                )
            if not config.command:
                raise ConfigurationError(
                    f"no command configured for server {server_name}",
                    field=f"mcp_servers.{server_name}.command",
                )

            connection = Connection(
                server_name,
                config.command,
                args=config.args,
                env=config.env,
                timeout=config.timeout,
                call_timeout=config.call_timeout,
                logger=self.logger,
            )
            try:
                await connection.start()
                await connection.initialize(client_info=self.client_info)
            except BridgeError as e:
                # start() and initialize() stop the connection before raising
                raise ServerNotConnectedError(server_name, e.message, e) from e

            self._connections[server_name] = connection
            self.logger.info(f"Connected to MCP server {server_name}")
            return connection

    async def get_client(self, server_name: str) -> MCPClient:
        connection = await self.connect(server_name)
        return connection.client

    async def disconnect(self, server_name: str) -> None:
        """Stop and forget a server's connection. No-op if not connected."""
        async with self._lock:
            connection = self._connections.pop(server_name, None)
        if connection is not None:
            await connection.stop()
            self.logger.info(f"Disconnected from MCP server {server_name}")

    async def discover_tools(self, server_name: str) -> List[Tool]:
        connection = await self.connect(server_name)
        result = await connection.client.list_tools(timeout=connection.timeout)
        return list(result.tools)

    def is_connected(self, server_name: str) -> bool:
        return self._live(server_name) is not None

    def list_connected_servers(self) -> List[str]:
        return sorted(name for name in self._connections if self.is_connected(name))

    def timeout_for(self, server_name: str) -> Optional[float]:
        config = self.servers.get(server_name)
        return config.timeout if config else None

    async def close(self) -> None:
        """Stop every cached connection."""
        async with self._lock:
            connections, self._connections = self._connections, {}
        if connections:
            await asyncio.gather(
                *(connection.stop() for connection in connections.values()),
                return_exceptions=True,
            )
            self.logger.info(f"Closed {len(connections)} MCP server connection(s)")

    def _live(self, server_name: str) -> Optional[Connection]:
        connection = self._connections.get(server_name)
        if connection is not None and connection.is_alive:
            return connection
        return None
