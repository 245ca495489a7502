"""Connection: one child-process-backed MCP session.

State machine with guarded transitions:

    SPAWNED --start()--> STARTED --initialize()--> INITIALIZED
       \                    \                          \
        +------------------- stop() -------------------+--> STOPPED

A connection whose handshake fails is stopped before the error reaches the
caller, so no started-but-uninitialized process is ever left behind.
"""

import asyncio
import logging
from enum import Enum
from typing import Dict, List, Optional

from mcp.types import Implementation, InitializeResult

from opskills.constants import DEFAULT_CALL_TIMEOUT, DEFAULT_STOP_GRACE
from opskills.errors import ConnectionStateError
from opskills.mcp.client import MCPClient
from opskills.mcp.transport import StdioTransport


class ConnectionState(str, Enum):
    SPAWNED = "spawned"
    STARTED = "started"
    INITIALIZED = "initialized"
    STOPPED = "stopped"


class Connection:
    """Owns a transport and the client bound to it."""

    def __init__(
        self,
        name: str,
        command: str,
        args: Optional[List[str]] = None,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[str] = None,
        timeout: float = DEFAULT_CALL_TIMEOUT,
        call_timeout: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            name: Server name, used in logs and errors.
            command: Executable to launch.
            args: Command arguments.
            env: Extra environment, merged over os.environ.
            cwd: Working directory for the process.
            timeout: Timeout for the handshake and discovery requests.
            call_timeout: Timeout for forwarded tool calls; None for no deadline.
            logger: Logger to use instead of the module logger.
        """
        self.name = name
        self.timeout = timeout
        self.call_timeout = call_timeout
        self.logger = logger or logging.getLogger(__name__)
        self.transport = StdioTransport(command, args=args, env=env, cwd=cwd, logger=self.logger)
        self.client = MCPClient(self.transport, logger=self.logger)
        self.state = ConnectionState.SPAWNED
        self._stop_lock = asyncio.Lock()

    @property
    def is_alive(self) -> bool:
        """Initialized, process running, read loop still active."""
        return (
            self.state == ConnectionState.INITIALIZED
            and self.transport.is_running
            and not self.client.is_closed
        )

    async def start(self) -> None:
        """Spawn the process and launch its read loop.

        Raises:
            ConnectionStateError: If not in the SPAWNED state.
            TransportError: If the process cannot be started.
        """
        self._require(ConnectionState.SPAWNED, "start")
        try:
            await self.transport.spawn()
            self.transport.start(self.client.handle_message, self.client.handle_close)
        except BaseException:
            await self.stop()
            raise
        self.state = ConnectionState.STARTED
        self.logger.info(f"Started MCP server {self.name} (pid {self.transport.pid})")

    async def initialize(
        self,
        client_info: Optional[Implementation] = None,
        timeout: Optional[float] = None,
    ) -> InitializeResult:
        """Perform the handshake. On any failure the connection is stopped.

        Raises:
            ConnectionStateError: If not in the STARTED state.
        """
        self._require(ConnectionState.STARTED, "initialize")
        try:
            result = await self.client.initialize(
                client_info=client_info,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except BaseException:
            self.logger.warning(f"Handshake with MCP server {self.name} failed, stopping it")
            await self.stop()
            raise
        self.state = ConnectionState.INITIALIZED
        return result

    async def stop(self, grace: float = DEFAULT_STOP_GRACE) -> None:
        """Stop the process and join the read loop. Idempotent."""
        async with self._stop_lock:
            if self.state == ConnectionState.STOPPED:
                return
            await self.transport.stop(grace=grace)
            self.state = ConnectionState.STOPPED
            self.logger.info(f"Stopped MCP server {self.name}")

    def _require(self, expected: ConnectionState, operation: str) -> None:
        if self.state != expected:
            raise ConnectionStateError(
                f"cannot {operation} connection {self.name} in state {self.state.value}"
            )

    async def __aenter__(self) -> "Connection":
        await self.start()
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
