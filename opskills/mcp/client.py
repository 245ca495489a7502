"""MCP client: correlates requests with responses over one transport.

Each call gets a fresh integer id and a single-use future in the pending
table. The transport's read loop resolves futures through handle_message;
responses may arrive in any order. The id counter and the pending table are
only touched from the event loop, never across an await, so they need no
lock.
"""

import asyncio
import itertools
import logging
from typing import Any, Dict, Optional

from mcp.types import (
    CallToolRequestParams,
    CallToolResult,
    ClientCapabilities,
    Implementation,
    InitializeRequestParams,
    InitializeResult,
    ListResourcesResult,
    ListToolsResult,
    ReadResourceResult,
)
from pydantic import ValidationError

from opskills import __version__
from opskills.constants import CLIENT_NAME, PROTOCOL_VERSION, ErrorCode, Method
from opskills.errors import (
    CallCancelledError,
    ConnectionClosedError,
    RPCError,
)
from opskills.mcp.transport import StdioTransport
from opskills.protocol.jsonrpc import JsonRpcRequest, JsonRpcResponse, Message, RequestId


def _dump(model: Any) -> Any:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


class MCPClient:
    """Client half of an MCP session."""

    def __init__(self, transport: StdioTransport, logger: Optional[logging.Logger] = None):
        self.transport = transport
        self.logger = logger or logging.getLogger(__name__)
        self._ids = itertools.count(1)
        self._pending: Dict[RequestId, asyncio.Future] = {}
        self._closed_error: Optional[ConnectionClosedError] = None
        self.server_info: Optional[InitializeResult] = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def is_closed(self) -> bool:
        return self._closed_error is not None

    async def call(
        self,
        method: str,
        params: Optional[Any] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send a request and wait for its result.

        Args:
            method: Method name.
            params: JSON-compatible params.
            timeout: Seconds to wait for the response; None waits forever.

        Returns:
            The response's result payload.

        Raises:
            RPCError: The peer answered with an error.
            CallCancelledError: The timeout expired first.
            ConnectionClosedError: The connection ended before the response.
            TransportError: The request could not be written.
        """
        if self._closed_error is not None:
            raise ConnectionClosedError(self._closed_error.message, self._closed_error.cause)

        request_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        try:
            await self.transport.send(JsonRpcRequest(method=method, params=params, id=request_id))
            try:
                response: JsonRpcResponse = await asyncio.wait_for(future, timeout=timeout)
            except asyncio.TimeoutError:
                raise CallCancelledError(method, request_id, timeout) from None
        finally:
            self._pending.pop(request_id, None)

        if response.error is not None:
            raise RPCError(response.error.code, response.error.message, response.error.data)
        return response.result

    async def notify(self, method: str, params: Optional[Any] = None) -> None:
        """Send a notification; no response is expected."""
        if self._closed_error is not None:
            raise ConnectionClosedError(self._closed_error.message, self._closed_error.cause)
        await self.transport.send(JsonRpcRequest(method=method, params=params))

    def handle_message(self, message: Message) -> None:
        """Route one envelope from the read loop. Never blocks."""
        if isinstance(message, JsonRpcRequest):
            self.logger.debug(f"Ignoring server-initiated {message.method}")
            return

        future = self._pending.pop(message.id, None)
        if future is None or future.done():
            self.logger.debug(f"Dropping response for unknown or abandoned id {message.id!r}")
            return
        future.set_result(message)

    def handle_close(self, error: Optional[BaseException] = None) -> None:
        """Fail every pending caller; later calls fail immediately."""
        reason = f"connection closed: {error}" if error else "connection closed"
        self._closed_error = ConnectionClosedError(reason, error)

        pending, self._pending = self._pending, {}
        for request_id, future in pending.items():
            if not future.done():
                future.set_exception(ConnectionClosedError(reason, error))
        if pending:
            self.logger.warning(f"{reason}; failed {len(pending)} pending request(s)")

    async def initialize(
        self,
        client_info: Optional[Implementation] = None,
        timeout: Optional[float] = None,
    ) -> InitializeResult:
        """Run the initialize handshake, then send the initialized notification.

        Raises:
            RPCError: The server rejected the handshake or replied with
                something that is not an InitializeResult.
        """
        params = InitializeRequestParams(
            protocolVersion=PROTOCOL_VERSION,
            capabilities=ClientCapabilities(),
            clientInfo=client_info or Implementation(name=CLIENT_NAME, version=__version__),
        )
        raw = await self.call(Method.INITIALIZE, _dump(params), timeout=timeout)
        result = self._validate(InitializeResult, raw, Method.INITIALIZE)

        await self.notify(Method.INITIALIZED)
        self.server_info = result
        self.logger.debug(
            f"Initialized {result.serverInfo.name} {result.serverInfo.version} "
            f"(protocol {result.protocolVersion})"
        )
        return result

    async def list_tools(self, timeout: Optional[float] = None) -> ListToolsResult:
        raw = await self.call(Method.TOOLS_LIST, {}, timeout=timeout)
        return self._validate(ListToolsResult, raw, Method.TOOLS_LIST)

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> CallToolResult:
        params = CallToolRequestParams(name=name, arguments=arguments or {})
        raw = await self.call(Method.TOOLS_CALL, _dump(params), timeout=timeout)
        return self._validate(CallToolResult, raw, Method.TOOLS_CALL)

    async def list_resources(self, timeout: Optional[float] = None) -> ListResourcesResult:
        raw = await self.call(Method.RESOURCES_LIST, {}, timeout=timeout)
        return self._validate(ListResourcesResult, raw, Method.RESOURCES_LIST)

    async def read_resource(self, uri: str, timeout: Optional[float] = None) -> ReadResourceResult:
        raw = await self.call(Method.RESOURCES_READ, {"uri": uri}, timeout=timeout)
        return self._validate(ReadResourceResult, raw, Method.RESOURCES_READ)

    async def ping(self, timeout: Optional[float] = None) -> None:
        await self.call(Method.PING, timeout=timeout)

    def _validate(self, model: Any, raw: Any, method: str) -> Any:
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            raise RPCError(
                ErrorCode.INTERNAL_ERROR, f"invalid {method} result from server: {e.error_count()} error(s)", raw
            ) from e
