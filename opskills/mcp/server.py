"""MCP method dispatcher.

Maps method names to async handlers and serves them over a pair of asyncio
streams. initialize is answered by the dispatcher itself from the declared
capabilities and server identity. Handler failures become error responses;
they never end the serve loop.
"""

import asyncio
import logging
import sys
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from mcp.types import (
    Implementation,
    InitializeRequestParams,
    InitializeResult,
    ServerCapabilities,
)
from pydantic import BaseModel, ValidationError

from opskills.constants import PROTOCOL_VERSION, STREAM_LIMIT, ErrorCode, Method
from opskills.errors import DecodeError, RPCError
from opskills.protocol.jsonrpc import (
    JsonRpcRequest,
    JsonRpcResponse,
    decode_message,
    encode_message,
)

Handler = Callable[[Any], Awaitable[Any]]


def to_json(result: Any) -> Any:
    """Dump pydantic results the way they go on the wire."""
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)
    return result


async def open_stdio_streams() -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Wrap this process's stdin/stdout as asyncio streams."""
    loop = asyncio.get_running_loop()

    reader = asyncio.StreamReader(limit=STREAM_LIMIT)
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)

    write_transport, write_protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin, sys.stdout
    )
    writer = asyncio.StreamWriter(write_transport, write_protocol, None, loop)
    return reader, writer


class MCPServer:
    """Server half of an MCP session."""

    def __init__(
        self,
        name: str,
        version: str,
        capabilities: Optional[ServerCapabilities] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.name = name
        self.version = version
        self.capabilities = capabilities or ServerCapabilities()
        self.logger = logger or logging.getLogger(__name__)
        self.handlers: Dict[str, Handler] = {}
        self.client_info: Optional[Implementation] = None

    def register_handler(self, method: str, handler: Handler) -> None:
        self.handlers[method] = handler

    def set_capabilities(self, capabilities: ServerCapabilities) -> None:
        self.capabilities = capabilities

    async def handle_request(self, request: JsonRpcRequest) -> Optional[JsonRpcResponse]:
        """Dispatch one request.

        Returns:
            The response, or None for notifications.
        """
        if request.is_notification:
            await self._handle_notification(request)
            return None

        if request.method == Method.INITIALIZE:
            return self._handle_initialize(request)

        handler = self.handlers.get(request.method)
        if handler is None:
            return JsonRpcResponse.error_response(
                request.id, ErrorCode.METHOD_NOT_FOUND, f"method not found: {request.method}"
            )

        try:
            result = await handler(request.params)
        except RPCError as e:
            return JsonRpcResponse.error_response(request.id, e.code, e.message, e.data)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.exception(f"Handler for {request.method} failed")
            return JsonRpcResponse.error_response(request.id, ErrorCode.INTERNAL_ERROR, str(e))

        return JsonRpcResponse.success(request.id, to_json(result))

    async def _handle_notification(self, request: JsonRpcRequest) -> None:
        if request.method == Method.INITIALIZED:
            self.logger.debug("Client initialized")
            return

        handler = self.handlers.get(request.method)
        if handler is None:
            self.logger.debug(f"Ignoring notification {request.method}")
            return
        try:
            await handler(request.params)
        except asyncio.CancelledError:
            raise
        except Exception:
            self.logger.exception(f"Notification handler for {request.method} failed")

    def _handle_initialize(self, request: JsonRpcRequest) -> JsonRpcResponse:
        try:
            params = InitializeRequestParams.model_validate(request.params or {})
        except ValidationError as e:
            return JsonRpcResponse.error_response(
                request.id, ErrorCode.INVALID_PARAMS, f"invalid initialize params: {e.error_count()} error(s)"
            )

        self.client_info = params.clientInfo
        if params.protocolVersion != PROTOCOL_VERSION:
            self.logger.info(
                f"Client {params.clientInfo.name} requested protocol {params.protocolVersion}, "
                f"serving {PROTOCOL_VERSION}"
            )

        result = InitializeResult(
            protocolVersion=PROTOCOL_VERSION,
            capabilities=self.capabilities,
            serverInfo=Implementation(name=self.name, version=self.version),
        )
        return JsonRpcResponse.success(request.id, to_json(result))

    async def serve(self, reader: asyncio.StreamReader, writer: Any) -> None:
        """Serve envelopes from reader until end-of-stream.

        writer needs write() and an awaitable drain(). A broken output pipe
        ends the loop.
        """
        while True:
            try:
                line = await reader.readline()
            except ValueError as e:
                # line longer than the stream limit
                response = JsonRpcResponse.error_response(
                    None, ErrorCode.PARSE_ERROR, f"message too large: {e}"
                )
                if not await self._write(writer, response):
                    break
                continue

            if not line:
                break
            if not line.strip():
                continue

            try:
                message = decode_message(line)
            except DecodeError as e:
                self.logger.warning(f"Malformed message: {e.message}")
                response = JsonRpcResponse.error_response(None, e.code, e.message)
                if not await self._write(writer, response):
                    break
                continue

            if isinstance(message, JsonRpcResponse):
                self.logger.debug(f"Ignoring response for id {message.id!r}")
                continue

            response = await self.handle_request(message)
            if response is not None and not await self._write(writer, response):
                break

        self.logger.debug("Input closed, serve loop finished")

    async def serve_stdio(self) -> None:
        reader, writer = await open_stdio_streams()
        try:
            await self.serve(reader, writer)
        finally:
            writer.close()

    async def _write(self, writer: Any, response: JsonRpcResponse) -> bool:
        try:
            data = encode_message(response)
        except ValueError as e:
            self.logger.error(f"Cannot encode response for id {response.id!r}: {e}")
            data = encode_message(
                JsonRpcResponse.error_response(response.id, ErrorCode.INTERNAL_ERROR, str(e))
            )
        try:
            writer.write(data)
            await writer.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            self.logger.warning(f"Output closed: {e}")
            return False
        return True
