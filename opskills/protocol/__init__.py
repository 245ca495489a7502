"""JSON-RPC 2.0 wire codec."""

from opskills.protocol.jsonrpc import (
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
    RequestId,
    decode_message,
    encode_message,
)

__all__ = [
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "Message",
    "RequestId",
    "decode_message",
    "encode_message",
]
