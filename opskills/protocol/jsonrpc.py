"""
JSON-RPC 2.0 envelope codec

Builds, encodes and decodes the line-delimited envelopes exchanged with MCP
peers. Purely structural: no state, no business logic.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from opskills.constants import JSONRPC_VERSION, ErrorCode
from opskills.errors import DecodeError

RequestId = Union[int, str]

# Any value that survives json.dumps / json.loads unchanged
JsonValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]


@dataclass
class JsonRpcError:
    """JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_dict(cls, data: Any) -> "JsonRpcError":
        if not isinstance(data, dict):
            raise DecodeError("error must be an object", ErrorCode.INVALID_REQUEST)
        code = data.get("code")
        if not isinstance(code, int) or isinstance(code, bool):
            raise DecodeError("error code must be an integer", ErrorCode.INVALID_REQUEST)
        return cls(
            code=code,
            message=str(data.get("message", "")),
            data=data.get("data"),
        )


@dataclass
class JsonRpcRequest:
    """JSON-RPC 2.0 request. A request without id is a notification."""

    method: str
    params: Optional[Any] = None
    id: Optional[RequestId] = None

    @property
    def is_notification(self) -> bool:
        return self.id is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-RPC 2.0 request dict."""
        request: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION}
        if self.id is not None:
            request["id"] = self.id
        request["method"] = self.method
        if self.params is not None:
            request["params"] = self.params
        return request

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JsonRpcRequest":
        method = data.get("method")
        if not isinstance(method, str) or not method:
            raise DecodeError("method must be a non-empty string", ErrorCode.INVALID_REQUEST)
        return cls(
            method=method,
            params=data.get("params"),
            id=_validate_id(data.get("id")),
        )


@dataclass
class JsonRpcResponse:
    """JSON-RPC 2.0 response: a result or an error for one request id."""

    id: Optional[RequestId] = None
    result: Optional[Any] = None
    error: Optional[JsonRpcError] = None

    @property
    def is_error(self) -> bool:
        """Check if response is an error."""
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-RPC 2.0 response dict."""
        response: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": self.id}
        if self.error is not None:
            response["error"] = self.error.to_dict()
        else:
            response["result"] = self.result
        return response

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JsonRpcResponse":
        """Parse JSON-RPC 2.0 response from dict."""
        request_id = _validate_id(data.get("id"))
        if data.get("error") is not None:
            return cls(id=request_id, error=JsonRpcError.from_dict(data["error"]))
        return cls(id=request_id, result=data.get("result"))

    @classmethod
    def success(cls, request_id: Optional[RequestId], result: Any) -> "JsonRpcResponse":
        """Create success response."""
        return cls(id=request_id, result=result)

    @classmethod
    def error_response(
        cls,
        request_id: Optional[RequestId],
        code: int,
        message: str,
        data: Optional[Any] = None,
    ) -> "JsonRpcResponse":
        """Create error response."""
        return cls(id=request_id, error=JsonRpcError(code=code, message=message, data=data))


Message = Union[JsonRpcRequest, JsonRpcResponse]


def _validate_id(value: Any) -> Optional[RequestId]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise DecodeError(f"invalid id: {value!r}", ErrorCode.INVALID_REQUEST)


def encode_message(message: Message) -> bytes:
    """Encode an envelope as one compact JSON line."""
    try:
        line = json.dumps(message.to_dict(), separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise ValueError(f"envelope is not JSON serializable: {e}") from e
    return (line + "\n").encode("utf-8")


def decode_message(line: Union[bytes, str]) -> Message:
    """Decode one line into a request or response.

    Raises:
        DecodeError: PARSE_ERROR for invalid JSON, INVALID_REQUEST for JSON
            that is not a JSON-RPC 2.0 envelope.
    """
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"invalid UTF-8: {e}") from e

    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError("envelope must be a JSON object", ErrorCode.INVALID_REQUEST)

    if "jsonrpc" not in data:
        raise DecodeError("missing jsonrpc member", ErrorCode.INVALID_REQUEST)
    version = data["jsonrpc"]
    if version != JSONRPC_VERSION:
        raise DecodeError(f"unsupported jsonrpc version: {version!r}", ErrorCode.INVALID_REQUEST)

    if "method" in data:
        return JsonRpcRequest.from_dict(data)
    if "result" in data or "error" in data:
        return JsonRpcResponse.from_dict(data)

    raise DecodeError("envelope is neither a request nor a response", ErrorCode.INVALID_REQUEST)
