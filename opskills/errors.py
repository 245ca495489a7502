"""Error types for the opskills bridge.

Lower layers return result objects for expected failures (a script exiting
non-zero is a failed ExecutionResult, not an exception). These exceptions are
for the remaining cases:
- Codec: malformed envelopes
- Protocol: error responses received from a peer
- Transport: process start failures, closed pipes, dropped connections
- Caller cancellation: a call abandoned because its timeout expired
"""

from typing import Any, Optional

from opskills.constants import ErrorCode


class BridgeError(Exception):
    """Base exception for all opskills errors.

    Attributes:
        message: Error description.
        cause: Optional underlying exception being wrapped.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class DecodeError(BridgeError):
    """An input line is not a valid JSON-RPC envelope.

    Attributes:
        code: PARSE_ERROR for unparseable input, INVALID_REQUEST for valid
            JSON that is not an envelope.
    """

    def __init__(self, message: str, code: int = ErrorCode.PARSE_ERROR):
        super().__init__(message)
        self.code = code


class RPCError(BridgeError):
    """Error response carried over the protocol.

    Raised on the client when a peer answers with an error, and raised by
    server handlers that want a specific error code in the response.
    """

    def __init__(self, code: int, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.code = code
        self.data = data

    def __str__(self) -> str:
        return f"RPC error: {self.message} (code: {self.code})"


class TransportError(BridgeError):
    """Child process could not be started or its pipes failed."""


class ConnectionClosedError(TransportError):
    """The connection ended before a response arrived."""


class ConnectionStateError(BridgeError):
    """Operation not allowed in the connection's current state."""


class CallCancelledError(BridgeError):
    """The caller gave up waiting for a response.

    Attributes:
        method: Method of the abandoned request.
        request_id: Identifier of the abandoned request.
        timeout: Timeout that expired, in seconds.
    """

    def __init__(self, method: str, request_id: Any, timeout: Optional[float] = None):
        if timeout is not None:
            message = f"{method} (id={request_id}) cancelled after {timeout}s"
        else:
            message = f"{method} (id={request_id}) cancelled"
        super().__init__(message)
        self.method = method
        self.request_id = request_id
        self.timeout = timeout


class ServerNotConnectedError(BridgeError):
    """No usable connection to the named external server."""

    def __init__(self, server_name: str, reason: Optional[str] = None, cause: Optional[BaseException] = None):
        message = f"server not connected: {server_name}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, cause)
        self.server_name = server_name


class ConfigurationError(BridgeError):
    """Configuration error (missing field, invalid value, etc).

    Attributes:
        field: Optional field name that failed.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class SkillNotFoundError(BridgeError):
    """No skill registered under the requested name."""

    def __init__(self, name: str):
        super().__init__(f"skill not found: {name}")
        self.name = name


class SkillLoadError(BridgeError):
    """A SKILL.md descriptor could not be parsed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ScriptNotFoundError(BridgeError):
    """No runnable script could be selected for a skill."""


class InvalidSkillURIError(BridgeError):
    """URI is not of the form skill://<name>/<path>."""

    def __init__(self, uri: str):
        super().__init__(f"invalid skill URI: {uri}")
        self.uri = uri


class UnknownResourceError(BridgeError):
    """Skill URI names a resource shape the server does not serve."""
