"""Error types for the WebView JS bridge.

Every error that arises while handling a single inbound call is converted
into an ``onError`` settlement for that call's callback id. Only
:class:`SerializerMisconfigured` escapes to the host, and only at bridge
construction time.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Optional


class BridgeErrorCode(IntEnum):
    """Classification codes for bridge errors.

    The wire protocol only carries the error message; codes are used for
    logging and CLI output.
    """

    UNKNOWN = 1000
    SERIALIZER_MISCONFIGURED = 1001
    DECODE_ERROR = 1002
    ENCODE_ERROR = 1003
    HANDLER_NOT_FOUND = 1004
    HANDLER_THREW = 1005
    TRANSPORT_UNAVAILABLE = 1006
    CALL_TIMEOUT = 1007
    CALL_DROPPED = 1008


class BridgeError(Exception):
    """Base exception for bridge errors."""

    code: BridgeErrorCode = BridgeErrorCode.UNKNOWN

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary for logging and JSON output."""
        error: dict[str, Any] = {
            "code": int(self.code),
            "type": type(self).__name__,
            "message": self.message,
        }
        if self.details:
            error["details"] = self.details
        return error


class SerializerMisconfigured(BridgeError):
    """Raised at bridge construction when no usable serializer exists."""

    code = BridgeErrorCode.SERIALIZER_MISCONFIGURED


class SerializationError(BridgeError):
    """Base class for encode/decode failures."""

    def __init__(self, message: str, descriptor: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.descriptor = descriptor


class DecodeError(SerializationError):
    """Raised when a wire string is malformed or does not match its type.

    Attributes:
        wire: The offending wire string
        descriptor: Name of the type descriptor decoding was attempted against
        callback_id: Callback id recovered from a malformed envelope, if any
    """

    code = BridgeErrorCode.DECODE_ERROR

    def __init__(
        self,
        wire: Optional[str],
        descriptor: str,
        reason: str = "",
        callback_id: Optional[str] = None,
    ) -> None:
        message = f"Failed to decode {descriptor}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, descriptor, {"wire": wire})
        self.wire = wire
        self.reason = reason
        self.callback_id = callback_id


class EncodeError(SerializationError):
    """Raised when a value cannot be encoded against its type descriptor."""

    code = BridgeErrorCode.ENCODE_ERROR

    def __init__(self, descriptor: str, reason: str = "") -> None:
        message = f"Failed to encode {descriptor}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, descriptor)
        self.reason = reason


class HandlerNotFound(BridgeError):
    """Raised when a call names a method with no registered handler."""

    code = BridgeErrorCode.HANDLER_NOT_FOUND

    def __init__(self, method: str) -> None:
        super().__init__(f"No handler found for method: {method}", {"method": method})
        self.method = method


class HandlerThrew(BridgeError):
    """Raised when a registered handler raises during execution."""

    code = BridgeErrorCode.HANDLER_THREW

    def __init__(self, method: str, cause: BaseException) -> None:
        super().__init__(str(cause) or "Unknown error", {"method": method})
        self.method = method
        self.cause = cause


class TransportUnavailable(BridgeError):
    """Raised when a transport cannot deliver in the requested direction."""

    code = BridgeErrorCode.TRANSPORT_UNAVAILABLE

    def __init__(self, transport: str, reason: str = "") -> None:
        message = f"Transport unavailable: {transport}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, {"transport": transport})
        self.transport = transport
        self.reason = reason


class CallTimeout(BridgeError):
    """Raised on the embedded side when a caller-side timeout expires."""

    code = BridgeErrorCode.CALL_TIMEOUT

    def __init__(self, method: str) -> None:
        super().__init__(f"Call timed out: {method}", {"method": method})
        self.method = method


class CallDropped(BridgeError):
    """Raised on the embedded side for calls dropped by dispose or navigation."""

    code = BridgeErrorCode.CALL_DROPPED

    def __init__(self, callback_id: str) -> None:
        super().__init__("Bridge disposed", {"callbackId": callback_id})
        self.callback_id = callback_id
