"""
Wire protocol for the WebView JS bridge.

Embedded -> native messages are JSON envelopes::

    {"method": "add", "data": "{\\"a\\":1,\\"b\\":2}", "callbackId": "cb_1"}

Native -> embedded messages are scripts evaluated in the embedded context::

    window.AppBridge.onSuccess("cb_1", 3);
    window.AppBridge.onError("cb_2", "No handler found for method: ghost");
    window.AppBridge.trigger("tick", 1);
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from .errors import BridgeError, DecodeError

ENVELOPE_DESCRIPTOR = "OutboundRequest"

# Message tag used by the cross-origin message channel polyfill
CHANNEL_MESSAGE_TYPE = "jsBridgeCall"

_JS_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

_SCRIPT_CALL = re.compile(
    r"^\s*window\.(?P<object>[A-Za-z_$][A-Za-z0-9_$]*)\."
    r"(?P<function>onSuccess|onError|trigger)\((?P<args>.*)\);?\s*$",
    re.DOTALL,
)


def is_js_identifier(name: str) -> bool:
    """Check whether a name is usable as a ``window`` property identifier."""
    return bool(_JS_IDENTIFIER.match(name or ""))


def js_string(value: str) -> str:
    """Render a Python string as a JSON (and therefore JS) string literal."""
    return json.dumps(value)


@dataclass
class OutboundRequest:
    """A call sent from the embedded context to native code.

    ``callback_id`` is ``None`` for fire-and-forget calls.
    """

    method: str
    data: Optional[str] = None
    callback_id: Optional[str] = None

    @property
    def expects_reply(self) -> bool:
        """Check if the caller is waiting for a settlement."""
        return self.callback_id is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire envelope."""
        return {
            "method": self.method,
            "data": self.data,
            "callbackId": self.callback_id,
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any, wire: Optional[str] = None) -> "OutboundRequest":
        """
        Create from an already-parsed envelope.

        A non-string ``data`` member is re-encoded to JSON text.

        Raises:
            DecodeError: If the envelope is not an object or lacks a method
        """
        if wire is None:
            wire = _safe_dumps(data)

        if not isinstance(data, dict):
            raise DecodeError(wire, ENVELOPE_DESCRIPTOR, "envelope is not an object")

        callback_id = data.get("callbackId")
        if callback_id is not None and not isinstance(callback_id, str):
            callback_id = str(callback_id)

        method = data.get("method")
        if not isinstance(method, str) or not method:
            raise DecodeError(
                wire, ENVELOPE_DESCRIPTOR, "missing method", callback_id=callback_id
            )

        payload = data.get("data")
        if payload is not None and not isinstance(payload, str):
            payload = json.dumps(payload, separators=(",", ":"))

        return cls(method=method, data=payload, callback_id=callback_id)

    @classmethod
    def from_json(cls, json_str: Union[str, bytes]) -> "OutboundRequest":
        """Parse from JSON string or UTF-8 bytes."""
        wire = json_str.decode("utf-8", errors="replace") if isinstance(json_str, bytes) else json_str
        try:
            data = json.loads(json_str)
        except (ValueError, TypeError) as e:
            # ValueError covers JSONDecodeError and UnicodeDecodeError
            raise DecodeError(wire, ENVELOPE_DESCRIPTOR, str(e))
        return cls.from_dict(data, wire=wire)


@dataclass
class DispatchResult:
    """Outcome of dispatching one request to its handler."""

    output: Optional[str] = None
    error: Optional[BridgeError] = None

    @classmethod
    def success(cls, output: str) -> "DispatchResult":
        """Create a success result carrying the encoded output."""
        return cls(output=output)

    @classmethod
    def failure(cls, error: BridgeError) -> "DispatchResult":
        """Create a failure result."""
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        """Check if this is a success result."""
        return self.error is None


@dataclass
class Settlement:
    """Resolution of a call, delivered as a script to the embedded context."""

    callback_id: str
    literal: str
    is_success: bool = True

    @classmethod
    def success(cls, callback_id: str, result_literal: Optional[str]) -> "Settlement":
        """Settle a call with the raw JSON literal of its result."""
        return cls(callback_id, result_literal if result_literal is not None else "null", True)

    @classmethod
    def failure(cls, callback_id: str, message: str) -> "Settlement":
        """Settle a call with an error message."""
        return cls(callback_id, js_string(message), False)

    @classmethod
    def from_result(cls, callback_id: str, result: DispatchResult) -> "Settlement":
        """Build the settlement for a dispatch result."""
        if result.is_success:
            return cls.success(callback_id, result.output)
        return cls.failure(callback_id, str(result.error))

    def to_script(self, js_object_name: str) -> str:
        """Render as a script for the embedded context."""
        function = "onSuccess" if self.is_success else "onError"
        return f"window.{js_object_name}.{function}({js_string(self.callback_id)}, {self.literal});"


@dataclass
class EventDelivery:
    """A broadcast event, never correlated to a call."""

    name: str
    payload: str

    def to_script(self, js_object_name: str) -> str:
        """Render as a script for the embedded context."""
        return f"window.{js_object_name}.trigger({js_string(self.name)}, {self.payload});"


@dataclass
class ScriptCall:
    """A parsed native -> embedded script call."""

    js_object_name: str
    function: str
    target: str
    value: Any


def parse_script_call(script: str) -> Optional[ScriptCall]:
    """
    Parse a settlement or trigger script produced by this module.

    Returns:
        The parsed call, or None if the script is not one of ours
    """
    match = _SCRIPT_CALL.match(script)
    if match is None:
        return None

    decoder = json.JSONDecoder()
    args = match.group("args")
    try:
        target, end = decoder.raw_decode(args)
        rest = args[end:].lstrip()
        if not rest.startswith(","):
            return None
        rest = rest[1:].strip()
        value, end = decoder.raw_decode(rest)
    except json.JSONDecodeError:
        return None

    if rest[end:].strip() or not isinstance(target, str):
        return None

    return ScriptCall(
        js_object_name=match.group("object"),
        function=match.group("function"),
        target=target,
        value=value,
    )


def _safe_dumps(data: Any) -> str:
    try:
        return json.dumps(data)
    except (TypeError, ValueError):
        return repr(data)
