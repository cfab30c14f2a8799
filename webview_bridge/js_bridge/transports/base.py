"""
Transport adapter base class.

A transport is the only component that knows how a particular host surface
moves strings between native code and the embedded context. The bridge
core binds itself to a transport on ``attach()`` and asks it to evaluate
settlement and event scripts; the host routes embedded -> native messages
into the transport's receive methods.
"""

from __future__ import annotations

import inspect
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Union

from ..errors import TransportUnavailable
from ..protocol import OutboundRequest

if TYPE_CHECKING:
    from ..core import WebViewJsBridge

logger = logging.getLogger(__name__)

# Host primitive evaluating a script in the embedded context
ScriptEvaluator = Callable[[str], Union[None, Any, Awaitable[Any]]]

# Embedded-side entry point of a transport (what the injected object or
# polyfill does when the page calls window.<nativeInterfaceName>.call)
EmbeddedEntry = Callable[[OutboundRequest], Any]


class TransportKind(Enum):
    """Delivery mechanisms supported by the bridge."""

    DIRECT = "direct"
    ROUTER = "router"
    MESSAGE_CHANNEL = "message_channel"
    UNSUPPORTED = "unsupported"

    @classmethod
    def parse(cls, value: Union[str, "TransportKind"]) -> "TransportKind":
        """Parse a transport kind from its name or value."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        for kind in cls:
            if normalized in (kind.value, kind.name.lower()):
                return kind
        raise ValueError(f"Unknown transport kind: {value}")


class TransportAdapter:
    """
    Base class for transport adapters.

    Subclasses override the embedded-side hooks they need; the base class
    implements the shared routing into the bound bridge and the
    "evaluate script" delivery path.
    """

    kind: TransportKind

    def __init__(
        self,
        evaluate_script: Optional[ScriptEvaluator] = None,
        native_interface_name: str = "AppBridgeNative",
    ):
        self._evaluate_script = evaluate_script
        self._native_interface_name = native_interface_name
        self._bridge: Optional["WebViewJsBridge"] = None

    @property
    def name(self) -> str:
        """Display name of this transport."""
        return self.kind.value

    @property
    def native_interface_name(self) -> str:
        """Name of the native interface global in the embedded context."""
        return self._native_interface_name

    @property
    def is_bound(self) -> bool:
        """Check if a bridge is bound to this transport."""
        return self._bridge is not None

    @property
    def is_available(self) -> bool:
        """Check if native -> embedded delivery is possible."""
        return self._evaluate_script is not None

    def bind(self, bridge: "WebViewJsBridge") -> None:
        """Bind the bridge that receives embedded -> native messages."""
        self._bridge = bridge

    def unbind(self) -> None:
        """Release the bound bridge."""
        self._bridge = None

    def attach_scripts(self) -> list[str]:
        """Scripts evaluated once when the transport is attached."""
        return []

    def navigation_scripts(self) -> list[str]:
        """Scripts evaluated before the bootstrap after every navigation."""
        return []

    def embedded_entry(self) -> Optional[EmbeddedEntry]:
        """
        Get the embedded-side send function, if this transport has one.

        Used by in-process pages to model what the native interface does
        when the page calls it.
        """
        return self.receive_request

    def send_from_embedded(self, raw: str) -> None:
        """Route a raw envelope from the embedded context to the bridge."""
        bridge = self._bridge
        if bridge is None:
            logger.debug(f"{self.name}: dropping message, no bridge bound")
            return
        bridge.handle_incoming(raw)

    def receive_request(self, request: OutboundRequest) -> None:
        """Route an already-decoded request to the bridge."""
        bridge = self._bridge
        if bridge is None:
            logger.debug(f"{self.name}: dropping {request.method}, no bridge bound")
            return
        bridge.handle_request(request)

    async def deliver_to_embedded(self, script: str) -> None:
        """
        Evaluate a script in the embedded context.

        Raises:
            TransportUnavailable: If delivery is impossible or the host
                evaluation primitive fails
        """
        if self._evaluate_script is None:
            raise TransportUnavailable(self.name, "no script evaluator")

        try:
            result = self._evaluate_script(script)
            if inspect.isawaitable(result):
                await result
        except TransportUnavailable:
            raise
        except Exception as e:
            raise TransportUnavailable(self.name, f"script evaluation failed: {e}") from e

    def __repr__(self) -> str:
        state = "bound" if self.is_bound else "unbound"
        return f"<{type(self).__name__} {self.name} {state}>"
