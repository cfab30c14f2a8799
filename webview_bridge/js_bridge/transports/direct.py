"""Direct object injection transport.

The host exposes a native object into the script scope (for example via
``addJavascriptInterface``). Embedded code calls it synchronously; results
still travel back asynchronously through script evaluation.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from ..protocol import OutboundRequest
from .base import EmbeddedEntry, ScriptEvaluator, TransportAdapter, TransportKind

logger = logging.getLogger(__name__)

# Host primitive exposing a Python object under a global name
ObjectInjector = Callable[[str, Any], Any]


class NativeInterface:
    """The object injected as ``window.<nativeInterfaceName>``."""

    def __init__(self, transport: "DirectInjectionTransport"):
        self._transport = transport

    def call(self, method: Any, data: Any = None, callback_id: Any = None) -> None:
        """Entry point invoked by embedded code."""
        self._transport.send_from_embedded(
            {"method": method, "data": data, "callbackId": callback_id}
        )


class DirectInjectionTransport(TransportAdapter):
    """Transport for hosts that can inject a native object into the page."""

    kind = TransportKind.DIRECT

    def __init__(
        self,
        evaluate_script: Optional[ScriptEvaluator] = None,
        native_interface_name: str = "AppBridgeNative",
        inject_object: Optional[ObjectInjector] = None,
    ):
        super().__init__(evaluate_script, native_interface_name)
        self._inject_object = inject_object
        self._native_object = NativeInterface(self)

    @property
    def native_object(self) -> NativeInterface:
        """The object to expose as the native interface."""
        return self._native_object

    def bind(self, bridge: Any) -> None:
        super().bind(bridge)
        if self._inject_object is not None:
            logger.debug(f"Injecting native interface as {self._native_interface_name}")
            self._inject_object(self._native_interface_name, self._native_object)

    def embedded_entry(self) -> Optional[EmbeddedEntry]:
        def call(request: OutboundRequest) -> None:
            self._native_object.call(request.method, request.data, request.callback_id)

        return call
