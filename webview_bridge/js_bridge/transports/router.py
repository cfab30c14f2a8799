"""Single-primitive message router transport.

For hosts such as CEF whose embedded context can only invoke one opaque
query function (``window.cefQuery``) that yields a payload-less
acknowledgement. A polyfill adapts the bridge's ``call`` interface onto
that primitive. Page globals are wiped on reload and the host has no
inject-on-load hook, so the polyfill is reinstalled after every navigation.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..errors import DecodeError, TransportUnavailable
from ..protocol import OutboundRequest
from ..scripts import router_polyfill
from .base import EmbeddedEntry, ScriptEvaluator, TransportAdapter, TransportKind

logger = logging.getLogger(__name__)


class MessageRouterTransport(TransportAdapter):
    """
    Transport for hosts exposing a single query primitive.

    Example:
        transport = MessageRouterTransport(browser.execute_javascript)
        bridge.attach(transport)

        # In the host's query handler:
        def on_query(browser, frame, query_id, request, persistent, callback):
            if transport.on_query(request):
                callback.success("")
                return True
            return False
    """

    kind = TransportKind.ROUTER

    def __init__(
        self,
        evaluate_script: Optional[ScriptEvaluator] = None,
        native_interface_name: str = "AppBridgeNative",
        query_function: str = "cefQuery",
        js_object_name: str = "AppBridge",
    ):
        super().__init__(evaluate_script, native_interface_name)
        self._query_function = query_function
        self._js_object_name = js_object_name

    @property
    def query_function(self) -> str:
        """Name of the query primitive in the embedded context."""
        return self._query_function

    @property
    def polyfill(self) -> str:
        """Polyfill defining the native interface on top of the query primitive."""
        return router_polyfill(
            self._native_interface_name,
            self._query_function,
            self._js_object_name,
        )

    def attach_scripts(self) -> list[str]:
        return [self.polyfill]

    def navigation_scripts(self) -> list[str]:
        return [self.polyfill]

    def on_query(self, request: Optional[str]) -> bool:
        """
        Handle one query from the embedded context.

        Returns:
            True to acknowledge the query, False to fail it (the polyfill
            then settles the call with ``onError``)
        """
        if request is None:
            return False
        if not self.is_bound:
            logger.debug("router: query received with no bridge bound")
            return False

        try:
            parsed = OutboundRequest.from_json(request)
        except DecodeError as e:
            logger.warning(f"router: rejected query: {e}")
            return False

        self.receive_request(parsed)
        return True

    def embedded_entry(self) -> Optional[EmbeddedEntry]:
        def query(request: OutboundRequest) -> None:
            if not self.on_query(request.to_json()):
                raise TransportUnavailable(self.name, f"window.{self._query_function} query failed")

        return query
