"""Cross-origin message channel transport.

For hosts embedding the page in a frame: the polyfill posts call envelopes
to ``window.parent`` and the host forwards ``message`` events to
:meth:`MessageChannelTransport.on_message`. Script evaluation in the other
direction is blocked by the same-origin policy when the frame is
cross-origin; delivery then fails with ``TransportUnavailable``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Sequence

from ..errors import TransportUnavailable
from ..protocol import CHANNEL_MESSAGE_TYPE, OutboundRequest
from ..scripts import message_channel_polyfill
from .base import EmbeddedEntry, ScriptEvaluator, TransportAdapter, TransportKind

logger = logging.getLogger(__name__)


class MessageChannelTransport(TransportAdapter):
    """Transport for frames reachable only through ``postMessage``."""

    kind = TransportKind.MESSAGE_CHANNEL

    def __init__(
        self,
        evaluate_script: Optional[ScriptEvaluator] = None,
        native_interface_name: str = "AppBridgeNative",
        target_origin: str = "*",
        allowed_origins: Optional[Sequence[str]] = None,
        same_origin: bool = True,
    ):
        super().__init__(evaluate_script, native_interface_name)
        self._target_origin = target_origin
        self._allowed_origins = list(allowed_origins) if allowed_origins else ["*"]
        self.same_origin = same_origin

    @property
    def allowed_origins(self) -> list[str]:
        """Origins whose messages are accepted."""
        return list(self._allowed_origins)

    @property
    def is_available(self) -> bool:
        return super().is_available and self.same_origin

    @property
    def polyfill(self) -> str:
        """Polyfill defining the native interface on top of ``postMessage``."""
        return message_channel_polyfill(self._native_interface_name, self._target_origin)

    def attach_scripts(self) -> list[str]:
        return [self.polyfill]

    def navigation_scripts(self) -> list[str]:
        return [self.polyfill]

    def origin_allowed(self, origin: Optional[str]) -> bool:
        """Check whether messages from ``origin`` are accepted."""
        return "*" in self._allowed_origins or origin in self._allowed_origins

    def on_message(self, data: Any, origin: Optional[str] = None) -> bool:
        """
        Handle a ``message`` event received by the host window.

        Args:
            data: The event's data (object or JSON text)
            origin: The event's origin

        Returns:
            True if the message was a bridge call and was routed
        """
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError:
                return False

        if not isinstance(data, dict) or data.get("type") != CHANNEL_MESSAGE_TYPE:
            return False

        if not self.origin_allowed(origin):
            logger.warning(f"message_channel: ignoring call from disallowed origin {origin}")
            return False

        self.send_from_embedded(data)
        return True

    async def deliver_to_embedded(self, script: str) -> None:
        if not self.same_origin:
            raise TransportUnavailable(self.name, "embedded context is cross-origin")
        await super().deliver_to_embedded(script)

    def embedded_entry(self) -> Optional[EmbeddedEntry]:
        def post(request: OutboundRequest) -> None:
            self.on_message({"type": CHANNEL_MESSAGE_TYPE, **request.to_dict()})

        return post
