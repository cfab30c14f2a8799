"""No-op transport for platforms without any script bridge."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..errors import TransportUnavailable
from ..protocol import OutboundRequest
from .base import EmbeddedEntry, TransportAdapter, TransportKind

logger = logging.getLogger(__name__)


class UnsupportedTransport(TransportAdapter):
    """
    Transport for hosts that cannot bridge at all.

    Handlers can still be registered on the bridge, but nothing is ever
    delivered: the embedded side has no native interface, so every call
    it makes is rejected immediately.
    """

    kind = TransportKind.UNSUPPORTED

    def __init__(
        self,
        native_interface_name: str = "AppBridgeNative",
        reason: str = "platform has no script bridge",
    ):
        super().__init__(None, native_interface_name)
        self._reason = reason

    @property
    def reason(self) -> str:
        """Why this platform is unsupported."""
        return self._reason

    def send_from_embedded(self, raw: Any) -> None:
        logger.debug(f"unsupported: dropping inbound message ({self._reason})")

    def receive_request(self, request: OutboundRequest) -> None:
        logger.debug(f"unsupported: dropping call to {request.method} ({self._reason})")

    async def deliver_to_embedded(self, script: str) -> None:
        raise TransportUnavailable(self.name, self._reason)

    def embedded_entry(self) -> Optional[EmbeddedEntry]:
        def reject(request: OutboundRequest) -> None:
            raise TransportUnavailable(self.name, self._reason)

        return reject
