"""WebView JS Bridge for calling native code from an embedded script context.

Pages running inside a WebView call typed native handlers through
``window.AppBridge.call(...)`` and receive promise settlements and
broadcast events back as evaluated scripts, over whichever transport the
host platform provides.
"""

from webview_bridge.js_bridge.core import BridgeConfig, BridgeState, WebViewJsBridge
from webview_bridge.js_bridge.correlator import EmbeddedCorrelator, EmbeddedPage
from webview_bridge.js_bridge.errors import (
    BridgeError,
    BridgeErrorCode,
    CallDropped,
    CallTimeout,
    DecodeError,
    EncodeError,
    HandlerNotFound,
    HandlerThrew,
    SerializationError,
    SerializerMisconfigured,
    TransportUnavailable,
)
from webview_bridge.js_bridge.protocol import (
    DispatchResult,
    EventDelivery,
    OutboundRequest,
    Settlement,
)
from webview_bridge.js_bridge.registry import HandlerRegistry, RegisteredHandler
from webview_bridge.js_bridge.scripts import (
    bootstrap_script,
    message_channel_polyfill,
    router_polyfill,
)
from webview_bridge.js_bridge.serialization import (
    NO_INPUT,
    PydanticSerializationAdapter,
    SerializationAdapter,
    load_serializer,
)
from webview_bridge.js_bridge.transports import (
    DirectInjectionTransport,
    MessageChannelTransport,
    MessageRouterTransport,
    TransportAdapter,
    TransportKind,
    UnsupportedTransport,
    create_transport,
)

__all__ = [
    # Core
    "WebViewJsBridge",
    "BridgeConfig",
    "BridgeState",
    # Embedded side
    "EmbeddedCorrelator",
    "EmbeddedPage",
    # Errors
    "BridgeError",
    "BridgeErrorCode",
    "CallDropped",
    "CallTimeout",
    "DecodeError",
    "EncodeError",
    "HandlerNotFound",
    "HandlerThrew",
    "SerializationError",
    "SerializerMisconfigured",
    "TransportUnavailable",
    # Protocol
    "DispatchResult",
    "EventDelivery",
    "OutboundRequest",
    "Settlement",
    # Registry
    "HandlerRegistry",
    "RegisteredHandler",
    # Scripts
    "bootstrap_script",
    "message_channel_polyfill",
    "router_polyfill",
    # Serialization
    "NO_INPUT",
    "PydanticSerializationAdapter",
    "SerializationAdapter",
    "load_serializer",
    # Transports
    "DirectInjectionTransport",
    "MessageChannelTransport",
    "MessageRouterTransport",
    "TransportAdapter",
    "TransportKind",
    "UnsupportedTransport",
    "create_transport",
]
