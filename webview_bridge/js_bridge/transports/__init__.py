"""Transport adapters, one per delivery mechanism."""

from typing import Optional, Sequence, Union

from webview_bridge.js_bridge.transports.base import (
    EmbeddedEntry,
    ScriptEvaluator,
    TransportAdapter,
    TransportKind,
)
from webview_bridge.js_bridge.transports.direct import (
    DirectInjectionTransport,
    NativeInterface,
    ObjectInjector,
)
from webview_bridge.js_bridge.transports.message_channel import MessageChannelTransport
from webview_bridge.js_bridge.transports.router import MessageRouterTransport
from webview_bridge.js_bridge.transports.unsupported import UnsupportedTransport


def create_transport(
    kind: Union[str, TransportKind],
    evaluate_script: Optional[ScriptEvaluator] = None,
    native_interface_name: str = "AppBridgeNative",
    *,
    js_object_name: str = "AppBridge",
    query_function: str = "cefQuery",
    target_origin: str = "*",
    allowed_origins: Optional[Sequence[str]] = None,
    inject_object: Optional[ObjectInjector] = None,
) -> TransportAdapter:
    """
    Create the transport adapter for a delivery mechanism.

    Args:
        kind: Transport kind (``direct``, ``router``, ``message_channel``, ``unsupported``)
        evaluate_script: Host primitive evaluating scripts in the embedded context
        native_interface_name: Global name of the native interface
        js_object_name: Global name of the bridge object (router polyfill)
        query_function: Query primitive name (router)
        target_origin: postMessage target origin (message channel)
        allowed_origins: Accepted message origins (message channel)
        inject_object: Host primitive exposing a native object (direct)

    Returns:
        The transport adapter
    """
    kind = TransportKind.parse(kind)

    if kind is TransportKind.DIRECT:
        return DirectInjectionTransport(
            evaluate_script, native_interface_name, inject_object=inject_object
        )
    if kind is TransportKind.ROUTER:
        return MessageRouterTransport(
            evaluate_script,
            native_interface_name,
            query_function=query_function,
            js_object_name=js_object_name,
        )
    if kind is TransportKind.MESSAGE_CHANNEL:
        return MessageChannelTransport(
            evaluate_script,
            native_interface_name,
            target_origin=target_origin,
            allowed_origins=allowed_origins,
        )
    return UnsupportedTransport(native_interface_name)


__all__ = [
    "EmbeddedEntry",
    "ScriptEvaluator",
    "TransportAdapter",
    "TransportKind",
    "DirectInjectionTransport",
    "NativeInterface",
    "ObjectInjector",
    "MessageRouterTransport",
    "MessageChannelTransport",
    "UnsupportedTransport",
    "create_transport",
]
