"""
Embedded-side correlation of calls and events.

:class:`EmbeddedCorrelator` is the Python counterpart of the object the
bootstrap script installs as ``window.<jsObjectName>``: it issues callback
ids, keeps one pending future per outstanding call and dispatches events
to listeners. :class:`EmbeddedPage` hosts it inside an in-process stand-in
for the embedded context, which evaluates the scripts the bridge delivers.
Together they let the bridge be driven end to end without a browser.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .errors import BridgeError, CallDropped, CallTimeout
from .protocol import OutboundRequest, parse_script_call
from .scripts import (
    DEFAULT_CALLBACK_PREFIX,
    DEFAULT_JS_OBJECT_NAME,
    DEFAULT_NATIVE_INTERFACE_NAME,
    script_role,
)
from .transports import TransportAdapter, TransportKind, create_transport
from .transports.base import EmbeddedEntry

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]


@dataclass
class _PendingCall:
    method: str
    future: asyncio.Future
    timer: Optional[asyncio.TimerHandle] = None


class EmbeddedCorrelator:
    """
    Correlates calls made from the embedded context with their settlements.

    Every call gets a fresh callback id and is settled at most once: by
    ``on_success``, ``on_error``, its timeout, or ``dispose``. Settlements
    for unknown ids are ignored.

    Example:
        correlator = EmbeddedCorrelator(transport.embedded_entry())
        result = await correlator.call("add", {"a": 1, "b": 2})
    """

    def __init__(
        self,
        send: Optional[EmbeddedEntry] = None,
        native_interface_name: str = DEFAULT_NATIVE_INTERFACE_NAME,
        callback_prefix: str = DEFAULT_CALLBACK_PREFIX,
        default_timeout: Optional[float] = None,
    ):
        """
        Args:
            send: Native interface entry point; None if it does not exist
            native_interface_name: Name used in "not found" rejections
            callback_prefix: Prefix of generated callback ids
            default_timeout: Seconds before calls are rejected (None: never)
        """
        self.send = send
        self._native_interface_name = native_interface_name
        self._callback_prefix = callback_prefix
        self._default_timeout = default_timeout
        self._sequence = 0
        self._pending: dict[str, _PendingCall] = {}
        self._listeners: dict[str, list[Listener]] = {}
        self._disposed = False

    @property
    def pending_count(self) -> int:
        """Number of calls awaiting settlement."""
        return len(self._pending)

    @property
    def pending_ids(self) -> list[str]:
        return list(self._pending)

    def next_callback_id(self) -> str:
        """Generate a callback id unique within this correlator."""
        self._sequence += 1
        return f"{self._callback_prefix}{self._sequence}_{secrets.token_hex(4)}"

    def call(
        self,
        method: str,
        data: Any = None,
        timeout: Optional[float] = None,
    ) -> asyncio.Future:
        """
        Call a native method.

        Args:
            method: Method name
            data: JSON-compatible input (None sends no data)
            timeout: Seconds before the call is rejected with ``CallTimeout``

        Returns:
            Future resolved with the decoded result, or failed with a
            ``BridgeError`` carrying the error message
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        callback_id = self.next_callback_id()

        if self._disposed:
            future.set_exception(CallDropped(callback_id))
            return future

        pending = _PendingCall(method=method, future=future)
        self._pending[callback_id] = pending

        timeout = timeout if timeout is not None else self._default_timeout
        if timeout is not None and timeout > 0:
            pending.timer = loop.call_later(
                timeout, self._settle, callback_id, None, CallTimeout(method)
            )

        try:
            sent = self._send(method, data, callback_id)
        except Exception as e:
            self._settle(callback_id, None, e if isinstance(e, BridgeError) else BridgeError(str(e)))
            return future

        if not sent:
            self._settle(
                callback_id,
                None,
                BridgeError(f"{self._native_interface_name} not found"),
            )
        return future

    def notify(self, method: str, data: Any = None) -> bool:
        """
        Send a fire-and-forget call. No settlement is ever delivered.

        Returns:
            False if the native interface does not exist
        """
        if self._disposed:
            return False
        try:
            return self._send(method, data, None)
        except BridgeError as e:
            logger.debug(f"Dropping notification {method}: {e}")
            return False

    def on(self, event: str, listener: Listener) -> None:
        """Add an event listener (adding the same listener twice is a no-op)."""
        listeners = self._listeners.setdefault(event, [])
        if listener not in listeners:
            listeners.append(listener)

    def off(self, event: str, listener: Listener) -> None:
        """Remove an event listener."""
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def trigger(self, event: str, data: Any = None) -> int:
        """
        Dispatch an event to its listeners in registration order.

        A failing listener does not prevent the others from running. Events
        with no listeners are dropped.

        Returns:
            Number of listeners invoked
        """
        listeners = list(self._listeners.get(event, []))
        for listener in listeners:
            try:
                listener(data)
            except Exception:
                logger.exception(f"Listener failed for event {event}")
        return len(listeners)

    def on_success(self, callback_id: str, result: Any = None) -> bool:
        """Resolve a pending call. Returns False for unknown ids."""
        return self._settle(callback_id, result, None)

    def on_error(self, callback_id: str, error: Any = None) -> bool:
        """Reject a pending call. Returns False for unknown ids."""
        message = error if isinstance(error, str) else json.dumps(error)
        return self._settle(callback_id, None, BridgeError(message))

    def dispose(self) -> None:
        """Reject all pending calls with ``CallDropped`` and drop listeners."""
        self._disposed = True
        for callback_id in list(self._pending):
            self._settle(callback_id, None, CallDropped(callback_id))
        self._listeners.clear()

    # Private methods

    def _send(self, method: str, data: Any, callback_id: Optional[str]) -> bool:
        if self.send is None:
            return False
        payload = None if data is None else json.dumps(data)
        self.send(OutboundRequest(method=method, data=payload, callback_id=callback_id))
        return True

    def _settle(
        self,
        callback_id: str,
        result: Any,
        error: Optional[BaseException],
    ) -> bool:
        pending = self._pending.pop(callback_id, None)
        if pending is None:
            logger.debug(f"Ignoring settlement for unknown callback {callback_id}")
            return False

        if pending.timer is not None:
            pending.timer.cancel()
        if pending.future.done():
            return False

        if error is not None:
            pending.future.set_exception(error)
        else:
            pending.future.set_result(result)
        return True


class EmbeddedPage:
    """
    In-process stand-in for a page in the embedded context.

    Use :meth:`evaluate` as the transport's script evaluator. Scripts are
    recognised by their marker comment or call shape: the bootstrap script
    installs an :class:`EmbeddedCorrelator` as the page's bridge object,
    polyfills install the native interface, and settlement/trigger scripts
    are applied to the correlator. Everything else is recorded and ignored.

    Example:
        page = EmbeddedPage.with_transport("router")
        bridge.attach(page.transport)
        bridge.on_navigation_finished()
        await bridge.drain()

        result = await page.bridge.call("add", {"a": 1, "b": 2})
    """

    def __init__(
        self,
        transport: Optional[TransportAdapter] = None,
        js_object_name: str = DEFAULT_JS_OBJECT_NAME,
        native_interface_name: Optional[str] = None,
        callback_prefix: str = DEFAULT_CALLBACK_PREFIX,
        call_timeout: Optional[float] = None,
    ):
        self._transport: Optional[TransportAdapter] = None
        self._js_object_name = js_object_name
        self._native_interface_name = native_interface_name
        self._callback_prefix = callback_prefix
        self._call_timeout = call_timeout

        self._correlator: Optional[EmbeddedCorrelator] = None
        self._polyfilled = False

        self.evaluated: list[str] = []
        self.ready_events = 0
        self.navigations = 0

        if transport is not None:
            self.connect(transport)

    @classmethod
    def with_transport(
        cls,
        kind: Union[str, TransportKind] = TransportKind.DIRECT,
        js_object_name: str = DEFAULT_JS_OBJECT_NAME,
        native_interface_name: str = DEFAULT_NATIVE_INTERFACE_NAME,
        callback_prefix: str = DEFAULT_CALLBACK_PREFIX,
        call_timeout: Optional[float] = None,
        **transport_options: Any,
    ) -> "EmbeddedPage":
        """Create a page together with a transport evaluating into it."""
        page = cls(
            js_object_name=js_object_name,
            native_interface_name=native_interface_name,
            callback_prefix=callback_prefix,
            call_timeout=call_timeout,
        )
        transport = create_transport(
            kind,
            page.evaluate,
            native_interface_name,
            js_object_name=js_object_name,
            **transport_options,
        )
        page.connect(transport)
        return page

    @property
    def transport(self) -> Optional[TransportAdapter]:
        return self._transport

    @property
    def native_interface_name(self) -> str:
        if self._native_interface_name:
            return self._native_interface_name
        if self._transport is not None:
            return self._transport.native_interface_name
        return DEFAULT_NATIVE_INTERFACE_NAME

    @property
    def bridge(self) -> Optional[EmbeddedCorrelator]:
        """The page's ``window.<jsObjectName>``, or None before bootstrap."""
        return self._correlator

    @property
    def has_native_interface(self) -> bool:
        """Check if ``window.<nativeInterfaceName>`` exists in the page."""
        if self._transport is None or self._transport.kind is TransportKind.UNSUPPORTED:
            return False
        if self._transport.embedded_entry() is None:
            return False
        if self._transport.kind is TransportKind.DIRECT:
            return True
        return self._polyfilled

    def connect(self, transport: TransportAdapter) -> None:
        """Use ``transport`` as the page's native interface."""
        self._transport = transport
        self._refresh_native()

    def evaluate(self, script: str) -> None:
        """Evaluate a script delivered by the native side."""
        self.evaluated.append(script)

        role, words = script_role(script)
        if role == "bootstrap":
            self._install_bootstrap(words)
            return
        if role == "polyfill":
            if len(words) >= 2 and words[1] == self.native_interface_name:
                self._polyfilled = True
                self._refresh_native()
            return

        call = parse_script_call(script)
        if call is None:
            logger.debug("Page ignoring unrecognised script")
            return
        if call.js_object_name != self._js_object_name or self._correlator is None:
            logger.debug(f"Page has no window.{call.js_object_name}; dropping {call.function}")
            return

        if call.function == "onSuccess":
            self._correlator.on_success(call.target, call.value)
        elif call.function == "onError":
            self._correlator.on_error(call.target, call.value)
        else:
            self._correlator.trigger(call.target, call.value)

    def navigate(self) -> None:
        """Start a new document: every page global is wiped."""
        if self._correlator is not None:
            self._correlator.dispose()
        self._correlator = None
        self._polyfilled = False
        self.navigations += 1

    # Private methods

    def _install_bootstrap(self, words: list[str]) -> None:
        if words and words[0] != self._js_object_name:
            logger.debug(f"Page ignoring bootstrap for window.{words[0]}")
            return
        if self._correlator is not None:
            return

        self._correlator = EmbeddedCorrelator(
            None,
            self.native_interface_name,
            self._callback_prefix,
            self._call_timeout,
        )
        self._refresh_native()
        self.ready_events += 1

    def _refresh_native(self) -> None:
        if self._correlator is None:
            return
        if self.has_native_interface and self._transport is not None:
            self._correlator.send = self._transport.embedded_entry()
        elif self._transport is not None and self._transport.kind is TransportKind.UNSUPPORTED:
            # Calls fail with the platform's reason instead of "not found"
            self._correlator.send = self._transport.embedded_entry()
        else:
            self._correlator.send = None
