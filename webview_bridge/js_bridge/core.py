"""
WebView JS Bridge.

Native side of the bridge: runs registered handlers for calls arriving from
the embedded context and drives a transport to deliver settlements and
events back as evaluated scripts.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from .errors import DecodeError, TransportUnavailable
from .protocol import EventDelivery, OutboundRequest, Settlement, is_js_identifier
from .registry import Handler, HandlerRegistry
from .scripts import bootstrap_script
from .serialization import NO_INPUT, SerializationAdapter, ensure_serializer, load_serializer
from .transports.base import TransportAdapter

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]
TransportErrorHook = Callable[[TransportUnavailable], None]


class BridgeState(Enum):
    """Lifecycle state of a bridge."""

    DETACHED = auto()
    ATTACHED = auto()
    DISPOSED = auto()


@dataclass
class BridgeConfig:
    """Configuration for a bridge instance."""

    # Global the page uses (window.AppBridge)
    js_object_name: str = "AppBridge"

    # Global exposing call(method, data, callbackId) to the page
    native_interface_name: str = "AppBridgeNative"

    # DOM event dispatched once the bootstrap script is installed
    ready_event: str = "AppBridgeReady"

    # Prefix of callback ids generated in the embedded context
    callback_prefix: str = "cb_"

    # Custom serializer as "package.module:Factory" (default: pydantic)
    serializer: Optional[str] = None

    # Disable type coercion when decoding input
    strict_decoding: bool = False


class WebViewJsBridge:
    """
    Native side of the WebView JS bridge.

    Handler executions and deliveries run on one ordered task queue per
    bridge, so handlers never run concurrently with each other. Settlements
    and events share that queue and the transport's single delivery
    channel, which gives best-effort FIFO ordering between them and
    nothing stronger.

    Example:
        bridge = WebViewJsBridge()
        bridge.register("add", int, lambda args: args.a + args.b, input_type=AddArgs)

        bridge.attach(DirectInjectionTransport(webview.evaluate_js))
        webview.on_page_finished(lambda url: bridge.on_navigation_finished())

        bridge.emit("tick", 1)
        ...
        bridge.dispose()
    """

    def __init__(
        self,
        serializer: Optional[SerializationAdapter] = None,
        config: Optional[BridgeConfig] = None,
        on_transport_error: Optional[TransportErrorHook] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """
        Create a bridge.

        Raises:
            SerializerMisconfigured: If no usable serializer is available
            ValueError: If a configured global name is not a JS identifier
        """
        self._config = config or BridgeConfig()
        for field_name in ("js_object_name", "native_interface_name"):
            value = getattr(self._config, field_name)
            if not is_js_identifier(value):
                raise ValueError(f"Invalid JavaScript identifier for {field_name}: {value!r}")

        if serializer is None:
            serializer = load_serializer(
                self._config.serializer, strict=self._config.strict_decoding
            )
        self._serializer = ensure_serializer(serializer)
        self._registry = HandlerRegistry(self._serializer)

        self._state = BridgeState.DETACHED
        self._transport: Optional[TransportAdapter] = None
        self._on_transport_error = on_transport_error
        self._delivery_failures = 0

        self._loop = loop
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def state(self) -> BridgeState:
        """Get the current lifecycle state."""
        return self._state

    @property
    def is_attached(self) -> bool:
        """Check if a transport is attached."""
        return self._state == BridgeState.ATTACHED and self._transport is not None

    @property
    def is_disposed(self) -> bool:
        """Check if the bridge has been disposed."""
        return self._state == BridgeState.DISPOSED

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def serializer(self) -> SerializationAdapter:
        return self._serializer

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    @property
    def transport(self) -> Optional[TransportAdapter]:
        """The attached transport, if any."""
        return self._transport

    @property
    def js_object_name(self) -> str:
        return self._config.js_object_name

    @property
    def delivery_failures(self) -> int:
        """Number of deliveries the transport could not perform."""
        return self._delivery_failures

    @property
    def bootstrap_script(self) -> str:
        """The script installing the embedded-side bridge object."""
        return bootstrap_script(
            self._config.js_object_name,
            self._config.native_interface_name,
            self._config.ready_event,
            self._config.callback_prefix,
        )

    # Handler registration

    def register(
        self,
        method: str,
        output_type: Any,
        handler: Handler,
        input_type: Any = NO_INPUT,
    ) -> None:
        """
        Register a handler for ``method`` (last registration wins).

        Args:
            method: Method name used by the embedded side
            output_type: Type descriptor of the result
            handler: Callable (or coroutine function) taking the decoded input
            input_type: Type descriptor of the input; omit for no input
        """
        self._registry.register(method, output_type, handler, input_type)

    def handler(
        self,
        method: str,
        output_type: Any,
        input_type: Any = NO_INPUT,
    ) -> Callable[[Handler], Handler]:
        """
        Decorator form of :meth:`register`.

        Example:
            @bridge.handler("greet", output_type=str, input_type=str)
            def greet(name: str) -> str:
                return f"Hello, {name}"
        """

        def decorator(func: Handler) -> Handler:
            self.register(method, output_type, func, input_type)
            return func

        return decorator

    def unregister(self, method: str) -> bool:
        """Remove the handler for ``method``."""
        return self._registry.unregister(method)

    # Inbound

    def handle_incoming(self, raw: Union[str, bytes, Mapping[str, Any]]) -> bool:
        """
        Accept a raw envelope from the embedded context.

        Never raises. Malformed envelopes with a readable callback id are
        settled with ``onError``; others are logged and dropped.

        Returns:
            True if work was scheduled
        """
        if not self._accepting():
            logger.debug("Ignoring inbound message: bridge not attached")
            return False

        try:
            if isinstance(raw, (str, bytes)):
                request = OutboundRequest.from_json(raw)
            else:
                request = OutboundRequest.from_dict(raw)
        except DecodeError as e:
            if e.callback_id is None:
                logger.warning(f"Dropping malformed envelope: {e}")
                return False
            logger.warning(f"Rejecting malformed envelope for {e.callback_id}: {e}")
            script = Settlement.failure(e.callback_id, str(e)).to_script(self.js_object_name)
            return self._submit_delivery(script)

        return self.handle_request(request)

    def handle_request(self, request: OutboundRequest) -> bool:
        """
        Accept an already-decoded request from the embedded context.

        Returns:
            True if work was scheduled
        """
        transport = self._transport
        if not self._accepting() or transport is None:
            logger.debug(f"Ignoring call to {request.method}: bridge not attached")
            return False

        logger.debug(f"Received call to {request.method} (callback: {request.callback_id})")
        return self._submit(lambda: self._process(request, transport))

    # Outbound

    def emit(self, event: str, value: Any, type_descriptor: Any = None) -> bool:
        """
        Broadcast an event to listeners in the embedded context.

        Events are not buffered: listeners registered later never see it.

        Args:
            event: Event name
            value: Event payload
            type_descriptor: Descriptor for ``value`` (default: ``type(value)``)

        Returns:
            True if delivery was scheduled

        Raises:
            EncodeError: If ``value`` cannot be encoded
        """
        transport = self._transport
        if not self._accepting() or transport is None:
            logger.debug(f"Ignoring emit of {event}: bridge not attached")
            return False

        descriptor = type(value) if type_descriptor is None else type_descriptor
        payload = self._serializer.encode(value, descriptor)
        script = EventDelivery(event, payload).to_script(self.js_object_name)
        return self._submit(lambda: self._deliver(script, transport))

    def on_navigation_finished(self) -> bool:
        """
        (Re-)install the embedded-side scripts after a completed navigation.

        Transport polyfills are evaluated first, then the bootstrap script.

        Returns:
            True if installation was scheduled
        """
        transport = self._transport
        if not self._accepting() or transport is None:
            return False
        if not transport.is_available:
            logger.debug(f"Skipping script installation: {transport.name} cannot deliver")
            return False

        scripts = [*transport.navigation_scripts(), self.bootstrap_script]
        return self._submit(lambda: self._install(scripts, transport))

    # Lifecycle

    def attach(self, transport: TransportAdapter) -> None:
        """Bind a transport, replacing any currently attached one."""
        if self._state == BridgeState.DISPOSED:
            logger.warning("Ignoring attach() on a disposed bridge")
            return
        if self._transport is transport:
            return
        if self._transport is not None:
            self.detach()

        self._transport = transport
        self._state = BridgeState.ATTACHED
        if self._loop is None or self._loop.is_closed():
            self._loop = _running_loop() or self._loop
        transport.bind(self)
        logger.info(f"Bridge attached to {transport.name} transport")

        scripts = transport.attach_scripts()
        if scripts and transport.is_available:
            self._submit(lambda: self._install(scripts, transport))

    def detach(self) -> None:
        """Release the transport; later inbound messages and emits are no-ops."""
        transport = self._transport
        if transport is None:
            return

        self._transport = None
        if self._state == BridgeState.ATTACHED:
            self._state = BridgeState.DETACHED
        transport.unbind()
        logger.info(f"Bridge detached from {transport.name} transport")

    def dispose(self) -> None:
        """Detach and cancel the task queue. Idempotent; the bridge stays inert."""
        if self._state == BridgeState.DISPOSED:
            return

        self.detach()
        self._state = BridgeState.DISPOSED
        self._call_in_loop(self._cancel_queue)
        logger.debug("Bridge disposed")

    async def drain(self) -> None:
        """Wait until all queued work has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def __aenter__(self) -> "WebViewJsBridge":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    # Private methods

    def _accepting(self) -> bool:
        return self._state == BridgeState.ATTACHED and self._transport is not None

    async def _process(self, request: OutboundRequest, transport: TransportAdapter) -> None:
        """Run the handler for a request and deliver its settlement."""
        result = await self._registry.dispatch(request.method, request.data)

        if not result.is_success:
            logger.warning(f"Call to {request.method} failed: {result.error}")

        if request.callback_id is None:
            return

        settlement = Settlement.from_result(request.callback_id, result)
        await self._deliver(settlement.to_script(self.js_object_name), transport)

    async def _install(self, scripts: list[str], transport: TransportAdapter) -> None:
        for script in scripts:
            await self._deliver(script, transport)

    async def _deliver(self, script: str, transport: TransportAdapter) -> None:
        """Deliver a script unless the transport was detached meanwhile."""
        if self._transport is not transport:
            logger.debug("Discarding delivery: transport detached")
            return

        try:
            await transport.deliver_to_embedded(script)
        except TransportUnavailable as e:
            self._report_transport_error(e)

    def _report_transport_error(self, error: TransportUnavailable) -> None:
        self._delivery_failures += 1
        logger.warning(f"Delivery failed: {error}")
        if self._on_transport_error is not None:
            try:
                self._on_transport_error(error)
            except Exception:
                logger.exception("Transport error hook failed")

    def _submit_delivery(self, script: str) -> bool:
        transport = self._transport
        if transport is None:
            return False
        return self._submit(lambda: self._deliver(script, transport))

    def _submit(self, job: Job) -> bool:
        """Queue a job on the bridge's event loop (thread-safe)."""
        if not self._accepting():
            return False

        running = _running_loop()
        if self._loop is None or self._loop.is_closed():
            self._loop = running
        if self._loop is None:
            logger.error("No event loop bound to bridge; pass loop= or attach from a coroutine")
            return False

        if running is self._loop:
            self._enqueue(job)
        else:
            self._loop.call_soon_threadsafe(self._enqueue, job)
        return True

    def _enqueue(self, job: Job) -> None:
        # Runs on the bridge loop; the bridge may have been disposed since
        # the job was submitted from another thread
        if not self._accepting():
            return

        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(
                self._run_queue(self._queue),
                name=f"webview-js-bridge:{self.js_object_name}",
            )
        self._queue.put_nowait(job)

    async def _run_queue(self, queue: asyncio.Queue) -> None:
        """Single consumer of the bridge's task queue."""
        while True:
            job = await queue.get()
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Bridge task failed")
            finally:
                queue.task_done()

    def _cancel_queue(self) -> None:
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()

        queue = self._queue
        if queue is None:
            return
        while True:
            try:
                queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            queue.task_done()

    def _call_in_loop(self, func: Callable[[], None]) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        if _running_loop() is loop:
            func()
        else:
            loop.call_soon_threadsafe(func)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
