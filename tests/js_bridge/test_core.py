"""Tests for the native bridge core.

Most tests drive the bridge end to end through an in-process page, the
same way a WebView host would: calls made by the page's bridge object
travel through the transport, handlers run on the bridge's task queue,
and settlement scripts are evaluated back into the page.
"""

import asyncio
import json
from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel

from webview_bridge.js_bridge.core import BridgeConfig, BridgeState, WebViewJsBridge
from webview_bridge.js_bridge.correlator import EmbeddedPage
from webview_bridge.js_bridge.errors import (
    BridgeError,
    EncodeError,
    SerializerMisconfigured,
    TransportUnavailable,
)
from webview_bridge.js_bridge.serialization import PydanticSerializationAdapter
from webview_bridge.js_bridge.transports import (
    DirectInjectionTransport,
    MessageChannelTransport,
)


class AddArgs(BaseModel):
    a: int
    b: int


@dataclass
class Tick:
    n: int


async def attached(kind: str = "direct", **bridge_kwargs):
    """Create a bridge attached to a freshly bootstrapped page."""
    page = EmbeddedPage.with_transport(kind)
    bridge = WebViewJsBridge(**bridge_kwargs)
    bridge.attach(page.transport)
    bridge.on_navigation_finished()
    await bridge.drain()
    return bridge, page


async def settle(bridge, future, timeout: float = 1.0):
    """Let the bridge work through its queue, then await a call's result."""
    await bridge.drain()
    return await asyncio.wait_for(future, timeout)


def settlement_scripts(page):
    return [s for s in page.evaluated if ".onSuccess(" in s or ".onError(" in s]


class TestBridgeConstruction:
    """Tests for bridge construction."""

    def test_defaults(self):
        bridge = WebViewJsBridge()

        assert bridge.state == BridgeState.DETACHED
        assert bridge.transport is None
        assert isinstance(bridge.serializer, PydanticSerializationAdapter)
        assert bridge.js_object_name == "AppBridge"

    def test_custom_serializer(self):
        serializer = MagicMock()
        bridge = WebViewJsBridge(serializer=serializer)

        assert bridge.serializer is serializer

    def test_unusable_serializer_rejected(self):
        with pytest.raises(SerializerMisconfigured):
            WebViewJsBridge(serializer=object())

    def test_misconfigured_serializer_reference(self):
        with pytest.raises(SerializerMisconfigured):
            WebViewJsBridge(config=BridgeConfig(serializer="missing_module_xyz:Factory"))

    def test_strict_decoding_config(self):
        bridge = WebViewJsBridge(config=BridgeConfig(strict_decoding=True))
        assert bridge.serializer.strict is True

    def test_invalid_js_object_name(self):
        with pytest.raises(ValueError):
            WebViewJsBridge(config=BridgeConfig(js_object_name="app-bridge"))

    def test_bootstrap_script_uses_config(self):
        bridge = WebViewJsBridge(config=BridgeConfig(js_object_name="Host", native_interface_name="HostNative"))

        assert "window.Host = {" in bridge.bootstrap_script
        assert "window.HostNative" in bridge.bootstrap_script


class TestHandlerRegistration:
    """Tests for the bridge's registration API."""

    def test_register_and_unregister(self):
        bridge = WebViewJsBridge()
        bridge.register("ping", str, lambda: "pong")

        assert "ping" in bridge.registry
        assert bridge.unregister("ping") is True
        assert "ping" not in bridge.registry

    def test_handler_decorator(self):
        bridge = WebViewJsBridge()

        @bridge.handler("greet", output_type=str, input_type=str)
        def greet(name: str) -> str:
            return f"Hello, {name}"

        assert bridge.registry.get("greet").handler is greet
        assert greet("Ada") == "Hello, Ada"


class TestCallRoundTrip:
    """End-to-end tests for calls from the embedded context."""

    @pytest.mark.asyncio
    async def test_call_resolves_with_result(self):
        """Test that a registered handler's result settles the call."""
        bridge, page = await attached()
        bridge.register("add", int, lambda args: args.a + args.b, AddArgs)

        future = page.bridge.call("add", {"a": 1, "b": 2})
        callback_id = page.bridge.pending_ids[0]

        assert await settle(bridge, future) == 3
        assert settlement_scripts(page) == [f'window.AppBridge.onSuccess("{callback_id}", 3);']
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_wire_envelope_settles_with_result(self):
        evaluate = MagicMock()
        bridge = WebViewJsBridge()
        bridge.register("add", int, lambda args: args.a + args.b, AddArgs)
        bridge.attach(DirectInjectionTransport(evaluate))

        bridge.handle_incoming('{"method":"add","data":"{\\"a\\":1,\\"b\\":2}","callbackId":"cb_1"}')
        await bridge.drain()

        evaluate.assert_called_once_with('window.AppBridge.onSuccess("cb_1", 3);')
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_zero_argument_handler_skips_decoding(self):
        evaluate = MagicMock()
        serializer = PydanticSerializationAdapter()
        serializer.decode = MagicMock(side_effect=AssertionError("decode called"))
        bridge = WebViewJsBridge(serializer=serializer)
        bridge.register("ping", Tick, lambda: Tick(7))
        bridge.attach(DirectInjectionTransport(evaluate))

        bridge.handle_incoming({"method": "ping", "data": None, "callbackId": "cb_3"})
        await bridge.drain()

        evaluate.assert_called_once_with('window.AppBridge.onSuccess("cb_3", {"n":7});')
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_unknown_method_rejects_once(self):
        bridge, page = await attached()

        future = page.bridge.call("ghost")

        with pytest.raises(BridgeError) as exc_info:
            await settle(bridge, future)
        assert str(exc_info.value) == "No handler found for method: ghost"
        assert len(settlement_scripts(page)) == 1
        assert ".onError(" in settlement_scripts(page)[0]
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_handler_failure_without_message(self):
        bridge, page = await attached()

        def explode():
            raise ValueError()

        bridge.register("explode", int, explode)

        with pytest.raises(BridgeError) as exc_info:
            await settle(bridge, page.bridge.call("explode"))
        assert str(exc_info.value) == "Unknown error"
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_handler_failure_message(self):
        bridge, page = await attached()

        def explode(args):
            raise RuntimeError("division by zero")

        bridge.register("divide", float, explode, AddArgs)

        with pytest.raises(BridgeError) as exc_info:
            await settle(bridge, page.bridge.call("divide", {"a": 1, "b": 0}))
        assert str(exc_info.value) == "division by zero"
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_invalid_input_rejects(self):
        bridge, page = await attached()
        handler = MagicMock(return_value=0)
        bridge.register("add", int, handler, AddArgs)

        with pytest.raises(BridgeError) as exc_info:
            await settle(bridge, page.bridge.call("add", {"a": 1}))

        assert str(exc_info.value).startswith("Failed to decode AddArgs")
        handler.assert_not_called()
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_unencodable_result_rejects(self):
        bridge, page = await attached()
        bridge.register("bad", int, lambda: "not a number")

        with pytest.raises(BridgeError) as exc_info:
            await settle(bridge, page.bridge.call("bad"))

        assert str(exc_info.value).startswith("Failed to encode int")
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_async_handler(self):
        bridge, page = await attached()

        async def fetch_user(user_id: int) -> dict:
            await asyncio.sleep(0)
            return {"id": user_id, "name": "Ada"}

        bridge.register("user", dict, fetch_user, int)

        assert await settle(bridge, page.bridge.call("user", 7)) == {"id": 7, "name": "Ada"}
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_fire_and_forget_gets_no_settlement(self):
        bridge, page = await attached()
        handler = MagicMock(return_value=None)
        bridge.register("log", type(None), handler, str)

        page.bridge.notify("log", "hello")
        await bridge.drain()

        handler.assert_called_once_with("hello")
        assert settlement_scripts(page) == []
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_handlers_run_one_at_a_time(self):
        """Test that handlers on one bridge never overlap."""
        bridge, page = await attached()
        timeline = []

        async def work(name: str) -> str:
            timeline.append(f"start {name}")
            await asyncio.sleep(0.01)
            timeline.append(f"end {name}")
            return name

        bridge.register("work", str, work, str)

        first = page.bridge.call("work", "a")
        second = page.bridge.call("work", "b")

        assert await settle(bridge, first) == "a"
        assert await settle(bridge, second) == "b"
        assert timeline == ["start a", "end a", "start b", "end b"]
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_reregistration_replaces_handler(self):
        bridge, page = await attached()
        bridge.register("version", int, lambda: 1)
        bridge.register("version", int, lambda: 2)

        assert await settle(bridge, page.bridge.call("version")) == 2
        bridge.dispose()


class TestMalformedEnvelopes:
    """Tests for envelopes that cannot be parsed."""

    @pytest.mark.asyncio
    async def test_malformed_with_callback_id_is_rejected(self):
        bridge, page = await attached()

        assert bridge.handle_incoming('{"callbackId": "cb_x", "data": "1"}') is True
        await bridge.drain()

        assert settlement_scripts(page) == [
            'window.AppBridge.onError("cb_x", "Failed to decode OutboundRequest: missing method");'
        ]
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_unparseable_envelope_is_dropped(self):
        bridge, page = await attached()
        before = list(page.evaluated)

        assert bridge.handle_incoming("{not json") is False
        await bridge.drain()

        assert page.evaluated == before
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_invalid_utf8_envelope_is_dropped(self):
        bridge, page = await attached()
        before = list(page.evaluated)

        assert bridge.handle_incoming(b'{"method":"x","callbackId":"cb_1","data":"\xff"}') is False
        await bridge.drain()

        assert page.evaluated == before
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_bytes_envelope_accepted(self):
        bridge, page = await attached()
        bridge.register("ping", str, lambda: "pong")

        assert bridge.handle_incoming(b'{"method":"ping","callbackId":"cb_b"}') is True
        await bridge.drain()

        assert settlement_scripts(page) == ['window.AppBridge.onSuccess("cb_b", "pong");']
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_object_envelope_accepted(self):
        bridge, page = await attached()
        bridge.register("add", int, lambda args: args.a + args.b, AddArgs)

        bridge.handle_incoming({"method": "add", "data": {"a": 2, "b": 3}, "callbackId": "cb_7"})
        await bridge.drain()

        assert settlement_scripts(page) == ['window.AppBridge.onSuccess("cb_7", 5);']
        bridge.dispose()


class TestEvents:
    """Tests for events emitted to the embedded context."""

    @pytest.mark.asyncio
    async def test_emit_reaches_listener(self):
        bridge, page = await attached()
        listener = MagicMock()
        page.bridge.on("tick", listener)

        assert bridge.emit("tick", Tick(1)) is True
        await bridge.drain()

        listener.assert_called_once_with({"n": 1})
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_emit_with_descriptor(self):
        bridge, page = await attached()
        listener = MagicMock()
        page.bridge.on("ticks", listener)

        bridge.emit("ticks", [Tick(1), Tick(2)], list[Tick])
        await bridge.drain()

        listener.assert_called_once_with([{"n": 1}, {"n": 2}])
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_emit_without_listeners_is_lost(self):
        bridge, page = await attached()
        listener = MagicMock()

        bridge.emit("tick", 1)
        await bridge.drain()
        page.bridge.on("tick", listener)

        listener.assert_not_called()
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_emit_unencodable_raises(self):
        bridge, page = await attached()

        with pytest.raises(EncodeError):
            bridge.emit("tick", "not a number", int)
        bridge.dispose()

    def test_emit_when_detached_is_noop(self):
        bridge = WebViewJsBridge()
        assert bridge.emit("tick", 1) is False

    @pytest.mark.asyncio
    async def test_emits_delivered_in_order(self):
        bridge, page = await attached()
        received = []
        page.bridge.on("tick", received.append)

        for n in range(5):
            bridge.emit("tick", n)
        await bridge.drain()

        assert received == [0, 1, 2, 3, 4]
        bridge.dispose()


class TestLifecycle:
    """Tests for attach, detach and dispose."""

    @pytest.mark.asyncio
    async def test_attach_and_detach(self):
        page = EmbeddedPage.with_transport("direct")
        bridge = WebViewJsBridge()

        bridge.attach(page.transport)
        assert bridge.state == BridgeState.ATTACHED
        assert bridge.is_attached
        assert page.transport.is_bound

        bridge.detach()
        assert bridge.state == BridgeState.DETACHED
        assert not page.transport.is_bound
        assert bridge.handle_incoming('{"method": "ping", "callbackId": "cb_1"}') is False

    @pytest.mark.asyncio
    async def test_attach_replaces_transport(self):
        first = DirectInjectionTransport(MagicMock())
        second = DirectInjectionTransport(MagicMock())
        bridge = WebViewJsBridge()

        bridge.attach(first)
        bridge.attach(second)

        assert bridge.transport is second
        assert not first.is_bound
        assert second.is_bound

    @pytest.mark.asyncio
    async def test_detach_discards_in_flight_settlement(self):
        bridge, page = await attached()
        bridge.register("ping", str, lambda: "pong")
        page.bridge.call("ping")
        before = len(page.evaluated)

        bridge.detach()
        await bridge.drain()

        assert len(page.evaluated) == before
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_dispose_mid_flight_delivers_nothing(self):
        """Test that nothing is delivered once dispose has returned."""
        bridge, page = await attached()
        listener = MagicMock()
        page.bridge.on("tick", listener)
        before = len(page.evaluated)

        bridge.emit("tick", 1)
        bridge.emit("tick", 2)
        bridge.dispose()
        await bridge.drain()
        await asyncio.sleep(0.01)

        listener.assert_not_called()
        assert len(page.evaluated) == before
        assert bridge.state == BridgeState.DISPOSED

    @pytest.mark.asyncio
    async def test_everything_is_noop_after_dispose(self):
        bridge, page = await attached()
        bridge.dispose()

        assert bridge.handle_incoming('{"method": "ping", "callbackId": "cb_1"}') is False
        assert bridge.emit("tick", 1) is False
        assert bridge.on_navigation_finished() is False

    @pytest.mark.asyncio
    async def test_dispose_is_idempotent(self):
        bridge, page = await attached()

        bridge.dispose()
        bridge.dispose()

        assert bridge.is_disposed

    @pytest.mark.asyncio
    async def test_attach_after_dispose_is_ignored(self):
        bridge = WebViewJsBridge()
        bridge.dispose()
        transport = DirectInjectionTransport(MagicMock())

        bridge.attach(transport)

        assert bridge.state == BridgeState.DISPOSED
        assert not transport.is_bound

    @pytest.mark.asyncio
    async def test_async_context_manager_disposes(self):
        page = EmbeddedPage.with_transport("direct")

        async with WebViewJsBridge() as bridge:
            bridge.attach(page.transport)
            assert bridge.is_attached

        assert bridge.is_disposed

    @pytest.mark.asyncio
    async def test_call_from_foreign_thread(self):
        """Test that the host may deliver messages from its own thread."""
        bridge, page = await attached()
        bridge.register("ping", str, lambda: "pong")
        envelope = json.dumps({"method": "ping", "callbackId": "cb_t"})

        await asyncio.to_thread(page.transport.send_from_embedded, envelope)
        await asyncio.sleep(0)
        await bridge.drain()

        assert 'window.AppBridge.onSuccess("cb_t", "pong");' in page.evaluated
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_attach_binds_loop_for_thread_callers(self):
        """Test that a host attaching from a coroutine may drive the bridge from other threads."""
        page = EmbeddedPage.with_transport("direct")
        bridge = WebViewJsBridge()
        bridge.register("ping", str, lambda: "pong")
        bridge.attach(page.transport)
        envelope = json.dumps({"method": "ping", "callbackId": "cb_t"})

        assert await asyncio.to_thread(bridge.on_navigation_finished) is True
        assert await asyncio.to_thread(bridge.handle_incoming, envelope) is True
        await asyncio.sleep(0)
        await bridge.drain()

        assert page.bridge is not None
        assert 'window.AppBridge.onSuccess("cb_t", "pong");' in page.evaluated
        bridge.dispose()


class TestNavigation:
    """Tests for script installation across navigations."""

    @pytest.mark.asyncio
    async def test_router_scripts_order(self):
        page = EmbeddedPage.with_transport("router")
        bridge = WebViewJsBridge()

        bridge.attach(page.transport)
        bridge.on_navigation_finished()
        await bridge.drain()

        polyfill = page.transport.polyfill
        assert page.evaluated == [polyfill, polyfill, bridge.bootstrap_script]
        assert page.bridge is not None
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_router_polyfill_reinstalled_after_navigation(self):
        bridge, page = await attached("router")
        bridge.register("ping", str, lambda: "pong")
        assert await settle(bridge, page.bridge.call("ping")) == "pong"

        page.navigate()
        assert page.bridge is None

        bridge.on_navigation_finished()
        await bridge.drain()

        assert page.has_native_interface
        assert await settle(bridge, page.bridge.call("ping")) == "pong"
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_call_before_polyfill_rejects(self):
        page = EmbeddedPage.with_transport("router")
        bridge = WebViewJsBridge()
        bridge.attach(page.transport)
        await bridge.drain()

        page.navigate()
        page.evaluate(bridge.bootstrap_script)

        with pytest.raises(BridgeError) as exc_info:
            await page.bridge.call("ping")
        assert str(exc_info.value) == "AppBridgeNative not found"
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_navigation_skipped_when_transport_cannot_deliver(self):
        page = EmbeddedPage()
        transport = MessageChannelTransport(page.evaluate, same_origin=False)
        page.connect(transport)
        bridge = WebViewJsBridge()
        bridge.attach(transport)

        assert bridge.on_navigation_finished() is False
        await bridge.drain()

        assert page.evaluated == []
        bridge.dispose()


class TestTransportFailures:
    """Tests for deliveries the transport cannot perform."""

    @pytest.mark.asyncio
    async def test_cross_origin_settlement_reports_error(self):
        page = EmbeddedPage()
        transport = MessageChannelTransport(page.evaluate, same_origin=False)
        page.connect(transport)
        errors = []
        bridge = WebViewJsBridge(on_transport_error=errors.append)
        bridge.register("ping", str, lambda: "pong")
        bridge.attach(transport)

        transport.on_message({"type": "jsBridgeCall", "method": "ping", "callbackId": "cb_1"})
        await bridge.drain()

        assert len(errors) == 1
        assert isinstance(errors[0], TransportUnavailable)
        assert bridge.delivery_failures == 1
        assert page.evaluated == []
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_evaluator_failure_reported(self):
        evaluate = MagicMock(side_effect=RuntimeError("webview destroyed"))
        hook = MagicMock()
        bridge = WebViewJsBridge(on_transport_error=hook)
        bridge.attach(DirectInjectionTransport(evaluate))

        bridge.emit("tick", 1)
        await bridge.drain()

        hook.assert_called_once()
        assert "webview destroyed" in str(hook.call_args[0][0])
        bridge.dispose()

    @pytest.mark.asyncio
    async def test_failing_hook_does_not_break_queue(self):
        evaluate = MagicMock(side_effect=RuntimeError("gone"))
        hook = MagicMock(side_effect=RuntimeError("hook bug"))
        bridge = WebViewJsBridge(on_transport_error=hook)
        bridge.attach(DirectInjectionTransport(evaluate))

        bridge.emit("tick", 1)
        bridge.emit("tick", 2)
        await bridge.drain()

        assert hook.call_count == 2
        assert bridge.delivery_failures == 2
        bridge.dispose()
