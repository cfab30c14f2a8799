"""Tests for the embedded-side correlator and in-process page."""

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from webview_bridge.js_bridge.correlator import EmbeddedCorrelator, EmbeddedPage
from webview_bridge.js_bridge.errors import BridgeError, CallDropped, CallTimeout, TransportUnavailable
from webview_bridge.js_bridge.protocol import EventDelivery, Settlement
from webview_bridge.js_bridge.scripts import bootstrap_script, router_polyfill
from webview_bridge.js_bridge.transports import TransportKind


class TestEmbeddedCorrelatorCalls:
    """Tests for issuing and settling calls."""

    @pytest.mark.asyncio
    async def test_call_sends_envelope(self):
        send = MagicMock()
        correlator = EmbeddedCorrelator(send)

        correlator.call("add", {"a": 1, "b": 2})

        request = send.call_args[0][0]
        assert request.method == "add"
        assert json.loads(request.data) == {"a": 1, "b": 2}
        assert request.callback_id.startswith("cb_1_")
        assert correlator.pending_count == 1

    @pytest.mark.asyncio
    async def test_call_without_data_sends_null(self):
        send = MagicMock()
        correlator = EmbeddedCorrelator(send)

        correlator.call("ping")

        assert send.call_args[0][0].data is None

    @pytest.mark.asyncio
    async def test_callback_ids_are_unique(self):
        send = MagicMock()
        correlator = EmbeddedCorrelator(send, callback_prefix="req_")

        for _ in range(5):
            correlator.call("ping")

        ids = [c[0][0].callback_id for c in send.call_args_list]
        assert len(set(ids)) == 5
        assert all(cb.startswith("req_") for cb in ids)

    @pytest.mark.asyncio
    async def test_on_success_resolves(self):
        send = MagicMock()
        correlator = EmbeddedCorrelator(send)
        future = correlator.call("add", {"a": 1, "b": 2})
        callback_id = send.call_args[0][0].callback_id

        assert correlator.on_success(callback_id, 3) is True

        assert await future == 3
        assert correlator.pending_count == 0

    @pytest.mark.asyncio
    async def test_on_error_rejects_with_message(self):
        send = MagicMock()
        correlator = EmbeddedCorrelator(send)
        future = correlator.call("ghost")
        callback_id = send.call_args[0][0].callback_id

        correlator.on_error(callback_id, "No handler found for method: ghost")

        with pytest.raises(BridgeError) as exc_info:
            await future
        assert str(exc_info.value) == "No handler found for method: ghost"

    @pytest.mark.asyncio
    async def test_settles_at_most_once(self):
        send = MagicMock()
        correlator = EmbeddedCorrelator(send)
        future = correlator.call("ping")
        callback_id = send.call_args[0][0].callback_id

        assert correlator.on_success(callback_id, "pong") is True
        assert correlator.on_error(callback_id, "late") is False
        assert await future == "pong"

    @pytest.mark.asyncio
    async def test_unknown_ids_are_ignored(self):
        correlator = EmbeddedCorrelator(MagicMock())

        assert correlator.on_success("cb_404", 1) is False
        assert correlator.on_error("cb_404", "x") is False

    @pytest.mark.asyncio
    async def test_missing_native_interface_rejects(self):
        correlator = EmbeddedCorrelator(None, native_interface_name="HostNative")

        future = correlator.call("ping")

        with pytest.raises(BridgeError) as exc_info:
            await future
        assert str(exc_info.value) == "HostNative not found"
        assert correlator.pending_count == 0

    @pytest.mark.asyncio
    async def test_send_failure_rejects(self):
        send = MagicMock(side_effect=TransportUnavailable("router", "query failed"))
        correlator = EmbeddedCorrelator(send)

        future = correlator.call("ping")

        with pytest.raises(TransportUnavailable):
            await future
        assert correlator.pending_count == 0

    @pytest.mark.asyncio
    async def test_timeout_rejects(self):
        correlator = EmbeddedCorrelator(MagicMock())

        future = correlator.call("slow", timeout=0.01)

        with pytest.raises(CallTimeout) as exc_info:
            await future
        assert str(exc_info.value) == "Call timed out: slow"
        assert correlator.pending_count == 0

    @pytest.mark.asyncio
    async def test_default_timeout(self):
        correlator = EmbeddedCorrelator(MagicMock(), default_timeout=0.01)

        with pytest.raises(CallTimeout):
            await correlator.call("slow")

    @pytest.mark.asyncio
    async def test_no_timeout_by_default(self):
        correlator = EmbeddedCorrelator(MagicMock())
        future = correlator.call("slow")

        await asyncio.sleep(0.02)

        assert not future.done()
        assert correlator.pending_count == 1

    @pytest.mark.asyncio
    async def test_settlement_cancels_timeout(self):
        send = MagicMock()
        correlator = EmbeddedCorrelator(send)
        future = correlator.call("fast", timeout=0.01)
        correlator.on_success(send.call_args[0][0].callback_id, "done")

        await asyncio.sleep(0.02)

        assert await future == "done"

    @pytest.mark.asyncio
    async def test_dispose_rejects_pending(self):
        correlator = EmbeddedCorrelator(MagicMock())
        first = correlator.call("a")
        second = correlator.call("b")

        correlator.dispose()

        for future in (first, second):
            with pytest.raises(CallDropped):
                await future
        assert correlator.pending_count == 0

    @pytest.mark.asyncio
    async def test_call_after_dispose_rejects(self):
        send = MagicMock()
        correlator = EmbeddedCorrelator(send)
        correlator.dispose()

        with pytest.raises(CallDropped):
            await correlator.call("a")
        send.assert_not_called()

    def test_notify_sends_without_callback(self):
        send = MagicMock()
        correlator = EmbeddedCorrelator(send)

        assert correlator.notify("log", "hello") is True

        request = send.call_args[0][0]
        assert request.callback_id is None
        assert request.data == '"hello"'
        assert correlator.pending_count == 0

    def test_notify_without_native_interface(self):
        assert EmbeddedCorrelator(None).notify("log") is False


class TestEmbeddedCorrelatorEvents:
    """Tests for event listeners."""

    def setup_method(self):
        self.correlator = EmbeddedCorrelator(MagicMock())

    def test_trigger_in_registration_order(self):
        received = []
        self.correlator.on("tick", lambda n: received.append(("first", n)))
        self.correlator.on("tick", lambda n: received.append(("second", n)))

        assert self.correlator.trigger("tick", 1) == 2
        assert received == [("first", 1), ("second", 1)]

    def test_same_listener_added_once(self):
        listener = MagicMock()
        self.correlator.on("tick", listener)
        self.correlator.on("tick", listener)

        self.correlator.trigger("tick", 1)

        listener.assert_called_once_with(1)
        assert self.correlator.listener_count("tick") == 1

    def test_off_removes_listener(self):
        listener = MagicMock()
        self.correlator.on("tick", listener)
        self.correlator.off("tick", listener)
        self.correlator.off("tick", listener)

        self.correlator.trigger("tick", 1)

        listener.assert_not_called()

    def test_event_without_listeners_is_dropped(self):
        """Test that events are not buffered for late listeners."""
        listener = MagicMock()

        assert self.correlator.trigger("tick", 1) == 0
        self.correlator.on("tick", listener)

        listener.assert_not_called()

    def test_failing_listener_does_not_stop_others(self):
        second = MagicMock()
        self.correlator.on("tick", MagicMock(side_effect=RuntimeError("listener bug")))
        self.correlator.on("tick", second)

        self.correlator.trigger("tick", 1)

        second.assert_called_once_with(1)

    def test_listener_removing_itself_during_trigger(self):
        calls = []

        def once(value):
            calls.append(value)
            self.correlator.off("tick", once)

        other = MagicMock()
        self.correlator.on("tick", once)
        self.correlator.on("tick", other)

        self.correlator.trigger("tick", 1)
        self.correlator.trigger("tick", 2)

        assert calls == [1]
        assert other.call_count == 2


class TestEmbeddedPage:
    """Tests for the in-process page."""

    def test_bootstrap_installs_bridge_object(self):
        page = EmbeddedPage.with_transport("direct")

        assert page.bridge is None
        page.evaluate(bootstrap_script())

        assert page.bridge is not None
        assert page.ready_events == 1

    def test_bootstrap_is_idempotent(self):
        page = EmbeddedPage.with_transport("direct")
        page.evaluate(bootstrap_script())
        bridge = page.bridge

        page.evaluate(bootstrap_script())

        assert page.bridge is bridge
        assert page.ready_events == 1

    def test_bootstrap_for_other_object_ignored(self):
        page = EmbeddedPage.with_transport("direct")

        page.evaluate(bootstrap_script("OtherBridge"))

        assert page.bridge is None

    def test_direct_transport_always_has_native_interface(self):
        page = EmbeddedPage.with_transport("direct")
        assert page.has_native_interface

    def test_router_needs_polyfill(self):
        page = EmbeddedPage.with_transport("router")

        assert not page.has_native_interface
        page.evaluate(router_polyfill())
        assert page.has_native_interface

    def test_unsupported_has_no_native_interface(self):
        page = EmbeddedPage.with_transport(TransportKind.UNSUPPORTED)

        page.evaluate(bootstrap_script())

        assert not page.has_native_interface

    @pytest.mark.asyncio
    async def test_unsupported_calls_settle_immediately(self):
        page = EmbeddedPage.with_transport(TransportKind.UNSUPPORTED)
        page.evaluate(bootstrap_script())

        future = page.bridge.call("ping")

        assert future.done()
        with pytest.raises(TransportUnavailable):
            await future
        assert page.bridge.notify("log") is False

    @pytest.mark.asyncio
    async def test_settlement_scripts_reach_correlator(self):
        send = MagicMock()
        page = EmbeddedPage()
        page.evaluate(bootstrap_script())
        page.bridge.send = send
        future = page.bridge.call("add", {"a": 1, "b": 2})
        callback_id = send.call_args[0][0].callback_id

        page.evaluate(Settlement.success(callback_id, "3").to_script("AppBridge"))

        assert await future == 3

    def test_trigger_scripts_reach_listeners(self):
        page = EmbeddedPage()
        page.evaluate(bootstrap_script())
        listener = MagicMock()
        page.bridge.on("tick", listener)

        page.evaluate(EventDelivery("tick", '{"n": 1}').to_script("AppBridge"))

        listener.assert_called_once_with({"n": 1})

    def test_scripts_before_bootstrap_are_dropped(self):
        page = EmbeddedPage()

        page.evaluate(EventDelivery("tick", "1").to_script("AppBridge"))

        assert page.evaluated == ['window.AppBridge.trigger("tick", 1);']

    @pytest.mark.asyncio
    async def test_navigate_wipes_globals(self):
        page = EmbeddedPage.with_transport("router")
        page.transport.bind(MagicMock())
        page.evaluate(router_polyfill())
        page.evaluate(bootstrap_script())
        old_bridge = page.bridge
        pending = old_bridge.call("slow")

        page.navigate()

        assert page.bridge is None
        assert not page.has_native_interface
        assert page.navigations == 1
        with pytest.raises(CallDropped):
            await pending
