"""
EventBus - Unit Tests

Covers subscription management, isolated fan-out on emit, and the
single-responder request channel.
"""
import asyncio
import pytest
from unittest.mock import MagicMock

from agentlet.core.errors import NoResponderError
from agentlet.core.events import EventBus


@pytest.fixture
def event_bus():
    return EventBus(MagicMock(), None)


class TestEventBusLifecycle:

    @pytest.mark.asyncio
    async def test_initialize_and_shutdown(self, event_bus):
        event_bus.on("test.event", lambda data: None)

        await event_bus.initialize()
        assert event_bus.is_ready is True

        await event_bus.shutdown()
        assert event_bus.is_ready is False
        assert event_bus.get_events() == []


class TestEventBusSubscription:

    def test_duplicate_handler_added_once(self, event_bus):
        def handler(data):
            pass

        event_bus.on("test.event", handler)
        event_bus.on("test.event", handler)

        assert event_bus.get_listener_count("test.event") == 1

    def test_duplicate_handler_fires_once_and_single_off_removes_it(self, event_bus):
        handler = MagicMock()
        event_bus.on("test.event", handler)
        event_bus.on("test.event", handler)

        event_bus.emit("test.event", {"n": 1})
        event_bus.off("test.event", handler)
        event_bus.emit("test.event", {"n": 2})

        handler.assert_called_once_with({"n": 1})

    def test_off_removes_handler(self, event_bus):
        handler = MagicMock()
        event_bus.on("test.event", handler)
        event_bus.off("test.event", handler)

        event_bus.emit("test.event", {})

        handler.assert_not_called()

    def test_off_unknown_event_is_ignored(self, event_bus):
        event_bus.off("missing", lambda data: None)
        assert event_bus.get_listener_count("missing") == 0

    def test_clear_event(self, event_bus):
        event_bus.on("a", lambda data: None)
        event_bus.on("b", lambda data: None)

        event_bus.clear_event("a")

        assert event_bus.get_events() == ["b"]


class TestEventBusEmit:

    def test_emit_reaches_all_subscribers_in_order(self, event_bus):
        calls = []
        event_bus.on("test.event", lambda data: calls.append(("first", data)))
        event_bus.on("test.event", lambda data: calls.append(("second", data)))

        event_bus.emit("test.event", {"value": 1})

        assert calls == [("first", {"value": 1}), ("second", {"value": 1})]

    def test_failing_subscriber_is_isolated(self, event_bus, caplog):
        def failing(data):
            raise ValueError("handler failed")

        after = MagicMock()
        event_bus.on("test.event", failing)
        event_bus.on("test.event", after)

        event_bus.emit("test.event", "payload")

        after.assert_called_once_with("payload")
        assert "handler failed" in caplog.text

    def test_emit_without_subscribers(self, event_bus):
        event_bus.emit("nobody.listens", {})

    @pytest.mark.asyncio
    async def test_async_subscriber_is_scheduled(self, event_bus):
        received = []

        async def handler(data):
            received.append(data)

        event_bus.on("test.event", handler)
        event_bus.emit("test.event", 42)
        await asyncio.sleep(0)

        assert received == [42]


class TestEventBusRequest:

    @pytest.mark.asyncio
    async def test_request_without_subscribers_raises(self, event_bus):
        with pytest.raises(NoResponderError):
            await event_bus.request("permission:request", {})

    @pytest.mark.asyncio
    async def test_request_only_asks_first_subscriber(self, event_bus):
        second = MagicMock(return_value="second")
        event_bus.on("question", lambda data: "first")
        event_bus.on("question", second)

        answer = await event_bus.request("question", {"q": 1})

        assert answer == "first"
        second.assert_not_called()

    @pytest.mark.asyncio
    async def test_request_awaits_async_responder(self, event_bus):
        async def responder(data):
            await asyncio.sleep(0)
            return data["value"] * 2

        event_bus.on("double", responder)

        assert await event_bus.request("double", {"value": 21}) == 42
