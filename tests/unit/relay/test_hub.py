"""
Unit tests for relay.hub module.

Tests:
- register()/unregister() bookkeeping
- broadcast() delivering identical payloads to every subscriber
- Closed, failing, slow and backed-up subscribers dropped without affecting others
- broadcast() returning without waiting on any send
- on_event() serialising the event once
- close() ending every writer task
"""

import asyncio
import time

import pytest

from phoenixd_dashboard.relay.hub import BroadcastHub
from tests.fixtures.fakes import FakeSubscriber, settle


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub(send_timeout=0.5)


class StalledSubscriber(FakeSubscriber):
    """Subscriber whose sends block until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()

    async def send_text(self, data: str) -> None:
        await self.release.wait()
        self.messages.append(data)


# ============================================================================
# Registry
# ============================================================================


class TestRegistry:
    """register() / unregister()."""

    def test_register(self, hub):
        sub = FakeSubscriber()
        hub.register(sub)
        assert hub.subscriber_count == 1
        assert hub.subscribers == (sub,)

    def test_register_twice_is_noop(self, hub):
        sub = FakeSubscriber()
        hub.register(sub)
        hub.register(sub)
        assert hub.subscriber_count == 1

    def test_unregister(self, hub):
        sub = FakeSubscriber()
        hub.register(sub)
        assert hub.unregister(sub) is True
        assert hub.subscriber_count == 0

    def test_unregister_unknown(self, hub):
        assert hub.unregister(FakeSubscriber()) is False

    def test_registration_order_kept(self, hub):
        subs = [FakeSubscriber() for _ in range(3)]
        for sub in subs:
            hub.register(sub)
        assert hub.subscribers == tuple(subs)

    def test_invalid_timeout(self):
        with pytest.raises(ValueError, match="send_timeout"):
            BroadcastHub(send_timeout=0)

    def test_invalid_outbox_size(self):
        with pytest.raises(ValueError, match="outbox_size"):
            BroadcastHub(outbox_size=0)

    def test_pending_unknown_subscriber(self, hub):
        assert hub.pending(FakeSubscriber()) == 0


# ============================================================================
# Broadcast
# ============================================================================


class TestBroadcast:
    """broadcast() fan-out semantics."""

    async def test_identical_payload_to_all(self, hub):
        subs = [FakeSubscriber() for _ in range(5)]
        for sub in subs:
            hub.register(sub)

        queued = await hub.broadcast('{"type":"payment_received"}')
        await settle()

        assert queued == 5
        assert all(sub.messages == ['{"type":"payment_received"}'] for sub in subs)
        assert hub.messages_sent == 5
        assert hub.events_broadcast == 1

    async def test_no_subscribers(self, hub):
        assert await hub.broadcast("x") == 0
        assert hub.events_broadcast == 1

    async def test_closed_subscriber_removed(self, hub):
        open_a, open_b = FakeSubscriber(), FakeSubscriber()
        closed = FakeSubscriber(is_open=False)
        for sub in (open_a, closed, open_b):
            hub.register(sub)

        queued = await hub.broadcast("payload")
        await settle()

        assert queued == 2
        assert open_a.messages == ["payload"]
        assert open_b.messages == ["payload"]
        assert closed.messages == []
        assert hub.subscribers == (open_a, open_b)
        assert hub.subscribers_dropped == 1

    async def test_failing_subscriber_removed(self, hub):
        good = FakeSubscriber()
        bad = FakeSubscriber(error=ConnectionResetError("gone"))
        hub.register(good)
        hub.register(bad)

        await hub.broadcast("a")
        await settle()
        assert await hub.broadcast("b") == 1
        await settle()

        assert good.messages == ["a", "b"]
        assert hub.subscriber_count == 1
        assert hub.subscribers_dropped == 1

    async def test_slow_subscriber_times_out(self):
        hub = BroadcastHub(send_timeout=0.05)
        fast = FakeSubscriber()
        slow = FakeSubscriber(delay=5.0)
        hub.register(fast)
        hub.register(slow)

        await hub.broadcast("x")
        await asyncio.sleep(0.2)

        assert fast.messages == ["x"]
        assert slow not in hub.subscribers
        assert hub.subscribers_dropped == 1

    async def test_subscriber_registered_later_sees_only_later_events(self, hub):
        early = FakeSubscriber()
        hub.register(early)
        await hub.broadcast("first")
        await settle()

        late = FakeSubscriber()
        hub.register(late)
        await hub.broadcast("second")
        await settle()

        assert early.messages == ["first", "second"]
        assert late.messages == ["second"]

    async def test_order_preserved_per_subscriber(self, hub):
        sub = FakeSubscriber()
        hub.register(sub)
        for i in range(5):
            await hub.broadcast(str(i))
        await settle()
        assert sub.messages == ["0", "1", "2", "3", "4"]


# ============================================================================
# Slow Subscribers
# ============================================================================


class TestBackpressure:
    """A stalled subscriber never holds up broadcast() or its peers."""

    async def test_broadcast_returns_without_waiting(self):
        hub = BroadcastHub(send_timeout=60.0)
        fast = FakeSubscriber()
        stalled = StalledSubscriber()
        hub.register(fast)
        hub.register(stalled)

        start = time.monotonic()
        for i in range(3):
            await hub.broadcast(str(i))
        elapsed = time.monotonic() - start
        await settle()

        assert elapsed < 0.5
        assert fast.messages == ["0", "1", "2"]
        assert stalled.messages == []
        assert hub.subscriber_count == 2

        stalled.release.set()
        await settle()
        assert stalled.messages == ["0", "1", "2"]
        await hub.close()

    async def test_full_outbox_drops_immediately(self):
        hub = BroadcastHub(send_timeout=60.0, outbox_size=2)
        fast = FakeSubscriber()
        stalled = StalledSubscriber()
        hub.register(fast)
        hub.register(stalled)

        await hub.broadcast("0")
        await settle()
        # "0" is in flight; "1" and "2" fill the outbox; "3" overflows it
        for i in range(1, 4):
            await hub.broadcast(str(i))
        await settle()

        assert stalled not in hub.subscribers
        assert hub.subscribers_dropped == 1
        assert fast.messages == ["0", "1", "2", "3"]

    async def test_pending_counts_queued_messages(self):
        hub = BroadcastHub(send_timeout=60.0)
        stalled = StalledSubscriber()
        hub.register(stalled)

        await hub.broadcast("0")
        await settle()
        await hub.broadcast("1")

        assert hub.pending(stalled) == 1
        await hub.close()


# ============================================================================
# Upstream listener entry point
# ============================================================================


class TestOnEvent:
    """on_event() as an upstream listener."""

    async def test_sends_event_json(self, hub, payment_event):
        subs = [FakeSubscriber(), FakeSubscriber()]
        for sub in subs:
            hub.register(sub)

        queued = await hub.on_event(payment_event)
        await settle()

        assert queued == 2
        assert subs[0].messages == [payment_event.to_json()]
        assert subs[0].messages[0] is subs[1].messages[0]


# ============================================================================
# Shutdown
# ============================================================================


class TestClose:
    """close() releases every subscriber."""

    async def test_close_cancels_writers(self):
        hub = BroadcastHub(send_timeout=60.0)
        stalled = StalledSubscriber()
        hub.register(stalled)
        await hub.broadcast("x")
        await settle()

        await asyncio.wait_for(hub.close(), timeout=1.0)

        assert hub.subscriber_count == 0
        assert stalled.messages == []

    async def test_close_without_subscribers(self, hub):
        await hub.close()
        assert hub.subscriber_count == 0

    async def test_unregister_stops_writer(self):
        hub = BroadcastHub(send_timeout=60.0)
        stalled = StalledSubscriber()
        hub.register(stalled)
        await hub.broadcast("x")
        await settle()

        hub.unregister(stalled)
        stalled.release.set()
        await settle()

        assert stalled.messages == []
        assert hub.messages_sent == 0
