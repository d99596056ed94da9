"""Tests for the per-session event broadcaster."""

from reservation.events import (
    HISTORY_LIMIT,
    QUEUE_SIZE,
    EventBroadcaster,
    get_broadcaster,
    remove_broadcaster,
)


class TestEventBroadcaster:
    async def test_emit_reaches_subscriber(self):
        b = EventBroadcaster("s1")
        q = b.subscribe()

        event = b.emit("transition", 2, {"from": 1, "to": 2})

        assert q.get_nowait() == event
        assert event["session_id"] == "s1"
        assert event["step"] == 2

    async def test_history_kept_without_subscribers(self):
        b = EventBroadcaster("s1")
        b.emit("hours", 2, {"hours": "2.5"})
        assert [e["type"] for e in b.history] == ["hours"]

    async def test_history_bounded(self):
        b = EventBroadcaster("s1")
        for i in range(HISTORY_LIMIT + 10):
            b.emit("hours", 2, {"i": i})
        assert len(b.history) == HISTORY_LIMIT
        assert b.history[0]["data"] == {"i": 10}

    async def test_slow_subscriber_drops_oldest(self):
        b = EventBroadcaster("s1")
        q = b.subscribe()
        for i in range(QUEUE_SIZE + 1):
            b.emit("hours", 2, {"i": i})
        assert q.qsize() == QUEUE_SIZE
        assert q.get_nowait()["data"] == {"i": 1}

    async def test_unsubscribe(self):
        b = EventBroadcaster("s1")
        q = b.subscribe()
        b.unsubscribe(q)
        b.emit("hours", 2, {})
        assert q.empty()
        assert b.subscriber_count == 0


class TestRegistry:
    def test_get_or_create(self):
        b = get_broadcaster("registry-test")
        assert get_broadcaster("registry-test") is b
        remove_broadcaster("registry-test")
        assert get_broadcaster("registry-test") is not b
        remove_broadcaster("registry-test")
