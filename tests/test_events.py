"""
Tests for autoconfig/events.py — the Qt-signal backed event bus.
"""

from __future__ import annotations

from autoconfig.events import CHAT_MESSAGE, PREFERENCES_UPDATED


class TestEventBus:
    def test_publish_reaches_subscriber(self, bus):
        received = []
        bus.subscribe(CHAT_MESSAGE, received.append)
        bus.publish(CHAT_MESSAGE, {"role": "assistant", "content": "hi"})
        assert received == [{"role": "assistant", "content": "hi"}]

    def test_missing_payload_is_empty_dict(self, bus):
        received = []
        bus.subscribe(PREFERENCES_UPDATED, received.append)
        bus.publish(PREFERENCES_UPDATED)
        assert received == [{}]

    def test_channels_are_isolated(self, bus):
        received = []
        bus.subscribe(CHAT_MESSAGE, received.append)
        bus.publish(PREFERENCES_UPDATED, {"stats": {}})
        assert received == []

    def test_multiple_subscribers(self, bus):
        first, second = [], []
        bus.subscribe(CHAT_MESSAGE, first.append)
        bus.subscribe(CHAT_MESSAGE, second.append)
        bus.publish(CHAT_MESSAGE, {"content": "x"})
        assert len(first) == len(second) == 1

    def test_unsubscribe(self, bus):
        received = []

        def handler(data):
            received.append(data)

        bus.subscribe(CHAT_MESSAGE, handler)
        bus.unsubscribe(CHAT_MESSAGE, handler)
        bus.publish(CHAT_MESSAGE, {"content": "x"})
        assert received == []

    def test_unsubscribe_unknown_handler(self, bus):
        def connected(data):
            pass

        def stranger(data):
            pass

        bus.unsubscribe("never_used", stranger)
        bus.subscribe(CHAT_MESSAGE, connected)
        bus.unsubscribe(CHAT_MESSAGE, stranger)

    def test_channels_listed(self, bus):
        bus.subscribe(PREFERENCES_UPDATED, lambda data: None)
        bus.publish(CHAT_MESSAGE)
        assert bus.channels() == [CHAT_MESSAGE, PREFERENCES_UPDATED]

    def test_failing_handler_does_not_stop_others(self, bus, caplog):
        received = []

        def broken(data):
            raise RuntimeError("boom")

        bus.subscribe(CHAT_MESSAGE, broken)
        bus.subscribe(CHAT_MESSAGE, received.append)
        bus.publish(CHAT_MESSAGE, {"content": "x"})
        assert received == [{"content": "x"}]
        assert "failed on chat_message" in caplog.text

    def test_subscriber_count(self, bus):
        def handler(data):
            pass

        bus.subscribe(CHAT_MESSAGE, handler)
        bus.subscribe(CHAT_MESSAGE, handler)
        assert bus.subscribers(CHAT_MESSAGE) == 2
        bus.unsubscribe(CHAT_MESSAGE, handler)
        assert bus.subscribers(CHAT_MESSAGE) == 1
        assert bus.subscribers(PREFERENCES_UPDATED) == 0
