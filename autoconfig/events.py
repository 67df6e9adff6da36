"""
Event bus connecting the preference engine to its host pipeline.

The chat pipeline publishes ``chat_message`` events and the engine
answers with ``preferences_updated`` once its memory has changed.
Channels are plain strings carrying ``dict`` payloads; each channel is
backed by its own ``pyqtSignal`` so delivery follows Qt's connection
rules (direct, synchronous calls when publisher and subscriber share a
thread).

PyQt aborts the process when a slot raises, so every handler is
connected through a wrapper that logs the failure and lets the other
subscribers run.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from PyQt6.QtCore import QObject, pyqtSignal

logger = logging.getLogger(__name__)

# Channels used by the preference memory.
CHAT_MESSAGE = "chat_message"
PREFERENCE_COMMAND = "preference_command"
PREFERENCES_UPDATED = "preferences_updated"
CONFIG_CHANGED = "config_changed"

KNOWN_CHANNELS = (CHAT_MESSAGE, PREFERENCE_COMMAND, PREFERENCES_UPDATED, CONFIG_CHANGED)

Handler = Callable[[dict[str, Any]], None]


class _Channel(QObject):
    """One named channel; a QObject so it can own a signal."""
    fired = pyqtSignal(dict)


def _guarded(name: str, handler: Handler) -> Handler:
    def deliver(payload: dict[str, Any]) -> None:
        try:
            handler(payload)
        except Exception:
            logger.exception("Handler %r failed on %s", handler, name)
    return deliver


class EventBus(QObject):
    """
    Publish/subscribe hub keyed by channel name.

    Usage
    -----
    bus = EventBus()
    bus.subscribe(PREFERENCES_UPDATED, lambda d: print(d["stats"]))
    bus.publish(CHAT_MESSAGE, {"role": "assistant", "content": "..."})
    """

    def __init__(self, parent: QObject | None = None):
        super().__init__(parent)
        self._channels: dict[str, _Channel] = {}
        # (handler, wrapper) pairs per channel, in subscription order.
        self._subscribers: dict[str, list[tuple[Handler, Handler]]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        channel = self._channels.get(name)
        if channel is None:
            channel = self._channels[name] = _Channel(self)
            if name not in KNOWN_CHANNELS:
                logger.debug("Opened custom channel %s", name)
        wrapper = _guarded(name, handler)
        channel.fired.connect(wrapper)
        self._subscribers.setdefault(name, []).append((handler, wrapper))

    def unsubscribe(self, name: str, handler: Handler) -> None:
        """Drop the earliest subscription of *handler*; unknown handlers are ignored."""
        pairs = self._subscribers.get(name, [])
        for i, (subscribed, wrapper) in enumerate(pairs):
            if subscribed == handler:
                self._channels[name].fired.disconnect(wrapper)
                del pairs[i]
                return

    def subscribers(self, name: str) -> int:
        return len(self._subscribers.get(name, []))

    def publish(self, name: str, payload: dict[str, Any] | None = None) -> None:
        channel = self._channels.get(name)
        if channel is None:
            # Nobody listens yet; keep the name so channels() reports it.
            channel = self._channels[name] = _Channel(self)
        channel.fired.emit({} if payload is None else payload)

    def channels(self) -> list[str]:
        """Names of every channel that has been used so far."""
        return sorted(self._channels)
