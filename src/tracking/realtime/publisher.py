"""ExternalPublisher — best-effort realtime fan-out.

Subscribers are callables ``(channel, event_name, payload)`` registered per
channel, or on ``"*"`` for every channel. A failing subscriber is logged and
skipped; nothing is retried or queued.
"""

import threading
from collections import defaultdict

import structlog

logger = structlog.get_logger(__name__)

ALL_CHANNELS = "*"


class ExternalPublisher:
    def __init__(self):
        self._subscribers: dict[str, list] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, channel: str, callback) -> None:
        with self._lock:
            if callback not in self._subscribers[channel]:
                self._subscribers[channel].append(callback)

    def unsubscribe(self, channel: str, callback) -> None:
        with self._lock:
            if callback in self._subscribers.get(channel, []):
                self._subscribers[channel].remove(callback)
            if channel in self._subscribers and not self._subscribers[channel]:
                del self._subscribers[channel]

    def subscribers(self, channel: str) -> list:
        with self._lock:
            return list(self._subscribers.get(channel, [])) + list(self._subscribers.get(ALL_CHANNELS, []))

    def publish(self, channel: str, event_name: str, payload: dict) -> int:
        """Send to every subscriber of ``channel``; returns how many accepted it."""
        delivered = 0
        for callback in self.subscribers(channel):
            try:
                callback(channel, event_name, payload)
                delivered += 1
            except Exception as exc:
                logger.warning("Realtime publish failed", channel=channel, event_name=event_name, error=str(exc))
        return delivered
