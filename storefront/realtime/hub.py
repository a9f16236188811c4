from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Iterable
from uuid import uuid4

logger = logging.getLogger(__name__)

RealtimeCallback = Callable[[str, dict[str, Any]], None]


@dataclass
class Subscription:
    channel: str
    events: frozenset[str] | None
    callback: RealtimeCallback
    match: dict[str, Any] = field(default_factory=dict)
    subscription_id: str = field(default_factory=lambda: uuid4().hex)

    def accepts(self, event: str, payload: dict[str, Any]) -> bool:
        if self.events is not None and event not in self.events:
            return False
        return all(payload.get(key) == value for key, value in self.match.items())


class RealtimeHub:
    """In-process broadcast hub with named channels.

    Delivery is best-effort and at-most-once: nothing is queued for
    subscribers that join later, a degraded channel drops broadcasts, and a
    failing callback is logged without affecting the others. Consumers are
    expected to poll for anything they may have missed.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: dict[str, Subscription] = {}
        self._failed: set[str] = set()

    def subscribe(
        self,
        channel: str,
        events: Iterable[str] | None,
        callback: RealtimeCallback,
        match: dict[str, Any] | None = None,
    ) -> Subscription:
        subscription = Subscription(
            channel=channel,
            events=frozenset(events) if events is not None else None,
            callback=callback,
            match=dict(match or {}),
        )
        with self._lock:
            self._subscriptions[subscription.subscription_id] = subscription
        logger.debug("subscribed %s to %s events=%s", subscription.subscription_id, channel, events)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.pop(subscription.subscription_id, None)

    def broadcast(self, channel: str, event: str, payload: dict[str, Any] | None = None) -> int:
        body = dict(payload or {})
        with self._lock:
            if channel in self._failed:
                logger.warning("realtime channel %s degraded, dropped %s", channel, event)
                return 0
            targets = [
                sub for sub in self._subscriptions.values() if sub.channel == channel and sub.accepts(event, body)
            ]

        delivered = 0
        for sub in targets:
            try:
                sub.callback(event, dict(body))
                delivered += 1
            except Exception:
                logger.exception("realtime subscriber %s failed on %s", sub.subscription_id, event)
        logger.debug("broadcast %s on %s delivered=%s", event, channel, delivered)
        return delivered

    def mark_failed(self, channel: str) -> None:
        with self._lock:
            self._failed.add(channel)
        logger.warning("realtime channel %s marked degraded", channel)

    def mark_healthy(self, channel: str) -> None:
        with self._lock:
            self._failed.discard(channel)

    def is_channel_failed(self, channel: str) -> bool:
        with self._lock:
            return channel in self._failed

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            subscriptions = list(self._subscriptions.values())
            failed = set(self._failed)
        channels = {sub.channel for sub in subscriptions} | failed
        return {
            name: {
                "subscribers": sum(1 for sub in subscriptions if sub.channel == name),
                "state": "degraded" if name in failed else "ok",
            }
            for name in sorted(channels)
        }

    def reset(self) -> None:
        with self._lock:
            self._subscriptions.clear()
            self._failed.clear()


@lru_cache(maxsize=1)
def get_realtime_hub() -> RealtimeHub:
    return RealtimeHub()
