from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Protocol

from storefront.client.push import RemoteChannelFeed
from storefront.client.scheduling import PeriodicTask
from storefront.core.config import get_settings
from storefront.realtime import Channels, Events, RealtimeHub, Subscription, get_realtime_hub

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


TERMINAL_OUTCOMES = {
    "paid": Outcome.SUCCESS,
    "failed": Outcome.FAILURE,
}


class OrderAPI(Protocol):
    def order_status(self, order_id: str) -> str:
        ...

    def resume_payment(self, order_id: str) -> dict[str, Any]:
        ...

    def cancel_order(self, order_id: str) -> dict[str, Any]:
        ...


ResolvedCallback = Callable[[str, Outcome, str], None]


class OrderStatusReconciler:
    """Watches one order until the payment outcome is known.

    A push subscription and a poll loop both feed ``handle_status``. The
    first terminal status (``paid`` or ``failed``) fires ``on_resolved``
    exactly once; everything after that is ignored.

    With ``push_base_url`` the push side reads the server's order channel
    over WebSocket into a private hub, for clients outside the server
    process. Without it the push side subscribes to ``hub`` directly.
    """

    def __init__(
        self,
        order_id: str,
        api: OrderAPI,
        on_resolved: ResolvedCallback,
        hub: RealtimeHub | None = None,
        poll_interval_seconds: float | None = None,
        push_base_url: str | None = None,
    ):
        self.order_id = order_id
        self.api = api
        self.on_resolved = on_resolved
        self.push_base_url = push_base_url
        self.hub = hub or (RealtimeHub() if push_base_url else get_realtime_hub())
        self.poll_interval_seconds = poll_interval_seconds or get_settings().order_poll_interval_seconds

        self._lock = threading.Lock()
        self._resolved = False
        self._outcome: Outcome | None = None
        self._last_status: str | None = None
        self._subscription: Subscription | None = None
        self._poller: PeriodicTask | None = None
        self._feed: RemoteChannelFeed | None = None

    @property
    def resolved(self) -> bool:
        with self._lock:
            return self._resolved

    @property
    def outcome(self) -> Outcome | None:
        with self._lock:
            return self._outcome

    @property
    def last_status(self) -> str | None:
        with self._lock:
            return self._last_status

    def handle_status(self, status: str | None, source: str = "poll") -> bool:
        """Feed one observed status; returns True only for the call that resolved."""
        if not status:
            return False
        with self._lock:
            if self._resolved:
                return False
            self._last_status = status
            outcome = TERMINAL_OUTCOMES.get(status)
            if outcome is None:
                return False
            self._resolved = True
            self._outcome = outcome

        logger.info("order %s resolved as %s via %s", self.order_id, outcome.value, source)
        self.stop()
        self.on_resolved(self.order_id, outcome, status)
        return True

    def _on_push(self, event: str, payload: dict[str, Any]) -> None:
        self.handle_status(payload.get("status"), source=f"push:{event}")

    def poll_once(self) -> bool:
        if self.resolved:
            return False
        return self.handle_status(self.api.order_status(self.order_id), source="poll")

    def start(self) -> None:
        if self.resolved:
            return
        self._subscription = self.hub.subscribe(
            Channels.ORDERS,
            Events.ORDER_STATUS,
            self._on_push,
            match={"order_id": self.order_id},
        )
        if self.push_base_url:
            self._feed = RemoteChannelFeed(self.push_base_url, Channels.ORDERS, self.hub, order_id=self.order_id)
            self._feed.start()
        self._poller = PeriodicTask(
            name=f"order-status-{self.order_id}",
            interval_seconds=self.poll_interval_seconds,
            func=self.poll_once,
            run_immediately=True,
        )
        self._poller.start()

    def stop(self) -> None:
        feed, self._feed = self._feed, None
        if feed is not None:
            feed.stop()
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            self.hub.unsubscribe(subscription)
        poller, self._poller = self._poller, None
        if poller is not None:
            poller.stop()

    def resume(self) -> dict[str, Any] | None:
        if self.resolved:
            return None
        return self.api.resume_payment(self.order_id)

    def cancel(self) -> dict[str, Any]:
        order = self.api.cancel_order(self.order_id)
        self.handle_status(order.get("status"), source="cancel")
        return order

    def __enter__(self) -> OrderStatusReconciler:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
