from __future__ import annotations

import logging
import threading
from typing import Any

from storefront.client.http import StorefrontClient
from storefront.realtime import Channels, Events, RealtimeHub, Subscription, get_realtime_hub

logger = logging.getLogger(__name__)

_PRODUCT_EVENTS = (Events.STOCK_UPDATED, Events.PRODUCT_CREATED, Events.PRODUCT_DELETED)


class AppState:
    """Client-side caches for one signed-in session.

    Nothing is loaded until ``start_session``. Caches are dropped when a
    relevant realtime event arrives and reloaded on next access.
    """

    def __init__(self, client: StorefrontClient, hub: RealtimeHub | None = None):
        self.client = client
        self.hub = hub or get_realtime_hub()
        self._lock = threading.Lock()
        self._user_id: str | None = None
        self._profile: dict[str, Any] | None = None
        self._cart: dict[str, Any] | None = None
        self._products: list[dict[str, Any]] | None = None
        self._subscriptions: list[Subscription] = []

    @property
    def active(self) -> bool:
        return self._user_id is not None

    @property
    def profile(self) -> dict[str, Any] | None:
        return self._profile

    def start_session(self, user_id: str, profile: dict[str, Any] | None = None) -> None:
        self.end_session()
        self._user_id = user_id
        self._profile = dict(profile or {"id": user_id})
        self._subscriptions = [
            self.hub.subscribe(Channels.PRODUCTS, _PRODUCT_EVENTS, self._on_product_event),
            self.hub.subscribe(
                Channels.ORDERS,
                (Events.ORDER_CREATED,),
                self._on_order_created,
                match={"user_id": user_id},
            ),
        ]
        self.refresh_cart()
        self.refresh_products()

    def end_session(self) -> None:
        for subscription in self._subscriptions:
            self.hub.unsubscribe(subscription)
        self._subscriptions = []
        with self._lock:
            self._user_id = None
            self._profile = None
            self._cart = None
            self._products = None

    def refresh_cart(self) -> dict[str, Any]:
        cart = self.client.get_cart()
        with self._lock:
            self._cart = cart
        return cart

    def refresh_products(self) -> list[dict[str, Any]]:
        products = self.client.list_products()
        with self._lock:
            self._products = products
        return products

    def cart(self) -> dict[str, Any]:
        with self._lock:
            cached = self._cart
        return cached if cached is not None else self.refresh_cart()

    def products(self) -> list[dict[str, Any]]:
        with self._lock:
            cached = self._products
        return cached if cached is not None else self.refresh_products()

    def invalidate_cart(self) -> None:
        with self._lock:
            self._cart = None

    def invalidate_products(self) -> None:
        with self._lock:
            self._products = None

    def _on_product_event(self, event: str, payload: dict[str, Any]) -> None:
        logger.debug("product cache dropped on %s for %s", event, payload.get("product_id"))
        self.invalidate_products()

    def _on_order_created(self, event: str, payload: dict[str, Any]) -> None:
        # Checkout empties the cart server-side.
        self.invalidate_cart()
