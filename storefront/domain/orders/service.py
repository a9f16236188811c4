from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from storefront.api.utils import iso_utc, now_utc
from storefront.core.errors import OrderNotFound
from storefront.core.security import Actor, require_admin
from storefront.domain.orders.state_machine import (
    OrderEvent,
    OrderStatus,
    gateway_event,
    next_status,
)
from storefront.persistence.models import OrderModel, ProfileModel
from storefront.realtime import Channels, enqueue_event, order_status_event

logger = logging.getLogger(__name__)


def order_to_dict(order: OrderModel) -> dict[str, Any]:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "status": order.status,
        "total_amount": order.total_amount,
        "shipping_fee": order.shipping_fee,
        "shipping_method": order.shipping_method,
        "payment_id": order.payment_id,
        "payment_type": order.payment_type,
        "shipping_address": order.shipping_address,
        "snap_token": order.snap_token,
        "created_at": iso_utc(order.created_at),
        "updated_at": iso_utc(order.updated_at),
    }


@dataclass
class GatewayApplyResult:
    order: OrderModel | None
    applied: bool
    reason: str


class OrderService:
    """Reads and status mutations for orders.

    Every status write goes through ``_transition`` so the transition table in
    ``state_machine`` is the only authority on what may change.
    """

    def __init__(self, session: Session):
        self.session = session

    def _load(self, order_id: str, for_update: bool = False) -> OrderModel | None:
        stmt = select(OrderModel).where(OrderModel.id == order_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalar(stmt)

    def _owned(self, actor: Actor, order_id: str, for_update: bool = False) -> OrderModel:
        order = self._load(order_id, for_update=for_update)
        if order is None or order.user_id != actor.user_id:
            raise OrderNotFound("Order not found", order_id=order_id)
        return order

    def _transition(self, order: OrderModel, event: OrderEvent) -> bool:
        previous = OrderStatus(order.status)
        target = next_status(previous, event)
        if target == previous:
            return False
        order.status = target.value
        order.updated_at = now_utc()
        self.session.flush()
        enqueue_event(
            self.session,
            Channels.ORDERS,
            order_status_event(target.value),
            {"order_id": order.id, "status": target.value, "previous_status": previous.value, "user_id": order.user_id},
        )
        logger.info("order %s %s -> %s (%s)", order.id, previous.value, target.value, event.value)
        return True

    def get_for_owner(self, actor: Actor, order_id: str) -> OrderModel:
        return self._owned(actor, order_id)

    def get_visible(self, actor: Actor, order_id: str) -> OrderModel:
        order = self._load(order_id)
        if order is None or (order.user_id != actor.user_id and not actor.is_admin):
            raise OrderNotFound("Order not found", order_id=order_id)
        return order

    def get_status(self, actor: Actor, order_id: str) -> str:
        return self.get_visible(actor, order_id).status

    def list_for_user(self, actor: Actor) -> list[OrderModel]:
        stmt = (
            select(OrderModel)
            .where(OrderModel.user_id == actor.user_id)
            .order_by(desc(OrderModel.created_at))
        )
        return list(self.session.scalars(stmt).all())

    def list_for_admin(self, actor: Actor, status: OrderStatus | None = None) -> list[OrderModel]:
        require_admin(actor)
        stmt = select(OrderModel).order_by(desc(OrderModel.created_at))
        if status is not None:
            stmt = stmt.where(OrderModel.status == status.value)
        return list(self.session.scalars(stmt).all())

    def get_detail_for_admin(self, actor: Actor, order_id: str) -> dict[str, Any]:
        require_admin(actor)
        order = self._load(order_id)
        if order is None:
            raise OrderNotFound("Order not found", order_id=order_id)
        profile = self.session.get(ProfileModel, order.user_id) if order.user_id else None
        return {
            **order_to_dict(order),
            "order_items": [
                {
                    "id": item.id,
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "price_at_purchase": item.price_at_purchase,
                    "product": (
                        {"id": item.product.id, "name": item.product.name, "image_url": item.product.image_url}
                        if item.product is not None
                        else None
                    ),
                }
                for item in order.items
            ],
            "profile": (
                {"full_name": profile.full_name, "email": profile.email} if profile is not None else None
            ),
        }

    def mark_shipped(self, actor: Actor, order_id: str) -> OrderModel:
        require_admin(actor)
        order = self._load(order_id, for_update=True)
        if order is None:
            raise OrderNotFound("Order not found", order_id=order_id)
        self._transition(order, OrderEvent.ADMIN_SHIP)
        return order

    def mark_completed(self, actor: Actor, order_id: str) -> OrderModel:
        order = self._owned(actor, order_id, for_update=True)
        self._transition(order, OrderEvent.CUSTOMER_CONFIRM)
        return order

    def cancel(self, actor: Actor, order_id: str) -> OrderModel:
        # Stock stays decremented; restoring it is a manual admin action.
        order = self._owned(actor, order_id, for_update=True)
        self._transition(order, OrderEvent.CUSTOMER_CANCEL)
        return order

    def set_payment_session(self, order: OrderModel, token: str, redirect_url: str | None) -> None:
        order.snap_token = token
        order.payment_redirect_url = redirect_url
        order.updated_at = now_utc()
        self.session.flush()

    def apply_gateway_status(
        self,
        order_id: str,
        mapped: OrderStatus,
        payment_id: str | None = None,
        payment_type: str | None = None,
    ) -> GatewayApplyResult:
        """Apply a verified gateway outcome, moving forward only.

        Gateway outcomes are only meaningful while the order is ``pending``.
        A repeat of the status the order already has is a no-op; anything
        that would move an order which already left ``pending`` is ignored,
        so a late or re-delivered callback cannot regress it.
        """
        order = self._load(order_id, for_update=True)
        if order is None:
            logger.warning("gateway status %s for unknown order %s", mapped.value, order_id)
            return GatewayApplyResult(order=None, applied=False, reason="unknown order")

        current = OrderStatus(order.status)
        if current != OrderStatus.PENDING:
            if current == mapped:
                return GatewayApplyResult(order=order, applied=False, reason="already applied")
            logger.warning(
                "ignored gateway status %s for order %s already %s",
                mapped.value,
                order_id,
                current.value,
            )
            return GatewayApplyResult(order=order, applied=False, reason=f"order already {current.value}")

        changed = self._transition(order, gateway_event(mapped))
        if payment_id is not None:
            order.payment_id = payment_id
        if payment_type is not None:
            order.payment_type = payment_type
        if not changed:
            order.updated_at = now_utc()
            enqueue_event(
                self.session,
                Channels.ORDERS,
                order_status_event(order.status),
                {"order_id": order.id, "status": order.status, "previous_status": order.status, "user_id": order.user_id},
            )
        self.session.flush()
        return GatewayApplyResult(order=order, applied=True, reason="applied")
