from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from storefront.core.config import Settings, get_settings
from storefront.core.errors import CartEmpty, InsufficientStock, InvalidTransition, ProductNotFound, ValidationError
from storefront.core.security import Actor
from storefront.domain.cart.service import CartService
from storefront.domain.inventory.ledger import InventoryLedger
from storefront.domain.orders.aggregates import CheckoutDraft, CheckoutLine
from storefront.domain.orders.service import OrderService
from storefront.domain.orders.state_machine import INITIAL_STATUS, OrderStatus
from storefront.payments.gateway import CustomerDetails, PaymentGateway, PaymentSession, build_gateway
from storefront.persistence.models import CartItemModel, CartModel, OrderItemModel, OrderModel, ProductModel
from storefront.realtime import Channels, Events, enqueue_event

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ShippingMethod = Literal["standard", "express"]


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    shipping_address: str = Field(min_length=1)
    full_name: str | None = Field(default=None, min_length=1)
    email: str | None = None
    phone: str | None = Field(default=None, min_length=5)
    shipping_method: ShippingMethod = "standard"

    @field_validator("shipping_address")
    @classmethod
    def _address_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("shipping_address is required")
        return value

    @field_validator("email")
    @classmethod
    def _valid_email(cls, value: str | None) -> str | None:
        if value is not None and not _EMAIL_RE.match(value):
            raise ValueError("invalid email address")
        return value


class ResumePaymentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    order_id: str = Field(min_length=1)


@dataclass
class CheckoutResult:
    order_id: str
    snap_token: str
    redirect_url: str | None
    gross_amount: int

    def to_response(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "snap_token": self.snap_token,
            "redirect_url": self.redirect_url,
            "gross_amount": self.gross_amount,
        }


def _validate_total(total: Any) -> int:
    if isinstance(total, bool) or not isinstance(total, (int, float)):
        raise ValidationError("Invalid order total amount")
    if isinstance(total, float) and not math.isfinite(total):
        raise ValidationError("Invalid order total amount")
    if total <= 0 or int(total) != total:
        raise ValidationError("Invalid order total amount")
    return int(total)


class CheckoutOrchestrator:
    """Turns a cart into a pending order and a hosted-payment session.

    The order, its items, the stock decrements and the cart cleanup commit
    together; the gateway is only contacted once that commit succeeded.
    """

    def __init__(self, session: Session, gateway: PaymentGateway | None = None, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.gateway = gateway or build_gateway(self.settings)
        self.orders = OrderService(session)

    def build_draft(self, actor: Actor, shipping_method: ShippingMethod = "standard") -> tuple[CartModel, CheckoutDraft]:
        cart = CartService(self.session).require_cart(actor)
        items = list(cart.items)
        if not items:
            raise CartEmpty("Cart is empty")

        product_ids = {item.product_id for item in items}
        live = {
            product.id: product
            for product in self.session.scalars(select(ProductModel).where(ProductModel.id.in_(product_ids))).all()
        }

        draft = CheckoutDraft(shipping_fee=self.settings.shipping_fee(shipping_method))
        for item in items:
            product = live.get(item.product_id)
            if product is None:
                raise ProductNotFound(f"Product not found for cart item {item.id}", product_id=item.product_id)
            if product.stock < item.quantity:
                raise InsufficientStock(item.product_id, available=product.stock, requested=item.quantity)
            draft.lines.append(
                CheckoutLine(
                    cart_item_id=item.id,
                    product_id=product.id,
                    qty=item.quantity,
                    unit_price=int(product.price),
                )
            )
        _validate_total(draft.total)
        return cart, draft

    def place_order(self, actor: Actor, draft: CheckoutDraft, request: CheckoutRequest) -> OrderModel:
        ledger = InventoryLedger(self.session)
        try:
            order = OrderModel(
                user_id=actor.user_id,
                status=INITIAL_STATUS.value,
                total_amount=draft.total,
                shipping_fee=draft.shipping_fee,
                shipping_method=request.shipping_method,
                shipping_address=request.shipping_address,
            )
            self.session.add(order)
            self.session.flush()

            for line in draft.lines:
                self.session.add(
                    OrderItemModel(
                        order_id=order.id,
                        product_id=line.product_id,
                        quantity=line.qty,
                        price_at_purchase=line.unit_price,
                    )
                )
                ledger.decrement(line.product_id, line.qty)

            self.session.execute(
                delete(CartItemModel).where(CartItemModel.id.in_([line.cart_item_id for line in draft.lines]))
            )
            enqueue_event(
                self.session,
                Channels.ORDERS,
                Events.ORDER_CREATED,
                {
                    "order_id": order.id,
                    "user_id": order.user_id,
                    "status": order.status,
                    "total_amount": order.total_amount,
                },
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        logger.info(
            "order %s created for user %s total=%s lines=%s",
            order.id,
            actor.user_id,
            order.total_amount,
            len(draft.lines),
        )
        return order

    def _open_payment_session(self, order: OrderModel, customer: CustomerDetails | None = None) -> PaymentSession:
        gross_amount = _validate_total(order.total_amount)
        payment = self.gateway.create_transaction(order.id, gross_amount, customer)
        self.orders.set_payment_session(order, payment.token, payment.redirect_url)
        self.session.commit()
        logger.info("payment session issued for order %s via %s", order.id, self.gateway.backend)
        return payment

    def checkout(self, actor: Actor, request: CheckoutRequest) -> CheckoutResult:
        _, draft = self.build_draft(actor, request.shipping_method)
        order = self.place_order(actor, draft, request)
        customer = CustomerDetails(full_name=request.full_name, email=request.email, phone=request.phone)
        payment = self._open_payment_session(order, customer)
        return CheckoutResult(
            order_id=order.id,
            snap_token=payment.token,
            redirect_url=payment.redirect_url,
            gross_amount=order.total_amount,
        )

    def resume_payment(self, actor: Actor, order_id: str) -> dict[str, Any]:
        order = self.orders.get_for_owner(actor, order_id)
        if order.status != OrderStatus.PENDING.value:
            raise InvalidTransition("Order is not pending", order_id=order.id, status=order.status)

        if order.snap_token:
            token, redirect_url = order.snap_token, order.payment_redirect_url
        else:
            payment = self._open_payment_session(order)
            token, redirect_url = payment.token, payment.redirect_url

        return {
            "order_id": order.id,
            "snap_token": token,
            "redirect_url": redirect_url,
            "gross_amount": order.total_amount,
            "status": order.status,
        }
