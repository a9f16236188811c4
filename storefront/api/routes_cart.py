from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from storefront.core.security import Actor, get_actor
from storefront.domain.cart.service import CartService
from storefront.persistence.pg import get_session

router = APIRouter(prefix="/cart", tags=["cart"])


class CartItemUpsertRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    product_id: str = Field(min_length=1)
    quantity: int = Field(gt=0)


def _cart_view(service: CartService, actor: Actor) -> dict:
    cart = service.get_or_create_cart(actor)
    lines = service.lines(cart)
    return {
        "cart_id": cart.id,
        "items": [asdict(line) for line in lines],
        "subtotal": sum(line.product["price"] * line.quantity for line in lines if line.product is not None),
    }


@router.get("")
def get_cart(
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return _cart_view(CartService(session), actor)


@router.post("/items")
def upsert_cart_item(
    body: CartItemUpsertRequest,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    service = CartService(session)
    service.add_item(actor, body.product_id, body.quantity)
    return _cart_view(service, actor)


@router.delete("/items/{cart_item_id}")
def remove_cart_item(
    cart_item_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    service = CartService(session)
    service.remove_item(actor, cart_item_id)
    return _cart_view(service, actor)
