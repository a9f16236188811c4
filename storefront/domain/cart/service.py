from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.core.errors import CartNotFound, NotFound, ProductNotFound, ValidationError
from storefront.core.security import Actor
from storefront.persistence.models import CartItemModel, CartModel, ProductModel


@dataclass(frozen=True)
class CartLine:
    id: str
    product_id: str
    quantity: int
    product: dict[str, Any] | None


def normalize_product(related: Any) -> Any:
    """Collapse a product relation to a single record.

    Joined reads may hand back one record, a list of records, or nothing;
    callers downstream always see one product or ``None``.
    """
    if related is None:
        return None
    if isinstance(related, (list, tuple)):
        return related[0] if related else None
    return related


def _product_summary(product: ProductModel | None) -> dict[str, Any] | None:
    if product is None:
        return None
    return {
        "id": product.id,
        "name": product.name,
        "price": product.price,
        "image_url": product.image_url,
        "stock": product.stock,
    }


class CartService:
    def __init__(self, session: Session):
        self.session = session

    def find_cart(self, user_id: str) -> CartModel | None:
        return self.session.scalar(select(CartModel).where(CartModel.user_id == user_id))

    def require_cart(self, actor: Actor) -> CartModel:
        cart = self.find_cart(actor.user_id)
        if cart is None:
            raise CartNotFound("Cart not found")
        return cart

    def get_or_create_cart(self, actor: Actor) -> CartModel:
        cart = self.find_cart(actor.user_id)
        if cart is None:
            cart = CartModel(user_id=actor.user_id)
            self.session.add(cart)
            self.session.flush()
        return cart

    def lines(self, cart: CartModel) -> list[CartLine]:
        return [
            CartLine(
                id=item.id,
                product_id=item.product_id,
                quantity=item.quantity,
                product=_product_summary(normalize_product(item.product)),
            )
            for item in cart.items
        ]

    def add_item(self, actor: Actor, product_id: str, quantity: int) -> CartItemModel:
        if quantity <= 0:
            raise ValidationError("quantity must be positive")
        if self.session.get(ProductModel, product_id) is None:
            raise ProductNotFound(f"Product {product_id} not found", product_id=product_id)

        cart = self.get_or_create_cart(actor)
        item = self.session.scalar(
            select(CartItemModel)
            .where(CartItemModel.cart_id == cart.id)
            .where(CartItemModel.product_id == product_id)
        )
        if item is None:
            item = CartItemModel(cart_id=cart.id, product_id=product_id, quantity=quantity)
            self.session.add(item)
        else:
            item.quantity = quantity
        self.session.flush()
        self.session.expire(cart, ["items"])
        return item

    def remove_item(self, actor: Actor, cart_item_id: str) -> None:
        cart = self.require_cart(actor)
        item = self.session.get(CartItemModel, cart_item_id)
        if item is None or item.cart_id != cart.id:
            raise NotFound("Cart item not found", cart_item_id=cart_item_id)
        self.session.delete(item)
        self.session.flush()
        self.session.expire(cart, ["items"])
