from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import asc, delete, desc, select
from sqlalchemy.orm import Session

from storefront.api.utils import iso_utc
from storefront.core.errors import ProductNotFound, ValidationError
from storefront.core.security import Actor, require_admin
from storefront.domain.inventory.ledger import InventoryLedger
from storefront.persistence.models import CartItemModel, OrderItemModel, ProductModel
from storefront.realtime import Channels, Events, enqueue_event

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "name": ProductModel.name,
    "price": ProductModel.price,
    "stock": ProductModel.stock,
    "created_at": ProductModel.created_at,
}

EDITABLE_FIELDS = ("name", "description", "price", "category", "image_url")


def product_to_dict(product: ProductModel) -> dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price": product.price,
        "stock": product.stock,
        "image_url": product.image_url,
        "category": product.category,
        "created_at": iso_utc(product.created_at),
    }


class CatalogService:
    def __init__(self, session: Session):
        self.session = session

    def list_products(
        self,
        category: str | None = None,
        sort_by: str | None = None,
        order: str = "asc",
    ) -> list[ProductModel]:
        stmt = select(ProductModel)
        if category:
            stmt = stmt.where(ProductModel.category == category)
        if sort_by:
            column = SORTABLE_FIELDS.get(sort_by)
            if column is None:
                raise ValidationError(f"cannot sort by {sort_by}")
            stmt = stmt.order_by(desc(column) if order == "desc" else asc(column))
        else:
            stmt = stmt.order_by(asc(ProductModel.created_at))
        return list(self.session.scalars(stmt).all())

    def get(self, product_id: str) -> ProductModel:
        product = self.session.get(ProductModel, product_id)
        if product is None:
            raise ProductNotFound(f"Product {product_id} not found", product_id=product_id)
        return product

    def create(self, actor: Actor, fields: dict[str, Any]) -> ProductModel:
        require_admin(actor)
        product = ProductModel(**fields)
        self.session.add(product)
        self.session.flush()
        enqueue_event(self.session, Channels.PRODUCTS, Events.PRODUCT_CREATED, {"product_id": product.id})
        logger.info("product %s created by %s", product.id, actor.user_id)
        return product

    def update(self, actor: Actor, product_id: str, changes: dict[str, Any]) -> ProductModel:
        require_admin(actor)
        product = self.get(product_id)
        for name in EDITABLE_FIELDS:
            if name in changes:
                setattr(product, name, changes[name])
        self.session.flush()
        if "stock" in changes:
            InventoryLedger(self.session).set_stock(product_id, int(changes["stock"]))
        return product

    def delete(self, actor: Actor, product_id: str) -> None:
        require_admin(actor)
        product = self.get(product_id)
        referenced = self.session.scalar(
            select(OrderItemModel.id).where(OrderItemModel.product_id == product_id).limit(1)
        )
        if referenced is not None:
            raise ValidationError("product is referenced by existing orders", product_id=product_id)
        self.session.execute(delete(CartItemModel).where(CartItemModel.product_id == product_id))
        self.session.delete(product)
        self.session.flush()
        enqueue_event(self.session, Channels.PRODUCTS, Events.PRODUCT_DELETED, {"product_id": product_id})
        logger.info("product %s deleted by %s", product_id, actor.user_id)
