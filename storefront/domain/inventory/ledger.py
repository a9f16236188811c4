from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.core.errors import InsufficientStock, ProductNotFound, ValidationError
from storefront.persistence.models import ProductModel
from storefront.realtime import Channels, Events, enqueue_event

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Per-product stock counts.

    ``decrement`` is a single conditional UPDATE, so two transactions racing
    for the last units cannot both succeed: the loser matches zero rows.
    """

    def __init__(self, session: Session):
        self.session = session

    def stock_of(self, product_id: str) -> int:
        stock = self.session.scalar(select(ProductModel.stock).where(ProductModel.id == product_id))
        if stock is None:
            raise ProductNotFound(f"Product {product_id} not found", product_id=product_id)
        return int(stock)

    def decrement(self, product_id: str, qty: int) -> int:
        if qty <= 0:
            raise ValidationError("quantity must be positive", product_id=product_id)
        result = self.session.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .where(ProductModel.stock >= qty)
            .values(stock=ProductModel.stock - qty)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            available = self.session.scalar(select(ProductModel.stock).where(ProductModel.id == product_id))
            if available is None:
                raise ProductNotFound(f"Product {product_id} not found", product_id=product_id)
            raise InsufficientStock(product_id, available=int(available), requested=qty)

        remaining = self.stock_of(product_id)
        enqueue_event(
            self.session,
            Channels.PRODUCTS,
            Events.STOCK_UPDATED,
            {"product_id": product_id, "stock": remaining},
        )
        logger.debug("stock of %s decremented by %s to %s", product_id, qty, remaining)
        return remaining

    def set_stock(self, product_id: str, stock: int) -> int:
        """Direct admin set; the only way stock goes back up."""
        if stock < 0:
            raise ValidationError("stock must be non-negative", product_id=product_id)
        product = self.session.get(ProductModel, product_id)
        if product is None:
            raise ProductNotFound(f"Product {product_id} not found", product_id=product_id)
        product.stock = stock
        self.session.flush()
        enqueue_event(
            self.session,
            Channels.PRODUCTS,
            Events.STOCK_UPDATED,
            {"product_id": product_id, "stock": stock},
        )
        logger.info("stock of %s set to %s", product_id, stock)
        return stock
