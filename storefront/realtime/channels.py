from __future__ import annotations


class Channels:
    ORDERS = "orders-channel"
    PRODUCTS = "products-channel"

    ALL = (ORDERS, PRODUCTS)


class Events:
    ORDER_CREATED = "order:created"
    ORDER_PENDING = "order:pending"
    ORDER_PAID = "order:paid"
    ORDER_SHIPPED = "order:shipped"
    ORDER_COMPLETED = "order:completed"
    ORDER_UPDATED = "order:updated"
    STOCK_UPDATED = "stock:updated"
    PRODUCT_CREATED = "product:created"
    PRODUCT_DELETED = "product:deleted"

    ORDER_STATUS = (ORDER_PENDING, ORDER_PAID, ORDER_SHIPPED, ORDER_COMPLETED, ORDER_UPDATED)


_STATUS_EVENTS = {
    "pending": Events.ORDER_PENDING,
    "paid": Events.ORDER_PAID,
    "shipped": Events.ORDER_SHIPPED,
    "completed": Events.ORDER_COMPLETED,
}


def order_status_event(status: str) -> str:
    # There is no dedicated failure event; consumers read the status field.
    return _STATUS_EVENTS.get(status, Events.ORDER_UPDATED)
