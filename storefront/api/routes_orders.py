from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.core.security import Actor, get_actor
from storefront.domain.orders.service import OrderService, order_to_dict
from storefront.domain.orders.state_machine import OrderStatus
from storefront.persistence.pg import get_session

router = APIRouter(tags=["orders"])


@router.get("/orders")
def list_my_orders(
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    rows = OrderService(session).list_for_user(actor)
    return {"count": len(rows), "orders": [order_to_dict(row) for row in rows]}


@router.get("/orders/{order_id}")
def get_order(
    order_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return order_to_dict(OrderService(session).get_visible(actor, order_id))


@router.get("/orders/{order_id}/status")
def get_order_status(
    order_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return {"order_id": order_id, "status": OrderService(session).get_status(actor, order_id)}


@router.post("/orders/{order_id}/cancel")
def cancel_order(
    order_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return order_to_dict(OrderService(session).cancel(actor, order_id))


@router.post("/orders/{order_id}/complete")
def complete_order(
    order_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return order_to_dict(OrderService(session).mark_completed(actor, order_id))


@router.get("/admin/orders")
def list_all_orders(
    status: OrderStatus | None = Query(default=None),
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    rows = OrderService(session).list_for_admin(actor, status=status)
    return {"count": len(rows), "orders": [order_to_dict(row) for row in rows]}


@router.get("/admin/orders/{order_id}")
def get_order_detail(
    order_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return OrderService(session).get_detail_for_admin(actor, order_id)


@router.post("/admin/orders/{order_id}/ship")
def ship_order(
    order_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return order_to_dict(OrderService(session).mark_shipped(actor, order_id))
