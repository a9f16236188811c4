from __future__ import annotations

import storefront.persistence.pg as pg
from storefront.persistence.models import OrderModel, ProductModel

ADDRESS = "Jl. Gajah Mada 3, Denpasar"


def _order(status: str, user_id: str = "cust-001", order_id: str = "ord-1") -> str:
    with pg.session_scope() as s:
        s.add(OrderModel(id=order_id, user_id=user_id, status=status, total_amount=120000, shipping_address=ADDRESS))
    return order_id


def _status(order_id: str) -> str:
    with pg.session_scope() as s:
        return s.get(OrderModel, order_id).status


def test_customer_sees_only_own_orders(client, auth_headers):
    _order("pending", order_id="ord-mine")
    _order("paid", user_id="cust-002", order_id="ord-theirs")

    listed = client.get("/orders", headers=auth_headers["customer"]).json()
    assert [o["id"] for o in listed["orders"]] == ["ord-mine"]

    assert client.get("/orders/ord-theirs", headers=auth_headers["customer"]).status_code == 404
    assert client.get("/orders/ord-theirs/status", headers=auth_headers["customer"]).status_code == 404
    assert client.get("/orders/ord-theirs/status", headers=auth_headers["admin"]).json()["status"] == "paid"


def test_cancel_pending_order_fails_it_without_restoring_stock(client, auth_headers, make_product, fill_cart):
    product_id = make_product(stock=3)
    fill_cart("cust-001", [(product_id, 2)])
    order_id = client.post(
        "/payments/checkout", json={"shipping_address": ADDRESS}, headers=auth_headers["customer"]
    ).json()["order_id"]

    resp = client.post(f"/orders/{order_id}/cancel", headers=auth_headers["customer"])
    assert resp.status_code == 200
    assert resp.json()["status"] == "failed"
    with pg.session_scope() as s:
        assert s.get(ProductModel, product_id).stock == 1


def test_cancel_paid_order_rejected(client, auth_headers):
    order_id = _order("paid")
    resp = client.post(f"/orders/{order_id}/cancel", headers=auth_headers["customer"])
    assert resp.status_code == 409
    assert resp.json()["message"] == "Only pending orders can be cancelled"
    assert _status(order_id) == "paid"


def test_cancel_someone_elses_order_is_not_found(client, auth_headers):
    order_id = _order("pending", user_id="cust-002")
    assert client.post(f"/orders/{order_id}/cancel", headers=auth_headers["customer"]).status_code == 404
    assert _status(order_id) == "pending"


def test_ship_requires_admin_and_paid_order(client, auth_headers):
    order_id = _order("pending")
    assert client.post(f"/admin/orders/{order_id}/ship", headers=auth_headers["customer"]).status_code == 403

    rejected = client.post(f"/admin/orders/{order_id}/ship", headers=auth_headers["admin"])
    assert rejected.status_code == 409
    assert rejected.json()["message"] == "Only paid orders can be shipped"

    with pg.session_scope() as s:
        s.get(OrderModel, order_id).status = "paid"
    shipped = client.post(f"/admin/orders/{order_id}/ship", headers=auth_headers["admin"])
    assert shipped.status_code == 200
    assert shipped.json()["status"] == "shipped"


def test_complete_requires_shipped(client, auth_headers):
    order_id = _order("paid")
    rejected = client.post(f"/orders/{order_id}/complete", headers=auth_headers["customer"])
    assert rejected.status_code == 409
    assert rejected.json()["message"] == "Order must be shipped before completion"

    with pg.session_scope() as s:
        s.get(OrderModel, order_id).status = "shipped"
    done = client.post(f"/orders/{order_id}/complete", headers=auth_headers["customer"])
    assert done.status_code == 200
    assert done.json()["status"] == "completed"

    again = client.post(f"/orders/{order_id}/cancel", headers=auth_headers["customer"])
    assert again.status_code == 409


def test_admin_lists_and_filters_orders(client, auth_headers):
    _order("pending", order_id="ord-a")
    _order("paid", user_id="cust-002", order_id="ord-b")

    assert client.get("/admin/orders", headers=auth_headers["customer"]).status_code == 403

    everything = client.get("/admin/orders", headers=auth_headers["admin"]).json()
    assert {o["id"] for o in everything["orders"]} == {"ord-a", "ord-b"}

    paid = client.get("/admin/orders", params={"status": "paid"}, headers=auth_headers["admin"]).json()
    assert [o["id"] for o in paid["orders"]] == ["ord-b"]

    assert client.get("/admin/orders", params={"status": "lost"}, headers=auth_headers["admin"]).status_code == 400


def test_admin_detail_includes_items_and_profile(client, auth_headers, make_product, fill_cart):
    product_id = make_product(name="Songket", price=250000, stock=2)
    fill_cart("cust-001", [(product_id, 1)])
    order_id = client.post(
        "/payments/checkout", json={"shipping_address": ADDRESS}, headers=auth_headers["customer"]
    ).json()["order_id"]

    detail = client.get(f"/admin/orders/{order_id}", headers=auth_headers["admin"]).json()
    assert detail["profile"] == {"full_name": "Ayu Lestari", "email": "ayu@example.com"}
    assert detail["order_items"][0]["product"]["name"] == "Songket"
    assert detail["order_items"][0]["quantity"] == 1
    assert client.get("/admin/orders/ord-missing", headers=auth_headers["admin"]).status_code == 404
