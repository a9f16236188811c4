from __future__ import annotations

import storefront.persistence.pg as pg
from storefront.persistence.models import OrderModel

ADDRESS = "Jl. Asia Afrika 8, Bandung"


def test_resume_returns_stored_token(client, auth_headers, make_product, fill_cart):
    product_id = make_product(stock=2)
    fill_cart("cust-001", [(product_id, 1)])
    created = client.post(
        "/payments/checkout", json={"shipping_address": ADDRESS}, headers=auth_headers["customer"]
    ).json()

    resumed = client.post("/payments/resume", json={"order_id": created["order_id"]}, headers=auth_headers["customer"])
    assert resumed.status_code == 200
    body = resumed.json()
    assert body["snap_token"] == created["snap_token"]
    assert body["redirect_url"] == created["redirect_url"]
    assert body["status"] == "pending"


def test_resume_issues_token_when_none_stored(client, auth_headers):
    with pg.session_scope() as s:
        s.add(OrderModel(id="ord-tokenless", user_id="cust-001", total_amount=70000, shipping_address=ADDRESS))

    resp = client.post("/payments/resume", json={"order_id": "ord-tokenless"}, headers=auth_headers["customer"])
    assert resp.status_code == 200
    assert resp.json()["snap_token"].startswith("fake-")
    with pg.session_scope() as s:
        assert s.get(OrderModel, "ord-tokenless").snap_token == resp.json()["snap_token"]


def test_resume_rejects_non_pending_and_unknown(client, auth_headers):
    with pg.session_scope() as s:
        s.add(OrderModel(id="ord-paid", user_id="cust-001", status="paid", total_amount=70000, shipping_address=ADDRESS))
        s.add(OrderModel(id="ord-other", user_id="cust-002", total_amount=70000, shipping_address=ADDRESS))

    assert client.post("/payments/resume", json={"order_id": "ord-paid"}, headers=auth_headers["customer"]).status_code == 409
    assert client.post("/payments/resume", json={"order_id": "ord-nope"}, headers=auth_headers["customer"]).status_code == 404
    assert client.post("/payments/resume", json={"order_id": "ord-other"}, headers=auth_headers["customer"]).status_code == 404
    assert client.post("/payments/resume", json={}, headers=auth_headers["customer"]).status_code == 400
