from __future__ import annotations

from storefront.domain.cart.service import normalize_product
from storefront.realtime import Channels, Events, get_realtime_hub


def test_cart_created_lazily_and_upserts(client, auth_headers, make_product):
    product_id = make_product(price=45000, stock=9)

    empty = client.get("/cart", headers=auth_headers["customer"])
    assert empty.status_code == 200
    assert empty.json()["items"] == []

    added = client.post("/cart/items", json={"product_id": product_id, "quantity": 2}, headers=auth_headers["customer"])
    assert added.status_code == 200
    again = client.post("/cart/items", json={"product_id": product_id, "quantity": 3}, headers=auth_headers["customer"])
    body = again.json()
    assert len(body["items"]) == 1
    assert body["items"][0]["quantity"] == 3
    assert body["items"][0]["product"]["price"] == 45000
    assert body["subtotal"] == 135000

    removed = client.delete(f"/cart/items/{body['items'][0]['id']}", headers=auth_headers["customer"])
    assert removed.json()["items"] == []


def test_cart_rejects_bad_quantity_and_unknown_product(client, auth_headers, make_product):
    product_id = make_product()
    zero = client.post("/cart/items", json={"product_id": product_id, "quantity": 0}, headers=auth_headers["customer"])
    assert zero.status_code == 400
    missing = client.post("/cart/items", json={"product_id": "nope", "quantity": 1}, headers=auth_headers["customer"])
    assert missing.status_code == 404


def test_cart_item_of_another_user_cannot_be_removed(client, auth_headers, make_product):
    product_id = make_product()
    item_id = client.post(
        "/cart/items", json={"product_id": product_id, "quantity": 1}, headers=auth_headers["other"]
    ).json()["items"][0]["id"]
    client.get("/cart", headers=auth_headers["customer"])
    assert client.delete(f"/cart/items/{item_id}", headers=auth_headers["customer"]).status_code == 404


def test_normalize_product_shapes():
    assert normalize_product(None) is None
    assert normalize_product([]) is None
    assert normalize_product(["first", "second"]) == "first"
    assert normalize_product({"id": "p"}) == {"id": "p"}


def test_products_listing_filters_and_sorts(client, make_product):
    make_product(name="Batik", price=300000, category="apparel")
    make_product(name="Kopi Luwak", price=90000, category="food")
    make_product(name="Angklung", price=150000, category="crafts")

    by_price = client.get("/products", params={"sort_by": "price", "order": "desc"}).json()
    assert [p["name"] for p in by_price["products"]] == ["Batik", "Angklung", "Kopi Luwak"]

    food = client.get("/products", params={"category": "food"}).json()
    assert [p["name"] for p in food["products"]] == ["Kopi Luwak"]

    assert client.get("/products", params={"sort_by": "color"}).status_code == 400


def test_product_admin_crud(client, auth_headers):
    seen = []
    get_realtime_hub().subscribe(Channels.PRODUCTS, None, lambda e, p: seen.append(e))

    body = {"name": "Wayang", "price": 500000, "stock": 2, "category": "crafts"}
    assert client.post("/products", json=body, headers=auth_headers["customer"]).status_code == 403

    created = client.post("/products", json=body, headers=auth_headers["admin"])
    assert created.status_code == 200
    product_id = created.json()["id"]

    restocked = client.patch(f"/products/{product_id}", json={"stock": 10}, headers=auth_headers["admin"])
    assert restocked.json()["stock"] == 10
    assert client.patch(f"/products/{product_id}", json={"stock": -1}, headers=auth_headers["admin"]).status_code == 400

    assert client.get(f"/products/{product_id}").json()["name"] == "Wayang"
    deleted = client.delete(f"/products/{product_id}", headers=auth_headers["admin"])
    assert deleted.json() == {"deleted": True, "product_id": product_id}
    assert client.get(f"/products/{product_id}").status_code == 404

    assert seen == [Events.PRODUCT_CREATED, Events.STOCK_UPDATED, Events.PRODUCT_DELETED]


def test_product_in_an_order_cannot_be_deleted(client, auth_headers, make_product, fill_cart):
    product_id = make_product(stock=3)
    fill_cart("cust-001", [(product_id, 1)])
    client.post("/payments/checkout", json={"shipping_address": "Jl. Thamrin 2"}, headers=auth_headers["customer"])

    resp = client.delete(f"/products/{product_id}", headers=auth_headers["admin"])
    assert resp.status_code == 400
    assert client.get(f"/products/{product_id}").status_code == 200
