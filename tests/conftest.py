from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import storefront.persistence.pg as pg
from storefront.core.config import get_settings
from storefront.core.security import create_session_token
from storefront.payments.signature import compute_signature
from storefront.persistence.models import Base, CartItemModel, CartModel, ProductModel, ProfileModel
from storefront.realtime import get_realtime_hub


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite"


@pytest.fixture(scope="session", autouse=True)
def configure_test_engine(test_db_path: Path):
    settings = get_settings()
    settings.gateway_mode = "fake"

    engine = pg.create_engine_from_url(f"sqlite+pysqlite:///{test_db_path}")

    pg.engine = engine
    pg.SessionLocal = pg.make_session_factory(engine)

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_state(configure_test_engine):
    get_realtime_hub().reset()
    with pg.engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    yield
    get_realtime_hub().reset()


@pytest.fixture()
def client(configure_test_engine):
    from storefront.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def session(configure_test_engine):
    with pg.session_scope() as s:
        yield s


@pytest.fixture()
def make_user():
    def _make(user_id: str, role: str = "customer", full_name: str = "", email: str = "") -> dict[str, str]:
        with pg.session_scope() as s:
            s.add(ProfileModel(id=user_id, role=role, full_name=full_name, email=email))
        return {"Authorization": f"Bearer {create_session_token(user_id)}"}

    return _make


@pytest.fixture()
def auth_headers(make_user):
    return {
        "customer": make_user("cust-001", full_name="Ayu Lestari", email="ayu@example.com"),
        "other": make_user("cust-002"),
        "admin": make_user("admin-001", role="admin"),
    }


@pytest.fixture()
def make_product():
    def _make(name: str = "Batik Shirt", price: int = 100000, stock: int = 10, category: str = "apparel") -> str:
        with pg.session_scope() as s:
            product = ProductModel(name=name, price=price, stock=stock, category=category)
            s.add(product)
            s.flush()
            return product.id

    return _make


@pytest.fixture()
def fill_cart():
    def _fill(user_id: str, lines: list[tuple[str, int]]) -> str:
        with pg.session_scope() as s:
            cart = CartModel(user_id=user_id)
            s.add(cart)
            s.flush()
            for product_id, quantity in lines:
                s.add(CartItemModel(cart_id=cart.id, product_id=product_id, quantity=quantity))
            return cart.id

    return _fill


@pytest.fixture()
def notification():
    """Build a signed gateway notification body."""

    def _build(
        order_id: str,
        transaction_status: str,
        gross_amount: str = "220000.00",
        status_code: str = "200",
        fraud_status: str | None = None,
        server_key: str | None = None,
        **extra,
    ) -> dict:
        key = server_key or get_settings().gateway_server_key
        body = {
            "order_id": order_id,
            "status_code": status_code,
            "gross_amount": gross_amount,
            "signature_key": compute_signature(order_id, status_code, gross_amount, key),
            "transaction_status": transaction_status,
            "transaction_id": f"trx-{order_id[:8]}-{transaction_status}",
            "payment_type": "bank_transfer",
        }
        if fraud_status is not None:
            body["fraud_status"] = fraud_status
        body.update(extra)
        return body

    return _build
