from __future__ import annotations

import json

import pytest

import storefront.persistence.pg as pg
from storefront import cli
from storefront.core.config import Settings
from storefront.core.errors import Unauthorized
from storefront.core.security import create_session_token, verify_session_token
from storefront.persistence.models import OrderModel, ProductModel, ProfileModel


def test_insecure_defaults_rejected_outside_dev():
    with pytest.raises(ValueError) as excinfo:
        Settings(env="prod")
    assert "SF_AUTH_TOKEN_SECRET" in str(excinfo.value)
    assert "SF_GATEWAY_SERVER_KEY" in str(excinfo.value)

    Settings(
        env="prod",
        auth_token_secret="s3cret",
        gateway_server_key="Mid-server-live",
        gateway_client_key="Mid-client-live",
    )


def test_gateway_base_url_and_shipping_fees():
    settings = Settings()
    assert settings.gateway_base_url == "https://app.sandbox.midtrans.com"
    assert Settings(gateway_is_production=True).gateway_base_url == "https://app.midtrans.com"
    assert settings.shipping_fee("standard") == 20000
    assert settings.shipping_fee("express") == 50000
    with pytest.raises(ValueError):
        settings.shipping_fee("pigeon")


def test_session_token_round_trip_and_tamper():
    token = create_session_token("cust-77")
    assert verify_session_token(token)["sub"] == "cust-77"

    with pytest.raises(Unauthorized):
        verify_session_token(token[:-4] + "AAAA")
    with pytest.raises(Unauthorized):
        verify_session_token(create_session_token("cust-77", ttl_seconds=-10))


def test_cli_seed_catalog_is_idempotent(tmp_path, capsys):
    seed = tmp_path / "catalog.json"
    seed.write_text(
        json.dumps(
            [
                {"id": "prod-batik", "name": "Batik", "price": 300000, "stock": 4, "category": "apparel"},
                {"id": "prod-kopi", "name": "Kopi", "price": 90000, "stock": 12},
            ]
        ),
        encoding="utf-8",
    )

    assert cli.main(["seed-catalog", str(seed)]) == 0
    assert json.loads(capsys.readouterr().out) == {"created": 2, "updated": 0}
    assert cli.main(["seed-catalog", str(seed)]) == 0
    assert json.loads(capsys.readouterr().out) == {"created": 0, "updated": 2}

    with pg.session_scope() as s:
        assert s.get(ProductModel, "prod-kopi").stock == 12


def test_cli_issue_token_sets_role(capsys):
    assert cli.main(["issue-token", "--user-id", "ops-1", "--role", "admin"]) == 0
    token = capsys.readouterr().out.strip()
    assert verify_session_token(token)["sub"] == "ops-1"
    with pg.session_scope() as s:
        assert s.get(ProfileModel, "ops-1").role == "admin"


def test_cli_pending_report_lists_only_stale_pending(capsys):
    from datetime import timedelta

    from storefront.api.utils import now_utc

    old = now_utc() - timedelta(hours=3)
    with pg.session_scope() as s:
        s.add(OrderModel(id="ord-stale", user_id="u1", total_amount=1000, shipping_address="x", created_at=old))
        s.add(OrderModel(id="ord-fresh", user_id="u1", total_amount=1000, shipping_address="x"))
        s.add(
            OrderModel(id="ord-paid", user_id="u1", status="paid", total_amount=1000, shipping_address="x", created_at=old)
        )

    assert cli.main(["pending-report", "--older-than-minutes", "60"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["count"] == 1
    assert report["orders"][0]["id"] == "ord-stale"
    with pg.session_scope() as s:
        assert s.get(OrderModel, "ord-stale").status == "pending"
