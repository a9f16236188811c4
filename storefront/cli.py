from __future__ import annotations

import argparse
import json
from datetime import timedelta
from pathlib import Path

from sqlalchemy import select

from storefront.api.utils import as_utc, iso_utc, now_utc
from storefront.core.config import get_settings
from storefront.core.logging import configure_logging
from storefront.core.security import create_session_token
from storefront.domain.orders.state_machine import OrderStatus
from storefront.persistence.models import OrderModel, ProductModel, ProfileModel
from storefront.persistence.pg import init_db, session_scope


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Storefront orders CLI")
    top = parser.add_subparsers(dest="command", required=True)

    top.add_parser("init-db", help="Create database tables")

    serve = top.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--reload", action="store_true")

    seed = top.add_parser("seed-catalog", help="Load products from a JSON file")
    seed.add_argument("path", help="JSON file holding a list of product objects")

    token = top.add_parser("issue-token", help="Mint a session token for a user")
    token.add_argument("--user-id", required=True)
    token.add_argument("--role", choices=["customer", "admin"], default=None, help="Also upsert the profile role")
    token.add_argument("--ttl-seconds", type=int, default=None)

    report = top.add_parser("pending-report", help="List pending orders older than a threshold")
    report.add_argument("--older-than-minutes", type=int, default=None)

    return parser


def _init_db(_: argparse.Namespace) -> int:
    init_db()
    print(json.dumps({"ok": True}))
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "storefront.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


def _seed_catalog(args: argparse.Namespace) -> int:
    rows = json.loads(Path(args.path).read_text(encoding="utf-8"))
    if not isinstance(rows, list):
        raise SystemExit("seed file must contain a JSON list")

    init_db()
    created = 0
    updated = 0
    with session_scope() as session:
        for row in rows:
            product = session.get(ProductModel, row["id"]) if row.get("id") else None
            if product is None:
                session.add(
                    ProductModel(
                        id=row.get("id"),
                        name=row["name"],
                        description=row.get("description", ""),
                        price=int(row["price"]),
                        stock=int(row.get("stock", 0)),
                        category=row.get("category", ""),
                        image_url=list(row.get("image_url") or []),
                    )
                )
                created += 1
                continue
            for name in ("name", "description", "category", "image_url"):
                if name in row:
                    setattr(product, name, row[name])
            if "price" in row:
                product.price = int(row["price"])
            if "stock" in row:
                product.stock = int(row["stock"])
            updated += 1

    print(json.dumps({"created": created, "updated": updated}))
    return 0


def _issue_token(args: argparse.Namespace) -> int:
    if args.role:
        init_db()
        with session_scope() as session:
            profile = session.get(ProfileModel, args.user_id)
            if profile is None:
                session.add(ProfileModel(id=args.user_id, role=args.role))
            else:
                profile.role = args.role
    print(create_session_token(args.user_id, ttl_seconds=args.ttl_seconds))
    return 0


def _pending_report(args: argparse.Namespace) -> int:
    minutes = args.older_than_minutes
    if minutes is None:
        minutes = get_settings().stale_pending_minutes
    cutoff = now_utc() - timedelta(minutes=minutes)

    init_db()
    with session_scope() as session:
        rows = session.scalars(
            select(OrderModel)
            .where(OrderModel.status == OrderStatus.PENDING.value)
            .order_by(OrderModel.created_at)
        ).all()
        stale = [row for row in rows if as_utc(row.created_at) < cutoff]
        report = {
            "older_than_minutes": minutes,
            "count": len(stale),
            "orders": [
                {
                    "id": row.id,
                    "user_id": row.user_id,
                    "total_amount": row.total_amount,
                    "has_payment_token": bool(row.snap_token),
                    "created_at": iso_utc(row.created_at),
                }
                for row in stale
            ],
        }
    print(json.dumps(report, ensure_ascii=False, indent=2))
    return 0


_COMMANDS = {
    "init-db": _init_db,
    "serve": _serve,
    "seed-catalog": _seed_catalog,
    "issue-token": _issue_token,
    "pending-report": _pending_report,
}


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    parser = _build_parser()
    args = parser.parse_args(argv)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        parser.error("unsupported command")
        return 2
    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
