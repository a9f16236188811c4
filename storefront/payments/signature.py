from __future__ import annotations

import hmac
from hashlib import sha512

SIGNED_FIELDS = ("order_id", "status_code", "gross_amount", "signature_key")


def compute_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return sha512(raw.encode("utf-8")).hexdigest()


def missing_signed_fields(payload: dict) -> list[str]:
    return [name for name in SIGNED_FIELDS if not isinstance(payload.get(name), str) or not payload.get(name)]


def verify_signature(payload: dict, server_key: str) -> bool:
    if missing_signed_fields(payload):
        return False
    expected = compute_signature(
        payload["order_id"],
        payload["status_code"],
        payload["gross_amount"],
        server_key,
    )
    return hmac.compare_digest(expected.encode("ascii"), payload["signature_key"].encode("utf-8"))
