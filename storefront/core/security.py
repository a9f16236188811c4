from __future__ import annotations

import base64
import hmac
import json
import time
from hashlib import sha256
from typing import Literal

from fastapi import Depends, Header
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.core.config import get_settings
from storefront.core.errors import Forbidden, Unauthorized
from storefront.persistence.models import ProfileModel
from storefront.persistence.pg import get_session

Role = Literal["customer", "admin"]


class Actor(BaseModel):
    user_id: str
    role: Role = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _token_key() -> bytes:
    settings = get_settings()
    return settings.auth_token_secret.encode("utf-8")


def create_session_token(user_id: str, ttl_seconds: int | None = None) -> str:
    """Mint a session token the way the auth provider does.

    Used by the CLI and tests; production tokens come from the provider and
    only need to share ``auth_token_secret``.
    """
    settings = get_settings()
    now = int(time.time())
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + (ttl_seconds or settings.auth_token_ttl_seconds),
    }
    body = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    mac = hmac.new(_token_key(), body, sha256).digest()
    return base64.urlsafe_b64encode(body + mac).decode("ascii")


def verify_session_token(token: str) -> dict:
    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii"))
    except Exception as exc:
        raise Unauthorized("invalid session token encoding") from exc

    if len(raw) <= 32:
        raise Unauthorized("invalid session token body")

    body, mac = raw[:-32], raw[-32:]
    expected = hmac.new(_token_key(), body, sha256).digest()
    if not hmac.compare_digest(mac, expected):
        raise Unauthorized("session token signature mismatch")

    payload = json.loads(body.decode("utf-8"))
    if not payload.get("sub"):
        raise Unauthorized("session token missing subject")
    if int(time.time()) > int(payload.get("exp", 0)):
        raise Unauthorized("session token expired")
    return payload


def _extract_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("invalid authorization header")
    return token.strip()


def resolve_actor(session: Session, authorization: str | None) -> Actor:
    token = _extract_token(authorization)
    if not token:
        raise Unauthorized("Unauthorized")
    claims = verify_session_token(token)
    user_id = str(claims["sub"])
    profile = session.get(ProfileModel, user_id)
    role = profile.role if profile is not None and profile.role in ("customer", "admin") else "customer"
    return Actor(user_id=user_id, role=role)


def get_actor(
    authorization: str | None = Header(default=None),
    session: Session = Depends(get_session),
) -> Actor:
    return resolve_actor(session, authorization)


def require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise Forbidden("admin role required")
