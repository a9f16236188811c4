from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from storefront.core.config import Settings, get_settings
from storefront.core.errors import UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass
class CustomerDetails:
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None

    def as_payload(self) -> dict[str, Any]:
        return {
            key: value
            for key, value in {"first_name": self.full_name, "email": self.email, "phone": self.phone}.items()
            if value
        }


@dataclass
class PaymentSession:
    token: str
    redirect_url: str | None


class PaymentGateway(Protocol):
    backend: str

    def create_transaction(
        self,
        order_id: str,
        gross_amount: int,
        customer: CustomerDetails | None = None,
    ) -> PaymentSession:
        ...


def _callbacks(settings: Settings, order_id: str) -> dict[str, str]:
    site = settings.site_url.rstrip("/")
    return {
        "finish": f"{site}/cart/payment-success?order_id={order_id}",
        "error": f"{site}/cart/payment-failed?order_id={order_id}",
        "pending": f"{site}/cart/payment-pending?order_id={order_id}",
    }


class SnapGatewayClient:
    """Hosted-payment ("snap") transaction client.

    Authenticates with HTTP basic auth, the server key as username and an
    empty password.
    """

    backend = "midtrans"

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.gateway_base_url
        self.timeout = max(1, self.settings.gateway_timeout_seconds)

    def _request(self, method: str, path: str, *, json_body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        with httpx.Client(timeout=self.timeout, auth=(self.settings.gateway_server_key, "")) as client:
            response = client.request(
                method,
                url,
                json=json_body,
                headers={"Accept": "application/json", "Content-Type": "application/json"},
            )
        response.raise_for_status()
        payload = response.json()
        if isinstance(payload, dict):
            return payload
        return {"result": payload}

    def create_transaction(
        self,
        order_id: str,
        gross_amount: int,
        customer: CustomerDetails | None = None,
    ) -> PaymentSession:
        body = {
            "transaction_details": {"order_id": order_id, "gross_amount": gross_amount},
            "customer_details": (customer or CustomerDetails()).as_payload(),
            "callbacks": _callbacks(self.settings, order_id),
        }
        try:
            raw = self._request("POST", "/snap/v1/transactions", json_body=body)
        except httpx.HTTPStatusError as exc:
            logger.error(
                "snap transaction for order %s rejected: status=%s body=%s",
                order_id,
                exc.response.status_code,
                exc.response.text[:500],
            )
            raise UpstreamFailure("Payment gateway rejected the transaction", order_id=order_id) from exc
        except httpx.HTTPError as exc:
            logger.error("snap transaction for order %s failed: %s", order_id, exc)
            raise UpstreamFailure("Payment gateway unreachable", order_id=order_id) from exc

        token = raw.get("token")
        if not token:
            logger.error("snap response for order %s missing token: %s", order_id, raw)
            raise UpstreamFailure("Payment gateway returned no token", order_id=order_id)
        return PaymentSession(token=str(token), redirect_url=raw.get("redirect_url"))


class FakeGateway:
    backend = "fake"

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.calls: list[dict[str, Any]] = []

    def create_transaction(
        self,
        order_id: str,
        gross_amount: int,
        customer: CustomerDetails | None = None,
    ) -> PaymentSession:
        self.calls.append({"order_id": order_id, "gross_amount": gross_amount})
        digest = hashlib.sha256(f"{order_id}:{gross_amount}:{len(self.calls)}".encode("utf-8")).hexdigest()
        token = f"fake-{digest[:32]}"
        return PaymentSession(
            token=token,
            redirect_url=f"{self.settings.site_url.rstrip('/')}/fake-snap/{token}",
        )


def build_gateway(settings: Settings | None = None) -> PaymentGateway:
    settings = settings or get_settings()
    if settings.gateway_mode == "fake":
        return FakeGateway(settings)
    if settings.gateway_mode == "midtrans":
        return SnapGatewayClient(settings)
    raise ValueError(f"unknown gateway mode: {settings.gateway_mode}")
