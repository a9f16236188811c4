from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class StorefrontAPIError(RuntimeError):
    def __init__(self, status_code: int, body: dict[str, Any]):
        super().__init__(body.get("message") or body.get("error") or f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body

    @property
    def error(self) -> str | None:
        return self.body.get("error")


class StorefrontClient:
    """Thin HTTP client for the storefront API.

    ``http`` may be any ``httpx.Client``; tests pass FastAPI's ``TestClient``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: str | None = None,
        http: httpx.Client | None = None,
        timeout_seconds: float = 15.0,
    ):
        self.token = token
        self._owns_http = http is None
        self.http = http or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout_seconds)

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> StorefrontClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = self.http.request(method, path, json=json_body, params=params, headers=self._headers())
        try:
            payload = response.json()
        except ValueError:
            payload = {"error": "invalid_response", "message": response.text[:500]}
        if response.status_code >= 400:
            logger.debug("%s %s -> %s %s", method, path, response.status_code, payload)
            raise StorefrontAPIError(response.status_code, payload if isinstance(payload, dict) else {})
        return payload

    def get_cart(self) -> dict[str, Any]:
        return self._request("GET", "/cart")

    def put_cart_item(self, product_id: str, quantity: int) -> dict[str, Any]:
        return self._request("POST", "/cart/items", json_body={"product_id": product_id, "quantity": quantity})

    def list_products(self, **params: Any) -> list[dict[str, Any]]:
        return self._request("GET", "/products", params=params or None)["products"]

    def checkout(self, shipping_address: str, shipping_method: str = "standard", **customer: Any) -> dict[str, Any]:
        body = {"shipping_address": shipping_address, "shipping_method": shipping_method}
        body.update({key: value for key, value in customer.items() if value is not None})
        return self._request("POST", "/payments/checkout", json_body=body)

    def resume_payment(self, order_id: str) -> dict[str, Any]:
        return self._request("POST", "/payments/resume", json_body={"order_id": order_id})

    def order_status(self, order_id: str) -> str:
        return self._request("GET", f"/orders/{order_id}/status")["status"]

    def cancel_order(self, order_id: str) -> dict[str, Any]:
        return self._request("POST", f"/orders/{order_id}/cancel")

    def complete_order(self, order_id: str) -> dict[str, Any]:
        return self._request("POST", f"/orders/{order_id}/complete")

    def list_orders(self) -> list[dict[str, Any]]:
        return self._request("GET", "/orders")["orders"]

    def admin_list_orders(self, status: str | None = None) -> list[dict[str, Any]]:
        params = {"status": status} if status else None
        return self._request("GET", "/admin/orders", params=params)["orders"]
