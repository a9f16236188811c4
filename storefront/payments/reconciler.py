from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from storefront.core.config import Settings, get_settings
from storefront.core.errors import SignatureInvalid, ValidationError
from storefront.domain.orders.service import OrderService
from storefront.domain.orders.state_machine import OrderStatus
from storefront.payments.signature import verify_signature
from storefront.persistence.models import PaymentLogModel

logger = logging.getLogger(__name__)

FAILED_TRANSACTION_STATUSES = frozenset({"deny", "cancel", "expire", "failure"})

_TEXT_FIELDS = (
    "order_id",
    "status_code",
    "gross_amount",
    "signature_key",
    "transaction_status",
    "fraud_status",
    "transaction_id",
    "payment_type",
)


def extract_fields(body: dict[str, Any]) -> dict[str, str | None]:
    # Non-string values are treated as absent, same as a missing key.
    return {name: body.get(name) if isinstance(body.get(name), str) else None for name in _TEXT_FIELDS}


def map_transaction_status(transaction_status: str | None, fraud_status: str | None) -> OrderStatus | None:
    if not transaction_status:
        return None
    if transaction_status == "settlement":
        return OrderStatus.PAID
    if transaction_status == "capture":
        return OrderStatus.PAID if fraud_status == "accept" else OrderStatus.PENDING
    if transaction_status in FAILED_TRANSACTION_STATUSES:
        return OrderStatus.FAILED
    if transaction_status == "pending":
        return OrderStatus.PENDING
    return None


@dataclass
class ReconcileResult:
    order_id: str
    order_status: str | None
    applied: bool
    log_id: int
    current_status: str | None = None

    def to_response(self) -> dict[str, Any]:
        return {
            "ok": True,
            "order_id": self.order_id,
            "order_status": self.order_status,
            "applied": self.applied,
            "current_status": self.current_status,
        }


class PaymentCallbackReconciler:
    def __init__(self, session: Session, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    def _append_log(self, fields: dict[str, str | None], body: dict[str, Any]) -> PaymentLogModel:
        row = PaymentLogModel(
            order_id=fields["order_id"],
            external_id=fields["transaction_id"],
            status=fields["transaction_status"],
            raw_payload=body,
        )
        self.session.add(row)
        self.session.flush()
        return row

    def handle(self, body: dict[str, Any]) -> ReconcileResult:
        """Verify, log, then map one gateway notification.

        The log row is committed on its own before the order is touched, so a
        failure while applying the status still leaves the audit trail.
        """
        fields = extract_fields(body)
        order_id = fields["order_id"]
        if not order_id:
            raise ValidationError("order_id is required")
        if not verify_signature(fields, self.settings.gateway_server_key):
            logger.warning("rejected webhook for order %s: invalid signature", order_id)
            raise SignatureInvalid("Invalid signature", order_id=order_id)

        log = self._append_log(fields, body)
        self.session.commit()
        logger.info(
            "payment log %s for order %s transaction_status=%s fraud_status=%s",
            log.id,
            order_id,
            fields["transaction_status"],
            fields["fraud_status"],
        )

        mapped = map_transaction_status(fields["transaction_status"], fields["fraud_status"])
        if mapped is None:
            logger.info(
                "no status mapping for transaction_status=%s on order %s",
                fields["transaction_status"],
                order_id,
            )
            return ReconcileResult(order_id=order_id, order_status=None, applied=False, log_id=log.id)

        outcome = OrderService(self.session).apply_gateway_status(
            order_id,
            mapped,
            payment_id=fields["transaction_id"],
            payment_type=fields["payment_type"],
        )
        if outcome.order is None:
            return ReconcileResult(order_id=order_id, order_status=None, applied=False, log_id=log.id)
        return ReconcileResult(
            order_id=order_id,
            order_status=mapped.value,
            applied=outcome.applied,
            log_id=log.id,
            current_status=outcome.order.status,
        )
