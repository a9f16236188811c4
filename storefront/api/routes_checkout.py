from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storefront.checkout import CheckoutOrchestrator, CheckoutRequest, ResumePaymentRequest
from storefront.core.config import get_settings
from storefront.core.errors import StorefrontError, ValidationError
from storefront.core.security import Actor, get_actor
from storefront.payments import PaymentCallbackReconciler, PaymentGateway, build_gateway
from storefront.persistence.pg import get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


def get_gateway() -> PaymentGateway:
    return build_gateway(get_settings())


@router.post("/checkout")
def checkout(
    body: CheckoutRequest,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_gateway),
):
    try:
        result = CheckoutOrchestrator(session, gateway=gateway).checkout(actor, body)
    except StorefrontError:
        raise
    except Exception:
        session.rollback()
        logger.exception("checkout failed for user %s", actor.user_id)
        return JSONResponse(
            status_code=500,
            content={"error": "checkout_failed", "message": "Checkout could not be completed"},
        )
    return result.to_response()


@router.post("/resume")
def resume_payment(
    body: ResumePaymentRequest,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_gateway),
):
    return CheckoutOrchestrator(session, gateway=gateway).resume_payment(actor, body.order_id)


@router.post("/webhook")
def payment_webhook(
    payload: Any = Body(default=None),
    session: Session = Depends(get_session),
):
    if not isinstance(payload, dict):
        raise ValidationError("notification body must be a JSON object")
    try:
        result = PaymentCallbackReconciler(session).handle(payload)
    except StorefrontError:
        raise
    except Exception:
        session.rollback()
        logger.exception("webhook processing failed for order %s", payload.get("order_id"))
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "Webhook processing failed", "message": "Internal error"},
        )
    return result.to_response()
