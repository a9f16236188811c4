from storefront.checkout.orchestrator import (
    CheckoutOrchestrator,
    CheckoutRequest,
    CheckoutResult,
    ResumePaymentRequest,
)

__all__ = [
    "CheckoutOrchestrator",
    "CheckoutRequest",
    "CheckoutResult",
    "ResumePaymentRequest",
]
