from storefront.payments.gateway import (
    CustomerDetails,
    FakeGateway,
    PaymentGateway,
    PaymentSession,
    SnapGatewayClient,
    build_gateway,
)
from storefront.payments.reconciler import PaymentCallbackReconciler, ReconcileResult, map_transaction_status
from storefront.payments.signature import compute_signature, verify_signature

__all__ = [
    "CustomerDetails",
    "FakeGateway",
    "PaymentCallbackReconciler",
    "PaymentGateway",
    "PaymentSession",
    "ReconcileResult",
    "SnapGatewayClient",
    "build_gateway",
    "compute_signature",
    "map_transaction_status",
    "verify_signature",
]
