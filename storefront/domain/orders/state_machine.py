from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from storefront.core.errors import InvalidTransition


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    SHIPPED = "shipped"
    COMPLETED = "completed"


class OrderEvent(str, Enum):
    GATEWAY_PAID = "gateway_paid"
    GATEWAY_FAILED = "gateway_failed"
    GATEWAY_PENDING = "gateway_pending"
    CUSTOMER_CANCEL = "customer_cancel"
    ADMIN_SHIP = "admin_ship"
    CUSTOMER_CONFIRM = "customer_confirm"


@dataclass(frozen=True)
class Transition:
    source: OrderStatus
    event: OrderEvent
    target: OrderStatus
    actor: str


TRANSITIONS: tuple[Transition, ...] = (
    Transition(OrderStatus.PENDING, OrderEvent.GATEWAY_PAID, OrderStatus.PAID, "gateway"),
    Transition(OrderStatus.PENDING, OrderEvent.GATEWAY_FAILED, OrderStatus.FAILED, "gateway"),
    Transition(OrderStatus.PENDING, OrderEvent.GATEWAY_PENDING, OrderStatus.PENDING, "gateway"),
    Transition(OrderStatus.PENDING, OrderEvent.CUSTOMER_CANCEL, OrderStatus.FAILED, "customer"),
    Transition(OrderStatus.PAID, OrderEvent.ADMIN_SHIP, OrderStatus.SHIPPED, "admin"),
    Transition(OrderStatus.SHIPPED, OrderEvent.CUSTOMER_CONFIRM, OrderStatus.COMPLETED, "customer"),
)

_TABLE: dict[tuple[OrderStatus, OrderEvent], Transition] = {(t.source, t.event): t for t in TRANSITIONS}

TERMINAL_STATES = frozenset({OrderStatus.FAILED, OrderStatus.COMPLETED})

INITIAL_STATUS = OrderStatus.PENDING

_REJECTIONS = {
    OrderEvent.CUSTOMER_CANCEL: "Only pending orders can be cancelled",
    OrderEvent.ADMIN_SHIP: "Only paid orders can be shipped",
    OrderEvent.CUSTOMER_CONFIRM: "Order must be shipped before completion",
}

# Gateway outcomes reported as an internal status, translated to events.
_GATEWAY_EVENTS = {
    OrderStatus.PAID: OrderEvent.GATEWAY_PAID,
    OrderStatus.FAILED: OrderEvent.GATEWAY_FAILED,
    OrderStatus.PENDING: OrderEvent.GATEWAY_PENDING,
}


def find_transition(current: OrderStatus | str, event: OrderEvent) -> Transition | None:
    return _TABLE.get((OrderStatus(current), event))


def can_apply(current: OrderStatus | str, event: OrderEvent) -> bool:
    return find_transition(current, event) is not None


def next_status(current: OrderStatus | str, event: OrderEvent) -> OrderStatus:
    """Return the status reached by ``event`` or raise ``InvalidTransition``.

    There is no default transition: anything absent from ``TRANSITIONS`` is
    rejected, which also makes ``failed`` and ``completed`` terminal.
    """
    status = OrderStatus(current)
    transition = _TABLE.get((status, event))
    if transition is None:
        reason = _REJECTIONS.get(event, f"cannot apply {event.value} to a {status.value} order")
        raise InvalidTransition(reason, current_status=status.value)
    return transition.target


def gateway_event(mapped: OrderStatus | str) -> OrderEvent:
    status = OrderStatus(mapped)
    try:
        return _GATEWAY_EVENTS[status]
    except KeyError:
        raise ValueError(f"gateway cannot report status {status.value}") from None
