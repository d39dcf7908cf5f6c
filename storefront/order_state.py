"""
Order lifecycle state machine. Both transition graphs are defined once here;
the engines (apply_*) and the admin advisor (next_*) read the same tables.
"""
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from storefront.errors import ForbiddenError, InvalidTransitionError

if TYPE_CHECKING:
    from storefront.models import Order


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    GATEWAY = "gateway"
    DELIVERY = "delivery"


# Current status -> allowed next status
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),  # terminal
    OrderStatus.CANCELLED: frozenset(),  # terminal
}

# failed -> completed is a manual override after an out-of-band retry
PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.COMPLETED: frozenset(),  # terminal
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING, PaymentStatus.COMPLETED}),
}

# Payment status a pending payment takes when the order reaches this status
_PAYMENT_CASCADE: dict[OrderStatus, PaymentStatus] = {
    OrderStatus.DELIVERED: PaymentStatus.COMPLETED,
    OrderStatus.CANCELLED: PaymentStatus.FAILED,
}


def next_order_statuses(current: OrderStatus) -> frozenset[OrderStatus]:
    return ORDER_TRANSITIONS.get(current, frozenset())


def next_payment_statuses(current: PaymentStatus) -> frozenset[PaymentStatus]:
    return PAYMENT_TRANSITIONS.get(current, frozenset())


def is_terminal(status: OrderStatus) -> bool:
    return not next_order_statuses(status)


def can_update_payment_status(method: PaymentMethod, payment_status: PaymentStatus) -> bool:
    """False for prepaid orders: a gateway charge that completed cannot be edited."""
    return not (method == PaymentMethod.GATEWAY and payment_status == PaymentStatus.COMPLETED)


def cascade_payment_status(target: OrderStatus, payment_status: PaymentStatus) -> PaymentStatus:
    """Payment status after the order moves to `target`. Only a pending payment is touched."""
    if payment_status != PaymentStatus.PENDING:
        return payment_status
    return _PAYMENT_CASCADE.get(target, payment_status)


def apply_status_transition(order: Order, target: OrderStatus) -> tuple[Order, OrderStatus]:
    """
    Move the order to `target` and cascade the payment status.
    Returns (updated copy, previous status). Raises InvalidTransitionError.
    """
    current = order.status
    if target not in next_order_statuses(current):
        raise InvalidTransitionError(current.value, target.value, field="status")
    updated = order.model_copy(update={
        "status": target,
        "payment_status": cascade_payment_status(target, order.payment_status),
    })
    return updated, current


def apply_payment_transition(order: Order, target: PaymentStatus) -> tuple[Order, PaymentStatus]:
    """
    Move the payment to `target`; order status is untouched.
    Returns (updated copy, previous payment status).
    Raises ForbiddenError for prepaid orders, InvalidTransitionError otherwise.
    """
    current = order.payment_status
    if not can_update_payment_status(order.payment_method, current):
        raise ForbiddenError("Payment was completed through the payment gateway and cannot be changed")
    if target not in next_payment_statuses(current):
        raise InvalidTransitionError(current.value, target.value, field="paymentStatus")
    return order.model_copy(update={"payment_status": target}), current
