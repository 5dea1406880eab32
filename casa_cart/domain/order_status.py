# casa_cart/domain/order_status.py
"""
Order lifecycle state machines.

Delivery:
    Pending -> Processing -> Shipped -> Out for Delivery -> Delivered
    Cancelled from any non-terminal state

Payment:
    Pending -> Paid | Failed | COD  (all three terminal)

Re-writing the current status is accepted as a no-op.
"""
from enum import Enum

from casa_cart.domain.errors import InvalidTransition, ValidationError


class DeliveryStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    COD = "COD"


_DELIVERY_TRANSITIONS = {
    DeliveryStatus.PENDING: {DeliveryStatus.PROCESSING, DeliveryStatus.CANCELLED},
    DeliveryStatus.PROCESSING: {DeliveryStatus.SHIPPED, DeliveryStatus.CANCELLED},
    DeliveryStatus.SHIPPED: {DeliveryStatus.OUT_FOR_DELIVERY, DeliveryStatus.CANCELLED},
    DeliveryStatus.OUT_FOR_DELIVERY: {DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED},
    DeliveryStatus.DELIVERED: set(),  # terminal
    DeliveryStatus.CANCELLED: set(),  # terminal
}

_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.COD},
    PaymentStatus.PAID: set(),
    PaymentStatus.FAILED: set(),
    PaymentStatus.COD: set(),
}

# address / ETA may still be edited while the parcel has not left
EDITABLE_DELIVERY_STATES = {DeliveryStatus.PENDING, DeliveryStatus.PROCESSING}


def parse_delivery_status(value: str | DeliveryStatus) -> DeliveryStatus:
    try:
        return DeliveryStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown delivery status: {value!r}")


def parse_payment_status(value: str | PaymentStatus) -> PaymentStatus:
    try:
        return PaymentStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown payment status: {value!r}")


def is_terminal(status: DeliveryStatus) -> bool:
    return not _DELIVERY_TRANSITIONS[status]


def assert_delivery_transition(current, target) -> DeliveryStatus:
    current = parse_delivery_status(current)
    target = parse_delivery_status(target)
    if target != current and target not in _DELIVERY_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot change delivery status from {current.value} to {target.value}"
        )
    return target


def assert_payment_transition(current, target) -> PaymentStatus:
    current = parse_payment_status(current)
    target = parse_payment_status(target)
    if target != current and target not in _PAYMENT_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot change payment status from {current.value} to {target.value}"
        )
    return target


def payment_status_for_method(label: str | None) -> PaymentStatus:
    """Map a payment method label chosen at checkout to the order's initial payment status."""
    if label and label.strip().upper() == "COD":
        return PaymentStatus.COD
    return PaymentStatus.PENDING
