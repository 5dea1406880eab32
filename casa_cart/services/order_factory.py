# casa_cart/services/order_factory.py
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, List

from casa_cart.data.models.cart_item import CartItemModel
from casa_cart.data.models.order import OrderModel
from casa_cart.data.models.order_item import OrderItemModel
from casa_cart.domain.errors import EmptyCartError, ValidationError
from casa_cart.domain.money import MAX_AMOUNT, ZERO, to_money
from casa_cart.domain.order_status import (
    DeliveryStatus,
    PaymentStatus,
    assert_payment_transition,
)
from casa_cart.utils.settings import DEFAULT_SIZE, ESTIMATED_DELIVERY_DAYS, MAX_LINE_QUANTITY


@dataclass(frozen=True)
class OrderLine:
    product_id: str
    quantity: int
    unit_price: Decimal
    size: str = DEFAULT_SIZE


def lines_from_cart(items: Iterable[CartItemModel]) -> List[OrderLine]:
    return [
        OrderLine(
            product_id=i.product_id,
            quantity=i.quantity,
            unit_price=to_money(i.price_at_add),
            size=i.size,
        )
        for i in items
    ]


def default_estimated_delivery(now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(days=ESTIMATED_DELIVERY_DAYS)


class OrderFactory:
    """
    The only place orders are born.

    Builds an unsaved ``OrderModel`` from a list of lines. Every line keeps
    product, size, quantity and unit price, so the order stays a complete
    record of the purchase after the cart is gone. Delivery always starts at
    Pending; the initial payment status must be reachable from Pending.
    """

    def build(
        self,
        user: str,
        lines: List[OrderLine],
        address: str,
        estimated_delivery: datetime | None,
        payment_status: PaymentStatus | str = PaymentStatus.PENDING,
        payment_method: str | None = None,
        phone: str | None = None,
        checkout_key: str | None = None,
    ) -> OrderModel:
        if not user:
            raise ValidationError("Order requires a user")

        if not lines:
            raise EmptyCartError("Cannot create an order without products")

        if not address or not address.strip():
            raise ValidationError("Order requires a delivery address")

        if estimated_delivery is None:
            raise ValidationError("Order requires an estimated delivery date")

        status = assert_payment_transition(PaymentStatus.PENDING, payment_status)

        products = []
        for line in lines:
            if not line.product_id:
                raise ValidationError("Every order line needs a product")
            if line.quantity < 1:
                raise ValidationError(f"Quantity for {line.product_id} must be at least 1")
            if line.quantity > MAX_LINE_QUANTITY:
                raise ValidationError(f"Quantity for {line.product_id} cannot exceed {MAX_LINE_QUANTITY}")

            unit_price = to_money(line.unit_price)
            if unit_price < 0:
                raise ValidationError(f"Price for {line.product_id} cannot be negative")

            products.append(
                OrderItemModel(
                    product_id=line.product_id,
                    size=line.size or DEFAULT_SIZE,
                    quantity=line.quantity,
                    unit_price=unit_price,
                )
            )

        total = sum((p.unit_price * p.quantity for p in products), ZERO)
        if total > MAX_AMOUNT:
            raise ValidationError("Order total is too large")

        return OrderModel(
            user=user,
            phone=phone,
            products=products,
            address=address.strip(),
            estimated_delivery=estimated_delivery,
            delivery_status=DeliveryStatus.PENDING.value,
            payment_status=status.value,
            payment_method=payment_method,
            total_amount=total,
            checkout_key=checkout_key,
        )
