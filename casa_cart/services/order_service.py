# casa_cart/services/order_service.py
from datetime import datetime
from typing import Dict, Any, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from casa_cart.data.models.order import OrderModel
from casa_cart.domain.errors import InvalidTransition, OrderNotFound, PersistenceError, ValidationError
from casa_cart.domain.money import to_money
from casa_cart.domain.order_status import (
    DeliveryStatus,
    EDITABLE_DELIVERY_STATES,
    assert_delivery_transition,
    assert_payment_transition,
    parse_delivery_status,
)
from casa_cart.repos.order_repo import OrderRepo
from casa_cart.services.notification_service import NotificationService
from casa_cart.services.order_factory import OrderFactory, OrderLine
from casa_cart.services.price_resolver import PriceSnapshotResolver
from casa_cart.utils.settings import DEFAULT_SIZE
from casa_cart.utils.logging import get_logger

logger = get_logger(__name__)

_UPDATABLE_FIELDS = {"delivery_status", "payment_status", "address", "estimated_delivery"}


def serialize_order(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "user": order.user,
        "phone": order.phone,
        "products": [
            {
                "product_id": p.product_id,
                "quantity": p.quantity,
                "size": p.size,
                "unit_price": p.unit_price,
            }
            for p in order.products
        ],
        "delivery_status": order.delivery_status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "address": order.address,
        "estimated_delivery": order.estimated_delivery,
        "total_amount": order.total_amount,
        "checkout_key": order.checkout_key,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


class OrderService:
    """
    Order use cases: direct creation, queries, status updates and the
    administrative delete. Status fields only move along the lifecycle
    state machines.
    """

    def __init__(
        self,
        db: Session,
        price_resolver: PriceSnapshotResolver | None = None,
        notifier: NotificationService | None = None,
    ):
        self.repo = OrderRepo(db)
        self.factory = OrderFactory()
        self.price_resolver = price_resolver
        self.notifier = notifier or NotificationService()

    def _commit(self) -> None:
        try:
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Order transaction failed: {e}")
            raise PersistenceError("Order storage failure") from e

    def _get(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")
        return order

    def _line(self, product: Dict[str, Any]) -> OrderLine:
        price = product.get("price_at_add")
        if price is None:
            # no snapshot from the client, fall back to the current catalog price
            if self.price_resolver is None:
                raise ValidationError(f"Missing price for product {product.get('product_id')}")
            price = self.price_resolver.resolve(product["product_id"])

        return OrderLine(
            product_id=product["product_id"],
            quantity=product.get("quantity") or 1,
            unit_price=to_money(price),
            size=product.get("size") or DEFAULT_SIZE,
        )

    def create_order(
        self,
        user: str,
        products: List[Dict[str, Any]],
        address: str,
        estimated_delivery: datetime,
        payment_status: str,
        payment_method: str | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: direct order creation from a client supplied product list.

        This is one half of the legacy two-call checkout; the cart is not
        touched here.
        """
        lines = [self._line(p) for p in products]

        order = self.factory.build(
            user=user,
            lines=lines,
            address=address,
            estimated_delivery=estimated_delivery,
            payment_status=payment_status,
            payment_method=payment_method,
        )

        try:
            self.repo.create_order(order)
        except SQLAlchemyError as e:
            self.repo.rollback()
            raise PersistenceError("Order storage failure") from e
        self._commit()

        logger.info(f"Order {order.id} created for user {user}, total {order.total_amount}")
        self.notifier.send_order_notification(user, order.id)

        return serialize_order(order)

    def get_order(self, order_id: int) -> Dict[str, Any]:
        return serialize_order(self._get(order_id))

    def list_orders(self) -> List[Dict[str, Any]]:
        return [serialize_order(o) for o in self.repo.list_orders()]

    def list_user_orders(self, user: str) -> List[Dict[str, Any]]:
        return [serialize_order(o) for o in self.repo.list_by_user(user)]

    def update_order(self, order_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Use Case: partial order update.

        delivery/payment status go through the transition tables, address and
        estimated delivery can only change before the order ships.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        if not changes:
            raise ValidationError("Nothing to update")

        order = self._get(order_id)
        current_delivery = parse_delivery_status(order.delivery_status)

        # validate everything before touching the row
        delivery = None
        if changes.get("delivery_status") is not None:
            delivery = assert_delivery_transition(current_delivery, changes["delivery_status"])

        payment = None
        if changes.get("payment_status") is not None:
            payment = assert_payment_transition(order.payment_status, changes["payment_status"])

        edits_shipping = any(changes.get(f) is not None for f in ("address", "estimated_delivery"))
        if edits_shipping and current_delivery not in EDITABLE_DELIVERY_STATES:
            raise InvalidTransition(
                f"Address and delivery date are locked once an order is {current_delivery.value}"
            )

        address = changes.get("address")
        if address is not None and not address.strip():
            raise ValidationError("Address cannot be empty")

        if delivery is not None:
            order.delivery_status = delivery.value
        if payment is not None:
            order.payment_status = payment.value
        if address is not None:
            order.address = address.strip()
        if changes.get("estimated_delivery") is not None:
            order.estimated_delivery = changes["estimated_delivery"]

        self._commit()

        logger.info(
            f"Order {order.id} updated: delivery={order.delivery_status} payment={order.payment_status}"
        )
        return serialize_order(order)

    def cancel_order(self, order_id: int) -> Dict[str, Any]:
        return self.update_order(order_id, {"delivery_status": DeliveryStatus.CANCELLED.value})

    def delete_order(self, order_id: int) -> None:
        order = self._get(order_id)
        try:
            self.repo.delete_order(order)
        except SQLAlchemyError as e:
            self.repo.rollback()
            raise PersistenceError("Order storage failure") from e
        self._commit()
        logger.info(f"Order {order_id} deleted")
