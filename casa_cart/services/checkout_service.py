# casa_cart/services/checkout_service.py
import uuid
from typing import Dict, Any, Tuple

from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from casa_cart.data.models.order import OrderModel
from casa_cart.domain.errors import (
    CheckoutInProgress,
    ConcurrencyConflict,
    EmptyCartError,
    PersistenceError,
    ValidationError,
)
from casa_cart.domain.order_status import payment_status_for_method
from casa_cart.repos.cart_repo import CartRepo
from casa_cart.repos.order_repo import OrderRepo
from casa_cart.services.cart_service import CartService
from casa_cart.services.lock_service import LockService
from casa_cart.services.notification_service import NotificationService
from casa_cart.services.order_factory import OrderFactory, default_estimated_delivery, lines_from_cart
from casa_cart.services.order_service import serialize_order
from casa_cart.utils.settings import CHECKOUT_LOCK_TTL_SECONDS
from casa_cart.utils.logging import get_logger

logger = get_logger(__name__)


class CheckoutService:
    """
    Turns a cart into an order and retires the cart.

    1. replay: an order with the same checkout key is returned as is
    2. per-phone redis lock, a second concurrent checkout gets 409
    3. cart is locked and merged, empty cart -> 400 and nothing changes
    4. order insert + version guarded cart delete in ONE transaction
    5. notification after commit
    """

    def __init__(
        self,
        db: Session,
        cart_service: CartService,
        lock_service: LockService,
        notifier: NotificationService | None = None,
    ):
        self.db = db
        self.carts = cart_service
        self.cart_repo = CartRepo(db)
        self.orders = OrderRepo(db)
        self.factory = OrderFactory()
        self.lock_service = lock_service
        self.notifier = notifier or NotificationService()

    def checkout(
        self,
        phone: str,
        user: str,
        address: str,
        payment_method: str | None = None,
        payment_status: str | None = None,
        checkout_key: str | None = None,
    ) -> Dict[str, Any]:
        if not phone:
            raise ValidationError("Phone number is required")

        if checkout_key:
            existing = self.orders.get_by_checkout_key(checkout_key)
            if existing:
                logger.info(f"Checkout key {checkout_key} already used by order {existing.id}, replaying")
                return serialize_order(existing)

        token = uuid.uuid4().hex
        try:
            locked = self.lock_service.acquire_checkout_lock(phone, token, ttl=CHECKOUT_LOCK_TTL_SECONDS)
        except RedisError as e:
            raise PersistenceError("Checkout lock unavailable") from e

        if not locked:
            raise CheckoutInProgress(f"Checkout already running for {phone}")

        try:
            order, created = self._place_order(
                phone, user, address, payment_method, payment_status, checkout_key
            )
        finally:
            self._release(phone, token)

        if created:
            self.notifier.send_order_notification(order.user, order.id)
        return serialize_order(order)

    def _release(self, phone: str, token: str) -> None:
        try:
            self.lock_service.release_checkout_lock(phone, token)
        except RedisError as e:
            # lock has a TTL, it will go away by itself
            logger.warning(f"Failed to release checkout lock for {phone}: {e}")

    def _place_order(
        self,
        phone: str,
        user: str,
        address: str,
        payment_method: str | None,
        payment_status: str | None,
        checkout_key: str | None,
    ) -> Tuple[OrderModel, bool]:
        """Returns the order and whether this call created it."""
        try:
            cart, items = self.carts.load_for_checkout(phone)
            if cart is None or not items:
                raise EmptyCartError(f"Cart for {phone} is empty")

            order = self.factory.build(
                user=user,
                lines=lines_from_cart(items),
                address=address,
                estimated_delivery=default_estimated_delivery(),
                payment_status=payment_status or payment_status_for_method(payment_method),
                payment_method=payment_method,
                phone=phone,
                checkout_key=checkout_key,
            )
            self.orders.create_order(order)

            # cart must still be the one we priced, otherwise nothing is written
            if not self.cart_repo.delete_cart(cart.id, expected_version=cart.version):
                raise ConcurrencyConflict(f"Cart for {phone} changed during checkout")

            self.db.commit()

        except IntegrityError as e:
            self.db.rollback()
            if checkout_key:
                existing = self.orders.get_by_checkout_key(checkout_key)
                if existing:
                    logger.info(f"Checkout key {checkout_key} was committed concurrently, replaying")
                    return existing, False
            logger.error(f"Checkout for {phone} hit an integrity error: {e}")
            raise ConcurrencyConflict("Checkout collided with another write") from e

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Checkout for {phone} failed: {e}")
            raise PersistenceError("Order storage failure") from e

        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Cart {cart.id} converted to order {order.id} "
            f"({len(items)} lines, total {order.total_amount})"
        )
        return order, True
