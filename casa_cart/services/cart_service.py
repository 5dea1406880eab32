# casa_cart/services/cart_service.py
from contextlib import contextmanager
from decimal import Decimal
from typing import Dict, Any, List, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from casa_cart.data.models.cart import CartModel
from casa_cart.data.models.cart_item import CartItemModel
from casa_cart.domain.errors import CartNotFound, ItemNotFound, PersistenceError, ValidationError
from casa_cart.domain.money import ZERO, to_money
from casa_cart.repos.cart_repo import CartRepo
from casa_cart.services.cart_merger import MergeResult, merge_duplicate_items
from casa_cart.services.price_resolver import PriceSnapshotResolver
from casa_cart.utils.settings import DEFAULT_SIZE, MAX_LINE_QUANTITY
from casa_cart.utils.logging import get_logger

logger = get_logger(__name__)


def serialize_cart(cart: CartModel, items: List[CartItemModel]) -> Dict[str, Any]:
    return {
        "id": cart.id,
        "phone": cart.phone,
        "items": [
            {
                "id": i.id,
                "product_id": i.product_id,
                "quantity": i.quantity,
                "size": i.size,
                "price_at_add": i.price_at_add,
                "added_at": i.added_at,
            }
            for i in items
        ],
        "total_items": cart.total_items,
        "total_amount": cart.total_amount,
        "updated_at": cart.updated_at,
    }


def empty_cart(phone: str) -> Dict[str, Any]:
    return {
        "id": None,
        "phone": phone,
        "items": [],
        "total_items": 0,
        "total_amount": ZERO,
        "updated_at": None,
    }


def _require(**fields) -> None:
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


class CartService:
    """
    Cart aggregate store, one cart per phone number.

    commands (get_or_create, add, update, remove, clear, delete) lock the cart
    row, change lines with single row statements and refresh the totals in the
    same transaction; the query (get_cart) runs the merge repair pass first.
    """

    def __init__(self, db: Session, price_resolver: PriceSnapshotResolver | None = None):
        self.repo = CartRepo(db)
        self.price_resolver = price_resolver

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Cart transaction failed: {e}")
            raise PersistenceError("Cart storage failure") from e
        except Exception:
            self.repo.rollback()
            raise

    def _lock_or_create(self, phone: str) -> CartModel:
        self.repo.ensure_cart(phone)
        return self.repo.lock_by_phone(phone)

    def _lock_existing(self, phone: str) -> CartModel:
        cart = self.repo.lock_by_phone(phone)
        if not cart:
            raise CartNotFound(f"No cart for phone {phone}")
        return cart

    @staticmethod
    def _inspect(cart: CartModel, items: List[CartItemModel]) -> Tuple[MergeResult, bool]:
        """Runs the merger and reports whether the stored totals disagree with it."""
        result = merge_duplicate_items(items)
        expected_items = sum(q for _, q in result.merged)
        expected_amount = sum((Decimal(i.price_at_add) * q for i, q in result.merged), ZERO)
        stale = (
            cart.total_items != expected_items
            or to_money(cart.total_amount if cart.total_amount is not None else 0) != to_money(expected_amount)
        )
        return result, stale

    def _repair(self, cart: CartModel) -> Tuple[List[CartItemModel], bool]:
        """Merge duplicate lines and fix stale totals. Caller holds the row lock; flushes, never commits."""
        items = self.repo.get_items(cart.id)
        result, stale = self._inspect(cart, items)

        if result.changed:
            logger.info(
                f"Merging duplicate lines in cart {cart.id}: "
                f"{len(items)} -> {len(result.merged)} unique items"
            )
            self.repo.apply_merge(result.merged, result.dropped)

        if result.changed or stale:
            if stale and not result.changed:
                logger.info(f"Cart {cart.id} had stale totals, recomputing")
            return self.repo.refresh_totals(cart), True

        return result.kept, False

    #query
    def get_cart(self, phone: str) -> Dict[str, Any]:
        _require(phone=phone)

        cart = self.repo.get_by_phone(phone)
        if not cart:
            return empty_cart(phone)

        items = self.repo.get_items(cart.id)
        result, stale = self._inspect(cart, items)
        if not result.changed and not stale:
            return serialize_cart(cart, items)

        # repair writes, so it runs again on the locked, freshly loaded row
        with self._transaction():
            cart = self.repo.lock_by_phone(phone)
            if not cart:
                return empty_cart(phone)
            items, _ = self._repair(cart)

        return serialize_cart(cart, items)

    def load_for_checkout(self, phone: str) -> Tuple[CartModel | None, List[CartItemModel]]:
        """
        Locks and repairs the cart inside the caller's transaction.
        The caller commits or rolls back.
        """
        cart = self.repo.lock_by_phone(phone)
        if not cart:
            return None, []
        items, _ = self._repair(cart)
        return cart, items

    #commands
    def get_or_create(self, phone: str) -> Dict[str, Any]:
        _require(phone=phone)

        with self._transaction():
            cart = self._lock_or_create(phone)
            items = self.repo.get_items(cart.id)

        return serialize_cart(cart, items)

    def add_item(
        self,
        phone: str,
        product_id: str,
        quantity: int = 1,
        size: str = DEFAULT_SIZE,
    ) -> Dict[str, Any]:
        _require(phone=phone, product_id=product_id)

        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_LINE_QUANTITY}")

        size = size or DEFAULT_SIZE

        # catalog lookup happens before the row lock is taken
        price = self.price_resolver.resolve(product_id)

        with self._transaction():
            cart = self._lock_or_create(phone)
            self.repo.upsert_item(cart.id, product_id, size, quantity, price)
            items = self.repo.refresh_totals(cart)
            if any(i.quantity > MAX_LINE_QUANTITY for i in items):
                raise ValidationError(f"Quantity cannot exceed {MAX_LINE_QUANTITY}")

        logger.info(
            f"Added {quantity} x {product_id} ({size}) to cart {cart.id}, "
            f"total items: {cart.total_items}"
        )
        return serialize_cart(cart, items)

    def update_quantity(
        self,
        phone: str,
        product_id: str,
        size: str,
        quantity: int,
    ) -> Dict[str, Any]:
        """Sets the quantity of one line, a quantity of 0 or less removes it."""
        _require(phone=phone, product_id=product_id, size=size)

        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_LINE_QUANTITY}")

        with self._transaction():
            cart = self._lock_existing(phone)

            if quantity <= 0:
                affected = self.repo.delete_items(cart.id, product_id, size)
            else:
                affected = self.repo.set_item_quantity(cart.id, product_id, size, quantity)

            if not affected:
                raise ItemNotFound(f"Product {product_id} ({size}) is not in the cart")

            items = self.repo.refresh_totals(cart)

        logger.info(f"Cart {cart.id}: {product_id} ({size}) set to quantity {quantity}")
        return serialize_cart(cart, items)

    def remove_item(self, phone: str, product_id: str, size: str | None = None) -> Dict[str, Any]:
        _require(phone=phone, product_id=product_id)
        size = size or None

        with self._transaction():
            cart = self._lock_existing(phone)
            removed = self.repo.delete_items(cart.id, product_id, size)
            items = self.repo.refresh_totals(cart)

        logger.info(
            f"Removed {removed} line(s) of {product_id} ({size or 'all sizes'}) from cart {cart.id}"
        )
        return serialize_cart(cart, items)

    def clear(self, phone: str) -> Dict[str, Any]:
        _require(phone=phone)

        with self._transaction():
            cart = self._lock_existing(phone)
            self.repo.clear_items(cart.id)
            items = self.repo.refresh_totals(cart)

        logger.info(f"Cart {cart.id} cleared")
        return serialize_cart(cart, items)

    def delete(self, phone: str) -> None:
        _require(phone=phone)

        with self._transaction():
            cart = self._lock_existing(phone)
            self.repo.delete_cart(cart.id)

        logger.info(f"Cart {cart.id} for phone {phone} deleted")
