# casa_cart/repos/cart_repo.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import List

from sqlalchemy import select, update, delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from casa_cart.data.models.cart import CartModel
from casa_cart.data.models.cart_item import CartItemModel
from casa_cart.domain.errors import PersistenceError
from casa_cart.domain.money import ZERO


class CartRepo:
    """
    Cart persistence. Line items are only ever changed with single row
    statements (upsert-increment, conditional update, delete), never by
    rewriting the whole item list.
    """

    def __init__(self, db: Session):
        self.db = db

    def _insert(self, model):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(model)
        if dialect == "sqlite":
            return sqlite_insert(model)
        raise PersistenceError(f"Unsupported database dialect: {dialect}")

    # carts
    def get_by_phone(self, phone: str) -> CartModel | None:
        stmt = select(CartModel).where(CartModel.phone == phone)
        return self.db.execute(stmt).scalar_one_or_none()

    def lock_by_phone(self, phone: str) -> CartModel | None:
        # row lock serializes every mutation of one cart until commit
        stmt = (
            select(CartModel)
            .where(CartModel.phone == phone)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def ensure_cart(self, phone: str) -> None:
        now = datetime.now(timezone.utc)
        stmt = (
            self._insert(CartModel)
            .values(
                phone=phone,
                total_items=0,
                total_amount=ZERO,
                version=1,
                created_at=now,
                updated_at=now,
                last_activity=now,
            )
            .on_conflict_do_nothing(index_elements=["phone"])
        )
        self.db.execute(stmt)

    def delete_cart(self, cart_id: int, expected_version: int | None = None) -> int:
        stmt = delete(CartModel).where(CartModel.id == cart_id)
        if expected_version is not None:
            stmt = stmt.where(CartModel.version == expected_version)

        rowcount = self.db.execute(stmt).rowcount
        if rowcount:
            self.db.execute(delete(CartItemModel).where(CartItemModel.cart_id == cart_id))
        return rowcount

    def list_stale(self, cutoff: datetime) -> List[CartModel]:
        stmt = select(CartModel).where(CartModel.last_activity < cutoff)
        return list(self.db.execute(stmt).scalars().all())

    # items
    def get_items(self, cart_id: int) -> List[CartItemModel]:
        stmt = (
            select(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .order_by(CartItemModel.id)
            .execution_options(populate_existing=True)
        )
        return list(self.db.execute(stmt).scalars().all())

    def upsert_item(
        self,
        cart_id: int,
        product_id: str,
        size: str,
        quantity: int,
        price: Decimal,
    ) -> None:
        stmt = self._insert(CartItemModel).values(
            cart_id=cart_id,
            product_id=product_id,
            size=size,
            quantity=quantity,
            price_at_add=price,
            added_at=datetime.now(timezone.utc),
        )
        # on conflict only the quantity moves, price_at_add keeps the first snapshot
        stmt = stmt.on_conflict_do_update(
            index_elements=["cart_id", "product_id", "size"],
            set_={"quantity": CartItemModel.__table__.c.quantity + stmt.excluded.quantity},
        )
        self.db.execute(stmt)

    def set_item_quantity(self, cart_id: int, product_id: str, size: str, quantity: int) -> int:
        stmt = (
            update(CartItemModel)
            .where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
                CartItemModel.size == size,
            )
            .values(quantity=quantity)
        )
        return self.db.execute(stmt).rowcount

    def delete_items(self, cart_id: int, product_id: str, size: str | None = None) -> int:
        stmt = delete(CartItemModel).where(
            CartItemModel.cart_id == cart_id,
            CartItemModel.product_id == product_id,
        )
        if size is not None:
            stmt = stmt.where(CartItemModel.size == size)
        return self.db.execute(stmt).rowcount

    def clear_items(self, cart_id: int) -> int:
        stmt = delete(CartItemModel).where(CartItemModel.cart_id == cart_id)
        return self.db.execute(stmt).rowcount

    def apply_merge(self, merged, dropped) -> None:
        for item, quantity in merged:
            if item.quantity != quantity:
                item.quantity = quantity
        for item in dropped:
            self.db.delete(item)
        self.db.flush()

    def refresh_totals(self, cart: CartModel) -> List[CartItemModel]:
        """Recompute derived totals from the stored items and stamp the mutation."""
        items = self.get_items(cart.id)
        now = datetime.now(timezone.utc)

        cart.total_items = sum(i.quantity for i in items)
        cart.total_amount = sum((Decimal(i.price_at_add) * i.quantity for i in items), ZERO)
        cart.version = cart.version + 1
        cart.updated_at = now
        cart.last_activity = now

        self.db.flush()
        return items

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
