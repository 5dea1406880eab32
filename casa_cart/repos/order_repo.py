# casa_cart/repos/order_repo.py
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from casa_cart.data.models.order import OrderModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_by_checkout_key(self, checkout_key: str) -> OrderModel | None:
        stmt = select(OrderModel).where(OrderModel.checkout_key == checkout_key)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_orders(self) -> List[OrderModel]:
        stmt = select(OrderModel).order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
        return list(self.db.execute(stmt).scalars().all())

    def list_by_user(self, user: str) -> List[OrderModel]:
        stmt = (
            select(OrderModel)
            .where(OrderModel.user == user)
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def delete_order(self, order: OrderModel) -> None:
        self.db.delete(order)
        self.db.flush()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
