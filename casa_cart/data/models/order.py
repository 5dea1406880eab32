from sqlalchemy import Column, Integer, String, DateTime, Numeric, Text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from casa_cart.data.database import Base
from casa_cart.domain.order_status import DeliveryStatus, PaymentStatus


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user = Column(String(64), nullable=False, index=True)
    # phone of the cart this order was converted from, null for direct creates
    phone = Column(String(32), nullable=True, index=True)

    delivery_status = Column(String(32), nullable=False, default=DeliveryStatus.PENDING.value)
    payment_status = Column(String(16), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(32), nullable=True)

    address = Column(Text, nullable=False)
    estimated_delivery = Column(DateTime(timezone=True), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)

    checkout_key = Column(String(64), nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    products = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
        lazy="selectin",
    )
