from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship

from casa_cart.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(64), nullable=False)
    size = Column(String(16), nullable=False, default="M")

    quantity = Column(Integer, nullable=False)
    # snapshot of the catalog price when the line was first added, never updated
    price_at_add = Column(Numeric(12, 2), nullable=False)
    added_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    cart = relationship("CartModel", back_populates="items")

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "size", name="u_cart_product_size"),
        CheckConstraint("quantity >= 1", name="ck_cart_item_quantity"),
    )
