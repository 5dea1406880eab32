# import all models so SQLAlchemy registers them in Base.metadata

from casa_cart.data.models.cart import CartModel
from casa_cart.data.models.cart_item import CartItemModel
from casa_cart.data.models.order import OrderModel
from casa_cart.data.models.order_item import OrderItemModel

__all__ = ["CartModel", "CartItemModel", "OrderModel", "OrderItemModel"]
