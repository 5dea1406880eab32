# casa_cart/api/routers/orders.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from casa_cart.api.dependencies import get_notifier, get_product_client
from casa_cart.data.database import get_db
from casa_cart.domain.schemas import (
    MessageOut,
    OrderCreateIn,
    OrderEnvelope,
    OrderListEnvelope,
    OrderUpdateIn,
)
from casa_cart.services.notification_service import NotificationService
from casa_cart.services.order_service import OrderService
from casa_cart.services.price_resolver import PriceSnapshotResolver
from casa_cart.services.product_client import ProductClient

router = APIRouter(prefix="/api/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
    notifier: NotificationService = Depends(get_notifier),
) -> OrderService:
    return OrderService(db, price_resolver=PriceSnapshotResolver(product_client), notifier=notifier)


@router.post("/create", response_model=OrderEnvelope, status_code=201)
def create_order(payload: OrderCreateIn, svc: OrderService = Depends(get_service)):
    """
    Creates an order from a client supplied product list.
    The cart is left alone, the client deletes it separately.
    """
    order = svc.create_order(
        user=payload.user,
        products=[p.model_dump() for p in payload.products],
        address=payload.address,
        estimated_delivery=payload.estimated_delivery,
        payment_status=payload.payment_status.value,
        payment_method=payload.payment_method,
    )
    return {"success": True, "data": {"order": order}, "message": "Order created successfully"}


@router.get("", response_model=OrderListEnvelope)
def list_orders(svc: OrderService = Depends(get_service)):
    return {"success": True, "data": {"orders": svc.list_orders()}, "message": "Orders retrieved"}


@router.get("/id/{order_id}", response_model=OrderEnvelope)
def get_order(order_id: int, svc: OrderService = Depends(get_service)):
    return {"success": True, "data": {"order": svc.get_order(order_id)}, "message": "Order retrieved"}


@router.get("/user/{user}", response_model=OrderListEnvelope)
def list_user_orders(user: str, svc: OrderService = Depends(get_service)):
    orders = svc.list_user_orders(user)
    return {"success": True, "data": {"orders": orders}, "message": "Orders retrieved"}


@router.put("/update/{order_id}", response_model=OrderEnvelope)
def update_order(order_id: int, payload: OrderUpdateIn, svc: OrderService = Depends(get_service)):
    order = svc.update_order(order_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": {"order": order}, "message": "Order updated successfully"}


@router.delete("/delete/{order_id}", response_model=MessageOut)
def delete_order(order_id: int, svc: OrderService = Depends(get_service)):
    svc.delete_order(order_id)
    return {"success": True, "message": "Order deleted successfully"}
