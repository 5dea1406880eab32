# casa_cart/api/routers/checkout.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from casa_cart.api.dependencies import get_lock_service, get_notifier
from casa_cart.data.database import get_db
from casa_cart.domain.schemas import CheckoutIn, OrderEnvelope
from casa_cart.services.cart_service import CartService
from casa_cart.services.checkout_service import CheckoutService
from casa_cart.services.lock_service import LockService
from casa_cart.services.notification_service import NotificationService

router = APIRouter(prefix="/api/checkout", tags=["checkout"])


def get_service(
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
    notifier: NotificationService = Depends(get_notifier),
) -> CheckoutService:
    return CheckoutService(
        db=db,
        cart_service=CartService(db),
        lock_service=lock_service,
        notifier=notifier,
    )


@router.post("", response_model=OrderEnvelope, status_code=201)
def checkout(payload: CheckoutIn, svc: CheckoutService = Depends(get_service)):
    """
    Places an order from the phone's cart and deletes the cart, atomically.
    Retrying with the same checkoutKey returns the same order.
    """
    order = svc.checkout(
        phone=payload.phone,
        user=payload.user,
        address=payload.address,
        payment_method=payload.payment_method,
        payment_status=payload.payment_status.value if payload.payment_status else None,
        checkout_key=payload.checkout_key,
    )
    return {"success": True, "data": {"order": order}, "message": "Order placed successfully"}
