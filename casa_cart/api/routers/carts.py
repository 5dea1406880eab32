# casa_cart/api/routers/carts.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from casa_cart.api.dependencies import get_product_client
from casa_cart.data.database import get_db
from casa_cart.domain.schemas import (
    CartEnvelope,
    CartItemIn,
    CartItemRemoveIn,
    CartItemUpdateIn,
    MessageOut,
    PhoneIn,
)
from casa_cart.services.cart_service import CartService
from casa_cart.services.price_resolver import PriceSnapshotResolver
from casa_cart.services.product_client import ProductClient

router = APIRouter(prefix="/api/cart", tags=["cart"])


def get_service(
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
) -> CartService:
    return CartService(db=db, price_resolver=PriceSnapshotResolver(product_client))


def _envelope(cart: dict, message: str) -> dict:
    return {"success": True, "data": {"cart": cart}, "message": message}


@router.get("", response_model=CartEnvelope)
def get_cart(phone: str = Query(..., min_length=1), svc: CartService = Depends(get_service)):
    cart = svc.get_cart(phone)
    message = "Cart retrieved successfully" if cart["items"] else "Cart is empty"
    return _envelope(cart, message)


@router.post("/items", response_model=CartEnvelope)
def add_item(payload: CartItemIn, svc: CartService = Depends(get_service)):
    cart = svc.add_item(
        phone=payload.phone,
        product_id=payload.product_id,
        quantity=payload.quantity,
        size=payload.size,
    )
    return _envelope(cart, "Product added to cart successfully")


@router.put("/items", response_model=CartEnvelope)
def update_item(payload: CartItemUpdateIn, svc: CartService = Depends(get_service)):
    cart = svc.update_quantity(
        phone=payload.phone,
        product_id=payload.product_id,
        size=payload.size,
        quantity=payload.quantity,
    )
    return _envelope(cart, "Cart item updated successfully")


@router.delete("/items", response_model=CartEnvelope)
def remove_item(payload: CartItemRemoveIn, svc: CartService = Depends(get_service)):
    cart = svc.remove_item(payload.phone, payload.product_id, payload.size)
    return _envelope(cart, "Product removed from cart successfully")


@router.delete("/clear", response_model=CartEnvelope)
def clear_cart(payload: PhoneIn, svc: CartService = Depends(get_service)):
    cart = svc.clear(payload.phone)
    return _envelope(cart, "Cart cleared successfully")


@router.delete("/delete", response_model=MessageOut)
def delete_cart(payload: PhoneIn, svc: CartService = Depends(get_service)):
    svc.delete(payload.phone)
    return {"success": True, "message": "Cart deleted successfully"}
