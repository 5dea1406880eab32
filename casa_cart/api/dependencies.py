# casa_cart/api/dependencies.py
from functools import lru_cache

from casa_cart.services.lock_service import LockService
from casa_cart.services.notification_service import NotificationService
from casa_cart.services.product_client import ProductClient


@lru_cache
def get_product_client() -> ProductClient:
    return ProductClient()


@lru_cache
def get_lock_service() -> LockService:
    return LockService()


def get_notifier() -> NotificationService:
    return NotificationService()
