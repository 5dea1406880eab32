import os

# must be set before anything from casa_cart is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "1")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import casa_cart.data.models  # noqa: F401
from casa_cart.api import create_app
from casa_cart.api.dependencies import get_lock_service, get_notifier, get_product_client
from casa_cart.data.database import Base, get_db
from casa_cart.domain.errors import ProductNotFound
from casa_cart.services.cart_service import CartService
from casa_cart.services.price_resolver import PriceSnapshotResolver

PHONE = "+919876543210"
SHIRT = "64b5f301a1c2d3e4f5a6b701"
JACKET = "64b5f301a1c2d3e4f5a6b702"


class FakeProductClient:
    """In-memory catalog, prices can be changed by the test mid-flight."""

    def __init__(self, prices=None):
        self.prices = dict(prices or {})
        self.calls = []

    def fetch_product(self, product_id: str) -> dict:
        self.calls.append(product_id)
        if product_id not in self.prices:
            raise ProductNotFound(f"Product {product_id} not found")
        return {"id": product_id, "name": product_id, "price": {"$numberDecimal": str(self.prices[product_id])}}


class FakeLockService:
    def __init__(self):
        self.locks = {}
        self.released = []

    def acquire_checkout_lock(self, phone: str, token: str, ttl: int) -> bool:
        if phone in self.locks:
            return False
        self.locks[phone] = token
        return True

    def release_checkout_lock(self, phone: str, token: str) -> bool:
        if self.locks.get(phone) != token:
            return False
        del self.locks[phone]
        self.released.append(phone)
        return True


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send_order_notification(self, user: str, order_id: int) -> None:
        self.sent.append((user, order_id))


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def products():
    return FakeProductClient({SHIRT: Decimal("199.00"), JACKET: Decimal("1499.50")})


@pytest.fixture()
def lock_service():
    return FakeLockService()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def cart_service(db, products):
    return CartService(db, price_resolver=PriceSnapshotResolver(products))


@pytest.fixture()
def client(session_factory, products, lock_service, notifier):
    app = create_app()

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_product_client] = lambda: products
    app.dependency_overrides[get_lock_service] = lambda: lock_service
    app.dependency_overrides[get_notifier] = lambda: notifier

    with TestClient(app) as c:
        yield c
