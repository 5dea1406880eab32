"""Tests for cart to order conversion."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from casa_cart.domain.errors import CheckoutInProgress, ConcurrencyConflict, EmptyCartError
from casa_cart.repos.order_repo import OrderRepo
from casa_cart.services.checkout_service import CheckoutService

from conftest import JACKET, PHONE, SHIRT

ADDRESS = "12 MG Road, Bengaluru"


@pytest.fixture()
def checkout_service(db, cart_service, lock_service, notifier):
    return CheckoutService(db, cart_service, lock_service, notifier)


@pytest.fixture()
def filled_cart(cart_service):
    cart_service.add_item(PHONE, SHIRT, quantity=2, size="L")
    cart_service.add_item(PHONE, JACKET)
    return cart_service.get_cart(PHONE)


def test_checkout_places_order_and_deletes_cart(checkout_service, cart_service, filled_cart, notifier):
    order = checkout_service.checkout(PHONE, "user-1", ADDRESS)

    assert order["phone"] == PHONE
    assert order["delivery_status"] == "Pending"
    assert order["payment_status"] == "Pending"
    assert order["total_amount"] == Decimal("1897.50")
    assert sorted((p["product_id"], p["size"], p["quantity"]) for p in order["products"]) == [
        (SHIRT, "L", 2),
        (JACKET, "M", 1),
    ]

    assert cart_service.get_cart(PHONE)["id"] is None
    assert notifier.sent == [("user-1", order["id"])]


def test_estimated_delivery_is_five_days_out(checkout_service, filled_cart):
    before = datetime.now(timezone.utc).replace(tzinfo=None)
    order = checkout_service.checkout(PHONE, "user-1", ADDRESS)

    eta = order["estimated_delivery"].replace(tzinfo=None)
    assert before + timedelta(days=5) <= eta <= before + timedelta(days=5, minutes=1)


def test_order_keeps_snapshot_price(checkout_service, filled_cart, products):
    products.prices[SHIRT] = Decimal("250.00")
    order = checkout_service.checkout(PHONE, "user-1", ADDRESS)

    shirt = next(p for p in order["products"] if p["product_id"] == SHIRT)
    assert shirt["unit_price"] == Decimal("199.00")


def test_cod_method_sets_payment_status(checkout_service, filled_cart):
    order = checkout_service.checkout(PHONE, "user-1", ADDRESS, payment_method="cod")
    assert order["payment_status"] == "COD"
    assert order["payment_method"] == "cod"


def test_explicit_payment_status_wins(checkout_service, filled_cart):
    order = checkout_service.checkout(PHONE, "user-1", ADDRESS, payment_method="card", payment_status="Paid")
    assert order["payment_status"] == "Paid"


class TestNothingToCheckout:
    def test_no_cart(self, checkout_service, db):
        with pytest.raises(EmptyCartError):
            checkout_service.checkout(PHONE, "user-1", ADDRESS)
        assert OrderRepo(db).list_orders() == []

    def test_empty_cart_is_kept(self, checkout_service, cart_service, db):
        cart_service.get_or_create(PHONE)
        with pytest.raises(EmptyCartError):
            checkout_service.checkout(PHONE, "user-1", ADDRESS)

        assert cart_service.get_cart(PHONE)["id"] is not None
        assert OrderRepo(db).list_orders() == []

    def test_lock_released_after_failure(self, checkout_service, lock_service):
        with pytest.raises(EmptyCartError):
            checkout_service.checkout(PHONE, "user-1", ADDRESS)
        assert lock_service.locks == {}
        assert lock_service.released == [PHONE]


def test_concurrent_checkout_is_rejected(checkout_service, cart_service, filled_cart, lock_service, db):
    lock_service.locks[PHONE] = "someone-else"

    with pytest.raises(CheckoutInProgress) as exc:
        checkout_service.checkout(PHONE, "user-1", ADDRESS)

    assert exc.value.retryable
    assert cart_service.get_cart(PHONE)["total_items"] == 3
    assert OrderRepo(db).list_orders() == []


def test_cart_changed_mid_checkout_writes_nothing(checkout_service, cart_service, filled_cart, db, notifier):
    checkout_service.cart_repo.delete_cart = lambda *args, **kwargs: 0

    with pytest.raises(ConcurrencyConflict):
        checkout_service.checkout(PHONE, "user-1", ADDRESS)

    assert OrderRepo(db).list_orders() == []
    assert cart_service.get_cart(PHONE)["total_items"] == 3
    assert notifier.sent == []


def test_checkout_key_replays_same_order(checkout_service, cart_service, filled_cart, notifier, db):
    first = checkout_service.checkout(PHONE, "user-1", ADDRESS, checkout_key="attempt-1")
    again = checkout_service.checkout(PHONE, "user-1", ADDRESS, checkout_key="attempt-1")

    assert again["id"] == first["id"]
    assert len(OrderRepo(db).list_orders()) == 1
    assert len(notifier.sent) == 1


def test_repeat_adds_become_one_order_line(checkout_service, cart_service, filled_cart):
    cart_service.add_item(PHONE, SHIRT, quantity=1, size="L")
    order = checkout_service.checkout(PHONE, "user-1", ADDRESS)

    shirts = [p for p in order["products"] if p["product_id"] == SHIRT]
    assert [(p["size"], p["quantity"]) for p in shirts] == [("L", 3)]


def test_key_committed_concurrently_is_replayed_without_second_notification(
    checkout_service, cart_service, filled_cart, notifier, db
):
    first = checkout_service.checkout(PHONE, "user-1", ADDRESS, checkout_key="attempt-1")
    cart_service.add_item(PHONE, SHIRT)

    # the up-front lookup misses, as if the other request had not committed yet
    real_lookup = checkout_service.orders.get_by_checkout_key
    lookups = []

    def late_lookup(key):
        lookups.append(key)
        return None if len(lookups) == 1 else real_lookup(key)

    checkout_service.orders.get_by_checkout_key = late_lookup

    again = checkout_service.checkout(PHONE, "user-1", ADDRESS, checkout_key="attempt-1")

    assert again["id"] == first["id"]
    assert len(lookups) == 2
    assert len(OrderRepo(db).list_orders()) == 1
    assert notifier.sent == [("user-1", first["id"])]
