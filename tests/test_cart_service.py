"""Tests for the cart aggregate store."""
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from casa_cart.data.database import Base
from casa_cart.data.models import CartItemModel, CartModel
from casa_cart.domain.errors import CartNotFound, ItemNotFound, ProductNotFound, ValidationError
from casa_cart.repos.cart_repo import CartRepo
from casa_cart.services.cart_service import CartService
from casa_cart.services.price_resolver import PriceSnapshotResolver
from casa_cart.utils.settings import MAX_LINE_QUANTITY

from conftest import FakeProductClient, JACKET, PHONE, SHIRT


def _assert_totals_consistent(cart: dict):
    assert cart["total_items"] == sum(i["quantity"] for i in cart["items"])
    assert cart["total_amount"] == sum(
        (Decimal(i["price_at_add"]) * i["quantity"] for i in cart["items"]), Decimal("0.00")
    )


def _lines(cart: dict):
    return sorted((i["product_id"], i["size"], i["quantity"]) for i in cart["items"])


class TestGetOrCreate:
    def test_creates_empty_cart(self, cart_service):
        cart = cart_service.get_or_create(PHONE)
        assert cart["id"] is not None
        assert cart["items"] == []
        assert cart["total_items"] == 0
        assert cart["total_amount"] == Decimal("0.00")

    def test_returns_same_cart(self, cart_service):
        first = cart_service.get_or_create(PHONE)
        second = cart_service.get_or_create(PHONE)
        assert first["id"] == second["id"]

    def test_get_cart_without_cart_returns_stub(self, cart_service, db):
        cart = cart_service.get_cart(PHONE)
        assert cart["id"] is None
        assert cart["phone"] == PHONE
        assert cart["items"] == []
        assert CartRepo(db).get_by_phone(PHONE) is None


class TestAddItem:
    def test_first_add_creates_cart(self, cart_service):
        cart = cart_service.add_item(PHONE, SHIRT, 2, "L")
        assert _lines(cart) == [(SHIRT, "L", 2)]
        assert cart["items"][0]["price_at_add"] == Decimal("199.00")
        _assert_totals_consistent(cart)

    def test_default_size_is_m(self, cart_service):
        cart = cart_service.add_item(PHONE, SHIRT)
        assert _lines(cart) == [(SHIRT, "M", 1)]

    def test_same_product_and_size_merges(self, cart_service):
        cart_service.add_item(PHONE, SHIRT, 2, "L")
        cart = cart_service.add_item(PHONE, SHIRT, 3, "L")
        assert _lines(cart) == [(SHIRT, "L", 5)]

    def test_other_size_is_new_line(self, cart_service):
        cart_service.add_item(PHONE, SHIRT, 1, "M")
        cart = cart_service.add_item(PHONE, SHIRT, 1, "L")
        assert _lines(cart) == [(SHIRT, "L", 1), (SHIRT, "M", 1)]
        assert cart["total_items"] == 2

    def test_price_snapshot_survives_catalog_change(self, cart_service, products):
        cart_service.add_item(PHONE, SHIRT, 1, "M")
        products.prices[SHIRT] = Decimal("250.00")

        cart = cart_service.add_item(PHONE, SHIRT, 2, "M")

        assert _lines(cart) == [(SHIRT, "M", 3)]
        assert cart["items"][0]["price_at_add"] == Decimal("199.00")
        assert cart["total_amount"] == Decimal("597.00")

    def test_totals_over_mixed_lines(self, cart_service):
        cart_service.add_item(PHONE, SHIRT, 2, "M")
        cart = cart_service.add_item(PHONE, JACKET, 1, "XL")
        assert cart["total_items"] == 3
        assert cart["total_amount"] == Decimal("1897.50")
        _assert_totals_consistent(cart)

    def test_rejects_zero_quantity(self, cart_service, products):
        with pytest.raises(ValidationError):
            cart_service.add_item(PHONE, SHIRT, 0)
        assert products.calls == []

    def test_rejects_quantity_over_line_limit(self, cart_service, products):
        with pytest.raises(ValidationError):
            cart_service.add_item(PHONE, SHIRT, 10**20)
        assert products.calls == []

    def test_repeat_adds_cannot_push_line_over_limit(self, cart_service):
        cart_service.add_item(PHONE, SHIRT, MAX_LINE_QUANTITY)
        with pytest.raises(ValidationError):
            cart_service.add_item(PHONE, SHIRT, 1)
        assert _lines(cart_service.get_cart(PHONE)) == [(SHIRT, "M", MAX_LINE_QUANTITY)]

    def test_requires_phone_and_product(self, cart_service):
        with pytest.raises(ValidationError):
            cart_service.add_item("", SHIRT)
        with pytest.raises(ValidationError):
            cart_service.add_item(PHONE, "")

    def test_unknown_product_leaves_no_cart(self, cart_service, db):
        with pytest.raises(ProductNotFound):
            cart_service.add_item(PHONE, "missing")
        assert CartRepo(db).get_by_phone(PHONE) is None

    def test_every_mutation_bumps_version(self, cart_service, db):
        cart_service.get_or_create(PHONE)
        start = CartRepo(db).get_by_phone(PHONE).version

        cart_service.add_item(PHONE, SHIRT)
        cart_service.update_quantity(PHONE, SHIRT, "M", 4)
        cart_service.remove_item(PHONE, SHIRT)

        cart = CartRepo(db).get_by_phone(PHONE)
        assert cart.version == start + 3
        assert cart.last_activity is not None


class TestUpdateQuantity:
    def test_sets_not_adds(self, cart_service):
        cart_service.add_item(PHONE, SHIRT, 2, "M")
        cart = cart_service.update_quantity(PHONE, SHIRT, "M", 7)
        assert _lines(cart) == [(SHIRT, "M", 7)]
        _assert_totals_consistent(cart)

    def test_zero_removes_line(self, cart_service):
        cart_service.add_item(PHONE, SHIRT, 2, "M")
        cart_service.add_item(PHONE, JACKET, 1, "M")
        cart = cart_service.update_quantity(PHONE, SHIRT, "M", 0)
        assert _lines(cart) == [(JACKET, "M", 1)]
        _assert_totals_consistent(cart)

    def test_negative_removes_line(self, cart_service):
        cart_service.add_item(PHONE, SHIRT, 2, "M")
        cart = cart_service.update_quantity(PHONE, SHIRT, "M", -3)
        assert cart["items"] == []
        assert cart["total_items"] == 0

    def test_missing_line(self, cart_service):
        cart_service.add_item(PHONE, SHIRT, 1, "M")
        with pytest.raises(ItemNotFound):
            cart_service.update_quantity(PHONE, SHIRT, "L", 2)

    def test_missing_line_with_zero(self, cart_service):
        cart_service.add_item(PHONE, SHIRT, 1, "M")
        with pytest.raises(ItemNotFound):
            cart_service.update_quantity(PHONE, JACKET, "M", 0)

    def test_missing_cart(self, cart_service):
        with pytest.raises(CartNotFound):
            cart_service.update_quantity(PHONE, SHIRT, "M", 1)


class TestRemoveItem:
    def test_with_size_removes_only_that_line(self, cart_service):
        cart_service.add_item(PHONE, SHIRT, 1, "M")
        cart_service.add_item(PHONE, SHIRT, 1, "L")
        cart = cart_service.remove_item(PHONE, SHIRT, "M")
        assert _lines(cart) == [(SHIRT, "L", 1)]

    def test_without_size_removes_every_size(self, cart_service):
        cart_service.add_item(PHONE, SHIRT, 1, "S")
        cart_service.add_item(PHONE, SHIRT, 2, "M")
        cart_service.add_item(PHONE, SHIRT, 3, "L")
        cart_service.add_item(PHONE, JACKET, 1, "M")

        cart = cart_service.remove_item(PHONE, SHIRT)

        assert _lines(cart) == [(JACKET, "M", 1)]
        _assert_totals_consistent(cart)

    def test_blank_size_removes_every_size(self, cart_service):
        cart_service.add_item(PHONE, SHIRT, 1, "S")
        cart_service.add_item(PHONE, SHIRT, 1, "L")
        cart = cart_service.remove_item(PHONE, SHIRT, "")
        assert cart["items"] == []

    def test_absent_product_is_noop(self, cart_service):
        cart_service.add_item(PHONE, SHIRT, 1, "M")
        cart = cart_service.remove_item(PHONE, JACKET)
        assert _lines(cart) == [(SHIRT, "M", 1)]

    def test_missing_cart(self, cart_service):
        with pytest.raises(CartNotFound):
            cart_service.remove_item(PHONE, SHIRT)


class TestClearAndDelete:
    def test_clear_keeps_cart(self, cart_service, db):
        cart_service.add_item(PHONE, SHIRT, 3, "M")
        cart = cart_service.clear(PHONE)

        assert cart["items"] == []
        assert cart["total_items"] == 0
        assert cart["total_amount"] == Decimal("0.00")
        assert CartRepo(db).get_by_phone(PHONE) is not None

    def test_clear_missing_cart(self, cart_service):
        with pytest.raises(CartNotFound):
            cart_service.clear(PHONE)

    def test_delete_removes_cart_and_items(self, cart_service, db):
        cart_service.add_item(PHONE, SHIRT, 1, "M")
        cart_service.delete(PHONE)

        assert CartRepo(db).get_by_phone(PHONE) is None
        assert db.query(CartItemModel).count() == 0

    def test_delete_missing_cart(self, cart_service):
        with pytest.raises(CartNotFound):
            cart_service.delete(PHONE)


class TestReadRepair:
    def test_stale_totals_are_fixed_on_read(self, cart_service, db):
        cart_service.add_item(PHONE, SHIRT, 2, "M")
        stored = CartRepo(db).get_by_phone(PHONE)
        stored.total_items = 99
        stored.total_amount = Decimal("1.00")
        db.commit()

        cart = cart_service.get_cart(PHONE)

        assert cart["total_items"] == 2
        assert cart["total_amount"] == Decimal("398.00")

    def test_clean_read_does_not_bump_version(self, cart_service, db):
        cart_service.add_item(PHONE, SHIRT, 1, "M")
        version = CartRepo(db).get_by_phone(PHONE).version
        cart_service.get_cart(PHONE)
        assert CartRepo(db).get_by_phone(PHONE).version == version


@pytest.fixture()
def legacy_session(tmp_path):
    """A database whose cart_items table predates the unique (cart, product, size) constraint."""
    engine = create_engine(f"sqlite:///{tmp_path / 'legacy.db'}")
    Base.metadata.create_all(bind=engine, tables=[CartModel.__table__])
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE cart_items ("
            " id INTEGER PRIMARY KEY,"
            " cart_id INTEGER NOT NULL REFERENCES carts(id),"
            " product_id VARCHAR(64) NOT NULL,"
            " size VARCHAR(16) NOT NULL,"
            " quantity INTEGER NOT NULL,"
            " price_at_add NUMERIC(12, 2) NOT NULL,"
            " added_at DATETIME NOT NULL)"
        ))
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()
    engine.dispose()


class TestLegacyDuplicates:
    def _seed(self, db):
        cart = CartModel(phone=PHONE, total_items=6, total_amount=Decimal("1245.00"))
        db.add(cart)
        db.flush()
        db.add_all([
            CartItemModel(cart_id=cart.id, product_id=SHIRT, size="M", quantity=1, price_at_add=Decimal("199.00")),
            CartItemModel(cart_id=cart.id, product_id=SHIRT, size="L", quantity=1, price_at_add=Decimal("199.00")),
            CartItemModel(cart_id=cart.id, product_id=SHIRT, size="M", quantity=2, price_at_add=Decimal("250.00")),
            CartItemModel(cart_id=cart.id, product_id=SHIRT, size="M", quantity=2, price_at_add=Decimal("199.00")),
        ])
        db.commit()

    def test_duplicates_merged_on_read(self, legacy_session):
        self._seed(legacy_session)
        svc = CartService(legacy_session)

        cart = svc.get_cart(PHONE)

        assert _lines(cart) == [(SHIRT, "L", 1), (SHIRT, "M", 5)]
        merged = next(i for i in cart["items"] if i["size"] == "M")
        assert merged["price_at_add"] == Decimal("199.00")
        _assert_totals_consistent(cart)
        assert legacy_session.query(CartItemModel).count() == 2

    def test_second_read_is_noop(self, legacy_session):
        self._seed(legacy_session)
        svc = CartService(legacy_session)

        first = svc.get_cart(PHONE)
        version = CartRepo(legacy_session).get_by_phone(PHONE).version
        second = svc.get_cart(PHONE)

        assert _lines(first) == _lines(second)
        assert CartRepo(legacy_session).get_by_phone(PHONE).version == version

    def test_repair_writes_only_under_the_row_lock(self, legacy_session):
        self._seed(legacy_session)
        svc = CartService(legacy_session)
        real_lock = svc.repo.lock_by_phone
        locked = []

        def lock_after_concurrent_write(phone):
            # another request changes the cart between our read and our lock
            with legacy_session.get_bind().begin() as conn:
                conn.execute(text("UPDATE carts SET version = 7"))
                conn.execute(text("UPDATE cart_items SET quantity = 4 WHERE size = 'L'"))
            locked.append(phone)
            return real_lock(phone)

        svc.repo.lock_by_phone = lock_after_concurrent_write

        cart = svc.get_cart(PHONE)

        assert locked == [PHONE]
        assert _lines(cart) == [(SHIRT, "L", 4), (SHIRT, "M", 5)]
        _assert_totals_consistent(cart)
        assert CartRepo(legacy_session).get_by_phone(PHONE).version == 8

    def test_clean_read_takes_no_lock(self, cart_service):
        cart_service.add_item(PHONE, SHIRT)
        cart_service.repo.lock_by_phone = lambda phone: pytest.fail("clean read must not lock")
        assert cart_service.get_cart(PHONE)["total_items"] == 1


def test_interleaved_adds_lose_nothing(tmp_path):
    """Two requests load the same cart, then both write: both lines must survive."""
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    products = FakeProductClient({SHIRT: Decimal("199.00")})

    first = CartService(factory(), PriceSnapshotResolver(products))
    second = CartService(factory(), PriceSnapshotResolver(products))

    # both see the same empty cart before either writes
    first.get_or_create(PHONE)
    assert second.get_cart(PHONE)["items"] == []

    first.add_item(PHONE, SHIRT, 1, "M")
    cart = second.add_item(PHONE, SHIRT, 1, "L")

    assert _lines(cart) == [(SHIRT, "L", 1), (SHIRT, "M", 1)]
    assert cart["total_items"] == 2

    final = CartService(factory()).get_cart(PHONE)
    assert final["total_items"] == 2
    assert final["total_amount"] == Decimal("398.00")
    engine.dispose()
