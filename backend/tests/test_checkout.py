from concurrent.futures import ThreadPoolExecutor
from uuid import uuid4

import pytest

from storefront.db import SessionLocal
from storefront.errors import (
    EmptyCartError,
    InsufficientStockError,
    OrderNotFoundError,
    OrderNotOwnedError,
    StockError,
    StorageError,
    ValidationError,
)
from storefront.models.cart_line import CartLine, UserOwner
from storefront.models.order import Order, OrderLine
from storefront.models.product import Product, ProductVariant
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutService, generate_order_number


def _orders_for(db, user_id):
    return db.query(Order).filter(Order.user_id == user_id).all()


def test_variant_checkout_example(db, make_product, user_id, address):
    pid = make_product(price_kobo=1_200_000, variants=[('16"', "natural-black", 1_500_000, 5)])
    CartService(db).add_line(
        UserOwner(user_id), pid, quantity=2, selected_length='16"', selected_color="natural-black"
    )

    order = CheckoutService(db).create_order(user_id, address)

    assert order.status == "pending"
    assert order.subtotal_kobo == 3_000_000
    assert order.shipping_fee_kobo == 250_000
    assert order.total_kobo == 3_250_000
    assert order.order_number.startswith("HS")
    assert len(order.lines) == 1
    line = order.lines[0]
    assert line.unit_price_kobo == 1_500_000
    assert line.quantity == 2
    assert line.variant_id is not None

    variant = db.query(ProductVariant).filter(ProductVariant.id == line.variant_id).one()
    db.refresh(variant)
    assert variant.stock == 3
    assert db.query(CartLine).filter(CartLine.user_id == user_id).count() == 0


def test_total_invariant_and_free_shipping(db, make_product, user_id, address):
    a = make_product(price_kobo=2_500_000)
    b = make_product(price_kobo=1_750_000)
    svc = CartService(db)
    svc.add_line(UserOwner(user_id), a, quantity=2)
    svc.add_line(UserOwner(user_id), b, quantity=1)

    order = CheckoutService(db).create_order(user_id, address)

    assert order.shipping_fee_kobo == 0
    assert sum(l.unit_price_kobo * l.quantity for l in order.lines) + order.shipping_fee_kobo == order.total_kobo
    assert order.total_kobo == 6_750_000


def test_billing_same_as_shipping_is_copied(db, make_product, user_id, address):
    pid = make_product()
    CartService(db).add_line(UserOwner(user_id), pid)
    order = CheckoutService(db).create_order(user_id, address, {"same_as_shipping": True}, notes="Call first")
    assert order.billing_address["city"] == "Ikeja"
    assert order.billing_address["same_as_shipping"] is True
    assert order.notes == "Call first"


def test_requires_user_and_items(db, user_id, address):
    svc = CheckoutService(db)
    with pytest.raises(ValidationError):
        svc.create_order(None, address)
    with pytest.raises(EmptyCartError):
        svc.create_order(user_id, address)


def test_missing_address_fields_rejected(db, make_product, user_id, address):
    pid = make_product()
    CartService(db).add_line(UserOwner(user_id), pid)
    svc = CheckoutService(db)

    incomplete = dict(address, city="  ")
    with pytest.raises(ValidationError):
        svc.create_order(user_id, incomplete)

    with pytest.raises(ValidationError):
        svc.create_order(user_id, address, {"same_as_shipping": False, "full_name": "Someone"})

    # a separate billing address needs the same contact fields as shipping
    billing = {k: v for k, v in address.items() if k not in ("email", "phone")}
    with pytest.raises(ValidationError):
        svc.create_order(user_id, address, dict(billing, same_as_shipping=False))

    assert _orders_for(db, user_id) == []
    assert db.query(CartLine).filter(CartLine.user_id == user_id).count() == 1


def test_stock_drop_creates_no_order(db, make_product, user_id, address):
    pid = make_product(stock=5)
    CartService(db).add_line(UserOwner(user_id), pid, quantity=3)

    product = db.query(Product).filter(Product.id == pid).one()
    product.stock = 1
    db.commit()

    with pytest.raises(InsufficientStockError) as exc:
        CheckoutService(db).create_order(user_id, address)
    assert isinstance(exc.value, StockError)
    assert exc.value.requested == 3 and exc.value.available == 1

    assert _orders_for(db, user_id) == []
    assert db.query(CartLine).filter(CartLine.user_id == user_id).one().quantity == 3
    db.refresh(product)
    assert product.stock == 1


def test_lines_sharing_stock_are_checked_together(db, make_product, user_id, address):
    pid = make_product(stock=3, variants=[('16"', "1b", 2_000_000, 10)])
    svc = CartService(db)
    # both fall back to the product's own stock
    svc.add_line(UserOwner(user_id), pid, quantity=2)
    svc.add_line(UserOwner(user_id), pid, quantity=2, selected_length='16"')

    with pytest.raises(StockError):
        CheckoutService(db).create_order(user_id, address)
    assert _orders_for(db, user_id) == []


def test_price_snapshot_survives_catalogue_change(db, make_product, user_id, address):
    pid = make_product(price_kobo=800_000)
    CartService(db).add_line(UserOwner(user_id), pid, quantity=1)
    order = CheckoutService(db).create_order(user_id, address)

    product = db.query(Product).filter(Product.id == pid).one()
    product.price_kobo = 9_900_000
    product.name = "Renamed"
    db.commit()

    line = db.query(OrderLine).filter(OrderLine.order_id == order.id).one()
    assert line.unit_price_kobo == 800_000
    assert line.product_name != "Renamed"


def test_checkout_ignores_cached_cart_price(db, make_product, user_id, address):
    pid = make_product(price_kobo=1_000_000)
    CartService(db).add_line(UserOwner(user_id), pid, quantity=1)
    product = db.query(Product).filter(Product.id == pid).one()
    product.price_kobo = 1_100_000
    db.commit()

    order = CheckoutService(db).create_order(user_id, address)
    assert order.lines[0].unit_price_kobo == 1_100_000


def test_order_number_collision_regenerates(db, make_product, user_id, address):
    taken = f"HSDUP{uuid4().hex[:8]}"
    fresh = f"HSNEW{uuid4().hex[:8]}"

    pid = make_product()
    CartService(db).add_line(UserOwner(user_id), pid)
    first = CheckoutService(db, order_number_factory=lambda: taken).create_order(user_id, address)
    assert first.order_number == taken

    candidates = iter([taken, taken, fresh])
    CartService(db).add_line(UserOwner(user_id), pid)
    second = CheckoutService(db, order_number_factory=lambda: next(candidates)).create_order(
        user_id, address
    )
    assert second.order_number == fresh


def test_order_number_retries_are_bounded(db, make_product, user_id, address):
    taken = f"HSDUP{uuid4().hex[:8]}"
    pid = make_product()
    CartService(db).add_line(UserOwner(user_id), pid)
    CheckoutService(db, order_number_factory=lambda: taken).create_order(user_id, address)

    CartService(db).add_line(UserOwner(user_id), pid)
    with pytest.raises(StorageError):
        CheckoutService(db, order_number_factory=lambda: taken).create_order(user_id, address)
    assert len(_orders_for(db, user_id)) == 1
    assert db.query(CartLine).filter(CartLine.user_id == user_id).count() == 1


def test_order_number_taken_at_insert_regenerates(db, make_product, user_id, address):
    taken = f"HSRACE{uuid4().hex[:8]}"
    fresh = f"HSNEW{uuid4().hex[:8]}"
    pid = make_product()
    CartService(db).add_line(UserOwner(user_id), pid)
    CheckoutService(db, order_number_factory=lambda: taken).create_order(user_id, address)

    CartService(db).add_line(UserOwner(user_id), pid, quantity=2)
    candidates = iter([taken, fresh])
    svc = CheckoutService(db, order_number_factory=lambda: next(candidates))

    # another checkout inserts `taken` between the existence check and our insert
    real_exists = svc.order_repo.number_exists
    checks = []

    def stale_exists(number):
        checks.append(number)
        return False if len(checks) == 1 else real_exists(number)

    svc.order_repo.number_exists = stale_exists

    order = svc.create_order(user_id, address)
    assert order.order_number == fresh
    assert order.lines[0].quantity == 2
    assert len(_orders_for(db, user_id)) == 2
    assert db.query(CartLine).filter(CartLine.user_id == user_id).count() == 0


def test_line_growing_during_checkout_aborts_order(db, make_product, user_id, address):
    pid = make_product(stock=10)
    owner = UserOwner(user_id)
    CartService(db).add_line(owner, pid, quantity=2)
    svc = CheckoutService(db)

    real_lines = svc.cart_repo.lines_for_checkout

    def lines_then_concurrent_add(owner_key):
        lines = real_lines(owner_key)
        other = SessionLocal()
        try:
            CartService(other).add_line(owner, pid, quantity=3)
        finally:
            other.close()
        return lines

    svc.cart_repo.lines_for_checkout = lines_then_concurrent_add

    with pytest.raises(StorageError) as exc:
        svc.create_order(user_id, address)
    assert exc.value.retryable

    check = SessionLocal()
    try:
        assert _orders_for(check, user_id) == []
        # the later add is kept, not swallowed by the cart clear
        assert check.query(CartLine).filter(CartLine.user_id == user_id).one().quantity == 5
        assert check.query(Product).filter(Product.id == pid).one().stock == 10
    finally:
        check.close()


def test_concurrent_checkouts_for_last_unit(make_product, user_id, address):
    pid = make_product(stock=1)
    users = [user_id, user_id + 1]
    s = SessionLocal()
    try:
        for uid in users:
            CartService(s).add_line(UserOwner(uid), pid, quantity=1)
    finally:
        s.close()

    def checkout(uid):
        s = SessionLocal()
        try:
            return CheckoutService(s).create_order(uid, address).order_number
        except StockError as e:
            return e
        finally:
            s.close()

    with ThreadPoolExecutor(max_workers=2) as ex:
        results = list(ex.map(checkout, users))

    placed = [r for r in results if isinstance(r, str)]
    refused = [r for r in results if isinstance(r, StockError)]
    assert len(placed) == 1 and len(refused) == 1

    s = SessionLocal()
    try:
        assert s.query(Product).filter(Product.id == pid).one().stock == 0
        assert s.query(Order).filter(Order.user_id.in_(users)).count() == 1
    finally:
        s.close()


def test_generated_order_number_shape():
    number = generate_order_number()
    assert number.startswith("HS")
    assert number[2:].isdigit() and len(number) == 13


def test_read_views(db, make_product, user_id, address):
    pid = make_product()
    svc = CheckoutService(db)
    for _ in range(2):
        CartService(db).add_line(UserOwner(user_id), pid)
        svc.create_order(user_id, address)

    orders = svc.list_orders(user_id)
    assert len(orders) == 2
    assert orders[0].id > orders[1].id
    assert orders[0].item_count == 1

    assert svc.get_order(user_id, orders[0].id).id == orders[0].id
    with pytest.raises(OrderNotOwnedError):
        svc.get_order(user_id + 1, orders[0].id)
    with pytest.raises(OrderNotFoundError):
        svc.get_order(user_id, 987654321)
