from concurrent.futures import ThreadPoolExecutor
from uuid import uuid4

import pytest

from storefront.db import SessionLocal
from storefront.errors import NotFoundError, ValidationError
from storefront.models.cart_line import CartLine, SessionOwner, UserOwner
from storefront.services.cart_service import CartService


def _session():
    return SessionOwner(f"sess-{uuid4().hex}")


def _lines(db, owner):
    return db.query(CartLine).filter(CartLine.owner_key == owner.key).all()


def test_same_configuration_increments_one_line(db, make_product):
    pid = make_product(price_kobo=500_000, stock=10)
    owner = _session()
    svc = CartService(db)
    first = svc.add_line(owner, pid, quantity=1)
    second = svc.add_line(owner, pid, quantity=2)
    assert first.id == second.id
    lines = _lines(db, owner)
    assert len(lines) == 1
    assert lines[0].quantity == 3


def test_different_configurations_are_separate_lines(db, make_product):
    pid = make_product(
        price_kobo=1_200_000,
        variants=[('16"', "natural-black", 1_500_000, 5), ('20"', "natural-black", 2_000_000, 5)],
    )
    owner = _session()
    svc = CartService(db)
    svc.add_line(owner, pid, selected_length='16"', selected_color="natural-black")
    svc.add_line(owner, pid, selected_length='20"', selected_color="natural-black")
    svc.add_line(owner, pid)
    assert len(_lines(db, owner)) == 3


def test_selection_resolves_variant_and_price(db, make_product):
    pid = make_product(price_kobo=1_200_000, variants=[('16"', "1b", 1_500_000, 5)])
    owner = _session()
    svc = CartService(db)
    line = svc.add_line(owner, pid, selected_length='16"', selected_color="1b")
    assert line.variant_id is not None
    assert line.price_snapshot_kobo == 1_500_000

    view = svc.summary(owner)
    assert view.items[0].final_price_kobo == 1_500_000
    assert view.items[0].base_price_kobo == 1_200_000


def test_variant_id_fills_selection(db, make_product):
    pid = make_product(variants=[('14"', "natural-black", 900_000, 5)])
    svc = CartService(db)
    variant_id = svc.product_repo.get_variants(pid)[0].id
    line = svc.add_line(_session(), pid, variant_id=variant_id)
    assert (line.selected_length, line.selected_color) == ('14"', "natural-black")


def test_variant_selection_mismatch_rejected(db, make_product):
    pid = make_product(variants=[('14"', "natural-black", 900_000, 5)])
    svc = CartService(db)
    variant_id = svc.product_repo.get_variants(pid)[0].id
    with pytest.raises(ValidationError):
        svc.add_line(_session(), pid, variant_id=variant_id, selected_length='20"', selected_color="1b")


def test_bad_input_rejected_without_writes(db, make_product):
    pid = make_product()
    owner = _session()
    svc = CartService(db)
    with pytest.raises(ValidationError):
        svc.add_line(owner, pid, quantity=0)
    with pytest.raises(NotFoundError):
        svc.add_line(owner, 987654321)
    with pytest.raises(NotFoundError):
        svc.add_line(owner, pid, variant_id=987654321)
    assert _lines(db, owner) == []


def test_update_remove_and_ownership(db, make_product):
    pid = make_product(price_kobo=100_000)
    owner = _session()
    stranger = _session()
    svc = CartService(db)
    line = svc.add_line(owner, pid, quantity=2)

    svc.update_quantity(owner, line.id, 5)
    assert _lines(db, owner)[0].quantity == 5

    with pytest.raises(NotFoundError):
        svc.update_quantity(stranger, line.id, 1)
    svc.remove_line(stranger, line.id)
    assert len(_lines(db, owner)) == 1

    svc.update_quantity(owner, line.id, 0)
    assert _lines(db, owner) == []


def test_summary_totals(db, make_product):
    cheap = make_product(price_kobo=1_000_000)
    pricey = make_product(price_kobo=3_000_000)
    owner = _session()
    svc = CartService(db)
    svc.add_line(owner, cheap, quantity=1)
    view = svc.summary(owner)
    assert view.subtotal_kobo == 1_000_000
    assert view.shipping_fee_kobo == 250_000
    assert view.total_kobo == 1_250_000

    svc.add_line(owner, pricey, quantity=2)
    view = svc.summary(owner)
    assert view.item_count == 3
    assert view.subtotal_kobo == 7_000_000
    assert view.shipping_fee_kobo == 0
    assert view.total_kobo == 7_000_000

    assert svc.clear(owner) == 2
    assert svc.summary(owner).items == []


def test_summary_without_owner_is_empty(db):
    view = CartService(db).summary(None)
    assert view.items == [] and view.total_kobo == 0 and view.shipping_fee_kobo == 0


def test_concurrent_adds_produce_one_line(make_product):
    pid = make_product(stock=100)
    owner = _session()

    def add(_):
        s = SessionLocal()
        try:
            CartService(s).add_line(owner, pid, quantity=1)
        finally:
            s.close()

    with ThreadPoolExecutor(max_workers=8) as ex:
        list(ex.map(add, range(16)))

    s = SessionLocal()
    try:
        lines = _lines(s, owner)
        assert len(lines) == 1
        assert lines[0].quantity == 16
    finally:
        s.close()


def test_merge_folds_matching_line(db, make_product, user_id):
    pid = make_product()
    session = _session()
    user = UserOwner(user_id)
    svc = CartService(db)
    svc.add_line(session, pid, quantity=1)
    svc.add_line(user, pid, quantity=2)

    result = svc.merge_session_into_user(session.session_id, user_id)
    assert (result.merged, result.moved) == (1, 0)

    user_lines = _lines(db, user)
    assert len(user_lines) == 1
    assert user_lines[0].quantity == 3
    assert _lines(db, session) == []


def test_merge_moves_new_lines_and_is_idempotent(db, make_product, user_id):
    a = make_product()
    b = make_product(variants=[('18"', "1b", 2_000_000, 5)])
    session = _session()
    user = UserOwner(user_id)
    svc = CartService(db)
    svc.add_line(session, a, quantity=2)
    svc.add_line(session, b, quantity=1, selected_length='18"', selected_color="1b")

    first = svc.merge_session_into_user(session.session_id, user_id)
    assert first.moved == 2
    snapshot = sorted((l.config_key, l.quantity) for l in _lines(db, user))

    second = svc.merge_session_into_user(session.session_id, user_id)
    assert second.total == 0
    assert sorted((l.config_key, l.quantity) for l in _lines(db, user)) == snapshot
    assert all(l.session_id is None and l.user_id == user_id for l in _lines(db, user))


def test_merge_picks_up_quantity_added_meanwhile(db, make_product, user_id):
    pid = make_product()
    session = _session()
    user = UserOwner(user_id)
    svc = CartService(db)
    svc.add_line(session, pid, quantity=1)
    svc.add_line(user, pid, quantity=2)

    real_refs = svc.cart_repo.line_refs

    def refs_then_concurrent_add(owner_key):
        refs = real_refs(owner_key)
        other = SessionLocal()
        try:
            CartService(other).add_line(session, pid, quantity=5)
        finally:
            other.close()
        return refs

    svc.cart_repo.line_refs = refs_then_concurrent_add

    result = svc.merge_session_into_user(session.session_id, user_id)
    assert result.merged == 1

    user_lines = _lines(db, user)
    assert len(user_lines) == 1
    assert user_lines[0].quantity == 8
    assert _lines(db, session) == []


def test_concurrent_merges_do_not_double_count(make_product, user_id):
    pid = make_product()
    session = _session()
    user = UserOwner(user_id)
    s = SessionLocal()
    try:
        CartService(s).add_line(session, pid, quantity=1)
        CartService(s).add_line(user, pid, quantity=2)
    finally:
        s.close()

    def merge(_):
        s = SessionLocal()
        try:
            return CartService(s).merge_session_into_user(session.session_id, user_id).total
        finally:
            s.close()

    with ThreadPoolExecutor(max_workers=4) as ex:
        totals = list(ex.map(merge, range(4)))

    assert sum(totals) == 1
    s = SessionLocal()
    try:
        lines = _lines(s, user)
        assert len(lines) == 1 and lines[0].quantity == 3
        assert _lines(s, session) == []
    finally:
        s.close()
