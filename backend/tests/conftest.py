import os
import tempfile
from uuid import uuid4

# must be set before storefront.config is imported anywhere
_TMP = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TMP, 'test.db')}")
os.environ.setdefault("PROOF_UPLOAD_DIR", os.path.join(_TMP, "proofs"))

import pytest

from storefront.db import SessionLocal, init_db
from storefront.models.product import Product, ProductVariant


@pytest.fixture(autouse=True, scope="session")
def setup_db():
    init_db(reset=True)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_id():
    # fresh user per test so carts and orders never collide across tests
    return uuid4().int % 1_000_000_000


@pytest.fixture
def address():
    return {
        "full_name": "Ada Obi",
        "email": "ada@example.com",
        "phone": "08012345678",
        "address": "12 Allen Avenue",
        "city": "Ikeja",
        "state": "Lagos",
        "country": "Nigeria",
    }


@pytest.fixture
def make_product():
    """Factory: make_product(price_kobo, stock, variants=[(length, color, price_kobo, stock)])."""

    def _make(price_kobo=1_000_000, stock=10, variants=(), name=None):
        db = SessionLocal()
        try:
            slug = f"test-{uuid4().hex[:10]}"
            p = Product(
                slug=slug,
                name=name or f"Test Hair {slug}",
                price_kobo=price_kobo,
                stock=stock,
                images=[f"/images/{slug}.jpg"],
            )
            db.add(p)
            db.flush()
            for length, color, v_price, v_stock in variants:
                db.add(
                    ProductVariant(
                        product_id=p.id,
                        length=length,
                        color=color,
                        price_kobo=v_price,
                        stock=v_stock,
                    )
                )
            db.commit()
            return p.id
        finally:
            db.close()

    return _make
