from fastapi.testclient import TestClient

from storefront.db import SessionLocal
from storefront.main import app
from storefront.repositories.product_repo import ProductRepository

client = TestClient(app)


def setup_module(module):
    db = SessionLocal()
    try:
        repo = ProductRepository(db)
        wigs = repo.get_or_create_category("catalogue-wigs", "Wigs")
        repo.create_or_update(
            slug="catalogue-frontal-wig",
            name="Frontal Wig",
            price_kobo=8_500_000,
            stock=3,
            category=wigs,
            featured=True,
            images=["/images/frontal.jpg"],
        )
        bundle = repo.create_or_update(
            slug="catalogue-body-wave",
            name="Body Wave Bundle",
            price_kobo=1_500_000,
            stock=10,
            lengths=['12"', '16"'],
            colors=["natural-black"],
        )
        repo.upsert_variant(bundle, '16"', "natural-black", 1_950_000, 4, sku="CAT-BW-16")
        repo.upsert_variant(bundle, '12"', "natural-black", 1_500_000, 6, sku="CAT-BW-12")
        db.commit()
    finally:
        db.close()


def test_list_products():
    res = client.get("/api/products", params={"size": 100})
    assert res.status_code == 200
    body = res.json()
    assert isinstance(body["items"], list)
    slugs = [it["slug"] for it in body["items"]]
    assert "catalogue-frontal-wig" in slugs
    assert body["total"] >= 2


def test_filter_by_category_and_price():
    res = client.get("/api/products", params={"category": "catalogue-wigs"})
    assert [it["slug"] for it in res.json()["items"]] == ["catalogue-frontal-wig"]

    res = client.get("/api/products", params={"min_price": 8_000_000, "max_price": 9_000_000, "size": 100})
    assert "catalogue-body-wave" not in [it["slug"] for it in res.json()["items"]]


def test_featured_and_categories():
    featured = client.get("/api/products/featured").json()
    assert "catalogue-frontal-wig" in [p["slug"] for p in featured]
    cats = client.get("/api/products/categories").json()
    assert "catalogue-wigs" in [c["slug"] for c in cats]


def test_product_detail_includes_variants():
    res = client.get("/api/products/catalogue-body-wave")
    assert res.status_code == 200
    body = res.json()
    assert [v["length"] for v in body["variants"]] == ['12"', '16"']
    assert body["variants"][1]["price_kobo"] == 1_950_000


def test_unknown_product_404():
    assert client.get("/api/products/no-such-hair").status_code == 404
