from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.errors import NotFoundError
from storefront.models.product import Category, Product, ProductVariant


class ProductRepository:
    """Read-only catalogue queries. Nothing here writes except create_or_update (seeding)."""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int, for_update: bool = False) -> Product:
        qry = self.db.query(Product).filter(Product.id == product_id)
        if for_update:
            qry = qry.with_for_update().populate_existing()
        p = qry.first()
        if not p:
            raise NotFoundError(f"Product {product_id} not found", identifier=product_id)
        return p

    def get_by_slug(self, slug: str) -> Optional[Product]:
        return self.db.query(Product).filter(Product.slug == slug).first()

    def get_variants(self, product_id: int, for_update: bool = False) -> List[ProductVariant]:
        qry = (
            self.db.query(ProductVariant)
            .filter(ProductVariant.product_id == product_id)
            .order_by(ProductVariant.length, ProductVariant.color)
        )
        if for_update:
            qry = qry.with_for_update().populate_existing()
        return qry.all()

    def get_variant(self, variant_id: int) -> Optional[ProductVariant]:
        return self.db.query(ProductVariant).filter(ProductVariant.id == variant_id).first()

    def list_categories(self) -> List[Category]:
        return self.db.query(Category).order_by(Category.name).all()

    def list_featured(self, limit: int = 8) -> List[Product]:
        return (
            self.db.query(Product)
            .filter(Product.featured == True)  # noqa: E712
            .order_by(Product.created_at.desc(), Product.id.desc())
            .limit(limit)
            .all()
        )

    def list(
        self,
        category: Optional[str] = None,
        min_price: Optional[int] = None,
        max_price: Optional[int] = None,
        page: int = 1,
        size: int = 12,
    ) -> Tuple[List[Product], int]:
        query = self.db.query(Product)
        if category:
            query = query.join(Category, Product.category_id == Category.id).filter(
                Category.slug == category
            )
        if min_price is not None:
            query = query.filter(Product.price_kobo >= min_price)
        if max_price is not None:
            query = query.filter(Product.price_kobo <= max_price)
        total = query.with_entities(func.count(Product.id)).scalar() or 0
        items = (
            query.order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        return items, total

    def create_or_update(
        self,
        slug: str,
        name: str,
        price_kobo: int,
        stock: int = 0,
        category: Optional[Category] = None,
        description: str = None,
        images: Optional[list] = None,
        lengths: Optional[list] = None,
        colors: Optional[list] = None,
        featured: bool = False,
    ) -> Product:
        p = self.get_by_slug(slug)
        if not p:
            p = Product(slug=slug)
            self.db.add(p)
        p.name = name
        p.price_kobo = price_kobo
        p.stock = stock
        p.category = category
        p.description = description
        p.images = images or []
        p.lengths = lengths or []
        p.colors = colors or []
        p.featured = featured
        self.db.flush()
        return p

    def get_or_create_category(self, slug: str, name: str) -> Category:
        c = self.db.query(Category).filter(Category.slug == slug).first()
        if not c:
            c = Category(slug=slug, name=name)
            self.db.add(c)
            self.db.flush()
        return c

    def upsert_variant(
        self, product: Product, length: str, color: str, price_kobo: int, stock: int, sku: str = None
    ) -> ProductVariant:
        v = (
            self.db.query(ProductVariant)
            .filter(
                ProductVariant.product_id == product.id,
                ProductVariant.length == length,
                ProductVariant.color == color,
            )
            .first()
        )
        if not v:
            v = ProductVariant(product_id=product.id, length=length, color=color)
            self.db.add(v)
        v.price_kobo = price_kobo
        v.stock = stock
        v.sku = sku
        self.db.flush()
        return v
