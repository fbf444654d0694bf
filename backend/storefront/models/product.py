from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from storefront.db import Base


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(128), nullable=False)
    slug = Column(String(128), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(512), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    products = relationship("Product", back_populates="category")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    name = Column(String(256), nullable=False)
    slug = Column(String(256), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    price_kobo = Column(Integer, nullable=False, default=0)
    stock = Column(Integer, default=0, nullable=False)
    images = Column(JSON, nullable=False, default=list)
    lengths = Column(JSON, nullable=False, default=list)  # available lengths, e.g. ["12\"", "16\""]
    colors = Column(JSON, nullable=False, default=list)
    texture = Column(String(64), nullable=True)
    hair_type = Column(String(64), nullable=True)
    featured = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    category = relationship("Category", back_populates="products")
    variants = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by=lambda: [ProductVariant.length, ProductVariant.color],
    )

    @property
    def image(self):
        return self.images[0] if self.images else None

    def __repr__(self):
        return f"<Product id={self.id} slug={self.slug}>"


class ProductVariant(Base):
    __tablename__ = "product_variants"
    __table_args__ = (
        UniqueConstraint("product_id", "length", "color", name="uq_variant_length_color"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    length = Column(String(32), nullable=False)
    color = Column(String(64), nullable=False)
    price_kobo = Column(Integer, nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    sku = Column(String(64), nullable=True, unique=True)

    product = relationship("Product", back_populates="variants")

    def __repr__(self):
        return f"<ProductVariant id={self.id} product={self.product_id} {self.length}/{self.color}>"
