# backend/storefront/schemas/product_schema.py
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    image_url: Optional[str] = None


class VariantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    length: str
    color: str
    price_kobo: int
    stock: int
    sku: Optional[str] = None


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    slug: str
    name: str
    description: Optional[str] = None
    price_kobo: int
    stock: int
    images: List[str] = []
    lengths: List[str] = []
    colors: List[str] = []
    texture: Optional[str] = None
    hair_type: Optional[str] = None
    featured: bool


class ProductDetailOut(ProductOut):
    category: Optional[CategoryOut] = None
    variants: List[VariantOut] = []
