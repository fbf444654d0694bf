from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.product_schema import CategoryOut, ProductDetailOut, ProductOut

router = APIRouter(tags=["catalogue"])


@router.get("", summary="List products")
def list_products(
    category: Optional[str] = Query(None, description="category slug"),
    min_price: Optional[int] = Query(None, ge=0, description="kobo"),
    max_price: Optional[int] = Query(None, ge=0, description="kobo"),
    page: int = Query(1, ge=1),
    size: int = Query(12, ge=1, le=100),
    db: Session = Depends(get_db),
):
    repo = ProductRepository(db)
    items, total = repo.list(
        category=category, min_price=min_price, max_price=max_price, page=page, size=size
    )
    return {
        "items": [ProductOut.model_validate(p).model_dump() for p in items],
        "total": total,
        "page": page,
        "size": size,
    }


@router.get("/featured", summary="Featured products")
def featured_products(limit: int = Query(8, ge=1, le=50), db: Session = Depends(get_db)):
    repo = ProductRepository(db)
    return [ProductOut.model_validate(p).model_dump() for p in repo.list_featured(limit=limit)]


@router.get("/categories", summary="List categories")
def list_categories(db: Session = Depends(get_db)):
    repo = ProductRepository(db)
    return [CategoryOut.model_validate(c).model_dump() for c in repo.list_categories()]


@router.get("/{slug}", summary="Get product by slug")
def get_product(slug: str, db: Session = Depends(get_db)):
    repo = ProductRepository(db)
    p = repo.get_by_slug(slug)
    if not p:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductDetailOut.model_validate(p).model_dump()
