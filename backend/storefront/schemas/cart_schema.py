from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class AddLineIn(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(1, gt=0)
    selected_length: Optional[str] = None
    selected_color: Optional[str] = None


class UpdateQuantityIn(BaseModel):
    # 0 removes the line
    quantity: int = Field(..., ge=0)


class CartLineView(BaseModel):
    id: int
    product_id: int
    variant_id: Optional[int] = None
    quantity: int
    selected_length: Optional[str] = None
    selected_color: Optional[str] = None
    name: str
    image: Optional[str] = None
    product_slug: str
    base_price_kobo: int
    final_price_kobo: int
    line_total_kobo: int
    created_at: datetime


class CartView(BaseModel):
    items: List[CartLineView]
    item_count: int
    subtotal_kobo: int
    shipping_fee_kobo: int
    total_kobo: int
    free_shipping_threshold_kobo: int


class MergeOut(BaseModel):
    moved: int
    merged: int
