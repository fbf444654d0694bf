from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ShippingAddress(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    postal_code: Optional[str] = None


class BillingAddress(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    same_as_shipping: bool = True
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None

    @model_validator(mode="after")
    def _fields_when_separate(self):
        if not self.same_as_shipping:
            missing = [
                f
                for f in ("full_name", "email", "phone", "address", "city", "state", "country")
                if not getattr(self, f)
            ]
            if missing:
                raise ValueError(f"billing address is missing: {', '.join(missing)}")
        return self


class CheckoutIn(BaseModel):
    shipping_address: ShippingAddress
    billing_address: BillingAddress = Field(default_factory=BillingAddress)
    notes: Optional[str] = None


class OrderLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    product_id: int
    variant_id: Optional[int] = None
    product_name: Optional[str] = None
    quantity: int
    unit_price_kobo: int
    line_total_kobo: int
    selected_length: Optional[str] = None
    selected_color: Optional[str] = None


class OrderSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    order_number: str
    status: str
    subtotal_kobo: int
    shipping_fee_kobo: int
    total_kobo: int
    item_count: int
    created_at: datetime


class OrderOut(OrderSummaryOut):
    shipping_address: dict
    billing_address: dict
    payment_method: str
    notes: Optional[str] = None
    proof_of_payment_url: Optional[str] = None
    lines: List[OrderLineOut] = []


class CheckoutOut(BaseModel):
    order_id: int
    order_number: str
    status: str
    total_kobo: int
    payment_url: str
