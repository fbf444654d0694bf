from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AttemptIn(BaseModel):
    session_id: Optional[str] = None


class AttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    order_id: int
    session_id: str
    started: bool
    created_at: datetime
    updated_at: datetime


class StatusUpdateIn(BaseModel):
    status: str
    notes: Optional[str] = None


class BulkStatusIn(BaseModel):
    order_ids: List[int] = Field(min_length=1, max_length=200)
    status: str
    notes: Optional[str] = None


class PaymentPageOut(BaseModel):
    order_id: int
    order_number: str
    status: str
    amount_kobo: int
    bank_name: str
    account_number: str
    account_name: str
    reference: str
    proof_of_payment_url: Optional[str] = None
