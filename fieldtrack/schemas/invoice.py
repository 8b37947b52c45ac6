from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class InvoiceCreate(BaseModel):
    visit_id: Optional[int] = None
    client_id: Optional[int] = None
    # Derived from the visit when omitted
    amount: Optional[float] = None
    notes: Optional[str] = None
    is_paid: bool = False


class InvoiceUpdate(BaseModel):
    amount: Optional[float] = None
    is_paid: Optional[bool] = None
    notes: Optional[str] = None


class EndOfDayInvoiceRequest(BaseModel):
    visit_ids: List[int] = Field(..., min_length=1)
    hourly_rate: Optional[float] = Field(default=None, gt=0)


class InvoiceResponse(BaseModel):
    id: int
    user_id: int
    client_id: Optional[int] = None
    visit_id: Optional[int] = None
    invoice_number: str
    amount: float
    date: Optional[datetime] = None
    is_paid: bool
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class EndOfDayFailure(BaseModel):
    visit_id: int
    code: str
    detail: str


class EndOfDayInvoiceResponse(BaseModel):
    created: List[InvoiceResponse]
    failed: List[EndOfDayFailure]
