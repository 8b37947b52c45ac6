from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class VisitStart(BaseModel):
    # Validated by the visit service so a missing fix maps to InvalidLocation
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    client_id: Optional[int] = None
    service_type: Optional[str] = None
    service_details: Optional[str] = None
    billable_amount: Optional[float] = None
    notes: Optional[str] = None


class VisitResponse(BaseModel):
    id: int
    user_id: int
    client_id: Optional[int] = None
    address: Optional[str] = None
    date: Optional[datetime] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_known_location: bool
    has_invoice: bool
    service_type: Optional[str] = None
    service_details: Optional[str] = None
    billable_amount: Optional[float] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True
