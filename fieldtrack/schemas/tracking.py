from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from fieldtrack.schemas.visit import VisitResponse


class LocationSampleIn(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    address: Optional[str] = None


class LocationSampleOut(BaseModel):
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    address: Optional[str] = None
    received_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TrackingStatusResponse(BaseModel):
    tracking: bool
    in_business_hours: bool
    manual_override: Optional[str] = None
    latest_sample: Optional[LocationSampleOut] = None
    open_visit: Optional[VisitResponse] = None

    class Config:
        from_attributes = True


class TickResponse(BaseModel):
    in_business_hours: bool
    tracking: bool
    started_visit: Optional[VisitResponse] = None
    open_visit: Optional[VisitResponse] = None
    end_of_day: Optional[List[VisitResponse]] = None

    class Config:
        from_attributes = True
