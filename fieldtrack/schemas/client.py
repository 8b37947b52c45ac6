from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_coordinates(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("Latitude and longitude must be provided together")
        return self


class ClientUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    address: Optional[str] = Field(default=None, min_length=1)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_coordinates(self):
        sent = self.model_fields_set
        if ("latitude" in sent) != ("longitude" in sent):
            raise ValueError("Latitude and longitude must be updated together")
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("Latitude and longitude must be provided together")
        return self


class ClientResponse(BaseModel):
    id: int
    user_id: int
    name: str
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
