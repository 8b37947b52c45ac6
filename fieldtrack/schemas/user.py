from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from fieldtrack.services.business_hours import (
    DAY_CODES,
    is_known_timezone,
    parse_business_hours,
    parse_hhmm,
)


class BusinessHoursSchema(BaseModel):
    days: List[str] = Field(..., min_length=1)
    startTime: str
    endTime: str

    @field_validator("days")
    @classmethod
    def validate_days(cls, value: List[str]) -> List[str]:
        days = [day.strip().lower() for day in value]
        unknown = [day for day in days if day not in DAY_CODES]
        if unknown:
            raise ValueError(f"Unknown day codes: {unknown}")
        return days

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_time(cls, value: str) -> str:
        if parse_hhmm(value) is None:
            raise ValueError("Time must be HH:MM (24-hour)")
        return value

    @model_validator(mode="after")
    def check_window(self):
        if parse_business_hours(self.model_dump()) is None:
            raise ValueError("startTime must be before endTime")
        return self

    def to_json(self) -> str:
        return parse_business_hours(self.model_dump()).to_json()


def _check_timezone(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_known_timezone(value):
        raise ValueError("Unknown timezone")
    return value


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=64)
    password: str = Field(..., min_length=6)
    business_type: str
    business_hours: BusinessHoursSchema
    timezone: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        return _check_timezone(value)


class BusinessHoursUpdate(BaseModel):
    business_hours: BusinessHoursSchema
    timezone: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        return _check_timezone(value)


class UserResponse(BaseModel):
    id: int
    username: str
    business_type: str
    business_hours: str
    timezone: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
