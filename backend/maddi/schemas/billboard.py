"""
Pydantic schemas for billboards, blocked dates, pricing overrides and
availability calendars.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from maddi.services.availability import DayStatus


class BillboardCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=120)
    state: str = Field(..., min_length=1, max_length=120)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    width_m: float = Field(..., gt=0)
    height_m: float = Field(..., gt=0)
    billboard_type: Literal["static", "digital"] = "static"
    price_per_month: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    daily_impressions: Optional[int] = Field(None, ge=0)


class BillboardResponse(BaseModel):
    id: int
    owner_id: int
    title: str
    address: str
    city: str
    state: str
    latitude: float
    longitude: float
    width_m: float
    height_m: float
    billboard_type: str
    price_per_month: Decimal
    daily_impressions: Optional[int]
    is_available: bool
    pause_reason: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class DateRangeCreate(BaseModel):
    start_date: str = Field(..., examples=["2026-12-24"])
    end_date: str = Field(..., examples=["2026-12-26"])


class BlockedDateCreate(DateRangeCreate):
    reason: Optional[str] = Field(None, max_length=500)


class BlockedDateResponse(BaseModel):
    id: int
    billboard_id: int
    start_date: date
    end_date: date
    reason: Optional[str]

    model_config = {"from_attributes": True}


class PricingOverrideCreate(DateRangeCreate):
    price_per_month: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = Field(None, max_length=500)


class PricingOverrideResponse(BaseModel):
    id: int
    billboard_id: int
    start_date: date
    end_date: date
    price_per_month: Decimal
    notes: Optional[str]

    model_config = {"from_attributes": True}


class CalendarDayResponse(BaseModel):
    date: date
    status: DayStatus
    selectable: bool

    model_config = {"from_attributes": True}


class AvailabilityResponse(BaseModel):
    billboard_id: int
    billboard_type: str
    is_available: bool
    start: date
    end: date
    today: date
    days: list[CalendarDayResponse]
    cached: bool = False
