"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from maddi.services.campaign_status import CampaignStatus


class BookingCreate(BaseModel):
    billboard_id: int
    # Kept as strings so malformed dates surface through the date-only parser
    start_date: str = Field(..., examples=["2026-11-01"])
    end_date: str = Field(..., examples=["2026-11-30"])
    notes: Optional[str] = Field(None, max_length=2000)
    ad_design_url: Optional[str] = Field(None, max_length=1024)


class BookingResponse(BaseModel):
    id: int
    billboard_id: int
    business_id: int
    start_date: date
    end_date: date
    total_price: Decimal
    status: str
    notes: Optional[str]
    ad_design_url: Optional[str]
    created_at: datetime
    campaign_status: Optional[CampaignStatus] = None

    model_config = {"from_attributes": True}


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    total: int
