"""
Pydantic schemas for in-app notifications and the lifecycle job report.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    type: str
    related_booking_id: Optional[int]
    related_billboard_id: Optional[int]
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class LifecycleReportResponse(BaseModel):
    date: date
    started: int
    ended: int
    details: list[str]

    model_config = {"from_attributes": True}
