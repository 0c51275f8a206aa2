"""
Read-time campaign display status for dashboards.

Status is checked first; only approved bookings are refined by their date
window. An approved booking whose end date already passed (the lifecycle job
has not completed it yet) is reported as past rather than treated as an error.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from maddi.core import dates


class CampaignStatus(str, Enum):
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    PAST = "past"
    PENDING = "pending"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


_DIRECT = {
    "pending": CampaignStatus.PENDING,
    "rejected": CampaignStatus.REJECTED,
    "cancelled": CampaignStatus.CANCELLED,
    "completed": CampaignStatus.PAST,
}


def classify_campaign(
    status: str,
    start_date: dates.DateLike,
    end_date: dates.DateLike,
    now: Optional[datetime] = None,
) -> CampaignStatus:
    if status in _DIRECT:
        return _DIRECT[status]
    if status != "approved":
        raise ValueError(f"Unknown booking status: {status!r}")

    now = now or dates.now_local()
    if now < dates.parse_date_only_start(start_date):
        return CampaignStatus.SCHEDULED
    if now > dates.parse_date_only_end(end_date):
        return CampaignStatus.PAST
    return CampaignStatus.ONGOING
