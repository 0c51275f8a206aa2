"""
In-app notifications and the lifecycle milestone ledger.

`CampaignMilestone` records which lifecycle notifications already fired for a
booking; the unique constraint keeps the daily job idempotent.
"""

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, String, Text, UniqueConstraint, CheckConstraint

from maddi.db.base import Base, TimestampMixin


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False, default="info")
    related_booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    related_billboard_id = Column(Integer, ForeignKey("billboards.id", ondelete="SET NULL"), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)


class CampaignMilestone(Base, TimestampMixin):
    __tablename__ = "campaign_milestones"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    milestone = Column(String(20), nullable=False)  # started, ended
    fired_on = Column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("booking_id", "milestone", name="uq_campaign_milestone"),
        CheckConstraint("milestone IN ('started', 'ended')", name="check_campaign_milestone"),
    )
