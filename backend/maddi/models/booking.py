"""
Booking model: a business's request to reserve a billboard for a date range.

Key design decisions:
- `start_date`/`end_date` are date-only and inclusive.
- Status is a single column constrained to the lifecycle states; every
  transition is a conditional UPDATE on the expected current status.
- Overlap between approved bookings is not a table constraint (digital
  billboards are exempt); approval enforces it under the billboard's
  optimistic lock.
- Composite index on (billboard_id, status) covers the availability and
  overlap queries.
"""

from sqlalchemy import Column, Date, ForeignKey, Index, Integer, Numeric, String, Text, CheckConstraint

from maddi.db.base import Base, TimestampMixin

BOOKING_STATUSES = ("pending", "approved", "rejected", "completed", "cancelled")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    billboard_id = Column(Integer, ForeignKey("billboards.id", ondelete="CASCADE"), nullable=False, index=True)
    business_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    notes = Column(Text, nullable=True)
    ad_design_url = Column(String(1024), nullable=True)

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="check_booking_date_range"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'completed', 'cancelled')",
            name="check_booking_status",
        ),
        CheckConstraint("total_price >= 0", name="check_booking_price_non_negative"),
        Index("ix_bookings_billboard_status", "billboard_id", "status"),
        Index("ix_bookings_status_start", "status", "start_date"),
        Index("ix_bookings_status_end", "status", "end_date"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, billboard={self.billboard_id}, status={self.status})>"
