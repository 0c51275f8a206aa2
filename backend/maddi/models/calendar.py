"""
Owner-managed calendar entries: blocked date ranges and price overrides.
"""

from sqlalchemy import Column, Date, ForeignKey, Integer, Numeric, String, CheckConstraint

from maddi.db.base import Base, TimestampMixin


class BlockedDate(Base, TimestampMixin):
    __tablename__ = "blocked_dates"

    id = Column(Integer, primary_key=True, index=True)
    billboard_id = Column(Integer, ForeignKey("billboards.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(String(500), nullable=True)

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="check_blocked_date_range"),
    )

    def __repr__(self) -> str:
        return f"<BlockedDate(id={self.id}, billboard={self.billboard_id}, {self.start_date}..{self.end_date})>"


class PricingOverride(Base, TimestampMixin):
    __tablename__ = "pricing_overrides"

    id = Column(Integer, primary_key=True, index=True)
    billboard_id = Column(Integer, ForeignKey("billboards.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    price_per_month = Column(Numeric(12, 2), nullable=False)
    notes = Column(String(500), nullable=True)

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="check_pricing_date_range"),
        CheckConstraint("price_per_month >= 0", name="check_pricing_price_non_negative"),
    )
