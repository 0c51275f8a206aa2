"""
Billboard model: a rentable static or digital ad surface.

Key design decisions:
- Date-level availability is never stored; it is derived from bookings and
  blocked dates at read time. `is_available` only reflects an explicit pause.
- `pause_reason` records who paused it (owner or admin) so an owner cannot
  lift an admin pause.
- `version` column enables optimistic locking when approving bookings, which
  serializes concurrent approvals on the same billboard.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)

from maddi.db.base import Base, TimestampMixin

BILLBOARD_TYPES = ("static", "digital")
PAUSE_REASONS = ("owner", "admin")


class Billboard(Base, TimestampMixin):
    __tablename__ = "billboards"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    address = Column(String(255), nullable=False)
    city = Column(String(120), nullable=False)
    state = Column(String(120), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    width_m = Column(Float, nullable=False)
    height_m = Column(Float, nullable=False)
    billboard_type = Column(String(20), nullable=False, default="static")
    price_per_month = Column(Numeric(12, 2), nullable=False)
    daily_impressions = Column(Integer, nullable=True)

    is_available = Column(Boolean, nullable=False, default=True)
    pause_reason = Column(String(20), nullable=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("billboard_type IN ('static', 'digital')", name="check_billboard_type"),
        CheckConstraint("pause_reason IS NULL OR pause_reason IN ('owner', 'admin')", name="check_pause_reason"),
        # A paused billboard always says why
        CheckConstraint(
            "(is_available AND pause_reason IS NULL) OR (NOT is_available AND pause_reason IS NOT NULL)",
            name="check_pause_explained",
        ),
        CheckConstraint("price_per_month >= 0", name="check_price_non_negative"),
        Index("ix_billboards_city", "city"),
    )

    @property
    def is_digital(self) -> bool:
        return self.billboard_type == "digital"

    def __repr__(self) -> str:
        return f"<Billboard(id={self.id}, title={self.title}, type={self.billboard_type})>"
