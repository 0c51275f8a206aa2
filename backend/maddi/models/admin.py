"""
Administrator accounts and their token-based invitations.

Key design decisions:
- `token` is random and unique; an invitation is single-use (`accepted_at`).
- Expiry is derived (`expires_at` in the past and never accepted), not stored.
- One open (unaccepted) invitation per email, enforced by a partial unique
  index; expired open rows are deleted before a new invitation is issued.
- `admin_users.user_id` is unique so accepting twice cannot grant two records.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, CheckConstraint, text

from maddi.db.base import Base, TimestampMixin

ADMIN_ROLES = ("admin", "super_admin")


class AdminUser(Base, TimestampMixin):
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    role = Column(String(20), nullable=False, default="admin")
    email = Column(String(255), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'super_admin')", name="check_admin_role"),
    )

    def __repr__(self) -> str:
        return f"<AdminUser(user={self.user_id}, role={self.role})>"


class AdminInvitation(Base, TimestampMixin):
    __tablename__ = "admin_invitations"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="admin")
    token = Column(String(64), unique=True, index=True, nullable=False)
    invited_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'super_admin')", name="check_invitation_role"),
        Index(
            "uq_admin_invitations_open_email",
            "email",
            unique=True,
            postgresql_where=text("accepted_at IS NULL"),
            sqlite_where=text("accepted_at IS NULL"),
        ),
    )
