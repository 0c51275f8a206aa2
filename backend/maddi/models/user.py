"""
User profile for identities issued by the external identity provider.

Authentication happens elsewhere; this table only resolves who a token's
subject is (email, display name, owner vs. business) so notifications and
emails can be addressed.
"""

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint

from maddi.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    company_name = Column(String(255), nullable=True)
    user_type = Column(String(20), nullable=False, default="business")  # owner, business
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("user_type IN ('owner', 'business')", name="check_user_type"),
    )

    def display_name(self, fallback: str = "Usuario") -> str:
        return self.company_name or self.full_name or fallback

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
