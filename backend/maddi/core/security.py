"""
Caller identity.

Tokens are issued by the external identity provider (HS256 JWT, `sub` = user
id). Each request resolves them into a `CallerContext` which is passed
explicitly to every service operation instead of living in global state.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from maddi.core.config import get_settings
from maddi.core.logging import get_logger
from maddi.db.session import get_db
from maddi.models import AdminUser, User

logger = get_logger(__name__)
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CallerContext:
    user_id: int
    email: str
    user_type: str  # owner, business
    admin_role: Optional[str] = None  # admin, super_admin

    @property
    def is_admin(self) -> bool:
        return self.admin_role in ("admin", "super_admin")

    @property
    def is_super_admin(self) -> bool:
        return self.admin_role == "super_admin"


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Mint a token the way the identity provider does (used by tests and tooling)."""
    settings = get_settings()
    to_encode = data.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[dict[str, Any]]:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def load_caller(db: AsyncSession, user_id: int) -> Optional[CallerContext]:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    admin = (
        await db.execute(select(AdminUser).where(AdminUser.user_id == user_id))
    ).scalar_one_or_none()
    return CallerContext(
        user_id=user.id,
        email=user.email,
        user_type=user.user_type,
        admin_role=admin.role if admin else None,
    )


async def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> CallerContext:
    """Resolve the bearer token into a caller context. Raises 401 if invalid."""
    if not credentials:
        raise _unauthenticated("Not authenticated")
    payload = decode_token(credentials.credentials)
    if not payload or not str(payload.get("sub", "")).isdigit():
        raise _unauthenticated("Invalid or expired token")

    caller = await load_caller(db, int(payload["sub"]))
    if caller is None:
        logger.warning("caller_unknown", sub=payload.get("sub"))
        raise _unauthenticated("Unknown user")
    return caller
