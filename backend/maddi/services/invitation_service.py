"""
Admin invitation workflow.

A super admin invites an email address; the invitee follows the emailed link,
signs up with the identity provider and accepts the token, which grants the
admin role. Tokens are single use and expire after INVITATION_TTL_DAYS.

Accepting is two steps: insert the AdminUser row and commit, then mark the
invitation accepted with a conditional UPDATE. If the insert fails nothing is
marked and the token can be retried. If only the marking fails, the admin
exists and the failure is logged; the token then expires on its own.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from maddi.core import errors
from maddi.core.config import get_settings
from maddi.core.logging import get_logger
from maddi.core.security import CallerContext
from maddi.models import AdminInvitation, AdminUser
from maddi.models.admin import ADMIN_ROLES
from maddi.services.outbox import Outbox

logger = get_logger(__name__)

ROLE_LABELS = {"admin": "Administrador", "super_admin": "Super Administrador"}

PENDING_INVITATION = "There is already a pending invitation for this email"
ALREADY_ADMIN = "You are already an administrator"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_expired(invitation: AdminInvitation, now: Optional[datetime] = None) -> bool:
    now = now or _utcnow()
    return invitation.accepted_at is None and now > _as_utc(invitation.expires_at)


async def _clear_open_invitations(db: AsyncSession, email: str) -> None:
    """Conflict on a live invitation for `email`; drop expired ones so the slot frees up."""
    result = await db.execute(
        select(AdminInvitation).where(
            AdminInvitation.email == email,
            AdminInvitation.accepted_at.is_(None),
        )
    )
    for invitation in result.scalars().all():
        if not is_expired(invitation):
            raise errors.Conflict(PENDING_INVITATION)
        await db.delete(invitation)
        logger.info("invitation_expired_removed", invitation_id=invitation.id)
    await db.flush()


async def _ensure_not_admin(db: AsyncSession, user_id: int) -> None:
    existing = await db.execute(select(AdminUser).where(AdminUser.user_id == user_id))
    if existing.scalar_one_or_none():
        raise errors.Conflict(ALREADY_ADMIN)


async def create_invitation(
    db: AsyncSession,
    caller: CallerContext,
    email: str,
    role: str,
    outbox: Outbox,
) -> AdminInvitation:
    """Invite `email` as `role`. Only super admins may invite."""
    if not caller.is_super_admin:
        logger.warning("invitation_forbidden", caller_id=caller.user_id)
        raise errors.Unauthorized("Only super admins can invite administrators")
    if role not in ADMIN_ROLES:
        raise errors.ValidationError(f"Invalid role {role!r}")
    email = (email or "").strip().lower()
    if "@" not in email:
        raise errors.ValidationError("Invalid email address")

    existing_admin = await db.execute(select(AdminUser).where(AdminUser.email == email))
    if existing_admin.scalar_one_or_none():
        raise errors.Conflict("This email already belongs to an administrator")

    await _clear_open_invitations(db, email)

    settings = get_settings()
    invitation = AdminInvitation(
        email=email,
        role=role,
        token=secrets.token_urlsafe(32),
        invited_by=caller.user_id,
        expires_at=_utcnow() + timedelta(days=settings.INVITATION_TTL_DAYS),
    )
    db.add(invitation)
    try:
        await db.flush()
    except IntegrityError:
        # A concurrent request issued one first; the open-email index caught it
        await db.rollback()
        logger.warning("invitation_create_race", email=email)
        raise errors.Conflict(PENDING_INVITATION)
    await db.refresh(invitation)

    outbox.email(
        email,
        "admin_invite",
        email,
        roleLabel=ROLE_LABELS[role],
        inviteUrl=f"{settings.APP_BASE_URL.rstrip('/')}/admin/accept-invite?token={invitation.token}",
        expiresInDays=settings.INVITATION_TTL_DAYS,
    )

    logger.info("invitation_created", invitation_id=invitation.id, role=role, invited_by=caller.user_id)
    return invitation


async def validate_invitation(db: AsyncSession, token: str) -> AdminInvitation:
    """Load a usable invitation or raise NotFound / AlreadyUsed / Expired."""
    result = await db.execute(
        select(AdminInvitation)
        .where(AdminInvitation.token == token)
        .execution_options(populate_existing=True)
    )
    invitation = result.scalar_one_or_none()
    if not invitation:
        raise errors.NotFound("Invitation not found")
    if invitation.accepted_at is not None:
        raise errors.AlreadyUsed()
    if is_expired(invitation):
        raise errors.Expired()
    return invitation


async def accept_invitation(db: AsyncSession, caller: CallerContext, token: str) -> AdminUser:
    invitation = await validate_invitation(db, token)
    if (caller.email or "").strip().lower() != invitation.email:
        logger.warning("invitation_email_mismatch", invitation_id=invitation.id, caller_id=caller.user_id)
        raise errors.Unauthorized("This invitation was issued for a different email address")

    await _ensure_not_admin(db, caller.user_id)

    invitation_id = invitation.id
    admin = AdminUser(user_id=caller.user_id, role=invitation.role, email=invitation.email)
    db.add(admin)
    try:
        await db.flush()
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent accept of the same token
        await db.rollback()
        logger.warning("invitation_accept_race", invitation_id=invitation_id, user_id=caller.user_id)
        await validate_invitation(db, token)
        raise errors.Conflict(ALREADY_ADMIN)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("admin_user_create_failed", invitation_id=invitation_id, error=str(e))
        raise
    logger.info("admin_user_created", user_id=caller.user_id, role=admin.role, invitation_id=invitation_id)

    try:
        result = await db.execute(
            update(AdminInvitation)
            .where(AdminInvitation.id == invitation_id, AdminInvitation.accepted_at.is_(None))
            .values(accepted_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        if result.rowcount == 0:
            logger.warning("invitation_already_marked", invitation_id=invitation_id)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("invitation_mark_failed", invitation_id=invitation_id, error=str(e))

    await db.refresh(admin)
    return admin


async def list_pending_invitations(db: AsyncSession, caller: CallerContext) -> list[AdminInvitation]:
    if not caller.is_super_admin:
        raise errors.Unauthorized("Only super admins can list invitations")
    result = await db.execute(
        select(AdminInvitation)
        .where(AdminInvitation.accepted_at.is_(None))
        .order_by(AdminInvitation.created_at.desc(), AdminInvitation.id.desc())
    )
    return [inv for inv in result.scalars().all() if not is_expired(inv)]
