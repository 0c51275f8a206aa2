"""
In-app notification inbox.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from maddi.core import errors
from maddi.core.security import CallerContext
from maddi.models import Notification


async def list_notifications(
    db: AsyncSession,
    caller: CallerContext,
    unread_only: bool = False,
    limit: int = 50,
) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == caller.user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    result = await db.execute(
        query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def mark_read(db: AsyncSession, caller: CallerContext, notification_id: int) -> Notification:
    notification = await db.get(Notification, notification_id)
    if not notification or notification.user_id != caller.user_id:
        raise errors.NotFound(f"Notification {notification_id} not found")
    notification.is_read = True
    await db.flush()
    return notification


async def mark_all_read(db: AsyncSession, caller: CallerContext) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == caller.user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
