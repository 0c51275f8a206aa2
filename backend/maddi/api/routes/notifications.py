"""
In-app notification inbox endpoints.
"""

from fastapi import APIRouter, Depends, Query

from sqlalchemy.ext.asyncio import AsyncSession

from maddi.core.security import CallerContext, get_current_caller
from maddi.db.session import get_db
from maddi.schemas.notification import NotificationResponse
from maddi.services import notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=list[NotificationResponse])
async def list_notifications_endpoint(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    return await notification_service.list_notifications(db, caller, unread_only, limit)


@router.post("/read-all")
async def mark_all_read_endpoint(
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    updated = await notification_service.mark_all_read(db, caller)
    await db.commit()
    return {"updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read_endpoint(
    notification_id: int,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    notification = await notification_service.mark_read(db, caller, notification_id)
    await db.commit()
    return notification
