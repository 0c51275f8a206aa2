"""
Billboard management: listings, pause/resume, blocked dates, pricing
overrides and the availability snapshot the calendar is built from.
"""

from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from maddi.core import dates, errors
from maddi.core.logging import get_logger
from maddi.core.security import CallerContext
from maddi.models import Billboard, BlockedDate, Booking, PricingOverride
from maddi.schemas.billboard import BillboardCreate, BlockedDateCreate, PricingOverrideCreate
from maddi.services.availability import OCCUPYING_STATUSES
from maddi.services.booking_service import get_billboard
from maddi.services.outbox import Outbox

logger = get_logger(__name__)


def _require_owner(caller: CallerContext, billboard: Billboard, allow_admin: bool = False) -> None:
    if billboard.owner_id == caller.user_id:
        return
    if allow_admin and caller.is_admin:
        return
    raise errors.Unauthorized("Only the billboard owner can manage this billboard")


def _parse_range(start: str, end: str) -> tuple[date, date]:
    first, last = dates.parse_date_only(start), dates.parse_date_only(end)
    if first > last:
        raise errors.ValidationError("start_date must be on or before end_date")
    return first, last


async def create_billboard(db: AsyncSession, caller: CallerContext, data: BillboardCreate) -> Billboard:
    if caller.user_type != "owner":
        raise errors.Unauthorized("Only owner accounts can list billboards")

    billboard = Billboard(
        owner_id=caller.user_id,
        title=data.title,
        address=data.address,
        city=data.city,
        state=data.state,
        latitude=data.latitude,
        longitude=data.longitude,
        width_m=data.width_m,
        height_m=data.height_m,
        billboard_type=data.billboard_type,
        price_per_month=data.price_per_month,
        daily_impressions=data.daily_impressions,
        is_available=True,
        version=1,
    )
    db.add(billboard)
    await db.flush()
    await db.refresh(billboard)

    logger.info("billboard_created", billboard_id=billboard.id, owner_id=caller.user_id, type=billboard.billboard_type)
    return billboard


async def list_billboards(
    db: AsyncSession,
    city: Optional[str] = None,
    available_only: bool = True,
) -> list[Billboard]:
    query = select(Billboard)
    if city:
        query = query.where(Billboard.city == city)
    if available_only:
        query = query.where(Billboard.is_available.is_(True))
    result = await db.execute(query.order_by(Billboard.id))
    return list(result.scalars().all())


async def pause_billboard(db: AsyncSession, caller: CallerContext, billboard_id: int, outbox: Outbox) -> Billboard:
    """Hide a billboard from new requests. Admins pause on behalf of the platform."""
    billboard = await get_billboard(db, billboard_id)
    _require_owner(caller, billboard, allow_admin=True)
    if not billboard.is_available:
        return billboard

    billboard.is_available = False
    billboard.pause_reason = "owner" if billboard.owner_id == caller.user_id else "admin"
    await db.flush()
    outbox.billboard_changed(billboard.id)

    logger.info("billboard_paused", billboard_id=billboard.id, reason=billboard.pause_reason, by=caller.user_id)
    return billboard


async def resume_billboard(db: AsyncSession, caller: CallerContext, billboard_id: int, outbox: Outbox) -> Billboard:
    """Owners cannot lift a pause an admin placed."""
    billboard = await get_billboard(db, billboard_id)
    _require_owner(caller, billboard, allow_admin=True)
    if billboard.is_available:
        return billboard
    if billboard.pause_reason == "admin" and not caller.is_admin:
        raise errors.Unauthorized("This billboard was paused by an administrator")

    billboard.is_available = True
    billboard.pause_reason = None
    await db.flush()
    outbox.billboard_changed(billboard.id)

    logger.info("billboard_resumed", billboard_id=billboard.id, by=caller.user_id)
    return billboard


async def list_blocked_dates(db: AsyncSession, billboard_id: int) -> list[BlockedDate]:
    await get_billboard(db, billboard_id)
    result = await db.execute(
        select(BlockedDate)
        .where(BlockedDate.billboard_id == billboard_id)
        .order_by(BlockedDate.start_date)
    )
    return list(result.scalars().all())


async def add_blocked_date(
    db: AsyncSession,
    caller: CallerContext,
    billboard_id: int,
    data: BlockedDateCreate,
    outbox: Outbox,
) -> BlockedDate:
    billboard = await get_billboard(db, billboard_id)
    _require_owner(caller, billboard, allow_admin=True)
    start, end = _parse_range(data.start_date, data.end_date)

    blocked = BlockedDate(billboard_id=billboard.id, start_date=start, end_date=end, reason=data.reason)
    db.add(blocked)
    await db.flush()
    await db.refresh(blocked)
    outbox.billboard_changed(billboard.id)

    logger.info("blocked_date_added", billboard_id=billboard.id, blocked_id=blocked.id, start=start.isoformat(), end=end.isoformat())
    return blocked


async def delete_blocked_date(
    db: AsyncSession,
    caller: CallerContext,
    billboard_id: int,
    blocked_id: int,
    outbox: Outbox,
) -> None:
    billboard = await get_billboard(db, billboard_id)
    _require_owner(caller, billboard, allow_admin=True)

    blocked = await db.get(BlockedDate, blocked_id)
    if not blocked or blocked.billboard_id != billboard.id:
        raise errors.NotFound(f"Blocked date {blocked_id} not found")
    await db.delete(blocked)
    await db.flush()
    outbox.billboard_changed(billboard.id)

    logger.info("blocked_date_deleted", billboard_id=billboard.id, blocked_id=blocked_id)


async def list_pricing_overrides(db: AsyncSession, billboard_id: int) -> list[PricingOverride]:
    await get_billboard(db, billboard_id)
    result = await db.execute(
        select(PricingOverride)
        .where(PricingOverride.billboard_id == billboard_id)
        .order_by(PricingOverride.start_date)
    )
    return list(result.scalars().all())


async def add_pricing_override(
    db: AsyncSession,
    caller: CallerContext,
    billboard_id: int,
    data: PricingOverrideCreate,
) -> PricingOverride:
    billboard = await get_billboard(db, billboard_id)
    _require_owner(caller, billboard)
    start, end = _parse_range(data.start_date, data.end_date)

    override = PricingOverride(
        billboard_id=billboard.id,
        start_date=start,
        end_date=end,
        price_per_month=data.price_per_month,
        notes=data.notes,
    )
    db.add(override)
    await db.flush()
    await db.refresh(override)

    logger.info("pricing_override_added", billboard_id=billboard.id, override_id=override.id, price=str(override.price_per_month))
    return override


async def delete_pricing_override(db: AsyncSession, caller: CallerContext, billboard_id: int, override_id: int) -> None:
    billboard = await get_billboard(db, billboard_id)
    _require_owner(caller, billboard)

    override = await db.get(PricingOverride, override_id)
    if not override or override.billboard_id != billboard.id:
        raise errors.NotFound(f"Pricing override {override_id} not found")
    await db.delete(override)
    await db.flush()

    logger.info("pricing_override_deleted", billboard_id=billboard.id, override_id=override_id)


async def get_availability_snapshot(
    db: AsyncSession,
    billboard_id: int,
    start: date,
    end: date,
) -> tuple[Billboard, list[Booking], list[BlockedDate]]:
    """Billboard plus the occupying bookings and blocked ranges touching [start, end]."""
    billboard = await get_billboard(db, billboard_id)

    bookings = await db.execute(
        select(Booking).where(
            Booking.billboard_id == billboard_id,
            Booking.status.in_(OCCUPYING_STATUSES),
            Booking.start_date <= end,
            Booking.end_date >= start,
        )
    )
    blocked = await db.execute(
        select(BlockedDate).where(
            BlockedDate.billboard_id == billboard_id,
            BlockedDate.start_date <= end,
            BlockedDate.end_date >= start,
        )
    )
    return billboard, list(bookings.scalars().all()), list(blocked.scalars().all())
