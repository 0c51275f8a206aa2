"""
Billboard endpoints, including the cached availability calendar and its
live Server-Sent Events stream.
"""

from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from maddi.api.deps import commit_and_dispatch, get_outbox
from maddi.core import dates
from maddi.core.config import get_settings
from maddi.core.logging import get_logger
from maddi.core.security import CallerContext, get_current_caller
from maddi.db.session import async_session_maker, get_db
from maddi.schemas.billboard import (
    AvailabilityResponse,
    BillboardCreate,
    BillboardResponse,
    BlockedDateCreate,
    BlockedDateResponse,
    CalendarDayResponse,
    PricingOverrideCreate,
    PricingOverrideResponse,
)
from maddi.services import billboard_service
from maddi.services.availability import build_calendar
from maddi.services.booking_service import get_billboard
from maddi.services.cache_service import get_cached_calendar, set_cached_calendar
from maddi.services.change_feed_factory import get_change_feed
from maddi.services.outbox import Outbox

logger = get_logger(__name__)
router = APIRouter(prefix="/billboards", tags=["Billboards"])

DEFAULT_WINDOW_DAYS = 90


def _window(start: Optional[str], end: Optional[str]) -> tuple[date, date]:
    first = dates.parse_date_only(start) if start else dates.today()
    last = dates.parse_date_only(end) if end else first + timedelta(days=DEFAULT_WINDOW_DAYS - 1)
    return first, last


async def compute_availability(db: AsyncSession, billboard_id: int, start: date, end: date) -> AvailabilityResponse:
    today = dates.today()
    billboard, bookings, blocked = await billboard_service.get_availability_snapshot(db, billboard_id, start, end)
    days = build_calendar(
        start,
        end,
        bookings,
        blocked,
        billboard.is_digital,
        today=today,
        max_days=get_settings().MAX_AVAILABILITY_DAYS,
    )
    return AvailabilityResponse(
        billboard_id=billboard.id,
        billboard_type=billboard.billboard_type,
        is_available=billboard.is_available,
        start=start,
        end=end,
        today=today,
        days=[CalendarDayResponse.model_validate(day) for day in days],
    )


@router.post("/", response_model=BillboardResponse, status_code=status.HTTP_201_CREATED)
async def create_billboard_endpoint(
    billboard_data: BillboardCreate,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """List a new billboard. Requires an owner account."""
    billboard = await billboard_service.create_billboard(db, caller, billboard_data)
    await db.commit()
    return billboard


@router.get("/", response_model=list[BillboardResponse])
async def list_billboards_endpoint(
    city: Optional[str] = Query(None, max_length=120),
    available_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    return await billboard_service.list_billboards(db, city, available_only)


@router.get("/{billboard_id}", response_model=BillboardResponse)
async def get_billboard_endpoint(
    billboard_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await get_billboard(db, billboard_id)


@router.post("/{billboard_id}/pause", response_model=BillboardResponse)
async def pause_billboard_endpoint(
    billboard_id: int,
    background_tasks: BackgroundTasks,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
):
    billboard = await billboard_service.pause_billboard(db, caller, billboard_id, outbox)
    await commit_and_dispatch(db, outbox, background_tasks)
    return billboard


@router.post("/{billboard_id}/resume", response_model=BillboardResponse)
async def resume_billboard_endpoint(
    billboard_id: int,
    background_tasks: BackgroundTasks,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
):
    billboard = await billboard_service.resume_billboard(db, caller, billboard_id, outbox)
    await commit_and_dispatch(db, outbox, background_tasks)
    return billboard


@router.get("/{billboard_id}/availability", response_model=AvailabilityResponse)
async def get_availability_endpoint(
    billboard_id: int,
    start: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to today"),
    end: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to 90 days from start"),
    db: AsyncSession = Depends(get_db),
):
    """
    Day-by-day availability calendar.
    Results are cached in Redis and invalidated whenever the billboard's
    bookings or blocked dates change.
    """
    first, last = _window(start, end)
    today = dates.today()

    cached = await get_cached_calendar(billboard_id, first, last, today)
    if cached:
        logger.info("availability_cache_hit", billboard_id=billboard_id)
        cached["cached"] = True
        return AvailabilityResponse(**cached)

    availability = await compute_availability(db, billboard_id, first, last)
    await set_cached_calendar(billboard_id, first, last, today, availability.model_dump(mode="json"))
    return availability


@router.get("/{billboard_id}/availability/stream")
async def stream_availability_endpoint(
    billboard_id: int,
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Stream the availability calendar via Server-Sent Events.
    Sends the current calendar, then a fresh one every time a booking or
    blocked date of this billboard changes.
    """
    first, last = _window(start, end)
    initial = await compute_availability(db, billboard_id, first, last)
    subscription = await get_change_feed().subscribe(billboard_id)
    logger.info("availability_stream_opened", billboard_id=billboard_id)

    async def event_generator():
        try:
            yield f"data: {initial.model_dump_json()}\n\n"
            async for _ in subscription:
                # Own session: the request's session is closed once streaming starts
                async with async_session_maker() as session:
                    fresh = await compute_availability(session, billboard_id, first, last)
                yield f"data: {fresh.model_dump_json()}\n\n"
        finally:
            await subscription.close()
            logger.info("availability_stream_closed", billboard_id=billboard_id)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/{billboard_id}/blocked-dates", response_model=list[BlockedDateResponse])
async def list_blocked_dates_endpoint(
    billboard_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await billboard_service.list_blocked_dates(db, billboard_id)


@router.post(
    "/{billboard_id}/blocked-dates",
    response_model=BlockedDateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_blocked_date_endpoint(
    billboard_id: int,
    blocked_data: BlockedDateCreate,
    background_tasks: BackgroundTasks,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
):
    """Block a date range (maintenance, private use). Blocked days are never bookable."""
    blocked = await billboard_service.add_blocked_date(db, caller, billboard_id, blocked_data, outbox)
    await commit_and_dispatch(db, outbox, background_tasks)
    return blocked


@router.delete("/{billboard_id}/blocked-dates/{blocked_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blocked_date_endpoint(
    billboard_id: int,
    blocked_id: int,
    background_tasks: BackgroundTasks,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
):
    await billboard_service.delete_blocked_date(db, caller, billboard_id, blocked_id, outbox)
    await commit_and_dispatch(db, outbox, background_tasks)


@router.get("/{billboard_id}/pricing", response_model=list[PricingOverrideResponse])
async def list_pricing_overrides_endpoint(
    billboard_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await billboard_service.list_pricing_overrides(db, billboard_id)


@router.post(
    "/{billboard_id}/pricing",
    response_model=PricingOverrideResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_pricing_override_endpoint(
    billboard_id: int,
    override_data: PricingOverrideCreate,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Seasonal monthly price. Applies to bookings starting inside the range."""
    override = await billboard_service.add_pricing_override(db, caller, billboard_id, override_data)
    await db.commit()
    return override


@router.delete("/{billboard_id}/pricing/{override_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pricing_override_endpoint(
    billboard_id: int,
    override_id: int,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    await billboard_service.delete_pricing_override(db, caller, billboard_id, override_id)
    await db.commit()
