"""
Booking endpoints: reservation requests and the owner's approve/reject
decisions, with concurrency-safe approval.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from maddi.api.deps import commit_and_dispatch, get_outbox
from maddi.core.logging import get_logger
from maddi.core.security import CallerContext, get_current_caller
from maddi.db.session import get_db
from maddi.models import Booking
from maddi.models.booking import BOOKING_STATUSES
from maddi.schemas.booking import BookingCreate, BookingListResponse, BookingResponse
from maddi.services import booking_service
from maddi.services.campaign_status import classify_campaign
from maddi.services.outbox import Outbox

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


def to_response(booking: Booking) -> BookingResponse:
    response = BookingResponse.model_validate(booking)
    response.campaign_status = classify_campaign(booking.status, booking.start_date, booking.end_date)
    return response


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    background_tasks: BackgroundTasks,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
):
    """
    Request a billboard for a date range.

    The request starts as pending. Overlapping pending requests are allowed;
    the owner resolves them when approving.
    """
    booking = await booking_service.create_booking(db, caller, booking_data, outbox)
    await commit_and_dispatch(db, outbox, background_tasks)
    return to_response(booking)


@router.get("/", response_model=BookingListResponse)
async def list_my_bookings(
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Bookings requested by the authenticated business."""
    bookings = await booking_service.list_business_bookings(db, caller)
    return BookingListResponse(bookings=[to_response(b) for b in bookings], total=len(bookings))


@router.get("/received", response_model=BookingListResponse)
async def list_received_bookings(
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(" + "|".join(BOOKING_STATUSES) + ")$"),
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Bookings across all billboards owned by the caller."""
    bookings = await booking_service.list_owner_bookings(db, caller, status_filter)
    return BookingListResponse(bookings=[to_response(b) for b in bookings], total=len(bookings))


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.get_booking_for_caller(db, caller, booking_id)
    return to_response(booking)


@router.post("/{booking_id}/approve", response_model=BookingResponse)
async def approve_booking_endpoint(
    booking_id: int,
    background_tasks: BackgroundTasks,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
):
    """
    Approve a pending request.

    Uses optimistic locking on the billboard so two concurrent approvals of
    overlapping requests cannot both succeed. Returns 409 if the dates are
    already taken or the request was already decided.
    """
    booking = await booking_service.approve_booking(db, caller, booking_id, outbox)
    await commit_and_dispatch(db, outbox, background_tasks)
    return to_response(booking)


@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking_endpoint(
    booking_id: int,
    background_tasks: BackgroundTasks,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
):
    booking = await booking_service.reject_booking(db, caller, booking_id, outbox)
    await commit_and_dispatch(db, outbox, background_tasks)
    return to_response(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    background_tasks: BackgroundTasks,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
):
    """Cancel a pending request, or an approved campaign before it starts."""
    booking = await booking_service.cancel_booking(db, caller, booking_id, outbox)
    await commit_and_dispatch(db, outbox, background_tasks)
    return to_response(booking)
