"""
Booking lifecycle with concurrency-safe approval.

STATE MACHINE
=============

  pending  -> approved | rejected | cancelled
  approved -> completed | cancelled
  rejected, completed, cancelled are terminal.

Every transition is written as

  UPDATE bookings SET status = :target WHERE id = :id AND status = :expected

so a request that lost a race (double click, two owners' tabs, the lifecycle
job) matches zero rows and fails with InvalidTransition, leaving the stored
state untouched.

CONCURRENCY STRATEGY FOR APPROVAL: Optimistic Locking with Retry
================================================================

Problem:
  Two pending requests overlap on a static billboard. The owner approves
  both at the same moment. Each transaction checks for approved overlaps,
  sees none (the other approval is not committed yet), and both succeed.
  Result: double booking.

Solution:
  We use optimistic locking via the `version` column on the Billboard table.

  1. Read the billboard's current version
  2. Check approved bookings for overlap with the candidate range
  3. UPDATE billboards SET version = version + 1
     WHERE id = :billboard_id AND version = :current_version
  4. If rows_affected == 0, another approval touched the billboard -> retry
     (the retry re-reads and now sees the competing approval -> Conflict)

  The version bump takes the billboard row lock until commit, so a
  concurrent approver blocks on step 3, then matches zero rows once the first
  commits. Pending requests never touch the version, so creating requests
  stays contention-free. Digital billboards skip the check entirely.
"""

import time
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from maddi.core import dates, errors
from maddi.core.config import get_settings
from maddi.core.logging import get_logger
from maddi.core.metrics import approval_latency, approval_retries, record_transition
from maddi.core.security import CallerContext
from maddi.models import Billboard, Booking, PricingOverride, User
from maddi.schemas.booking import BookingCreate
from maddi.services.availability import find_conflicting_booking
from maddi.services.outbox import Outbox

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"approved", "rejected", "cancelled"}),
    "approved": frozenset({"completed", "cancelled"}),
}


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise errors.NotFound(f"Booking {booking_id} not found")
    return booking


async def get_billboard(db: AsyncSession, billboard_id: int) -> Billboard:
    result = await db.execute(
        select(Billboard)
        .where(Billboard.id == billboard_id)
        .execution_options(populate_existing=True)
    )
    billboard = result.scalar_one_or_none()
    if not billboard:
        raise errors.NotFound(f"Billboard {billboard_id} not found")
    return billboard


def ensure_transition(booking: Booking, target: str, transition: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(booking.status, frozenset()):
        record_transition(transition, "invalid")
        logger.warning(
            "booking_invalid_transition",
            booking_id=booking.id,
            current=booking.status,
            target=target,
        )
        raise errors.InvalidTransition()


async def apply_transition(db: AsyncSession, booking: Booking, target: str, transition: str) -> Booking:
    """Conditionally move `booking` from its loaded status to `target`."""
    ensure_transition(booking, target, transition)
    expected = booking.status
    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status == expected)
        .values(status=target)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # Someone else moved it after we read it
        record_transition(transition, "invalid")
        logger.warning("booking_transition_lost_race", booking_id=booking.id, expected=expected, target=target)
        raise errors.InvalidTransition()

    await db.refresh(booking)
    record_transition(transition, "success")
    return booking


async def _price_per_month(db: AsyncSession, billboard: Billboard, start_date) -> Decimal:
    result = await db.execute(
        select(PricingOverride)
        .where(
            PricingOverride.billboard_id == billboard.id,
            PricingOverride.start_date <= start_date,
            PricingOverride.end_date >= start_date,
        )
        .order_by(PricingOverride.id.desc())
        .limit(1)
    )
    override = result.scalar_one_or_none()
    return Decimal(override.price_per_month if override else billboard.price_per_month)


def months_billed(start_date, end_date) -> int:
    """Started months are billed in full, with a one-month minimum."""
    return max(1, dates.whole_months_between(start_date, end_date) + 1)


async def _participants(db: AsyncSession, booking: Booking, billboard: Billboard) -> tuple[Optional[User], Optional[User]]:
    business = await db.get(User, booking.business_id)
    owner = await db.get(User, billboard.owner_id)
    return business, owner


def _email_data(booking: Booking, billboard: Billboard) -> dict:
    return {
        "billboardTitle": billboard.title,
        "startDate": booking.start_date.isoformat(),
        "endDate": booking.end_date.isoformat(),
        "totalPrice": str(booking.total_price),
    }


async def create_booking(
    db: AsyncSession,
    caller: CallerContext,
    data: BookingCreate,
    outbox: Outbox,
) -> Booking:
    """
    Create a pending reservation request.
    No overlap check: competing requests may coexist until the owner decides.
    """
    if caller.user_type != "business":
        raise errors.Unauthorized("Only business accounts can request bookings")

    start = dates.parse_date_only(data.start_date)
    end = dates.parse_date_only(data.end_date)
    if start > end:
        raise errors.ValidationError("start_date must be on or before end_date")
    if dates.parse_date_only_start(start) < dates.today_start():
        raise errors.ValidationError("Booking dates must not be in the past")

    billboard = await get_billboard(db, data.billboard_id)
    if billboard.owner_id == caller.user_id:
        raise errors.Unauthorized("You cannot book your own billboard")
    if not billboard.is_available:
        raise errors.Conflict("This billboard is currently paused")

    price = await _price_per_month(db, billboard, start)
    booking = Booking(
        billboard_id=billboard.id,
        business_id=caller.user_id,
        start_date=start,
        end_date=end,
        total_price=price * months_billed(start, end),
        status="pending",
        notes=data.notes,
        ad_design_url=data.ad_design_url,
    )
    db.add(booking)
    await db.flush()
    await db.refresh(booking)

    business, owner = await _participants(db, booking, billboard)
    outbox.notify(
        billboard.owner_id,
        "📩 Nueva solicitud de reserva",
        f"{business.display_name('Un anunciante') if business else 'Un anunciante'} "
        f"solicitó \"{billboard.title}\" del {start.isoformat()} al {end.isoformat()}.",
        "booking_request",
        related_booking_id=booking.id,
        related_billboard_id=billboard.id,
    )
    if owner:
        outbox.email(owner.email, "booking_request", owner.display_name("Propietario"), **_email_data(booking, billboard))
    outbox.billboard_changed(billboard.id)

    record_transition("create", "success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        billboard_id=billboard.id,
        business_id=caller.user_id,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        total_price=str(booking.total_price),
    )
    return booking


def _require_owner(caller: CallerContext, billboard: Billboard) -> None:
    if billboard.owner_id != caller.user_id:
        raise errors.Unauthorized("Only the billboard owner can decide on this booking")


async def approve_booking(
    db: AsyncSession,
    caller: CallerContext,
    booking_id: int,
    outbox: Outbox,
) -> Booking:
    """
    Approve a pending booking with optimistic locking on the billboard.
    Retries up to MAX_APPROVAL_RETRIES on version conflicts.
    """
    max_attempts = get_settings().MAX_APPROVAL_RETRIES
    started = time.perf_counter()

    for attempt in range(1, max_attempts + 1):
        booking = await get_booking(db, booking_id)
        billboard = await get_billboard(db, booking.billboard_id)
        _require_owner(caller, billboard)
        ensure_transition(booking, "approved", "approve")

        if not billboard.is_digital:
            # Step 1: Read current billboard version
            current_version = billboard.version

            # Step 2: Check approved bookings overlapping this range
            result = await db.execute(
                select(Booking).where(
                    Booking.billboard_id == billboard.id,
                    Booking.status == "approved",
                    Booking.id != booking.id,
                    Booking.start_date <= booking.end_date,
                    Booking.end_date >= booking.start_date,
                )
            )
            conflict = find_conflicting_booking(
                booking.start_date, booking.end_date, result.scalars().all(), exclude_id=booking.id
            )
            if conflict is not None:
                record_transition("approve", "conflict")
                logger.warning(
                    "booking_approval_conflict",
                    booking_id=booking.id,
                    conflicting_booking_id=conflict.id,
                    billboard_id=billboard.id,
                )
                raise errors.Conflict()

            # Step 3: Optimistic lock - claim the billboard only if version matches
            claim = await db.execute(
                update(Billboard)
                .where(Billboard.id == billboard.id, Billboard.version == current_version)
                .values(version=Billboard.version + 1)
                .execution_options(synchronize_session=False)
            )
            if claim.rowcount == 0:
                # Version conflict - another approval touched this billboard
                approval_retries.inc()
                logger.info(
                    "booking_approval_retry",
                    booking_id=booking.id,
                    billboard_id=billboard.id,
                    attempt=attempt,
                    reason="version_conflict",
                )
                await db.rollback()
                if attempt == max_attempts:
                    record_transition("approve", "conflict")
                    raise errors.Conflict("Approval failed due to concurrent changes. Please try again.")
                continue

        # Step 4: Status write, conditional on still being pending
        await apply_transition(db, booking, "approved", "approve")
        approval_latency.observe(time.perf_counter() - started)

        business, _ = await _participants(db, booking, billboard)
        outbox.notify(
            booking.business_id,
            "✅ Reserva aprobada",
            f"Tu reserva en \"{billboard.title}\" del {booking.start_date.isoformat()} "
            f"al {booking.end_date.isoformat()} fue aprobada.",
            "booking_approved",
            related_booking_id=booking.id,
            related_billboard_id=billboard.id,
        )
        if business:
            outbox.email(business.email, "booking_approved", business.display_name(), **_email_data(booking, billboard))
        outbox.billboard_changed(billboard.id)

        logger.info(
            "booking_approved",
            booking_id=booking.id,
            billboard_id=billboard.id,
            attempt=attempt,
        )
        return booking

    # Should not reach here, but just in case
    raise errors.Conflict("Approval failed unexpectedly")


async def reject_booking(
    db: AsyncSession,
    caller: CallerContext,
    booking_id: int,
    outbox: Outbox,
) -> Booking:
    booking = await get_booking(db, booking_id)
    billboard = await get_billboard(db, booking.billboard_id)
    _require_owner(caller, billboard)

    await apply_transition(db, booking, "rejected", "reject")

    business, _ = await _participants(db, booking, billboard)
    outbox.notify(
        booking.business_id,
        "❌ Reserva rechazada",
        f"Tu solicitud para \"{billboard.title}\" del {booking.start_date.isoformat()} "
        f"al {booking.end_date.isoformat()} fue rechazada.",
        "booking_rejected",
        related_booking_id=booking.id,
        related_billboard_id=billboard.id,
    )
    if business:
        outbox.email(business.email, "booking_rejected", business.display_name(), **_email_data(booking, billboard))
    outbox.billboard_changed(billboard.id)

    logger.info("booking_rejected", booking_id=booking.id, billboard_id=billboard.id)
    return booking


async def cancel_booking(
    db: AsyncSession,
    caller: CallerContext,
    booking_id: int,
    outbox: Outbox,
) -> Booking:
    """
    Cancel a booking on behalf of the business that requested it.
    Approved campaigns can only be cancelled before their first day.
    """
    booking = await get_booking(db, booking_id)
    if booking.business_id != caller.user_id:
        raise errors.Unauthorized("Only the requesting business can cancel this booking")

    if booking.status == "approved" and dates.today_start() >= dates.parse_date_only_start(booking.start_date):
        record_transition("cancel", "invalid")
        raise errors.InvalidTransition("Campaigns cannot be cancelled once they have started")

    await apply_transition(db, booking, "cancelled", "cancel")

    billboard = await get_billboard(db, booking.billboard_id)
    _, owner = await _participants(db, booking, billboard)
    outbox.notify(
        billboard.owner_id,
        "🚫 Reserva cancelada",
        f"La reserva en \"{billboard.title}\" del {booking.start_date.isoformat()} "
        f"al {booking.end_date.isoformat()} fue cancelada por el anunciante.",
        "booking_cancelled",
        related_booking_id=booking.id,
        related_billboard_id=billboard.id,
    )
    if owner:
        outbox.email(owner.email, "booking_cancelled", owner.display_name("Propietario"), **_email_data(booking, billboard))
    outbox.billboard_changed(billboard.id)

    logger.info("booking_cancelled", booking_id=booking.id, business_id=caller.user_id)
    return booking


async def get_booking_for_caller(db: AsyncSession, caller: CallerContext, booking_id: int) -> Booking:
    """Bookings are visible to their business, the billboard owner and admins."""
    booking = await get_booking(db, booking_id)
    if caller.is_admin or booking.business_id == caller.user_id:
        return booking
    billboard = await get_billboard(db, booking.billboard_id)
    if billboard.owner_id != caller.user_id:
        raise errors.NotFound(f"Booking {booking_id} not found")
    return booking


async def list_business_bookings(db: AsyncSession, caller: CallerContext) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.business_id == caller.user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def list_owner_bookings(
    db: AsyncSession,
    caller: CallerContext,
    status: Optional[str] = None,
) -> list[Booking]:
    """All bookings across the caller's billboards, newest first."""
    query = (
        select(Booking)
        .join(Billboard, Billboard.id == Booking.billboard_id)
        .where(Billboard.owner_id == caller.user_id)
    )
    if status:
        query = query.where(Booking.status == status)
    result = await db.execute(query.order_by(Booking.created_at.desc(), Booking.id.desc()))
    return list(result.scalars().all())
