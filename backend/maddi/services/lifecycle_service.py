"""
Daily campaign lifecycle job.

Run once per day (cron via `python -m maddi.scripts.run_campaign_lifecycle`,
or an admin-authenticated POST to /api/v1/jobs/campaign-lifecycle):

- approved bookings starting today get "campaign started" notifications for
  the business and the owner, exactly once per booking;
- approved bookings ending today move to `completed` and get "campaign ended"
  notifications.

Idempotency:
  Start milestones are recorded in `campaign_milestones` (unique per booking
  and milestone) before anything is queued, so a re-run on the same day skips
  them. Completion is a conditional UPDATE on `status = 'approved'`; only the
  run that wins it queues the "ended" messages.

Bookings whose end date passed while the job was not running stay approved;
the campaign status classifier already reports them as past.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from maddi.core import dates, errors
from maddi.core.logging import get_logger
from maddi.core.metrics import lifecycle_runs, record_milestone
from maddi.models import Billboard, Booking, CampaignMilestone, User
from maddi.services import booking_service
from maddi.services.outbox import Outbox

logger = get_logger(__name__)


@dataclass
class LifecycleReport:
    date: date
    started: int = 0
    ended: int = 0
    details: list[str] = field(default_factory=list)


async def _fired_milestones(db: AsyncSession, booking_ids: list[int], milestone: str) -> set[int]:
    if not booking_ids:
        return set()
    result = await db.execute(
        select(CampaignMilestone.booking_id).where(
            CampaignMilestone.booking_id.in_(booking_ids),
            CampaignMilestone.milestone == milestone,
        )
    )
    return set(result.scalars().all())


def _record_milestone(db: AsyncSession, booking: Booking, milestone: str, on_date: date) -> None:
    db.add(CampaignMilestone(booking_id=booking.id, milestone=milestone, fired_on=on_date))
    record_milestone(milestone)


async def _load_context(db: AsyncSession, booking: Booking) -> tuple[Billboard, Optional[User], Optional[User]]:
    billboard = await db.get(Billboard, booking.billboard_id)
    business = await db.get(User, booking.business_id)
    owner = await db.get(User, billboard.owner_id) if billboard else None
    return billboard, business, owner


async def _start_campaigns(db: AsyncSession, outbox: Outbox, on_date: date, report: LifecycleReport) -> None:
    result = await db.execute(
        select(Booking)
        .where(Booking.status == "approved", Booking.start_date == on_date)
        .order_by(Booking.id)
    )
    bookings = list(result.scalars().all())
    already = await _fired_milestones(db, [b.id for b in bookings], "started")

    for booking in bookings:
        if booking.id in already:
            continue
        billboard, business, owner = await _load_context(db, booking)
        if billboard is None:
            continue

        _record_milestone(db, booking, "started", on_date)
        business_name = business.display_name("Anunciante") if business else "Anunciante"
        data = {
            "billboardTitle": billboard.title,
            "startDate": booking.start_date.isoformat(),
            "endDate": booking.end_date.isoformat(),
        }

        outbox.notify(
            booking.business_id,
            "🚀 ¡Tu campaña ha comenzado!",
            f"Tu campaña en \"{billboard.title}\" inicia hoy y estará activa hasta el "
            f"{booking.end_date.isoformat()}.",
            "campaign_started",
            related_booking_id=booking.id,
            related_billboard_id=billboard.id,
        )
        outbox.notify(
            billboard.owner_id,
            "📢 Campaña iniciada en tu espectacular",
            f"La campaña de {business_name} en \"{billboard.title}\" comenzó hoy.",
            "campaign_started",
            related_booking_id=booking.id,
            related_billboard_id=billboard.id,
        )
        if business:
            outbox.email(business.email, "campaign_started", business.display_name(), **data)
        if owner:
            outbox.email(
                owner.email,
                "campaign_started_owner",
                owner.display_name("Propietario"),
                businessName=business_name,
                **data,
            )

        report.started += 1
        report.details.append(f"Campaign started: booking {booking.id}")
        logger.info("campaign_started", booking_id=booking.id, billboard_id=billboard.id)


async def _end_campaigns(db: AsyncSession, outbox: Outbox, on_date: date, report: LifecycleReport) -> None:
    result = await db.execute(
        select(Booking)
        .where(Booking.status == "approved", Booking.end_date == on_date)
        .order_by(Booking.id)
    )
    for booking in list(result.scalars().all()):
        # Another run or a concurrent cancel may already have moved it
        try:
            await booking_service.apply_transition(db, booking, "completed", "complete")
        except errors.InvalidTransition:
            continue

        billboard, business, _ = await _load_context(db, booking)
        _record_milestone(db, booking, "ended", on_date)
        title = billboard.title if billboard else "tu espectacular"

        outbox.notify(
            booking.business_id,
            "🏁 Campaña finalizada",
            f"Tu campaña en \"{title}\" ha concluido. ¡Gracias por confiar en Maddi!",
            "campaign_ended",
            related_booking_id=booking.id,
            related_billboard_id=booking.billboard_id,
        )
        if billboard:
            outbox.notify(
                billboard.owner_id,
                "🏁 Campaña finalizada",
                f"La campaña en \"{title}\" terminó. El espectacular vuelve a estar disponible.",
                "campaign_ended",
                related_booking_id=booking.id,
                related_billboard_id=billboard.id,
            )
        if business:
            outbox.email(
                business.email,
                "campaign_ended",
                business.display_name(),
                billboardTitle=title,
                startDate=booking.start_date.isoformat(),
                endDate=booking.end_date.isoformat(),
            )
        outbox.billboard_changed(booking.billboard_id)

        report.ended += 1
        report.details.append(f"Campaign completed: booking {booking.id}")
        logger.info("campaign_completed", booking_id=booking.id, billboard_id=booking.billboard_id)


async def run_campaign_lifecycle(
    db: AsyncSession,
    outbox: Outbox,
    on_date: Optional[date] = None,
) -> LifecycleReport:
    """
    Fire start milestones and complete ended campaigns for `on_date`
    (default: today in the operating timezone). The caller commits and then
    dispatches the outbox.
    """
    on_date = on_date or dates.today()
    report = LifecycleReport(date=on_date)
    logger.info("campaign_lifecycle_started", date=on_date.isoformat())

    try:
        await _start_campaigns(db, outbox, on_date, report)
        await db.flush()
        await _end_campaigns(db, outbox, on_date, report)
        await db.flush()
    except Exception:
        lifecycle_runs.labels(result="error").inc()
        logger.exception("campaign_lifecycle_failed", date=on_date.isoformat())
        raise

    lifecycle_runs.labels(result="success").inc()
    logger.info(
        "campaign_lifecycle_finished",
        date=on_date.isoformat(),
        started=report.started,
        ended=report.ended,
    )
    return report
