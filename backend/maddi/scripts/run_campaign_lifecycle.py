"""Run the daily campaign lifecycle job.

Schedule once a day shortly after midnight in the operating timezone, e.g.

    5 0 * * *  cd /srv/maddi/backend && python -m maddi.scripts.run_campaign_lifecycle

Re-running on the same day is harmless: start milestones are recorded and
completion only happens once per booking.

Options:
  --date YYYY-MM-DD   run for another day (backfills, manual testing)
"""

import argparse
import asyncio

from maddi.core import dates
from maddi.core.logging import get_logger, setup_logging
from maddi.db.session import async_session_maker, engine
from maddi.infrastructure.redis_client import close_redis
from maddi.services.lifecycle_service import LifecycleReport, run_campaign_lifecycle
from maddi.services.outbox import Outbox


async def run(on_date=None) -> LifecycleReport:
    outbox = Outbox()
    async with async_session_maker() as db:
        try:
            report = await run_campaign_lifecycle(db, outbox, on_date=on_date)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    # Only after the transitions are durable
    await outbox.dispatch()
    return report


async def _main(on_date) -> LifecycleReport:
    try:
        return await run(on_date)
    finally:
        await close_redis()
        await engine.dispose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Start and complete today's campaigns.")
    parser.add_argument("--date", dest="on_date", default=None, help="YYYY-MM-DD (default: today)")
    args = parser.parse_args(argv)

    setup_logging()
    logger = get_logger(__name__)
    on_date = dates.parse_date_only(args.on_date) if args.on_date else None

    report = asyncio.run(_main(on_date))
    logger.info(
        "campaign_lifecycle_report",
        date=report.date.isoformat(),
        started=report.started,
        ended=report.ended,
    )
    for line in report.details:
        print(line)
    print(f"started={report.started} ended={report.ended}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
