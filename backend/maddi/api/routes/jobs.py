"""
Scheduled job trigger for schedulers that call over HTTP.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from maddi.api.deps import get_outbox, require_admin
from maddi.core import dates
from maddi.core.logging import get_logger
from maddi.core.security import CallerContext
from maddi.db.session import get_db
from maddi.schemas.notification import LifecycleReportResponse
from maddi.services.lifecycle_service import run_campaign_lifecycle
from maddi.services.outbox import Outbox

logger = get_logger(__name__)
router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.post("/campaign-lifecycle", response_model=LifecycleReportResponse)
async def run_campaign_lifecycle_endpoint(
    on_date: Optional[str] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today"),
    caller: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
):
    """
    Start today's campaigns and complete the ones ending today.
    Safe to call repeatedly; each milestone fires once.
    """
    day = dates.parse_date_only(on_date) if on_date else None
    report = await run_campaign_lifecycle(db, outbox, on_date=day)
    await db.commit()
    # The caller is a scheduler waiting on the result, so deliver inline
    await outbox.dispatch()
    logger.info("campaign_lifecycle_triggered", by=caller.user_id, started=report.started, ended=report.ended)
    return report
