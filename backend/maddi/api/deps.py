"""
Shared route dependencies.
"""

from fastapi import BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from maddi.core import errors
from maddi.core.security import CallerContext, get_current_caller
from maddi.services.outbox import Outbox


def get_outbox() -> Outbox:
    """A fresh outbox per request."""
    return Outbox()


async def require_admin(caller: CallerContext = Depends(get_current_caller)) -> CallerContext:
    if not caller.is_admin:
        raise errors.Unauthorized("Administrator access required")
    return caller


async def commit_and_dispatch(db: AsyncSession, outbox: Outbox, background_tasks: BackgroundTasks) -> None:
    """
    Commit the request's state change, then deliver its side effects after
    the response is sent. Nothing is dispatched if the commit fails.
    """
    await db.commit()
    if not outbox.is_empty():
        background_tasks.add_task(outbox.dispatch)
