"""
Post-commit side effects of state transitions.

Services record what should happen (in-app notifications, emails,
availability change events) on an Outbox instead of doing it inline. The
caller dispatches the outbox only after the transition committed:

- API routes commit, then schedule `Outbox.dispatch` as a background task.
- The lifecycle job commits, then awaits `Outbox.dispatch`.

Delivery is best effort. Every failure is logged and counted and never
raised, so a failing email provider or Redis outage cannot turn a successful
approval into an error, nor roll it back.
"""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from maddi.core.logging import get_logger
from maddi.core.metrics import record_outbox_failure
from maddi.models import Notification
from maddi.services import cache_service
from maddi.services.change_feed_factory import get_change_feed
from maddi.services.email_service import EmailMessage, send_email
from maddi.services.interfaces.change_feed import ChangeFeed

logger = get_logger(__name__)


@dataclass
class NotificationMessage:
    user_id: int
    title: str
    message: str
    type: str
    related_booking_id: Optional[int] = None
    related_billboard_id: Optional[int] = None


@dataclass
class Outbox:
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    notifications: list[NotificationMessage] = field(default_factory=list)
    emails: list[EmailMessage] = field(default_factory=list)
    changed_billboards: set[int] = field(default_factory=set)

    def notify(self, user_id: int, title: str, message: str, type: str, **related) -> None:
        self.notifications.append(NotificationMessage(user_id, title, message, type, **related))

    def email(self, recipient_email: Optional[str], template_type: str, recipient_name: str, **template_data) -> None:
        if not recipient_email:
            logger.debug("email_skipped_no_address", template=template_type)
            return
        self.emails.append(EmailMessage(recipient_email, template_type, recipient_name, template_data))

    def billboard_changed(self, billboard_id: int) -> None:
        self.changed_billboards.add(billboard_id)

    def is_empty(self) -> bool:
        return not (self.notifications or self.emails or self.changed_billboards)

    async def dispatch(
        self,
        feed: Optional[ChangeFeed] = None,
        sender: Callable[[EmailMessage], Awaitable[None]] = send_email,
    ) -> None:
        """Deliver everything recorded so far. Never raises."""
        await self._deliver_notifications()

        for message in self.emails:
            try:
                await sender(message)
            except Exception as e:
                record_outbox_failure("email")
                logger.error(
                    "email_dispatch_failed",
                    to=message.recipient_email,
                    template=message.template_type,
                    error=str(e),
                )

        feed = feed or get_change_feed()
        for billboard_id in sorted(self.changed_billboards):
            try:
                await cache_service.invalidate_calendar_cache(billboard_id)
                await feed.publish(billboard_id)
            except Exception as e:
                record_outbox_failure("change_feed")
                logger.error("change_feed_dispatch_failed", billboard_id=billboard_id, error=str(e))

        self.notifications.clear()
        self.emails.clear()
        self.changed_billboards.clear()

    async def _deliver_notifications(self) -> None:
        if not self.notifications:
            return
        if self.session_factory is None:
            from maddi.db.session import async_session_maker
            self.session_factory = async_session_maker

        try:
            async with self.session_factory() as session:
                for item in self.notifications:
                    session.add(
                        Notification(
                            user_id=item.user_id,
                            title=item.title,
                            message=item.message,
                            type=item.type,
                            related_booking_id=item.related_booking_id,
                            related_billboard_id=item.related_billboard_id,
                        )
                    )
                await session.commit()
            logger.info("notifications_delivered", count=len(self.notifications))
        except Exception as e:
            record_outbox_failure("notification")
            logger.error("notification_dispatch_failed", count=len(self.notifications), error=str(e))
