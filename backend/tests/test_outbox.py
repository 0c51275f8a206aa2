"""
Tests for post-commit side effect delivery.
"""

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import select

from maddi.models import Notification
from maddi.services import email_service
from maddi.services.email_service import EmailMessage, render_email
from maddi.services.interfaces import InProcessChangeFeed
from maddi.services.outbox import Outbox


def _failures(channel: str) -> float:
    return REGISTRY.get_sample_value("outbox_dispatch_failures_total", {"channel": channel}) or 0.0


class FailingSender:
    def __init__(self):
        self.attempts = 0

    async def __call__(self, message):
        self.attempts += 1
        raise ConnectionError("resend is down")


class BrokenFeed(InProcessChangeFeed):
    async def publish(self, billboard_id: int) -> None:
        raise ConnectionError("redis is down")


@pytest.mark.asyncio
async def test_dispatch_writes_notifications(db_session, owner, outbox):
    outbox.notify(owner.id, "Hola", "Tienes una solicitud", "booking_request")
    await outbox.dispatch(feed=InProcessChangeFeed())

    result = await db_session.execute(select(Notification).where(Notification.user_id == owner.id))
    stored = result.scalars().all()
    assert [n.type for n in stored] == ["booking_request"]
    assert stored[0].is_read is False
    assert outbox.is_empty()


@pytest.mark.asyncio
async def test_email_failures_are_swallowed(db_session, owner, outbox):
    sender = FailingSender()
    before = _failures("email")
    outbox.email("a@example.com", "booking_approved", "Ana")
    outbox.email("b@example.com", "booking_rejected", "Beto")
    outbox.notify(owner.id, "Hola", "Mensaje", "info")

    await outbox.dispatch(feed=InProcessChangeFeed(), sender=sender)

    # Both emails attempted, notification still delivered
    assert sender.attempts == 2
    assert _failures("email") == before + 2
    stored = (await db_session.execute(select(Notification))).scalars().all()
    assert len(stored) == 1


@pytest.mark.asyncio
async def test_change_feed_failures_are_swallowed(outbox):
    before = _failures("change_feed")
    outbox.billboard_changed(1)
    outbox.billboard_changed(2)

    await outbox.dispatch(feed=BrokenFeed())
    assert _failures("change_feed") == before + 2


@pytest.mark.asyncio
async def test_notification_failures_are_swallowed(outbox):
    """Without tables the insert fails; dispatch still returns."""
    before = _failures("notification")
    outbox.notify(1, "Hola", "Mensaje", "info")
    await outbox.dispatch(feed=InProcessChangeFeed())
    assert _failures("notification") == before + 1


@pytest.mark.asyncio
async def test_changed_billboards_are_published(outbox):
    feed = InProcessChangeFeed()
    subscription = await feed.subscribe(7)
    outbox.billboard_changed(7)
    outbox.billboard_changed(7)

    await outbox.dispatch(feed=feed)

    assert subscription.queue.qsize() == 1
    await subscription.close()


def test_email_without_address_is_skipped():
    outbox = Outbox()
    outbox.email(None, "booking_approved", "Ana")
    outbox.email("", "booking_approved", "Ana")
    assert outbox.is_empty()


def test_render_email_escapes_data():
    message = EmailMessage(
        "a@example.com",
        "booking_approved",
        "<Ana>",
        {"billboardTitle": "<script>", "startDate": "2026-01-01", "endDate": "2026-01-31"},
    )
    subject, html = render_email(message)
    assert subject == "Tu reserva fue aprobada"
    assert "<script>" not in html
    assert "&lt;Ana&gt;" in html
    assert "2026-01-01 al 2026-01-31" in html


def test_render_email_unknown_template():
    with pytest.raises(KeyError):
        render_email(EmailMessage("a@example.com", "newsletter", "Ana"))


@pytest.mark.asyncio
async def test_send_email_without_api_key_only_logs(monkeypatch):
    def fail(params):
        raise AssertionError("Resend must not be called")

    monkeypatch.setattr(email_service.resend.Emails, "send", fail)
    await email_service.send_email(EmailMessage("a@example.com", "campaign_ended", "Ana"))
