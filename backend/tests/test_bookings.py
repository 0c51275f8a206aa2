"""
Tests for booking endpoints: request, approve, reject, cancel.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from conftest import day, headers_for, make_billboard, make_booking
from maddi.core import dates
from maddi.models import Notification, PricingOverride


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, business_headers, billboard, sent_emails):
    """A new request is pending and priced by started months."""
    response = await client.post(
        "/api/v1/bookings/",
        json={"billboard_id": billboard.id, "start_date": day(10), "end_date": day(20)},
        headers=business_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["campaign_status"] == "pending"
    assert Decimal(data["total_price"]) == Decimal("15000.00")

    # Owner got the request by email
    assert [m.template_type for m in sent_emails.sent] == ["booking_request"]
    assert sent_emails.sent[0].recipient_email == "owner@example.com"


@pytest.mark.asyncio
async def test_create_booking_notifies_owner(client: AsyncClient, business_headers, billboard, owner, db_session):
    await client.post(
        "/api/v1/bookings/",
        json={"billboard_id": billboard.id, "start_date": day(3), "end_date": day(4)},
        headers=business_headers,
    )
    result = await db_session.execute(select(Notification).where(Notification.user_id == owner.id))
    notifications = result.scalars().all()
    assert len(notifications) == 1
    assert notifications[0].type == "booking_request"


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient, billboard):
    """Unauthenticated booking returns 401."""
    response = await client.post(
        "/api/v1/bookings/",
        json={"billboard_id": billboard.id, "start_date": day(1), "end_date": day(2)},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_booking_in_the_past(client: AsyncClient, business_headers, billboard):
    response = await client.post(
        "/api/v1/bookings/",
        json={"billboard_id": billboard.id, "start_date": day(-1), "end_date": day(2)},
        headers=business_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_booking_inverted_range(client: AsyncClient, business_headers, billboard):
    response = await client.post(
        "/api/v1/bookings/",
        json={"billboard_id": billboard.id, "start_date": day(5), "end_date": day(2)},
        headers=business_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_booking_malformed_date(client: AsyncClient, business_headers, billboard):
    response = await client.post(
        "/api/v1/bookings/",
        json={"billboard_id": billboard.id, "start_date": "mañana", "end_date": day(2)},
        headers=business_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_booking_unknown_billboard(client: AsyncClient, business_headers, business):
    response = await client.post(
        "/api/v1/bookings/",
        json={"billboard_id": 9999, "start_date": day(1), "end_date": day(2)},
        headers=business_headers,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_owner_cannot_book(client: AsyncClient, owner_headers, billboard):
    """Owner accounts cannot request bookings, not even on their own billboard."""
    response = await client.post(
        "/api/v1/bookings/",
        json={"billboard_id": billboard.id, "start_date": day(1), "end_date": day(2)},
        headers=owner_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_paused_billboard_rejects_requests(client: AsyncClient, business_headers, billboard, db_session):
    billboard.is_available = False
    billboard.pause_reason = "owner"
    await db_session.commit()

    response = await client.post(
        "/api/v1/bookings/",
        json={"billboard_id": billboard.id, "start_date": day(1), "end_date": day(2)},
        headers=business_headers,
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_overlapping_pending_requests_allowed(
    client: AsyncClient, business_headers, billboard, other_business
):
    """Pending requests are not exclusive; the owner decides later."""
    for headers in (business_headers, headers_for(other_business)):
        response = await client.post(
            "/api/v1/bookings/",
            json={"billboard_id": billboard.id, "start_date": day(5), "end_date": day(15)},
            headers=headers,
        )
        assert response.status_code == 201


@pytest.mark.asyncio
async def test_pricing_override_and_months(client: AsyncClient, business_headers, billboard, db_session):
    db_session.add(
        PricingOverride(
            billboard_id=billboard.id,
            start_date=dates.today() + timedelta(days=30),
            end_date=dates.today() + timedelta(days=60),
            price_per_month=Decimal("20000.00"),
        )
    )
    await db_session.commit()

    # Starts inside the override window: two full months plus a started third
    response = await client.post(
        "/api/v1/bookings/",
        json={"billboard_id": billboard.id, "start_date": day(35), "end_date": day(100)},
        headers=business_headers,
    )
    assert response.status_code == 201
    assert Decimal(response.json()["total_price"]) == Decimal("60000.00")


@pytest.mark.asyncio
async def test_approve_booking(client: AsyncClient, owner_headers, billboard, business, db_session, sent_emails):
    booking = await make_booking(db_session, billboard, business, 5, 10)

    response = await client.post(f"/api/v1/bookings/{booking.id}/approve", headers=owner_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["campaign_status"] == "scheduled"
    assert [m.template_type for m in sent_emails.sent] == ["booking_approved"]

    # Approval never pauses the billboard
    await db_session.refresh(billboard)
    assert billboard.is_available is True


@pytest.mark.asyncio
async def test_approve_conflict_scenario(client: AsyncClient, owner_headers, billboard, business, other_business, db_session):
    """Approved A covers B's dates: the calendar shows booked and approving B fails."""
    await make_booking(db_session, billboard, business, 10, 19, status="approved")
    b = await make_booking(db_session, billboard, other_business, 14, 17)

    availability = await client.get(
        f"/api/v1/billboards/{billboard.id}/availability",
        params={"start": day(15), "end": day(15)},
    )
    assert availability.json()["days"][0]["status"] == "booked"

    response = await client.post(f"/api/v1/bookings/{b.id}/approve", headers=owner_headers)
    assert response.status_code == 409
    assert response.json()["detail"] == "This billboard is no longer available for those dates"

    await db_session.refresh(b)
    assert b.status == "pending"


@pytest.mark.asyncio
async def test_digital_billboard_approves_overlaps(client: AsyncClient, owner_headers, digital_billboard, business, other_business, db_session):
    await make_booking(db_session, digital_billboard, business, 10, 14, status="approved")
    d = await make_booking(db_session, digital_billboard, other_business, 10, 14)

    response = await client.post(f"/api/v1/bookings/{d.id}/approve", headers=owner_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_only_owner_can_approve(client: AsyncClient, business_headers, billboard, business, db_session):
    booking = await make_booking(db_session, billboard, business, 5, 10)
    response = await client.post(f"/api/v1/bookings/{booking.id}/approve", headers=business_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_failed_request_keeps_fixtures_usable(
    client: AsyncClient, owner_headers, business_headers, billboard, business, db_session
):
    """A request that rolls back must not expire objects held by the test session."""
    booking = await make_booking(db_session, billboard, business, 5, 10)

    denied = await client.post(f"/api/v1/bookings/{booking.id}/approve", headers=business_headers)
    assert denied.status_code == 403

    assert booking.billboard_id == billboard.id
    approved = await client.post(f"/api/v1/bookings/{booking.id}/approve", headers=owner_headers)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"


@pytest.mark.asyncio
async def test_double_approve_is_invalid_transition(client: AsyncClient, owner_headers, billboard, business, db_session):
    booking = await make_booking(db_session, billboard, business, 5, 10)

    first = await client.post(f"/api/v1/bookings/{booking.id}/approve", headers=owner_headers)
    second = await client.post(f"/api/v1/bookings/{booking.id}/approve", headers=owner_headers)
    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["detail"] == "This request has already been processed"


@pytest.mark.asyncio
async def test_reject_then_approve_fails(client: AsyncClient, owner_headers, billboard, business, db_session, sent_emails):
    booking = await make_booking(db_session, billboard, business, 5, 10)

    rejected = await client.post(f"/api/v1/bookings/{booking.id}/reject", headers=owner_headers)
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"

    approved = await client.post(f"/api/v1/bookings/{booking.id}/approve", headers=owner_headers)
    assert approved.status_code == 409
    assert [m.template_type for m in sent_emails.sent] == ["booking_rejected"]


@pytest.mark.asyncio
async def test_cancel_pending(client: AsyncClient, business_headers, billboard, business, db_session):
    booking = await make_booking(db_session, billboard, business, 5, 10)
    response = await client.post(f"/api/v1/bookings/{booking.id}/cancel", headers=business_headers)
    assert response.status_code == 200
    assert response.json()["campaign_status"] == "cancelled"


@pytest.mark.asyncio
async def test_cancel_approved_before_start(client: AsyncClient, business_headers, billboard, business, db_session):
    booking = await make_booking(db_session, billboard, business, 1, 10, status="approved")
    response = await client.post(f"/api/v1/bookings/{booking.id}/cancel", headers=business_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_cancel_after_start_rejected(client: AsyncClient, business_headers, billboard, business, db_session):
    booking = await make_booking(db_session, billboard, business, 0, 10, status="approved")
    response = await client.post(f"/api/v1/bookings/{booking.id}/cancel", headers=business_headers)
    assert response.status_code == 409

    await db_session.refresh(booking)
    assert booking.status == "approved"


@pytest.mark.asyncio
async def test_cancel_by_someone_else(client: AsyncClient, billboard, business, other_business, db_session):
    booking = await make_booking(db_session, billboard, business, 5, 10)
    response = await client.post(f"/api/v1/bookings/{booking.id}/cancel", headers=headers_for(other_business))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_bookings(client: AsyncClient, business_headers, owner_headers, billboard, business, owner, db_session):
    second = await make_billboard(db_session, owner, title="Insurgentes 1500")
    await make_booking(db_session, billboard, business, 5, 10)
    await make_booking(db_session, second, business, 20, 25, status="approved")

    mine = await client.get("/api/v1/bookings/", headers=business_headers)
    assert mine.status_code == 200
    assert mine.json()["total"] == 2

    received = await client.get("/api/v1/bookings/received", params={"status": "approved"}, headers=owner_headers)
    assert received.json()["total"] == 1
    assert received.json()["bookings"][0]["campaign_status"] == "scheduled"


@pytest.mark.asyncio
async def test_get_booking_hidden_from_strangers(client: AsyncClient, billboard, business, other_business, owner_headers, db_session):
    booking = await make_booking(db_session, billboard, business, 5, 10)

    assert (await client.get(f"/api/v1/bookings/{booking.id}", headers=owner_headers)).status_code == 200
    stranger = await client.get(f"/api/v1/bookings/{booking.id}", headers=headers_for(other_business))
    assert stranger.status_code == 404
