"""
Tests for the admin invitation workflow.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import Update, select
from sqlalchemy.exc import OperationalError

from conftest import TestSessionLocal, _user, caller_for, headers_for
from maddi.core import errors
from maddi.models import AdminInvitation, AdminUser
from maddi.services import invitation_service


async def _invite(client, super_admin, email="owner@example.com", role="admin"):
    return await client.post(
        "/api/v1/admin/invitations/",
        json={"email": email, "role": role},
        headers=headers_for(super_admin),
    )


@pytest.mark.asyncio
async def test_create_invitation_sends_email(client, super_admin, sent_emails):
    response = await _invite(client, super_admin)
    assert response.status_code == 201
    assert response.json()["role"] == "admin"
    assert response.json()["accepted_at"] is None

    assert [m.template_type for m in sent_emails.sent] == ["admin_invite"]
    invite_url = sent_emails.sent[0].template_data["inviteUrl"]
    assert "/admin/accept-invite?token=" in invite_url
    assert sent_emails.sent[0].template_data["expiresInDays"] == 7


@pytest.mark.asyncio
async def test_only_super_admin_can_invite(client, db_session, owner_headers, owner):
    response = await client.post(
        "/api/v1/admin/invitations/",
        json={"email": "someone@example.com", "role": "admin"},
        headers=owner_headers,
    )
    assert response.status_code == 403

    # Plain admins cannot invite either
    db_session.add(AdminUser(user_id=owner.id, role="admin", email=owner.email))
    await db_session.commit()
    response = await client.post(
        "/api/v1/admin/invitations/",
        json={"email": "someone@example.com", "role": "admin"},
        headers=owner_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_invalid_role_or_email(client, super_admin):
    assert (await _invite(client, super_admin, role="owner")).status_code == 422
    assert (await _invite(client, super_admin, email="not-an-email")).status_code == 422


@pytest.mark.asyncio
async def test_duplicate_invitation(client, super_admin):
    assert (await _invite(client, super_admin)).status_code == 201
    assert (await _invite(client, super_admin)).status_code == 409


@pytest.mark.asyncio
async def test_existing_admin_cannot_be_invited(client, super_admin):
    response = await _invite(client, super_admin, email="root@maddi.mx")
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_accept_twice_scenario(client, db_session, super_admin, owner, owner_headers):
    """First accept grants the role, the second reports the token as used."""
    await _invite(client, super_admin)
    invitation = (await db_session.execute(select(AdminInvitation))).scalar_one()
    token = invitation.token

    validated = await client.get("/api/v1/admin/invitations/validate", params={"token": token})
    assert validated.status_code == 200
    assert validated.json()["email"] == "owner@example.com"

    first = await client.post("/api/v1/admin/invitations/accept", json={"token": token}, headers=owner_headers)
    assert first.status_code == 200
    assert first.json()["role"] == "admin"

    await db_session.refresh(invitation)
    assert invitation.accepted_at is not None

    second = await client.post("/api/v1/admin/invitations/accept", json={"token": token}, headers=owner_headers)
    assert second.status_code == 410
    assert second.json()["detail"] == "This invitation is no longer valid"


@pytest.mark.asyncio
async def test_accept_requires_matching_email(client, db_session, super_admin, business_headers):
    await _invite(client, super_admin)
    token = (await db_session.execute(select(AdminInvitation.token))).scalar_one()

    response = await client.post("/api/v1/admin/invitations/accept", json={"token": token}, headers=business_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_token(client):
    response = await client.get("/api/v1/admin/invitations/validate", params={"token": "nope"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_expired_invitation(db_session, super_admin):
    db_session.add(
        AdminInvitation(
            email="late@example.com",
            role="admin",
            token="expired-token",
            invited_by=super_admin.id,
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        )
    )
    await db_session.commit()

    with pytest.raises(errors.Expired):
        await invitation_service.validate_invitation(db_session, "expired-token")


@pytest.mark.asyncio
async def test_expired_invitation_can_be_reissued(db_session, super_admin, outbox):
    db_session.add(
        AdminInvitation(
            email="late@example.com",
            role="admin",
            token="old-token",
            invited_by=super_admin.id,
            expires_at=datetime.now(timezone.utc) - timedelta(days=1),
        )
    )
    await db_session.commit()
    caller = await caller_for(db_session, super_admin)

    invitation = await invitation_service.create_invitation(db_session, caller, "Late@Example.com", "super_admin", outbox)
    assert invitation.email == "late@example.com"
    assert invitation.token != "old-token"


@pytest.mark.asyncio
async def test_list_pending_invitations(client, db_session, super_admin):
    await _invite(client, super_admin, email="a@example.com")
    await _invite(client, super_admin, email="b@example.com")
    invited = await _user(db_session, "a@example.com", "owner")

    token = (
        await db_session.execute(select(AdminInvitation.token).where(AdminInvitation.email == "a@example.com"))
    ).scalar_one()
    await client.post("/api/v1/admin/invitations/accept", json={"token": token}, headers=headers_for(invited))

    response = await client.get("/api/v1/admin/invitations/", headers=headers_for(super_admin))
    assert [i["email"] for i in response.json()] == ["b@example.com"]


async def _pending_invitation(db, super_admin, email="owner@example.com", role="admin") -> str:
    invitation = AdminInvitation(
        email=email,
        role=role,
        token=f"token-{email}",
        invited_by=super_admin.id,
        expires_at=datetime.now(timezone.utc) + timedelta(days=7),
    )
    db.add(invitation)
    await db.commit()
    return invitation.token


@pytest.mark.asyncio
async def test_open_invitation_index_blocks_concurrent_create(db_session, super_admin, outbox, monkeypatch):
    """Two requests that both passed the pending check still leave one open invitation."""
    caller = await caller_for(db_session, super_admin)
    async with TestSessionLocal() as first:
        await invitation_service.create_invitation(first, caller, "race@example.com", "admin", outbox)
        await first.commit()

    async def already_checked(db, email):
        return None

    monkeypatch.setattr(invitation_service, "_clear_open_invitations", already_checked)
    async with TestSessionLocal() as second:
        with pytest.raises(errors.Conflict) as exc:
            await invitation_service.create_invitation(second, caller, "race@example.com", "admin", outbox)
    assert exc.value.status_code == 409
    assert exc.value.detail == invitation_service.PENDING_INVITATION

    pending = await invitation_service.list_pending_invitations(db_session, caller)
    assert [i.email for i in pending] == ["race@example.com"]


@pytest.mark.asyncio
async def test_concurrent_accept_reports_conflict(db_session, super_admin, owner, monkeypatch):
    """The loser of two simultaneous accepts gets a 409 instead of a database error."""
    token = await _pending_invitation(db_session, super_admin)
    caller = await caller_for(db_session, owner)

    # The winner has inserted its admin row but not yet marked the invitation
    async with TestSessionLocal() as winner:
        winner.add(AdminUser(user_id=caller.user_id, role="admin", email=caller.email))
        await winner.commit()

    async def not_admin_yet(db, user_id):
        return None

    monkeypatch.setattr(invitation_service, "_ensure_not_admin", not_admin_yet)
    async with TestSessionLocal() as loser:
        with pytest.raises(errors.Conflict) as exc:
            await invitation_service.accept_invitation(loser, caller, token)
    assert exc.value.status_code == 409

    admins = (await db_session.execute(select(AdminUser).where(AdminUser.user_id == caller.user_id))).scalars().all()
    assert len(admins) == 1


@pytest.mark.asyncio
async def test_failed_admin_insert_leaves_token_usable(db_session, super_admin, owner, monkeypatch):
    token = await _pending_invitation(db_session, super_admin)
    caller = await caller_for(db_session, owner)

    async def failing_flush(*args, **kwargs):
        raise OperationalError("INSERT INTO admin_users", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "flush", failing_flush)
    with pytest.raises(OperationalError):
        await invitation_service.accept_invitation(db_session, caller, token)
    monkeypatch.undo()

    invitation = await invitation_service.validate_invitation(db_session, token)
    assert invitation.accepted_at is None
    admin = (await db_session.execute(select(AdminUser).where(AdminUser.user_id == caller.user_id))).scalar_one_or_none()
    assert admin is None

    # Retrying the same token succeeds
    admin = await invitation_service.accept_invitation(db_session, caller, token)
    assert admin.role == "admin"


@pytest.mark.asyncio
async def test_failed_mark_still_grants_role(db_session, super_admin, owner, monkeypatch):
    token = await _pending_invitation(db_session, super_admin, role="super_admin")
    caller = await caller_for(db_session, owner)
    original_execute = db_session.execute

    async def execute(statement, *args, **kwargs):
        if isinstance(statement, Update) and statement.table.name == "admin_invitations":
            raise OperationalError("UPDATE admin_invitations", {}, Exception("database is locked"))
        return await original_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", execute)
    admin = await invitation_service.accept_invitation(db_session, caller, token)
    assert admin.user_id == caller.user_id
    assert admin.role == "super_admin"

    invitation = (
        await db_session.execute(
            select(AdminInvitation).where(AdminInvitation.token == token).execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert invitation.accepted_at is None
