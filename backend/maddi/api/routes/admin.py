"""
Admin invitation endpoints.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from maddi.api.deps import commit_and_dispatch, get_outbox
from maddi.core.logging import get_logger
from maddi.core.security import CallerContext, get_current_caller
from maddi.db.session import get_db
from maddi.schemas.admin import (
    AdminUserResponse,
    InvitationAccept,
    InvitationCreate,
    InvitationDetails,
    InvitationResponse,
)
from maddi.services import invitation_service
from maddi.services.outbox import Outbox

logger = get_logger(__name__)
router = APIRouter(prefix="/admin/invitations", tags=["Admin"])


@router.post("/", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def create_invitation_endpoint(
    invitation_data: InvitationCreate,
    background_tasks: BackgroundTasks,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
):
    """Invite an administrator by email. Super admins only."""
    invitation = await invitation_service.create_invitation(
        db, caller, invitation_data.email, invitation_data.role, outbox
    )
    await commit_and_dispatch(db, outbox, background_tasks)
    return invitation


@router.get("/", response_model=list[InvitationResponse])
async def list_invitations_endpoint(
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Invitations that are neither accepted nor expired."""
    return await invitation_service.list_pending_invitations(db, caller)


@router.get("/validate", response_model=InvitationDetails)
async def validate_invitation_endpoint(
    token: str = Query(..., min_length=1, description="Invitation token from the email link"),
    db: AsyncSession = Depends(get_db),
):
    """Check a token before the invitee signs up. No authentication required."""
    invitation = await invitation_service.validate_invitation(db, token)
    return InvitationDetails(email=invitation.email, role=invitation.role, expires_at=invitation.expires_at)


@router.post("/accept", response_model=AdminUserResponse)
async def accept_invitation_endpoint(
    body: InvitationAccept,
    caller: CallerContext = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Grant the invited role to the authenticated user."""
    return await invitation_service.accept_invitation(db, caller, body.token)
