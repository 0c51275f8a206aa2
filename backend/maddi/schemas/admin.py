"""
Pydantic schemas for the admin invitation workflow.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr

AdminRole = Literal["admin", "super_admin"]


class InvitationCreate(BaseModel):
    email: EmailStr
    role: AdminRole = "admin"


class InvitationResponse(BaseModel):
    id: int
    email: str
    role: str
    expires_at: datetime
    accepted_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class InvitationDetails(BaseModel):
    """What an invitee sees before signing up."""
    email: str
    role: str
    expires_at: datetime


class InvitationAccept(BaseModel):
    token: str


class AdminUserResponse(BaseModel):
    id: int
    user_id: int
    role: str
    email: str

    model_config = {"from_attributes": True}
