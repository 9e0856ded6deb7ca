"""Staff invitation schemas."""
from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr

from locum.models.facility import StaffRole


class InvitationCreate(BaseModel):
    facility_id: UUID
    invitee_email: EmailStr
    role: StaffRole = StaffRole.STAFF


class InvitationRespond(BaseModel):
    token: str
    decision: Literal["accept", "decline"]


class InvitationResponse(BaseModel):
    """Invitation as seen by anyone; never includes the token."""
    id: UUID
    facility_id: UUID
    invitee_email: str
    role: str
    status: str
    created_at: datetime
    expires_at: datetime
    responded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class IssuedInvitationResponse(InvitationResponse):
    """Returned once to the inviter so the link can be shared."""
    token: str
