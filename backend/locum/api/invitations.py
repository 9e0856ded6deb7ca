"""
Staff invitation endpoints.
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from locum.database import get_db
from locum.api.auth import get_current_actor
from locum.api.errors import unwrap
from locum.schemas.invitation import (
    InvitationCreate,
    InvitationRespond,
    InvitationResponse,
    IssuedInvitationResponse,
)
from locum.services.authorization import Actor
from locum.services.invitations import (
    get_invitation_by_token,
    issue_invitation,
    respond_to_invitation,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=IssuedInvitationResponse, status_code=201)
async def invite(
    request: InvitationCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """
    Invite a user to a facility (OWNER or ADMIN only).
    
    The token is returned once, here; only its hash is stored.
    """
    outcome = unwrap(await issue_invitation(
        db, actor, request.facility_id, request.invitee_email, request.role.value
    ))
    issued = outcome.entity
    return IssuedInvitationResponse(
        **InvitationResponse.model_validate(issued.invitation).model_dump(),
        token=issued.token,
    )


@router.get("/by-token", response_model=InvitationResponse)
async def preview(
    token: str = Query(...),
    db: AsyncSession = Depends(get_db)
):
    """Show a live invitation. Unknown and expired tokens are indistinguishable (410)."""
    outcome = unwrap(await get_invitation_by_token(db, token))
    return outcome.entity


@router.post("/respond", response_model=InvitationResponse)
async def respond(
    request: InvitationRespond,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Accept or decline an invitation addressed to the current user."""
    outcome = unwrap(await respond_to_invitation(db, request.token, actor, request.decision))
    return outcome.entity
