"""
Verification endpoints.
Subjects submit or resubmit credentials; admins review them.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from locum.database import get_db
from locum.api.auth import get_current_actor, require_admin
from locum.api.errors import unwrap
from locum.schemas.verification import VerificationReview, VerificationResponse, VerificationSubmit
from locum.services.authorization import Actor
from locum.services.verifications import review_verification, submit_verification

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=VerificationResponse, status_code=201)
async def submit(
    request: VerificationSubmit,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Submit credentials, or resubmit after a rejection."""
    outcome = unwrap(await submit_verification(
        db,
        actor,
        request.subject_kind,
        request.subject_id,
        request.fields,
        request.document_urls,
    ))
    return outcome.entity


@router.post("/{verification_id}/review", response_model=VerificationResponse)
async def review(
    verification_id: UUID,
    request: VerificationReview,
    db: AsyncSession = Depends(get_db),
    admin: Actor = Depends(require_admin)
):
    """Approve or reject a PENDING verification (admin only)."""
    outcome = unwrap(await review_verification(
        db, verification_id, admin, request.decision, reason=request.reason
    ))
    return outcome.entity
