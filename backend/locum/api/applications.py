"""
Job application endpoints.
Doctors apply and confirm; facility staff approve or reject.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from locum.database import get_db
from locum.api.auth import get_current_actor
from locum.api.errors import unwrap
from locum.schemas.application import ApplicationCreate, ApplicationResponse
from locum.schemas.events import ApplicationEventRequest, application_command
from locum.services.authorization import Actor
from locum.services.applications import submit_application, transition_application

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=ApplicationResponse, status_code=201)
async def apply_to_job(
    request: ApplicationCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """
    Apply to an OPEN job.
    
    Requires an approved doctor verification. Returns 409 if the job is no
    longer open and 422 on a duplicate application.
    """
    outcome = unwrap(await submit_application(db, actor, request.job_id, request.cover_letter))
    return outcome.entity


@router.post("/{application_id}/events", response_model=ApplicationResponse)
async def apply_event(
    application_id: UUID,
    request: ApplicationEventRequest = Body(...),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """
    Move an application through its lifecycle.
    
    - approve / reject{reason?}: facility staff, from PENDING
    - confirm: applicant, within the confirmation window (410 once lapsed)
    - cancel{reason?}: applicant; reason required once confirmed
    
    A 409 carries ``current_state`` so the client can reconcile.
    """
    event, reason = application_command(request)
    outcome = unwrap(await transition_application(db, application_id, actor, event, reason=reason))
    return outcome.entity
