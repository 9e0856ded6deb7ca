"""
Jobs API endpoints.
Facilities post shifts and drive them through their lifecycle.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from locum.database import get_db
from locum.api.auth import get_current_actor
from locum.api.errors import unwrap
from locum.models.job import Job
from locum.schemas.events import JobEventRequest
from locum.schemas.job import JobCreate, JobResponse
from locum.services.authorization import Actor
from locum.services.jobs import create_job, transition_job
from locum.services.state_machine import JobEvent

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=JobResponse, status_code=201)
async def post_job(
    request: JobCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Post an OPEN job. The facility must be verified."""
    data = request.model_dump(exclude={"facility_id"})
    outcome = unwrap(await create_job(db, actor, request.facility_id, data))
    return outcome.entity


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    job = await db.get(Job, job_id)
    if not job:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return job


@router.post("/{job_id}/events", response_model=JobResponse)
async def apply_event(
    job_id: UUID,
    request: JobEventRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """
    close / reopen / fill / complete / cancel / delete.
    
    ``complete`` also completes every confirmed booking; ``cancel`` and
    ``delete`` return 409 while applications are still in flight.
    """
    outcome = unwrap(await transition_job(db, job_id, actor, request.command))
    if request.command == JobEvent.DELETE:
        return Response(status_code=204)
    return outcome.entity


@router.delete("/{job_id}", status_code=204)
async def delete_job(
    job_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    unwrap(await transition_job(db, job_id, actor, JobEvent.DELETE))
    return Response(status_code=204)
