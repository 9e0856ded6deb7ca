"""
Job lifecycle.

Jobs are created OPEN by verified facility staff. Completing a job cascades
COMPLETED onto every DOCTOR_CONFIRMED application in the same transaction.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from locum.database_types import utcnow
from locum.models.job import Job, JobStatus, JobUrgency, PayBasis
from locum.models.job_application import (
    JobApplication,
    ApplicationStatus,
    TERMINAL_APPLICATION_STATES,
)
from locum.models.notification import Notification
from locum.models.verification import Verification, VerificationStatus, SubjectKind
from locum.services.applications import transition_record
from locum.services.authorization import Actor, require_facility_staff
from locum.services.concurrency import cascade_update, conditional_update, read_status, returns_outcome
from locum.services.errors import (
    Committed,
    HasDependents,
    NotFound,
    SideEffect,
    StaleState,
    Unauthorized,
    ValidationFailed,
)
from locum.services.notifications import (
    NotificationDispatcher,
    notification_dispatcher,
    notify_effects,
)
from locum.services.state_machine import EntityKind, JobEvent, resolve_target

logger = logging.getLogger(__name__)

TERMINAL_APPLICATION_VALUES = [s.value for s in TERMINAL_APPLICATION_STATES]


async def count_active_applications(db: AsyncSession, job_id: UUID) -> int:
    """Applications that still block deleting or cancelling the job."""
    result = await db.execute(
        select(func.count(JobApplication.id)).where(
            JobApplication.job_id == job_id,
            JobApplication.status.notin_(TERMINAL_APPLICATION_VALUES),
        )
    )
    return result.scalar_one()


async def _has_approved_facility_verification(db: AsyncSession, facility_id: UUID) -> bool:
    result = await db.execute(
        select(Verification.id).where(
            Verification.subject_kind == SubjectKind.FACILITY.value,
            Verification.subject_id == facility_id,
            Verification.status == VerificationStatus.APPROVED.value,
        )
    )
    return result.scalar_one_or_none() is not None


def _validate_job_data(data: Dict[str, Any]) -> Dict[str, Any]:
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationFailed("Job title is required", field="title")

    start_date = data.get("start_date")
    end_date = data.get("end_date")
    if start_date and end_date and end_date < start_date:
        raise ValidationFailed("End date must not be before start date", field="end_date")

    pay_rate = data.get("pay_rate")
    if pay_rate is not None and Decimal(str(pay_rate)) < 0:
        raise ValidationFailed("Pay rate must not be negative", field="pay_rate")

    try:
        urgency = JobUrgency(data.get("urgency") or JobUrgency.MEDIUM).value
    except ValueError:
        raise ValidationFailed(f"Unknown urgency {data.get('urgency')}", field="urgency")
    try:
        pay_basis = PayBasis(data.get("pay_basis") or PayBasis.HOURLY).value
    except ValueError:
        raise ValidationFailed(f"Unknown pay basis {data.get('pay_basis')}", field="pay_basis")

    return {
        "title": title,
        "description": data.get("description"),
        "urgency": urgency,
        "start_date": start_date,
        "end_date": end_date,
        "pay_rate": pay_rate,
        "pay_basis": pay_basis,
    }


@returns_outcome
async def create_job(
    db: AsyncSession,
    actor: Actor,
    facility_id: UUID,
    data: Dict[str, Any],
) -> Committed[Job]:
    """Post a new OPEN job for a facility whose verification is approved."""
    await require_facility_staff(db, actor, facility_id)
    if not await _has_approved_facility_verification(db, facility_id):
        raise Unauthorized("The facility must be verified before posting jobs")

    fields = _validate_job_data(data)
    now = utcnow()
    job = Job(
        facility_id=facility_id,
        status=JobStatus.OPEN.value,
        created_at=now,
        updated_at=now,
        **fields,
    )
    db.add(job)
    await db.commit()
    await db.refresh(job)

    logger.info(
        f"Job {job.id} created for facility {facility_id}",
        extra={"job_id": str(job.id), "facility_id": str(facility_id), "actor": str(actor.user_id)},
    )
    return Committed(job)


@returns_outcome
async def transition_job(
    db: AsyncSession,
    job_id: UUID,
    actor: Actor,
    event: JobEvent,
    now: Optional[datetime] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Committed[Any]:
    """
    Apply ``event`` to a job owned by the actor's facility.

    ``delete`` returns the removed job's id as the entity; every other event
    returns the refreshed job.
    """
    dispatcher = dispatcher or notification_dispatcher
    now = now or utcnow()
    try:
        event = JobEvent(event)
    except ValueError:
        raise ValidationFailed(f"Unknown job event {event}", field="event")

    job = await db.get(Job, job_id)
    if job is None:
        raise NotFound(f"Job {job_id} not found")
    await require_facility_staff(db, actor, job.facility_id)

    observed = job.status
    target = resolve_target(EntityKind.JOB, event, observed)

    if event == JobEvent.DELETE:
        return await _delete_job(db, job, observed, actor)

    if event == JobEvent.CANCEL:
        dependents = await count_active_applications(db, job.id)
        if dependents:
            raise HasDependents(
                f"Job has {dependents} active application(s); close it instead", dependents=dependents
            )

    values: Dict[str, Any] = {"status": target, "updated_at": now}
    if target in (JobStatus.CLOSED.value, JobStatus.CANCELLED.value):
        values["closed_at"] = now
    elif target == JobStatus.OPEN.value:
        values["closed_at"] = None
    elif target == JobStatus.COMPLETED.value:
        values["completed_at"] = now

    await conditional_update(db, Job, job.id, observed, values)

    side_effects: List[SideEffect] = []
    notifications = []
    if target == JobStatus.COMPLETED.value:
        completed, notifications = await _complete_confirmed_applications(db, job, now, dispatcher)
        side_effects.extend(SideEffect("cascade_complete", child_id) for child_id in completed)

    await db.commit()
    await db.refresh(job)

    logger.info(
        f"Job state transition: {observed} → {target}",
        extra={
            "job_id": str(job.id),
            "from_state": observed,
            "to_state": target,
            "event": event.value,
            "actor": str(actor.user_id),
            "cascaded": len(side_effects),
        },
    )

    await dispatcher.deliver(db, notifications)
    return Committed(job, side_effects=side_effects + notify_effects(notifications))


async def _complete_confirmed_applications(
    db: AsyncSession,
    job: Job,
    now: datetime,
    dispatcher: NotificationDispatcher,
):
    """
    Move every DOCTOR_CONFIRMED child to COMPLETED inside the caller's
    transaction. Already-terminal children are left alone.
    """
    result = await db.execute(
        select(JobApplication).where(
            JobApplication.job_id == job.id,
            JobApplication.status == ApplicationStatus.DOCTOR_CONFIRMED.value,
        )
    )
    children = list(result.scalars().all())
    child_ids = [child.id for child in children]

    await cascade_update(
        db,
        JobApplication,
        child_ids,
        ApplicationStatus.DOCTOR_CONFIRMED.value,
        {"status": ApplicationStatus.COMPLETED.value, "completed_at": now, "updated_at": now},
    )

    notifications = []
    for child in children:
        notifications.extend(dispatcher.record(
            db,
            transition_record(
                child,
                ApplicationStatus.DOCTOR_CONFIRMED.value,
                ApplicationStatus.COMPLETED.value,
            ),
        ))
    return child_ids, notifications


async def _delete_job(db: AsyncSession, job: Job, observed: str, actor: Actor) -> Committed[UUID]:
    """Hard delete: only when no application is still in flight."""
    job_id = job.id
    dependents = await count_active_applications(db, job_id)
    if dependents:
        raise HasDependents(
            f"Job has {dependents} active application(s); close it instead", dependents=dependents
        )

    child_ids = list((await db.execute(
        select(JobApplication.id).where(JobApplication.job_id == job_id)
    )).scalars().all())

    # Notifications outlive the entities they point at
    await db.execute(
        update(Notification)
        .where(Notification.job_id == job_id)
        .values(job_id=None)
        .execution_options(synchronize_session=False)
    )
    if child_ids:
        await db.execute(
            update(Notification)
            .where(Notification.job_application_id.in_(child_ids))
            .values(job_application_id=None)
            .execution_options(synchronize_session=False)
        )

    await db.execute(
        delete(JobApplication)
        .where(
            JobApplication.job_id == job_id,
            JobApplication.status.in_(TERMINAL_APPLICATION_VALUES),
        )
        .execution_options(synchronize_session=False)
    )

    # An application may have slipped in after the count above
    dependents = await count_active_applications(db, job_id)
    if dependents:
        raise HasDependents(
            f"Job has {dependents} active application(s); close it instead", dependents=dependents
        )

    result = await db.execute(
        delete(Job)
        .where(Job.id == job_id, Job.status == observed)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = await read_status(db, Job, job_id)
        if current is None:
            raise NotFound(f"Job {job_id} not found")
        raise StaleState(f"Job {job_id} is in state {current}, expected {observed}", current_state=current)

    await db.commit()
    db.expunge(job)

    logger.info(
        f"Job {job_id} deleted with {len(child_ids)} terminal application(s)",
        extra={"job_id": str(job_id), "from_state": observed, "actor": str(actor.user_id)},
    )
    return Committed(
        job_id,
        side_effects=[SideEffect("delete_application", child_id) for child_id in child_ids],
    )
