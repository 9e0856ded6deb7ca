"""
Job application lifecycle.

PENDING -> EMPLOYER_APPROVED -> DOCTOR_CONFIRMED -> COMPLETED is the happy
path (double opt-in: the facility approves, the doctor confirms). REJECTED,
CANCELLED and COMPLETED are terminal.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from locum.config import settings
from locum.database_types import utcnow
from locum.models.job import Job, JobStatus
from locum.models.job_application import JobApplication, ApplicationStatus
from locum.models.verification import Verification, VerificationStatus, SubjectKind
from locum.services.authorization import (
    Actor,
    require_applicant,
    require_doctor,
    require_facility_staff,
)
from locum.services.concurrency import conditional_update, returns_outcome
from locum.services.errors import (
    Committed,
    Expired,
    NotFound,
    StaleState,
    Unauthorized,
    ValidationFailed,
)
from locum.services.notifications import (
    NotificationDispatcher,
    Recipient,
    TransitionRecord,
    notification_dispatcher,
    notify_effects,
    reason_suffix,
)
from locum.services.state_machine import ApplicationEvent, EntityKind, resolve_target

logger = logging.getLogger(__name__)

CANCELLATION_REASON_MIN = 10
CANCELLATION_REASON_MAX = 500
LAPSED_CONFIRMATION_REASON = "Confirmation window expired"

# Events the facility side may trigger; the rest belong to the applicant
FACILITY_EVENTS = (ApplicationEvent.APPROVE, ApplicationEvent.REJECT)
APPLICANT_EVENTS = (ApplicationEvent.CONFIRM, ApplicationEvent.CANCEL)


def validate_cancellation_reason(reason: Optional[str], required: bool) -> Optional[str]:
    """
    Trim and bound-check a cancellation reason.

    Returns the cleaned reason, or None when it is absent and optional.
    """
    cleaned = reason.strip() if reason else ""
    if not cleaned:
        if required:
            raise ValidationFailed(
                "A cancellation reason is required once the booking is confirmed",
                field="reason",
            )
        return None
    if not CANCELLATION_REASON_MIN <= len(cleaned) <= CANCELLATION_REASON_MAX:
        raise ValidationFailed(
            f"Cancellation reason must be between {CANCELLATION_REASON_MIN} and "
            f"{CANCELLATION_REASON_MAX} characters",
            field="reason",
        )
    return cleaned


def confirmation_deadline(application: JobApplication) -> Optional[datetime]:
    if application.employer_approved_at is None:
        return None
    return application.employer_approved_at + timedelta(hours=settings.confirmation_window_hours)


def transition_record(
    application: JobApplication,
    from_state: Optional[str],
    to_state: str,
    reason: Optional[str] = None,
) -> TransitionRecord:
    """Recipients and template context for an application transition."""
    job = application.job
    profile = application.doctor_profile
    metadata: Dict[str, Any] = {"job_title": job.title}
    if reason:
        metadata["reason"] = reason

    return TransitionRecord(
        kind=EntityKind.APPLICATION,
        entity_id=application.id,
        from_state=from_state,
        to_state=to_state,
        recipients={
            Recipient.APPLICANT: profile.user_id,
            Recipient.FACILITY_OWNER: job.facility.owner_user_id,
        },
        context={
            "job_title": job.title,
            "facility_name": job.facility.name,
            "doctor_name": profile.user.display_name if profile.user else "A doctor",
            "window_hours": settings.confirmation_window_hours,
            "reason_text": reason_suffix(reason),
        },
        references={"job_id": job.id, "application_id": application.id},
        metadata=metadata,
    )


async def _load_application(db: AsyncSession, application_id: UUID) -> JobApplication:
    result = await db.execute(
        select(JobApplication).where(JobApplication.id == application_id)
    )
    application = result.scalar_one_or_none()
    if application is None:
        raise NotFound(f"Application {application_id} not found")
    return application


async def _authorize(db: AsyncSession, actor: Actor, application: JobApplication, event: ApplicationEvent) -> None:
    if event in FACILITY_EVENTS:
        await require_facility_staff(db, actor, application.job.facility_id)
    elif event in APPLICANT_EVENTS:
        require_applicant(actor, application)
    else:
        # COMPLETE only happens through the job cascade; LAPSE only through confirm
        raise Unauthorized(f"Applications cannot be {event.value}d directly")


async def _has_approved_doctor_verification(db: AsyncSession, doctor_profile_id: UUID) -> bool:
    result = await db.execute(
        select(Verification.id).where(
            Verification.subject_kind == SubjectKind.DOCTOR.value,
            Verification.subject_id == doctor_profile_id,
            Verification.status == VerificationStatus.APPROVED.value,
        )
    )
    return result.scalar_one_or_none() is not None


@returns_outcome
async def submit_application(
    db: AsyncSession,
    actor: Actor,
    job_id: UUID,
    cover_letter: Optional[str] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Committed[JobApplication]:
    """
    Create a PENDING application for an OPEN job.

    The doctor must hold an approved verification and may apply to a job once.
    The facility owner is notified (JOB_APPLICATION_RECEIVED).
    """
    dispatcher = dispatcher or notification_dispatcher

    profile = await require_doctor(db, actor)
    if not await _has_approved_doctor_verification(db, profile.id):
        raise Unauthorized("Your doctor verification must be approved before applying to jobs")

    job = await db.get(Job, job_id)
    if job is None:
        raise NotFound(f"Job {job_id} not found")
    if job.status != JobStatus.OPEN.value:
        raise StaleState(f"Job is {job.status} and is not accepting applications", current_state=job.status)

    existing = await db.execute(
        select(JobApplication.id).where(
            JobApplication.job_id == job_id,
            JobApplication.doctor_profile_id == profile.id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ValidationFailed("You have already applied to this job", field="job_id")

    now = utcnow()
    application = JobApplication(
        job_id=job.id,
        doctor_profile_id=profile.id,
        status=ApplicationStatus.PENDING.value,
        cover_letter=cover_letter.strip() if cover_letter else None,
        applied_at=now,
        updated_at=now,
    )
    db.add(application)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race against the same doctor applying twice
        await db.rollback()
        raise ValidationFailed("You have already applied to this job", field="job_id")

    application.job = job
    application.doctor_profile = profile
    notifications = dispatcher.record(
        db, transition_record(application, None, ApplicationStatus.PENDING.value)
    )

    await db.commit()
    await db.refresh(application)

    logger.info(
        f"Application {application.id} submitted for job {job.id}",
        extra={"application_id": str(application.id), "job_id": str(job.id), "actor": str(actor.user_id)},
    )

    await dispatcher.deliver(db, notifications)
    return Committed(application, side_effects=notify_effects(notifications))


@returns_outcome
async def transition_application(
    db: AsyncSession,
    application_id: UUID,
    actor: Actor,
    event: ApplicationEvent,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Committed[JobApplication]:
    """
    Apply ``event`` to an application.

    Args:
        db: Database session
        application_id: Application to move
        actor: Authenticated caller
        event: approve | reject | confirm | cancel (complete is cascade-only)
        reason: Rejection or cancellation reason
        now: Clock override for the confirmation window
        dispatcher: Notification dispatcher override

    Returns:
        Committed with the refreshed application, or Rejected
    """
    dispatcher = dispatcher or notification_dispatcher
    now = now or utcnow()
    try:
        event = ApplicationEvent(event)
    except ValueError:
        raise ValidationFailed(f"Unknown application event {event}", field="event")

    application = await _load_application(db, application_id)
    await _authorize(db, actor, application, event)

    observed = application.status  # raw stored value, may be the legacy alias
    current = ApplicationStatus(observed).value

    # Re-approving is a replay, not a conflict
    if event == ApplicationEvent.APPROVE and current == ApplicationStatus.EMPLOYER_APPROVED.value:
        return Committed(application, changed=False)

    target = resolve_target(EntityKind.APPLICATION, event, observed)

    if event == ApplicationEvent.CONFIRM:
        deadline = confirmation_deadline(application)
        if deadline is not None and now > deadline:
            await _lapse(db, application, observed, now, dispatcher)
            raise Expired("The confirmation window for this approval has expired")

    values: Dict[str, Any] = {"status": target, "updated_at": now}
    stored_reason = None

    if target == ApplicationStatus.EMPLOYER_APPROVED.value:
        values.update(reviewed_at=now, employer_approved_at=now)
    elif target == ApplicationStatus.REJECTED.value:
        stored_reason = reason.strip() if reason and reason.strip() else None
        values.update(reviewed_at=now, rejection_reason=stored_reason)
    elif target == ApplicationStatus.DOCTOR_CONFIRMED.value:
        values.update(confirmed_at=now)
    elif target == ApplicationStatus.CANCELLED.value:
        stored_reason = validate_cancellation_reason(
            reason, required=current == ApplicationStatus.DOCTOR_CONFIRMED.value
        )
        values.update(cancelled_at=now, cancellation_reason=stored_reason)

    await conditional_update(db, JobApplication, application.id, observed, values)

    notifications = dispatcher.record(
        db, transition_record(application, current, target, stored_reason)
    )
    await db.commit()
    await db.refresh(application)

    logger.info(
        f"Application state transition: {current} → {target}",
        extra={
            "application_id": str(application.id),
            "from_state": current,
            "to_state": target,
            "event": event.value,
            "actor": str(actor.user_id),
        },
    )

    await dispatcher.deliver(db, notifications)
    return Committed(application, side_effects=notify_effects(notifications))


async def _lapse(
    db: AsyncSession,
    application: JobApplication,
    observed: str,
    now: datetime,
    dispatcher: NotificationDispatcher,
) -> None:
    """Close an approval whose confirmation window ran out; commits on its own."""
    target = resolve_target(EntityKind.APPLICATION, ApplicationEvent.LAPSE, observed)
    await conditional_update(
        db,
        JobApplication,
        application.id,
        observed,
        {
            "status": target,
            "rejection_reason": LAPSED_CONFIRMATION_REASON,
            "updated_at": now,
        },
    )
    notifications = dispatcher.record(
        db,
        transition_record(application, ApplicationStatus.EMPLOYER_APPROVED.value, target),
    )
    await db.commit()

    logger.info(
        f"Application {application.id} lapsed: not confirmed by {confirmation_deadline(application)}",
        extra={"application_id": str(application.id), "from_state": observed, "to_state": target},
    )
    await dispatcher.deliver(db, notifications)
