"""
Doctor and facility credential verification.

One record per subject. Admins approve or reject a PENDING submission once;
a rejected subject may resubmit (the appeal), which puts the record back to
PENDING with the rejection reason cleared.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from locum.database_types import utcnow
from locum.models.doctor_profile import DoctorProfile
from locum.models.facility import Facility
from locum.models.verification import Verification, VerificationStatus, SubjectKind
from locum.services.authorization import Actor, require_admin, require_verification_subject
from locum.services.concurrency import conditional_update, returns_outcome
from locum.services.errors import Committed, NotFound, StaleState, ValidationFailed
from locum.services.notifications import (
    NotificationDispatcher,
    Recipient,
    TransitionRecord,
    notification_dispatcher,
    notify_effects,
    reason_suffix,
)
from locum.services.state_machine import EntityKind, VerificationEvent, resolve_target

logger = logging.getLogger(__name__)

REVIEW_EVENTS = (VerificationEvent.APPROVE, VerificationEvent.REJECT)


def _validate_submission(fields: Any, document_urls: Any) -> Tuple[Dict[str, Any], List[str]]:
    if not isinstance(fields, dict) or not fields:
        raise ValidationFailed("Verification details are required", field="fields")

    document_urls = list(document_urls or [])
    if any(not isinstance(url, str) or not url.strip() for url in document_urls):
        raise ValidationFailed("Document URLs must be non-empty strings", field="document_urls")
    return fields, [url.strip() for url in document_urls]


async def _find_for_subject(db: AsyncSession, subject_kind: SubjectKind, subject_id: UUID) -> Optional[Verification]:
    result = await db.execute(
        select(Verification).where(
            Verification.subject_kind == subject_kind.value,
            Verification.subject_id == subject_id,
        )
    )
    return result.scalar_one_or_none()


@returns_outcome
async def submit_verification(
    db: AsyncSession,
    actor: Actor,
    subject_kind: SubjectKind,
    subject_id: UUID,
    fields: Dict[str, Any],
    document_urls: List[str],
    now: Optional[datetime] = None,
) -> Committed[Verification]:
    """
    Create a PENDING verification, or resubmit a REJECTED one.

    Resubmission replaces the details and documents and clears the previous
    rejection reason. A PENDING or APPROVED record cannot be resubmitted.
    """
    now = now or utcnow()
    try:
        subject_kind = SubjectKind(subject_kind)
    except ValueError:
        raise ValidationFailed(f"Unknown verification subject {subject_kind}", field="subject_kind")

    await require_verification_subject(db, actor, subject_kind, subject_id)
    fields, document_urls = _validate_submission(fields, document_urls)

    existing = await _find_for_subject(db, subject_kind, subject_id)

    if existing is None:
        verification = Verification(
            subject_kind=subject_kind.value,
            subject_id=subject_id,
            fields=fields,
            document_urls=document_urls,
            status=VerificationStatus.PENDING.value,
            submitted_at=now,
        )
        db.add(verification)
        try:
            await db.flush()
        except IntegrityError:
            # Lost a race against a concurrent first submission for the same subject
            await db.rollback()
            current = await _find_for_subject(db, subject_kind, subject_id)
            raise StaleState(
                "A verification was already submitted for this subject",
                current_state=current.status if current else None,
            )
        await db.commit()
        await db.refresh(verification)
        logger.info(
            f"{subject_kind.value} verification {verification.id} submitted",
            extra={"verification_id": str(verification.id), "subject_id": str(subject_id), "actor": str(actor.user_id)},
        )
        return Committed(verification)

    observed = existing.status
    target = resolve_target(EntityKind.VERIFICATION, VerificationEvent.RESUBMIT, observed)
    await conditional_update(
        db,
        Verification,
        existing.id,
        observed,
        {
            "status": target,
            "fields": fields,
            "document_urls": document_urls,
            "rejection_reason": None,
            "submitted_at": now,
            "reviewed_at": None,
            "reviewed_by_user_id": None,
        },
    )
    await db.commit()
    await db.refresh(existing)

    logger.info(
        f"Verification state transition: {observed} → {target}",
        extra={
            "verification_id": str(existing.id),
            "from_state": observed,
            "to_state": target,
            "event": VerificationEvent.RESUBMIT.value,
            "actor": str(actor.user_id),
        },
    )
    return Committed(existing)


async def _subject_recipient(db: AsyncSession, verification: Verification) -> Tuple[Optional[UUID], str]:
    """(user to notify, display name) for the verification subject."""
    if verification.subject_kind == SubjectKind.DOCTOR.value:
        profile = await db.get(DoctorProfile, verification.subject_id)
        if profile is None:
            return None, ""
        return profile.user_id, profile.user.display_name if profile.user else ""

    facility = await db.get(Facility, verification.subject_id)
    if facility is None:
        return None, ""
    return facility.owner_user_id, facility.name


@returns_outcome
async def review_verification(
    db: AsyncSession,
    verification_id: UUID,
    actor: Actor,
    decision: VerificationEvent,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Committed[Verification]:
    """Admin approves or rejects a PENDING verification; the subject is notified."""
    dispatcher = dispatcher or notification_dispatcher
    now = now or utcnow()

    require_admin(actor)

    try:
        decision = VerificationEvent(decision)
    except ValueError:
        decision = None
    if decision not in REVIEW_EVENTS:
        raise ValidationFailed("Decision must be approve or reject", field="decision")

    verification = await db.get(Verification, verification_id)
    if verification is None:
        raise NotFound(f"Verification {verification_id} not found")

    observed = verification.status
    target = resolve_target(EntityKind.VERIFICATION, decision, observed)

    rejection_reason = None
    if decision == VerificationEvent.REJECT:
        rejection_reason = reason.strip() if reason else ""
        if not rejection_reason:
            raise ValidationFailed("A rejection reason is required", field="reason")

    await conditional_update(
        db,
        Verification,
        verification.id,
        observed,
        {
            "status": target,
            "rejection_reason": rejection_reason,
            "reviewed_at": now,
            "reviewed_by_user_id": actor.user_id,
        },
    )

    recipient_id, subject_name = await _subject_recipient(db, verification)
    notifications = dispatcher.record(db, TransitionRecord(
        kind=EntityKind.VERIFICATION,
        entity_id=verification.id,
        from_state=observed,
        to_state=target,
        recipients={Recipient.SUBJECT: recipient_id} if recipient_id else {},
        context={
            "subject_kind": verification.subject_kind,
            "subject_name": subject_name,
            "reason_text": reason_suffix(rejection_reason),
        },
        references={"verification_id": verification.id},
        metadata={"reason": rejection_reason} if rejection_reason else {},
    ))

    await db.commit()
    await db.refresh(verification)

    logger.info(
        f"Verification state transition: {observed} → {target}",
        extra={
            "verification_id": str(verification.id),
            "from_state": observed,
            "to_state": target,
            "event": decision.value,
            "actor": str(actor.user_id),
        },
    )

    await dispatcher.deliver(db, notifications)
    return Committed(verification, side_effects=notify_effects(notifications))
