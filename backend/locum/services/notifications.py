"""
Notification dispatcher.

Turns a committed transition into Notification rows using a static rule
table, then nudges recipients over the external channel. Rows are written
in the same transaction as the status change (exactly once per transition
per recipient); the channel is called only after commit and its failures
are logged, never raised.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from locum.config import settings
from locum.database_types import utcnow
from locum.models.notification import Notification, NotificationType
from locum.models.user import User
from locum.services.authorization import Actor
from locum.services.channels import MessageChannel, OutboundMessage, build_default_channel
from locum.services.concurrency import returns_outcome
from locum.services.errors import Committed, ExternalChannelFailure, NotFound, SideEffect, Unauthorized
from locum.services.state_machine import EntityKind

logger = logging.getLogger(__name__)

ANY_STATE = "*"
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


class Recipient:
    APPLICANT = "applicant"
    FACILITY_OWNER = "facility_owner"
    SUBJECT = "subject"
    INVITEE = "invitee"


@dataclass(frozen=True)
class NotificationRule:
    recipient: str
    type: NotificationType
    title: str
    message: str  # str.format template over TransitionRecord.context
    action_url: Optional[str] = None
    applies: Optional[Callable[["TransitionRecord"], bool]] = None


@dataclass
class TransitionRecord:
    """Everything the dispatcher needs to know about one committed transition."""
    kind: EntityKind
    entity_id: UUID
    from_state: Optional[str]  # None for creation
    to_state: str
    recipients: Dict[str, UUID]
    context: Dict[str, Any] = field(default_factory=dict)
    references: Dict[str, UUID] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


def _doctor_subject(record: TransitionRecord) -> bool:
    return record.context.get("subject_kind") == "DOCTOR"


def _facility_subject(record: TransitionRecord) -> bool:
    return record.context.get("subject_kind") == "FACILITY"


# (entity kind, from state, to state) -> rules
NOTIFICATION_RULES: Dict[Tuple[EntityKind, Optional[str], str], List[NotificationRule]] = {
    (EntityKind.APPLICATION, None, "PENDING"): [
        NotificationRule(
            Recipient.FACILITY_OWNER,
            NotificationType.JOB_APPLICATION_RECEIVED,
            "New Application Received",
            "{doctor_name} applied for {job_title}",
            "/employer/dashboard/jobs/{job_id}",
        ),
    ],
    (EntityKind.APPLICATION, "PENDING", "EMPLOYER_APPROVED"): [
        NotificationRule(
            Recipient.APPLICANT,
            NotificationType.JOB_APPLICATION_APPROVED,
            "Application Approved",
            "{facility_name} approved your application for {job_title}. Please confirm within {window_hours} hours.",
            "/profile/history?application={application_id}",
        ),
    ],
    (EntityKind.APPLICATION, "PENDING", "REJECTED"): [
        NotificationRule(
            Recipient.APPLICANT,
            NotificationType.JOB_APPLICATION_REJECTED,
            "Application Not Selected",
            "{facility_name} did not select your application for {job_title}.{reason_text}",
            "/profile/history?application={application_id}",
        ),
    ],
    (EntityKind.APPLICATION, "EMPLOYER_APPROVED", "REJECTED"): [
        NotificationRule(
            Recipient.APPLICANT,
            NotificationType.JOB_APPLICATION_REJECTED,
            "Confirmation Window Expired",
            "Your approval for {job_title} at {facility_name} lapsed because it was not confirmed in time.",
            "/profile/history?application={application_id}",
        ),
        NotificationRule(
            Recipient.FACILITY_OWNER,
            NotificationType.JOB_APPLICATION_REJECTED,
            "Doctor Did Not Confirm",
            "{doctor_name} did not confirm {job_title} in time; the application was closed.",
            "/employer/dashboard/jobs/{job_id}",
        ),
    ],
    (EntityKind.APPLICATION, "EMPLOYER_APPROVED", "DOCTOR_CONFIRMED"): [
        NotificationRule(
            Recipient.FACILITY_OWNER,
            NotificationType.JOB_APPLICATION_CONFIRMED,
            "Booking Confirmed",
            "{doctor_name} confirmed the booking for {job_title}",
            "/employer/dashboard/jobs/{job_id}",
        ),
    ],
    (EntityKind.APPLICATION, ANY_STATE, "CANCELLED"): [
        NotificationRule(
            Recipient.FACILITY_OWNER,
            NotificationType.JOB_APPLICATION_CANCELLED,
            "Application Cancelled",
            "{doctor_name} cancelled their application for {job_title}.{reason_text}",
            "/employer/dashboard/jobs/{job_id}",
        ),
    ],
    (EntityKind.APPLICATION, "DOCTOR_CONFIRMED", "COMPLETED"): [
        NotificationRule(
            Recipient.APPLICANT,
            NotificationType.JOB_APPLICATION_COMPLETED,
            "Shift Completed",
            "{facility_name} marked {job_title} as completed",
            "/profile/history?application={application_id}",
        ),
    ],
    (EntityKind.VERIFICATION, "PENDING", "APPROVED"): [
        NotificationRule(
            Recipient.SUBJECT,
            NotificationType.VERIFICATION_APPROVED,
            "Verification Approved",
            "Your doctor profile has been verified. You can now apply for jobs.",
            "/profile",
            applies=_doctor_subject,
        ),
        NotificationRule(
            Recipient.SUBJECT,
            NotificationType.FACILITY_VERIFICATION_APPROVED,
            "Facility Verified",
            "{subject_name} has been verified. You can now post jobs.",
            "/employer/dashboard",
            applies=_facility_subject,
        ),
    ],
    (EntityKind.VERIFICATION, "PENDING", "REJECTED"): [
        NotificationRule(
            Recipient.SUBJECT,
            NotificationType.VERIFICATION_REJECTED,
            "Verification Rejected",
            "Your doctor verification was rejected.{reason_text} You can update your details and resubmit.",
            "/profile",
            applies=_doctor_subject,
        ),
        NotificationRule(
            Recipient.SUBJECT,
            NotificationType.FACILITY_VERIFICATION_REJECTED,
            "Facility Verification Rejected",
            "The verification for {subject_name} was rejected.{reason_text} You can update your details and resubmit.",
            "/employer/register",
            applies=_facility_subject,
        ),
    ],
    (EntityKind.INVITATION, None, "PENDING"): [
        NotificationRule(
            Recipient.INVITEE,
            NotificationType.STAFF_INVITATION_RECEIVED,
            "Staff Invitation Received",
            "{inviter_name} invited you to join {facility_name} as {role}",
            "/profile/invitations?token={token}",
        ),
    ],
    (EntityKind.INVITATION, "PENDING", "ACCEPTED"): [
        NotificationRule(
            Recipient.FACILITY_OWNER,
            NotificationType.STAFF_INVITATION_ACCEPTED,
            "Staff Invitation Accepted",
            "{staff_name} accepted the invitation and joined as {role}",
            "/employer/dashboard/staffs",
        ),
    ],
    (EntityKind.INVITATION, "PENDING", "DECLINED"): [
        NotificationRule(
            Recipient.FACILITY_OWNER,
            NotificationType.STAFF_INVITATION_REJECTED,
            "Staff Invitation Declined",
            "{staff_name} declined the invitation to join as {role}",
            "/employer/dashboard/staffs",
        ),
    ],
}


def rules_for(kind: EntityKind, from_state: Optional[str], to_state: str) -> List[NotificationRule]:
    """Exact (from, to) rules plus wildcard-source rules for the same target."""
    rules = list(NOTIFICATION_RULES.get((kind, from_state, to_state), []))
    if from_state is not None:
        rules.extend(NOTIFICATION_RULES.get((kind, ANY_STATE, to_state), []))
    return rules


def reason_suffix(reason: Optional[str]) -> str:
    return f" Reason: {reason}" if reason else ""


class NotificationDispatcher:
    """Builds notification rows for committed transitions and nudges recipients."""

    def __init__(self, channel: Optional[MessageChannel] = None):
        self._channel = channel

    @property
    def channel(self) -> MessageChannel:
        if self._channel is None:
            self._channel = build_default_channel()
        return self._channel

    def build(self, record: TransitionRecord) -> List[Notification]:
        notifications = []
        seen = set()
        template_values = {**record.context, **{k: str(v) for k, v in record.references.items()}}

        for rule in rules_for(record.kind, record.from_state, record.to_state):
            if rule.applies is not None and not rule.applies(record):
                continue
            recipient_id = record.recipients.get(rule.recipient)
            if recipient_id is None:
                continue
            # One notification per recipient per transition
            if recipient_id in seen:
                continue
            seen.add(recipient_id)

            notifications.append(Notification(
                recipient_user_id=recipient_id,
                type=rule.type.value,
                title=rule.title,
                message=rule.message.format(**template_values),
                action_url=rule.action_url.format(**template_values) if rule.action_url else None,
                metadata_=dict(record.metadata) or None,
                job_id=record.references.get("job_id"),
                job_application_id=record.references.get("application_id"),
                verification_id=record.references.get("verification_id"),
                staff_invitation_id=record.references.get("invitation_id"),
            ))
        return notifications

    def record(self, db: AsyncSession, record: TransitionRecord) -> List[Notification]:
        """Stage notification rows in the caller's transaction."""
        notifications = self.build(record)
        db.add_all(notifications)
        return notifications

    async def deliver(self, db: AsyncSession, notifications: List[Notification]) -> int:
        """
        Best-effort external nudge for already-committed notifications.

        Returns the number of messages the channel accepted. Never raises.
        """
        if not notifications:
            return 0

        delivered = 0
        try:
            recipient_ids = {n.recipient_user_id for n in notifications}
            result = await db.execute(select(User).where(User.id.in_(recipient_ids)))
            users = {u.id: u for u in result.scalars().all()}
        except Exception as e:
            logger.warning(f"Could not load notification recipients: {e}")
            return 0

        for notification in notifications:
            user = users.get(notification.recipient_user_id)
            if user is None:
                continue
            message = OutboundMessage(
                subject=notification.title,
                body=notification.message,
                to_email=user.email,
                to_phone=user.phone,
                action_url=f"{settings.frontend_url}{notification.action_url}" if notification.action_url else None,
                metadata={"notification_id": str(notification.id), "type": notification.type},
            )
            try:
                await self.channel.send(message)
                delivered += 1
            except ExternalChannelFailure as e:
                logger.warning(
                    f"External delivery failed for notification {notification.id}: {e}",
                    extra={"notification_id": str(notification.id), "type": notification.type},
                )
            except Exception as e:
                logger.warning(
                    f"Unexpected channel error for notification {notification.id}: {e}",
                    exc_info=True,
                )
        return delivered


def notify_effects(notifications: List[Notification]) -> List[SideEffect]:
    return [SideEffect("notify", n.recipient_user_id, n.type) for n in notifications]


# Global dispatcher instance
notification_dispatcher = NotificationDispatcher()


# =============================================================================
# Inbox operations
# =============================================================================

@dataclass
class NotificationFilter:
    is_read: Optional[bool] = None
    type: Optional[NotificationType] = None
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0


async def list_notifications(
    db: AsyncSession,
    actor: Actor,
    filters: Optional[NotificationFilter] = None,
) -> List[Notification]:
    """Actor's notifications, newest first."""
    filters = filters or NotificationFilter()
    query = select(Notification).where(Notification.recipient_user_id == actor.user_id)

    if filters.is_read is not None:
        query = query.where(Notification.is_read.is_(filters.is_read))
    if filters.type is not None:
        query = query.where(Notification.type == filters.type.value)

    limit = max(1, min(filters.limit, MAX_PAGE_SIZE))
    query = query.order_by(Notification.created_at.desc()).offset(max(0, filters.offset)).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def unread_count(db: AsyncSession, actor: Actor) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.recipient_user_id == actor.user_id,
            Notification.is_read.is_(False),
        )
    )
    return result.scalar_one()


async def _owned_notification(db: AsyncSession, notification_id: UUID, actor: Actor) -> Notification:
    notification = await db.get(Notification, notification_id)
    if notification is None:
        raise NotFound("Notification not found")
    if notification.recipient_user_id != actor.user_id:
        raise Unauthorized("Not authorized to modify this notification")
    return notification


@returns_outcome
async def mark_read(db: AsyncSession, notification_id: UUID, actor: Actor) -> Committed[Notification]:
    """Idempotent: marking an already-read notification is a no-op success."""
    notification = await _owned_notification(db, notification_id, actor)

    if notification.is_read:
        return Committed(notification, changed=False)

    notification.is_read = True
    notification.read_at = utcnow()
    await db.commit()
    await db.refresh(notification)
    return Committed(notification)


@returns_outcome
async def mark_all_read(db: AsyncSession, actor: Actor) -> Committed[int]:
    """Bulk variant of mark_read; the entity is the number of rows newly marked."""
    result = await db.execute(
        update(Notification)
        .where(
            Notification.recipient_user_id == actor.user_id,
            Notification.is_read.is_(False),
        )
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    count = result.rowcount or 0
    return Committed(count, changed=count > 0)


@returns_outcome
async def delete_notification(db: AsyncSession, notification_id: UUID, actor: Actor) -> Committed[UUID]:
    """Permanent, recipient-scoped deletion."""
    notification = await _owned_notification(db, notification_id, actor)
    await db.delete(notification)
    await db.commit()
    logger.info(f"Notification {notification_id} deleted by {actor.user_id}")
    return Committed(notification_id)
