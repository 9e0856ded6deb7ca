"""
Facility staff invitations.

OWNER and ADMIN staff invite by email. The invitee answers with the raw
token; accepting provisions (or re-activates) their FacilityStaff role.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from locum.config import settings
from locum.database_types import utcnow
from locum.models.facility import Facility, FacilityStaff, StaffRole, INVITING_ROLES
from locum.models.staff_invitation import StaffInvitation, InvitationStatus
from locum.models.user import User
from locum.services.authorization import Actor, require_facility_staff, require_invitee
from locum.services.concurrency import conditional_update, returns_outcome
from locum.services.errors import (
    Committed,
    InvalidOrExpired,
    NotFound,
    SideEffect,
    StaleState,
    ValidationFailed,
)
from locum.services.notifications import (
    NotificationDispatcher,
    Recipient,
    TransitionRecord,
    notification_dispatcher,
    notify_effects,
)
from locum.services.state_machine import EntityKind, InvitationEvent, resolve_target
from locum.services.tokens import (
    INVALID_INVITATION_MESSAGE,
    find_by_token,
    is_live,
    issue_token,
)

logger = logging.getLogger(__name__)

RESPONSE_EVENTS = (InvitationEvent.ACCEPT, InvitationEvent.DECLINE)


@dataclass
class IssuedInvitation:
    """The raw token is only ever available here, at issue time."""
    token: str
    invitation: StaffInvitation


def normalize_email(email: str) -> str:
    try:
        return validate_email((email or "").strip(), check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        raise ValidationFailed(f"Invalid email address: {e}", field="invitee_email")


def _invitable_role(role: str) -> str:
    try:
        role = StaffRole(role)
    except ValueError:
        raise ValidationFailed(f"Unknown staff role {role}", field="role")
    if role == StaffRole.OWNER:
        raise ValidationFailed("Ownership cannot be granted by invitation", field="role")
    return role.value


def _invitation_record(
    invitation: StaffInvitation,
    from_state: Optional[str],
    to_state: str,
    recipients: dict,
    **context,
) -> TransitionRecord:
    return TransitionRecord(
        kind=EntityKind.INVITATION,
        entity_id=invitation.id,
        from_state=from_state,
        to_state=to_state,
        recipients=recipients,
        context={"facility_name": invitation.facility.name, "role": invitation.role, **context},
        references={"invitation_id": invitation.id},
        metadata={"facility_id": str(invitation.facility_id), "role": invitation.role},
    )


@returns_outcome
async def issue_invitation(
    db: AsyncSession,
    actor: Actor,
    facility_id: UUID,
    invitee_email: str,
    role: str,
    now: Optional[datetime] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Committed[IssuedInvitation]:
    """
    Invite someone to join a facility's staff.

    Args:
        db: Database session
        actor: OWNER or ADMIN of the facility
        facility_id: Facility the invitee would join
        invitee_email: Address the invitation is bound to
        role: ADMIN or STAFF
        now: Clock override
        dispatcher: Notification dispatcher override

    Returns:
        Committed(IssuedInvitation) carrying the raw token, or Rejected
    """
    dispatcher = dispatcher or notification_dispatcher
    now = now or utcnow()

    facility = await db.get(Facility, facility_id)
    if facility is None:
        raise NotFound(f"Facility {facility_id} not found")
    await require_facility_staff(db, actor, facility_id, roles=INVITING_ROLES)

    email = normalize_email(invitee_email)
    role = _invitable_role(role)

    member = await db.execute(
        select(FacilityStaff.id)
        .join(User, User.id == FacilityStaff.user_id)
        .where(
            FacilityStaff.facility_id == facility_id,
            FacilityStaff.is_active.is_(True),
            func.lower(User.email) == email,
        )
    )
    if member.scalar_one_or_none() is not None:
        raise ValidationFailed("This user is already a member of the facility", field="invitee_email")

    pending = await db.execute(
        select(StaffInvitation.id).where(
            StaffInvitation.facility_id == facility_id,
            StaffInvitation.invitee_email == email,
            StaffInvitation.status == InvitationStatus.PENDING.value,
            StaffInvitation.expires_at > now,
        )
    )
    if pending.scalars().first() is not None:
        raise ValidationFailed("An invitation is already pending for this email", field="invitee_email")

    token, token_hash = issue_token()
    invitation = StaffInvitation(
        facility_id=facility_id,
        invitee_email=email,
        role=role,
        token_hash=token_hash,
        status=InvitationStatus.PENDING.value,
        invited_by_user_id=actor.user_id,
        created_at=now,
        expires_at=now + timedelta(hours=settings.invitation_ttl_hours),
    )
    db.add(invitation)
    await db.flush()
    invitation.facility = facility

    # Only people who already have an account get an in-app notification
    invitee = (await db.execute(
        select(User).where(func.lower(User.email) == email)
    )).scalar_one_or_none()
    notifications = []
    if invitee is not None:
        inviter = await db.get(User, actor.user_id)
        notifications = dispatcher.record(db, _invitation_record(
            invitation,
            None,
            InvitationStatus.PENDING.value,
            {Recipient.INVITEE: invitee.id},
            inviter_name=inviter.display_name if inviter else facility.name,
            token=token,
        ))

    await db.commit()
    await db.refresh(invitation)

    logger.info(
        f"Invitation {invitation.id} issued for facility {facility_id} as {role}",
        extra={
            "invitation_id": str(invitation.id),
            "facility_id": str(facility_id),
            "actor": str(actor.user_id),
            "expires_at": invitation.expires_at.isoformat(),
        },
    )

    await dispatcher.deliver(db, notifications)
    return Committed(IssuedInvitation(token, invitation), side_effects=notify_effects(notifications))


async def _expire(db: AsyncSession, invitation: StaffInvitation, now: datetime) -> None:
    """Record that a PENDING invitation ran out; commits on its own."""
    try:
        await conditional_update(
            db,
            StaffInvitation,
            invitation.id,
            InvitationStatus.PENDING.value,
            {"status": InvitationStatus.EXPIRED.value},
        )
    except StaleState:
        # Someone else already moved it; nothing to record
        await db.rollback()
        return
    await db.commit()
    logger.info(
        f"Invitation {invitation.id} expired at {invitation.expires_at}",
        extra={"invitation_id": str(invitation.id), "from_state": InvitationStatus.PENDING.value,
               "to_state": InvitationStatus.EXPIRED.value},
    )


async def _staff_row(db: AsyncSession, facility_id: UUID, user_id: UUID) -> Optional[FacilityStaff]:
    result = await db.execute(
        select(FacilityStaff).where(
            FacilityStaff.facility_id == facility_id,
            FacilityStaff.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def _provision_staff_role(db: AsyncSession, invitation: StaffInvitation, user_id: UUID) -> Optional[SideEffect]:
    """Give the invitee an active role unless they already hold one."""
    staff = await _staff_row(db, invitation.facility_id, user_id)

    if staff is None:
        staff = FacilityStaff(
            facility_id=invitation.facility_id,
            user_id=user_id,
            role=invitation.role,
            is_active=True,
        )
        db.add(staff)
    elif not staff.is_active:
        staff.is_active = True
        staff.role = invitation.role
    else:
        return None

    try:
        await db.flush()
    except IntegrityError:
        # Another accept for the same user and facility committed first
        await db.rollback()
        raise ValidationFailed("You are already a member of this facility", field="token")
    return SideEffect("provision_staff_role", staff.id, invitation.role)


@returns_outcome
async def respond_to_invitation(
    db: AsyncSession,
    token: str,
    actor: Actor,
    decision: InvitationEvent,
    now: Optional[datetime] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Committed[StaffInvitation]:
    """
    Accept or decline an invitation by raw token.

    Unknown, consumed and expired tokens all produce the same
    InvalidOrExpired outcome.
    """
    dispatcher = dispatcher or notification_dispatcher
    now = now or utcnow()

    try:
        decision = InvitationEvent(decision)
    except ValueError:
        decision = None
    if decision not in RESPONSE_EVENTS:
        raise ValidationFailed("Decision must be accept or decline", field="decision")

    invitation = await find_by_token(db, token)
    if invitation is None:
        raise InvalidOrExpired(INVALID_INVITATION_MESSAGE)

    if invitation.status == InvitationStatus.PENDING.value and now >= invitation.expires_at:
        await _expire(db, invitation, now)
        raise InvalidOrExpired(INVALID_INVITATION_MESSAGE)
    if not is_live(invitation, now):
        raise InvalidOrExpired(INVALID_INVITATION_MESSAGE)

    require_invitee(actor, invitation)

    observed = invitation.status
    target = resolve_target(EntityKind.INVITATION, decision, observed)
    try:
        await conditional_update(
            db,
            StaffInvitation,
            invitation.id,
            observed,
            {"status": target, "responded_at": now},
            extra_conditions=[StaffInvitation.expires_at > now],
        )
    except StaleState:
        raise InvalidOrExpired(INVALID_INVITATION_MESSAGE)

    side_effects: List[SideEffect] = []
    if decision == InvitationEvent.ACCEPT:
        provisioned = await _provision_staff_role(db, invitation, actor.user_id)
        if provisioned is not None:
            side_effects.append(provisioned)

    invitee = await db.get(User, actor.user_id)
    notifications = dispatcher.record(db, _invitation_record(
        invitation,
        observed,
        target,
        {Recipient.FACILITY_OWNER: invitation.facility.owner_user_id},
        staff_name=invitee.display_name if invitee else invitation.invitee_email,
    ))

    await db.commit()
    await db.refresh(invitation)

    logger.info(
        f"Invitation state transition: {observed} → {target}",
        extra={
            "invitation_id": str(invitation.id),
            "from_state": observed,
            "to_state": target,
            "event": decision.value,
            "actor": str(actor.user_id),
        },
    )

    await dispatcher.deliver(db, notifications)
    return Committed(invitation, side_effects=side_effects + notify_effects(notifications))


@returns_outcome
async def get_invitation_by_token(
    db: AsyncSession,
    token: str,
    now: Optional[datetime] = None,
) -> Committed[StaffInvitation]:
    """Preview a live invitation (read-only, ``changed`` is always False)."""
    invitation = await find_by_token(db, token)
    if invitation is None or not is_live(invitation, now):
        raise InvalidOrExpired(INVALID_INVITATION_MESSAGE)
    return Committed(invitation, changed=False)
