"""
Authorization guard.

Decides whether an actor may trigger an event on an entity. Guards raise
Unauthorized; they never inspect or change entity state.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from locum.models.user import User, UserRole
from locum.models.doctor_profile import DoctorProfile
from locum.models.facility import Facility, FacilityStaff
from locum.models.job_application import JobApplication
from locum.models.verification import Verification, SubjectKind
from locum.models.staff_invitation import StaffInvitation
from locum.services.errors import Unauthorized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as resolved by the session layer."""
    user_id: UUID
    role: UserRole
    email: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(user_id=user.id, role=user.role, email=user.email)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


async def active_staff_role(
    db: AsyncSession,
    facility_id: UUID,
    user_id: UUID,
) -> Optional[FacilityStaff]:
    """Return the actor's active staff row for a facility, if any."""
    result = await db.execute(
        select(FacilityStaff).where(
            FacilityStaff.facility_id == facility_id,
            FacilityStaff.user_id == user_id,
            FacilityStaff.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def require_facility_staff(
    db: AsyncSession,
    actor: Actor,
    facility_id: UUID,
    roles: Optional[Iterable[str]] = None,
) -> FacilityStaff:
    """Actor must hold an active role at the facility (optionally one of ``roles``)."""
    staff = await active_staff_role(db, facility_id, actor.user_id)
    if staff is None or (roles is not None and staff.role not in roles):
        logger.warning(
            f"User {actor.user_id} denied facility action on {facility_id}",
            extra={"user_id": str(actor.user_id), "facility_id": str(facility_id)},
        )
        raise Unauthorized("You are not an active staff member of this facility")
    return staff


async def doctor_profile_for(db: AsyncSession, actor: Actor) -> Optional[DoctorProfile]:
    result = await db.execute(
        select(DoctorProfile).where(DoctorProfile.user_id == actor.user_id)
    )
    return result.scalar_one_or_none()


async def require_doctor(db: AsyncSession, actor: Actor) -> DoctorProfile:
    profile = await doctor_profile_for(db, actor)
    if profile is None:
        raise Unauthorized("A doctor profile is required for this action")
    return profile


def require_applicant(actor: Actor, application: JobApplication) -> None:
    """Actor must be the doctor who submitted the application."""
    if application.doctor_profile is None or application.doctor_profile.user_id != actor.user_id:
        raise Unauthorized("Only the applicant can perform this action")


def require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        logger.warning(
            f"User {actor.user_id} (role={actor.role.value}) attempted an admin-only transition"
        )
        raise Unauthorized("Admin access required")


async def require_verification_subject(
    db: AsyncSession,
    actor: Actor,
    subject_kind: SubjectKind,
    subject_id: UUID,
) -> None:
    """
    Doctor verifications belong to the profile's user; facility
    verifications to the facility owner.
    """
    if subject_kind == SubjectKind.DOCTOR:
        profile = await db.get(DoctorProfile, subject_id)
        if profile is not None and profile.user_id == actor.user_id:
            return
    else:
        facility = await db.get(Facility, subject_id)
        if facility is not None and facility.owner_user_id == actor.user_id:
            return
    raise Unauthorized("Only the verification subject can submit credentials")


def require_invitee(actor: Actor, invitation: StaffInvitation) -> None:
    if not actor.email or actor.email.strip().lower() != invitation.invitee_email.lower():
        raise Unauthorized("This invitation was issued to a different account")
