"""Database models"""
from locum.models.user import User, UserRole
from locum.models.doctor_profile import DoctorProfile
from locum.models.facility import Facility, FacilityStaff, StaffRole
from locum.models.job import Job, JobStatus, JobUrgency, PayBasis
from locum.models.job_application import (
    JobApplication,
    ApplicationStatus,
    TERMINAL_APPLICATION_STATES,
)
from locum.models.verification import Verification, VerificationStatus, SubjectKind
from locum.models.staff_invitation import StaffInvitation, InvitationStatus
from locum.models.notification import Notification, NotificationType

__all__ = [
    "User",
    "UserRole",
    "DoctorProfile",
    "Facility",
    "FacilityStaff",
    "StaffRole",
    "Job",
    "JobStatus",
    "JobUrgency",
    "PayBasis",
    "JobApplication",
    "ApplicationStatus",
    "TERMINAL_APPLICATION_STATES",
    "Verification",
    "VerificationStatus",
    "SubjectKind",
    "StaffInvitation",
    "InvitationStatus",
    "Notification",
    "NotificationType",
]
