from enum import Enum
import uuid

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from locum.database import Base
from locum.database_types import GUID, utcnow


class ApplicationStatus(str, Enum):
    """Valid states for a doctor's application to a job"""
    PENDING = "PENDING"
    EMPLOYER_APPROVED = "EMPLOYER_APPROVED"
    DOCTOR_CONFIRMED = "DOCTOR_CONFIRMED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"

    @classmethod
    def _missing_(cls, value):
        # Legacy rows and clients still send ACCEPTED for an employer approval
        if isinstance(value, str) and value.upper() == "ACCEPTED":
            return cls.EMPLOYER_APPROVED
        return None


TERMINAL_APPLICATION_STATES = frozenset({
    ApplicationStatus.REJECTED,
    ApplicationStatus.CANCELLED,
    ApplicationStatus.COMPLETED,
})


class JobApplication(Base):
    __tablename__ = "job_applications"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    job_id = Column(GUID, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_profile_id = Column(GUID, ForeignKey("doctor_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    
    # State machine
    status = Column(String, nullable=False, default=ApplicationStatus.PENDING.value)
    
    cover_letter = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    
    # Timestamps
    applied_at = Column(DateTime, default=utcnow, nullable=False)
    reviewed_at = Column(DateTime, nullable=True)
    employer_approved_at = Column(DateTime, nullable=True)  # Starts the confirmation window
    confirmed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
    
    job = relationship("Job", lazy="joined")
    doctor_profile = relationship("DoctorProfile", lazy="joined")
    
    __table_args__ = (
        # A doctor applies to a job once
        UniqueConstraint('job_id', 'doctor_profile_id', name='uq_application_job_doctor'),
        Index('idx_applications_job_status', 'job_id', 'status'),
    )
