from enum import Enum
import uuid

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, UniqueConstraint

from locum.database import Base
from locum.database_types import GUID, JSONDocument, utcnow


class SubjectKind(str, Enum):
    """Who a verification is about"""
    DOCTOR = "DOCTOR"  # subject_id is a DoctorProfile id
    FACILITY = "FACILITY"  # subject_id is a Facility id


class VerificationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Verification(Base):
    __tablename__ = "verifications"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    subject_kind = Column(String, nullable=False)
    subject_id = Column(GUID, nullable=False, index=True)
    
    # Submitted credentials; document URLs point at object storage and are never dereferenced
    fields = Column(JSONDocument, nullable=False, default=dict)
    document_urls = Column(JSONDocument, nullable=False, default=list)
    
    status = Column(String, nullable=False, default=VerificationStatus.PENDING.value)
    rejection_reason = Column(Text, nullable=True)
    
    submitted_at = Column(DateTime, default=utcnow, nullable=False)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by_user_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    
    __table_args__ = (
        UniqueConstraint('subject_kind', 'subject_id', name='uq_verification_subject'),
    )
