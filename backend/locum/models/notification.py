from enum import Enum
import uuid

from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index

from locum.database import Base
from locum.database_types import GUID, JSONDocument, utcnow


class NotificationType(str, Enum):
    """Closed set of business events a notification can report"""
    JOB_APPLICATION_RECEIVED = "JOB_APPLICATION_RECEIVED"
    JOB_APPLICATION_APPROVED = "JOB_APPLICATION_APPROVED"
    JOB_APPLICATION_CONFIRMED = "JOB_APPLICATION_CONFIRMED"
    JOB_APPLICATION_REJECTED = "JOB_APPLICATION_REJECTED"
    JOB_APPLICATION_CANCELLED = "JOB_APPLICATION_CANCELLED"
    JOB_APPLICATION_COMPLETED = "JOB_APPLICATION_COMPLETED"
    VERIFICATION_APPROVED = "VERIFICATION_APPROVED"
    VERIFICATION_REJECTED = "VERIFICATION_REJECTED"
    FACILITY_VERIFICATION_APPROVED = "FACILITY_VERIFICATION_APPROVED"
    FACILITY_VERIFICATION_REJECTED = "FACILITY_VERIFICATION_REJECTED"
    STAFF_INVITATION_RECEIVED = "STAFF_INVITATION_RECEIVED"
    STAFF_INVITATION_ACCEPTED = "STAFF_INVITATION_ACCEPTED"
    STAFF_INVITATION_REJECTED = "STAFF_INVITATION_REJECTED"


class Notification(Base):
    __tablename__ = "notifications"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    recipient_user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    
    type = Column(String, nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    action_url = Column(String(500), nullable=True)
    
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSONDocument, nullable=True)
    
    # Triggering entity; cleared when it is deleted
    job_id = Column(GUID, ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True)
    job_application_id = Column(GUID, ForeignKey("job_applications.id", ondelete="SET NULL"), nullable=True)
    verification_id = Column(GUID, ForeignKey("verifications.id", ondelete="SET NULL"), nullable=True)
    staff_invitation_id = Column(GUID, ForeignKey("staff_invitations.id", ondelete="SET NULL"), nullable=True)
    
    created_at = Column(DateTime, default=utcnow, nullable=False)
    
    __table_args__ = (
        # Inbox listing: newest first per recipient, unread filter
        Index('idx_notifications_inbox', 'recipient_user_id', 'is_read', 'created_at'),
    )
