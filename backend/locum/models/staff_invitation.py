from enum import Enum
import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from locum.database import Base
from locum.database_types import GUID, utcnow


class InvitationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"


class StaffInvitation(Base):
    __tablename__ = "staff_invitations"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    facility_id = Column(GUID, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False, index=True)
    invitee_email = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False)
    
    # SHA-256 of the single-use token; the raw token is only handed out at issue time
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    
    status = Column(String, nullable=False, default=InvitationStatus.PENDING.value)
    
    invited_by_user_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    
    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    responded_at = Column(DateTime, nullable=True)
    
    facility = relationship("Facility", lazy="joined")
    
    __table_args__ = (
        Index('idx_invitation_facility_email', 'facility_id', 'invitee_email'),
    )
