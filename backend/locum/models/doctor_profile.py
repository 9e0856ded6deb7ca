import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from locum.database import Base
from locum.database_types import GUID, utcnow


class DoctorProfile(Base):
    """Doctor identity referenced by applications and doctor verifications."""
    __tablename__ = "doctor_profiles"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    specialty = Column(String(255), nullable=True)
    registration_number = Column(String(100), nullable=True)  # Medical council registration
    created_at = Column(DateTime, default=utcnow, nullable=False)
    
    user = relationship("User", lazy="joined")
