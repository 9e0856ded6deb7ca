import enum
import uuid

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from locum.database import Base
from locum.database_types import GUID, utcnow


class StaffRole(str, enum.Enum):
    """Role a user holds inside one facility."""
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    STAFF = "STAFF"


# Roles allowed to invite new staff members
INVITING_ROLES = (StaffRole.OWNER.value, StaffRole.ADMIN.value)


class Facility(Base):
    __tablename__ = "facilities"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    owner_user_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    address = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    
    owner = relationship("User", lazy="joined")


class FacilityStaff(Base):
    __tablename__ = "facility_staff"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    facility_id = Column(GUID, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False, default=StaffRole.STAFF.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    
    __table_args__ = (
        # One role row per user per facility; racing invitation accepts collide here
        UniqueConstraint('facility_id', 'user_id', name='uq_facility_staff_user'),
    )
