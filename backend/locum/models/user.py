import enum
import uuid

from sqlalchemy import Column, String, DateTime, Enum as SQLEnum

from locum.database import Base
from locum.database_types import GUID, utcnow


class UserRole(str, enum.Enum):
    """Account role supplied by the session layer."""
    DOCTOR = "DOCTOR"
    EMPLOYER = "EMPLOYER"  # Facility staff (owner, admin or staff member)
    ADMIN = "ADMIN"  # Reviews doctor and facility verifications


class User(Base):
    __tablename__ = "users"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)  # E.164, used by the WhatsApp channel
    
    role = Column(
        SQLEnum(UserRole, name="user_role", create_type=True),
        nullable=False,
        default=UserRole.DOCTOR,
        index=True
    )
    
    created_at = Column(DateTime, default=utcnow, nullable=False)
    
    def is_admin(self) -> bool:
        """Check if user has admin role."""
        return self.role == UserRole.ADMIN
    
    @property
    def display_name(self) -> str:
        return self.full_name or self.email
