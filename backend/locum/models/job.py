from enum import Enum
import uuid

from sqlalchemy import Column, String, Text, DateTime, Numeric, ForeignKey, Index
from sqlalchemy.orm import relationship

from locum.database import Base
from locum.database_types import GUID, utcnow


class JobStatus(str, Enum):
    """Valid states for a posted shift"""
    OPEN = "OPEN"
    FILLED = "FILLED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class JobUrgency(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class PayBasis(str, Enum):
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class Job(Base):
    __tablename__ = "jobs"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    facility_id = Column(GUID, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False, index=True)
    
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    urgency = Column(String, nullable=False, default=JobUrgency.MEDIUM.value)
    
    # Schedule window
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    
    # Compensation terms
    pay_rate = Column(Numeric(10, 2), nullable=True)
    pay_basis = Column(String, nullable=False, default=PayBasis.HOURLY.value)
    
    # State machine
    status = Column(String, nullable=False, default=JobStatus.OPEN.value)
    
    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
    closed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    
    facility = relationship("Facility", lazy="joined")
    
    __table_args__ = (
        Index('idx_jobs_facility_status', 'facility_id', 'status'),
    )
