"""Job-related Pydantic schemas."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from locum.models.job import JobUrgency, PayBasis


class JobBase(BaseModel):
    """Fields a facility supplies when posting a shift."""
    title: str
    description: Optional[str] = None
    urgency: JobUrgency = JobUrgency.MEDIUM
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    pay_rate: Optional[Decimal] = None
    pay_basis: PayBasis = PayBasis.HOURLY


class JobCreate(JobBase):
    facility_id: UUID


class JobResponse(JobBase):
    id: UUID
    facility_id: UUID
    status: str
    created_at: datetime
    updated_at: datetime
    closed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
