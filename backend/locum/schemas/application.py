"""Job application schemas."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from locum.models.job_application import ApplicationStatus


class ApplicationCreate(BaseModel):
    job_id: UUID
    cover_letter: Optional[str] = None


class ApplicationResponse(BaseModel):
    id: UUID
    job_id: UUID
    doctor_profile_id: UUID
    status: str
    cover_letter: Optional[str] = None
    cancellation_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    applied_at: datetime
    reviewed_at: Optional[datetime] = None
    employer_approved_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("status", mode="before")
    @classmethod
    def canonical_status(cls, value: str) -> str:
        # Legacy ACCEPTED rows are reported as EMPLOYER_APPROVED
        return ApplicationStatus(value).value
