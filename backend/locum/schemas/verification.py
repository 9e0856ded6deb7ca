"""Verification schemas."""
from datetime import datetime
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from locum.models.verification import SubjectKind


class VerificationSubmit(BaseModel):
    subject_kind: SubjectKind
    subject_id: UUID
    fields: Dict[str, Any]
    document_urls: list[str] = Field(default_factory=list)  # Opaque object-storage URLs


class VerificationReview(BaseModel):
    decision: Literal["approve", "reject"]
    reason: Optional[str] = None


class VerificationResponse(BaseModel):
    id: UUID
    subject_kind: str
    subject_id: UUID
    fields: Dict[str, Any]
    document_urls: list[str]
    status: str
    rejection_reason: Optional[str] = None
    submitted_at: datetime
    reviewed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
