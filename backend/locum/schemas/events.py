"""
Transition request payloads.

Each event is its own model; the ``event`` field discriminates the union so
a payload can only carry the fields its event understands.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from locum.services.state_machine import ApplicationEvent, JobEvent


class ApproveApplication(BaseModel):
    event: Literal["approve"]


class RejectApplication(BaseModel):
    event: Literal["reject"]
    reason: Optional[str] = None


class ConfirmApplication(BaseModel):
    event: Literal["confirm"]


class CancelApplication(BaseModel):
    event: Literal["cancel"]
    reason: Optional[str] = None  # Required once the booking is confirmed


class CompleteApplication(BaseModel):
    """Accepted so it can be refused: completion only comes from the job."""
    event: Literal["complete"]


ApplicationEventRequest = Annotated[
    Union[ApproveApplication, RejectApplication, ConfirmApplication, CancelApplication, CompleteApplication],
    Field(discriminator="event"),
]


def application_command(request) -> tuple:
    """(ApplicationEvent, reason) for a parsed application event payload."""
    return ApplicationEvent(request.event), getattr(request, "reason", None)


class JobEventRequest(BaseModel):
    event: Literal["close", "reopen", "fill", "complete", "cancel", "delete"]

    @property
    def command(self) -> JobEvent:
        return JobEvent(self.event)
