"""
Transition tables for every lifecycle entity.
ALL status changes are validated against this module.

Each entity kind maps events to the states they may start from and the
state they produce. Actor guards live in ``authorization``; conditional
commits in ``concurrency``; the per-kind services combine the three.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from locum.models.job import JobStatus
from locum.models.job_application import ApplicationStatus
from locum.models.verification import VerificationStatus
from locum.models.staff_invitation import InvitationStatus
from locum.services.errors import StaleState

logger = logging.getLogger(__name__)


class EntityKind(str, Enum):
    JOB = "JOB"
    APPLICATION = "APPLICATION"
    VERIFICATION = "VERIFICATION"
    INVITATION = "INVITATION"


class ApplicationEvent(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    COMPLETE = "complete"  # Only reachable through job completion
    LAPSE = "lapse"  # Confirmation window ran out


class JobEvent(str, Enum):
    CLOSE = "close"
    REOPEN = "reopen"
    FILL = "fill"
    COMPLETE = "complete"
    CANCEL = "cancel"
    DELETE = "delete"


class VerificationEvent(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    RESUBMIT = "resubmit"


class InvitationEvent(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    EXPIRE = "expire"


@dataclass(frozen=True)
class Transition:
    sources: FrozenSet[str]
    target: Optional[str]  # None removes the entity


def _t(sources, target) -> Transition:
    return Transition(
        sources=frozenset(s.value for s in sources),
        target=target.value if target is not None else None,
    )


APPLICATION_TRANSITIONS: Dict[ApplicationEvent, Transition] = {
    ApplicationEvent.APPROVE: _t([ApplicationStatus.PENDING], ApplicationStatus.EMPLOYER_APPROVED),
    ApplicationEvent.REJECT: _t([ApplicationStatus.PENDING], ApplicationStatus.REJECTED),
    ApplicationEvent.CONFIRM: _t([ApplicationStatus.EMPLOYER_APPROVED], ApplicationStatus.DOCTOR_CONFIRMED),
    ApplicationEvent.CANCEL: _t([ApplicationStatus.PENDING, ApplicationStatus.EMPLOYER_APPROVED, ApplicationStatus.DOCTOR_CONFIRMED], ApplicationStatus.CANCELLED),
    ApplicationEvent.COMPLETE: _t([ApplicationStatus.DOCTOR_CONFIRMED], ApplicationStatus.COMPLETED),
    ApplicationEvent.LAPSE: _t([ApplicationStatus.EMPLOYER_APPROVED], ApplicationStatus.REJECTED),
}

JOB_TRANSITIONS: Dict[JobEvent, Transition] = {
    JobEvent.CLOSE: _t([JobStatus.OPEN, JobStatus.FILLED], JobStatus.CLOSED),
    JobEvent.REOPEN: _t([JobStatus.CLOSED, JobStatus.FILLED], JobStatus.OPEN),
    JobEvent.FILL: _t([JobStatus.OPEN], JobStatus.FILLED),
    JobEvent.COMPLETE: _t([JobStatus.OPEN, JobStatus.CLOSED, JobStatus.FILLED], JobStatus.COMPLETED),
    JobEvent.CANCEL: _t([JobStatus.OPEN, JobStatus.CLOSED, JobStatus.FILLED], JobStatus.CANCELLED),
    JobEvent.DELETE: _t(list(JobStatus), None),
}

VERIFICATION_TRANSITIONS: Dict[VerificationEvent, Transition] = {
    VerificationEvent.APPROVE: _t([VerificationStatus.PENDING], VerificationStatus.APPROVED),
    VerificationEvent.REJECT: _t([VerificationStatus.PENDING], VerificationStatus.REJECTED),
    VerificationEvent.RESUBMIT: _t([VerificationStatus.REJECTED], VerificationStatus.PENDING),  # The appeal edge
}

INVITATION_TRANSITIONS: Dict[InvitationEvent, Transition] = {
    InvitationEvent.ACCEPT: _t([InvitationStatus.PENDING], InvitationStatus.ACCEPTED),
    InvitationEvent.DECLINE: _t([InvitationStatus.PENDING], InvitationStatus.DECLINED),
    InvitationEvent.EXPIRE: _t([InvitationStatus.PENDING], InvitationStatus.EXPIRED),
}

TRANSITIONS = {
    EntityKind.APPLICATION: APPLICATION_TRANSITIONS,
    EntityKind.JOB: JOB_TRANSITIONS,
    EntityKind.VERIFICATION: VERIFICATION_TRANSITIONS,
    EntityKind.INVITATION: INVITATION_TRANSITIONS,
}


def _terminal_states(table: Dict[Enum, Transition], states) -> FrozenSet[str]:
    """States that are not the source of any status-changing transition."""
    sources = set()
    for transition in table.values():
        if transition.target is not None:
            sources |= transition.sources
    return frozenset(s.value for s in states if s.value not in sources)


TERMINAL_STATES = {
    EntityKind.APPLICATION: _terminal_states(APPLICATION_TRANSITIONS, ApplicationStatus),
    EntityKind.JOB: _terminal_states(JOB_TRANSITIONS, JobStatus),
    EntityKind.VERIFICATION: _terminal_states(VERIFICATION_TRANSITIONS, VerificationStatus),
    EntityKind.INVITATION: _terminal_states(INVITATION_TRANSITIONS, InvitationStatus),
}


def canonical_state(kind: EntityKind, state: str) -> str:
    """Normalise legacy spellings (ACCEPTED) to the canonical state value."""
    if kind == EntityKind.APPLICATION:
        return ApplicationStatus(state).value
    return state


def is_terminal(kind: EntityKind, state: str) -> bool:
    return canonical_state(kind, state) in TERMINAL_STATES[kind]


def resolve_target(kind: EntityKind, event: Enum, current_state: str) -> Optional[str]:
    """
    Return the state ``event`` leads to from ``current_state``.
    
    Raises:
        StaleState: the event does not apply to the current state; carries
            the current state so callers can reconcile
    """
    current = canonical_state(kind, current_state)
    transition = TRANSITIONS[kind].get(event)
    
    if transition is None or current not in transition.sources:
        if current in TERMINAL_STATES[kind]:
            message = f"{kind.value.title()} is {current} and accepts no further changes"
        else:
            message = f"Cannot {event.value} {kind.value.lower()} in state {current}"
        logger.info(
            f"{kind.value.title()} transition refused: {event.value} from {current}",
            extra={"entity_kind": kind.value, "event": event.value, "current_state": current},
        )
        raise StaleState(message, current_state=current)
    
    return transition.target


def can_transition(kind: EntityKind, from_state: str, to_state: str) -> bool:
    """Check if any event moves ``kind`` from one state to another"""
    from_state = canonical_state(kind, from_state)
    return any(
        from_state in t.sources and t.target == to_state
        for t in TRANSITIONS[kind].values()
    )
