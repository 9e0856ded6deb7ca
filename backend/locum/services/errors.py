"""
Lifecycle error taxonomy and the typed outcomes returned across the core boundary.

Engine code raises LifecycleError subclasses; every public service operation
converts them into a Rejected value (see ``outcome``) so callers never have
to catch engine exceptions.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar, Union


class RejectionCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    STALE_STATE = "STALE_STATE"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    HAS_DEPENDENTS = "HAS_DEPENDENTS"
    EXPIRED = "EXPIRED"
    INVALID_OR_EXPIRED = "INVALID_OR_EXPIRED"


class LifecycleError(Exception):
    """Base class for every rule violation the engine can report"""
    code: RejectionCode

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_rejection(self) -> "Rejected":
        return Rejected(code=self.code, message=self.message)


class Unauthorized(LifecycleError):
    code = RejectionCode.UNAUTHORIZED


class NotFound(LifecycleError):
    code = RejectionCode.NOT_FOUND


class StaleState(LifecycleError):
    """Requested event does not apply to the persisted state"""
    code = RejectionCode.STALE_STATE

    def __init__(self, message: str, current_state: Optional[str]):
        super().__init__(message)
        self.current_state = current_state

    def to_rejection(self) -> "Rejected":
        return Rejected(code=self.code, message=self.message, current_state=self.current_state)


class CascadeConflict(StaleState):
    """A child record moved while a cascade was being committed"""


class ValidationFailed(LifecycleError):
    code = RejectionCode.VALIDATION_FAILED

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_rejection(self) -> "Rejected":
        return Rejected(code=self.code, message=self.message, field=self.field)


class HasDependents(LifecycleError):
    code = RejectionCode.HAS_DEPENDENTS

    def __init__(self, message: str, dependents: int):
        super().__init__(message)
        self.dependents = dependents


class Expired(LifecycleError):
    code = RejectionCode.EXPIRED


class InvalidOrExpired(LifecycleError):
    code = RejectionCode.INVALID_OR_EXPIRED


class ExternalChannelFailure(Exception):
    """Raised by message channels; never escapes the notification dispatcher"""


T = TypeVar("T")


@dataclass
class SideEffect:
    """Something a committed transition did besides changing its own status."""
    kind: str  # notify | provision_staff_role | cascade_complete | delete_application
    target_id: Any
    detail: Optional[str] = None


@dataclass
class Committed(Generic[T]):
    """Successful outcome carrying the authoritative post-transition entity."""
    entity: T
    side_effects: List[SideEffect] = field(default_factory=list)
    changed: bool = True  # False for an idempotent replay

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    code: RejectionCode
    message: str
    current_state: Optional[str] = None
    field: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False


Outcome = Union[Committed[T], Rejected]
