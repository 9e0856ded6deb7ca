"""Maps core outcomes onto HTTP responses."""
from fastapi import HTTPException

from locum.services.errors import Committed, Rejected, RejectionCode

REJECTION_STATUS = {
    RejectionCode.UNAUTHORIZED: 403,
    RejectionCode.NOT_FOUND: 404,
    RejectionCode.STALE_STATE: 409,
    RejectionCode.HAS_DEPENDENTS: 409,
    RejectionCode.VALIDATION_FAILED: 422,
    RejectionCode.EXPIRED: 410,
    RejectionCode.INVALID_OR_EXPIRED: 410,
}


def rejection_detail(rejection: Rejected) -> dict:
    detail = {"code": rejection.code.value, "message": rejection.message}
    if rejection.current_state is not None:
        detail["current_state"] = rejection.current_state
    if rejection.field is not None:
        detail["field"] = rejection.field
    return detail


def unwrap(outcome) -> Committed:
    """Return a Committed outcome or raise the matching HTTPException."""
    if isinstance(outcome, Rejected):
        raise HTTPException(
            status_code=REJECTION_STATUS.get(outcome.code, 400),
            detail=rejection_detail(outcome),
        )
    return outcome
