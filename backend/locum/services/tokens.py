"""
Invitation token service.

Tokens are random, single-use and bound to one invitation. Only their
SHA-256 digest is persisted, so a database leak does not leak live tokens.
Every failed lookup produces the same InvalidOrExpired outcome: callers
cannot tell an unknown token from an expired or already-used one.
"""
import hashlib
import secrets
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from locum.database_types import utcnow
from locum.models.staff_invitation import StaffInvitation, InvitationStatus
from locum.services.errors import InvalidOrExpired

TOKEN_BYTES = 32
INVALID_INVITATION_MESSAGE = "This invitation is invalid or has expired"


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_token() -> Tuple[str, str]:
    """Return (raw_token, token_hash). Hand the raw token out once, store the hash."""
    token = secrets.token_urlsafe(TOKEN_BYTES)
    return token, hash_token(token)


def is_live(invitation: StaffInvitation, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return invitation.status == InvitationStatus.PENDING.value and now < invitation.expires_at


async def find_by_token(db: AsyncSession, token: str) -> Optional[StaffInvitation]:
    """Invitation matching a raw token regardless of its state."""
    if not token:
        return None
    result = await db.execute(
        select(StaffInvitation).where(StaffInvitation.token_hash == hash_token(token))
    )
    return result.scalar_one_or_none()


async def resolve_invitation(
    db: AsyncSession,
    token: str,
    now: Optional[datetime] = None,
) -> StaffInvitation:
    """
    Look up a live invitation by raw token.
    
    Raises:
        InvalidOrExpired: token unknown, expired, or already consumed
    """
    invitation = await find_by_token(db, token)
    
    if invitation is None or not is_live(invitation, now):
        raise InvalidOrExpired(INVALID_INVITATION_MESSAGE)
    return invitation
