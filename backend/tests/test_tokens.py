"""
Tests for the invitation token service.
"""
from datetime import timedelta

import pytest

from locum.database_types import utcnow
from locum.models import InvitationStatus, StaffRole
from locum.models.staff_invitation import StaffInvitation
from locum.services.errors import InvalidOrExpired
from locum.services.tokens import (
    INVALID_INVITATION_MESSAGE,
    hash_token,
    is_live,
    issue_token,
    resolve_invitation,
)


async def stored_invitation(db, facility, owner_user, status=InvitationStatus.PENDING, expires_in=timedelta(days=7)):
    token, token_hash = issue_token()
    now = utcnow()
    invitation = StaffInvitation(
        facility_id=facility.id,
        invitee_email="locum.nurse@mail.com",
        role=StaffRole.STAFF.value,
        token_hash=token_hash,
        status=status.value,
        invited_by_user_id=owner_user.id,
        created_at=now,
        expires_at=now + expires_in,
    )
    db.add(invitation)
    await db.commit()
    return token, invitation


def test_hash_is_deterministic_sha256():
    assert hash_token("abc") == hash_token("abc")
    assert hash_token("abc") != hash_token("abd")
    assert len(hash_token("abc")) == 64


def test_issued_tokens_are_unique():
    tokens = {issue_token()[0] for _ in range(50)}

    assert len(tokens) == 50


def test_issue_returns_matching_hash():
    token, token_hash = issue_token()

    assert token_hash == hash_token(token)
    assert token not in token_hash


@pytest.mark.asyncio
async def test_resolve_live_invitation(db, facility, owner_user):
    token, invitation = await stored_invitation(db, facility, owner_user)

    resolved = await resolve_invitation(db, token)

    assert resolved.id == invitation.id
    assert is_live(resolved)


@pytest.mark.asyncio
@pytest.mark.parametrize("status,expires_in", [
    (InvitationStatus.PENDING, timedelta(minutes=-1)),
    (InvitationStatus.ACCEPTED, timedelta(days=7)),
    (InvitationStatus.DECLINED, timedelta(days=7)),
    (InvitationStatus.EXPIRED, timedelta(days=7)),
])
async def test_dead_invitations_look_unknown(db, facility, owner_user, status, expires_in):
    token, _ = await stored_invitation(db, facility, owner_user, status, expires_in)

    with pytest.raises(InvalidOrExpired) as dead:
        await resolve_invitation(db, token)
    with pytest.raises(InvalidOrExpired) as unknown:
        await resolve_invitation(db, "never-issued")

    assert dead.value.message == unknown.value.message == INVALID_INVITATION_MESSAGE


@pytest.mark.asyncio
async def test_empty_token(db):
    with pytest.raises(InvalidOrExpired):
        await resolve_invitation(db, "")


@pytest.mark.asyncio
async def test_liveness_uses_supplied_clock(db, facility, owner_user):
    token, invitation = await stored_invitation(db, facility, owner_user)

    assert is_live(invitation, now=utcnow() + timedelta(days=6))
    assert not is_live(invitation, now=utcnow() + timedelta(days=8))
