"""
HTTP surface tests.

Validates:
- Cookie authentication and admin gating
- Rejected outcomes map to status codes with a structured detail
- Discriminated event payloads
"""
import uuid

import pytest
from sqlalchemy import select

from conftest import login
from locum.models import Notification


@pytest.mark.asyncio
async def test_health(async_client):
    response = await async_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_requires_auth_cookie(async_client):
    response = await async_client.get("/api/notifications/")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_rejects_malformed_cookie(async_client):
    async_client.cookies.set("auth_token", "not-a-uuid")

    response = await async_client.get("/api/notifications/")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_rejects_unknown_user(async_client):
    async_client.cookies.set("auth_token", str(uuid.uuid4()))

    response = await async_client.get("/api/notifications/unread-count")

    assert response.status_code == 401


# =============================================================================
# Applications
# =============================================================================

@pytest.mark.asyncio
async def test_apply_and_approve_flow(async_client, db, job, verified_doctor, doctor_user, owner_user):
    login(async_client, doctor_user)
    response = await async_client.post("/api/applications/", json={"job_id": str(job.id)})

    assert response.status_code == 201
    application_id = response.json()["id"]
    assert response.json()["status"] == "PENDING"

    login(async_client, owner_user)
    response = await async_client.post(f"/api/applications/{application_id}/events", json={"event": "approve"})

    assert response.status_code == 200
    assert response.json()["status"] == "EMPLOYER_APPROVED"

    # A second reviewer acting on the stale view is told who won
    response = await async_client.post(
        f"/api/applications/{application_id}/events", json={"event": "reject", "reason": "Too late"}
    )

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "STALE_STATE"
    assert detail["current_state"] == "EMPLOYER_APPROVED"


@pytest.mark.asyncio
async def test_apply_twice_is_422(async_client, job, application, doctor_user):
    login(async_client, doctor_user)

    response = await async_client.post("/api/applications/", json={"job_id": str(job.id)})

    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "job_id"


@pytest.mark.asyncio
async def test_outsider_gets_403(async_client, application, outsider_user):
    login(async_client, outsider_user)

    response = await async_client.post(f"/api/applications/{application.id}/events", json={"event": "approve"})

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_cancel_confirmed_without_reason_is_422(async_client, db, application, doctor_user):
    application.status = "DOCTOR_CONFIRMED"
    await db.commit()
    login(async_client, doctor_user)

    response = await async_client.post(f"/api/applications/{application.id}/events", json={"event": "cancel"})

    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "reason"


@pytest.mark.asyncio
async def test_unknown_event_is_a_schema_error(async_client, application, owner_user):
    login(async_client, owner_user)

    response = await async_client.post(f"/api/applications/{application.id}/events", json={"event": "archive"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_application_is_404(async_client, owner_user):
    login(async_client, owner_user)

    response = await async_client.post(f"/api/applications/{uuid.uuid4()}/events", json={"event": "approve"})

    assert response.status_code == 404


# =============================================================================
# Jobs
# =============================================================================

@pytest.mark.asyncio
async def test_create_and_close_job(async_client, facility, owner_user):
    login(async_client, owner_user)
    response = await async_client.post("/api/jobs/", json={
        "facility_id": str(facility.id),
        "title": "Locum GP",
        "urgency": "CRITICAL",
    })

    assert response.status_code == 201
    job_id = response.json()["id"]

    response = await async_client.post(f"/api/jobs/{job_id}/events", json={"event": "close"})

    assert response.status_code == 200
    assert response.json()["status"] == "CLOSED"


@pytest.mark.asyncio
async def test_delete_job_with_active_application_is_409(async_client, job, application, owner_user):
    login(async_client, owner_user)

    response = await async_client.delete(f"/api/jobs/{job.id}")

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "HAS_DEPENDENTS"


@pytest.mark.asyncio
async def test_delete_empty_job_is_204(async_client, job, owner_user):
    login(async_client, owner_user)

    response = await async_client.delete(f"/api/jobs/{job.id}")

    assert response.status_code == 204


# =============================================================================
# Verifications
# =============================================================================

@pytest.mark.asyncio
async def test_review_requires_admin(async_client, doctor_user, doctor_profile):
    login(async_client, doctor_user)
    response = await async_client.post("/api/verifications/", json={
        "subject_kind": "DOCTOR",
        "subject_id": str(doctor_profile.id),
        "fields": {"registration_number": "MDC/RN/1001"},
        "document_urls": [],
    })
    assert response.status_code == 201
    verification_id = response.json()["id"]

    response = await async_client.post(f"/api/verifications/{verification_id}/review", json={"decision": "approve"})

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_rejects_verification(async_client, doctor_user, doctor_profile, admin_user):
    login(async_client, doctor_user)
    response = await async_client.post("/api/verifications/", json={
        "subject_kind": "DOCTOR",
        "subject_id": str(doctor_profile.id),
        "fields": {"registration_number": "MDC/RN/1001"},
        "document_urls": [],
    })
    verification_id = response.json()["id"]

    login(async_client, admin_user)
    response = await async_client.post(
        f"/api/verifications/{verification_id}/review", json={"decision": "reject", "reason": "Expired licence"}
    )

    assert response.status_code == 200
    assert response.json()["status"] == "REJECTED"
    assert response.json()["rejection_reason"] == "Expired licence"


# =============================================================================
# Invitations
# =============================================================================

@pytest.mark.asyncio
async def test_invitation_round_trip(async_client, facility, owner_user, other_doctor_user):
    login(async_client, owner_user)
    response = await async_client.post("/api/invitations/", json={
        "facility_id": str(facility.id),
        "invitee_email": other_doctor_user.email,
        "role": "STAFF",
    })

    assert response.status_code == 201
    token = response.json()["token"]

    response = await async_client.get("/api/invitations/by-token", params={"token": token})
    assert response.status_code == 200
    assert "token" not in response.json()

    login(async_client, other_doctor_user)
    response = await async_client.post("/api/invitations/respond", json={"token": token, "decision": "accept"})

    assert response.status_code == 200
    assert response.json()["status"] == "ACCEPTED"

    response = await async_client.post("/api/invitations/respond", json={"token": token, "decision": "accept"})

    assert response.status_code == 410
    assert response.json()["detail"]["code"] == "INVALID_OR_EXPIRED"


@pytest.mark.asyncio
async def test_unknown_invitation_token_is_410(async_client):
    response = await async_client.get("/api/invitations/by-token", params={"token": "nope"})

    assert response.status_code == 410


# =============================================================================
# Notifications
# =============================================================================

@pytest.mark.asyncio
async def test_notification_inbox(async_client, db, application, owner_user, doctor_user):
    login(async_client, owner_user)
    await async_client.post(f"/api/applications/{application.id}/events", json={"event": "approve"})

    login(async_client, doctor_user)
    response = await async_client.get("/api/notifications/unread-count")
    assert response.json() == {"unread_count": 1}

    response = await async_client.get("/api/notifications/", params={"is_read": "false"})
    [item] = response.json()
    assert item["type"] == "JOB_APPLICATION_APPROVED"
    assert item["job_application_id"] == str(application.id)

    response = await async_client.post(f"/api/notifications/{item['id']}/read")
    assert response.status_code == 200
    assert response.json()["is_read"] is True

    response = await async_client.post("/api/notifications/read-all")
    assert response.json() == {"updated": 0}

    response = await async_client.delete(f"/api/notifications/{item['id']}")
    assert response.status_code == 204

    remaining = (await db.execute(
        select(Notification.id).where(Notification.recipient_user_id == doctor_user.id)
    )).scalars().all()
    assert remaining == []


@pytest.mark.asyncio
async def test_cannot_read_someone_elses_notification(async_client, db, application, owner_user, outsider_user):
    login(async_client, owner_user)
    await async_client.post(f"/api/applications/{application.id}/events", json={"event": "approve"})
    notification_id = (await db.execute(select(Notification.id))).scalar_one()

    login(async_client, outsider_user)
    response = await async_client.post(f"/api/notifications/{notification_id}/read")

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_inbox_limit_is_bounded(async_client, doctor_user):
    login(async_client, doctor_user)

    response = await async_client.get("/api/notifications/", params={"limit": 500})

    assert response.status_code == 422
