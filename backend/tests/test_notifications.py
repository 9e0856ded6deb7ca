"""
Tests for the notification dispatcher and the inbox operations.

Validates:
- One row per recipient per transition, written with the transition
- External channel failures never undo a committed transition
- Inbox reads and mutations are scoped to the recipient
"""
import logging
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from conftest import FailingChannel, actor_for
from locum.database_types import utcnow
from locum.models import ApplicationStatus, JobApplication, Notification, NotificationType
from locum.services.applications import transition_application
from locum.services.errors import RejectionCode
from locum.services.notifications import (
    NotificationDispatcher,
    NotificationFilter,
    Recipient,
    TransitionRecord,
    delete_notification,
    list_notifications,
    mark_all_read,
    mark_read,
    reason_suffix,
    rules_for,
    unread_count,
)
from locum.services.state_machine import ApplicationEvent, EntityKind


async def seed_inbox(db, user, count=3):
    """Notifications with distinct timestamps, oldest first."""
    base = utcnow() - timedelta(hours=count)
    notifications = []
    for i in range(count):
        notification = Notification(
            recipient_user_id=user.id,
            type=NotificationType.JOB_APPLICATION_APPROVED.value if i % 2 else NotificationType.JOB_APPLICATION_RECEIVED.value,
            title=f"Notification {i}",
            message=f"Message {i}",
            created_at=base + timedelta(hours=i),
        )
        db.add(notification)
        notifications.append(notification)
    await db.commit()
    return notifications


# =============================================================================
# Dispatcher
# =============================================================================

def test_rules_include_wildcard_source():
    rules = rules_for(EntityKind.APPLICATION, "DOCTOR_CONFIRMED", "CANCELLED")

    assert [r.type for r in rules] == [NotificationType.JOB_APPLICATION_CANCELLED]


def test_no_rules_for_silent_transitions():
    assert rules_for(EntityKind.JOB, "OPEN", "CLOSED") == []


def test_reason_suffix():
    assert reason_suffix("Shift moved") == " Reason: Shift moved"
    assert reason_suffix(None) == ""


def test_build_one_notification_per_recipient():
    """The lapse rule addresses two parties; the same user gets only one row"""
    user_id = uuid.uuid4()
    record = TransitionRecord(
        kind=EntityKind.APPLICATION,
        entity_id=uuid.uuid4(),
        from_state="EMPLOYER_APPROVED",
        to_state="REJECTED",
        recipients={Recipient.APPLICANT: user_id, Recipient.FACILITY_OWNER: user_id},
        context={"job_title": "Locum GP", "facility_name": "Ridge Clinic", "doctor_name": "Dr Ama Mensah"},
        references={"job_id": uuid.uuid4(), "application_id": uuid.uuid4()},
    )

    notifications = NotificationDispatcher(channel=None).build(record)

    assert len(notifications) == 1
    assert notifications[0].recipient_user_id == user_id


def test_build_formats_templates_and_references():
    applicant_id, job_id, application_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    record = TransitionRecord(
        kind=EntityKind.APPLICATION,
        entity_id=application_id,
        from_state="PENDING",
        to_state="EMPLOYER_APPROVED",
        recipients={Recipient.APPLICANT: applicant_id},
        context={"job_title": "Locum GP", "facility_name": "Ridge Clinic", "window_hours": 24},
        references={"job_id": job_id, "application_id": application_id},
        metadata={"job_title": "Locum GP"},
    )

    [notification] = NotificationDispatcher(channel=None).build(record)

    assert notification.type == NotificationType.JOB_APPLICATION_APPROVED.value
    assert notification.message == (
        "Ridge Clinic approved your application for Locum GP. Please confirm within 24 hours."
    )
    assert notification.action_url == f"/profile/history?application={application_id}"
    assert notification.job_id == job_id
    assert notification.job_application_id == application_id
    assert notification.metadata_ == {"job_title": "Locum GP"}


def test_build_skips_missing_recipient():
    record = TransitionRecord(
        kind=EntityKind.APPLICATION,
        entity_id=uuid.uuid4(),
        from_state="PENDING",
        to_state="EMPLOYER_APPROVED",
        recipients={},
        context={"job_title": "x", "facility_name": "y", "window_hours": 24},
        references={"application_id": uuid.uuid4()},
    )

    assert NotificationDispatcher(channel=None).build(record) == []


@pytest.mark.asyncio
async def test_channel_failure_does_not_undo_transition(db, application, owner, doctor_user, caplog):
    failing = FailingChannel()
    application_id = application.id

    with caplog.at_level(logging.WARNING, logger="locum.services.notifications"):
        outcome = await transition_application(
            db, application_id, owner, ApplicationEvent.APPROVE, dispatcher=NotificationDispatcher(failing)
        )

    assert outcome.ok
    assert failing.attempts == 1
    assert any("External delivery failed" in r.getMessage() for r in caplog.records)

    status = (await db.execute(select(JobApplication.status).where(JobApplication.id == application_id))).scalar_one()
    assert status == ApplicationStatus.EMPLOYER_APPROVED.value
    stored = (await db.execute(
        select(func.count(Notification.id)).where(Notification.recipient_user_id == doctor_user.id)
    )).scalar_one()
    assert stored == 1


@pytest.mark.asyncio
async def test_deliver_counts_accepted_messages(db, doctor_user, dispatcher, channel):
    notifications = await seed_inbox(db, doctor_user, count=2)

    delivered = await dispatcher.deliver(db, notifications)

    assert delivered == 2
    assert [m.to_email for m in channel.sent] == [doctor_user.email, doctor_user.email]
    assert channel.sent[0].to_phone == doctor_user.phone


@pytest.mark.asyncio
async def test_deliver_nothing(db, dispatcher, channel):
    assert await dispatcher.deliver(db, []) == 0
    assert channel.sent == []


# =============================================================================
# Inbox
# =============================================================================

@pytest.mark.asyncio
async def test_list_newest_first(db, doctor_user, doctor, other_doctor_user):
    seeded = await seed_inbox(db, doctor_user)
    await seed_inbox(db, other_doctor_user, count=1)

    listed = await list_notifications(db, doctor)

    assert [n.id for n in listed] == [n.id for n in reversed(seeded)]


@pytest.mark.asyncio
async def test_list_filters_and_paging(db, doctor_user, doctor):
    seeded = await seed_inbox(db, doctor_user, count=4)
    await mark_read(db, seeded[0].id, doctor)

    unread = await list_notifications(db, doctor, NotificationFilter(is_read=False))
    assert len(unread) == 3

    approved = await list_notifications(db, doctor, NotificationFilter(type=NotificationType.JOB_APPLICATION_APPROVED))
    assert {n.id for n in approved} == {seeded[1].id, seeded[3].id}

    page = await list_notifications(db, doctor, NotificationFilter(limit=2, offset=1))
    assert [n.id for n in page] == [seeded[2].id, seeded[1].id]


@pytest.mark.asyncio
async def test_unread_count(db, doctor_user, doctor):
    seeded = await seed_inbox(db, doctor_user)
    assert await unread_count(db, doctor) == 3

    await mark_read(db, seeded[1].id, doctor)

    assert await unread_count(db, doctor) == 2


@pytest.mark.asyncio
async def test_mark_read_is_idempotent(db, doctor_user, doctor):
    [notification] = await seed_inbox(db, doctor_user, count=1)

    first = await mark_read(db, notification.id, doctor)
    assert first.changed is True
    assert first.entity.is_read is True
    assert first.entity.read_at is not None

    second = await mark_read(db, notification.id, doctor)
    assert second.ok
    assert second.changed is False
    assert second.entity.is_read is True


@pytest.mark.asyncio
async def test_mark_read_other_users_notification(db, doctor_user, other_doctor_user):
    [notification] = await seed_inbox(db, doctor_user, count=1)
    notification_id = notification.id

    outcome = await mark_read(db, notification_id, actor_for(other_doctor_user))

    assert outcome.code == RejectionCode.UNAUTHORIZED
    is_read = (await db.execute(select(Notification.is_read).where(Notification.id == notification_id))).scalar_one()
    assert is_read is False


@pytest.mark.asyncio
async def test_mark_read_unknown(db, doctor):
    outcome = await mark_read(db, uuid.uuid4(), doctor)

    assert outcome.code == RejectionCode.NOT_FOUND


@pytest.mark.asyncio
async def test_mark_all_read(db, doctor_user, doctor, other_doctor_user):
    await seed_inbox(db, doctor_user)
    await seed_inbox(db, other_doctor_user, count=2)

    outcome = await mark_all_read(db, doctor)

    assert outcome.entity == 3
    assert await unread_count(db, doctor) == 0
    assert await unread_count(db, actor_for(other_doctor_user)) == 2

    again = await mark_all_read(db, doctor)
    assert again.entity == 0
    assert again.changed is False


@pytest.mark.asyncio
async def test_delete_is_scoped_to_recipient(db, doctor_user, doctor, other_doctor_user):
    [notification] = await seed_inbox(db, doctor_user, count=1)
    notification_id = notification.id

    denied = await delete_notification(db, notification_id, actor_for(other_doctor_user))
    assert denied.code == RejectionCode.UNAUTHORIZED

    outcome = await delete_notification(db, notification_id, doctor)
    assert outcome.ok
    assert outcome.entity == notification_id

    remaining = (await db.execute(select(Notification.id).where(Notification.id == notification_id))).scalar_one_or_none()
    assert remaining is None
