"""
Pytest fixtures for testing.
"""
import os

# Settings are read at import time; point them at the test database first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EMAIL_MODE", "dev")

import pytest
import pytest_asyncio
from typing import AsyncGenerator, List

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Import database module BEFORE app to allow override
import locum.database
from locum.database import Base
# Import ALL models so Base.metadata knows about all tables
from locum.models import (
    User,
    UserRole,
    DoctorProfile,
    Facility,
    FacilityStaff,
    StaffRole,
    Job,
    JobStatus,
    JobApplication,
    ApplicationStatus,
    Verification,
    VerificationStatus,
    SubjectKind,
)
from locum.services.authorization import Actor
from locum.services.channels import MessageChannel, OutboundMessage
from locum.services.errors import ExternalChannelFailure
from locum.services.notifications import NotificationDispatcher

# Now import app (after we can override database)
from locum.main import app as fastapi_app


# Test database URL (use in-memory SQLite for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingChannel(MessageChannel):
    """Collects outbound messages instead of sending them."""
    name = "recording"

    def __init__(self):
        self.sent: List[OutboundMessage] = []

    async def send(self, message: OutboundMessage) -> None:
        self.sent.append(message)


class FailingChannel(MessageChannel):
    name = "failing"

    def __init__(self):
        self.attempts = 0

    async def send(self, message: OutboundMessage) -> None:
        self.attempts += 1
        raise ExternalChannelFailure("gateway down")


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database for each test.
    Ensures cleanup happens even if test fails.
    """
    # StaticPool keeps one connection so every session sees the same in-memory database
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Replace the app's engine and sessionmaker so get_db() uses the test database
    original_engine = locum.database.engine
    original_sessionmaker = locum.database.AsyncSessionLocal

    locum.database.engine = test_engine
    locum.database.AsyncSessionLocal = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    session = locum.database.AsyncSessionLocal()

    try:
        yield session
    finally:
        try:
            await session.close()
        except Exception as e:
            print(f"Warning: Failed to close session: {e}")

        try:
            async with test_engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
        except Exception as e:
            print(f"Warning: Failed to drop tables: {e}")

        try:
            await test_engine.dispose()
        except Exception as e:
            print(f"Warning: Failed to dispose engine: {e}")

        locum.database.engine = original_engine
        locum.database.AsyncSessionLocal = original_sessionmaker


@pytest_asyncio.fixture
async def async_client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async HTTP client for testing endpoints.

    The db fixture already replaced locum.database.engine with test engine,
    so all endpoints will automatically use the test database.
    """
    transport = ASGITransport(app=fastapi_app)

    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=True  # Follow 307 redirects for trailing slashes
    ) as client:
        yield client


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def dispatcher(channel: RecordingChannel) -> NotificationDispatcher:
    return NotificationDispatcher(channel=channel)


def actor_for(user: User) -> Actor:
    return Actor.from_user(user)


async def make_user(db: AsyncSession, email: str, role: UserRole, full_name: str = None, phone: str = None) -> User:
    user = User(email=email, role=role, full_name=full_name, phone=phone)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


# =============================================================================
# People
# =============================================================================

@pytest_asyncio.fixture
async def doctor_user(db: AsyncSession) -> User:
    return await make_user(db, "dr.mensah@mail.com", UserRole.DOCTOR, "Dr Ama Mensah", "+233200000001")


@pytest_asyncio.fixture
async def other_doctor_user(db: AsyncSession) -> User:
    return await make_user(db, "dr.osei@mail.com", UserRole.DOCTOR, "Dr Kofi Osei")


@pytest_asyncio.fixture
async def owner_user(db: AsyncSession) -> User:
    return await make_user(db, "owner@ridgeclinic.org", UserRole.EMPLOYER, "Ridge Owner")


@pytest_asyncio.fixture
async def outsider_user(db: AsyncSession) -> User:
    """Employer with no role at the test facility."""
    return await make_user(db, "someone@otherclinic.org", UserRole.EMPLOYER, "Other Employer")


@pytest_asyncio.fixture
async def admin_user(db: AsyncSession) -> User:
    return await make_user(db, "admin@locum.health", UserRole.ADMIN, "Platform Admin")


@pytest_asyncio.fixture
async def doctor_profile(db: AsyncSession, doctor_user: User) -> DoctorProfile:
    profile = DoctorProfile(user_id=doctor_user.id, specialty="Emergency Medicine", registration_number="MDC/RN/1001")
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return profile


@pytest_asyncio.fixture
async def verified_doctor(db: AsyncSession, doctor_profile: DoctorProfile) -> DoctorProfile:
    """Doctor profile with an APPROVED verification."""
    db.add(Verification(
        subject_kind=SubjectKind.DOCTOR.value,
        subject_id=doctor_profile.id,
        fields={"registration_number": doctor_profile.registration_number},
        document_urls=["https://files.locum.health/licence.pdf"],
        status=VerificationStatus.APPROVED.value,
    ))
    await db.commit()
    return doctor_profile


# =============================================================================
# Facility and jobs
# =============================================================================

@pytest_asyncio.fixture
async def facility(db: AsyncSession, owner_user: User) -> Facility:
    """Verified facility whose owner holds an active OWNER role."""
    facility = Facility(name="Ridge Clinic", owner_user_id=owner_user.id, address="Ridge, Accra")
    db.add(facility)
    await db.commit()
    await db.refresh(facility)

    db.add(FacilityStaff(facility_id=facility.id, user_id=owner_user.id, role=StaffRole.OWNER.value, is_active=True))
    db.add(Verification(
        subject_kind=SubjectKind.FACILITY.value,
        subject_id=facility.id,
        fields={"licence": "HEFRA-2291"},
        document_urls=[],
        status=VerificationStatus.APPROVED.value,
    ))
    await db.commit()
    return facility


@pytest_asyncio.fixture
async def job(db: AsyncSession, facility: Facility) -> Job:
    job = Job(
        facility_id=facility.id,
        title="Weekend ER cover",
        description="Two night shifts",
        status=JobStatus.OPEN.value,
    )
    db.add(job)
    await db.commit()
    await db.refresh(job)
    return job


async def make_application(
    db: AsyncSession,
    job: Job,
    profile: DoctorProfile,
    status: ApplicationStatus = ApplicationStatus.PENDING,
    **fields,
) -> JobApplication:
    application = JobApplication(job_id=job.id, doctor_profile_id=profile.id, status=status.value, **fields)
    db.add(application)
    await db.commit()
    await db.refresh(application)
    return application


@pytest_asyncio.fixture
async def application(db: AsyncSession, job: Job, verified_doctor: DoctorProfile) -> JobApplication:
    """PENDING application from the verified doctor."""
    return await make_application(db, job, verified_doctor)


# =============================================================================
# Actors and clients
# =============================================================================

@pytest.fixture
def doctor(doctor_user: User) -> Actor:
    return actor_for(doctor_user)


@pytest.fixture
def owner(owner_user: User) -> Actor:
    return actor_for(owner_user)


@pytest.fixture
def admin(admin_user: User) -> Actor:
    return actor_for(admin_user)


@pytest.fixture
def outsider(outsider_user: User) -> Actor:
    return actor_for(outsider_user)


def login(client: AsyncClient, user: User) -> AsyncClient:
    """Set the auth cookie the way the auth service would."""
    client.cookies.set("auth_token", str(user.id))
    return client
