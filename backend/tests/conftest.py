"""
CIP Eventos - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['LOG_FILE'] = ''

from app.main import app
from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.models.user import User, UserRole
from app.models.event import (
    Event,
    EventSession,
    Registration,
    RegistrationStatus,
    Speaker,
    BlockEnrollment,
    BlockEnrollmentStatus,
)
from app.models.certificate import Certificate, CertificateOwnerType
from app.services.audit_service import AuditActor
from app.services.certificate_service import certificate_service

fake = Faker()

# Test database setup
TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test.db'
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== Users ====================

@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a regular (non-admin) test user"""
    user = User(
        email=fake.unique.email(),
        full_name=fake.name(),
        role=UserRole.ATTENDEE,
        is_active=True
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Create an admin test user"""
    user = User(
        email=fake.unique.email(),
        full_name=fake.name(),
        role=UserRole.ADMIN,
        is_active=True
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def organizer_user(db_session: AsyncSession) -> User:
    """Create an organizer, owner of ORGANIZER certificates"""
    user = User(
        email=fake.unique.email(),
        full_name=fake.name(),
        role=UserRole.ORGANIZER,
        is_active=True
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def admin_actor(admin_user: User) -> AuditActor:
    """Audit actor for the admin user, safe to use after a rollback"""
    return AuditActor.from_user(admin_user, ip_address='127.0.0.1', user_agent='pytest')


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for test user"""
    token_data = {
        'sub': str(test_user.id),
        'email': test_user.email,
        'role': test_user.role.value
    }
    token = create_access_token(token_data)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict:
    """Generate authentication headers for admin user"""
    token_data = {
        'sub': str(admin_user.id),
        'email': admin_user.email,
        'role': admin_user.role.value
    }
    token = create_access_token(token_data)
    return {'Authorization': f'Bearer {token}'}


# ==================== Event side ====================

@pytest.fixture
async def event(db_session: AsyncSession) -> Event:
    """Create an event"""
    event = Event(
        title=fake.catch_phrase(),
        start_at=fake.date_time_this_year(),
        certificate_hours=8
    )
    db_session.add(event)
    await db_session.commit()
    await db_session.refresh(event)
    return event


@pytest.fixture
async def other_event(db_session: AsyncSession) -> Event:
    """Create a second, unrelated event"""
    event = Event(title=fake.catch_phrase(), certificate_hours=2)
    db_session.add(event)
    await db_session.commit()
    await db_session.refresh(event)
    return event


@pytest.fixture
async def registration(db_session: AsyncSession, event: Event) -> Registration:
    """Create a confirmed, attended registration for the event"""
    registration = Registration(
        event_id=event.id,
        attendee_name=fake.name(),
        attendee_email=fake.unique.email(),
        status=RegistrationStatus.CONFIRMED,
        attended=True
    )
    db_session.add(registration)
    await db_session.commit()
    await db_session.refresh(registration)
    return registration


@pytest.fixture
async def speaker(db_session: AsyncSession) -> Speaker:
    """Create a speaker"""
    speaker = Speaker(
        first_name=fake.first_name(),
        last_name=fake.last_name(),
        email=fake.unique.email()
    )
    db_session.add(speaker)
    await db_session.commit()
    await db_session.refresh(speaker)
    return speaker


@pytest.fixture
async def event_session(db_session: AsyncSession, event: Event) -> EventSession:
    """Create a session inside the event"""
    session = EventSession(event_id=event.id, title=fake.bs(), hours=2)
    db_session.add(session)
    await db_session.commit()
    await db_session.refresh(session)
    return session


@pytest.fixture
async def block_enrollment(db_session: AsyncSession, event: Event) -> BlockEnrollment:
    """Create an approved block enrollment inside the event"""
    enrollment = BlockEnrollment(
        event_id=event.id,
        block_name='Structural Design Workshop',
        attendee_name=fake.name(),
        attendee_email=fake.unique.email(),
        hours=16,
        final_grade=17.5,
        status=BlockEnrollmentStatus.APPROVED
    )
    db_session.add(enrollment)
    await db_session.commit()
    await db_session.refresh(enrollment)
    return enrollment


# ==================== Certificates ====================

@pytest.fixture
async def attendee_certificate(
    db_session: AsyncSession,
    event: Event,
    registration: Registration,
    admin_actor: AuditActor
) -> Certificate:
    """ACTIVE attendee certificate at version 1"""
    return await certificate_service.issue_certificate(
        db_session,
        event_id=event.id,
        owner_type=CertificateOwnerType.ATTENDEE,
        owner_id=registration.id,
        pdf_url='https://files.cip.org.pe/certificates/v1.pdf',
        actor=admin_actor,
    )


@pytest.fixture
async def speaker_certificate(
    db_session: AsyncSession,
    event: Event,
    speaker: Speaker,
    admin_actor: AuditActor
) -> Certificate:
    """ACTIVE speaker certificate at version 1"""
    return await certificate_service.issue_certificate(
        db_session,
        event_id=event.id,
        owner_type=CertificateOwnerType.SPEAKER,
        owner_id=speaker.id,
        actor=admin_actor,
    )
