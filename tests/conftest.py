"""
Pytest configuration and fixtures for delivery service tests.
"""
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from ftrmsg.core.database import Base
from ftrmsg.core.redis_client import redis_client
from ftrmsg.models.profile import Profile
from ftrmsg.models.message import Message
from ftrmsg.models.payment import Payment

TODAY = date(2026, 3, 15)


@pytest.fixture(autouse=True)
def silence_job_log(monkeypatch):
    """Keep the best-effort job event log away from a real Redis."""
    monkeypatch.setattr(redis_client, "push_event", AsyncMock())


@pytest_asyncio.fixture
async def mock_session():
    """Mock database session."""
    session = AsyncMock(spec=AsyncSession)
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    return session


@pytest_asyncio.fixture
async def sqlite_session():
    """
    Real AsyncSession on in-memory SQLite.

    Used where session state matters, e.g. rows expiring on rollback.
    """
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def register_functions(dbapi_connection, connection_record):
        # messages length check
        dbapi_connection.create_function("char_length", 1, len)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def free_profile():
    """Free-tier profile that has not used its message yet."""
    return Profile(
        id=uuid4(),
        email="free@example.com",
        tier="free",
        storage_used_bytes=0,
        storage_limit_bytes=0,
        free_message_used=False,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc)
    )


@pytest.fixture
def pro_profile():
    """Pro profile with 100 MB already used."""
    return Profile(
        id=uuid4(),
        email="pro@example.com",
        tier="pro",
        storage_used_bytes=100 * 1024 * 1024,
        storage_limit_bytes=2147483648,
        free_message_used=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc)
    )


def make_message(**overrides):
    values = dict(
        id=uuid4(),
        user_id=uuid4(),
        message_text="Hello from the past",
        video_storage_path=None,
        video_size_bytes=0,
        video_duration_seconds=0,
        delivery_email="future@example.com",
        scheduled_date=TODAY - timedelta(days=1),
        status="pending",
        delivery_token=uuid4(),
        delivered_at=None,
        created_at=datetime.now(timezone.utc),
    )
    values.update(overrides)
    return Message(**values)


@pytest.fixture
def sample_message():
    """Due pending message without a video."""
    return make_message()


@pytest.fixture
def due_messages():
    """Three due pending messages."""
    return [make_message(delivery_email=f"r{i}@example.com") for i in range(3)]


@pytest.fixture
def sample_payment(free_profile):
    """Pending payment for a Pro upgrade checkout."""
    return Payment(
        id=uuid4(),
        user_id=free_profile.id,
        stripe_checkout_session_id="cs_test_123",
        amount_cents=900,
        currency="usd",
        product_type="pro_upgrade",
        status="pending",
    )


# Mock repository fixtures
@pytest.fixture
def mock_message_repo():
    """Mock message repository."""
    repo = AsyncMock()
    repo.create = AsyncMock()
    repo.delete = AsyncMock(return_value=True)
    repo.get_for_owner = AsyncMock()
    repo.update_status = AsyncMock(return_value=True)
    repo.mark_delivered = AsyncMock(return_value=True)
    repo.find_status_drift = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def mock_profile_repo():
    """Mock profile repository."""
    repo = AsyncMock()
    repo.get_by_id = AsyncMock()
    repo.mark_free_message_used = AsyncMock(return_value=True)
    repo.apply_storage_delta = AsyncMock(return_value=True)
    repo.upgrade_to_pro = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def mock_attempt_repo():
    """Mock delivery attempt repository."""
    repo = AsyncMock()
    repo.has_delivered = AsyncMock(return_value=False)
    repo.count_for_message = AsyncMock(return_value=0)
    repo.insert_pending = AsyncMock()
    repo.complete = AsyncMock(return_value=True)
    repo.fail = AsyncMock(return_value=True)
    repo.delete_older_than = AsyncMock(return_value=0)
    return repo


@pytest.fixture
def mock_payment_repo():
    """Mock payment repository."""
    repo = AsyncMock()
    repo.get_by_checkout_session_id = AsyncMock(return_value=None)
    repo.create = AsyncMock()
    repo.mark_completed = AsyncMock(return_value=True)
    repo.mark_failed = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def mock_blob_store():
    """Mock blob store."""
    store = MagicMock()
    store.upload = AsyncMock()
    store.delete = AsyncMock()
    store.create_signed_url = AsyncMock(return_value="https://storage.example.com/signed/video.mp4?token=abc")
    return store


@pytest.fixture
def mock_transport():
    """Mock email transport that accepts every send."""
    from ftrmsg.services.email_transport import SendResult

    transport = MagicMock()
    transport.send = AsyncMock(return_value=SendResult(provider_message_id="re_123"))
    return transport


@pytest.fixture
def message_factory():
    """Build Message instances with overrides."""
    return make_message
