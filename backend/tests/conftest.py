# tests/conftest.py

import pytest
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from leadsync.database import Base
from leadsync.models import Contact, Interaction  # noqa: F401  registers tables
from leadsync.schemas import (
    ContactCreate,
    InteractionType,
    LeadCaptureData,
    SocialInteractionData,
    SocialPlatform,
    SocialProfile,
)
from leadsync.services.contact_store import SQLAlchemyContactStore
from leadsync.services.platforms.base import BasePlatformClient
from leadsync.services.rate_limiter import RateLimiter


class FakeClock:
    """Manually advanced monotonic clock for rate limiter tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakePlatformClient(BasePlatformClient):
    """In-memory platform client returning canned leads and events."""

    def __init__(
        self,
        platform: SocialPlatform,
        events: Optional[List[SocialInteractionData]] = None,
        leads: Optional[List[LeadCaptureData]] = None,
        error: Optional[Exception] = None,
        connected: bool = True,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.platform = platform
        super().__init__(config=None, rate_limiter=rate_limiter)
        self.events = list(events or [])
        self.leads = list(leads or [])
        self.error = error
        self.connected = connected
        self.calls: List[str] = []

    def validate_config(self) -> bool:
        return True

    async def test_connection(self) -> bool:
        self.rate_limiter.acquire()
        if self.error:
            raise self.error
        return self.connected

    async def capture_leads(self, since=None):
        self.rate_limiter.acquire()
        if self.error:
            raise self.error
        return list(self.leads)

    async def get_interactions(self, contact_id, since=None):
        self.rate_limiter.acquire()
        self.calls.append(contact_id)
        if self.error:
            raise self.error
        return [e for e in self.events if since is None or e.timestamp >= since]


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    Session = sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def contact_store(db_session):
    return SQLAlchemyContactStore(db_session)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_client():
    """Factory for FakePlatformClient instances."""
    return FakePlatformClient


@pytest.fixture
def make_event():
    """Build a SocialInteractionData authored by `user_id` (default "u-1")."""
    base_time = datetime(2024, 3, 1, 12, 0, 0)

    def _make(
        external_id: str,
        type: InteractionType = InteractionType.SOCIAL_LIKE,
        platform: SocialPlatform = SocialPlatform.FACEBOOK,
        minutes: int = 0,
        user_id: Optional[str] = "u-1",
        **kwargs,
    ) -> SocialInteractionData:
        return SocialInteractionData(
            platform=platform,
            type=type,
            external_id=external_id,
            user_id=user_id,
            timestamp=base_time + timedelta(minutes=minutes),
            **kwargs,
        )

    return _make


@pytest.fixture
def create_contact(contact_store):
    """Insert a contact with social profiles on the given platforms."""

    async def _create(email: Optional[str] = None, platforms=(), external_user_id: Optional[str] = None, **kwargs):
        profiles = [
            SocialProfile(platform=p, external_user_id=external_user_id)
            for p in platforms
        ]
        return await contact_store.insert_contact(
            ContactCreate(email=email, social_profiles=profiles, **kwargs)
        )

    return _create


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: unit tests")
    config.addinivalue_line("markers", "integration: integration tests")
