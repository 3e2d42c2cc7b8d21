"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for tests: SQLite database, in-memory broker
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("WEBHOOK_SECRET", "test_webhook_secret")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from app.config.database import create_engine_for_url, create_session_maker
from app.models import (
    Base,
    TaskTemplate,
    TaskTemplateStatus,
    VolunteerProfile,
)
from app.services.engine import RewardsEngine
from app.services.events import CollectingEventPublisher
from app.services.ripple import CollectingDispatcher
from calculator import RewardsConfig


WEBHOOK_SECRET = "test_webhook_secret"


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    return session


@pytest.fixture
def rewards_config() -> RewardsConfig:
    """Default reward configuration."""
    return RewardsConfig()


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine with the full schema."""
    engine = create_engine_for_url(
        f"sqlite+aiosqlite:///{tmp_path / 'rewards.db'}"
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    """Session factory bound to the test database."""
    return create_session_maker(db_engine)


@pytest_asyncio.fixture
async def session(session_maker):
    """Single session for repository-level tests."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def dispatcher() -> CollectingDispatcher:
    """Dispatcher that keeps ripple tasks in memory."""
    return CollectingDispatcher()


@pytest.fixture
def publisher() -> CollectingEventPublisher:
    """Publisher that keeps notification facts in memory."""
    return CollectingEventPublisher()


@pytest.fixture
def rewards_engine(session_maker, rewards_config, dispatcher, publisher):
    """Engine wired to the test database and in-memory collaborators."""
    return RewardsEngine(
        session_maker,
        config=rewards_config,
        dispatcher=dispatcher,
        publisher=publisher,
        webhook_secret=WEBHOOK_SECRET,
    )


@pytest.fixture
def make_template(session_maker):
    """Factory creating a task template; returns its id."""

    async def _make(
        organization_id: int = 1,
        xp_reward: int = 50,
        level_required: int = 1,
        status: TaskTemplateStatus = TaskTemplateStatus.PUBLISHED,
        deadline_days: int = 7,
        title: str = "Community garden cleanup",
    ) -> int:
        async with session_maker() as session:
            template = TaskTemplate(
                organization_id=organization_id,
                title=title,
                xp_reward=xp_reward,
                level_required=level_required,
                status=status.value,
                deadline_days=deadline_days,
            )
            session.add(template)
            await session.commit()
            return template.id

    return _make


@pytest.fixture
def make_chain(rewards_engine):
    """
    Factory registering volunteers, each referred by the previous one.

    Returns profile ids, root first.
    """

    async def _make(
        length: int, organization_id: int = 1, first_identity: int = 1000
    ) -> list[int]:
        ids: list[int] = []
        referral_code = None
        for offset in range(length):
            registration = await rewards_engine.register_volunteer(
                first_identity + offset, organization_id, referral_code
            )
            ids.append(registration.profile.id)
            referral_code = registration.profile.referral_code
        return ids

    return _make


@pytest.fixture
def update_profile(session_maker):
    """Set columns of a profile directly, bypassing the services."""

    async def _update(profile_id: int, **values) -> None:
        async with session_maker() as session:
            profile = await session.get(VolunteerProfile, profile_id)
            for key, value in values.items():
                setattr(profile, key, value)
            await session.commit()

    return _update


@pytest.fixture
def load_profile(session_maker):
    """Read a fresh copy of a profile."""

    async def _load(profile_id: int) -> VolunteerProfile:
        async with session_maker() as session:
            return await session.get(VolunteerProfile, profile_id)

    return _load


@pytest.fixture
def complete_task(rewards_engine):
    """Factory running accept, submit and approve; returns the outcome."""

    async def _complete(profile_id: int, template_id: int):
        assignment_id = await rewards_engine.accept_task(
            profile_id, template_id
        )
        await rewards_engine.submit_task(assignment_id, {"notes": "Done"})
        return await rewards_engine.review_task(
            assignment_id, "approve", reviewer_id=1
        )

    return _complete


@pytest.fixture
def sale_amount() -> Decimal:
    """Base amount used by the commission examples."""
    return Decimal("1000")
