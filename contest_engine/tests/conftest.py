"""
Shared fixtures: a throwaway SQLite store per test, acting users,
competition factories and an HTTP client bound to the store.
"""
import os

os.environ.setdefault("FEATURE_RATE_LIMITING", "false")

from datetime import timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from contest_engine.config import Settings
from contest_engine.database import Store
from contest_engine.main import create_app
from contest_engine.orm.base import utcnow
from contest_engine.orm.competition import CompetitionStatus
from contest_engine.rbac import ActingUser
from contest_engine.routes.limits import limiter
from contest_engine.schemas.competition import CompetitionCreate
from contest_engine.services import competition_service
from contest_engine.services.competition_service import VALID_TRANSITIONS
from contest_engine.services.lookups import get_competition

TEST_SECRET = "test-secret"

LIFECYCLE = [
    CompetitionStatus.DRAFT,
    CompetitionStatus.OPEN,
    CompetitionStatus.IN_PROGRESS,
    CompetitionStatus.JUDGING,
    CompetitionStatus.COMPLETED,
]


@pytest_asyncio.fixture
async def store(tmp_path) -> AsyncGenerator[Store, None]:
    """File-backed SQLite so several sessions can run against it at once."""
    store = Store(f"sqlite+aiosqlite:///{tmp_path / 'contest.db'}").open()
    await store.init_schema()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def db(store) -> AsyncGenerator[AsyncSession, None]:
    async with store.session() as session:
        yield session


# =============================================================================
# Acting users
# =============================================================================

@pytest.fixture
def host() -> ActingUser:
    return ActingUser.of("host-1", roles=["host"])


@pytest.fixture
def other_host() -> ActingUser:
    return ActingUser.of("host-2", roles=["host"])


@pytest.fixture
def admin() -> ActingUser:
    return ActingUser.of("admin-1", roles=["admin"])


@pytest.fixture
def judge() -> ActingUser:
    return ActingUser.of("judge-1", roles=["judge"])


@pytest.fixture
def judge2() -> ActingUser:
    return ActingUser.of("judge-2", roles=["judge"])


@pytest.fixture
def alice() -> ActingUser:
    return ActingUser.of("alice")


@pytest.fixture
def bob() -> ActingUser:
    return ActingUser.of("bob")


@pytest.fixture
def carol() -> ActingUser:
    return ActingUser.of("carol")


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_competition(db, host):
    """Create a draft competition starting tomorrow; keyword overrides go to CompetitionCreate."""
    async def _make(actor=None, **overrides):
        start = utcnow() + timedelta(days=1)
        data = {
            "title": "Spring Hackathon",
            "description": "Build something",
            "start_at": start,
            "end_at": start + timedelta(days=2),
        }
        data.update(overrides)
        return await competition_service.create_competition(db, actor or host, CompetitionCreate(**data))

    return _make


@pytest.fixture
def advance(db, host):
    """Step a competition forward through the lifecycle until it reaches `target`."""
    async def _advance(competition_id: int, target: CompetitionStatus, actor=None):
        for _ in LIFECYCLE:
            competition = await get_competition(db, competition_id)
            if competition.status == target:
                return competition
            next_status = VALID_TRANSITIONS[competition.status][0]
            await competition_service.transition_competition(db, competition_id, actor or host, next_status)
        return await get_competition(db, competition_id)

    return _advance


@pytest_asyncio.fixture
async def open_competition(make_competition, advance):
    competition = await make_competition()
    return await advance(competition.id, CompetitionStatus.OPEN)


# =============================================================================
# HTTP
# =============================================================================

@pytest.fixture
def auth_headers():
    def _headers(user_id: str, roles=(), org_admin_ids=()):
        token = jwt.encode(
            {"sub": user_id, "roles": list(roles), "org_admin_ids": list(org_admin_ids)},
            TEST_SECRET,
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def client(store) -> AsyncGenerator[AsyncClient, None]:
    settings = Settings(environment="test", auth_token_secret=TEST_SECRET)
    app = create_app(settings=settings, store=store)
    limiter.enabled = False

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
