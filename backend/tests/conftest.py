"""Shared fixtures: a throwaway SQLite database per test, stub push sender and classifiers."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("TOXICITY_PROVIDER", "none")

import uuid
from datetime import timedelta

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from movetogether.db import Base, get_session
from movetogether.main import app
from movetogether.models.competition import Competition, Participant
from movetogether.models.user import Profile
from movetogether.security import make_access_token
from movetogether.services.clock import utc_today, utcnow
from movetogether.services.notifications import get_push_sender
from movetogether.services.toxicity import ToxicityResult, get_toxicity_classifier
import movetogether.models.activity  # noqa: F401  register tables
import movetogether.models.chat  # noqa: F401
import movetogether.models.notification  # noqa: F401


class RecordingSender:
    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(message)

    def of_type(self, kind):
        return [m for m in self.sent if m.data.get("type") == kind]


class FailingSender:
    def send(self, message):
        raise ConnectionError("push provider unreachable")


class FixedClassifier:
    name = "fixed"

    def __init__(self, score=0.0, categories=None):
        self.score = score
        self.categories = categories or {"toxicity": score}
        self.calls = 0

    async def classify(self, text):
        self.calls += 1
        return ToxicityResult(score=self.score, categories=dict(self.categories))


class BrokenClassifier:
    name = "broken"

    async def classify(self, text):
        raise TimeoutError("classifier timed out")


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def classifier():
    return FixedClassifier(0.0)


@pytest_asyncio.fixture
async def client(session_factory, sender, classifier):
    async def _session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_push_sender] = lambda: sender
    app.dependency_overrides[get_toxicity_classifier] = lambda: classifier
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user_id) -> dict:
    return {"Authorization": f"Bearer {make_access_token(str(user_id))}"}


async def make_profile(session, user_id=None, name="Alex", goals=(500, 30, 12)):
    user_id = user_id or uuid.uuid4()
    move, exercise, stand = goals
    session.add(Profile(user_id=user_id, display_name=name, move_goal=move, exercise_goal=exercise, stand_goal=stand))
    await session.commit()
    return user_id


async def make_competition(session, *, status="active", scoring_type="ring_close", scoring_config=None,
                           is_public=False, days_back=3, days_ahead=3):
    today = utc_today()
    comp = Competition(
        name="Spring Sprint",
        start_date=today - timedelta(days=days_back),
        end_date=today + timedelta(days=days_ahead),
        status=status,
        scoring_type=scoring_type,
        scoring_config=scoring_config or {},
        is_public=is_public,
    )
    session.add(comp)
    await session.commit()
    return comp


async def join(session, competition_id, user_id, total_points=0.0, order=0):
    """Participants joined earlier sort first on ties; `order` spaces joins one minute apart."""
    p = Participant(
        competition_id=competition_id,
        user_id=user_id,
        total_points=total_points,
        joined_at=utcnow() - timedelta(days=1) + timedelta(minutes=order),
    )
    session.add(p)
    await session.commit()
    return p
