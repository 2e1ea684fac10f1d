import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("LOBBY_EVENTS_ENABLED", "0")

from datetime import datetime, timedelta, timezone
import httpx
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from codeclash.db import Base, get_session
from codeclash.main import app
from codeclash.models.contest import Contest, Problem, contest_problems
import codeclash.models.team  # noqa: F401  (registers tables)


def _now():
    return datetime.now(timezone.utc)


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest_asyncio.fixture
async def client(session_factory):
    async def _session_override():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _session_override
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_contest(session_factory):
    """Seed a contest the way the admin panel would; defaults to a running team contest."""
    async def _make(
        contest_type: str = "team",
        starts_in: timedelta = timedelta(hours=-1),
        ends_in: timedelta = timedelta(hours=2),
        problems: int = 2,
        title: str = "Weekly Clash",
    ) -> Contest:
        now = _now()
        async with session_factory() as s:
            contest = Contest(
                title=title,
                description="Solve as many as you can",
                contest_type=contest_type,
                starts_at=now + starts_in,
                ends_at=now + ends_in,
            )
            s.add(contest)
            probs = [
                Problem(title=f"Problem {i + 1}", description="...", difficulty="easy", category="arrays")
                for i in range(problems)
            ]
            s.add_all(probs)
            await s.flush()
            if probs:
                await s.execute(contest_problems.insert(), [
                    {"contest_id": contest.id, "problem_id": p.id, "position": i}
                    for i, p in enumerate(probs)
                ])
            await s.commit()
            return contest

    return _make
