from __future__ import annotations
from uuid import UUID
from datetime import datetime
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from codeclash.errors import ContestNotFound
from codeclash.models.contest import Contest
from codeclash.schemas.contest import ContestPublic, ProblemPublic
from codeclash.services.contest_window import runtime_state, ensure_utc


async def get_contest(session: AsyncSession, contest_id: UUID | str) -> Contest:
    try:
        cid = contest_id if isinstance(contest_id, UUID) else UUID(str(contest_id))
    except ValueError:
        raise ContestNotFound(f"Contest {contest_id} not found")
    contest = await session.get(Contest, cid)
    if not contest:
        raise ContestNotFound(f"Contest {contest_id} not found")
    return contest


async def list_contests(session: AsyncSession, contest_type: str | None = None) -> list[Contest]:
    q = select(Contest).order_by(Contest.starts_at.asc())
    if contest_type:
        q = q.where(Contest.contest_type == contest_type)
    return list((await session.execute(q)).scalars().all())


def contest_public(contest: Contest, now: datetime | None = None, with_problems: bool = True) -> ContestPublic:
    return ContestPublic(
        id=contest.id,
        title=contest.title,
        description=contest.description,
        type=contest.contest_type,
        start_time=ensure_utc(contest.starts_at),
        end_time=ensure_utc(contest.ends_at),
        created_at=ensure_utc(contest.created_at),
        runtime_state=runtime_state(contest.starts_at, contest.ends_at, now),
        problems=[
            ProblemPublic(id=p.id, title=p.title, description=p.description, difficulty=p.difficulty, category=p.category)
            for p in contest.problems
        ] if with_problems else [],
    )
