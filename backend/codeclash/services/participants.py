from __future__ import annotations
from uuid import UUID
import structlog
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from codeclash.errors import InvalidContestState
from codeclash.models.contest import Contest, ContestParticipant
from codeclash.schemas.contest import ParticipantPublic, ParticipantStats, CountRow
from codeclash.services.contest_window import assert_not_ended, ensure_utc, utcnow
from codeclash.services.users import UserRef

log = structlog.get_logger()


def participant_public(p: ContestParticipant, already_joined: bool = False) -> ParticipantPublic:
    return ParticipantPublic(
        id=p.id,
        contest_id=p.contest_id,
        user_id=p.user_id,
        user_name=p.user_name,
        user_email=p.user_email,
        type=p.participant_type,
        joined_at=ensure_utc(p.joined_at),
        already_joined=already_joined,
    )


async def get_participant(session: AsyncSession, contest_id: UUID, user_id: str) -> ContestParticipant | None:
    return await session.scalar(
        select(ContestParticipant)
        .where(ContestParticipant.contest_id == contest_id, ContestParticipant.user_id == user_id)
        .execution_options(populate_existing=True)
    )


async def register_participant(session: AsyncSession, contest: Contest, user: UserRef) -> tuple[ContestParticipant, bool]:
    """
    Register `user` for an individual contest.

    Idempotent: a repeat registration returns the existing record with
    created=False instead of failing.
    """
    if contest.contest_type != "individual":
        raise InvalidContestState("Team contests are joined through a team", contest_id=str(contest.id))
    assert_not_ended(contest)

    cid = contest.id
    existing = await get_participant(session, cid, user.id)
    if existing:
        log.info("participant_registered_duplicate", contest_id=str(cid), user_id=user.id)
        return existing, False

    p = ContestParticipant(
        contest_id=cid,
        user_id=user.id,
        user_name=user.display_name,
        user_email=user.email,
        participant_type="individual",
        joined_at=utcnow(),
    )
    session.add(p)
    try:
        await session.commit()
    except IntegrityError:
        # Concurrent double-submit; the other request's row wins
        await session.rollback()
        existing = await get_participant(session, cid, user.id)
        if existing is None:
            raise
        log.info("participant_registered_duplicate", contest_id=str(cid), user_id=user.id)
        return existing, False
    log.info("participant_registered", contest_id=str(cid), user_id=user.id, participant_id=str(p.id))
    return p, True


async def list_participants(session: AsyncSession, contest_id: UUID | None = None) -> list[ContestParticipant]:
    q = select(ContestParticipant).order_by(ContestParticipant.joined_at.asc())
    if contest_id:
        q = q.where(ContestParticipant.contest_id == contest_id)
    return list((await session.execute(q)).scalars().all())


async def participant_stats(session: AsyncSession) -> ParticipantStats:
    total = await session.scalar(select(func.count()).select_from(ContestParticipant))
    by_type = (await session.execute(
        select(ContestParticipant.participant_type, func.count())
        .group_by(ContestParticipant.participant_type)
    )).all()
    by_contest = (await session.execute(
        select(ContestParticipant.contest_id, func.count())
        .group_by(ContestParticipant.contest_id)
        .order_by(func.count().desc())
    )).all()
    return ParticipantStats(
        total_participants=int(total or 0),
        by_type=[CountRow(key=t, count=int(n)) for (t, n) in by_type],
        by_contest=[CountRow(key=str(cid), count=int(n)) for (cid, n) in by_contest],
    )
