"""
Team lobby state machine.

Stored status only moves forward: waiting -> started -> completed. "ready"
is never stored; it is reported while every member is ready and the team
is big enough to start. Every write takes the team row lock first
(SELECT ... FOR UPDATE) and commits before returning, so concurrent
ready/join/start calls on one team are applied one at a time.
"""
from __future__ import annotations
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID
import structlog
from sqlalchemy import select, or_, exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from codeclash.config import settings
from codeclash.errors import (
    ValidationError, TeamNotFound, NotAMember, TeamLocked, CannotStart,
    AlreadyOnAnotherTeam, InvalidContestState, NotTeamLeader,
)
from codeclash.models.team import Team, TeamMember, LOCKED_STATUSES
from codeclash.schemas.team import TeamPublic, MemberPublic
from codeclash.services.contests import get_contest
from codeclash.services.contest_window import assert_not_ended, ensure_utc, utcnow
from codeclash.services.join_code import generate_code, normalize_code, invite_link
from codeclash.services.users import UserRef

log = structlog.get_logger()

CODE_ATTEMPTS = 5


@dataclass
class LobbyUpdate:
    team: Team
    changed: bool  # False for a repeated call that left the team as it was


def find_member(team: Team, user_id: str) -> TeamMember | None:
    return next((m for m in team.members if m.user_id == user_id), None)


def leader_of(team: Team) -> TeamMember | None:
    return next((m for m in team.members if m.role == "leader"), None)


def all_ready(team: Team) -> bool:
    return bool(team.members) and all(m.ready for m in team.members)


def can_start(team: Team) -> bool:
    return len(team.members) >= settings.team_min_members and all_ready(team)


def display_status(team: Team) -> str:
    if team.status == "waiting" and can_start(team):
        return "ready"
    return team.status


def _opt_utc(dt: datetime | None) -> datetime | None:
    return ensure_utc(dt) if dt else None


def team_public(team: Team) -> TeamPublic:
    return TeamPublic(
        id=team.id,
        name=team.name,
        contest_id=team.contest_id,
        code=team.code,
        created_by=team.created_by,
        members=[
            MemberPublic(
                user_id=m.user_id, user_name=m.user_name, user_image=m.user_image,
                role=m.role, ready=m.ready, joined_at=ensure_utc(m.joined_at),
            )
            for m in team.members
        ],
        status=display_status(team),
        member_count=len(team.members),
        all_ready=all_ready(team),
        ready_at=_opt_utc(team.ready_at),
        started_at=_opt_utc(team.started_at),
        completed_at=_opt_utc(team.completed_at),
        created_at=ensure_utc(team.created_at),
        updated_at=ensure_utc(team.updated_at),
        invite_link=invite_link(team.contest_id, team.code),
    )


@asynccontextmanager
async def rollback_on_error(session: AsyncSession):
    """Release the row lock and drop pending changes when a mutation fails."""
    try:
        yield
    except Exception:
        await session.rollback()
        raise


async def load_team(session: AsyncSession, code: str, *, lock: bool = False) -> Team:
    normalized = normalize_code(code)
    if not normalized:
        raise ValidationError("Team code is required", field="code")
    q = select(Team).where(Team.code == normalized).execution_options(populate_existing=True)
    if lock:
        q = q.with_for_update()
    team = await session.scalar(q)
    if not team:
        raise TeamNotFound(f"No team with code {normalized}")
    return team


async def get_by_code(session: AsyncSession, code: str) -> Team:
    return await load_team(session, code)


async def get_by_user_and_contest(session: AsyncSession, user_id: str, contest_id: UUID) -> Team | None:
    q = (
        select(Team)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(TeamMember.user_id == user_id, TeamMember.contest_id == contest_id)
        .execution_options(populate_existing=True)
    )
    return await session.scalar(q)


async def list_teams(
    session: AsyncSession,
    *,
    contest_id: UUID | None = None,
    status: str | None = None,
    search: str | None = None,
) -> list[Team]:
    q = select(Team).order_by(Team.created_at.desc())
    if contest_id:
        q = q.where(Team.contest_id == contest_id)
    if search:
        like = f"%{search.strip()}%"
        q = q.where(or_(
            Team.name.ilike(like),
            Team.code.ilike(like),
            exists().where(TeamMember.team_id == Team.id, TeamMember.user_name.ilike(like)),
        ))
    teams = list((await session.execute(q)).scalars().all())
    if status:
        teams = [t for t in teams if display_status(t) == status]
    return teams


def touch_team(team: Team, now: datetime) -> None:
    team.updated_at = now
    if can_start(team):
        team.ready_at = team.ready_at or now
    else:
        team.ready_at = None


async def create_team(session: AsyncSession, contest_id: UUID, creator: UserRef, team_name: str) -> Team:
    """Create a waiting team with `creator` as its leader (not ready yet)."""
    name = (team_name or "").strip()
    if not name:
        raise ValidationError("Team name is required", field="teamName")
    contest = await get_contest(session, contest_id)
    if contest.contest_type != "team":
        raise InvalidContestState("Teams can only be created for team contests", contest_id=str(contest.id))
    assert_not_ended(contest)

    cid = contest.id
    if await get_by_user_and_contest(session, creator.id, cid):
        raise AlreadyOnAnotherTeam("You already belong to a team in this contest")

    # Retry on join-code collision
    for _ in range(CODE_ATTEMPTS):
        now = utcnow()
        team = Team(
            contest_id=cid,
            name=name,
            code=generate_code(),
            created_by=creator.id,
            status="waiting",
            created_at=now,
            updated_at=now,
        )
        team.members.append(TeamMember(
            contest_id=cid,
            user_id=creator.id,
            user_name=creator.display_name,
            user_image=creator.avatar_url,
            role="leader",
            ready=False,
            joined_at=now,
        ))
        session.add(team)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            if await get_by_user_and_contest(session, creator.id, cid):
                raise AlreadyOnAnotherTeam("You already belong to a team in this contest")
            log.warning("team_code_collision", contest_id=str(cid))
            continue
        log.info("team_created", team_id=str(team.id), code=team.code, contest_id=str(cid), leader=creator.id)
        return team
    raise RuntimeError("Failed to generate unique team code")


async def set_ready(session: AsyncSession, code: str, user_id: str, ready: bool) -> LobbyUpdate:
    async with rollback_on_error(session):
        team = await load_team(session, code, lock=True)
        member = find_member(team, user_id)
        if not member:
            raise NotAMember("You are not a member of this team", team_code=team.code)
        if team.status in LOCKED_STATUSES:
            raise TeamLocked(f"Team is already {team.status}", team_code=team.code)
        if member.ready == ready:
            await session.commit()
            return LobbyUpdate(team=team, changed=False)
        member.ready = ready
        touch_team(team, utcnow())
        await session.commit()
    log.info("team_member_ready", team_id=str(team.id), user_id=user_id, ready=ready, status=display_status(team))
    return LobbyUpdate(team=team, changed=True)


async def start_team(session: AsyncSession, code: str, user_id: str) -> LobbyUpdate:
    """
    Leader-only latch into `started`.

    Requires at least TEAM_MIN_MEMBERS members, all ready. Calling it again
    after success returns the started team with changed=False.
    """
    async with rollback_on_error(session):
        team = await load_team(session, code, lock=True)
        if user_id != team.created_by:
            raise CannotStart("Only the team leader can start the contest", reason=CannotStart.NOT_LEADER)
        if team.status == "started":
            await session.commit()
            return LobbyUpdate(team=team, changed=False)
        if team.status == "completed":
            raise TeamLocked("Team is already completed", team_code=team.code)

        contest = await get_contest(session, team.contest_id)
        assert_not_ended(contest)

        count = len(team.members)
        if count < settings.team_min_members:
            raise CannotStart(
                f"At least {settings.team_min_members} members are needed to start",
                reason=CannotStart.TOO_FEW_MEMBERS,
                member_count=count,
                required=settings.team_min_members,
            )
        pending = [m.user_name for m in team.members if not m.ready]
        if pending:
            raise CannotStart(
                "Waiting for: " + ", ".join(pending),
                reason=CannotStart.NOT_ALL_READY,
                pending=pending,
            )

        now = utcnow()
        team.status = "started"
        team.started_at = now
        team.ready_at = team.ready_at or now
        team.updated_at = now
        await session.commit()
    log.info("team_started", team_id=str(team.id), code=team.code, members=count)
    return LobbyUpdate(team=team, changed=True)


async def complete_team(session: AsyncSession, code: str, actor_id: str | None = None) -> LobbyUpdate:
    """
    Archive a team once its contest is over; idempotent.

    `actor_id` must be the leader when given; None means an admin call.
    """
    async with rollback_on_error(session):
        team = await load_team(session, code, lock=True)
        if actor_id is not None and actor_id != team.created_by:
            raise NotTeamLeader("Only the team leader or an admin can complete a team", team_code=team.code)
        if team.status == "completed":
            await session.commit()
            return LobbyUpdate(team=team, changed=False)
        now = utcnow()
        team.status = "completed"
        team.completed_at = now
        team.updated_at = now
        await session.commit()
    log.info("team_completed", team_id=str(team.id), code=team.code, by=actor_id or "admin")
    return LobbyUpdate(team=team, changed=True)
