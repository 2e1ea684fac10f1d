"""Turns a join code (typed or from an invite link) into team membership."""
from __future__ import annotations
from dataclasses import dataclass
from uuid import UUID
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from codeclash.config import settings
from codeclash.errors import AlreadyOnAnotherTeam, TeamLocked, TeamFull
from codeclash.models.team import Team, TeamMember, LOCKED_STATUSES
from codeclash.services.contests import get_contest
from codeclash.services.contest_window import assert_not_ended, utcnow
from codeclash.services.join_code import invite_link
from codeclash.services.lobby import (
    create_team, load_team, find_member, get_by_user_and_contest, rollback_on_error, touch_team,
)
from codeclash.services.users import UserRef

log = structlog.get_logger()


@dataclass
class JoinResult:
    team: Team
    joined: bool  # False when the user was already on this team


@dataclass
class SharedTeam:
    team: Team
    invite_link: str


async def join_by_code(session: AsyncSession, code: str, user: UserRef) -> JoinResult:
    async with rollback_on_error(session):
        team = await load_team(session, code, lock=True)
        if find_member(team, user.id):
            await session.commit()
            log.info("team_join_duplicate", team_id=str(team.id), user_id=user.id)
            return JoinResult(team=team, joined=False)

        if await get_by_user_and_contest(session, user.id, team.contest_id):
            raise AlreadyOnAnotherTeam("You already belong to another team in this contest")
        if team.status in LOCKED_STATUSES:
            raise TeamLocked(f"Team is already {team.status}; joining is closed", team_code=team.code)
        contest = await get_contest(session, team.contest_id)
        assert_not_ended(contest)
        if len(team.members) >= settings.team_max_members:
            raise TeamFull(f"Team is full ({settings.team_max_members} members max)", team_code=team.code)

        now = utcnow()
        team.members.append(TeamMember(
            contest_id=team.contest_id,
            user_id=user.id,
            user_name=user.display_name,
            user_image=user.avatar_url,
            role="member",
            ready=False,
            joined_at=now,
        ))
        touch_team(team, now)
        team_code = team.code
        try:
            await session.commit()
        except IntegrityError:
            # Lost a race against another join by the same user
            await session.rollback()
            team = await load_team(session, team_code)
            if find_member(team, user.id):
                return JoinResult(team=team, joined=False)
            raise AlreadyOnAnotherTeam("You already belong to another team in this contest")

    log.info("team_member_joined", team_id=str(team.id), user_id=user.id, members=len(team.members))
    return JoinResult(team=team, joined=True)


async def create_and_share(session: AsyncSession, contest_id: UUID, user: UserRef, team_name: str) -> SharedTeam:
    team = await create_team(session, contest_id, user, team_name)
    return SharedTeam(team=team, invite_link=invite_link(team.contest_id, team.code))
