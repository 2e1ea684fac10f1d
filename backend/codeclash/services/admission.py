"""
Contest admission: picks the individual or team path and gates the workspace.

Individual entrants get a fixed countdown measured on their own clock; team
members wait in the lobby until their leader starts the team.
"""
from __future__ import annotations
from datetime import datetime, timedelta
from typing import Literal
import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from codeclash.config import settings
from codeclash.errors import ContestEnded, InvalidContestState, NotAdmitted, TeamNotFound
from codeclash.models.contest import Contest
from codeclash.models.team import Team
from codeclash.schemas.admission import LobbyView, WorkspaceView
from codeclash.services.contests import contest_public
from codeclash.services.contest_window import has_ended, assert_not_ended, ensure_utc, utcnow
from codeclash.services.invites import join_by_code
from codeclash.services.lobby import get_by_code, get_by_user_and_contest, team_public
from codeclash.services.participants import register_participant, get_participant, participant_public
from codeclash.services.users import UserRef

log = structlog.get_logger()

Intent = Literal["view", "join"]


def resolve_admission(contest: Contest, *, intent: Intent = "view", now: datetime | None = None) -> str:
    """Admission path for `contest`; joining a finished contest raises ContestEnded."""
    if intent == "join" and has_ended(contest.ends_at, now):
        raise ContestEnded(f"Contest '{contest.title}' has ended", contest_id=str(contest.id))
    if contest.contest_type not in ("individual", "team"):
        raise InvalidContestState(f"Unknown contest type {contest.contest_type!r}")
    return contest.contest_type


def _team_view(contest_id, team: Team | None, already_joined: bool = False) -> LobbyView:
    return LobbyView(
        contest_id=contest_id,
        path="team",
        redirect=bool(team is not None and team.status == "started"),
        team=team_public(team) if team is not None else None,
        already_joined=already_joined,
    )


async def individual_admission(session: AsyncSession, contest: Contest, user: UserRef, now: datetime | None = None) -> LobbyView:
    participant, created = await register_participant(session, contest, user)
    now = now or utcnow()
    countdown = settings.individual_countdown_seconds
    # A repeat admission keeps the countdown that started with the first one
    started = now if created else ensure_utc(participant.joined_at)
    available_at = started + timedelta(seconds=countdown)
    return LobbyView(
        contest_id=participant.contest_id,
        path="individual",
        redirect=now >= available_at,
        countdown_seconds=countdown,
        workspace_available_at=available_at,
        participant=participant_public(participant, already_joined=not created),
        already_joined=not created,
    )


async def team_admission(session: AsyncSession, contest: Contest, user: UserRef, code: str | None = None) -> LobbyView:
    """
    Join by `code` when given, then report the user's team in this contest.

    The view carries redirect=True once the team has started; without a team
    the caller shows the create/join form.
    """
    if contest.contest_type != "team":
        raise InvalidContestState("This contest is not a team contest", contest_id=str(contest.id))
    assert_not_ended(contest)
    cid = contest.id
    if code and code.strip():
        target = await get_by_code(session, code)
        if target.contest_id != cid:
            raise TeamNotFound("That team code belongs to a different contest")
        result = await join_by_code(session, code, user)
        return _team_view(cid, result.team, already_joined=not result.joined)
    team = await get_by_user_and_contest(session, user.id, cid)
    return _team_view(cid, team, already_joined=team is not None)


async def admit(session: AsyncSession, contest: Contest, user: UserRef, code: str | None = None) -> LobbyView:
    path = resolve_admission(contest, intent="join")
    log.info("admission_requested", contest_id=str(contest.id), user_id=user.id, path=path)
    if path == "individual":
        return await individual_admission(session, contest, user)
    return await team_admission(session, contest, user, code)


async def lobby_state(session: AsyncSession, contest: Contest, user_id: str, now: datetime | None = None) -> LobbyView:
    """Poll target for lobby screens; stops with ContestEnded once the window closes."""
    now = now or utcnow()
    assert_not_ended(contest, now)
    if contest.contest_type == "team":
        team = await get_by_user_and_contest(session, user_id, contest.id)
        return _team_view(contest.id, team, already_joined=team is not None)

    participant = await get_participant(session, contest.id, user_id)
    countdown = settings.individual_countdown_seconds
    if participant is None:
        return LobbyView(contest_id=contest.id, path="individual", redirect=False, countdown_seconds=countdown)
    available_at = ensure_utc(participant.joined_at) + timedelta(seconds=countdown)
    return LobbyView(
        contest_id=contest.id,
        path="individual",
        redirect=now >= available_at,
        countdown_seconds=countdown,
        workspace_available_at=available_at,
        participant=participant_public(participant, already_joined=True),
        already_joined=True,
    )


async def workspace_access(session: AsyncSession, contest: Contest, user_id: str, now: datetime | None = None) -> WorkspaceView:
    now = now or utcnow()
    assert_not_ended(contest, now)
    if contest.contest_type == "team":
        team = await get_by_user_and_contest(session, user_id, contest.id)
        if team is None or team.status != "started":
            raise NotAdmitted("Your team has not started this contest yet")
        return WorkspaceView(contest=contest_public(contest, now), path="team", team=team_public(team))

    if await get_participant(session, contest.id, user_id) is None:
        raise NotAdmitted("Join this contest before opening the workspace")
    return WorkspaceView(contest=contest_public(contest, now), path="individual")
