from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from codeclash.db import get_session
from codeclash.auth_deps import get_token_subject, ensure_actor, require_token_claims, is_admin
from codeclash.errors import TeamNotFound
from codeclash.schemas.team import TeamCreate, TeamJoin, ReadyUpdate, StartRequest, TeamPublic, TeamStatus
from codeclash.services.invites import create_and_share, join_by_code
from codeclash.services.lobby import (
    get_by_code, get_by_user_and_contest, list_teams, set_ready, start_team, complete_team, team_public,
)
from codeclash.services.lobby_events import publish_team_event
from codeclash.services.users import UserRef

router = APIRouter(prefix="/teams", tags=["teams"])

@router.get("", response_model=list[TeamPublic])
async def list_all_teams(
    contest_id: UUID | None = Query(default=None, alias="contestId"),
    status: TeamStatus | None = Query(default=None),
    q: str | None = Query(default=None, description="search by team name, code or member name"),
    session: AsyncSession = Depends(get_session),
):
    rows = await list_teams(session, contest_id=contest_id, status=status, search=q)
    return [team_public(t) for t in rows]

@router.post("", response_model=TeamPublic, status_code=201)
async def create_team(
    payload: TeamCreate,
    session: AsyncSession = Depends(get_session),
    subject: str | None = Depends(get_token_subject),
):
    ensure_actor(subject, payload.user_id)
    user = UserRef(id=payload.user_id, display_name=payload.user_name, avatar_url=payload.user_image)
    shared = await create_and_share(session, payload.contest_id, user, payload.team_name)
    out = team_public(shared.team)
    await publish_team_event(out, "team_created", userId=user.id)
    return out

@router.post("/join", response_model=TeamPublic, status_code=201)
async def join_team(
    payload: TeamJoin,
    response: Response,
    session: AsyncSession = Depends(get_session),
    subject: str | None = Depends(get_token_subject),
):
    ensure_actor(subject, payload.user_id)
    user = UserRef(id=payload.user_id, display_name=payload.user_name, avatar_url=payload.user_image)
    result = await join_by_code(session, payload.code, user)
    out = team_public(result.team)
    if result.joined:
        await publish_team_event(out, "member_joined", userId=user.id)
    else:
        # Already a member: same body, no "joined!" notification
        response.status_code = 200
    return out

@router.get("/code/{code}", response_model=TeamPublic)
async def get_team_by_code(code: str, session: AsyncSession = Depends(get_session)):
    return team_public(await get_by_code(session, code))

@router.get("/user/{user_id}", response_model=TeamPublic)
async def get_team_for_user(
    user_id: str,
    contest_id: UUID = Query(..., alias="contestId"),
    session: AsyncSession = Depends(get_session),
):
    team = await get_by_user_and_contest(session, user_id, contest_id)
    if team is None:
        raise TeamNotFound("You are not on a team for this contest")
    return team_public(team)

@router.patch("/{code}/ready", response_model=TeamPublic)
async def update_ready(
    code: str,
    payload: ReadyUpdate,
    session: AsyncSession = Depends(get_session),
    subject: str | None = Depends(get_token_subject),
):
    ensure_actor(subject, payload.user_id)
    update = await set_ready(session, code, payload.user_id, payload.ready)
    out = team_public(update.team)
    if update.changed:
        await publish_team_event(out, "member_ready", userId=payload.user_id, ready=payload.ready)
    return out

@router.patch("/{code}/start", response_model=TeamPublic)
async def start(
    code: str,
    payload: StartRequest,
    session: AsyncSession = Depends(get_session),
    subject: str | None = Depends(get_token_subject),
):
    ensure_actor(subject, payload.user_id)
    update = await start_team(session, code, payload.user_id)
    out = team_public(update.team)
    if update.changed:
        await publish_team_event(out, "team_started")
    return out

@router.patch("/{code}/complete", response_model=TeamPublic)
async def complete(
    code: str,
    session: AsyncSession = Depends(get_session),
    claims: dict = Depends(require_token_claims),
):
    # Leader of the team, or an admin token
    actor_id = None if is_admin(claims) else (claims.get("sub") or "")
    update = await complete_team(session, code, actor_id)
    out = team_public(update.team)
    if update.changed:
        await publish_team_event(out, "team_completed")
    return out
