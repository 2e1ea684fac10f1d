from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from codeclash.db import get_session
from codeclash.auth_deps import get_token_subject, ensure_actor
from codeclash.schemas.admission import AdmissionRequest, AdmissionDecision, LobbyView, WorkspaceView
from codeclash.schemas.contest import ContestPublic, ContestType
from codeclash.services.admission import admit, resolve_admission, lobby_state, workspace_access
from codeclash.services.contests import get_contest, list_contests, contest_public
from codeclash.services.contest_window import runtime_state
from codeclash.services.lobby_events import publish_team_event
from codeclash.services.users import UserRef

router = APIRouter(prefix="/contests", tags=["contests"])

@router.get("", response_model=list[ContestPublic])
async def list_all_contests(
    contest_type: ContestType | None = Query(default=None, alias="type"),
    session: AsyncSession = Depends(get_session),
):
    rows = await list_contests(session, contest_type)
    return [contest_public(c, with_problems=False) for c in rows]

@router.get("/{contest_id}", response_model=ContestPublic)
async def get_one(contest_id: UUID, session: AsyncSession = Depends(get_session)):
    return contest_public(await get_contest(session, contest_id))

@router.get("/{contest_id}/admission", response_model=AdmissionDecision)
async def admission_path(contest_id: UUID, session: AsyncSession = Depends(get_session)):
    contest = await get_contest(session, contest_id)
    return AdmissionDecision(
        contest_id=contest.id,
        path=resolve_admission(contest, intent="view"),
        runtime_state=runtime_state(contest.starts_at, contest.ends_at),
    )

@router.post("/{contest_id}/admission", response_model=LobbyView)
async def request_admission(
    contest_id: UUID,
    payload: AdmissionRequest,
    session: AsyncSession = Depends(get_session),
    subject: str | None = Depends(get_token_subject),
):
    ensure_actor(subject, payload.user_id)
    contest = await get_contest(session, contest_id)
    user = UserRef(
        id=payload.user_id,
        display_name=payload.user_name,
        avatar_url=payload.user_image,
        email=payload.user_email,
    )
    view = await admit(session, contest, user, payload.code)
    if payload.code and view.team is not None and not view.already_joined:
        await publish_team_event(view.team, "member_joined", userId=user.id)
    return view

@router.get("/{contest_id}/lobby", response_model=LobbyView)
async def poll_lobby(
    contest_id: UUID,
    user_id: str = Query(..., alias="userId", min_length=1),
    session: AsyncSession = Depends(get_session),
):
    contest = await get_contest(session, contest_id)
    return await lobby_state(session, contest, user_id)

@router.get("/{contest_id}/workspace", response_model=WorkspaceView)
async def open_workspace(
    contest_id: UUID,
    user_id: str = Query(..., alias="userId", min_length=1),
    session: AsyncSession = Depends(get_session),
    subject: str | None = Depends(get_token_subject),
):
    ensure_actor(subject, user_id)
    contest = await get_contest(session, contest_id)
    return await workspace_access(session, contest, user_id)
