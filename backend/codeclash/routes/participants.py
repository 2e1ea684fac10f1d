from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from codeclash.db import get_session
from codeclash.auth_deps import get_token_subject, ensure_actor
from codeclash.schemas.contest import ParticipantCreate, ParticipantPublic, ParticipantStats
from codeclash.services.contests import get_contest
from codeclash.services.participants import register_participant, list_participants, participant_stats, participant_public
from codeclash.services.users import UserRef

router = APIRouter(prefix="/contestParticipants", tags=["participants"])

@router.post("", response_model=ParticipantPublic, status_code=201)
async def register(
    payload: ParticipantCreate,
    response: Response,
    session: AsyncSession = Depends(get_session),
    subject: str | None = Depends(get_token_subject),
):
    ensure_actor(subject, payload.user_id)
    contest = await get_contest(session, payload.contest_id)
    user = UserRef(id=payload.user_id, display_name=payload.user_name, email=payload.user_email)
    p, created = await register_participant(session, contest, user)
    if not created:
        response.status_code = 200
    return participant_public(p, already_joined=not created)

@router.get("", response_model=list[ParticipantPublic])
async def list_all(
    contest_id: UUID | None = Query(default=None, alias="contestId"),
    session: AsyncSession = Depends(get_session),
):
    return [participant_public(p) for p in await list_participants(session, contest_id)]

@router.get("/stats", response_model=ParticipantStats)
async def stats(session: AsyncSession = Depends(get_session)):
    return await participant_stats(session)
