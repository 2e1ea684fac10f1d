from __future__ import annotations
from pydantic import EmailStr, Field
from typing import Literal
from uuid import UUID
from datetime import datetime
from codeclash.schemas.base import CamelModel
from codeclash.schemas.contest import ContestPublic, ParticipantPublic, RuntimeState
from codeclash.schemas.team import TeamPublic

AdmissionPath = Literal["individual", "team"]

class AdmissionRequest(CamelModel):
    user_id: str = Field(min_length=1, max_length=128)
    user_name: str = Field(min_length=1, max_length=120)
    user_email: EmailStr | None = None
    user_image: str | None = Field(default=None, max_length=500)
    code: str | None = Field(default=None, max_length=32, description="team join code or invite code")

class AdmissionDecision(CamelModel):
    contest_id: UUID
    path: AdmissionPath
    runtime_state: RuntimeState

class LobbyView(CamelModel):
    """What the lobby screen renders; `redirect` is the only navigation trigger."""
    contest_id: UUID
    path: AdmissionPath
    redirect: bool
    countdown_seconds: int | None = None
    workspace_available_at: datetime | None = None
    participant: ParticipantPublic | None = None
    team: TeamPublic | None = None
    already_joined: bool = False

class WorkspaceView(CamelModel):
    contest: ContestPublic
    path: AdmissionPath
    team: TeamPublic | None = None
