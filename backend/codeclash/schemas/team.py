from __future__ import annotations
from pydantic import Field
from typing import Literal
from uuid import UUID
from datetime import datetime
from codeclash.schemas.base import CamelModel

Role = Literal["leader", "member"]
TeamStatus = Literal["waiting", "ready", "started", "completed"]

class TeamCreate(CamelModel):
    contest_id: UUID
    user_id: str = Field(min_length=1, max_length=128)
    user_name: str = Field(min_length=1, max_length=120)
    user_image: str | None = Field(default=None, max_length=500)
    # Blank names are rejected by the lobby with a domain ValidationError
    team_name: str = Field(max_length=80)

class TeamJoin(CamelModel):
    code: str = Field(max_length=32)
    user_id: str = Field(min_length=1, max_length=128)
    user_name: str = Field(min_length=1, max_length=120)
    user_image: str | None = Field(default=None, max_length=500)

class ReadyUpdate(CamelModel):
    user_id: str = Field(min_length=1, max_length=128)
    ready: bool

class StartRequest(CamelModel):
    user_id: str = Field(min_length=1, max_length=128)

class MemberPublic(CamelModel):
    user_id: str
    user_name: str
    user_image: str | None = None
    role: Role
    ready: bool
    joined_at: datetime

class TeamPublic(CamelModel):
    id: UUID
    name: str
    contest_id: UUID
    code: str
    created_by: str
    members: list[MemberPublic]
    status: TeamStatus
    member_count: int
    all_ready: bool
    ready_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    invite_link: str
