from __future__ import annotations
from pydantic import EmailStr, Field
from typing import Literal
from uuid import UUID
from datetime import datetime
from codeclash.schemas.base import CamelModel

ContestType = Literal["individual", "team"]
RuntimeState = Literal["upcoming", "running", "finished"]

class ProblemPublic(CamelModel):
    id: UUID
    title: str
    description: str | None = None
    difficulty: str
    category: str | None = None

class ContestPublic(CamelModel):
    id: UUID
    title: str
    description: str | None = None
    type: ContestType
    start_time: datetime
    end_time: datetime
    created_at: datetime
    runtime_state: RuntimeState
    problems: list[ProblemPublic] = []

class ParticipantCreate(CamelModel):
    contest_id: UUID
    user_id: str = Field(min_length=1, max_length=128)
    user_name: str = Field(min_length=1, max_length=120)
    user_email: EmailStr | None = None

class ParticipantPublic(CamelModel):
    id: UUID
    contest_id: UUID
    user_id: str
    user_name: str
    user_email: str | None = None
    type: ContestType
    joined_at: datetime
    already_joined: bool = False

class CountRow(CamelModel):
    key: str
    count: int

class ParticipantStats(CamelModel):
    total_participants: int
    by_type: list[CountRow]
    by_contest: list[CountRow]
