from __future__ import annotations
import uuid
from datetime import datetime, timezone
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String, Integer, DateTime, Text, ForeignKey, Table, Column, Uuid,
    CheckConstraint, UniqueConstraint, func,
)
from codeclash.db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

contest_problems = Table(
    "contest_problems",
    Base.metadata,
    Column("contest_id", Uuid, ForeignKey("contests.id", ondelete="CASCADE"), primary_key=True),
    Column("problem_id", Uuid, ForeignKey("problems.id", ondelete="CASCADE"), primary_key=True),
    Column("position", Integer, nullable=False, default=0),
)

class Problem(Base):
    __tablename__ = "problems"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text())
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False, default="easy")  # easy|medium|hard
    category: Mapped[str | None] = mapped_column(String(64))

class Contest(Base):
    """Scheduled by admins elsewhere; read-only here apart from admissions."""
    __tablename__ = "contests"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text())
    contest_type: Mapped[str] = mapped_column("type", String(16), nullable=False, default="individual")  # individual|team
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    problems: Mapped[list[Problem]] = relationship(
        secondary=contest_problems, order_by=contest_problems.c.position, lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="window_order"),
        CheckConstraint("type IN ('individual', 'team')", name="type_known"),
    )

class ContestParticipant(Base):
    """Registration for individual contests; at most one per (contest, user)."""
    __tablename__ = "contest_participants"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    contest_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("contests.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    user_name: Mapped[str] = mapped_column(String(120), nullable=False)
    user_email: Mapped[str | None] = mapped_column(String(320))
    participant_type: Mapped[str] = mapped_column("type", String(16), nullable=False, default="individual")
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("contest_id", "user_id", name="uq_contest_participants_contest_user"),
    )
