from __future__ import annotations
import uuid
from datetime import datetime, timezone
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String, Boolean, DateTime, ForeignKey, Uuid, CheckConstraint, UniqueConstraint, Index, func, text,
)
from codeclash.db import Base

# Stored lifecycle is waiting/started/completed; "ready" is derived on read
# (services.lobby.display_status). These close the lobby.
LOCKED_STATUSES = ("started", "completed")

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class Team(Base):
    __tablename__ = "teams"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    contest_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("contests.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    code: Mapped[str] = mapped_column(String(12), unique=True, index=True, nullable=False)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="waiting")
    ready_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, server_default=func.now(), nullable=False)

    members: Mapped[list["TeamMember"]] = relationship(
        back_populates="team",
        order_by="TeamMember.joined_at",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("status IN ('waiting', 'started', 'completed')", name="status_known"),
    )

class TeamMember(Base):
    __tablename__ = "team_members"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("teams.id", ondelete="CASCADE"), index=True, nullable=False)
    # Denormalized from the team so "one team per contest" is a plain unique constraint
    contest_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("contests.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    user_name: Mapped[str] = mapped_column(String(120), nullable=False)
    user_image: Mapped[str | None] = mapped_column(String(500))
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="member")  # leader|member
    ready: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    team: Mapped[Team] = relationship(back_populates="members")

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
        UniqueConstraint("contest_id", "user_id", name="uq_team_members_contest_user"),
        Index(
            "uq_team_members_one_leader", "team_id", unique=True,
            postgresql_where=text("role = 'leader'"),
            sqlite_where=text("role = 'leader'"),
        ),
        CheckConstraint("role IN ('leader', 'member')", name="role_known"),
    )
