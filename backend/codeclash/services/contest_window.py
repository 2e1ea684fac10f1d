from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from codeclash.errors import ContestEnded


def utcnow() -> datetime:
    return datetime.now(dt_tz.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a stored timestamp to an aware UTC datetime.

    PostgreSQL hands back aware values; SQLite drops the offset, and those
    naive values were written as UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_tz.utc)
    return dt.astimezone(dt_tz.utc)


def runtime_state(starts_at: datetime, ends_at: datetime, now: datetime | None = None) -> str:
    """
    Where `now` falls in the contest window.

    Examples:
        >>> from datetime import datetime, timezone
        >>> s = datetime(2025, 1, 10, 12, tzinfo=timezone.utc)
        >>> e = datetime(2025, 1, 10, 14, tzinfo=timezone.utc)
        >>> runtime_state(s, e, datetime(2025, 1, 10, 13, tzinfo=timezone.utc))
        'running'
    """
    now = now or utcnow()
    if now < ensure_utc(starts_at):
        return "upcoming"
    if now <= ensure_utc(ends_at):
        return "running"
    return "finished"


def has_ended(ends_at: datetime, now: datetime | None = None) -> bool:
    return (now or utcnow()) > ensure_utc(ends_at)


def assert_not_ended(contest, now: datetime | None = None) -> None:
    """Raise ContestEnded once the window closed; the end instant itself still counts as open."""
    if has_ended(contest.ends_at, now):
        raise ContestEnded(f"Contest '{contest.title}' has ended", contest_id=str(contest.id))
