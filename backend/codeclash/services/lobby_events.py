from __future__ import annotations
import json
import structlog
from redis import asyncio as aioredis
from codeclash.config import settings
from codeclash.schemas.team import TeamPublic

log = structlog.get_logger()

# Lazy single client
_redis: aioredis.Redis | None = None

def get_redis() -> aioredis.Redis:
    global _redis
    if _redis is None:
        _redis = aioredis.Redis.from_url(settings.redis_url)
    return _redis

async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None

def channel_for(code: str) -> str:
    return f"codeclash:team:{code}"

async def publish_team_event(team: TeamPublic, event: str, **data) -> bool:
    """
    Notify lobby subscribers that `team` changed.

    Best effort: pollers still converge through GET /teams/code/{code}, so a
    Redis outage is logged and otherwise ignored.
    """
    if not settings.lobby_events_enabled:
        return False
    payload = {
        "event": event,
        "teamId": str(team.id),
        "code": team.code,
        "status": team.status,
        "memberCount": team.member_count,
        "allReady": team.all_ready,
        **data,
    }
    try:
        await get_redis().publish(channel_for(team.code), json.dumps(payload))
    except Exception as e:
        log.warning("lobby_event_publish_failed", lobby_event=event, code=team.code, error=str(e))
        return False
    return True
