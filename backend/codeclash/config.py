from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "codeclash-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "CodeClash")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/codeclash_dev")
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")
    lobby_events_enabled: bool = os.getenv("LOBBY_EVENTS_ENABLED", "1") == "1"

    # Identity tokens are minted by the auth service; we only verify them
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    auth_required: bool = os.getenv("AUTH_REQUIRED", "0") == "1"

    # Admission / lobby rules
    individual_countdown_seconds: int = int(os.getenv("INDIVIDUAL_COUNTDOWN_SECONDS", "5"))
    team_min_members: int = int(os.getenv("TEAM_MIN_MEMBERS", "2"))
    team_max_members: int = int(os.getenv("TEAM_MAX_MEMBERS", "3"))
    join_code_length: int = int(os.getenv("JOIN_CODE_LENGTH", "6"))
    invite_base_url: str = os.getenv("INVITE_BASE_URL", "http://localhost:5173")

settings = Settings()
