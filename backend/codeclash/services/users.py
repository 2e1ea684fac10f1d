from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class UserRef:
    """Authenticated user as described by the identity provider."""
    id: str
    display_name: str
    avatar_url: str | None = None
    email: str | None = None
