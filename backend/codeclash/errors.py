from __future__ import annotations
from typing import Any
from pydantic.alias_generators import to_camel


class CodeClashError(Exception):
    """Base for domain errors; rendered by the app as {"detail", "code", ...extra}."""
    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **{to_camel(k): v for k, v in self.extra.items()}}


class ValidationError(CodeClashError):
    status_code = 422
    code = "validation_error"


class ContestNotFound(CodeClashError):
    status_code = 404
    code = "contest_not_found"


class TeamNotFound(CodeClashError):
    status_code = 404
    code = "team_not_found"


class NotAMember(CodeClashError):
    status_code = 403
    code = "not_a_member"


class NotAdmitted(CodeClashError):
    status_code = 403
    code = "not_admitted"


class NotTeamLeader(CodeClashError):
    status_code = 403
    code = "not_team_leader"


class AlreadyOnAnotherTeam(CodeClashError):
    status_code = 409
    code = "already_on_another_team"


class TeamLocked(CodeClashError):
    status_code = 409
    code = "team_locked"


class TeamFull(CodeClashError):
    status_code = 409
    code = "team_full"


class CannotStart(CodeClashError):
    """`reason` is one of NOT_LEADER, TOO_FEW_MEMBERS, NOT_ALL_READY."""
    status_code = 409
    code = "cannot_start"

    NOT_LEADER = "not_leader"
    TOO_FEW_MEMBERS = "too_few_members"
    NOT_ALL_READY = "not_all_ready"

    def __init__(self, message: str, *, reason: str, **extra: Any):
        super().__init__(message, reason=reason, **extra)
        self.reason = reason


class InvalidContestState(CodeClashError):
    status_code = 400
    code = "invalid_contest_state"


class ContestEnded(InvalidContestState):
    status_code = 410
    code = "contest_ended"
