"""
contest_engine/errors.py
Centralized error taxonomy for the engine.

Every failure an operation can report is an EngineError subclass. The
class hierarchy has one intermediate class per kind:

- ValidationError      malformed input; caller fixes the input
- StateConflict        not allowed in the current lifecycle phase
- CapacityConflict     capacity or uniqueness exhausted
- IntegrityViolation   would break a cross-entity invariant
- NotFoundError        referenced id does not exist
- ForbiddenError       acting user lacks the capability

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "StateConflict",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (offending field / condition)
}

details never carries storage internals (SQL, constraint names, stack traces).
"""
import logging
from typing import Optional, Dict, Any

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    # ValidationError
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_TIME_RANGE = "INVALID_TIME_RANGE"
    INVALID_DEADLINE = "INVALID_DEADLINE"
    NAME_REQUIRED = "NAME_REQUIRED"
    SCORE_OUT_OF_RANGE = "SCORE_OUT_OF_RANGE"
    CRITERION_COMPETITION_MISMATCH = "CRITERION_COMPETITION_MISMATCH"
    CAPACITY_BELOW_REGISTRATIONS = "CAPACITY_BELOW_REGISTRATIONS"

    # StateConflict
    NOT_OPEN = "NOT_OPEN"
    DEADLINE_PASSED = "DEADLINE_PASSED"
    SUBMISSIONS_CLOSED = "SUBMISSIONS_CLOSED"
    SUBMISSIONS_NOT_OPEN = "SUBMISSIONS_NOT_OPEN"
    NOT_JUDGING_PHASE = "NOT_JUDGING_PHASE"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    COMPETITION_LOCKED = "COMPETITION_LOCKED"
    REGISTRATION_LOCKED = "REGISTRATION_LOCKED"
    TEAMS_LOCKED = "TEAMS_LOCKED"
    NOT_REGISTERED = "NOT_REGISTERED"

    # CapacityConflict
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    ALREADY_MEMBER = "ALREADY_MEMBER"
    TEAM_NAME_TAKEN = "TEAM_NAME_TAKEN"

    # IntegrityViolation
    CAPTAIN_CANNOT_LEAVE = "CAPTAIN_CANNOT_LEAVE"
    CAPTAIN_CANNOT_WITHDRAW = "CAPTAIN_CANNOT_WITHDRAW"
    NOT_TEAM_MEMBER = "NOT_TEAM_MEMBER"
    CRITERION_LOCKED = "CRITERION_LOCKED"

    # NotFound
    COMPETITION_NOT_FOUND = "COMPETITION_NOT_FOUND"
    TEAM_NOT_FOUND = "TEAM_NOT_FOUND"
    SUBMISSION_NOT_FOUND = "SUBMISSION_NOT_FOUND"
    CRITERION_NOT_FOUND = "CRITERION_NOT_FOUND"
    REGISTRATION_NOT_FOUND = "REGISTRATION_NOT_FOUND"
    SNAPSHOT_NOT_FOUND = "SNAPSHOT_NOT_FOUND"

    # Forbidden / auth
    FORBIDDEN = "FORBIDDEN"
    NOT_TEAM_CAPTAIN = "NOT_TEAM_CAPTAIN"
    NOT_SUBMISSION_AUTHOR = "NOT_SUBMISSION_AUTHOR"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_INVALID = "AUTH_INVALID"

    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standard error response model"""
    success: bool = False
    error: str
    message: str
    code: str
    details: Optional[Dict[str, Any]] = None


class EngineError(Exception):
    """Base engine exception with consistent structure"""

    kind = "Error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(message)

    @property
    def error(self) -> str:
        return self.kind

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "success": False,
            "error": self.kind,
            "message": self.message,
            "code": self.code
        }
        if self.details:
            result["details"] = self.details
        return result

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse"""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


# =============================================================================
# Kinds
# =============================================================================

class ValidationError(EngineError):
    """400 - malformed input"""
    kind = "ValidationError"
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, field: Optional[str] = None, code: Optional[str] = None, details: Optional[Dict] = None):
        details = dict(details or {})
        if field:
            details.setdefault("field", field)
        super().__init__(message, code=code, details=details)


class StateConflict(EngineError):
    """409 - not permitted in the current lifecycle phase"""
    kind = "StateConflict"
    status_code = status.HTTP_409_CONFLICT
    default_code = ErrorCode.COMPETITION_LOCKED


class CapacityConflict(EngineError):
    """409 - capacity or uniqueness exhausted"""
    kind = "CapacityConflict"
    status_code = status.HTTP_409_CONFLICT
    default_code = ErrorCode.CAPACITY_EXCEEDED


class IntegrityViolation(EngineError):
    """409 - would break an invariant; needs a different operation sequence"""
    kind = "IntegrityViolation"
    status_code = status.HTTP_409_CONFLICT
    default_code = ErrorCode.NOT_TEAM_MEMBER


class NotFoundError(EngineError):
    """404 - resource does not exist"""
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier: Any = None, code: Optional[str] = None):
        message = f"{resource} not found"
        details = {}
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
            details["id"] = identifier
        super().__init__(message, code=code, details=details)


class ForbiddenError(EngineError):
    """403 - access denied"""
    kind = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_code = ErrorCode.FORBIDDEN


class UnauthorizedError(EngineError):
    """401 - bearer token missing or invalid"""
    kind = "Unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = ErrorCode.AUTH_REQUIRED

    def __init__(self, message: str = "Authentication required", code: Optional[str] = None):
        super().__init__(message, code=code)


# =============================================================================
# ValidationError
# =============================================================================

class InvalidTimeRange(ValidationError):
    def __init__(self, start_at, end_at):
        super().__init__(
            "end_at must not be before start_at",
            field="end_at",
            code=ErrorCode.INVALID_TIME_RANGE,
            details={"start_at": start_at.isoformat(), "end_at": end_at.isoformat()},
        )


class InvalidDeadline(ValidationError):
    def __init__(self, deadline, start_at):
        super().__init__(
            "registration_deadline must not be after start_at",
            field="registration_deadline",
            code=ErrorCode.INVALID_DEADLINE,
            details={"registration_deadline": deadline.isoformat(), "start_at": start_at.isoformat()},
        )


class NameRequired(ValidationError):
    def __init__(self, field: str = "name"):
        super().__init__(f"{field} must not be blank", field=field, code=ErrorCode.NAME_REQUIRED)


class ScoreOutOfRange(ValidationError):
    def __init__(self, score: int, max_score: int):
        super().__init__(
            f"Score {score} is outside [0, {max_score}]",
            field="score",
            code=ErrorCode.SCORE_OUT_OF_RANGE,
            details={"score": score, "min": 0, "max": max_score},
        )


class CriterionCompetitionMismatch(ValidationError):
    def __init__(self, criterion_id: int, competition_id: int):
        super().__init__(
            "Criterion does not belong to the submission's competition",
            field="criterion_id",
            code=ErrorCode.CRITERION_COMPETITION_MISMATCH,
            details={"criterion_id": criterion_id, "competition_id": competition_id},
        )


class CapacityBelowRegistrations(ValidationError):
    def __init__(self, requested: int, registered: int):
        super().__init__(
            f"max_participants {requested} is below the {registered} active registrations",
            field="max_participants",
            code=ErrorCode.CAPACITY_BELOW_REGISTRATIONS,
            details={"requested": requested, "registered": registered},
        )


# =============================================================================
# StateConflict
# =============================================================================

class NotOpen(StateConflict):
    def __init__(self, competition_id: int, status_value: str):
        super().__init__(
            f"Competition {competition_id} is not accepting registrations",
            code=ErrorCode.NOT_OPEN,
            details={"competition_id": competition_id, "status": status_value},
        )


class DeadlinePassed(StateConflict):
    def __init__(self, competition_id: int, deadline):
        super().__init__(
            f"Registration deadline for competition {competition_id} has passed",
            code=ErrorCode.DEADLINE_PASSED,
            details={"competition_id": competition_id, "registration_deadline": deadline.isoformat()},
        )


class SubmissionsClosed(StateConflict):
    def __init__(self, competition_id: int, status_value: str):
        super().__init__(
            f"Submissions for competition {competition_id} are closed",
            code=ErrorCode.SUBMISSIONS_CLOSED,
            details={"competition_id": competition_id, "status": status_value},
        )


class SubmissionsNotOpen(StateConflict):
    def __init__(self, competition_id: int, status_value: str):
        super().__init__(
            f"Submissions for competition {competition_id} are not open yet",
            code=ErrorCode.SUBMISSIONS_NOT_OPEN,
            details={"competition_id": competition_id, "status": status_value},
        )


class NotJudgingPhase(StateConflict):
    def __init__(self, competition_id: int, status_value: str):
        super().__init__(
            f"Competition {competition_id} is not in judging",
            code=ErrorCode.NOT_JUDGING_PHASE,
            details={"competition_id": competition_id, "status": status_value},
        )


class InvalidTransition(StateConflict):
    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot transition from {current} to {target}",
            code=ErrorCode.INVALID_TRANSITION,
            details={"current_status": current, "target_status": target},
        )


class CompetitionLocked(StateConflict):
    def __init__(self, competition_id: int, fields):
        super().__init__(
            f"Competition {competition_id} is completed; only title and description can change",
            code=ErrorCode.COMPETITION_LOCKED,
            details={"competition_id": competition_id, "fields": sorted(fields)},
        )


class RegistrationLocked(StateConflict):
    def __init__(self, competition_id: int, status_value: str):
        super().__init__(
            f"Registrations for competition {competition_id} can no longer change",
            code=ErrorCode.REGISTRATION_LOCKED,
            details={"competition_id": competition_id, "status": status_value},
        )


class TeamsLocked(StateConflict):
    def __init__(self, competition_id: int, status_value: str):
        super().__init__(
            f"Teams in competition {competition_id} can no longer change",
            code=ErrorCode.TEAMS_LOCKED,
            details={"competition_id": competition_id, "status": status_value},
        )


class NotRegistered(StateConflict):
    def __init__(self, competition_id: int, user_id: str):
        super().__init__(
            f"User is not registered for competition {competition_id}",
            code=ErrorCode.NOT_REGISTERED,
            details={"competition_id": competition_id, "user_id": user_id},
        )


# =============================================================================
# CapacityConflict
# =============================================================================

class CapacityExceeded(CapacityConflict):
    def __init__(self, competition_id: int, max_participants: Optional[int]):
        super().__init__(
            f"Competition {competition_id} is full",
            code=ErrorCode.CAPACITY_EXCEEDED,
            details={"competition_id": competition_id, "max_participants": max_participants},
        )


class AlreadyRegistered(CapacityConflict):
    def __init__(self, competition_id: int, user_id: str):
        super().__init__(
            f"User is already registered for competition {competition_id}",
            code=ErrorCode.ALREADY_REGISTERED,
            details={"competition_id": competition_id, "user_id": user_id},
        )


class AlreadyMember(CapacityConflict):
    def __init__(self, team_id: int, user_id: str):
        super().__init__(
            f"User is already a member of team {team_id}",
            code=ErrorCode.ALREADY_MEMBER,
            details={"team_id": team_id, "user_id": user_id},
        )


class TeamNameTaken(CapacityConflict):
    def __init__(self, competition_id: int, name: str):
        super().__init__(
            f"A team named '{name}' already exists in competition {competition_id}",
            code=ErrorCode.TEAM_NAME_TAKEN,
            details={"competition_id": competition_id, "field": "name"},
        )


# =============================================================================
# IntegrityViolation
# =============================================================================

class CaptainCannotLeave(IntegrityViolation):
    def __init__(self, team_id: int):
        super().__init__(
            "Captain cannot leave the team. Transfer captaincy first.",
            code=ErrorCode.CAPTAIN_CANNOT_LEAVE,
            details={"team_id": team_id},
        )


class CaptainCannotWithdraw(IntegrityViolation):
    def __init__(self, competition_id: int, team_ids):
        super().__init__(
            "Captains cannot withdraw. Transfer captaincy first.",
            code=ErrorCode.CAPTAIN_CANNOT_WITHDRAW,
            details={"competition_id": competition_id, "team_ids": list(team_ids)},
        )


class NotTeamMember(IntegrityViolation):
    def __init__(self, team_id: int, user_id: str):
        super().__init__(
            f"User is not a member of team {team_id}",
            code=ErrorCode.NOT_TEAM_MEMBER,
            details={"team_id": team_id, "user_id": user_id},
        )


class CriterionLocked(IntegrityViolation):
    def __init__(self, criterion_id: int):
        super().__init__(
            f"Criterion {criterion_id} already has scores and cannot change",
            code=ErrorCode.CRITERION_LOCKED,
            details={"criterion_id": criterion_id},
        )


# =============================================================================
# NotFound
# =============================================================================

class CompetitionNotFound(NotFoundError):
    def __init__(self, competition_id: int):
        super().__init__("Competition", competition_id, code=ErrorCode.COMPETITION_NOT_FOUND)


class TeamNotFound(NotFoundError):
    def __init__(self, team_id: int):
        super().__init__("Team", team_id, code=ErrorCode.TEAM_NOT_FOUND)


class SubmissionNotFound(NotFoundError):
    def __init__(self, submission_id: int):
        super().__init__("Submission", submission_id, code=ErrorCode.SUBMISSION_NOT_FOUND)


class CriterionNotFound(NotFoundError):
    def __init__(self, criterion_id: int):
        super().__init__("Criterion", criterion_id, code=ErrorCode.CRITERION_NOT_FOUND)


class RegistrationNotFound(NotFoundError):
    def __init__(self, competition_id: int):
        super().__init__("Registration for competition", competition_id, code=ErrorCode.REGISTRATION_NOT_FOUND)


class SnapshotNotFound(NotFoundError):
    def __init__(self, competition_id: int):
        super().__init__("Frozen ranking for competition", competition_id, code=ErrorCode.SNAPSHOT_NOT_FOUND)


# =============================================================================
# Forbidden
# =============================================================================

class PermissionDenied(ForbiddenError):
    def __init__(self, action: str):
        super().__init__(
            f"Not allowed to {action}",
            code=ErrorCode.FORBIDDEN,
            details={"action": action},
        )


class NotTeamCaptain(ForbiddenError):
    def __init__(self, team_id: int):
        super().__init__(
            "Only the team captain can perform this action",
            code=ErrorCode.NOT_TEAM_CAPTAIN,
            details={"team_id": team_id},
        )


class NotSubmissionAuthor(ForbiddenError):
    def __init__(self, submission_id: int):
        super().__init__(
            "Only the original author can update a submission",
            code=ErrorCode.NOT_SUBMISSION_AUTHOR,
            details={"submission_id": submission_id},
        )


def get_error_summary() -> Dict[str, Any]:
    """Error handling documentation for the health endpoint"""
    return {
        "version": "1.0.0",
        "status_codes": {
            "400": "ValidationError",
            "401": "Unauthorized",
            "403": "Forbidden",
            "404": "NotFound",
            "409": "StateConflict / CapacityConflict / IntegrityViolation",
            "422": "Request body validation (pydantic)",
            "429": "Rate limit exceeded",
            "500": "Internal error (never caused by user input)",
        },
        "error_codes": sorted(
            value for name, value in vars(ErrorCode).items()
            if not name.startswith("_") and isinstance(value, str)
        ),
    }
