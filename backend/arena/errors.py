"""
Application errors.

Every error carries a stable machine-readable code plus a details payload so clients can build
localized messages without parsing prose. The HTTP status is a property of the error class.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    # Generic
    UNKNOWN = "UNKNOWN"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Resources
    NOT_FOUND = "NOT_FOUND"
    TOURNAMENT_NOT_FOUND = "TOURNAMENT_NOT_FOUND"
    MATCH_NOT_FOUND = "MATCH_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    TEAM_NOT_FOUND = "TEAM_NOT_FOUND"

    # Permissions
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # Tournament
    TOURNAMENT_INVALID_STATUS = "TOURNAMENT_INVALID_STATUS"
    TOURNAMENT_CLOSED = "TOURNAMENT_CLOSED"
    TOURNAMENT_CANNOT_BE_DELETED = "TOURNAMENT_CANNOT_BE_DELETED"
    TOURNAMENT_NAME_TAKEN = "TOURNAMENT_NAME_TAKEN"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_TEAM_SIZE = "INVALID_TEAM_SIZE"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    MAX_DRAFT_TOURNAMENTS_EXCEEDED = "MAX_DRAFT_TOURNAMENTS_EXCEEDED"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    NOT_REGISTERED = "NOT_REGISTERED"
    CANNOT_LEAVE_ONGOING_TOURNAMENT = "CANNOT_LEAVE_ONGOING_TOURNAMENT"

    # Teams and brackets
    TEAM_NAME_TAKEN = "TEAM_NAME_TAKEN"
    TEAM_DUPLICATE_COMPOSITION = "TEAM_DUPLICATE_COMPOSITION"
    PLAYER_ALREADY_IN_TEAM = "PLAYER_ALREADY_IN_TEAM"
    TEAM_MODE_MISMATCH = "TEAM_MODE_MISMATCH"
    BRACKET_ALREADY_GENERATED = "BRACKET_ALREADY_GENERATED"
    BRACKET_NOT_ENOUGH_PARTICIPANTS = "BRACKET_NOT_ENOUGH_PARTICIPANTS"

    # Match
    MATCH_INVALID_STATUS = "MATCH_INVALID_STATUS"
    MATCH_ALREADY_CONFIRMED = "MATCH_ALREADY_CONFIRMED"
    MATCH_ALREADY_FINALIZED = "MATCH_ALREADY_FINALIZED"
    MATCH_CANNOT_BE_DELETED = "MATCH_CANNOT_BE_DELETED"
    MATCH_INVALID_TEAMS = "MATCH_INVALID_TEAMS"
    MATCH_INVALID_PLAYERS = "MATCH_INVALID_PLAYERS"
    MATCH_DUPLICATE_TEAMS = "MATCH_DUPLICATE_TEAMS"
    MATCH_OVERLAPPING_PLAYERS = "MATCH_OVERLAPPING_PLAYERS"
    MATCH_INVALID_SCORE = "MATCH_INVALID_SCORE"
    MATCH_DRAW_NOT_ALLOWED = "MATCH_DRAW_NOT_ALLOWED"
    MATCH_TEAM_SIZE_MISMATCH = "MATCH_TEAM_SIZE_MISMATCH"

    # Quotas
    MAX_MATCHES_EXCEEDED = "MAX_MATCHES_EXCEEDED"
    MAX_PARTNER_MATCHES_EXCEEDED = "MAX_PARTNER_MATCHES_EXCEEDED"
    MAX_OPPONENT_MATCHES_EXCEEDED = "MAX_OPPONENT_MATCHES_EXCEEDED"

    # Participants
    NOT_A_PARTICIPANT = "NOT_A_PARTICIPANT"


MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.UNKNOWN: "An unexpected error occurred",
    ErrorCode.VALIDATION_ERROR: "Invalid input",
    ErrorCode.NOT_FOUND: "Resource not found",
    ErrorCode.TOURNAMENT_NOT_FOUND: "Tournament not found",
    ErrorCode.MATCH_NOT_FOUND: "Match not found",
    ErrorCode.USER_NOT_FOUND: "User not found",
    ErrorCode.TEAM_NOT_FOUND: "Team not found",
    ErrorCode.UNAUTHORIZED: "Authentication required",
    ErrorCode.FORBIDDEN: "Forbidden",
    ErrorCode.INSUFFICIENT_PERMISSIONS: "You do not have permission to perform this action",
    ErrorCode.TOURNAMENT_INVALID_STATUS: "The tournament must be open or ongoing",
    ErrorCode.TOURNAMENT_CLOSED: "The tournament is not open for registration",
    ErrorCode.TOURNAMENT_CANNOT_BE_DELETED: "Only draft tournaments can be deleted",
    ErrorCode.TOURNAMENT_NAME_TAKEN: "A tournament named {name} already exists",
    ErrorCode.INVALID_DATE_RANGE: "Start date must be before end date",
    ErrorCode.INVALID_TEAM_SIZE: "Team size must be between {min} and {max}",
    ErrorCode.INVALID_STATUS_TRANSITION: "Cannot transition from {current} to {target}",
    ErrorCode.MAX_DRAFT_TOURNAMENTS_EXCEEDED: "You cannot have more than {max} draft tournaments",
    ErrorCode.ALREADY_REGISTERED: "You are already registered in this tournament",
    ErrorCode.NOT_REGISTERED: "You are not registered in this tournament",
    ErrorCode.CANNOT_LEAVE_ONGOING_TOURNAMENT: "You cannot leave a tournament that has started",
    ErrorCode.TEAM_NAME_TAKEN: "A team named {name} already exists in this tournament",
    ErrorCode.TEAM_DUPLICATE_COMPOSITION: "A team with the same players already exists",
    ErrorCode.PLAYER_ALREADY_IN_TEAM: "{playerName} already belongs to a team",
    ErrorCode.TEAM_MODE_MISMATCH: "This operation is not available for {teamMode} tournaments",
    ErrorCode.BRACKET_ALREADY_GENERATED: "This tournament already has matches",
    ErrorCode.BRACKET_NOT_ENOUGH_PARTICIPANTS: "A bracket needs at least 2 participants",
    ErrorCode.MATCH_INVALID_STATUS: "This action is not allowed in the current match status",
    ErrorCode.MATCH_ALREADY_CONFIRMED: "The match has already been confirmed",
    ErrorCode.MATCH_ALREADY_FINALIZED: "The match has already been finalized",
    ErrorCode.MATCH_CANNOT_BE_DELETED: "A confirmed match cannot be deleted",
    ErrorCode.MATCH_INVALID_TEAMS: "Both teams must exist and belong to the tournament",
    ErrorCode.MATCH_INVALID_PLAYERS: "All players must be registered in the tournament",
    ErrorCode.MATCH_DUPLICATE_TEAMS: "The two teams cannot be identical",
    ErrorCode.MATCH_OVERLAPPING_PLAYERS: "{playerName} cannot play on both sides",
    ErrorCode.MATCH_INVALID_SCORE: "Scores must be non-negative",
    ErrorCode.MATCH_DRAW_NOT_ALLOWED: "Draws are not allowed in this tournament",
    ErrorCode.MATCH_TEAM_SIZE_MISMATCH: "Teams must have the same size ({teamASize} vs {teamBSize})",
    ErrorCode.MAX_MATCHES_EXCEEDED: "{playerName} has reached the limit of {max} matches",
    ErrorCode.MAX_PARTNER_MATCHES_EXCEEDED: (
        "{playerName} and {partnerName} have already played together {max} times"
    ),
    ErrorCode.MAX_OPPONENT_MATCHES_EXCEEDED: (
        "{playerName} and {opponentName} have already faced each other {max} times"
    ),
    ErrorCode.NOT_A_PARTICIPANT: "You are not a participant in this match",
}


class AppError(Exception):
    """Base class for errors that map onto an error code and an HTTP status."""

    status_code = 500

    def __init__(self, code: ErrorCode, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.details = details or {}
        super().__init__(code.value)

    @property
    def message(self) -> str:
        template = MESSAGES.get(self.code, self.code.value)
        try:
            return template.format(**self.details)
        except (KeyError, IndexError):
            return template

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": self.details}


class BadRequestError(AppError):
    status_code = 400


class UnauthorizedError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409
