from arena.models.match import (
    AWAITING_CONFIRMATION,
    TERMINAL_STATUSES,
    BracketType,
    FinalizationReason,
    Match,
    MatchStatus,
    TeamSide,
)
from arena.models.match_confirmation import MatchConfirmation
from arena.models.match_participation import MatchParticipation
from arena.models.participant import Participant
from arena.models.team import Team, composition_hash
from arena.models.tournament import (
    AdminRole,
    TeamMode,
    Tournament,
    TournamentAdmin,
    TournamentMode,
    TournamentStatus,
)
from arena.models.user import AppUser, UserRole

__all__ = [
    "AppUser",
    "UserRole",
    "Tournament",
    "TournamentAdmin",
    "TournamentMode",
    "TournamentStatus",
    "TeamMode",
    "AdminRole",
    "Team",
    "composition_hash",
    "Participant",
    "Match",
    "MatchStatus",
    "FinalizationReason",
    "BracketType",
    "TeamSide",
    "AWAITING_CONFIRMATION",
    "TERMINAL_STATUSES",
    "MatchParticipation",
    "MatchConfirmation",
]
