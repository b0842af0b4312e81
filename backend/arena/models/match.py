from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from arena.models.match_confirmation import MatchConfirmation
    from arena.models.match_participation import MatchParticipation


class MatchStatus(str, Enum):
    scheduled = "scheduled"
    reported = "reported"
    pending_confirmation = "pending_confirmation"
    confirmed = "confirmed"
    disputed = "disputed"
    finalized = "finalized"
    cancelled = "cancelled"


# Statuses in which players can still confirm or contest, and the sweep can act
AWAITING_CONFIRMATION = (MatchStatus.reported, MatchStatus.pending_confirmation)
TERMINAL_STATUSES = (MatchStatus.finalized, MatchStatus.cancelled)


class FinalizationReason(str, Enum):
    consensus = "consensus"
    auto_validation = "auto_validation"
    admin_override = "admin_override"


class BracketType(str, Enum):
    winner = "winner"
    loser = "loser"
    grand_final = "grand_final"


class TeamSide(str, Enum):
    A = "A"
    B = "B"


class Match(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    round: Optional[int] = Field(default=None)

    # Bracket metadata (null for ad-hoc championship matches)
    sequence: Optional[int] = Field(default=None)
    bracket_type: Optional[str] = Field(default=None)  # winner | loser | grand_final
    match_position: Optional[int] = Field(default=None)
    next_match_win_id: Optional[int] = Field(default=None, foreign_key="match.id")
    next_match_lose_id: Optional[int] = Field(default=None, foreign_key="match.id")

    # Static mode slots (flex mode rosters live in MatchParticipation)
    team_a_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team_b_id: Optional[int] = Field(default=None, foreign_key="team.id")

    score_a: Optional[int] = Field(default=None)
    score_b: Optional[int] = Field(default=None)
    winner_id: Optional[int] = Field(default=None, foreign_key="team.id")
    winner_side: Optional[str] = Field(default=None)  # A | B

    status: str = Field(default=MatchStatus.scheduled.value, index=True)

    reported_by: Optional[int] = Field(default=None, foreign_key="appuser.id")
    reported_at: Optional[datetime] = Field(default=None)
    report_proof: Optional[str] = Field(default=None)
    confirmation_deadline: Optional[datetime] = Field(default=None, index=True)

    finalized_at: Optional[datetime] = Field(default=None)
    finalized_by: Optional[int] = Field(default=None, foreign_key="appuser.id")
    finalization_reason: Optional[str] = Field(default=None)  # consensus | auto_validation | admin_override

    played_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    participations: List["MatchParticipation"] = Relationship(
        back_populates="match", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    confirmations: List["MatchConfirmation"] = Relationship(
        back_populates="match", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
