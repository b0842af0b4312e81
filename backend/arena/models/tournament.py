from datetime import date, datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from arena.models.participant import Participant
    from arena.models.team import Team


class TournamentMode(str, Enum):
    championship = "championship"
    bracket = "bracket"


class TeamMode(str, Enum):
    static = "static"
    flex = "flex"


class TournamentStatus(str, Enum):
    draft = "draft"
    open = "open"
    ongoing = "ongoing"
    finished = "finished"


class AdminRole(str, Enum):
    owner = "owner"
    co_admin = "co_admin"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True)
    description: Optional[str] = None
    mode: str = Field(default=TournamentMode.championship.value)
    team_mode: str = Field(default=TeamMode.static.value)
    min_team_size: int = Field(default=1)
    max_team_size: int = Field(default=1)

    # Repetition caps consulted by the match rule engine
    max_matches_per_player: int = Field(default=10)
    max_times_with_same_partner: int = Field(default=2)
    max_times_with_same_opponent: int = Field(default=2)

    # Scoring
    point_per_victory: int = Field(default=3)
    point_per_draw: int = Field(default=1)
    point_per_loss: int = Field(default=0)
    allow_draw: bool = Field(default=True)

    start_date: date
    end_date: date
    status: str = Field(default=TournamentStatus.draft.value)
    created_by: int = Field(foreign_key="appuser.id")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    admins: List["TournamentAdmin"] = Relationship(back_populates="tournament")
    teams: List["Team"] = Relationship(back_populates="tournament")
    participants: List["Participant"] = Relationship(back_populates="tournament")


class TournamentAdmin(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "user_id", name="uq_tournament_admin"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    user_id: int = Field(foreign_key="appuser.id")
    role: str = Field(default=AdminRole.co_admin.value)  # owner | co_admin
    added_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    tournament: "Tournament" = Relationship(back_populates="admins")
