from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from arena.models.team import Team
    from arena.models.tournament import Tournament


class Participant(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "user_id", name="uq_tournament_participant"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    user_id: int = Field(foreign_key="appuser.id", index=True)
    team_id: Optional[int] = Field(default=None, foreign_key="team.id")  # static mode roster
    matches_played: int = Field(default=0)
    joined_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="participants")
    team: Optional["Team"] = Relationship(back_populates="participants")
