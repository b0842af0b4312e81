from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from arena.models.match import Match


class MatchParticipation(SQLModel, table=True):
    """Flex mode roster row: one player on one side of one match."""

    __table_args__ = (SAUniqueConstraint("match_id", "player_id", name="uq_match_participation"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: int = Field(foreign_key="match.id", index=True)
    player_id: int = Field(foreign_key="appuser.id", index=True)
    team_side: str  # A | B

    match: "Match" = Relationship(back_populates="participations")
