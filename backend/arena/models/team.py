import hashlib
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from arena.models.participant import Participant
    from arena.models.tournament import Tournament


def composition_hash(user_ids: Iterable[int]) -> str:
    """Order-independent fingerprint of a roster."""
    canonical = ",".join(str(uid) for uid in sorted(set(user_ids)))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class Team(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("tournament_id", "name", name="uq_tournament_team_name"),
        # Two teams with the same roster cannot coexist in a tournament
        SAUniqueConstraint("tournament_id", "composition_hash", name="uq_tournament_team_composition"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    name: str
    composition_hash: Optional[str] = Field(default=None)
    created_by: Optional[int] = Field(default=None, foreign_key="appuser.id")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="teams")
    participants: List["Participant"] = Relationship(back_populates="team")
