from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from arena.models.match import Match


class MatchConfirmation(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("match_id", "player_id", name="uq_match_confirmation"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: int = Field(foreign_key="match.id", index=True)
    player_id: int = Field(foreign_key="appuser.id")
    is_confirmed: bool = Field(default=False)
    is_contested: bool = Field(default=False)
    contestation_reason: Optional[str] = Field(default=None)
    contestation_proof: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    match: "Match" = Relationship(back_populates="confirmations")
