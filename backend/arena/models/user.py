from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


class UserRole(str, Enum):
    player = "player"
    tournament_admin = "tournament_admin"
    super_admin = "super_admin"


class AppUser(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    display_name: str
    role: str = Field(default=UserRole.player.value)  # player | tournament_admin | super_admin
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
