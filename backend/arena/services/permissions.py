"""
Capability resolution.

Every lifecycle operation asks resolve_capabilities() once and checks the result with
require(), instead of re-deriving roles inline.
"""
from enum import Enum
from typing import FrozenSet, Optional, Set

from sqlmodel import Session, select

from arena.errors import ErrorCode, ForbiddenError, UnauthorizedError
from arena.models.tournament import AdminRole, Tournament, TournamentAdmin
from arena.models.user import AppUser, UserRole
from arena.services.rosters import MatchSides


class Capability(str, Enum):
    CREATE_TOURNAMENT = "create_tournament"
    MANAGE_TOURNAMENT = "manage_tournament"
    OWN_TOURNAMENT = "own_tournament"
    PLAY_MATCH = "play_match"
    RUN_MAINTENANCE = "run_maintenance"


def get_acting_user(session: Session, user_id: Optional[int]) -> AppUser:
    if user_id is None:
        raise UnauthorizedError(ErrorCode.UNAUTHORIZED)
    user = session.get(AppUser, user_id)
    if user is None:
        raise UnauthorizedError(ErrorCode.UNAUTHORIZED, {"userId": user_id})
    return user


def resolve_capabilities(
    session: Session,
    user: Optional[AppUser],
    tournament: Optional[Tournament] = None,
    sides: Optional[MatchSides] = None,
) -> FrozenSet[Capability]:
    if user is None:
        return frozenset()

    caps: Set[Capability] = set()
    if user.role == UserRole.super_admin:
        caps.update(
            {
                Capability.CREATE_TOURNAMENT,
                Capability.MANAGE_TOURNAMENT,
                Capability.OWN_TOURNAMENT,
                Capability.RUN_MAINTENANCE,
            }
        )
    elif user.role == UserRole.tournament_admin:
        caps.add(Capability.CREATE_TOURNAMENT)

    if tournament is not None:
        if tournament.created_by == user.id:
            caps.update({Capability.MANAGE_TOURNAMENT, Capability.OWN_TOURNAMENT})
        admin = session.exec(
            select(TournamentAdmin).where(
                TournamentAdmin.tournament_id == tournament.id,
                TournamentAdmin.user_id == user.id,
            )
        ).first()
        if admin is not None:
            caps.add(Capability.MANAGE_TOURNAMENT)
            if admin.role == AdminRole.owner:
                caps.add(Capability.OWN_TOURNAMENT)

    if sides is not None and user.id in sides.all_player_ids:
        caps.add(Capability.PLAY_MATCH)

    return frozenset(caps)


def require(
    capabilities: FrozenSet[Capability],
    *needed: Capability,
    code: ErrorCode = ErrorCode.INSUFFICIENT_PERMISSIONS,
) -> None:
    """Pass if any of the needed capabilities is held."""
    if not any(cap in capabilities for cap in needed):
        raise ForbiddenError(code)
