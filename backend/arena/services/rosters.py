"""
Match sides at the read boundary.

A side is either a fixed team (static mode, roster = participants linked to the team) or an
ad-hoc roster (flex mode, roster = MatchParticipation rows for that side). Everything that
needs "who played on which side" goes through load_match_sides.
"""
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple, Union

from sqlmodel import Session, select

from arena.models.match import Match, TeamSide
from arena.models.match_participation import MatchParticipation
from arena.models.participant import Participant
from arena.models.tournament import TeamMode, Tournament


@dataclass(frozen=True)
class StaticTeamSide:
    side: str
    team_id: Optional[int]
    player_ids: Tuple[int, ...]


@dataclass(frozen=True)
class FlexRosterSide:
    side: str
    player_ids: Tuple[int, ...]


MatchSide = Union[StaticTeamSide, FlexRosterSide]


@dataclass(frozen=True)
class MatchSides:
    a: MatchSide
    b: MatchSide

    @property
    def all_player_ids(self) -> FrozenSet[int]:
        return frozenset(self.a.player_ids) | frozenset(self.b.player_ids)

    def side_of(self, player_id: int) -> Optional[str]:
        if player_id in self.a.player_ids:
            return TeamSide.A.value
        if player_id in self.b.player_ids:
            return TeamSide.B.value
        return None


def team_roster(session: Session, tournament_id: int, team_id: Optional[int]) -> Tuple[int, ...]:
    if team_id is None:
        return ()
    user_ids = session.exec(
        select(Participant.user_id)
        .where(Participant.tournament_id == tournament_id, Participant.team_id == team_id)
        .order_by(Participant.user_id)
    ).all()
    return tuple(user_ids)


def flex_roster(session: Session, match_id: int, side: str) -> Tuple[int, ...]:
    player_ids = session.exec(
        select(MatchParticipation.player_id)
        .where(MatchParticipation.match_id == match_id, MatchParticipation.team_side == side)
        .order_by(MatchParticipation.player_id)
    ).all()
    return tuple(player_ids)


def uses_team_slots(match: Match, tournament: Tournament) -> bool:
    """Static tournaments and every bracket match (flex brackets use one-person teams)."""
    return tournament.team_mode == TeamMode.static or match.bracket_type is not None


def load_match_sides(session: Session, match: Match, tournament: Tournament) -> MatchSides:
    if not uses_team_slots(match, tournament):
        return MatchSides(
            a=FlexRosterSide(TeamSide.A.value, flex_roster(session, match.id, TeamSide.A.value)),
            b=FlexRosterSide(TeamSide.B.value, flex_roster(session, match.id, TeamSide.B.value)),
        )
    return MatchSides(
        a=StaticTeamSide(TeamSide.A.value, match.team_a_id, team_roster(session, tournament.id, match.team_a_id)),
        b=StaticTeamSide(TeamSide.B.value, match.team_b_id, team_roster(session, tournament.id, match.team_b_id)),
    )
