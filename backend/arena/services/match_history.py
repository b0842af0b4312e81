"""
Match history for a tournament, loaded once and queried in memory.

The rule engine needs several counts per player pair (matches played, times as partners,
times as opponents) for the same proposed match. Loading the tournament's matches with their
rosters once keeps those counts consistent with each other and avoids a query per pair.

Cancelled matches are not history. A match being edited is excluded via exclude_match_id.
"""
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from sqlmodel import Session, select

from arena.models.match import Match, MatchStatus, TeamSide
from arena.models.match_participation import MatchParticipation
from arena.models.participant import Participant
from arena.models.tournament import Tournament
from arena.services.rosters import uses_team_slots


@dataclass(frozen=True)
class PlayedMatch:
    match_id: int
    team_a_id: Optional[int]
    team_b_id: Optional[int]
    side_a: FrozenSet[int]
    side_b: FrozenSet[int]

    @property
    def team_size(self) -> int:
        return max(len(self.side_a), len(self.side_b))

    def involves(self, player_id: int) -> bool:
        return player_id in self.side_a or player_id in self.side_b


class MatchHistory:
    def __init__(self, matches: Iterable[PlayedMatch]):
        self.matches: List[PlayedMatch] = sorted(matches, key=lambda m: m.match_id)

    def player_match_count(self, player_id: int) -> int:
        return sum(1 for m in self.matches if m.involves(player_id))

    def partner_count(self, player_id: int, partner_id: int, team_size: Optional[int] = None) -> int:
        count = 0
        for m in self.matches:
            if team_size is not None and m.team_size != team_size:
                continue
            for side in (m.side_a, m.side_b):
                if player_id in side and partner_id in side:
                    count += 1
                    break
        return count

    def opponent_count(self, player_id: int, opponent_id: int, team_size: Optional[int] = None) -> int:
        count = 0
        for m in self.matches:
            if team_size is not None and m.team_size != team_size:
                continue
            if (player_id in m.side_a and opponent_id in m.side_b) or (
                player_id in m.side_b and opponent_id in m.side_a
            ):
                count += 1
        return count

    def team_match_count(self, team_id: int) -> int:
        return sum(1 for m in self.matches if team_id in (m.team_a_id, m.team_b_id))

    def team_meetings(self, team_a_id: int, team_b_id: int) -> int:
        pair = {team_a_id, team_b_id}
        return sum(1 for m in self.matches if {m.team_a_id, m.team_b_id} == pair)

    def has_roster_pairing(self, side_a: Iterable[int], side_b: Iterable[int]) -> bool:
        a, b = frozenset(side_a), frozenset(side_b)
        return any({m.side_a, m.side_b} == {a, b} for m in self.matches)


def load_match_history(
    session: Session, tournament: Tournament, exclude_match_id: Optional[int] = None
) -> MatchHistory:
    query = select(Match).where(
        Match.tournament_id == tournament.id,
        Match.status != MatchStatus.cancelled.value,
    )
    if exclude_match_id is not None:
        query = query.where(Match.id != exclude_match_id)
    matches = session.exec(query.order_by(Match.id)).all()
    if not matches:
        return MatchHistory([])

    members: Dict[int, Set[int]] = defaultdict(set)
    for participant in session.exec(
        select(Participant).where(
            Participant.tournament_id == tournament.id,
            Participant.team_id.is_not(None),
        )
    ).all():
        members[participant.team_id].add(participant.user_id)

    def _roster(team_id: Optional[int]) -> FrozenSet[int]:
        return frozenset(members.get(team_id, set())) if team_id is not None else frozenset()

    flex_sides: Dict[int, Dict[str, Set[int]]] = defaultdict(
        lambda: {TeamSide.A.value: set(), TeamSide.B.value: set()}
    )
    flex_ids = [m.id for m in matches if not uses_team_slots(m, tournament)]
    if flex_ids:
        for row in session.exec(
            select(MatchParticipation).where(MatchParticipation.match_id.in_(flex_ids))
        ).all():
            flex_sides[row.match_id][row.team_side].add(row.player_id)

    played = []
    for m in matches:
        if uses_team_slots(m, tournament):
            side_a, side_b = _roster(m.team_a_id), _roster(m.team_b_id)
        else:
            side_a = frozenset(flex_sides[m.id][TeamSide.A.value])
            side_b = frozenset(flex_sides[m.id][TeamSide.B.value])
        played.append(
            PlayedMatch(
                match_id=m.id,
                team_a_id=m.team_a_id,
                team_b_id=m.team_b_id,
                side_a=side_a,
                side_b=side_b,
            )
        )
    return MatchHistory(played)
