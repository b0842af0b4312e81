"""
Standings computation.

calculate_standings() is a pure aggregation: no database, no clock. It takes the scoring
configuration, the team mode, the entrants and the matches to count, and returns a ranked
table. get_official_standings() / get_provisional_standings() load those inputs.

Official standings count finalized matches only; provisional standings also count reported
results that are still waiting for confirmation.

Ranking: points desc, score difference desc, points scored desc, then id asc.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlmodel import Session, select

from arena.errors import ErrorCode, NotFoundError
from arena.models.match import Match, MatchStatus, TeamSide
from arena.models.match_participation import MatchParticipation
from arena.models.participant import Participant
from arena.models.team import Team
from arena.models.tournament import TeamMode, Tournament
from arena.models.user import AppUser
from arena.services.rosters import uses_team_slots

logger = logging.getLogger(__name__)

OFFICIAL_STATUSES = (MatchStatus.finalized.value,)
PROVISIONAL_STATUSES = (
    MatchStatus.reported.value,
    MatchStatus.pending_confirmation.value,
    MatchStatus.finalized.value,
)


@dataclass(frozen=True)
class ScoringConfig:
    point_per_victory: int = 3
    point_per_draw: int = 1
    point_per_loss: int = 0
    allow_draw: bool = True


@dataclass(frozen=True)
class Entrant:
    id: int
    name: str


@dataclass(frozen=True)
class StandingMatch:
    id: int
    score_a: Optional[int]
    score_b: Optional[int]
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    winner_id: Optional[int] = None
    winner_side: Optional[str] = None


@dataclass(frozen=True)
class StandingParticipation:
    match_id: int
    player_id: int
    team_side: str


@dataclass
class StandingEntry:
    id: int
    name: str
    points: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    scored: int = 0
    conceded: int = 0
    score_diff: int = 0
    matches_played: int = 0


def _record(
    table: Dict[int, StandingEntry],
    scoring: ScoringConfig,
    entrant_id: int,
    scored: int,
    conceded: int,
    outcome: Optional[str],
) -> None:
    entry = table.get(entrant_id)
    if entry is None:
        return
    entry.scored += scored
    entry.conceded += conceded
    entry.score_diff = entry.scored - entry.conceded
    entry.matches_played += 1
    if outcome == "win":
        entry.wins += 1
        entry.points += scoring.point_per_victory
    elif outcome == "draw":
        entry.draws += 1
        entry.points += scoring.point_per_draw
    elif outcome == "loss":
        entry.losses += 1
        entry.points += scoring.point_per_loss


def _outcomes(
    scoring: ScoringConfig, match: StandingMatch, a_won: bool, b_won: bool
) -> Tuple[Optional[str], Optional[str]]:
    if match.score_a == match.score_b and scoring.allow_draw:
        return "draw", "draw"
    if a_won:
        return "win", "loss"
    if b_won:
        return "loss", "win"
    # Decisive score without a recorded winner: counted as played only
    return None, None


def calculate_standings(
    scoring: ScoringConfig,
    team_mode: str,
    entrants: Iterable[Entrant],
    matches: Iterable[StandingMatch],
    participations: Iterable[StandingParticipation] = (),
) -> List[StandingEntry]:
    table: Dict[int, StandingEntry] = {e.id: StandingEntry(id=e.id, name=e.name) for e in entrants}

    if team_mode == TeamMode.flex:
        rosters: Dict[int, Dict[str, List[int]]] = {}
        for p in participations:
            rosters.setdefault(p.match_id, {TeamSide.A.value: [], TeamSide.B.value: []})
            rosters[p.match_id][p.team_side].append(p.player_id)

    for match in matches:
        if match.score_a is None or match.score_b is None:
            continue

        if team_mode == TeamMode.flex:
            sides = rosters.get(match.id)
            if not sides:
                continue
            result_a, result_b = _outcomes(
                scoring,
                match,
                match.winner_side == TeamSide.A,
                match.winner_side == TeamSide.B,
            )
            for player_id in sides[TeamSide.A.value]:
                _record(table, scoring, player_id, match.score_a, match.score_b, result_a)
            for player_id in sides[TeamSide.B.value]:
                _record(table, scoring, player_id, match.score_b, match.score_a, result_b)
            continue

        if match.team_a_id is None or match.team_b_id is None:
            continue
        result_a, result_b = _outcomes(
            scoring,
            match,
            match.winner_id is not None and match.winner_id == match.team_a_id,
            match.winner_id is not None and match.winner_id == match.team_b_id,
        )
        _record(table, scoring, match.team_a_id, match.score_a, match.score_b, result_a)
        _record(table, scoring, match.team_b_id, match.score_b, match.score_a, result_b)

    return sorted(table.values(), key=lambda e: (-e.points, -e.score_diff, -e.scored, e.id))


# -----------------------------------------------------------------------------
# Loaders
# -----------------------------------------------------------------------------

def _entrants(session: Session, tournament: Tournament) -> List[Entrant]:
    if tournament.team_mode == TeamMode.flex:
        rows = session.exec(
            select(Participant, AppUser)
            .where(Participant.tournament_id == tournament.id, Participant.user_id == AppUser.id)
            .order_by(Participant.user_id)
        ).all()
        return [Entrant(id=user.id, name=user.display_name) for _, user in rows]
    teams = session.exec(select(Team).where(Team.tournament_id == tournament.id).order_by(Team.id)).all()
    return [Entrant(id=t.id, name=t.name) for t in teams]


def _participations(
    session: Session, tournament: Tournament, matches: Sequence[Match]
) -> List[StandingParticipation]:
    """Flex rosters per match. Bracket matches use one-person teams, so roster = team members."""
    flex_ids = [m.id for m in matches if not uses_team_slots(m, tournament)]
    rows: List[StandingParticipation] = []
    if flex_ids:
        for p in session.exec(
            select(MatchParticipation).where(MatchParticipation.match_id.in_(flex_ids))
        ).all():
            rows.append(StandingParticipation(match_id=p.match_id, player_id=p.player_id, team_side=p.team_side))

    slot_matches = [m for m in matches if uses_team_slots(m, tournament)]
    if slot_matches:
        members: Dict[int, Set[int]] = {}
        for participant in session.exec(
            select(Participant).where(
                Participant.tournament_id == tournament.id,
                Participant.team_id.is_not(None),
            )
        ).all():
            members.setdefault(participant.team_id, set()).add(participant.user_id)
        for m in slot_matches:
            for side, team_id in ((TeamSide.A.value, m.team_a_id), (TeamSide.B.value, m.team_b_id)):
                for player_id in sorted(members.get(team_id, set())):
                    rows.append(StandingParticipation(match_id=m.id, player_id=player_id, team_side=side))
    return rows


def get_standings(session: Session, tournament_id: int, statuses: Sequence[str]) -> List[StandingEntry]:
    tournament = session.get(Tournament, tournament_id)
    if tournament is None:
        raise NotFoundError(ErrorCode.TOURNAMENT_NOT_FOUND, {"tournamentId": tournament_id})

    matches = session.exec(
        select(Match)
        .where(Match.tournament_id == tournament.id, Match.status.in_(list(statuses)))
        .order_by(Match.id)
    ).all()
    participations = _participations(session, tournament, matches) if tournament.team_mode == TeamMode.flex else []

    scoring = ScoringConfig(
        point_per_victory=tournament.point_per_victory,
        point_per_draw=tournament.point_per_draw,
        point_per_loss=tournament.point_per_loss,
        allow_draw=tournament.allow_draw,
    )
    standings = calculate_standings(
        scoring,
        tournament.team_mode,
        _entrants(session, tournament),
        [
            StandingMatch(
                id=m.id,
                score_a=m.score_a,
                score_b=m.score_b,
                team_a_id=m.team_a_id,
                team_b_id=m.team_b_id,
                winner_id=m.winner_id,
                winner_side=m.winner_side,
            )
            for m in matches
        ],
        participations,
    )
    logger.debug("Standings for tournament %s over %d matches", tournament.id, len(matches))
    return standings


def get_official_standings(session: Session, tournament_id: int) -> List[StandingEntry]:
    return get_standings(session, tournament_id, OFFICIAL_STATUSES)


def get_provisional_standings(session: Session, tournament_id: int) -> List[StandingEntry]:
    return get_standings(session, tournament_id, PROVISIONAL_STATUSES)
