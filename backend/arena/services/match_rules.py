"""
Match rule engine.

Two layers:
- iter_composition_errors() / resolve_composition(): input validation of a proposed match
  (teams or rosters exist, belong to the tournament, are well formed). The first yields every
  BadRequestError, the second raises the first one.
- iter_rule_violations(): tournament quotas checked against the match history
  (per-player match cap, same-partner cap, same-opponent cap). Yields ConflictError.

Partner and opponent caps in flex mode only count prior matches with the same team size,
so a 1v1 history does not eat into the 2v2 quota.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from sqlmodel import Session, select

from arena.errors import AppError, BadRequestError, ConflictError, ErrorCode
from arena.models.match import TeamSide
from arena.models.participant import Participant
from arena.models.team import Team
from arena.models.tournament import TeamMode, Tournament
from arena.models.user import AppUser
from arena.services.match_history import MatchHistory, load_match_history
from arena.services.rosters import FlexRosterSide, MatchSides, StaticTeamSide, team_roster

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchComposition:
    """A validated proposed match: team slots (static) and the players on each side."""

    team_mode: str
    player_ids_a: Tuple[int, ...]
    player_ids_b: Tuple[int, ...]
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None

    @property
    def team_size(self) -> int:
        return len(self.player_ids_a)

    @property
    def all_player_ids(self) -> Tuple[int, ...]:
        return self.player_ids_a + self.player_ids_b

    def sides(self) -> MatchSides:
        if self.team_mode == TeamMode.flex:
            return MatchSides(
                a=FlexRosterSide(TeamSide.A.value, self.player_ids_a),
                b=FlexRosterSide(TeamSide.B.value, self.player_ids_b),
            )
        return MatchSides(
            a=StaticTeamSide(TeamSide.A.value, self.team_a_id, self.player_ids_a),
            b=StaticTeamSide(TeamSide.B.value, self.team_b_id, self.player_ids_b),
        )


def _dedupe(ids: Iterable[int]) -> Tuple[int, ...]:
    seen: Set[int] = set()
    out: List[int] = []
    for value in ids:
        if value not in seen:
            seen.add(value)
            out.append(value)
    return tuple(out)


def player_names(session: Session, user_ids: Iterable[int]) -> Dict[int, str]:
    ids = list(set(user_ids))
    if not ids:
        return {}
    users = session.exec(select(AppUser).where(AppUser.id.in_(ids))).all()
    names = {u.id: u.display_name for u in users}
    return {uid: names.get(uid, str(uid)) for uid in ids}


def _team_name(session: Session, team_id: int) -> str:
    team = session.get(Team, team_id)
    return team.name if team else str(team_id)


def iter_composition_errors(
    session: Session,
    tournament: Tournament,
    team_a_id: Optional[int] = None,
    team_b_id: Optional[int] = None,
    player_ids_a: Optional[Sequence[int]] = None,
    player_ids_b: Optional[Sequence[int]] = None,
) -> Iterator[BadRequestError]:
    """Yield every input problem of a proposed match, in check order."""
    if tournament.team_mode == TeamMode.flex:
        yield from _flex_errors(session, tournament, _dedupe(player_ids_a or []), _dedupe(player_ids_b or []))
    else:
        yield from _static_errors(session, tournament, team_a_id, team_b_id)


def resolve_composition(
    session: Session,
    tournament: Tournament,
    team_a_id: Optional[int] = None,
    team_b_id: Optional[int] = None,
    player_ids_a: Optional[Sequence[int]] = None,
    player_ids_b: Optional[Sequence[int]] = None,
) -> MatchComposition:
    """Validate a proposed match and return its composition. Raises the first input problem."""
    for error in iter_composition_errors(session, tournament, team_a_id, team_b_id, player_ids_a, player_ids_b):
        raise error

    if tournament.team_mode == TeamMode.flex:
        return MatchComposition(
            team_mode=TeamMode.flex.value,
            player_ids_a=_dedupe(player_ids_a or []),
            player_ids_b=_dedupe(player_ids_b or []),
        )
    return MatchComposition(
        team_mode=TeamMode.static.value,
        player_ids_a=team_roster(session, tournament.id, team_a_id),
        player_ids_b=team_roster(session, tournament.id, team_b_id),
        team_a_id=team_a_id,
        team_b_id=team_b_id,
    )


def _static_errors(
    session: Session,
    tournament: Tournament,
    team_a_id: Optional[int],
    team_b_id: Optional[int],
) -> Iterator[BadRequestError]:
    if team_a_id is None or team_b_id is None:
        yield BadRequestError(ErrorCode.MATCH_INVALID_TEAMS)
        return
    if team_a_id == team_b_id:
        yield BadRequestError(ErrorCode.MATCH_DUPLICATE_TEAMS, {"teamId": team_a_id})
    for team_id in _dedupe((team_a_id, team_b_id)):
        team = session.get(Team, team_id)
        if team is None or team.tournament_id != tournament.id:
            yield BadRequestError(ErrorCode.MATCH_INVALID_TEAMS, {"teamId": team_id})


def _flex_errors(
    session: Session,
    tournament: Tournament,
    side_a: Tuple[int, ...],
    side_b: Tuple[int, ...],
) -> Iterator[BadRequestError]:
    if not side_a or not side_b:
        yield BadRequestError(ErrorCode.MATCH_INVALID_PLAYERS)
        return

    requested = set(side_a) | set(side_b)
    registered = set(
        session.exec(
            select(Participant.user_id).where(
                Participant.tournament_id == tournament.id,
                Participant.user_id.in_(list(requested)),
            )
        ).all()
    )
    missing = sorted(requested - registered)
    if missing:
        yield BadRequestError(ErrorCode.MATCH_INVALID_PLAYERS, {"playerIds": missing})

    overlap = sorted(set(side_a) & set(side_b))
    names = player_names(session, overlap)
    for player_id in overlap:
        yield BadRequestError(ErrorCode.MATCH_OVERLAPPING_PLAYERS, {"playerName": names[player_id]})

    if len(side_a) != len(side_b):
        yield BadRequestError(
            ErrorCode.MATCH_TEAM_SIZE_MISMATCH,
            {"teamASize": len(side_a), "teamBSize": len(side_b)},
        )

    if not tournament.min_team_size <= len(side_a) <= tournament.max_team_size:
        yield BadRequestError(
            ErrorCode.INVALID_TEAM_SIZE,
            {"min": tournament.min_team_size, "max": tournament.max_team_size},
        )


def iter_rule_violations(
    session: Session,
    tournament: Tournament,
    composition: MatchComposition,
    exclude_match_id: Optional[int] = None,
    history: Optional[MatchHistory] = None,
) -> Iterator[AppError]:
    """Yield every quota violation, in check order. Each unordered pair is reported once."""
    if history is None:
        history = load_match_history(session, tournament, exclude_match_id)
    names = player_names(session, composition.all_player_ids)

    for player_id in composition.all_player_ids:
        if history.player_match_count(player_id) >= tournament.max_matches_per_player:
            yield ConflictError(
                ErrorCode.MAX_MATCHES_EXCEEDED,
                {"max": tournament.max_matches_per_player, "playerName": names[player_id]},
            )

    if composition.team_mode == TeamMode.static:
        meetings = history.team_meetings(composition.team_a_id, composition.team_b_id)
        if meetings >= tournament.max_times_with_same_opponent:
            yield ConflictError(
                ErrorCode.MAX_OPPONENT_MATCHES_EXCEEDED,
                {
                    "max": tournament.max_times_with_same_opponent,
                    "playerName": _team_name(session, composition.team_a_id),
                    "opponentName": _team_name(session, composition.team_b_id),
                },
            )
        return

    team_size = composition.team_size
    for side in (composition.player_ids_a, composition.player_ids_b):
        for i, player_id in enumerate(side):
            for partner_id in side[i + 1:]:
                if history.partner_count(player_id, partner_id, team_size) >= tournament.max_times_with_same_partner:
                    yield ConflictError(
                        ErrorCode.MAX_PARTNER_MATCHES_EXCEEDED,
                        {
                            "max": tournament.max_times_with_same_partner,
                            "playerName": names[player_id],
                            "partnerName": names[partner_id],
                            "teamSize": team_size,
                        },
                    )

    for player_id in composition.player_ids_a:
        for opponent_id in composition.player_ids_b:
            if history.opponent_count(player_id, opponent_id, team_size) >= tournament.max_times_with_same_opponent:
                yield ConflictError(
                    ErrorCode.MAX_OPPONENT_MATCHES_EXCEEDED,
                    {
                        "max": tournament.max_times_with_same_opponent,
                        "playerName": names[player_id],
                        "opponentName": names[opponent_id],
                        "teamSize": team_size,
                    },
                )


def enforce_match_rules(
    session: Session,
    tournament: Tournament,
    composition: MatchComposition,
    exclude_match_id: Optional[int] = None,
) -> None:
    """Raise the first quota violation, if any."""
    for violation in iter_rule_violations(session, tournament, composition, exclude_match_id):
        logger.info(
            "Match rejected for tournament %s: %s %s",
            tournament.id,
            violation.code.value,
            violation.details,
        )
        raise violation


def pairing_exists(history: MatchHistory, composition: MatchComposition) -> bool:
    """Same two teams (static) or same two rosters (flex) already met, in either orientation."""
    if composition.team_mode == TeamMode.static:
        return history.team_meetings(composition.team_a_id, composition.team_b_id) > 0
    return history.has_roster_pairing(composition.player_ids_a, composition.player_ids_b)
