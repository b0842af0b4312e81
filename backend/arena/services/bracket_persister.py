"""
Bracket persistence: insert a generated bracket and resolve its forward references.

Rows are inserted and flushed first so every match has an id, then a sequence -> id map
rewrites next_win_sequence / next_lose_sequence into next_match_win_id / next_match_lose_id
in one pass. The in-memory BracketMatch records are updated with the same ids.
"""
import logging
from typing import Dict, List, Optional, Sequence

from sqlmodel import Session

from arena.models.match import Match, MatchStatus
from arena.services.advancement import finalize_walkover
from arena.services.bracket_builder import BracketMatch

logger = logging.getLogger(__name__)


def persist_bracket(
    session: Session, tournament_id: int, bracket: Sequence[BracketMatch]
) -> Dict[int, Match]:
    """
    Insert all bracket matches for a tournament. Does not commit.

    Returns sequence -> Match row.
    """
    rows: Dict[int, Match] = {}
    for bm in bracket:
        row = Match(
            tournament_id=tournament_id,
            round=bm.round,
            sequence=bm.sequence,
            bracket_type=bm.bracket_type,
            match_position=bm.match_position,
            team_a_id=bm.team_a_id,
            team_b_id=bm.team_b_id,
            status=MatchStatus.scheduled.value,
        )
        session.add(row)
        rows[bm.sequence] = row
    session.flush()

    id_by_sequence: Dict[int, int] = {seq: row.id for seq, row in rows.items()}

    def _resolve(sequence: Optional[int]) -> Optional[int]:
        if sequence is None:
            return None
        return id_by_sequence[sequence]

    for bm in bracket:
        row = rows[bm.sequence]
        bm.id = row.id
        bm.next_match_win_id = _resolve(bm.next_win_sequence)
        bm.next_match_lose_id = _resolve(bm.next_lose_sequence)
        row.next_match_win_id = bm.next_match_win_id
        row.next_match_lose_id = bm.next_match_lose_id
        session.add(row)
    session.flush()

    logger.info("Persisted %d bracket matches for tournament %s", len(rows), tournament_id)
    return rows


def resolve_byes(session: Session, bracket: Sequence[BracketMatch]) -> List[int]:
    """
    Finalize every bye of the opening round and advance the lone team.

    Only matches that nothing feeds into are considered: a later match with one filled
    slot is still waiting for its second team. Returns the ids of the finalized byes.
    Loser-bracket matches fed by a bye are walked over during advancement.
    Does not commit.
    """
    fed = {bm.next_win_sequence for bm in bracket} | {bm.next_lose_sequence for bm in bracket}
    resolved: List[int] = []

    for bm in sorted(bracket, key=lambda m: m.sequence):
        if bm.sequence in fed or not bm.is_bye:
            continue
        match = session.get(Match, bm.id)
        if match is None or match.status != MatchStatus.scheduled:
            continue
        finalize_walkover(session, match)
        resolved.append(match.id)

    if resolved:
        logger.info("Resolved %d bye(s): %s", len(resolved), resolved)
    return resolved
