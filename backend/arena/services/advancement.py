"""
Bracket advancement: when a bracket match is finalized, move its winner into the
next_match_win_id match and its loser into the next_match_lose_id match.

Each team goes into the first open slot (team_a, then team_b) of the target.
Idempotent: a team already present in the target is not written again.

A feed is dead when its source is settled but sends nobody, e.g. the loser of a bye.
Once every feeder of a scheduled target is settled, a target holding one team is a
walkover for that team and an empty target closes without a winner. Both are finalized
with auto_validation and advance in turn, so a bye propagates down the loser bracket.
The caller owns the transaction; nothing here commits.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlmodel import Session, select

from arena.models.match import FinalizationReason, Match, MatchStatus, TeamSide

logger = logging.getLogger(__name__)

SETTLED_STATUSES = (MatchStatus.finalized, MatchStatus.cancelled)


def _place_team(session: Session, target_id: int, team_id: int) -> bool:
    target = session.get(Match, target_id)
    if target is None:
        logger.warning("Advancement target match %s does not exist", target_id)
        return False
    if team_id in (target.team_a_id, target.team_b_id):
        return False
    if target.team_a_id is None:
        target.team_a_id = team_id
    elif target.team_b_id is None:
        target.team_b_id = team_id
    else:
        logger.warning(
            "Cannot advance team %s into match %s: both slots are taken",
            team_id,
            target_id,
        )
        return False
    session.add(target)
    return True


def loser_of(match: Match) -> Optional[int]:
    if match.winner_id is None:
        return None
    if match.winner_id == match.team_a_id:
        return match.team_b_id
    if match.winner_id == match.team_b_id:
        return match.team_a_id
    return None


def _feeders(session: Session, target_id: int) -> List[Match]:
    query = (
        select(Match)
        .where((Match.next_match_win_id == target_id) | (Match.next_match_lose_id == target_id))
        .execution_options(populate_existing=True)
    )
    return list(session.exec(query).all())


def finalize_walkover(session: Session, match: Match) -> None:
    """Finalize a match that will never be played: its lone team wins, or nobody does."""
    now = datetime.now(timezone.utc)
    if match.team_a_id is not None and match.team_b_id is None:
        match.winner_id = match.team_a_id
        match.winner_side = TeamSide.A.value
    elif match.team_b_id is not None and match.team_a_id is None:
        match.winner_id = match.team_b_id
        match.winner_side = TeamSide.B.value
    match.status = MatchStatus.finalized.value
    match.finalization_reason = FinalizationReason.auto_validation.value
    match.finalized_at = now
    match.updated_at = now
    session.add(match)
    session.flush()
    logger.info("Match %s finalized as a walkover (winner %s)", match.id, match.winner_id)
    apply_advancement(session, match)


def settle_dead_feeds(session: Session, target_id: int) -> bool:
    """
    Walk over a scheduled target whose feeders are all settled but left a slot empty.

    Returns True when the target was finalized.
    """
    target = session.get(Match, target_id)
    if target is None or target.status != MatchStatus.scheduled:
        return False
    if target.team_a_id is not None and target.team_b_id is not None:
        return False
    feeders = _feeders(session, target_id)
    if not feeders or any(f.status not in SETTLED_STATUSES for f in feeders):
        return False
    finalize_walkover(session, target)
    return True


def apply_advancement(session: Session, match: Match) -> int:
    """
    Advance the winner and loser of a settled match, then walk over any target
    left waiting on a dead feed.

    Returns the number of downstream slots filled (0, 1 or 2).
    """
    filled = 0
    # A cancelled match sends nobody, even with a reported score
    if match.status == MatchStatus.finalized:
        if match.next_match_win_id is not None and match.winner_id is not None:
            if _place_team(session, match.next_match_win_id, match.winner_id):
                filled += 1

        loser_id = loser_of(match)
        if match.next_match_lose_id is not None and loser_id is not None:
            if _place_team(session, match.next_match_lose_id, loser_id):
                filled += 1

    if filled:
        session.flush()
        logger.info("Match %s advanced %d team(s) downstream", match.id, filled)

    for target_id in sorted({match.next_match_win_id, match.next_match_lose_id} - {None}):
        settle_dead_feeds(session, target_id)
    return filled
