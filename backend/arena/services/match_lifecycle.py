"""
Match lifecycle: creation, result reporting, multi-party confirmation, contestation,
finalization and the timeout sweep.

Status machine:
    scheduled -> reported -> {pending_confirmation | confirmed | disputed} -> finalized
    disputed is reachable from reported / pending_confirmation
    cancelled and finalized are terminal

Automatic transitions (consensus, timeout finalization, timeout dispute) are conditional
UPDATEs on the current status, so two concurrent confirmers or a confirmer racing the sweep
finalize a match at most once. The loser of the race sees rowcount 0 and does nothing.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from arena.config import CONFIRMATION_WINDOW_HOURS
from arena.errors import AppError, BadRequestError, ConflictError, ErrorCode, NotFoundError
from arena.models.match import (
    AWAITING_CONFIRMATION,
    TERMINAL_STATUSES,
    FinalizationReason,
    Match,
    MatchStatus,
    TeamSide,
)
from arena.models.match_confirmation import MatchConfirmation
from arena.models.match_participation import MatchParticipation
from arena.models.participant import Participant
from arena.models.tournament import TeamMode, Tournament, TournamentStatus
from arena.services.advancement import apply_advancement
from arena.services.match_history import load_match_history
from arena.services.match_rules import (
    enforce_match_rules,
    iter_composition_errors,
    iter_rule_violations,
    pairing_exists,
    resolve_composition,
)
from arena.services.permissions import Capability, get_acting_user, require, resolve_capabilities
from arena.services.rosters import load_match_sides, uses_team_slots

logger = logging.getLogger(__name__)

REPORTABLE_STATUSES = (
    MatchStatus.scheduled,
    MatchStatus.reported,
    MatchStatus.pending_confirmation,
)
LOCKED_STATUSES = (MatchStatus.confirmed, MatchStatus.finalized)
FINALIZABLE_STATUSES = AWAITING_CONFIRMATION + (MatchStatus.confirmed, MatchStatus.disputed)
PAIRING_WARNING = "A similar match already exists"


@dataclass
class MatchInput:
    tournament_id: int
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    player_ids_a: List[int] = field(default_factory=list)
    player_ids_b: List[int] = field(default_factory=list)
    status: str = MatchStatus.scheduled.value
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    report_proof: Optional[str] = None
    played_at: Optional[datetime] = None
    round: Optional[int] = None
    # Set when validating an edit of an existing match
    match_id: Optional[int] = None


@dataclass
class MatchUpdate:
    """Fields left as None are unchanged."""

    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    player_ids_a: Optional[List[int]] = None
    player_ids_b: Optional[List[int]] = None
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    played_at: Optional[datetime] = None
    round: Optional[int] = None


@dataclass
class ReportInput:
    score_a: int
    score_b: int
    report_proof: Optional[str] = None
    played_at: Optional[datetime] = None


@dataclass
class ContestInput:
    reason: Optional[str] = None
    proof: Optional[str] = None


# -----------------------------------------------------------------------------
# Lookups
# -----------------------------------------------------------------------------

def get_match(session: Session, match_id: int) -> Match:
    match = session.get(Match, match_id)
    if match is None:
        raise NotFoundError(ErrorCode.MATCH_NOT_FOUND, {"matchId": match_id})
    return match


def _get_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if tournament is None:
        raise NotFoundError(ErrorCode.TOURNAMENT_NOT_FOUND, {"tournamentId": tournament_id})
    return tournament


def list_matches(
    session: Session,
    tournament_id: Optional[int] = None,
    status: Optional[str] = None,
    team_id: Optional[int] = None,
    bracket_type: Optional[str] = None,
) -> List[Match]:
    query = select(Match)
    if tournament_id is not None:
        query = query.where(Match.tournament_id == tournament_id)
    if status is not None:
        query = query.where(Match.status == status)
    if team_id is not None:
        query = query.where((Match.team_a_id == team_id) | (Match.team_b_id == team_id))
    if bracket_type is not None:
        query = query.where(Match.bracket_type == bracket_type)
    return list(session.exec(query.order_by(Match.id)).all())


def get_confirmations(session: Session, match_id: int) -> List[MatchConfirmation]:
    return list(
        session.exec(
            select(MatchConfirmation)
            .where(MatchConfirmation.match_id == match_id)
            .order_by(MatchConfirmation.player_id)
        ).all()
    )


# -----------------------------------------------------------------------------
# Building blocks
# -----------------------------------------------------------------------------

def _status_values(statuses: Iterable[MatchStatus]) -> List[str]:
    return [s.value for s in statuses]


def _transition(
    session: Session,
    match_id: int,
    from_statuses: Sequence[MatchStatus],
    values: Dict[str, Any],
) -> bool:
    """Conditional status change. Returns False when another writer got there first."""
    result = session.execute(
        update(Match)
        .where(Match.id == match_id, Match.status.in_(_status_values(from_statuses)))
        .values(**values)
    )
    return result.rowcount == 1


def _check_scores(tournament: Tournament, match: Optional[Match], score_a: Optional[int], score_b: Optional[int]) -> None:
    if score_a is None or score_b is None or score_a < 0 or score_b < 0:
        raise BadRequestError(ErrorCode.MATCH_INVALID_SCORE, {"scoreA": score_a, "scoreB": score_b})
    if score_a == score_b:
        # Elimination matches must produce a winner
        if not tournament.allow_draw or (match is not None and match.bracket_type is not None):
            raise BadRequestError(ErrorCode.MATCH_DRAW_NOT_ALLOWED)


def _apply_scores(match: Match, tournament: Tournament, score_a: int, score_b: int) -> None:
    match.score_a = score_a
    match.score_b = score_b
    if score_a > score_b:
        match.winner_side = TeamSide.A.value
        winner_team = match.team_a_id
    elif score_b > score_a:
        match.winner_side = TeamSide.B.value
        winner_team = match.team_b_id
    else:
        match.winner_side = None
        winner_team = None
    match.winner_id = winner_team if uses_team_slots(match, tournament) else None


def _upsert_confirmation(
    session: Session,
    match_id: int,
    player_id: int,
    is_confirmed: bool,
    is_contested: bool = False,
    reason: Optional[str] = None,
    proof: Optional[str] = None,
) -> MatchConfirmation:
    """One row per (match, player). Losing an insert race to the same player is a conflict."""
    now = datetime.now(timezone.utc)
    row = session.exec(
        select(MatchConfirmation).where(
            MatchConfirmation.match_id == match_id,
            MatchConfirmation.player_id == player_id,
        )
    ).first()
    if row is None:
        row = MatchConfirmation(match_id=match_id, player_id=player_id)

    row.is_confirmed = is_confirmed
    row.is_contested = is_contested
    row.contestation_reason = reason
    row.contestation_proof = proof
    row.updated_at = now
    session.add(row)
    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        logger.warning("Concurrent confirmation for match %s player %s", match_id, player_id)
        raise ConflictError(ErrorCode.MATCH_INVALID_STATUS, {"matchId": match_id})
    return row


def _record_report(
    session: Session,
    match: Match,
    tournament: Tournament,
    reporter_id: int,
    score_a: int,
    score_b: int,
    proof: Optional[str],
    played_at: Optional[datetime],
) -> None:
    now = datetime.now(timezone.utc)
    _apply_scores(match, tournament, score_a, score_b)
    match.status = MatchStatus.reported.value
    match.reported_by = reporter_id
    match.reported_at = now
    match.report_proof = proof
    match.played_at = played_at or match.played_at or now
    match.confirmation_deadline = now + timedelta(hours=CONFIRMATION_WINDOW_HOURS)
    match.updated_at = now
    session.add(match)
    session.flush()

    # A new report supersedes earlier confirmations of a previous result
    for stale in get_confirmations(session, match.id):
        if stale.player_id != reporter_id:
            session.delete(stale)
    session.flush()
    _upsert_confirmation(session, match.id, reporter_id, is_confirmed=True)


def _on_finalized(session: Session, match: Match, tournament: Tournament, count_played: bool = True) -> None:
    if count_played:
        sides = load_match_sides(session, match, tournament)
        player_ids = sorted(sides.all_player_ids)
        if player_ids:
            session.execute(
                update(Participant)
                .where(
                    Participant.tournament_id == tournament.id,
                    Participant.user_id.in_(player_ids),
                )
                .values(matches_played=Participant.matches_played + 1)
            )
    apply_advancement(session, match)


def _finalize_guarded(
    session: Session,
    match: Match,
    tournament: Tournament,
    reason: FinalizationReason,
    from_statuses: Sequence[MatchStatus] = AWAITING_CONFIRMATION,
    finalized_by: Optional[int] = None,
) -> bool:
    now = datetime.now(timezone.utc)
    won = _transition(
        session,
        match.id,
        from_statuses,
        {
            "status": MatchStatus.finalized.value,
            "finalization_reason": reason.value,
            "finalized_at": now,
            "finalized_by": finalized_by,
            "updated_at": now,
        },
    )
    if not won:
        logger.info("Match %s was already moved out of %s", match.id, _status_values(from_statuses))
        return False
    session.refresh(match)
    _on_finalized(session, match, tournament)
    logger.info("Match %s finalized (%s)", match.id, reason.value)
    return True


# -----------------------------------------------------------------------------
# Operations
# -----------------------------------------------------------------------------

def check_and_finalize(session: Session, match_id: int) -> bool:
    """
    Finalize by consensus when confirmed roster members are a strict majority and both sides
    have at least one confirmation. Any contestation blocks it. Does not commit.
    """
    match = get_match(session, match_id)
    if match.status not in AWAITING_CONFIRMATION:
        return False
    tournament = _get_tournament(session, match.tournament_id)
    sides = load_match_sides(session, match, tournament)
    roster = sides.all_player_ids
    if not roster:
        return False

    confirmations = get_confirmations(session, match.id)
    if any(c.is_contested for c in confirmations):
        return False

    confirmed = {c.player_id for c in confirmations if c.is_confirmed and c.player_id in roster}
    has_majority = len(confirmed) * 2 > len(roster)
    both_sides = bool(confirmed & set(sides.a.player_ids)) and bool(confirmed & set(sides.b.player_ids))
    if not (has_majority and both_sides):
        return False
    return _finalize_guarded(session, match, tournament, FinalizationReason.consensus)


def create_match(session: Session, data: MatchInput, acting_user_id: Optional[int]) -> Match:
    tournament = _get_tournament(session, data.tournament_id)
    if tournament.status not in (TournamentStatus.open, TournamentStatus.ongoing):
        raise BadRequestError(ErrorCode.TOURNAMENT_INVALID_STATUS, {"status": tournament.status})
    user = get_acting_user(session, acting_user_id)

    composition = resolve_composition(
        session,
        tournament,
        team_a_id=data.team_a_id,
        team_b_id=data.team_b_id,
        player_ids_a=data.player_ids_a,
        player_ids_b=data.player_ids_b,
    )
    caps = resolve_capabilities(session, user, tournament, composition.sides())
    require(caps, Capability.PLAY_MATCH, Capability.MANAGE_TOURNAMENT)

    if data.status not in (MatchStatus.scheduled, MatchStatus.reported):
        raise BadRequestError(ErrorCode.VALIDATION_ERROR, {"field": "status", "value": data.status})
    reporting = data.status == MatchStatus.reported
    if reporting:
        _check_scores(tournament, None, data.score_a, data.score_b)

    enforce_match_rules(session, tournament, composition)

    try:
        match = Match(
            tournament_id=tournament.id,
            round=data.round,
            team_a_id=composition.team_a_id,
            team_b_id=composition.team_b_id,
            played_at=data.played_at,
            status=MatchStatus.scheduled.value,
        )
        session.add(match)
        session.flush()

        if composition.team_mode == TeamMode.flex:
            for side, player_ids in ((TeamSide.A, composition.player_ids_a), (TeamSide.B, composition.player_ids_b)):
                for player_id in player_ids:
                    session.add(MatchParticipation(match_id=match.id, player_id=player_id, team_side=side.value))
            session.flush()

        if reporting:
            _record_report(
                session, match, tournament, user.id, data.score_a, data.score_b, data.report_proof, data.played_at
            )
            check_and_finalize(session, match.id)

        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(match)
    logger.info("Match %s created in tournament %s by user %s (%s)", match.id, tournament.id, user.id, match.status)
    return match


def update_match(session: Session, match_id: int, data: MatchUpdate, acting_user_id: Optional[int]) -> Match:
    match = get_match(session, match_id)
    tournament = _get_tournament(session, match.tournament_id)
    user = get_acting_user(session, acting_user_id)
    require(resolve_capabilities(session, user, tournament), Capability.MANAGE_TOURNAMENT)

    if match.status in LOCKED_STATUSES:
        raise BadRequestError(ErrorCode.MATCH_ALREADY_CONFIRMED, {"status": match.status})
    if match.status == MatchStatus.cancelled:
        raise BadRequestError(ErrorCode.MATCH_INVALID_STATUS, {"status": match.status})

    roster_change = any(
        value is not None for value in (data.team_a_id, data.team_b_id, data.player_ids_a, data.player_ids_b)
    )
    try:
        if roster_change:
            current = load_match_sides(session, match, tournament)
            composition = resolve_composition(
                session,
                tournament,
                team_a_id=data.team_a_id if data.team_a_id is not None else match.team_a_id,
                team_b_id=data.team_b_id if data.team_b_id is not None else match.team_b_id,
                player_ids_a=data.player_ids_a if data.player_ids_a is not None else list(current.a.player_ids),
                player_ids_b=data.player_ids_b if data.player_ids_b is not None else list(current.b.player_ids),
            )
            enforce_match_rules(session, tournament, composition, exclude_match_id=match.id)
            if composition.team_mode == TeamMode.flex:
                for row in list(match.participations):
                    session.delete(row)
                session.flush()
                for side, player_ids in ((TeamSide.A, composition.player_ids_a), (TeamSide.B, composition.player_ids_b)):
                    for player_id in player_ids:
                        session.add(MatchParticipation(match_id=match.id, player_id=player_id, team_side=side.value))
            else:
                match.team_a_id = composition.team_a_id
                match.team_b_id = composition.team_b_id

        if data.score_a is not None or data.score_b is not None:
            score_a = data.score_a if data.score_a is not None else match.score_a
            score_b = data.score_b if data.score_b is not None else match.score_b
            _check_scores(tournament, match, score_a, score_b)
            _apply_scores(match, tournament, score_a, score_b)

        if data.played_at is not None:
            match.played_at = data.played_at
        if data.round is not None:
            match.round = data.round
        match.updated_at = datetime.now(timezone.utc)
        session.add(match)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(match)
    logger.info("Match %s updated by user %s", match.id, user.id)
    return match


def delete_match(session: Session, match_id: int, acting_user_id: Optional[int]) -> None:
    match = get_match(session, match_id)
    tournament = _get_tournament(session, match.tournament_id)
    user = get_acting_user(session, acting_user_id)
    require(resolve_capabilities(session, user, tournament), Capability.MANAGE_TOURNAMENT)

    if match.status in LOCKED_STATUSES:
        raise BadRequestError(ErrorCode.MATCH_CANNOT_BE_DELETED, {"status": match.status})

    # Bracket feeders must not point at a missing match
    session.execute(update(Match).where(Match.next_match_win_id == match.id).values(next_match_win_id=None))
    session.execute(update(Match).where(Match.next_match_lose_id == match.id).values(next_match_lose_id=None))
    session.delete(match)
    session.commit()
    logger.info("Match %s deleted by user %s", match_id, user.id)


def cancel_match(session: Session, match_id: int, acting_user_id: Optional[int]) -> Match:
    match = get_match(session, match_id)
    tournament = _get_tournament(session, match.tournament_id)
    user = get_acting_user(session, acting_user_id)
    require(resolve_capabilities(session, user, tournament), Capability.MANAGE_TOURNAMENT)

    if match.status in TERMINAL_STATUSES:
        raise BadRequestError(ErrorCode.MATCH_INVALID_STATUS, {"status": match.status})
    match.status = MatchStatus.cancelled.value
    match.updated_at = datetime.now(timezone.utc)
    session.add(match)
    try:
        if match.bracket_type is not None:
            # Nobody advances; downstream matches may become walkovers
            session.flush()
            apply_advancement(session, match)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(match)
    logger.info("Match %s cancelled by user %s", match.id, user.id)
    return match


def report_match_result(session: Session, match_id: int, data: ReportInput, acting_user_id: Optional[int]) -> Match:
    match = get_match(session, match_id)
    if match.status not in REPORTABLE_STATUSES:
        raise BadRequestError(ErrorCode.MATCH_INVALID_STATUS, {"status": match.status})
    tournament = _get_tournament(session, match.tournament_id)
    user = get_acting_user(session, acting_user_id)

    if uses_team_slots(match, tournament) and (match.team_a_id is None or match.team_b_id is None):
        # Bracket match still waiting for a feeder
        raise BadRequestError(ErrorCode.MATCH_INVALID_STATUS, {"status": match.status})

    sides = load_match_sides(session, match, tournament)
    require(
        resolve_capabilities(session, user, tournament, sides),
        Capability.PLAY_MATCH,
        code=ErrorCode.NOT_A_PARTICIPANT,
    )
    _check_scores(tournament, match, data.score_a, data.score_b)

    try:
        _record_report(
            session, match, tournament, user.id, data.score_a, data.score_b, data.report_proof, data.played_at
        )
        check_and_finalize(session, match.id)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(match)
    logger.info(
        "Match %s reported %s-%s by user %s, status %s",
        match.id,
        data.score_a,
        data.score_b,
        user.id,
        match.status,
    )
    return match


def _check_awaiting_confirmation(match: Match) -> None:
    if match.status == MatchStatus.finalized:
        raise BadRequestError(ErrorCode.MATCH_ALREADY_FINALIZED)
    if match.status not in AWAITING_CONFIRMATION:
        raise BadRequestError(ErrorCode.MATCH_INVALID_STATUS, {"status": match.status})


def confirm_match(session: Session, match_id: int, acting_user_id: Optional[int]) -> Match:
    match = get_match(session, match_id)
    _check_awaiting_confirmation(match)
    tournament = _get_tournament(session, match.tournament_id)
    user = get_acting_user(session, acting_user_id)
    sides = load_match_sides(session, match, tournament)
    require(
        resolve_capabilities(session, user, tournament, sides),
        Capability.PLAY_MATCH,
        code=ErrorCode.NOT_A_PARTICIPANT,
    )

    _upsert_confirmation(session, match.id, user.id, is_confirmed=True)
    try:
        finalized = check_and_finalize(session, match.id)
        if not finalized and user.id != match.reported_by:
            _transition(
                session,
                match.id,
                (MatchStatus.reported,),
                {"status": MatchStatus.pending_confirmation.value, "updated_at": datetime.now(timezone.utc)},
            )
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(match)
    logger.info("Match %s confirmed by user %s, status %s", match.id, user.id, match.status)
    return match


def contest_match(session: Session, match_id: int, data: ContestInput, acting_user_id: Optional[int]) -> Match:
    match = get_match(session, match_id)
    _check_awaiting_confirmation(match)
    tournament = _get_tournament(session, match.tournament_id)
    user = get_acting_user(session, acting_user_id)
    sides = load_match_sides(session, match, tournament)
    require(
        resolve_capabilities(session, user, tournament, sides),
        Capability.PLAY_MATCH,
        code=ErrorCode.NOT_A_PARTICIPANT,
    )

    try:
        _upsert_confirmation(
            session,
            match.id,
            user.id,
            is_confirmed=False,
            is_contested=True,
            reason=data.reason,
            proof=data.proof,
        )
        moved = _transition(
            session,
            match.id,
            AWAITING_CONFIRMATION,
            {"status": MatchStatus.disputed.value, "updated_at": datetime.now(timezone.utc)},
        )
        if not moved:
            session.rollback()
            session.refresh(match)
            _check_awaiting_confirmation(match)
        session.commit()
    except AppError:
        raise
    except Exception:
        session.rollback()
        raise

    session.refresh(match)
    logger.info("Match %s contested by user %s", match.id, user.id)
    return match


def finalize_match(
    session: Session,
    match_id: int,
    reason: Optional[str] = None,
    acting_user_id: Optional[int] = None,
) -> Match:
    """
    Explicit finalization. With an acting user this is an administrative override and needs
    management capability; without one it is a system call and the reason is mandatory.
    """
    match = get_match(session, match_id)
    tournament = _get_tournament(session, match.tournament_id)

    finalized_by = None
    if acting_user_id is not None:
        user = get_acting_user(session, acting_user_id)
        require(resolve_capabilities(session, user, tournament), Capability.MANAGE_TOURNAMENT)
        finalized_by = user.id
        reason = reason or FinalizationReason.admin_override.value
    elif reason is None:
        raise BadRequestError(ErrorCode.VALIDATION_ERROR, {"field": "reason"})

    try:
        reason_value = FinalizationReason(reason)
    except ValueError:
        raise BadRequestError(ErrorCode.VALIDATION_ERROR, {"field": "reason", "value": reason})

    if match.status == MatchStatus.finalized:
        raise BadRequestError(ErrorCode.MATCH_ALREADY_FINALIZED)
    if match.status not in FINALIZABLE_STATUSES or match.score_a is None or match.score_b is None:
        raise BadRequestError(ErrorCode.MATCH_INVALID_STATUS, {"status": match.status})

    if not _finalize_guarded(session, match, tournament, reason_value, FINALIZABLE_STATUSES, finalized_by):
        session.rollback()
        session.refresh(match)
        raise BadRequestError(ErrorCode.MATCH_ALREADY_FINALIZED)
    session.commit()
    session.refresh(match)
    return match


def validate_match(session: Session, data: MatchInput) -> Dict[str, Any]:
    """
    Pre-flight check for a proposed match. Never raises for rule problems and never writes:
    every violation is returned as a readable line in `errors`.
    """
    errors: List[str] = []
    warnings: List[str] = []

    tournament = session.get(Tournament, data.tournament_id)
    if tournament is None:
        errors.append(NotFoundError(ErrorCode.TOURNAMENT_NOT_FOUND).message)
        return {"valid": False, "errors": errors, "warnings": warnings}
    if tournament.status not in (TournamentStatus.open, TournamentStatus.ongoing):
        errors.append(BadRequestError(ErrorCode.TOURNAMENT_INVALID_STATUS).message)
        return {"valid": False, "errors": errors, "warnings": warnings}

    composition_args = dict(
        team_a_id=data.team_a_id,
        team_b_id=data.team_b_id,
        player_ids_a=data.player_ids_a,
        player_ids_b=data.player_ids_b,
    )
    errors.extend(e.message for e in iter_composition_errors(session, tournament, **composition_args))
    if errors:
        # Quotas need a well-formed composition
        return {"valid": False, "errors": errors, "warnings": warnings}
    composition = resolve_composition(session, tournament, **composition_args)

    history = load_match_history(session, tournament, exclude_match_id=data.match_id)
    for violation in iter_rule_violations(session, tournament, composition, data.match_id, history=history):
        errors.append(violation.message)
    if pairing_exists(history, composition):
        warnings.append(PAIRING_WARNING)

    return {"valid": not errors, "errors": errors, "warnings": warnings}


def auto_finalize_expired_matches(session: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Sweep matches whose confirmation window has passed.

    Returns {"total": n, "finalized": [match ids], "disputed": [match ids]}.

    Contested matches become disputed, the rest are finalized with auto_validation.
    Each match is committed on its own; a failure is logged and the sweep moves on.
    Idempotent: a second run over the same data finds nothing to do.
    """
    now = now or datetime.now(timezone.utc)
    expired_ids = session.exec(
        select(Match.id)
        .where(
            Match.status.in_(_status_values(AWAITING_CONFIRMATION)),
            Match.confirmation_deadline.is_not(None),
            Match.confirmation_deadline <= now,
        )
        .order_by(Match.id)
    ).all()

    finalized: List[int] = []
    disputed: List[int] = []
    for match_id in expired_ids:
        try:
            match = get_match(session, match_id)
            contested = any(c.is_contested for c in get_confirmations(session, match_id))
            if contested:
                moved = _transition(
                    session,
                    match_id,
                    AWAITING_CONFIRMATION,
                    {"status": MatchStatus.disputed.value, "updated_at": now},
                )
            else:
                tournament = _get_tournament(session, match.tournament_id)
                moved = _finalize_guarded(session, match, tournament, FinalizationReason.auto_validation)
            session.commit()
            if moved:
                (disputed if contested else finalized).append(match_id)
        except Exception:
            session.rollback()
            logger.exception("Auto-finalization failed for match %s", match_id)

    summary = {"total": len(finalized) + len(disputed), "finalized": finalized, "disputed": disputed}
    if expired_ids:
        logger.info("Auto-finalize sweep: %s", summary)
    return summary
