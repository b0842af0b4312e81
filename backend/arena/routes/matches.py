"""
Match API Routes
Ad-hoc match creation and validation, result reporting, confirmation, contestation,
administrative finalization/cancellation and the manual auto-finalize trigger.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from arena.database import get_session
from arena.dependencies import require_acting_user_id
from arena.models.match import BracketType, FinalizationReason, Match, MatchStatus
from arena.services import match_lifecycle, tournament_service
from arena.services.permissions import Capability, get_acting_user, require, resolve_capabilities
from arena.services.rosters import load_match_sides

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class MatchCreateRequest(BaseModel):
    tournament_id: int
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    player_ids_a: List[int] = Field(default_factory=list)
    player_ids_b: List[int] = Field(default_factory=list)
    status: str = Field(default=MatchStatus.scheduled.value, pattern="^(scheduled|reported)$")
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    report_proof: Optional[str] = None
    played_at: Optional[datetime] = None
    round: Optional[int] = None


class MatchValidateRequest(MatchCreateRequest):
    match_id: Optional[int] = None


class MatchUpdateRequest(BaseModel):
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    player_ids_a: Optional[List[int]] = None
    player_ids_b: Optional[List[int]] = None
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    played_at: Optional[datetime] = None
    round: Optional[int] = None


class ReportRequest(BaseModel):
    score_a: int
    score_b: int
    report_proof: Optional[str] = None
    played_at: Optional[datetime] = None


class ContestRequest(BaseModel):
    reason: Optional[str] = None
    proof: Optional[str] = None


class FinalizeRequest(BaseModel):
    reason: Optional[FinalizationReason] = None


class ConfirmationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: int
    is_confirmed: bool
    is_contested: bool
    contestation_reason: Optional[str] = None
    contestation_proof: Optional[str] = None
    updated_at: datetime


class MatchResponse(BaseModel):
    id: int
    tournament_id: int
    round: Optional[int] = None
    sequence: Optional[int] = None
    bracket_type: Optional[str] = None
    match_position: Optional[int] = None
    next_match_win_id: Optional[int] = None
    next_match_lose_id: Optional[int] = None
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    player_ids_a: List[int] = Field(default_factory=list)
    player_ids_b: List[int] = Field(default_factory=list)
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    winner_id: Optional[int] = None
    winner_side: Optional[str] = None
    status: str
    reported_by: Optional[int] = None
    reported_at: Optional[datetime] = None
    report_proof: Optional[str] = None
    confirmation_deadline: Optional[datetime] = None
    finalized_at: Optional[datetime] = None
    finalized_by: Optional[int] = None
    finalization_reason: Optional[str] = None
    played_at: Optional[datetime] = None
    confirmations: List[ConfirmationResponse] = Field(default_factory=list)


class ValidationResponse(BaseModel):
    valid: bool
    errors: List[str]
    warnings: List[str]


class SweepResponse(BaseModel):
    total: int
    finalized: List[int]
    disputed: List[int]


def _match_response(session: Session, match: Match) -> MatchResponse:
    tournament = tournament_service.get_tournament(session, match.tournament_id)
    sides = load_match_sides(session, match, tournament)
    data = match.model_dump()
    data["player_ids_a"] = list(sides.a.player_ids)
    data["player_ids_b"] = list(sides.b.player_ids)
    data["confirmations"] = [
        ConfirmationResponse.model_validate(c) for c in match_lifecycle.get_confirmations(session, match.id)
    ]
    return MatchResponse(**data)


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/matches", response_model=MatchResponse, status_code=201)
def create_match(
    payload: MatchCreateRequest,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Create a scheduled match, or a reported one when scores are supplied"""
    match = match_lifecycle.create_match(session, match_lifecycle.MatchInput(**payload.model_dump()), acting_user_id)
    return _match_response(session, match)


@router.post("/matches/validate", response_model=ValidationResponse)
def validate_match(payload: MatchValidateRequest, session: Session = Depends(get_session)):
    """Dry run of match creation: every rule problem as a readable line, nothing written"""
    return match_lifecycle.validate_match(session, match_lifecycle.MatchInput(**payload.model_dump()))


@router.post("/matches/auto-finalize", response_model=SweepResponse)
def run_auto_finalize(
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Run the confirmation-timeout sweep once (super admin)"""
    user = get_acting_user(session, acting_user_id)
    require(resolve_capabilities(session, user), Capability.RUN_MAINTENANCE)
    return match_lifecycle.auto_finalize_expired_matches(session)


@router.get("/matches", response_model=List[MatchResponse])
def list_matches(
    tournament_id: Optional[int] = Query(default=None),
    status: Optional[MatchStatus] = Query(default=None),
    team_id: Optional[int] = Query(default=None),
    bracket_type: Optional[BracketType] = Query(default=None),
    session: Session = Depends(get_session),
):
    """List matches, ordered by id"""
    matches = match_lifecycle.list_matches(
        session,
        tournament_id=tournament_id,
        status=status.value if status else None,
        team_id=team_id,
        bracket_type=bracket_type.value if bracket_type else None,
    )
    return [_match_response(session, m) for m in matches]


@router.get("/matches/{match_id}", response_model=MatchResponse)
def get_match(match_id: int, session: Session = Depends(get_session)):
    """Get a match with its rosters and confirmations"""
    return _match_response(session, match_lifecycle.get_match(session, match_id))


@router.patch("/matches/{match_id}", response_model=MatchResponse)
def update_match(
    match_id: int,
    payload: MatchUpdateRequest,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Edit a match that is not yet confirmed (tournament admins)"""
    match = match_lifecycle.update_match(
        session, match_id, match_lifecycle.MatchUpdate(**payload.model_dump()), acting_user_id
    )
    return _match_response(session, match)


@router.delete("/matches/{match_id}", status_code=204)
def delete_match(
    match_id: int,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Delete a match that is not yet confirmed (tournament admins)"""
    match_lifecycle.delete_match(session, match_id, acting_user_id)
    return Response(status_code=204)


@router.post("/matches/{match_id}/report", response_model=MatchResponse)
def report_match(
    match_id: int,
    payload: ReportRequest,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Report a result; opens the confirmation window"""
    match = match_lifecycle.report_match_result(
        session, match_id, match_lifecycle.ReportInput(**payload.model_dump()), acting_user_id
    )
    return _match_response(session, match)


@router.post("/matches/{match_id}/confirm", response_model=MatchResponse)
def confirm_match(
    match_id: int,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Confirm the reported result"""
    match = match_lifecycle.confirm_match(session, match_id, acting_user_id)
    return _match_response(session, match)


@router.post("/matches/{match_id}/contest", response_model=MatchResponse)
def contest_match(
    match_id: int,
    payload: ContestRequest,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Contest the reported result; the match becomes disputed"""
    match = match_lifecycle.contest_match(
        session, match_id, match_lifecycle.ContestInput(**payload.model_dump()), acting_user_id
    )
    return _match_response(session, match)


@router.post("/matches/{match_id}/finalize", response_model=MatchResponse)
def finalize_match(
    match_id: int,
    payload: Optional[FinalizeRequest] = None,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Administrative finalization, also used to settle disputes"""
    reason = payload.reason.value if payload and payload.reason else None
    match = match_lifecycle.finalize_match(session, match_id, reason=reason, acting_user_id=acting_user_id)
    return _match_response(session, match)


@router.post("/matches/{match_id}/cancel", response_model=MatchResponse)
def cancel_match(
    match_id: int,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Cancel a match that is not finalized"""
    match = match_lifecycle.cancel_match(session, match_id, acting_user_id)
    return _match_response(session, match)
