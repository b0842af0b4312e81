"""
Tournament API Routes
Tournament CRUD and status, registration, teams, bracket generation and standings.
"""

from dataclasses import asdict
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from arena.database import get_session
from arena.dependencies import require_acting_user_id
from arena.models.match import BracketType
from arena.models.tournament import TeamMode, TournamentMode, TournamentStatus
from arena.services import standings as standings_service
from arena.services import tournament_service
from arena.services.bracket_builder import DOUBLE_ELIMINATION, SINGLE_ELIMINATION, BracketParticipant
from arena.services.match_lifecycle import list_matches

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class TournamentCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    mode: TournamentMode = TournamentMode.championship
    team_mode: TeamMode = TeamMode.static
    min_team_size: int = 1
    max_team_size: int = 1
    max_matches_per_player: int = 10
    max_times_with_same_partner: int = 2
    max_times_with_same_opponent: int = 2
    point_per_victory: int = 3
    point_per_draw: int = 1
    point_per_loss: int = 0
    allow_draw: bool = True
    start_date: date
    end_date: date


class TournamentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    mode: str
    team_mode: str
    min_team_size: int
    max_team_size: int
    max_matches_per_player: int
    max_times_with_same_partner: int
    max_times_with_same_opponent: int
    point_per_victory: int
    point_per_draw: int
    point_per_loss: int
    allow_draw: bool
    start_date: date
    end_date: date
    status: str
    created_by: int
    created_at: datetime


class StatusChangeRequest(BaseModel):
    status: TournamentStatus


class AdminAddRequest(BaseModel):
    user_id: int


class AdminResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    user_id: int
    role: str


class ParticipantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    user_id: int
    team_id: Optional[int] = None
    matches_played: int
    joined_at: datetime


class TeamCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    member_ids: List[int]


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    name: str
    composition_hash: Optional[str] = None
    created_at: datetime


class BracketEntrant(BaseModel):
    team_id: int
    seed: Optional[int] = None


class BracketGenerateRequest(BaseModel):
    bracket_type: str = Field(default=SINGLE_ELIMINATION, pattern=f"^({SINGLE_ELIMINATION}|{DOUBLE_ELIMINATION})$")
    participants: Optional[List[BracketEntrant]] = None


class BracketMatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    round: Optional[int] = None
    sequence: Optional[int] = None
    bracket_type: Optional[str] = None
    match_position: Optional[int] = None
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    next_match_win_id: Optional[int] = None
    next_match_lose_id: Optional[int] = None
    winner_id: Optional[int] = None
    status: str
    finalization_reason: Optional[str] = None


class StandingResponse(BaseModel):
    rank: int
    id: int
    name: str
    points: int
    wins: int
    draws: int
    losses: int
    scored: int
    conceded: int
    score_diff: int
    matches_played: int


# ============================================================================
# Tournament Endpoints
# ============================================================================


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(
    payload: TournamentCreateRequest,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Create a draft tournament owned by the acting user"""
    data = tournament_service.TournamentInput(**payload.model_dump())
    data.mode = payload.mode.value
    data.team_mode = payload.team_mode.value
    return tournament_service.create_tournament(session, data, acting_user_id)


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(
    status: Optional[TournamentStatus] = Query(default=None),
    session: Session = Depends(get_session),
):
    """List tournaments, optionally filtered by status"""
    return tournament_service.list_tournaments(session, status.value if status else None)


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    return tournament_service.get_tournament(session, tournament_id)


@router.patch("/tournaments/{tournament_id}/status", response_model=TournamentResponse)
def change_status(
    tournament_id: int,
    payload: StatusChangeRequest,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Move a tournament through draft -> open -> ongoing -> finished"""
    return tournament_service.change_tournament_status(session, tournament_id, payload.status.value, acting_user_id)


@router.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(
    tournament_id: int,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Delete a draft tournament and everything attached to it"""
    tournament_service.delete_tournament(session, tournament_id, acting_user_id)
    return Response(status_code=204)


@router.post("/tournaments/{tournament_id}/admins", response_model=AdminResponse, status_code=201)
def add_admin(
    tournament_id: int,
    payload: AdminAddRequest,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Add a co-admin (owner only)"""
    return tournament_service.add_tournament_admin(session, tournament_id, payload.user_id, acting_user_id)


# ============================================================================
# Registration
# ============================================================================


@router.post("/tournaments/{tournament_id}/participants", response_model=ParticipantResponse, status_code=201)
def join_tournament(
    tournament_id: int,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Register the acting user"""
    return tournament_service.join_tournament(session, tournament_id, acting_user_id)


@router.delete("/tournaments/{tournament_id}/participants", status_code=204)
def leave_tournament(
    tournament_id: int,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Unregister the acting user"""
    tournament_service.leave_tournament(session, tournament_id, acting_user_id)
    return Response(status_code=204)


@router.get("/tournaments/{tournament_id}/participants", response_model=List[ParticipantResponse])
def list_participants(tournament_id: int, session: Session = Depends(get_session)):
    """List registered participants"""
    return tournament_service.list_participants(session, tournament_id)


# ============================================================================
# Teams
# ============================================================================


@router.post("/tournaments/{tournament_id}/teams", response_model=TeamResponse, status_code=201)
def create_team(
    tournament_id: int,
    payload: TeamCreateRequest,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """Create a static team from registered participants"""
    return tournament_service.create_team(session, tournament_id, payload.name, payload.member_ids, acting_user_id)


@router.get("/tournaments/{tournament_id}/teams", response_model=List[TeamResponse])
def list_teams(tournament_id: int, session: Session = Depends(get_session)):
    """List teams, ordered by id"""
    return tournament_service.list_teams(session, tournament_id)


# ============================================================================
# Bracket and standings
# ============================================================================


@router.post("/tournaments/{tournament_id}/bracket", response_model=List[BracketMatchResponse], status_code=201)
def generate_bracket(
    tournament_id: int,
    payload: BracketGenerateRequest,
    session: Session = Depends(get_session),
    acting_user_id: int = Depends(require_acting_user_id),
):
    """
    Generate a single or double elimination bracket.

    Without a participant list, entrants are the tournament's teams (static mode) or its
    registered players (flex mode). Opening-round byes are resolved immediately.
    """
    participants = None
    if payload.participants is not None:
        participants = [BracketParticipant(team_id=p.team_id, seed=p.seed) for p in payload.participants]
    return tournament_service.generate_bracket(
        session,
        tournament_id,
        participants=participants,
        bracket_type=payload.bracket_type,
        acting_user_id=acting_user_id,
    )


@router.get("/tournaments/{tournament_id}/bracket", response_model=List[BracketMatchResponse])
def get_bracket(tournament_id: int, session: Session = Depends(get_session)):
    """Bracket matches ordered by sequence"""
    tournament_service.get_tournament(session, tournament_id)
    matches = [m for m in list_matches(session, tournament_id=tournament_id) if m.bracket_type is not None]
    order = {BracketType.winner.value: 0, BracketType.loser.value: 1, BracketType.grand_final.value: 2}
    return sorted(matches, key=lambda m: (order.get(m.bracket_type, 3), m.sequence or 0))


@router.get("/tournaments/{tournament_id}/standings", response_model=List[StandingResponse])
def get_standings(
    tournament_id: int,
    view: str = Query(default="official", pattern="^(official|provisional)$"),
    session: Session = Depends(get_session),
):
    """Ranked standings. `official` counts finalized matches, `provisional` adds reported ones."""
    if view == "provisional":
        entries = standings_service.get_provisional_standings(session, tournament_id)
    else:
        entries = standings_service.get_official_standings(session, tournament_id)
    return [StandingResponse(rank=i, **asdict(entry)) for i, entry in enumerate(entries, start=1)]
