"""
Tournament orchestration: tournament CRUD and status, registration, teams and bracket generation.

Bracket generation runs builder -> persister -> bye resolution inside one transaction. The
"tournament already has matches" check happens in that same transaction, so a repeated
request fails instead of producing a second bracket.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from arena.config import MAX_DRAFT_TOURNAMENTS
from arena.errors import BadRequestError, ConflictError, ErrorCode, NotFoundError
from arena.models.match import Match
from arena.models.match_confirmation import MatchConfirmation
from arena.models.match_participation import MatchParticipation
from arena.models.participant import Participant
from arena.models.team import Team, composition_hash
from arena.models.tournament import (
    AdminRole,
    TeamMode,
    Tournament,
    TournamentAdmin,
    TournamentMode,
    TournamentStatus,
)
from arena.models.user import AppUser
from arena.services.bracket_builder import (
    SINGLE_ELIMINATION,
    BracketParticipant,
    build_bracket,
)
from arena.services.bracket_persister import persist_bracket, resolve_byes
from arena.services.permissions import Capability, get_acting_user, require, resolve_capabilities

logger = logging.getLogger(__name__)

# current status -> statuses it may move to
STATUS_TRANSITIONS: Dict[str, tuple] = {
    TournamentStatus.draft.value: (TournamentStatus.open.value,),
    TournamentStatus.open.value: (TournamentStatus.ongoing.value, TournamentStatus.draft.value),
    TournamentStatus.ongoing.value: (TournamentStatus.finished.value,),
    TournamentStatus.finished.value: (),
}
LEAVABLE_STATUSES = (TournamentStatus.draft, TournamentStatus.open)


@dataclass
class TournamentInput:
    name: str
    start_date: date
    end_date: date
    description: Optional[str] = None
    mode: str = TournamentMode.championship.value
    team_mode: str = TeamMode.static.value
    min_team_size: int = 1
    max_team_size: int = 1
    max_matches_per_player: int = 10
    max_times_with_same_partner: int = 2
    max_times_with_same_opponent: int = 2
    point_per_victory: int = 3
    point_per_draw: int = 1
    point_per_loss: int = 0
    allow_draw: bool = True


def get_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if tournament is None:
        raise NotFoundError(ErrorCode.TOURNAMENT_NOT_FOUND, {"tournamentId": tournament_id})
    return tournament


def list_tournaments(session: Session, status: Optional[str] = None) -> List[Tournament]:
    query = select(Tournament)
    if status is not None:
        query = query.where(Tournament.status == status)
    return list(session.exec(query.order_by(Tournament.id)).all())


def _validate_settings(data: TournamentInput) -> None:
    if data.start_date >= data.end_date:
        raise BadRequestError(
            ErrorCode.INVALID_DATE_RANGE,
            {"startDate": data.start_date.isoformat(), "endDate": data.end_date.isoformat()},
        )
    if data.mode not in {m.value for m in TournamentMode}:
        raise BadRequestError(ErrorCode.VALIDATION_ERROR, {"field": "mode", "value": data.mode})
    if data.team_mode not in {m.value for m in TeamMode}:
        raise BadRequestError(ErrorCode.VALIDATION_ERROR, {"field": "team_mode", "value": data.team_mode})
    if data.min_team_size < 1 or data.min_team_size > data.max_team_size:
        raise BadRequestError(
            ErrorCode.INVALID_TEAM_SIZE,
            {"min": data.min_team_size, "max": data.max_team_size},
        )
    for field_name in ("max_matches_per_player", "max_times_with_same_partner", "max_times_with_same_opponent"):
        if getattr(data, field_name) < 1:
            raise BadRequestError(ErrorCode.VALIDATION_ERROR, {"field": field_name})


def create_tournament(session: Session, data: TournamentInput, acting_user_id: Optional[int]) -> Tournament:
    user = get_acting_user(session, acting_user_id)
    require(resolve_capabilities(session, user), Capability.CREATE_TOURNAMENT)
    _validate_settings(data)

    drafts = session.exec(
        select(func.count(Tournament.id)).where(
            Tournament.created_by == user.id,
            Tournament.status == TournamentStatus.draft.value,
        )
    ).one()
    if drafts >= MAX_DRAFT_TOURNAMENTS:
        raise ConflictError(ErrorCode.MAX_DRAFT_TOURNAMENTS_EXCEEDED, {"max": MAX_DRAFT_TOURNAMENTS})

    if session.exec(select(Tournament).where(Tournament.name == data.name)).first():
        raise ConflictError(ErrorCode.TOURNAMENT_NAME_TAKEN, {"name": data.name})

    tournament = Tournament(
        name=data.name,
        description=data.description,
        mode=data.mode,
        team_mode=data.team_mode,
        min_team_size=data.min_team_size,
        max_team_size=data.max_team_size,
        max_matches_per_player=data.max_matches_per_player,
        max_times_with_same_partner=data.max_times_with_same_partner,
        max_times_with_same_opponent=data.max_times_with_same_opponent,
        point_per_victory=data.point_per_victory,
        point_per_draw=data.point_per_draw,
        point_per_loss=data.point_per_loss,
        allow_draw=data.allow_draw,
        start_date=data.start_date,
        end_date=data.end_date,
        status=TournamentStatus.draft.value,
        created_by=user.id,
    )
    try:
        session.add(tournament)
        session.flush()
        session.add(TournamentAdmin(tournament_id=tournament.id, user_id=user.id, role=AdminRole.owner.value))
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError(ErrorCode.TOURNAMENT_NAME_TAKEN, {"name": data.name})

    session.refresh(tournament)
    logger.info("Tournament %s (%s) created by user %s", tournament.id, tournament.name, user.id)
    return tournament


def change_tournament_status(
    session: Session, tournament_id: int, target: str, acting_user_id: Optional[int]
) -> Tournament:
    tournament = get_tournament(session, tournament_id)
    user = get_acting_user(session, acting_user_id)
    require(resolve_capabilities(session, user, tournament), Capability.MANAGE_TOURNAMENT)

    allowed = STATUS_TRANSITIONS.get(tournament.status, ())
    if target not in allowed:
        raise BadRequestError(
            ErrorCode.INVALID_STATUS_TRANSITION,
            {"current": tournament.status, "target": target},
        )
    previous = tournament.status
    tournament.status = target
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    logger.info("Tournament %s status %s -> %s by user %s", tournament.id, previous, target, user.id)
    return tournament


def delete_tournament(session: Session, tournament_id: int, acting_user_id: Optional[int]) -> None:
    tournament = get_tournament(session, tournament_id)
    user = get_acting_user(session, acting_user_id)
    require(resolve_capabilities(session, user, tournament), Capability.OWN_TOURNAMENT)
    if tournament.status != TournamentStatus.draft:
        raise BadRequestError(ErrorCode.TOURNAMENT_CANNOT_BE_DELETED, {"status": tournament.status})

    match_ids = select(Match.id).where(Match.tournament_id == tournament.id)
    try:
        session.execute(delete(MatchConfirmation).where(MatchConfirmation.match_id.in_(match_ids)))
        session.execute(delete(MatchParticipation).where(MatchParticipation.match_id.in_(match_ids)))
        session.execute(delete(Match).where(Match.tournament_id == tournament.id))
        session.execute(delete(Participant).where(Participant.tournament_id == tournament.id))
        session.execute(delete(Team).where(Team.tournament_id == tournament.id))
        session.execute(delete(TournamentAdmin).where(TournamentAdmin.tournament_id == tournament.id))
        session.execute(delete(Tournament).where(Tournament.id == tournament.id))
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info("Tournament %s deleted by user %s", tournament_id, user.id)


def add_tournament_admin(
    session: Session, tournament_id: int, user_id: int, acting_user_id: Optional[int]
) -> TournamentAdmin:
    tournament = get_tournament(session, tournament_id)
    user = get_acting_user(session, acting_user_id)
    require(resolve_capabilities(session, user, tournament), Capability.OWN_TOURNAMENT)
    if session.get(AppUser, user_id) is None:
        raise NotFoundError(ErrorCode.USER_NOT_FOUND, {"userId": user_id})

    existing = session.exec(
        select(TournamentAdmin).where(
            TournamentAdmin.tournament_id == tournament.id,
            TournamentAdmin.user_id == user_id,
        )
    ).first()
    if existing:
        return existing
    admin = TournamentAdmin(tournament_id=tournament.id, user_id=user_id, role=AdminRole.co_admin.value)
    session.add(admin)
    session.commit()
    session.refresh(admin)
    logger.info("User %s added as co-admin of tournament %s", user_id, tournament.id)
    return admin


# -----------------------------------------------------------------------------
# Registration
# -----------------------------------------------------------------------------

def list_participants(session: Session, tournament_id: int) -> List[Participant]:
    get_tournament(session, tournament_id)
    return list(
        session.exec(
            select(Participant).where(Participant.tournament_id == tournament_id).order_by(Participant.id)
        ).all()
    )


def _find_participant(session: Session, tournament_id: int, user_id: int) -> Optional[Participant]:
    return session.exec(
        select(Participant).where(
            Participant.tournament_id == tournament_id,
            Participant.user_id == user_id,
        )
    ).first()


def join_tournament(session: Session, tournament_id: int, acting_user_id: Optional[int]) -> Participant:
    tournament = get_tournament(session, tournament_id)
    user = get_acting_user(session, acting_user_id)
    if tournament.status != TournamentStatus.open:
        raise BadRequestError(ErrorCode.TOURNAMENT_CLOSED, {"status": tournament.status})
    if _find_participant(session, tournament.id, user.id):
        raise ConflictError(ErrorCode.ALREADY_REGISTERED)

    participant = Participant(tournament_id=tournament.id, user_id=user.id)
    try:
        session.add(participant)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError(ErrorCode.ALREADY_REGISTERED)
    session.refresh(participant)
    logger.info("User %s joined tournament %s", user.id, tournament.id)
    return participant


def leave_tournament(session: Session, tournament_id: int, acting_user_id: Optional[int]) -> None:
    tournament = get_tournament(session, tournament_id)
    user = get_acting_user(session, acting_user_id)
    participant = _find_participant(session, tournament.id, user.id)
    if participant is None:
        raise BadRequestError(ErrorCode.NOT_REGISTERED)
    if tournament.status not in LEAVABLE_STATUSES:
        raise BadRequestError(ErrorCode.CANNOT_LEAVE_ONGOING_TOURNAMENT, {"status": tournament.status})
    session.delete(participant)
    session.commit()
    logger.info("User %s left tournament %s", user.id, tournament.id)


# -----------------------------------------------------------------------------
# Teams
# -----------------------------------------------------------------------------

def list_teams(session: Session, tournament_id: int) -> List[Team]:
    get_tournament(session, tournament_id)
    return list(session.exec(select(Team).where(Team.tournament_id == tournament_id).order_by(Team.id)).all())


def create_team(
    session: Session,
    tournament_id: int,
    name: str,
    member_ids: Sequence[int],
    acting_user_id: Optional[int],
) -> Team:
    """Static mode team. Members must be registered and not already on a team."""
    tournament = get_tournament(session, tournament_id)
    user = get_acting_user(session, acting_user_id)
    if tournament.team_mode != TeamMode.static:
        raise BadRequestError(ErrorCode.TEAM_MODE_MISMATCH, {"teamMode": tournament.team_mode})

    members = list(dict.fromkeys(member_ids))
    caps = resolve_capabilities(session, user, tournament)
    if user.id not in members:
        require(caps, Capability.MANAGE_TOURNAMENT)

    if not tournament.min_team_size <= len(members) <= tournament.max_team_size:
        raise BadRequestError(
            ErrorCode.INVALID_TEAM_SIZE,
            {"min": tournament.min_team_size, "max": tournament.max_team_size},
        )

    participants = []
    for member_id in members:
        participant = _find_participant(session, tournament.id, member_id)
        if participant is None:
            raise BadRequestError(ErrorCode.NOT_REGISTERED, {"userId": member_id})
        if participant.team_id is not None:
            member = session.get(AppUser, member_id)
            raise ConflictError(
                ErrorCode.PLAYER_ALREADY_IN_TEAM,
                {"playerName": member.display_name if member else str(member_id)},
            )
        participants.append(participant)

    if session.exec(select(Team).where(Team.tournament_id == tournament.id, Team.name == name)).first():
        raise ConflictError(ErrorCode.TEAM_NAME_TAKEN, {"name": name})
    fingerprint = composition_hash(members)
    if session.exec(
        select(Team).where(Team.tournament_id == tournament.id, Team.composition_hash == fingerprint)
    ).first():
        raise ConflictError(ErrorCode.TEAM_DUPLICATE_COMPOSITION)

    team = Team(tournament_id=tournament.id, name=name, composition_hash=fingerprint, created_by=user.id)
    try:
        session.add(team)
        session.flush()
        for participant in participants:
            participant.team_id = team.id
            session.add(participant)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError(ErrorCode.TEAM_DUPLICATE_COMPOSITION)

    session.refresh(team)
    logger.info("Team %s (%s) created in tournament %s", team.id, team.name, tournament.id)
    return team


def _one_person_team(session: Session, tournament: Tournament, participant: Participant) -> Team:
    """Flex brackets pair people, so each participant gets a team of one."""
    if participant.team_id is not None:
        team = session.get(Team, participant.team_id)
        if team is not None:
            return team
    player = session.get(AppUser, participant.user_id)
    name = player.display_name if player else f"Player {participant.user_id}"
    if session.exec(select(Team).where(Team.tournament_id == tournament.id, Team.name == name)).first():
        name = f"{name} #{participant.user_id}"
    team = Team(
        tournament_id=tournament.id,
        name=name,
        composition_hash=composition_hash([participant.user_id]),
        created_by=participant.user_id,
    )
    session.add(team)
    session.flush()
    participant.team_id = team.id
    session.add(participant)
    return team


def bracket_participants(session: Session, tournament: Tournament) -> List[BracketParticipant]:
    """Derive the seeding list: teams by id (static) or one-person teams by registration (flex)."""
    if tournament.team_mode == TeamMode.flex:
        participants = session.exec(
            select(Participant).where(Participant.tournament_id == tournament.id).order_by(Participant.id)
        ).all()
        teams = [_one_person_team(session, tournament, p) for p in participants]
    else:
        teams = session.exec(select(Team).where(Team.tournament_id == tournament.id).order_by(Team.id)).all()
    return [BracketParticipant(team_id=t.id, name=t.name) for t in teams]


# -----------------------------------------------------------------------------
# Brackets
# -----------------------------------------------------------------------------

def generate_bracket(
    session: Session,
    tournament_id: int,
    participants: Optional[Sequence[BracketParticipant]] = None,
    bracket_type: str = SINGLE_ELIMINATION,
    acting_user_id: Optional[int] = None,
) -> List[Match]:
    """
    Build and persist an elimination bracket, then resolve opening-round byes.

    Without an explicit participant list the entrants are derived from the tournament.
    Nothing is persisted when validation fails.
    """
    tournament = get_tournament(session, tournament_id)
    if acting_user_id is not None:
        user = get_acting_user(session, acting_user_id)
        require(resolve_capabilities(session, user, tournament), Capability.MANAGE_TOURNAMENT)

    try:
        existing = session.exec(select(func.count(Match.id)).where(Match.tournament_id == tournament.id)).one()
        if existing:
            raise ConflictError(ErrorCode.BRACKET_ALREADY_GENERATED, {"matches": existing})

        if participants is None:
            participants = bracket_participants(session, tournament)
        else:
            for entrant in participants:
                team = session.get(Team, entrant.team_id)
                if team is None or team.tournament_id != tournament.id:
                    raise BadRequestError(ErrorCode.MATCH_INVALID_TEAMS, {"teamId": entrant.team_id})

        bracket = build_bracket(participants, bracket_type)
        rows = persist_bracket(session, tournament.id, bracket)
        byes = resolve_byes(session, bracket)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Generated %s bracket for tournament %s: %d matches, %d byes",
        bracket_type,
        tournament.id,
        len(rows),
        len(byes),
    )
    matches = [rows[bm.sequence] for bm in bracket]
    for match in matches:
        session.refresh(match)
    return matches
