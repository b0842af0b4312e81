"""Tournament CRUD, status flow, registration, teams and capabilities."""
from datetime import date

import pytest
from sqlmodel import Session, select

from arena.errors import BadRequestError, ConflictError, ErrorCode, ForbiddenError, UnauthorizedError
from arena.models.match import Match
from arena.models.participant import Participant
from arena.models.tournament import Tournament, TournamentAdmin
from arena.services import tournament_service
from arena.services.permissions import Capability, get_acting_user, require, resolve_capabilities
from arena.services.rosters import MatchSides, StaticTeamSide
from arena.services.tournament_service import TournamentInput


def _input(name="Spring Cup", **overrides):
    values = {"name": name, "start_date": date(2026, 4, 1), "end_date": date(2026, 4, 30)}
    values.update(overrides)
    return TournamentInput(**values)


def test_create_tournament_makes_owner_admin(session: Session, make_user):
    organizer = make_user("Org", "tournament_admin")
    tournament = tournament_service.create_tournament(session, _input(), organizer.id)

    assert tournament.status == "draft"
    assert tournament.created_by == organizer.id
    admin = session.exec(select(TournamentAdmin).where(TournamentAdmin.tournament_id == tournament.id)).one()
    assert (admin.user_id, admin.role) == (organizer.id, "owner")


def test_player_cannot_create_tournament(session: Session, make_user):
    player = make_user("Pat")
    with pytest.raises(ForbiddenError) as exc:
        tournament_service.create_tournament(session, _input(), player.id)
    assert exc.value.code == ErrorCode.INSUFFICIENT_PERMISSIONS


@pytest.mark.parametrize(
    "overrides,code",
    [
        ({"end_date": date(2026, 4, 1)}, ErrorCode.INVALID_DATE_RANGE),
        ({"min_team_size": 3, "max_team_size": 2}, ErrorCode.INVALID_TEAM_SIZE),
        ({"min_team_size": 0}, ErrorCode.INVALID_TEAM_SIZE),
        ({"team_mode": "mixed"}, ErrorCode.VALIDATION_ERROR),
        ({"max_matches_per_player": 0}, ErrorCode.VALIDATION_ERROR),
    ],
)
def test_invalid_settings(session: Session, make_user, overrides, code):
    organizer = make_user("Org", "tournament_admin")
    with pytest.raises(BadRequestError) as exc:
        tournament_service.create_tournament(session, _input(**overrides), organizer.id)
    assert exc.value.code == code


def test_duplicate_name(session: Session, make_user):
    organizer = make_user("Org", "tournament_admin")
    tournament_service.create_tournament(session, _input(), organizer.id)
    with pytest.raises(ConflictError) as exc:
        tournament_service.create_tournament(session, _input(), organizer.id)
    assert exc.value.code == ErrorCode.TOURNAMENT_NAME_TAKEN


def test_draft_cap(session: Session, make_user, monkeypatch):
    monkeypatch.setattr(tournament_service, "MAX_DRAFT_TOURNAMENTS", 2)
    organizer = make_user("Org", "tournament_admin")
    tournament_service.create_tournament(session, _input("One"), organizer.id)
    tournament_service.create_tournament(session, _input("Two"), organizer.id)

    with pytest.raises(ConflictError) as exc:
        tournament_service.create_tournament(session, _input("Three"), organizer.id)
    assert exc.value.code == ErrorCode.MAX_DRAFT_TOURNAMENTS_EXCEEDED
    assert exc.value.details == {"max": 2}


def test_status_flow(session: Session, make_user):
    organizer = make_user("Org", "tournament_admin")
    tournament = tournament_service.create_tournament(session, _input(), organizer.id)

    for target in ("open", "ongoing", "finished"):
        tournament = tournament_service.change_tournament_status(session, tournament.id, target, organizer.id)
        assert tournament.status == target

    with pytest.raises(BadRequestError) as exc:
        tournament_service.change_tournament_status(session, tournament.id, "open", organizer.id)
    assert exc.value.code == ErrorCode.INVALID_STATUS_TRANSITION


def test_co_admin_manages_but_does_not_own(session: Session, make_user):
    organizer = make_user("Org", "tournament_admin")
    helper = make_user("Helper")
    tournament = tournament_service.create_tournament(session, _input(), organizer.id)
    tournament_service.add_tournament_admin(session, tournament.id, helper.id, organizer.id)

    tournament = tournament_service.change_tournament_status(session, tournament.id, "open", helper.id)
    assert tournament.status == "open"

    tournament = tournament_service.change_tournament_status(session, tournament.id, "draft", helper.id)
    with pytest.raises(ForbiddenError):
        tournament_service.delete_tournament(session, tournament.id, helper.id)


def test_delete_draft_tournament(session: Session, make_user):
    organizer = make_user("Org", "tournament_admin")
    tournament = tournament_service.create_tournament(session, _input(), organizer.id)
    tournament_id = tournament.id

    tournament_service.delete_tournament(session, tournament_id, organizer.id)

    session.expire_all()
    assert session.get(Tournament, tournament_id) is None
    assert session.exec(select(TournamentAdmin)).all() == []


def test_only_draft_can_be_deleted(session: Session, make_user):
    organizer = make_user("Org", "tournament_admin")
    tournament = tournament_service.create_tournament(session, _input(), organizer.id)
    tournament_service.change_tournament_status(session, tournament.id, "open", organizer.id)

    with pytest.raises(BadRequestError) as exc:
        tournament_service.delete_tournament(session, tournament.id, organizer.id)
    assert exc.value.code == ErrorCode.TOURNAMENT_CANNOT_BE_DELETED


def test_join_and_leave(session: Session, make_user, make_tournament):
    tournament = make_tournament()
    player = make_user("Pat")

    participant = tournament_service.join_tournament(session, tournament.id, player.id)
    assert participant.matches_played == 0

    with pytest.raises(ConflictError) as exc:
        tournament_service.join_tournament(session, tournament.id, player.id)
    assert exc.value.code == ErrorCode.ALREADY_REGISTERED

    tournament_service.leave_tournament(session, tournament.id, player.id)
    assert tournament_service.list_participants(session, tournament.id) == []

    with pytest.raises(BadRequestError) as exc:
        tournament_service.leave_tournament(session, tournament.id, player.id)
    assert exc.value.code == ErrorCode.NOT_REGISTERED


def test_join_requires_open_tournament(session: Session, make_user, make_tournament):
    tournament = make_tournament(status="draft")
    with pytest.raises(BadRequestError) as exc:
        tournament_service.join_tournament(session, tournament.id, make_user("Pat").id)
    assert exc.value.code == ErrorCode.TOURNAMENT_CLOSED


def test_cannot_leave_ongoing(session: Session, make_user, make_tournament, register):
    tournament = make_tournament(status="ongoing")
    player = make_user("Pat")
    register(tournament, player)
    with pytest.raises(BadRequestError) as exc:
        tournament_service.leave_tournament(session, tournament.id, player.id)
    assert exc.value.code == ErrorCode.CANNOT_LEAVE_ONGOING_TOURNAMENT


def test_create_team(session: Session, make_user, make_tournament, register):
    tournament = make_tournament(min_team_size=2, max_team_size=2)
    ana, bo, cal = make_user("Ana"), make_user("Bo"), make_user("Cal")
    register(tournament, ana, bo, cal)

    team = tournament_service.create_team(session, tournament.id, "Duo", [ana.id, bo.id], ana.id)

    members = session.exec(select(Participant.user_id).where(Participant.team_id == team.id)).all()
    assert sorted(members) == sorted([ana.id, bo.id])

    with pytest.raises(ConflictError) as exc:
        tournament_service.create_team(session, tournament.id, "Trio", [bo.id, cal.id], cal.id)
    assert exc.value.code == ErrorCode.PLAYER_ALREADY_IN_TEAM
    assert exc.value.message == "Bo already belongs to a team"


def test_team_name_must_be_unique(session: Session, make_user, make_tournament, register):
    tournament = make_tournament()
    ana, bo = make_user("Ana"), make_user("Bo")
    register(tournament, ana, bo)
    tournament_service.create_team(session, tournament.id, "Solo", [ana.id], ana.id)

    with pytest.raises(ConflictError) as exc:
        tournament_service.create_team(session, tournament.id, "Solo", [bo.id], bo.id)
    assert exc.value.code == ErrorCode.TEAM_NAME_TAKEN


def test_team_for_others_needs_management(session: Session, make_user, make_tournament, register):
    tournament = make_tournament()
    ana, bo = make_user("Ana"), make_user("Bo")
    register(tournament, ana, bo)

    with pytest.raises(ForbiddenError):
        tournament_service.create_team(session, tournament.id, "Not mine", [bo.id], ana.id)


def test_flex_tournament_has_no_static_teams(session: Session, make_user, make_tournament, register):
    tournament = make_tournament(team_mode="flex")
    ana = make_user("Ana")
    register(tournament, ana)
    with pytest.raises(BadRequestError) as exc:
        tournament_service.create_team(session, tournament.id, "Solo", [ana.id], ana.id)
    assert exc.value.code == ErrorCode.TEAM_MODE_MISMATCH


def test_capabilities(session: Session, make_user, make_tournament):
    root = make_user("Root", "super_admin")
    owner = make_user("Owner", "tournament_admin")
    player = make_user("Pat")
    tournament = make_tournament(owner=owner)
    sides = MatchSides(a=StaticTeamSide("A", 1, (player.id,)), b=StaticTeamSide("B", 2, ()))

    assert Capability.RUN_MAINTENANCE in resolve_capabilities(session, root)
    assert Capability.MANAGE_TOURNAMENT in resolve_capabilities(session, root, tournament)
    owner_caps = resolve_capabilities(session, owner, tournament)
    assert {Capability.MANAGE_TOURNAMENT, Capability.OWN_TOURNAMENT} <= owner_caps
    assert Capability.RUN_MAINTENANCE not in owner_caps
    assert resolve_capabilities(session, player, tournament) == frozenset()
    assert resolve_capabilities(session, player, tournament, sides) == frozenset({Capability.PLAY_MATCH})
    assert resolve_capabilities(session, None) == frozenset()

    require(owner_caps, Capability.PLAY_MATCH, Capability.MANAGE_TOURNAMENT)
    with pytest.raises(ForbiddenError) as exc:
        require(frozenset(), Capability.PLAY_MATCH, code=ErrorCode.NOT_A_PARTICIPANT)
    assert exc.value.code == ErrorCode.NOT_A_PARTICIPANT


def test_acting_user_must_exist(session: Session):
    with pytest.raises(UnauthorizedError):
        get_acting_user(session, None)
    with pytest.raises(UnauthorizedError):
        get_acting_user(session, 42)


def test_delete_removes_bracket(session: Session, make_user, make_tournament, make_team):
    owner = make_user("Owner", "tournament_admin")
    tournament = make_tournament(owner=owner, status="draft", mode="bracket")
    for i in range(4):
        make_team(tournament, f"T{i}", make_user(f"P{i}"))
    tournament_service.generate_bracket(session, tournament.id, acting_user_id=owner.id)
    tournament_id = tournament.id

    tournament_service.delete_tournament(session, tournament_id, owner.id)

    assert session.exec(select(Match)).all() == []
