"""Match rule engine: composition checks, repetition caps and the validation dry run."""
import pytest
from sqlmodel import Session

from arena.errors import BadRequestError, ConflictError, ErrorCode
from arena.services import match_lifecycle
from arena.services.match_history import MatchHistory, PlayedMatch
from arena.services.match_lifecycle import MatchInput


@pytest.fixture
def flex(session: Session, make_user, make_tournament, register):
    owner = make_user("Owner", "tournament_admin")
    tournament = make_tournament(
        owner=owner,
        team_mode="flex",
        min_team_size=1,
        max_team_size=2,
        max_times_with_same_partner=1,
        max_times_with_same_opponent=1,
    )
    players = [make_user(name) for name in ("Ana", "Bo", "Cal", "Dan")]
    register(tournament, *players)
    return tournament, owner, players


def _flex_match(session, tournament, owner, side_a, side_b):
    return match_lifecycle.create_match(
        session,
        MatchInput(
            tournament_id=tournament.id,
            player_ids_a=[p.id for p in side_a],
            player_ids_b=[p.id for p in side_b],
        ),
        owner.id,
    )


def test_history_counts_by_team_size():
    history = MatchHistory(
        [
            PlayedMatch(1, None, None, frozenset({1}), frozenset({2})),
            PlayedMatch(2, None, None, frozenset({1, 3}), frozenset({2, 4})),
        ]
    )
    assert history.player_match_count(1) == 2
    assert history.opponent_count(1, 2) == 2
    assert history.opponent_count(1, 2, team_size=1) == 1
    assert history.partner_count(1, 3, team_size=2) == 1
    assert history.partner_count(1, 3, team_size=1) == 0
    assert history.has_roster_pairing([2, 4], [3, 1])


def test_singles_and_doubles_quotas_are_independent(session: Session, flex):
    tournament, owner, (ana, bo, cal, dan) = flex

    _flex_match(session, tournament, owner, [ana], [bo])
    # Ana already faced Bo in 1v1, which does not count against 2v2
    match = _flex_match(session, tournament, owner, [ana, cal], [bo, dan])
    assert match.status == "scheduled"

    with pytest.raises(ConflictError) as exc:
        _flex_match(session, tournament, owner, [bo], [ana])
    assert exc.value.code == ErrorCode.MAX_OPPONENT_MATCHES_EXCEEDED
    assert exc.value.details["teamSize"] == 1


def test_partner_cap(session: Session, flex):
    tournament, owner, (ana, bo, cal, dan) = flex
    _flex_match(session, tournament, owner, [ana, cal], [bo, dan])

    with pytest.raises(ConflictError) as exc:
        _flex_match(session, tournament, owner, [cal, ana], [dan, bo])
    assert exc.value.code == ErrorCode.MAX_PARTNER_MATCHES_EXCEEDED
    assert {exc.value.details["playerName"], exc.value.details["partnerName"]} == {"Ana", "Cal"}


def test_cancelled_matches_do_not_count(session: Session, flex):
    tournament, owner, (ana, bo, _, _) = flex
    match = _flex_match(session, tournament, owner, [ana], [bo])
    match_lifecycle.cancel_match(session, match.id, owner.id)

    again = _flex_match(session, tournament, owner, [ana], [bo])
    assert again.id != match.id


def test_max_matches_per_player(session: Session, make_user, make_tournament, register):
    owner = make_user("Owner", "tournament_admin")
    tournament = make_tournament(owner=owner, team_mode="flex", max_matches_per_player=1)
    ana, bo, cal = make_user("Ana"), make_user("Bo"), make_user("Cal")
    register(tournament, ana, bo, cal)
    _flex_match(session, tournament, owner, [ana], [bo])

    with pytest.raises(ConflictError) as exc:
        _flex_match(session, tournament, owner, [cal], [ana])
    assert exc.value.code == ErrorCode.MAX_MATCHES_EXCEEDED
    assert exc.value.message == "Ana has reached the limit of 1 matches"


def test_static_opponent_cap(session: Session, make_user, make_tournament, make_team):
    owner = make_user("Owner", "tournament_admin")
    tournament = make_tournament(owner=owner, max_times_with_same_opponent=1)
    red = make_team(tournament, "Red", make_user("Ana"))
    blue = make_team(tournament, "Blue", make_user("Bo"))
    data = MatchInput(tournament_id=tournament.id, team_a_id=red.id, team_b_id=blue.id)
    match_lifecycle.create_match(session, data, owner.id)

    with pytest.raises(ConflictError) as exc:
        match_lifecycle.create_match(
            session, MatchInput(tournament_id=tournament.id, team_a_id=blue.id, team_b_id=red.id), owner.id
        )
    assert exc.value.code == ErrorCode.MAX_OPPONENT_MATCHES_EXCEEDED


@pytest.mark.parametrize(
    "sides,code",
    [
        ((["Ana"], ["Ana"]), ErrorCode.MATCH_OVERLAPPING_PLAYERS),
        ((["Ana", "Bo"], ["Cal"]), ErrorCode.MATCH_TEAM_SIZE_MISMATCH),
        (([], ["Cal"]), ErrorCode.MATCH_INVALID_PLAYERS),
    ],
)
def test_flex_composition_errors(session: Session, flex, sides, code):
    tournament, owner, players = flex
    by_name = {p.display_name: p for p in players}
    side_a = [by_name[n] for n in sides[0]]
    side_b = [by_name[n] for n in sides[1]]

    with pytest.raises(BadRequestError) as exc:
        _flex_match(session, tournament, owner, side_a, side_b)
    assert exc.value.code == code


def test_unregistered_player(session: Session, flex, make_user):
    tournament, owner, (ana, _, _, _) = flex
    outsider = make_user("Outsider")

    with pytest.raises(BadRequestError) as exc:
        _flex_match(session, tournament, owner, [ana], [outsider])
    assert exc.value.code == ErrorCode.MATCH_INVALID_PLAYERS
    assert exc.value.details["playerIds"] == [outsider.id]


def test_team_size_bounds(session: Session, make_user, make_tournament, register):
    owner = make_user("Owner", "tournament_admin")
    tournament = make_tournament(owner=owner, team_mode="flex", min_team_size=2, max_team_size=2)
    players = [make_user(f"P{i}") for i in range(2)]
    register(tournament, *players)

    with pytest.raises(BadRequestError) as exc:
        _flex_match(session, tournament, owner, [players[0]], [players[1]])
    assert exc.value.code == ErrorCode.INVALID_TEAM_SIZE


def test_same_team_twice(session: Session, make_user, make_tournament, make_team):
    owner = make_user("Owner", "tournament_admin")
    tournament = make_tournament(owner=owner)
    red = make_team(tournament, "Red", make_user("Ana"))

    with pytest.raises(BadRequestError) as exc:
        match_lifecycle.create_match(
            session, MatchInput(tournament_id=tournament.id, team_a_id=red.id, team_b_id=red.id), owner.id
        )
    assert exc.value.code == ErrorCode.MATCH_DUPLICATE_TEAMS


def test_validate_reports_every_problem_without_writing(session: Session, flex):
    tournament, owner, (ana, bo, cal, dan) = flex
    _flex_match(session, tournament, owner, [ana, cal], [bo, dan])

    result = match_lifecycle.validate_match(
        session,
        MatchInput(
            tournament_id=tournament.id,
            player_ids_a=[ana.id, cal.id],
            player_ids_b=[bo.id, dan.id],
        ),
    )

    assert result["valid"] is False
    # Two partner pairs and four opponent pairs
    assert len(result["errors"]) == 6
    assert result["warnings"] == [match_lifecycle.PAIRING_WARNING]
    assert len(match_lifecycle.list_matches(session, tournament_id=tournament.id)) == 1


def test_validate_collects_every_composition_error(session: Session, flex):
    tournament, _, (ana, bo, cal, _) = flex

    result = match_lifecycle.validate_match(
        session,
        MatchInput(tournament_id=tournament.id, player_ids_a=[ana.id, bo.id, cal.id], player_ids_b=[cal.id]),
    )

    assert result == {
        "valid": False,
        "errors": [
            "Cal cannot play on both sides",
            "Teams must have the same size (3 vs 1)",
            "Team size must be between 1 and 2",
        ],
        "warnings": [],
    }


def test_validate_excludes_edited_match(session: Session, flex):
    tournament, owner, (ana, bo, _, _) = flex
    match = _flex_match(session, tournament, owner, [ana], [bo])

    result = match_lifecycle.validate_match(
        session,
        MatchInput(tournament_id=tournament.id, player_ids_a=[ana.id], player_ids_b=[bo.id], match_id=match.id),
    )
    assert result == {"valid": True, "errors": [], "warnings": []}


def test_validate_unknown_tournament(session: Session):
    result = match_lifecycle.validate_match(session, MatchInput(tournament_id=404))
    assert result["valid"] is False
    assert result["errors"] == ["Tournament not found"]
