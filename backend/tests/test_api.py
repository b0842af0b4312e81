"""HTTP surface: tournaments, registration, brackets, matches, standings and error payloads."""
from fastapi.testclient import TestClient


def _user(client: TestClient, name: str, role: str = "player") -> dict:
    response = client.post("/api/users", json={"display_name": name, "role": role})
    assert response.status_code == 201
    return response.json()


def _as(user: dict) -> dict:
    return {"X-User-Id": str(user["id"])}


def _tournament(client: TestClient, owner: dict, **overrides) -> dict:
    payload = {
        "name": "City League",
        "start_date": "2026-05-01",
        "end_date": "2026-05-31",
    }
    payload.update(overrides)
    response = client.post("/api/tournaments", json=payload, headers=_as(owner))
    assert response.status_code == 201, response.json()
    tournament = response.json()
    response = client.patch(
        f"/api/tournaments/{tournament['id']}/status", json={"status": "open"}, headers=_as(owner)
    )
    assert response.status_code == 200
    return response.json()


def _solo_team(client: TestClient, tournament: dict, player: dict, name: str) -> dict:
    response = client.post(f"/api/tournaments/{tournament['id']}/participants", headers=_as(player))
    assert response.status_code == 201
    response = client.post(
        f"/api/tournaments/{tournament['id']}/teams",
        json={"name": name, "member_ids": [player["id"]]},
        headers=_as(player),
    )
    assert response.status_code == 201
    return response.json()


def test_health(client: TestClient):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["auto_finalize"] is False


def test_missing_identity_is_401(client: TestClient):
    response = client.post(
        "/api/tournaments",
        json={"name": "X", "start_date": "2026-05-01", "end_date": "2026-05-02"},
    )
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "UNAUTHORIZED"


def test_error_payload_shape(client: TestClient):
    response = client.get("/api/tournaments/999")
    assert response.status_code == 404
    assert response.json() == {
        "detail": {
            "code": "TOURNAMENT_NOT_FOUND",
            "message": "Tournament not found",
            "details": {"tournamentId": 999},
        }
    }


def test_request_validation_uses_error_code(client: TestClient):
    owner = _user(client, "Org", "tournament_admin")
    response = client.post("/api/tournaments", json={"name": "No dates"}, headers=_as(owner))
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


def test_tournament_crud(client: TestClient):
    owner = _user(client, "Org", "tournament_admin")
    tournament = _tournament(client, owner, description="Weekly games")

    assert tournament["status"] == "open"
    assert tournament["description"] == "Weekly games"

    listed = client.get("/api/tournaments", params={"status": "open"}).json()
    assert [t["id"] for t in listed] == [tournament["id"]]
    assert client.get("/api/tournaments", params={"status": "draft"}).json() == []

    response = client.patch(
        f"/api/tournaments/{tournament['id']}/status", json={"status": "finished"}, headers=_as(owner)
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_STATUS_TRANSITION"


def test_delete_draft(client: TestClient):
    owner = _user(client, "Org", "tournament_admin")
    response = client.post(
        "/api/tournaments",
        json={"name": "Temp", "start_date": "2026-05-01", "end_date": "2026-05-02"},
        headers=_as(owner),
    )
    tournament_id = response.json()["id"]

    assert client.delete(f"/api/tournaments/{tournament_id}", headers=_as(owner)).status_code == 204
    assert client.get(f"/api/tournaments/{tournament_id}").status_code == 404


def test_match_flow_and_standings(client: TestClient):
    owner = _user(client, "Org", "tournament_admin")
    alice, bob = _user(client, "Alice"), _user(client, "Bob")
    tournament = _tournament(client, owner)
    red = _solo_team(client, tournament, alice, "Red")
    blue = _solo_team(client, tournament, bob, "Blue")

    response = client.post(
        "/api/matches",
        json={"tournament_id": tournament["id"], "team_a_id": red["id"], "team_b_id": blue["id"]},
        headers=_as(alice),
    )
    assert response.status_code == 201
    match = response.json()
    assert match["status"] == "scheduled"
    assert match["player_ids_a"] == [alice["id"]]
    assert match["player_ids_b"] == [bob["id"]]

    response = client.post(
        f"/api/matches/{match['id']}/report",
        json={"score_a": 2, "score_b": 1, "report_proof": "https://example.org/photo.jpg"},
        headers=_as(alice),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "reported"
    assert [c["player_id"] for c in response.json()["confirmations"]] == [alice["id"]]

    provisional = client.get(f"/api/tournaments/{tournament['id']}/standings", params={"view": "provisional"}).json()
    assert provisional[0]["name"] == "Red"
    assert provisional[0]["rank"] == 1
    official = client.get(f"/api/tournaments/{tournament['id']}/standings").json()
    assert all(row["matches_played"] == 0 for row in official)

    response = client.post(f"/api/matches/{match['id']}/confirm", headers=_as(bob))
    assert response.status_code == 200
    assert response.json()["status"] == "finalized"
    assert response.json()["finalization_reason"] == "consensus"

    official = client.get(f"/api/tournaments/{tournament['id']}/standings").json()
    assert [(r["name"], r["wins"], r["losses"], r["points"], r["score_diff"]) for r in official] == [
        ("Red", 1, 0, 3, 1),
        ("Blue", 0, 1, 0, -1),
    ]

    participants = client.get(f"/api/tournaments/{tournament['id']}/participants").json()
    assert all(p["matches_played"] == 1 for p in participants)


def test_contest_and_override(client: TestClient):
    owner = _user(client, "Org", "tournament_admin")
    alice, bob = _user(client, "Alice"), _user(client, "Bob")
    tournament = _tournament(client, owner)
    red = _solo_team(client, tournament, alice, "Red")
    blue = _solo_team(client, tournament, bob, "Blue")
    match = client.post(
        "/api/matches",
        json={
            "tournament_id": tournament["id"],
            "team_a_id": red["id"],
            "team_b_id": blue["id"],
            "status": "reported",
            "score_a": 4,
            "score_b": 0,
        },
        headers=_as(alice),
    ).json()
    assert match["status"] == "reported"

    response = client.post(
        f"/api/matches/{match['id']}/contest", json={"reason": "It was 0-4"}, headers=_as(bob)
    )
    assert response.json()["status"] == "disputed"

    response = client.post(f"/api/matches/{match['id']}/finalize", json={}, headers=_as(bob))
    assert response.status_code == 403

    response = client.post(f"/api/matches/{match['id']}/finalize", json={}, headers=_as(owner))
    assert response.status_code == 200
    assert response.json()["finalization_reason"] == "admin_override"
    assert response.json()["finalized_by"] == owner["id"]


def test_flex_match_validation_and_listing(client: TestClient):
    owner = _user(client, "Org", "tournament_admin")
    players = [_user(client, name) for name in ("Ana", "Bo", "Cal", "Dan")]
    tournament = _tournament(client, owner, team_mode="flex", max_team_size=2, max_times_with_same_partner=1)
    for player in players:
        client.post(f"/api/tournaments/{tournament['id']}/participants", headers=_as(player))
    ana, bo, cal, dan = (p["id"] for p in players)
    body = {"tournament_id": tournament["id"], "player_ids_a": [ana, bo], "player_ids_b": [cal, dan]}

    result = client.post("/api/matches/validate", json=body).json()
    assert result == {"valid": True, "errors": [], "warnings": []}

    response = client.post("/api/matches", json=body, headers=_as(owner))
    assert response.status_code == 201
    assert sorted(response.json()["player_ids_a"]) == sorted([ana, bo])

    result = client.post("/api/matches/validate", json=body).json()
    assert result["valid"] is False
    assert "Ana and Bo have already played together 1 times" in result["errors"]
    assert result["warnings"] == ["A similar match already exists"]

    response = client.post("/api/matches", json=body, headers=_as(owner))
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "MAX_PARTNER_MATCHES_EXCEEDED"

    listed = client.get("/api/matches", params={"tournament_id": tournament["id"], "status": "scheduled"}).json()
    assert len(listed) == 1


def test_bracket_endpoints(client: TestClient):
    owner = _user(client, "Org", "tournament_admin")
    tournament = _tournament(client, owner, mode="bracket", allow_draw=False)
    teams = [_solo_team(client, tournament, _user(client, f"P{i}"), f"T{i}") for i in range(1, 4)]

    response = client.post(
        f"/api/tournaments/{tournament['id']}/bracket",
        json={"bracket_type": "single_elimination"},
        headers=_as(owner),
    )
    assert response.status_code == 201
    matches = response.json()
    assert len(matches) == 3

    bracket = client.get(f"/api/tournaments/{tournament['id']}/bracket").json()
    byes = [m for m in bracket if m["status"] == "finalized"]
    assert len(byes) == 1
    assert byes[0]["winner_id"] == teams[0]["id"]

    response = client.post(
        f"/api/tournaments/{tournament['id']}/bracket",
        json={"bracket_type": "single_elimination"},
        headers=_as(owner),
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "BRACKET_ALREADY_GENERATED"


def test_bracket_type_is_validated(client: TestClient):
    owner = _user(client, "Org", "tournament_admin")
    tournament = _tournament(client, owner)
    response = client.post(
        f"/api/tournaments/{tournament['id']}/bracket",
        json={"bracket_type": "swiss"},
        headers=_as(owner),
    )
    assert response.status_code == 422


def test_auto_finalize_endpoint_is_for_super_admins(client: TestClient):
    owner = _user(client, "Org", "tournament_admin")
    root = _user(client, "Root", "super_admin")

    assert client.post("/api/matches/auto-finalize", headers=_as(owner)).status_code == 403
    response = client.post("/api/matches/auto-finalize", headers=_as(root))
    assert response.status_code == 200
    assert response.json() == {"total": 0, "finalized": [], "disputed": []}


def test_match_not_found(client: TestClient):
    response = client.get("/api/matches/12345")
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "MATCH_NOT_FOUND"
