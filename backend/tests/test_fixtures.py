"""Fixture generation end to end: group stage, standings, qualifiers, knockout bracket, wiping."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.models.match import Match
from app.services import fixture_service
from tests.factories import add_players, create_tournament, list_matches

NAMES = ["P1", "P2", "P3", "P4", "P5", "P6", "P7", "P8"]


@pytest.fixture
def grouped(client: TestClient):
    """8 MS players in two groups of four, group fixtures generated"""
    t = create_tournament(client, group_count=2, knockout_size=4)
    players = add_players(client, t["id"], NAMES)
    response = client.post(f"/api/tournaments/{t['id']}/fixtures/group", json={})
    assert response.status_code == 200, response.text
    return t, players, response.json()


def _complete_all_group_matches(client: TestClient, tournament_id: int):
    """player1 always wins, so the earlier-registered player of each pair wins"""
    for m in list_matches(client, tournament_id, round="group"):
        response = client.post(
            f"/api/tournaments/{tournament_id}/runtime/matches/{m['id']}/complete",
            json={"winner_id": m["player1_id"]},
        )
        assert response.status_code == 200, response.text


# ---------------------------------------------------------------------------
# Group stage
# ---------------------------------------------------------------------------


def test_group_generation_creates_round_robin(client: TestClient, grouped):
    t, players, result = grouped

    assert result["created"] == {"MS": 12}
    assert result["total_matches_created"] == 12
    assert result["skipped"] == {}
    assert result["failed"] == {}
    assert result["tournament_status"] == "group_stage"

    matches = list_matches(client, t["id"])
    assert len(matches) == 12
    assert {m["group_id"] for m in matches} == {"MS-A", "MS-B"}
    assert all(m["status"] == "scheduled" and m["phase"] == "scheduled" for m in matches)
    assert all(len(m["scores"]) == 1 for m in matches)

    groups = {p["name"]: p["group_id"] for p in client.get(f"/api/tournaments/{t['id']}/players").json()}
    assert groups["P1"] == "MS-A" and groups["P4"] == "MS-A"
    assert groups["P5"] == "MS-B" and groups["P8"] == "MS-B"


def test_explicit_group_size_overrides_group_count(client: TestClient):
    t = create_tournament(client, group_count=1)
    add_players(client, t["id"], NAMES[:6])

    response = client.post(f"/api/tournaments/{t['id']}/fixtures/group", json={"group_size": 3})

    assert response.status_code == 200
    assert response.json()["created"] == {"MS": 6}
    assert {m["group_id"] for m in list_matches(client, t["id"])} == {"MS-A", "MS-B"}


def test_group_count_never_leaves_a_player_alone(client: TestClient):
    t = create_tournament(client, group_count=3)
    add_players(client, t["id"], NAMES[:7])

    response = client.post(f"/api/tournaments/{t['id']}/fixtures/group", json={})

    assert response.status_code == 200
    assert response.json()["created"] == {"MS": 9}
    matches = list_matches(client, t["id"])
    groups = {p["name"]: p["group_id"] for p in client.get(f"/api/tournaments/{t['id']}/players").json()}
    assert set(groups.values()) == {m["group_id"] for m in matches} == {"MS-A", "MS-B"}
    assert groups["P4"] == "MS-A" and groups["P7"] == "MS-B"


def test_explicit_group_size_absorbs_lone_player(client: TestClient):
    t = create_tournament(client)
    add_players(client, t["id"], NAMES[:6])

    response = client.post(f"/api/tournaments/{t['id']}/fixtures/group", json={"group_size": 5})

    assert response.status_code == 200
    assert response.json()["created"] == {"MS": 15}
    assert {m["group_id"] for m in list_matches(client, t["id"])} == {"MS-A"}


def test_category_without_enough_players_is_skipped(client: TestClient):
    t = create_tournament(client, categories=["MS", "WS"])
    add_players(client, t["id"], ["Al", "Bo", "Cy"])
    add_players(client, t["id"], ["Di"], gender="F", categories=["WS"])

    response = client.post(f"/api/tournaments/{t['id']}/fixtures/group", json={})

    assert response.status_code == 200
    data = response.json()
    assert data["created"] == {"MS": 3}
    assert "WS" in data["skipped"]
    assert "at least 2" in data["skipped"]["WS"]


def test_no_matches_at_all_is_an_error(client: TestClient):
    t = create_tournament(client)
    add_players(client, t["id"], ["Solo"])

    response = client.post(f"/api/tournaments/{t['id']}/fixtures/group", json={})

    assert response.status_code == 400
    assert "No group matches were created" in response.json()["detail"]
    assert client.get(f"/api/tournaments/{t['id']}").json()["status"] == "draft"


def test_regenerating_groups_requires_wipe(client: TestClient, grouped):
    t, _, _ = grouped

    again = client.post(f"/api/tournaments/{t['id']}/fixtures/group", json={})
    assert again.status_code == 400
    assert len(list_matches(client, t["id"])) == 12

    wiped = client.post(f"/api/tournaments/{t['id']}/fixtures/group", json={"wipe_existing": True})
    assert wiped.status_code == 200
    assert len(list_matches(client, t["id"])) == 12


def test_store_failure_is_reported_per_category(client: TestClient, monkeypatch):
    t = create_tournament(client, categories=["MS", "WS"])
    add_players(client, t["id"], ["Al", "Bo"])
    add_players(client, t["id"], ["Di", "Em"], gender="F", categories=["WS"])

    real_persist = fixture_service.persist_matches

    def flaky_persist(session, tournament_id, creates):
        creates = list(creates)
        if creates and creates[0].category == "WS":
            raise SQLAlchemyError("disk full")
        return real_persist(session, tournament_id, creates)

    monkeypatch.setattr(fixture_service, "persist_matches", flaky_persist)

    response = client.post(f"/api/tournaments/{t['id']}/fixtures/group", json={})

    assert response.status_code == 200
    data = response.json()
    assert data["created"] == {"MS": 1}
    assert "disk full" in data["failed"]["WS"]
    assert [m["category"] for m in list_matches(client, t["id"])] == ["MS"]


def test_list_matches_filters(client: TestClient, grouped):
    t, _, _ = grouped

    assert len(list_matches(client, t["id"], group_id="MS-B")) == 6
    assert len(list_matches(client, t["id"], category="MS", round="group")) == 12
    assert list_matches(client, t["id"], category="WS") == []
    assert list_matches(client, t["id"], status="completed") == []


# ---------------------------------------------------------------------------
# Standings + qualifiers
# ---------------------------------------------------------------------------


def test_standings_endpoint(client: TestClient, grouped):
    t, _, _ = grouped
    _complete_all_group_matches(client, t["id"])

    response = client.get(f"/api/tournaments/{t['id']}/standings")

    assert response.status_code == 200
    standings = response.json()
    assert list(standings["MS"].keys()) == ["MS-A", "MS-B"]
    group_a = standings["MS"]["MS-A"]
    assert [row["name"] for row in group_a] == ["P1", "P2", "P3", "P4"]
    assert [row["points"] for row in group_a] == [6, 5, 4, 3]


def test_standings_empty_before_results(client: TestClient, grouped):
    t, _, _ = grouped

    assert client.get(f"/api/tournaments/{t['id']}/standings").json() == {"MS": {"MS-A": [], "MS-B": []}}


def test_qualifier_preview(client: TestClient, grouped):
    t, _, _ = grouped
    _complete_all_group_matches(client, t["id"])

    response = client.get(f"/api/tournaments/{t['id']}/qualifiers/MS")

    assert response.status_code == 200
    data = response.json()
    assert [p["name"] for p in data["group_winners"]] == ["P1", "P5"]
    assert [p["name"] for p in data["qualifiers"]] == ["P1", "P5", "P2", "P6"]
    assert data["bracket_size"] == 4


# ---------------------------------------------------------------------------
# Knockout
# ---------------------------------------------------------------------------


def test_knockout_bracket_from_group_results(client: TestClient, grouped):
    t, _, _ = grouped
    _complete_all_group_matches(client, t["id"])

    response = client.post(f"/api/tournaments/{t['id']}/fixtures/knockout", json={})

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["created"] == {"MS": 3}
    assert data["tournament_status"] == "knockout"

    semis = list_matches(client, t["id"], round="SF")
    final = list_matches(client, t["id"], round="F")
    assert len(semis) == 2 and len(final) == 1
    # Seeds 1 v 4 and 2 v 3: P1 v P6, P5 v P2
    assert (semis[0]["player1_name"], semis[0]["player2_name"]) == ("P1", "P6")
    assert (semis[1]["player1_name"], semis[1]["player2_name"]) == ("P5", "P2")
    assert all(s["next_match_id"] == final[0]["id"] for s in semis)
    assert final[0]["player1_id"] is None and final[0]["player1_name"] == "TBD"
    assert final[0]["next_match_id"] is None
    assert all(m["group_id"] is None for m in semis + final)


def test_knockout_without_results_uses_roster(client: TestClient):
    t = create_tournament(client, knockout_size=8)
    add_players(client, t["id"], ["Zed", "Amy", "Bob"])
    add_players(client, t["id"], ["Kim"], seeded=True)

    response = client.post(f"/api/tournaments/{t['id']}/fixtures/knockout", json={})

    assert response.status_code == 200
    semis = list_matches(client, t["id"], round="SF")
    # Kim (seeded), Amy, Bob, Zed -> seeds 1v4, 2v3
    assert [(m["player1_name"], m["player2_name"]) for m in semis] == [("Kim", "Zed"), ("Amy", "Bob")]


def test_knockout_needs_two_qualifiers(client: TestClient):
    t = create_tournament(client)
    add_players(client, t["id"], ["Solo"])

    response = client.post(f"/api/tournaments/{t['id']}/fixtures/knockout", json={})

    assert response.status_code == 400
    assert "qualifiers" in response.json()["detail"]


def test_regenerating_knockout_replaces_bracket(client: TestClient, grouped):
    t, _, _ = grouped
    client.post(f"/api/tournaments/{t['id']}/fixtures/knockout", json={})

    kept = client.post(f"/api/tournaments/{t['id']}/fixtures/knockout", json={"wipe_existing": False})
    assert kept.status_code == 400

    response = client.post(f"/api/tournaments/{t['id']}/fixtures/knockout", json={"wipe_existing": True})
    assert response.status_code == 200
    knockout = [m for m in list_matches(client, t["id"]) if m["round"] != "group"]
    assert len(knockout) == 3
    assert len(list_matches(client, t["id"], round="group")) == 12


# ---------------------------------------------------------------------------
# Wiping
# ---------------------------------------------------------------------------


def test_delete_knockout_matches_keeps_groups(client: TestClient, grouped):
    t, _, _ = grouped
    client.post(f"/api/tournaments/{t['id']}/fixtures/knockout", json={})

    response = client.delete(f"/api/tournaments/{t['id']}/matches/knockout")

    assert response.status_code == 200
    assert response.json() == {"deleted": 3}
    assert len(list_matches(client, t["id"])) == 12


def test_delete_all_matches_in_batches(client: TestClient, session: Session, grouped, monkeypatch):
    t, _, _ = grouped
    client.post(f"/api/tournaments/{t['id']}/fixtures/knockout", json={})
    monkeypatch.setattr(fixture_service, "BATCH_LIMIT", 4)

    response = client.delete(f"/api/tournaments/{t['id']}/matches")

    assert response.status_code == 200
    assert response.json() == {"deleted": 15}
    session.expire_all()
    assert session.exec(select(Match).where(Match.tournament_id == t["id"])).all() == []
