"""Runtime scoring + advancement: points, pending winner, confirmation, slot filling, conflicts."""
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from app.models.match import Match
from app.services.scoring_service import MatchStateError, complete_match, record_point
from tests.factories import add_players, create_tournament, list_matches

NAMES = ["Ann", "Ben", "Cat", "Dan", "Eve", "Fay", "Gus", "Hal"]


@pytest.fixture
def bracket(client: TestClient):
    """8-player knockout (single game to 11, no deuce) drawn straight from the roster"""
    t = create_tournament(client, knockout_size=8, best_of=1, points_per_game=11, deuce_enabled=False)
    add_players(client, t["id"], NAMES)
    response = client.post(f"/api/tournaments/{t['id']}/fixtures/knockout", json={})
    assert response.status_code == 200, response.text
    quarters = list_matches(client, t["id"], round="QF")
    semis = list_matches(client, t["id"], round="SF")
    return t, quarters, semis


def _url(t, match, action):
    return f"/api/tournaments/{t['id']}/runtime/matches/{match['id']}/{action}"


def _point(client, t, match, player="p1", delta=1):
    return client.post(_url(t, match, "points"), json={"player": player, "delta": delta})


def _complete(client, t, match, winner_id, walkover=False):
    return client.post(_url(t, match, "complete"), json={"winner_id": winner_id, "walkover": walkover})


def _get(client, t, match_id):
    return next(m for m in list_matches(client, t["id"]) if m["id"] == match_id)


def test_bracket_layout(bracket):
    _, quarters, semis = bracket

    # Seed order 1v8, 4v5, 3v6, 2v7 over names in alphabetical order
    assert [(q["player1_name"], q["player2_name"]) for q in quarters] == [
        ("Ann", "Hal"),
        ("Dan", "Eve"),
        ("Cat", "Fay"),
        ("Ben", "Gus"),
    ]
    assert quarters[0]["next_match_id"] == quarters[1]["next_match_id"] == semis[0]["id"]
    assert quarters[2]["next_match_id"] == quarters[3]["next_match_id"] == semis[1]["id"]


def test_first_point_makes_match_live(client: TestClient, bracket):
    t, quarters, _ = bracket

    response = _point(client, t, quarters[0])

    assert response.status_code == 200
    match = response.json()["match"]
    assert match["status"] == "live"
    assert match["phase"] == "live"
    assert match["started_at"] is not None
    assert match["scores"][0]["p1_score"] == 1


def test_clinching_sets_pending_winner(client: TestClient, bracket):
    t, quarters, _ = bracket
    qf = quarters[0]

    for _ in range(10):
        assert _point(client, t, qf, "p2").status_code == 200
    response = _point(client, t, qf, "p2")

    body = response.json()
    assert body["game_winner"] == "p2"
    assert body["match_winner"] == "p2"
    assert body["match"]["status"] == "live"
    assert body["match"]["phase"] == "pending_completion"
    assert body["match"]["pending_winner_id"] == qf["player2_id"]

    # No more points once clinched
    assert _point(client, t, qf, "p1").status_code == 409


def test_confirmed_winner_must_match_scoreboard(client: TestClient, bracket):
    t, quarters, _ = bracket
    qf = quarters[0]
    for _ in range(11):
        _point(client, t, qf, "p1")

    assert _complete(client, t, qf, qf["player2_id"]).status_code == 422
    assert _complete(client, t, qf, 9999).status_code == 422

    response = _complete(client, t, qf, qf["player1_id"])
    assert response.status_code == 200
    match = response.json()["match"]
    assert match["status"] == "completed"
    assert match["winner_id"] == qf["player1_id"]
    assert match["pending_winner_id"] is None
    assert match["completed_at"] is not None


def test_winners_fill_next_match_slots_in_order(client: TestClient, bracket):
    t, quarters, semis = bracket

    first = _complete(client, t, quarters[0], quarters[0]["player1_id"])
    assert first.json()["advanced_count"] == 1
    sf = _get(client, t, semis[0]["id"])
    assert (sf["player1_name"], sf["player2_name"]) == ("Ann", "TBD")

    second = _complete(client, t, quarters[1], quarters[1]["player2_id"])
    assert second.json()["advanced_count"] == 1
    sf = _get(client, t, semis[0]["id"])
    assert (sf["player1_id"], sf["player2_id"]) == (quarters[0]["player1_id"], quarters[1]["player2_id"])
    assert (sf["player1_name"], sf["player2_name"]) == ("Ann", "Eve")


def test_finished_match_rejects_score_changes(client: TestClient, bracket):
    t, quarters, _ = bracket
    qf = quarters[0]
    _complete(client, t, qf, qf["player1_id"])

    assert _point(client, t, qf).status_code == 409
    assert client.post(_url(t, qf, "undo")).status_code == 409
    assert _complete(client, t, qf, qf["player1_id"]).status_code == 409


def test_negative_score_rejected_without_write(client: TestClient, bracket):
    t, quarters, _ = bracket
    qf = quarters[0]

    response = _point(client, t, qf, "p1", -1)

    assert response.status_code == 422
    match = _get(client, t, qf["id"])
    assert match["status"] == "scheduled"
    assert match["scores"][0]["p1_score"] == 0


def test_undo_reverts_last_point(client: TestClient, bracket):
    t, quarters, _ = bracket
    qf = quarters[0]
    _point(client, t, qf, "p1")
    _point(client, t, qf, "p2")

    response = client.post(_url(t, qf, "undo"))

    assert response.status_code == 200
    body = response.json()
    assert body["undone"] == {"game_index": 0, "player": "p2", "delta": 1}
    assert (body["match"]["scores"][0]["p1_score"], body["match"]["scores"][0]["p2_score"]) == (1, 0)

    client.post(_url(t, qf, "undo"))
    empty = client.post(_url(t, qf, "undo"))
    assert empty.status_code == 200
    assert empty.json()["undone"] is None


def test_match_with_open_slot_cannot_be_scored(client: TestClient, bracket):
    t, _, semis = bracket

    assert _point(client, t, semis[0]).status_code == 409


def test_slot_conflict_rejects_completion(client: TestClient, session: Session, bracket):
    t, quarters, semis = bracket
    # Corrupt the semi-final: both slots already held by other players
    sf = session.get(Match, semis[0]["id"])
    sf.player1_id, sf.player1_name = quarters[2]["player1_id"], quarters[2]["player1_name"]
    sf.player2_id, sf.player2_name = quarters[3]["player1_id"], quarters[3]["player1_name"]
    session.add(sf)
    session.commit()

    response = _complete(client, t, quarters[0], quarters[0]["player1_id"])

    assert response.status_code == 409
    assert "SLOT_CONFLICT" in response.json()["detail"]
    qf = _get(client, t, quarters[0]["id"])
    assert qf["status"] == "scheduled"
    assert qf["winner_id"] is None


def test_walkover_advances_winner(client: TestClient, bracket):
    t, quarters, semis = bracket
    qf = quarters[3]

    response = _complete(client, t, qf, qf["player2_id"], walkover=True)

    assert response.status_code == 200
    assert response.json()["match"]["status"] == "walkover"
    assert response.json()["advanced_count"] == 1
    sf = _get(client, t, semis[1]["id"])
    assert sf["player1_name"] == "Gus"


def test_walkover_against_open_slot(client: TestClient, session: Session, bracket):
    t, quarters, semis = bracket
    _complete(client, t, quarters[0], quarters[0]["player1_id"])

    # Semi-final has Ann vs TBD; a normal completion is refused, a walkover is not
    assert _complete(client, t, semis[0], quarters[0]["player1_id"]).status_code == 409
    response = _complete(client, t, semis[0], quarters[0]["player1_id"], walkover=True)

    assert response.status_code == 200
    final = list_matches(client, t["id"], round="F")[0]
    assert final["player1_name"] == "Ann"


def test_advance_repair_is_idempotent(client: TestClient, session: Session, bracket):
    t, quarters, semis = bracket
    _complete(client, t, quarters[0], quarters[0]["player1_id"])

    # Lose the slot write, then repair it
    session.expire_all()
    sf = session.get(Match, semis[0]["id"])
    sf.player1_id, sf.player1_name = None, "TBD"
    session.add(sf)
    session.commit()

    first = client.post(_url(t, quarters[0], "advance"))
    again = client.post(_url(t, quarters[0], "advance"))

    assert first.json() == {"advanced_count": 1}
    assert again.json() == {"advanced_count": 0}
    assert _get(client, t, semis[0]["id"])["player1_name"] == "Ann"


def test_advance_requires_finished_match(client: TestClient, bracket):
    t, quarters, _ = bracket

    assert client.post(_url(t, quarters[0], "advance")).status_code == 422


def test_resolve_advancement_replays_all(client: TestClient, session: Session, bracket):
    t, quarters, semis = bracket
    for qf in quarters:
        _complete(client, t, qf, qf["player1_id"])

    session.expire_all()
    for sf_id in (semis[0]["id"], semis[1]["id"]):
        sf = session.get(Match, sf_id)
        sf.player1_id, sf.player1_name = None, "TBD"
        sf.player2_id, sf.player2_name = None, "TBD"
        session.add(sf)
    session.commit()

    response = client.post(f"/api/tournaments/{t['id']}/runtime/resolve-advancement")

    assert response.status_code == 200
    data = response.json()
    assert data["matches_processed"] == 4
    assert data["players_advanced"] == 4
    assert data["conflicts"] == []
    # 4 open semi-final slots + 2 open final slots before, only the final's after
    assert data["open_slots_before"] == 6
    assert data["open_slots_after"] == 2

    again = client.post(f"/api/tournaments/{t['id']}/runtime/resolve-advancement").json()
    assert again["players_advanced"] == 0


def test_match_of_other_tournament_is_404(client: TestClient, bracket):
    t, quarters, _ = bracket
    other = create_tournament(client, name="Elsewhere")

    response = client.post(
        f"/api/tournaments/{other['id']}/runtime/matches/{quarters[0]['id']}/points",
        json={"player": "p1", "delta": 1},
    )

    assert response.status_code == 404


def test_invalid_point_payload(client: TestClient, bracket):
    t, quarters, _ = bracket

    assert _point(client, t, quarters[0], "p3").status_code == 422
    assert _point(client, t, quarters[0], "p1", 2).status_code == 422


def test_match_loaded_by_two_sessions_completes_once(client: TestClient, session: Session, bracket):
    t, quarters, semis = bracket
    qf = quarters[0]
    engine = session.get_bind()

    with Session(engine) as first, Session(engine) as second:
        first_copy = first.get(Match, qf["id"])
        second_copy = second.get(Match, qf["id"])

        complete_match(first, first_copy, qf["player1_id"], walkover=True)
        with pytest.raises(MatchStateError):
            complete_match(second, second_copy, qf["player2_id"], walkover=True)
        with pytest.raises(MatchStateError):
            record_point(second, second_copy, "p1", 1)

    match = _get(client, t, qf["id"])
    assert match["status"] == "walkover"
    assert match["winner_id"] == qf["player1_id"]
    sf = _get(client, t, semis[0]["id"])
    assert (sf["player1_name"], sf["player2_name"]) == ("Ann", "TBD")
