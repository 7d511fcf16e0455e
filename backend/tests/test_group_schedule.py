"""Group stage draw: contiguous pools in input order, full round robin per pool."""
from collections import Counter

import pytest

from app.models.match import MatchCategory, MatchRound, MatchStatus
from app.services.fixture_types import SchedulePlayer
from app.services.group_schedule import (
    chunk_into_groups,
    generate_group_matches,
    group_label,
    group_size_for_count,
    playable_group_size,
    round_robin_pairs,
)


def _players(n):
    return [SchedulePlayer(id=i + 1, name=f"P{i + 1}") for i in range(n)]


def test_eight_players_in_groups_of_four():
    matches = generate_group_matches(_players(8), MatchCategory.MS, 4)

    assert len(matches) == 12
    per_group = Counter(m.group_id for m in matches)
    assert per_group == {"MS-A": 6, "MS-B": 6}

    group_a_ids = {m.player1_id for m in matches if m.group_id == "MS-A"} | {
        m.player2_id for m in matches if m.group_id == "MS-A"
    }
    assert group_a_ids == {1, 2, 3, 4}


def test_every_pair_meets_exactly_once():
    matches = generate_group_matches(_players(5), MatchCategory.WS, 5)

    pairs = [frozenset((m.player1_id, m.player2_id)) for m in matches]
    assert len(pairs) == 10
    assert len(set(pairs)) == 10
    assert all(m.player1_id != m.player2_id for m in matches)


def test_fixtures_are_scheduled_group_matches_with_one_blank_game():
    matches = generate_group_matches(_players(3), MatchCategory.XD, 4)

    for m in matches:
        assert m.round == MatchRound.group
        assert m.status == MatchStatus.scheduled
        assert m.category == MatchCategory.XD
        assert m.scores == [
            {"game_number": 1, "p1_score": 0, "p2_score": 0, "winner": None, "started_at": None, "ended_at": None}
        ]


def test_last_group_may_be_smaller():
    matches = generate_group_matches(_players(6), MatchCategory.MS, 4)

    per_group = Counter(m.group_id for m in matches)
    assert per_group == {"MS-A": 6, "MS-B": 1}


def test_single_player_group_produces_no_matches():
    matches = generate_group_matches(_players(5), MatchCategory.MS, 4)

    assert {m.group_id for m in matches} == {"MS-A"}


def test_empty_roster_produces_no_matches():
    assert generate_group_matches([], MatchCategory.MS, 4) == []


@pytest.mark.parametrize("size", [0, -3])
def test_non_positive_group_size_keeps_everyone_together(size):
    matches = generate_group_matches(_players(4), MatchCategory.MD, size)

    assert {m.group_id for m in matches} == {"MD-A"}
    assert len(matches) == 6


def test_group_labels_run_past_z():
    assert group_label(0) == "A"
    assert group_label(25) == "Z"
    assert group_label(26) == "G27"


def test_chunking_keeps_input_order():
    assert chunk_into_groups([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]


def test_round_robin_pair_count():
    assert len(round_robin_pairs(6)) == 15
    assert round_robin_pairs(1) == []


def test_group_size_from_group_count():
    assert group_size_for_count(10, 3) == 4
    assert group_size_for_count(3, 4) == 2
    assert group_size_for_count(8, 1) == 8


def test_playable_group_size_never_leaves_a_lone_player():
    assert playable_group_size(7, 3) == 4
    assert playable_group_size(6, 5) == 6
    assert playable_group_size(3, 2) == 3
    assert playable_group_size(8, 4) == 4
    assert playable_group_size(10, 4) == 4
    assert playable_group_size(6, 1) == 2
    assert playable_group_size(6, 0) == 0


@pytest.mark.parametrize("count", range(2, 20))
@pytest.mark.parametrize("requested", [1, 2, 3, 4, 5])
def test_every_player_gets_a_match_with_playable_size(count, requested):
    players = _players(count)
    matches = generate_group_matches(players, MatchCategory.MS, playable_group_size(count, requested))

    scheduled = {m.player1_id for m in matches} | {m.player2_id for m in matches}
    assert scheduled == {p.id for p in players}
