"""
Unit tests for the round robin schedule and standings table.
"""

from itertools import combinations

import pytest

from bracketeer.brackets import round_robin
from bracketeer.brackets.round_robin import circle_schedule
from bracketeer.exceptions import TopologyError


class TestCircleSchedule:
    """Tests for circle_schedule."""

    @pytest.mark.parametrize("count", range(2, 11))
    def test_every_pair_meets_once(self, count):
        ids = list(range(1, count + 1))
        rounds, _ = circle_schedule(ids)

        pairs = [frozenset(p) for r in rounds for p in r]
        assert len(pairs) == count * (count - 1) // 2
        assert set(pairs) == {frozenset(p) for p in combinations(ids, 2)}

    @pytest.mark.parametrize("count", range(2, 11))
    def test_nobody_plays_twice_in_a_round(self, count):
        rounds, _ = circle_schedule(list(range(1, count + 1)))
        for pairs in rounds:
            players = [e for p in pairs for e in p]
            assert len(players) == len(set(players))

    @pytest.mark.parametrize("count", [3, 5, 7, 9])
    def test_odd_field_sits_out_once_each(self, count):
        rounds, sit_outs = circle_schedule(list(range(1, count + 1)))
        assert len(rounds) == count
        assert sorted(sit_outs.values()) == list(range(1, count + 1))

    def test_even_field_has_no_sit_outs(self):
        rounds, sit_outs = circle_schedule([1, 2, 3, 4, 5, 6])
        assert len(rounds) == 5
        assert sit_outs == {}


class TestStandings:
    """Tests for RoundRobinTable results and ranking."""

    def test_fixtures_all_playable_at_build(self):
        table = round_robin.build([1, 2, 3, 4])
        assert table.total_rounds == 3
        assert len(table.playable_pairings()) == 6
        assert {p.stage for p in table.playable_pairings()} == {"group"}

    def test_points_from_settings(self):
        table = round_robin.build([1, 2], {"win_points": 3, "loss_points": 1})
        table.record_result("group", 1, 0, 2, 1, 2, 1)

        assert table.standings[2].points == 3
        assert table.standings[1].points == 1
        assert table.standings[2].set_difference == 1

    def test_ranking_tiebreaks(self):
        """Points, then wins, then set difference, then seed."""
        table = round_robin.build([1, 2, 3])
        table.standings[1].points = table.standings[2].points = table.standings[3].points = 1
        table.standings[1].won = table.standings[2].won = table.standings[3].won = 1
        table.standings[3].sets_won = 3
        assert [row.entrant_id for row in table.ranking()] == [3, 1, 2]

    def test_completion_decides_champion(self):
        table = round_robin.build([1, 2, 3])
        updates = []
        for pairing in table.playable_pairings():
            winner = min(pairing.entrant1, pairing.entrant2)
            loser = max(pairing.entrant1, pairing.entrant2)
            updates.append(table.record_result(
                pairing.stage, pairing.round, pairing.position, winner, loser, 2, 0,
            ))

        assert updates[-1].bracket_completed
        assert not any(u.bracket_completed for u in updates[:-1])
        assert (table.champion, table.runner_up) == (1, 2)
        # One fixture per round with three entrants
        assert all(len(u.completed_rounds) == 1 for u in updates)

    def test_cancellation_closes_fixture(self):
        table = round_robin.build([1, 2])
        update = table.record_cancellation("group", 1, 0)

        assert update.bracket_completed
        assert update.completed_rounds == [("group", 1)]
        # Nobody played; seed order decides
        assert table.champion == 1

    def test_fixture_closes_once(self):
        table = round_robin.build([1, 2, 3, 4])
        table.record_result("group", 1, 0, 1, 4)
        with pytest.raises(TopologyError):
            table.record_cancellation("group", 1, 0)

    def test_result_must_match_fixture(self):
        table = round_robin.build([1, 2, 3, 4])
        with pytest.raises(TopologyError):
            table.record_result("group", 1, 0, 2, 3)

    def test_reload_from_dict(self):
        table = round_robin.build([1, 2, 3])
        table.record_result("group", 1, 0, 2, 3, 2, 1)

        restored = round_robin.load(table.to_dict())
        assert restored.standings[2].won == 1
        assert restored.sit_outs == table.sit_outs
        assert restored.current_round() == table.current_round() == 2
