"""
Integration tests for the advancement engine.

Plays brackets through the lifecycle controller and checks next-round
match creation, round and bracket completion, signals, deferred
advancement after topology errors, and the find-or-create race path.
"""

import copy
import logging

import pytest

from bracketeer.db.models import AdvancementIssue, Bracket, Match
from bracketeer.exceptions import InvalidTransitionError, TopologyError
from bracketeer.services import (
    advancement,
    cancel_match,
    generate_bracket,
    get_bracket_status,
    record_walkover,
    replay_match,
    resolve_advancement,
)
from bracketeer.services.advancement import find_node_match


def _node(db_session, bracket, key):
    stage, round_number, position = key.split(":")
    return find_node_match(db_session, bracket.id, stage, int(round_number), int(position))


def _seeds(bracket):
    return [row["entrant_id"] for row in bracket.seeding_data]


def _match_count(db_session, bracket):
    return db_session.query(Match).filter(Match.bracket_id == bracket.id).count()


class TestSingleElimination:
    """Advancement through a single elimination bracket."""

    def test_five_entrants_to_champion(self, db_session, make_category, play_match):
        category = make_category(5)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")
        e1, e2, e3, e4, e5 = _seeds(bracket)

        play_match(_node(db_session, bracket, "main:1:1"), winner_id=e4)
        semi = _node(db_session, bracket, "main:2:0")
        assert (semi.entrant1_id, semi.entrant2_id) == (e1, e4)
        assert bracket.current_round == 2

        play_match(_node(db_session, bracket, "main:2:1"), winner_id=e3)
        final = _node(db_session, bracket, "main:3:0")
        assert (final.entrant1_id, final.entrant2_id) == (None, e3)

        play_match(semi, winner_id=e1)
        assert final.entrant1_id == e1
        assert bracket.current_round == 3

        play_match(final, winner_id=e3)

        assert bracket.is_complete
        assert bracket.champion_entrant_id == e3
        assert bracket.runner_up_entrant_id == e1
        assert bracket.completed_at is not None
        decided = db_session.query(Match).filter(
            Match.bracket_id == bracket.id,
            Match.status == "completed",
        ).count()
        assert decided == 5 - 1

    @pytest.mark.parametrize("order", [(0, 1), (1, 0)])
    def test_semifinal_order_does_not_matter(self, db_session, make_category, play_match, order):
        """Whichever semifinal finishes first, one final holds both winners."""
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")
        e1, e2, e3, e4 = _seeds(bracket)
        semis = [_node(db_session, bracket, "main:1:0"), _node(db_session, bracket, "main:1:1")]

        for index in order:
            play_match(semis[index])

        finals = db_session.query(Match).filter(
            Match.bracket_id == bracket.id,
            Match.round_number == 2,
        ).all()
        assert len(finals) == 1
        assert (finals[0].entrant1_id, finals[0].entrant2_id) == (e1, e2)
        assert finals[0].round_label == "final"

    def test_final_completes_once(self, db_session, make_category, play_match):
        category = make_category(2)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")
        final = _node(db_session, bracket, "main:1:0")

        play_match(final)
        completed_at = bracket.completed_at

        with pytest.raises(InvalidTransitionError):
            record_walkover(db_session, final.id, final.entrant2_id)
        assert bracket.champion_entrant_id == final.entrant1_id
        assert bracket.completed_at == completed_at

    def test_walkover_advances(self, db_session, make_category):
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")
        e1, e2, e3, e4 = _seeds(bracket)

        record_walkover(db_session, _node(db_session, bracket, "main:1:0").id, e4)

        assert _node(db_session, bracket, "main:2:0").entrant1_id == e4

    def test_cancelled_match_blocks_its_branch(self, db_session, make_category, play_match):
        """An elimination node stays open when its match is cancelled."""
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")

        cancel_match(db_session, _node(db_session, bracket, "main:1:0").id, "Both withdrew")
        play_match(_node(db_session, bracket, "main:1:1"))

        final = _node(db_session, bracket, "main:2:0")
        assert final.entrant1_id is None
        assert final.entrant2_id is not None
        assert not bracket.is_complete
        assert bracket.current_round == 1

    def test_cancelled_final_replayed_as_walkover(self, db_session, make_category):
        category = make_category(2)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")
        e1, e2 = _seeds(bracket)
        final = _node(db_session, bracket, "main:1:0")

        cancel_match(db_session, final.id, "Rain")
        assert _node(db_session, bracket, "main:1:0") is None
        replay = replay_match(db_session, final.id, "Rescheduled")
        record_walkover(db_session, replay.id, e1, reason="Opponent left the venue")

        assert final.status == "cancelled"
        assert replay.status == "walkover"
        assert bracket.is_complete
        assert bracket.champion_entrant_id == e1
        assert bracket.runner_up_entrant_id == e2

    def test_cancelled_match_replayed_to_champion(self, db_session, make_category, play_match):
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")
        e1, e2, e3, e4 = _seeds(bracket)
        semi = _node(db_session, bracket, "main:1:0")

        cancel_match(db_session, semi.id, "Floodlights failed")
        play_match(_node(db_session, bracket, "main:1:1"), winner_id=e2)
        replay = replay_match(db_session, semi.id, "Replayed next morning")
        assert (replay.entrant1_id, replay.entrant2_id) == (e1, e4)
        play_match(replay, winner_id=e4)

        final = _node(db_session, bracket, "main:2:0")
        assert (final.entrant1_id, final.entrant2_id) == (e4, e2)
        play_match(final, winner_id=e4)

        assert bracket.is_complete
        assert bracket.champion_entrant_id == e4
        # The cancelled semifinal is kept beside its replay
        assert _match_count(db_session, bracket) == 4
        status = get_bracket_status(db_session, bracket.id)
        assert status.cancelled_matches == 1
        assert status.completed_matches == 3

    def test_waiting_match_reopened_when_filled(self, db_session, make_category, play_match):
        """A node cancelled before its second entrant arrived gets a fresh row."""
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")
        e1, e2, e3, e4 = _seeds(bracket)
        play_match(_node(db_session, bracket, "main:1:0"), winner_id=e1)
        waiting = _node(db_session, bracket, "main:2:0")
        cancel_match(db_session, waiting.id, "Court closed")

        play_match(_node(db_session, bracket, "main:1:1"), winner_id=e3)

        final = _node(db_session, bracket, "main:2:0")
        assert final.id != waiting.id
        assert (final.entrant1_id, final.entrant2_id) == (e1, e3)
        assert waiting.status == "cancelled"
        play_match(final, winner_id=e3)
        assert bracket.champion_entrant_id == e3


class TestSignals:
    """Signals are dispatched on commit in emission order."""

    def test_round_and_bracket_signals(self, db_session, make_category, play_match, received_signals):
        category = make_category(2, tournament_id=77)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")
        db_session.commit()

        play_match(_node(db_session, bracket, "main:1:0"))
        assert received_signals == []

        db_session.commit()

        assert [s.name for s in received_signals] == [
            "match_started",
            "match_completed",
            "round_complete",
            "bracket_complete",
            "tournament_complete",
        ]
        complete = received_signals[3]
        assert complete.payload["bracket_id"] == bracket.id
        assert complete.payload["champion_entrant_id"] == _seeds(bracket)[0]
        assert received_signals[4].payload == {"tournament_id": 77}

    def test_tournament_waits_for_every_category(
        self, db_session, make_category, play_match, received_signals
    ):
        singles = make_category(2, tournament_id=88, name="Singles")
        make_category(2, tournament_id=88, name="Doubles")
        bracket = generate_bracket(db_session, singles.id, "single_elimination", "ranking")

        play_match(_node(db_session, bracket, "main:1:0"))
        db_session.commit()

        names = [s.name for s in received_signals]
        assert "bracket_complete" in names
        assert "tournament_complete" not in names


class TestDoubleElimination:
    """Advancement through a double elimination bracket."""

    def _play_to_grand_final(self, db_session, bracket, play_match):
        e1, e2, e3, e4 = _seeds(bracket)
        play_match(_node(db_session, bracket, "winners:1:0"), winner_id=e1)
        play_match(_node(db_session, bracket, "winners:1:1"), winner_id=e2)
        play_match(_node(db_session, bracket, "losers:1:0"), winner_id=e4)
        play_match(_node(db_session, bracket, "winners:2:0"), winner_id=e1)
        play_match(_node(db_session, bracket, "losers:2:0"), winner_id=e2)
        return _node(db_session, bracket, "final:1:0")

    def test_losers_bracket_matches_created(self, db_session, make_category, play_match):
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "double_elimination", "ranking")
        e1, e2, e3, e4 = _seeds(bracket)

        play_match(_node(db_session, bracket, "winners:1:0"), winner_id=e1)
        losers = _node(db_session, bracket, "losers:1:0")
        assert (losers.entrant1_id, losers.entrant2_id) == (e4, None)

        play_match(_node(db_session, bracket, "winners:1:1"), winner_id=e2)
        assert losers.entrant2_id == e3
        assert losers.round_label == "losers_round_1"

    def test_winners_champion_takes_title(self, db_session, make_category, play_match):
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "double_elimination", "ranking")
        e1, e2, e3, e4 = _seeds(bracket)

        grand_final = self._play_to_grand_final(db_session, bracket, play_match)
        assert (grand_final.entrant1_id, grand_final.entrant2_id) == (e1, e2)

        play_match(grand_final, winner_id=e1)

        assert bracket.is_complete
        assert bracket.champion_entrant_id == e1
        assert _node(db_session, bracket, "final:2:0") is None
        assert _match_count(db_session, bracket) == 2 * 4 - 2

    def test_reset_match(self, db_session, make_category, play_match):
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "double_elimination", "ranking")
        e1, e2, e3, e4 = _seeds(bracket)

        grand_final = self._play_to_grand_final(db_session, bracket, play_match)
        play_match(grand_final, winner_id=e2)

        assert not bracket.is_complete
        reset = _node(db_session, bracket, "final:2:0")
        assert (reset.entrant1_id, reset.entrant2_id) == (e1, e2)
        assert reset.round_label == "grand_final_reset"

        play_match(reset, winner_id=e2)

        assert bracket.is_complete
        assert bracket.champion_entrant_id == e2
        assert bracket.runner_up_entrant_id == e1
        assert bracket.current_round == bracket.total_rounds

    def test_byes_resolve_losers_nodes(self, db_session, make_category, play_match):
        """Five entrants: byes leave only real losers-bracket matches."""
        category = make_category(5)
        bracket = generate_bracket(db_session, category.id, "double_elimination", "ranking")

        while not bracket.is_complete:
            match = (
                db_session.query(Match)
                .filter(Match.bracket_id == bracket.id, Match.status == "scheduled")
                .filter(Match.entrant1_id.isnot(None), Match.entrant2_id.isnot(None))
                .order_by(Match.match_number)
                .first()
            )
            winner = min(match.entrant1_id, match.entrant2_id)
            play_match(match, winner_id=winner)

        assert bracket.champion_entrant_id == _seeds(bracket)[0]
        assert _match_count(db_session, bracket) == 2 * 5 - 2


class TestRoundRobin:
    """Advancement through a round robin."""

    def test_standings_and_cancellation(self, db_session, make_category, play_match):
        """Slot 1 wins every fixture and 3 v 4 is cancelled."""
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "round_robin", "ranking")
        e1, e2, e3, e4 = _seeds(bracket)

        cancel_match(db_session, _node(db_session, bracket, "group:3:1").id, "Rained off")
        assert not bracket.is_complete

        for key in ("group:1:0", "group:1:1", "group:2:0", "group:2:1", "group:3:0"):
            play_match(_node(db_session, bracket, key))

        assert bracket.is_complete
        # e2 and e4 both have one win; e4 has the better set difference
        assert bracket.champion_entrant_id == e1
        assert bracket.runner_up_entrant_id == e4
        standings = bracket.bracket_data["standings"]
        assert [row["entrant_id"] for row in standings] == [e1, e4, e2, e3]
        assert standings[0]["won"] == 3

        status = get_bracket_status(db_session, bracket.id)
        assert status.completed_matches == 5
        assert status.cancelled_matches == 1
        assert status.is_complete

    def test_cancelled_fixture_stays_closed(self, db_session, make_category):
        category = make_category(3)
        bracket = generate_bracket(db_session, category.id, "round_robin", "ranking")
        fixture = _node(db_session, bracket, "group:1:0")
        cancel_match(db_session, fixture.id, "Rained off")

        with pytest.raises(InvalidTransitionError):
            replay_match(db_session, fixture.id, "Replay")
        with pytest.raises(InvalidTransitionError):
            record_walkover(db_session, fixture.id, fixture.entrant1_id)
        assert fixture.status == "cancelled"

    def test_round_pointer(self, db_session, make_category, play_match):
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "round_robin", "ranking")
        assert bracket.current_round == 1

        play_match(_node(db_session, bracket, "group:1:0"))
        play_match(_node(db_session, bracket, "group:1:1"))
        assert bracket.current_round == 2


class TestDeferredAdvancement:
    """Topology errors flag the match instead of failing the result."""

    def _corrupt_final(self, db_session, bracket, entrant_id):
        data = copy.deepcopy(bracket.bracket_data)
        for node in data["nodes"]:
            if node["round"] == 2:
                node["entrant1"] = entrant_id
        bracket.bracket_data = data
        db_session.flush()

    def test_error_flags_match_and_is_resolvable(self, db_session, make_category, play_match, caplog):
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")
        e1, e2, e3, e4 = _seeds(bracket)
        self._corrupt_final(db_session, bracket, e3)

        semi = _node(db_session, bracket, "main:1:0")
        with caplog.at_level(logging.ERROR, logger="bracketeer.services.advancement"):
            play_match(semi, winner_id=e1)

        # The result stands; only its propagation is deferred
        assert semi.status == "completed"
        assert semi.winner_id == e1
        assert semi.advancement_pending is True
        assert _node(db_session, bracket, "main:2:0") is None
        issue = db_session.query(AdvancementIssue).filter_by(match_id=semi.id).one()
        assert issue.error_type == "TopologyError"
        assert issue.details["node"] == "main:1:0"
        assert not issue.resolved
        assert "failed" in caplog.text

        self._corrupt_final(db_session, bracket, None)
        stats = resolve_advancement(db_session, semi.id)

        assert stats.matches_created == 1
        assert semi.advancement_pending is False
        assert issue.resolved
        assert _node(db_session, bracket, "main:2:0").entrant1_id == e1

    def test_resolve_without_pending_is_noop(self, db_session, make_category):
        category = make_category(2)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")
        assert resolve_advancement(db_session, _node(db_session, bracket, "main:1:0").id) is None

    def test_resolve_still_broken_raises(self, db_session, make_category, play_match):
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")
        e1, e2, e3, e4 = _seeds(bracket)
        self._corrupt_final(db_session, bracket, e3)
        semi = _node(db_session, bracket, "main:1:0")
        play_match(semi, winner_id=e1)

        with pytest.raises(TopologyError):
            resolve_advancement(db_session, semi.id)

    def test_decided_target_match_is_consistency_error(self, db_session, make_category, play_match):
        """A next-round match that is already decided cannot take a new entrant."""
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")
        e1, e2, e3, e4 = _seeds(bracket)

        play_match(_node(db_session, bracket, "main:1:0"), winner_id=e1)
        final = _node(db_session, bracket, "main:2:0")
        final.status = "walkover"
        db_session.flush()

        semi = _node(db_session, bracket, "main:1:1")
        play_match(semi, winner_id=e2)

        assert semi.advancement_pending is True
        assert final.entrant2_id is None


class TestConcurrentCreation:
    """Find-or-create absorbs a match row created by a concurrent result."""

    def test_unique_violation_fills_existing_row(
        self, db_session, make_category, play_match, monkeypatch
    ):
        category = make_category(4)
        bracket = generate_bracket(db_session, category.id, "single_elimination", "ranking")
        e1, e2, e3, e4 = _seeds(bracket)
        play_match(_node(db_session, bracket, "main:1:0"), winner_id=e1)

        real_find = advancement.find_node_match
        calls = []

        def stale_find(session, bracket_id, stage, round_number, position):
            # The first lookup misses the row, as if it were committed
            # by another transaction after this one read
            calls.append((stage, round_number, position))
            if len(calls) == 1:
                return None
            return real_find(session, bracket_id, stage, round_number, position)

        monkeypatch.setattr(advancement, "find_node_match", stale_find)
        semi = _node(db_session, bracket, "main:1:1")
        play_match(semi, winner_id=e2)

        # Miss, re-query after the unique violation, then the slot check
        assert calls == [("main", 2, 0)] * 3
        assert semi.advancement_pending is False
        finals = db_session.query(Match).filter(
            Match.bracket_id == bracket.id,
            Match.round_number == 2,
        ).all()
        assert len(finals) == 1
        assert (finals[0].entrant1_id, finals[0].entrant2_id) == (e1, e2)
        assert db_session.get(Bracket, bracket.id).current_round == 2
