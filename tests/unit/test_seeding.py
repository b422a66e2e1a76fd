"""
Unit tests for entrant seeding.

Entrants are plain namespaces here; seeding only reads strength,
seed_number and region.
"""

import random
from types import SimpleNamespace

import pytest

from bracketeer.exceptions import InsufficientEntrantsError, UnknownSeedingMethodError
from bracketeer.seeding import seed_entrants


def _entrant(name, strength=0.0, seed_number=None, region=None):
    return SimpleNamespace(
        name=name, strength=strength, seed_number=seed_number, region=region
    )


def _names(entrants):
    return [e.name for e in entrants]


class TestRankingSeeding:
    """Tests for the 'ranking' method."""

    def test_strongest_first(self):
        roster = [_entrant("a", 1200), _entrant("b", 1800), _entrant("c", 1500)]
        assert _names(seed_entrants(roster, "ranking")) == ["b", "c", "a"]

    def test_ties_keep_roster_order(self):
        """Equal strengths stay in registration order."""
        roster = [_entrant("a", 1500), _entrant("b", 1500), _entrant("c", 1600)]
        assert _names(seed_entrants(roster, "ranking")) == ["c", "a", "b"]

    def test_does_not_mutate_roster(self):
        roster = [_entrant("a", 1), _entrant("b", 2)]
        seed_entrants(roster, "ranking")
        assert _names(roster) == ["a", "b"]


class TestManualSeeding:
    """Tests for the 'manual' method."""

    def test_seeded_then_unseeded(self):
        roster = [
            _entrant("a"),
            _entrant("b", seed_number=2),
            _entrant("c"),
            _entrant("d", seed_number=1),
        ]
        assert _names(seed_entrants(roster, "manual")) == ["d", "b", "a", "c"]


class TestRandomSeeding:
    """Tests for the 'random' method."""

    def test_same_seed_same_draw(self):
        """A stored seed reproduces the draw exactly."""
        roster = [_entrant(str(i)) for i in range(16)]
        first = seed_entrants(roster, "random", random.Random(42))
        second = seed_entrants(roster, "random", random.Random(42))
        assert _names(first) == _names(second)

    def test_is_a_permutation(self):
        roster = [_entrant(str(i)) for i in range(10)]
        shuffled = seed_entrants(roster, "random", random.Random(7))
        assert sorted(_names(shuffled)) == sorted(_names(roster))


class TestRegionalSeeding:
    """Tests for the 'regional' method."""

    def test_regions_interleaved(self):
        """Regions are visited in order of first appearance."""
        roster = [
            _entrant("a1", region="A"),
            _entrant("a2", region="A"),
            _entrant("a3", region="A"),
            _entrant("b1", region="B"),
            _entrant("c1", region="C"),
            _entrant("c2", region="C"),
        ]
        assert _names(seed_entrants(roster, "regional")) == [
            "a1", "b1", "c1", "a2", "c2", "a3",
        ]

    def test_missing_region_grouped_together(self):
        roster = [_entrant("x"), _entrant("a1", region="A"), _entrant("y")]
        assert _names(seed_entrants(roster, "regional")) == ["x", "a1", "y"]


class TestSeedingErrors:
    """Tests for rejected seeding requests."""

    def test_unknown_method(self):
        with pytest.raises(UnknownSeedingMethodError):
            seed_entrants([_entrant("a")], "alphabetical")

    def test_empty_roster(self):
        with pytest.raises(InsufficientEntrantsError):
            seed_entrants([], "ranking")
