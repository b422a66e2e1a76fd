"""
Entrant seeding.

Turns a roster into the ordered list the topology builders consume:
index 0 is seed 1. Entrants can be ORM rows or any object exposing
``strength``, ``seed_number`` and ``region`` attributes.

Methods:
- ranking: strongest first; ties keep roster order.
- manual: by organiser-assigned seed number; unseeded entrants last.
- random: Fisher-Yates shuffle driven by an explicit random.Random so the
  draw can be reproduced from the stored seed.
- regional: entrants grouped by region and interleaved, so players from
  the same region are spread across the draw.
"""

import logging
import random
from typing import Any, Callable, Optional, Sequence

from bracketeer.exceptions import InsufficientEntrantsError, UnknownSeedingMethodError

logger = logging.getLogger(__name__)

SEEDING_METHODS = ("ranking", "manual", "random", "regional")

# Regional seeding groups entrants without a region under this key
UNKNOWN_REGION = "unknown"


def seed_entrants(
    entrants: Sequence[Any],
    method: str,
    rng: Optional[random.Random] = None,
) -> list:
    """
    Order entrants by the requested seeding method.

    Args:
        entrants: Roster in registration order
        method: One of SEEDING_METHODS
        rng: Random source for the 'random' method. Required for a
             reproducible draw; a fresh unseeded Random is used otherwise.

    Returns:
        New list, seed 1 first

    Raises:
        UnknownSeedingMethodError: method is not recognised
        InsufficientEntrantsError: roster is empty
    """
    seeder = _SEEDERS.get(method)
    if seeder is None:
        raise UnknownSeedingMethodError(
            f"Unknown seeding method: {method}",
            {"allowed": list(SEEDING_METHODS)},
        )
    if not entrants:
        raise InsufficientEntrantsError("Cannot seed an empty roster")

    if method == "random":
        ordered = _seed_random(entrants, rng or random.Random())
    else:
        ordered = seeder(entrants)

    logger.debug("Seeded %d entrants using '%s'", len(ordered), method)
    return ordered


def _seed_ranking(entrants: Sequence[Any]) -> list:
    # sorted() is stable, so equal strengths keep roster order
    return sorted(entrants, key=lambda e: -(e.strength or 0.0))


def _seed_manual(entrants: Sequence[Any]) -> list:
    seeded = [e for e in entrants if e.seed_number is not None]
    unseeded = [e for e in entrants if e.seed_number is None]
    return sorted(seeded, key=lambda e: e.seed_number) + unseeded


def _seed_random(entrants: Sequence[Any], rng: random.Random) -> list:
    """Fisher-Yates shuffle of a copy of the roster."""
    shuffled = list(entrants)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def _seed_regional(entrants: Sequence[Any]) -> list:
    """
    Interleave regions round-robin style.

    Regions are visited in order of first appearance; each pass takes
    the next entrant from every region that still has one.

    Example:
        A1 A2 A3 B1 C1 C2  →  A1 B1 C1 A2 C2 A3
    """
    groups: dict[str, list] = {}
    for entrant in entrants:
        groups.setdefault(entrant.region or UNKNOWN_REGION, []).append(entrant)

    ordered = []
    depth = max(len(group) for group in groups.values())
    for i in range(depth):
        for group in groups.values():
            if i < len(group):
                ordered.append(group[i])
    return ordered


_SEEDERS: dict[str, Callable[[Sequence[Any]], list]] = {
    "ranking": _seed_ranking,
    "manual": _seed_manual,
    "random": lambda entrants: _seed_random(entrants, random.Random()),
    "regional": _seed_regional,
}
