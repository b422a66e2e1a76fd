"""
Single elimination topology builder.

For n entrants the bracket has R = ceil(log2 n) rounds and S = 2**R
round-1 slots. Seeds n+1..S are byes. The padded seed list is laid out
in standard placement order (1 v S, 4 v S-3, ...), so byes always face
the top seeds and no round-1 node holds two byes.

Example, 5 entrants (S = 8, 3 byes):

    round 1:  1 v bye | 4 v 5 | 2 v bye | 3 v bye
    round 2:  1 v (4/5 winner) | 2 v 3
    round 3:  final

Round 1 therefore has one real match; seeds 2 and 3 meet in round 2 as
soon as the bracket is generated.
"""

import logging
from typing import Optional, Sequence

from bracketeer.brackets.graph import BracketNode, NodeGraph, node_key
from bracketeer.brackets.topology import EliminationBracket
from bracketeer.draw import (
    get_bracket_size,
    get_matches_in_round,
    get_next_position,
    get_next_slot,
    get_placement_order,
    get_round_count,
    get_round_label,
)

logger = logging.getLogger(__name__)

BRACKET_TYPE = "single_elimination"
STAGE = "main"


def seeded_slots(entrant_ids: Sequence[int]) -> list[Optional[int]]:
    """
    Round-1 slot contents in bracket order, None for byes.

    Examples:
        >>> seeded_slots([11, 12, 13, 14, 15])
        [11, None, 14, 15, 12, None, 13, None]
    """
    size = get_bracket_size(len(entrant_ids))
    by_seed = {seed: entrant_id for seed, entrant_id in enumerate(entrant_ids, start=1)}
    return [by_seed.get(seed) for seed in get_placement_order(size)]


def build_elimination_graph(
    graph: NodeGraph,
    entrant_ids: Sequence[int],
    stage: str,
    label_prefix: str = "",
) -> int:
    """
    Add a seeded elimination tree to ``graph`` and return its round count.

    Round-1 slots are seated but not settled; callers settle once every
    other stage is wired, so bye losers can flow into a losers bracket.
    """
    total_rounds = get_round_count(len(entrant_ids))

    for round_number in range(1, total_rounds + 1):
        label = label_prefix + get_round_label(round_number, total_rounds)
        for position in range(get_matches_in_round(round_number, total_rounds)):
            graph.add(BracketNode(stage=stage, round=round_number, position=position, label=label))

    for round_number in range(1, total_rounds):
        for position in range(get_matches_in_round(round_number, total_rounds)):
            graph.link(
                node_key(stage, round_number, position),
                node_key(stage, round_number + 1, get_next_position(position)),
                get_next_slot(position),
            )

    slots = seeded_slots(entrant_ids)
    for position in range(len(slots) // 2):
        key = node_key(stage, 1, position)
        graph.seat(key, 1, slots[2 * position])
        graph.seat(key, 2, slots[2 * position + 1])

    return total_rounds


def number_nodes(graph: NodeGraph) -> None:
    """Assign match numbers in build order."""
    for number, node in enumerate(graph, start=1):
        node.number = number


def build(entrant_ids: Sequence[int], settings: Optional[dict] = None) -> EliminationBracket:
    """
    Build a single elimination bracket from seeded entrant ids.

    Args:
        entrant_ids: Entrant ids, seed 1 first
        settings: Unused; accepted for a uniform builder signature

    Returns:
        EliminationBracket with byes already resolved
    """
    graph = NodeGraph()
    total_rounds = build_elimination_graph(graph, entrant_ids, STAGE)
    number_nodes(graph)
    update = graph.settle_all()

    logger.debug(
        "Built single elimination: %d entrants, %d rounds, %d byes resolved",
        len(entrant_ids), total_rounds, len(update.resolved),
    )

    return EliminationBracket(
        bracket_type=BRACKET_TYPE,
        graph=graph,
        total_rounds=total_rounds,
        final_key=node_key(STAGE, total_rounds, 0),
    )


def load(data: dict) -> EliminationBracket:
    return EliminationBracket.from_dict(data)
