"""
Double elimination topology builder.

The winners bracket is a normal seeded elimination tree (R rounds, stage
'winners'). Every winners-bracket loser drops into the losers bracket
(stage 'losers'), which has 2(R-1) rounds:

- losers round 1 pairs the losers of winners round 1
- losers round 2k takes the losers of winners round k+1 (the drop-ins)
  against the survivors of losers round 2k-1. Drop-ins are placed in
  reverse order on odd k so two entrants who just met are not paired
  again straight away.
- losers round 2k+1 halves the field

The winners champion takes slot 1 of the grand final (stage 'final',
round 1) and the losers champion takes slot 2. If the losers champion
wins, the winners champion has lost only once, so a reset match
(stage 'final', round 2) decides the title. The reset can be disabled
per bracket with the ``grand_final_reset`` setting.

With two entrants there is no losers bracket: the loser of the only
winners match goes straight into the grand final.

Byes in winners round 1 produce no loser. The empty losers slot is a bye,
so the waiting entrant advances without playing; a losers node with two
byes is void and passes a bye on.
"""

import logging
from typing import Optional, Sequence

from bracketeer.brackets.graph import BracketNode, NodeGraph, node_key
from bracketeer.brackets.single_elimination import build_elimination_graph, number_nodes
from bracketeer.brackets.topology import EliminationBracket

logger = logging.getLogger(__name__)

BRACKET_TYPE = "double_elimination"
WINNERS = "winners"
LOSERS = "losers"
FINAL = "final"


def get_losers_round_count(winners_rounds: int) -> int:
    """
    Examples:
        >>> get_losers_round_count(1)
        0
        >>> get_losers_round_count(3)
        4
    """
    return 2 * (winners_rounds - 1)


def get_losers_round_size(round_number: int, bracket_size: int) -> int:
    """
    Nodes in a losers round. Rounds 2k-1 and 2k have the same size.

    Examples:
        >>> [get_losers_round_size(r, 8) for r in (1, 2, 3, 4)]
        [2, 2, 1, 1]
    """
    k = (round_number + 1) // 2
    return bracket_size // 2 ** (k + 1)


def get_losers_round_label(round_number: int, total_losers_rounds: int) -> str:
    if round_number == total_losers_rounds:
        return "losers_final"
    return f"losers_round_{round_number}"


def build(entrant_ids: Sequence[int], settings: Optional[dict] = None) -> EliminationBracket:
    """
    Build a double elimination bracket from seeded entrant ids.

    Args:
        entrant_ids: Entrant ids, seed 1 first
        settings: Bracket settings; reads ``grand_final_reset`` (default True)
    """
    settings = settings or {}
    with_reset = settings.get("grand_final_reset", True)

    graph = NodeGraph()
    winners_rounds = build_elimination_graph(graph, entrant_ids, WINNERS, label_prefix="winners_")
    bracket_size = 2 ** winners_rounds
    losers_rounds = get_losers_round_count(winners_rounds)

    for round_number in range(1, losers_rounds + 1):
        label = get_losers_round_label(round_number, losers_rounds)
        for position in range(get_losers_round_size(round_number, bracket_size)):
            graph.add(BracketNode(stage=LOSERS, round=round_number, position=position, label=label))

    final_key = node_key(FINAL, 1, 0)
    graph.add(BracketNode(stage=FINAL, round=1, position=0, label="grand_final"))

    reset_key = None
    if with_reset:
        reset = graph.add(BracketNode(stage=FINAL, round=2, position=0, label="grand_final_reset"))
        # Filled explicitly from the grand final, never by automatic propagation
        reset.prev1 = final_key
        reset.prev2 = final_key
        reset_key = reset.key

    winners_final = node_key(WINNERS, winners_rounds, 0)
    if winners_rounds == 1:
        graph.link(winners_final, final_key, 1)
        graph.link(winners_final, final_key, 2, loser=True)
    else:
        _wire_losers_bracket(graph, winners_rounds, bracket_size, losers_rounds)
        graph.link(winners_final, final_key, 1)
        graph.link(node_key(LOSERS, losers_rounds, 0), final_key, 2)

    number_nodes(graph)
    update = graph.settle_all()

    logger.debug(
        "Built double elimination: %d entrants, %d winners rounds, "
        "%d losers rounds, %d nodes resolved by byes",
        len(entrant_ids), winners_rounds, losers_rounds, len(update.resolved),
    )

    return EliminationBracket(
        bracket_type=BRACKET_TYPE,
        graph=graph,
        total_rounds=winners_rounds + losers_rounds + 1,
        final_key=final_key,
        reset_key=reset_key,
    )


def _wire_losers_bracket(
    graph: NodeGraph,
    winners_rounds: int,
    bracket_size: int,
    losers_rounds: int,
) -> None:
    # Losers round 1: winners round 1 losers, paired in bracket order
    for position in range(get_losers_round_size(1, bracket_size)):
        target = node_key(LOSERS, 1, position)
        graph.link(node_key(WINNERS, 1, 2 * position), target, 1, loser=True)
        graph.link(node_key(WINNERS, 1, 2 * position + 1), target, 2, loser=True)

    for k in range(1, winners_rounds):
        drop_round = 2 * k
        size = get_losers_round_size(drop_round, bracket_size)
        for position in range(size):
            target = node_key(LOSERS, drop_round, position)
            source_position = size - 1 - position if k % 2 == 1 else position
            graph.link(node_key(WINNERS, k + 1, source_position), target, 1, loser=True)
            graph.link(node_key(LOSERS, drop_round - 1, position), target, 2)

        halving_round = drop_round + 1
        if halving_round > losers_rounds:
            continue
        for position in range(get_losers_round_size(halving_round, bracket_size)):
            target = node_key(LOSERS, halving_round, position)
            graph.link(node_key(LOSERS, drop_round, 2 * position), target, 1)
            graph.link(node_key(LOSERS, drop_round, 2 * position + 1), target, 2)


def load(data: dict) -> EliminationBracket:
    return EliminationBracket.from_dict(data)
