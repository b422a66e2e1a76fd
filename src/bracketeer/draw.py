"""
Draw bracket utility functions.

Provides positional math for elimination brackets. Rounds are numbered
from 1 (the first round) and positions are 0-indexed within each round,
following standard single-elimination bracket progression:

    Round r, position p  →  Round r+1, position p // 2

So positions 0 and 1 in round 1 feed into position 0 in round 2,
positions 2 and 3 feed into position 1, etc. The even feeder fills
slot 1 of the target and the odd feeder fills slot 2.

These functions are used by:
- Topology builders (laying out nodes and links)
- Bracket generation (placing seeds and byes into round 1)
- Round labelling for match rows
"""

import math


# Labels for the last three rounds, keyed by entrants remaining in the round.
# Earlier rounds are labelled round_16, round_32, round_64, ...
NAMED_ROUNDS = {
    2: "final",
    4: "semifinal",
    8: "quarterfinal",
}


def get_round_count(entrant_count: int) -> int:
    """
    Number of elimination rounds needed for a field.

    Examples:
        >>> get_round_count(2)
        1
        >>> get_round_count(5)
        3
        >>> get_round_count(8)
        3
        >>> get_round_count(9)
        4
    """
    if entrant_count < 2:
        return 1
    return math.ceil(math.log2(entrant_count))


def get_bracket_size(entrant_count: int) -> int:
    """
    Round a field up to the next power of two.

    Examples:
        >>> get_bracket_size(5)
        8
        >>> get_bracket_size(16)
        16
    """
    return 2 ** get_round_count(entrant_count)


def get_bye_count(entrant_count: int) -> int:
    """
    Number of byes needed to fill the bracket.

    Examples:
        >>> get_bye_count(5)
        3
        >>> get_bye_count(8)
        0
    """
    return get_bracket_size(entrant_count) - entrant_count


def get_matches_in_round(round_number: int, total_rounds: int) -> int:
    """
    Number of nodes in an elimination round.

    Examples:
        >>> get_matches_in_round(1, 3)
        4
        >>> get_matches_in_round(3, 3)
        1
    """
    return 2 ** (total_rounds - round_number)


def get_round_label(round_number: int, total_rounds: int) -> str:
    """
    Human label for an elimination round.

    Examples:
        >>> get_round_label(3, 3)
        'final'
        >>> get_round_label(2, 3)
        'semifinal'
        >>> get_round_label(1, 4)
        'round_16'
    """
    remaining = 2 ** (total_rounds - round_number + 1)
    return NAMED_ROUNDS.get(remaining, f"round_{remaining}")


def get_next_position(position: int) -> int:
    """
    Position in the next round fed by this position.

    Examples:
        >>> get_next_position(0)
        0
        >>> get_next_position(1)
        0
        >>> get_next_position(5)
        2
    """
    return position // 2


def get_next_slot(position: int) -> int:
    """
    Slot (1 or 2) this position fills in the next round.

    Examples:
        >>> get_next_slot(4)
        1
        >>> get_next_slot(5)
        2
    """
    return position % 2 + 1


def get_feeder_positions(position: int) -> tuple[int, int]:
    """
    The two positions from the previous round that feed this position.

    Examples:
        >>> get_feeder_positions(0)
        (0, 1)
        >>> get_feeder_positions(2)
        (4, 5)
    """
    return (2 * position, 2 * position + 1)


def get_placement_order(bracket_size: int) -> list[int]:
    """
    Standard seed placement order for a power-of-two bracket.

    Seeds are paired 1 v N, then each half is built recursively so that
    if the higher seed always wins, seeds 1 and 2 meet in the final.
    Consecutive pairs of the returned list form the round-1 matchups.

    Examples:
        >>> get_placement_order(2)
        [1, 2]
        >>> get_placement_order(8)
        [1, 8, 4, 5, 2, 7, 3, 6]
    """
    if bracket_size <= 2:
        return list(range(1, bracket_size + 1))

    upper_half = get_placement_order(bracket_size // 2)
    lower_half = [bracket_size + 1 - seed for seed in upper_half]

    order = []
    for upper, lower in zip(upper_half, lower_half):
        order.extend([upper, lower])
    return order
