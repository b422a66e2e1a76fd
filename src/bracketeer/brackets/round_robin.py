"""
Round robin topology builder and standings table.

Every unordered pair of entrants meets exactly once. Fixtures are spread
over rounds with the circle method: the first entrant stays fixed and the
rest rotate one place per round, so each round pairs everyone at most
once. An odd field gets a phantom entrant; whoever faces the phantom sits
out that round, and over the whole schedule every entrant sits out
exactly once.

Fixtures are keyed ``"group:{round}:{position}"`` like elimination nodes,
so match rows address them the same way.

Standings rank entrants by points, then wins, then set difference, then
seed. Points per win and loss come from the bracket settings.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Optional, Sequence

from bracketeer.brackets.graph import node_key
from bracketeer.brackets.topology import Pairing, TopologyUpdate
from bracketeer.exceptions import TopologyError

logger = logging.getLogger(__name__)

BRACKET_TYPE = "round_robin"
STAGE = "group"
ROUND_LABEL = "round_robin"

PENDING = "pending"
DECIDED = "decided"
CANCELLED = "cancelled"


@dataclass
class Fixture:
    round: int
    position: int
    number: int
    entrant1: int
    entrant2: int
    status: str = PENDING
    winner: Optional[int] = None

    @property
    def key(self) -> str:
        return node_key(STAGE, self.round, self.position)


@dataclass
class StandingRow:
    entrant_id: int
    seed: int
    played: int = 0
    won: int = 0
    lost: int = 0
    points: int = 0
    sets_won: int = 0
    sets_lost: int = 0

    @property
    def set_difference(self) -> int:
        return self.sets_won - self.sets_lost

    def to_dict(self) -> dict:
        return {**asdict(self), "set_difference": self.set_difference}


def circle_schedule(entrant_ids: Sequence[int]) -> tuple[list[list[tuple[int, int]]], dict[int, int]]:
    """
    Pair entrants with the circle method.

    Returns:
        (rounds, sit_outs) where rounds[i] lists the pairs of round i+1 and
        sit_outs maps round number to the entrant resting that round

    Examples:
        >>> rounds, sit_outs = circle_schedule([1, 2, 3, 4])
        >>> rounds
        [[(1, 4), (2, 3)], [(1, 3), (4, 2)], [(1, 2), (3, 4)]]
        >>> sit_outs
        {}
    """
    players: list[Optional[int]] = list(entrant_ids)
    if len(players) % 2 == 1:
        players.append(None)

    count = len(players)
    fixed, rotating = players[0], players[1:]
    rounds: list[list[tuple[int, int]]] = []
    sit_outs: dict[int, int] = {}

    for round_index in range(count - 1):
        lineup = [fixed] + rotating
        pairs = []
        for i in range(count // 2):
            first, second = lineup[i], lineup[count - 1 - i]
            if first is None or second is None:
                sit_outs[round_index + 1] = first if second is None else second
                continue
            pairs.append((first, second))
        rounds.append(pairs)
        rotating = [rotating[-1]] + rotating[:-1]

    return rounds, sit_outs


class RoundRobinTable:
    """Fixtures and standings for a round robin bracket."""

    bracket_type = BRACKET_TYPE

    def __init__(
        self,
        fixtures: list[Fixture],
        standings: list[StandingRow],
        sit_outs: dict[int, int],
        total_rounds: int,
        win_points: int = 1,
        loss_points: int = 0,
        champion: Optional[int] = None,
        runner_up: Optional[int] = None,
        is_complete: bool = False,
    ) -> None:
        self.fixtures = {f.key: f for f in fixtures}
        self.standings = {row.entrant_id: row for row in standings}
        self.sit_outs = sit_outs
        self.total_rounds = total_rounds
        self.win_points = win_points
        self.loss_points = loss_points
        self.champion = champion
        self.runner_up = runner_up
        self.is_complete = is_complete

    def fixture(self, stage: str, round_number: int, position: int) -> Fixture:
        key = node_key(stage, round_number, position)
        try:
            return self.fixtures[key]
        except KeyError as exc:
            raise TopologyError(f"Unknown fixture: {key}") from exc

    def pairing(self, fixture: Fixture) -> Pairing:
        return Pairing(
            stage=STAGE,
            round=fixture.round,
            position=fixture.position,
            number=fixture.number,
            label=ROUND_LABEL,
            entrant1=fixture.entrant1,
            entrant2=fixture.entrant2,
        )

    def playable_pairings(self) -> list[Pairing]:
        return [self.pairing(f) for f in self.fixtures.values() if f.status == PENDING]

    def ranking(self) -> list[StandingRow]:
        """Standings ordered best first."""
        return sorted(
            self.standings.values(),
            key=lambda row: (-row.points, -row.won, -row.set_difference, row.seed),
        )

    def _is_round_closed(self, round_number: int) -> bool:
        return all(
            f.status != PENDING for f in self.fixtures.values() if f.round == round_number
        )

    def current_round(self) -> int:
        if self.is_complete:
            return self.total_rounds
        closed = sum(1 for r in range(1, self.total_rounds + 1) if self._is_round_closed(r))
        return min(closed + 1, self.total_rounds)

    def _open_fixture(self, stage: str, round_number: int, position: int) -> Fixture:
        if self.is_complete:
            raise TopologyError("Round robin is already complete")
        fixture = self.fixture(stage, round_number, position)
        if fixture.status != PENDING:
            raise TopologyError(f"Fixture {fixture.key} is already {fixture.status}")
        return fixture

    def record_result(
        self,
        stage: str,
        round_number: int,
        position: int,
        winner: int,
        loser: int,
        winner_sets: int = 0,
        loser_sets: int = 0,
    ) -> TopologyUpdate:
        fixture = self._open_fixture(stage, round_number, position)
        if {winner, loser} != {fixture.entrant1, fixture.entrant2}:
            raise TopologyError(
                f"Result {winner} over {loser} does not match fixture {fixture.key}"
            )

        fixture.status = DECIDED
        fixture.winner = winner

        winner_row = self.standings[winner]
        loser_row = self.standings[loser]
        winner_row.played += 1
        winner_row.won += 1
        winner_row.points += self.win_points
        winner_row.sets_won += winner_sets
        winner_row.sets_lost += loser_sets
        loser_row.played += 1
        loser_row.lost += 1
        loser_row.points += self.loss_points
        loser_row.sets_won += loser_sets
        loser_row.sets_lost += winner_sets

        return self._close(fixture)

    def record_cancellation(self, stage: str, round_number: int, position: int) -> TopologyUpdate:
        fixture = self._open_fixture(stage, round_number, position)
        fixture.status = CANCELLED
        return self._close(fixture)

    def _close(self, fixture: Fixture) -> TopologyUpdate:
        update = TopologyUpdate()
        if self._is_round_closed(fixture.round):
            update.completed_rounds.append((STAGE, fixture.round))

        if all(f.status != PENDING for f in self.fixtures.values()):
            ranking = self.ranking()
            self.is_complete = True
            self.champion = ranking[0].entrant_id
            self.runner_up = ranking[1].entrant_id if len(ranking) > 1 else None
            update.bracket_completed = True
            update.champion = self.champion
            update.runner_up = self.runner_up
        return update

    def to_dict(self) -> dict:
        return {
            "type": self.bracket_type,
            "total_rounds": self.total_rounds,
            "win_points": self.win_points,
            "loss_points": self.loss_points,
            "champion": self.champion,
            "runner_up": self.runner_up,
            "is_complete": self.is_complete,
            # JSON object keys are strings
            "sit_outs": {str(r): entrant for r, entrant in self.sit_outs.items()},
            "fixtures": [asdict(f) for f in self.fixtures.values()],
            "standings": [row.to_dict() for row in self.ranking()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RoundRobinTable":
        return cls(
            fixtures=[Fixture(**f) for f in data["fixtures"]],
            standings=[
                StandingRow(**{k: v for k, v in row.items() if k != "set_difference"})
                for row in data["standings"]
            ],
            sit_outs={int(r): entrant for r, entrant in data.get("sit_outs", {}).items()},
            total_rounds=data["total_rounds"],
            win_points=data.get("win_points", 1),
            loss_points=data.get("loss_points", 0),
            champion=data.get("champion"),
            runner_up=data.get("runner_up"),
            is_complete=data.get("is_complete", False),
        )


def build(entrant_ids: Sequence[int], settings: Optional[dict] = None) -> RoundRobinTable:
    """
    Build a round robin table from seeded entrant ids.

    Args:
        entrant_ids: Entrant ids, seed 1 first
        settings: Bracket settings; reads ``win_points`` and ``loss_points``
    """
    settings = settings or {}
    rounds, sit_outs = circle_schedule(entrant_ids)

    fixtures = []
    number = 1
    for round_number, pairs in enumerate(rounds, start=1):
        for position, (first, second) in enumerate(pairs):
            fixtures.append(Fixture(
                round=round_number,
                position=position,
                number=number,
                entrant1=first,
                entrant2=second,
            ))
            number += 1

    standings = [
        StandingRow(entrant_id=entrant_id, seed=seed)
        for seed, entrant_id in enumerate(entrant_ids, start=1)
    ]

    logger.debug(
        "Built round robin: %d entrants, %d rounds, %d fixtures",
        len(entrant_ids), len(rounds), len(fixtures),
    )

    return RoundRobinTable(
        fixtures=fixtures,
        standings=standings,
        sit_outs=sit_outs,
        total_rounds=len(rounds),
        win_points=settings.get("win_points", 1),
        loss_points=settings.get("loss_points", 0),
    )


def load(data: dict) -> RoundRobinTable:
    return RoundRobinTable.from_dict(data)
