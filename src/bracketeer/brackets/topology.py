"""
Format-independent topology results and the elimination bracket wrapper.

Every bracket format produces a topology object with the same surface:

    playable_pairings()      pairings that need a match at generation time
    record_result(...)       absorb a decided match, return a TopologyUpdate
    record_cancellation(...) absorb a cancelled match
    current_round()          progress pointer stored on the bracket row
    to_dict()                JSON stored in brackets.bracket_data

Single and double elimination share EliminationBracket and differ only in
the graph their builder lays out. Round robin has its own table type.
"""

from dataclasses import dataclass, field
from typing import Optional

from bracketeer.brackets.graph import BracketNode, NodeGraph, node_key
from bracketeer.exceptions import TopologyError


@dataclass
class Pairing:
    """A node or fixture that needs a match row."""
    stage: str
    round: int
    position: int
    number: int
    label: str
    entrant1: Optional[int] = None
    entrant2: Optional[int] = None

    @property
    def key(self) -> str:
        return node_key(self.stage, self.round, self.position)


@dataclass
class TopologyUpdate:
    """
    Outcome of absorbing one match result into a topology.

    Attributes:
        fills: Pairings that received an entrant and need their match
               found or created
        completed_rounds: (stage, round) pairs that became fully resolved
        bracket_completed: The result decided the whole bracket
        champion/runner_up: Set when bracket_completed
    """
    fills: list[Pairing] = field(default_factory=list)
    completed_rounds: list[tuple[str, int]] = field(default_factory=list)
    bracket_completed: bool = False
    champion: Optional[int] = None
    runner_up: Optional[int] = None


class EliminationBracket:
    """
    Single or double elimination bracket backed by a NodeGraph.

    ``final_key`` is the node whose result normally ends the bracket.
    ``reset_key`` (double elimination only) is the deciding rematch played
    when the slot 2 entrant of the final wins it.
    """

    def __init__(
        self,
        bracket_type: str,
        graph: NodeGraph,
        total_rounds: int,
        final_key: str,
        reset_key: Optional[str] = None,
        champion: Optional[int] = None,
        runner_up: Optional[int] = None,
        is_complete: bool = False,
    ) -> None:
        self.bracket_type = bracket_type
        self.graph = graph
        self.total_rounds = total_rounds
        self.final_key = final_key
        self.reset_key = reset_key
        self.champion = champion
        self.runner_up = runner_up
        self.is_complete = is_complete

    def node(self, stage: str, round_number: int, position: int) -> BracketNode:
        return self.graph.get(node_key(stage, round_number, position))

    def pairing(self, node: BracketNode) -> Pairing:
        return Pairing(
            stage=node.stage,
            round=node.round,
            position=node.position,
            number=node.number,
            label=node.label,
            entrant1=node.entrant1,
            entrant2=node.entrant2,
        )

    def playable_pairings(self) -> list[Pairing]:
        return [self.pairing(n) for n in self.graph if n.needs_match and n.is_playable]

    def _counted_rounds(self) -> list[tuple[str, int]]:
        reset_round = None
        if self.reset_key:
            reset = self.graph.get(self.reset_key)
            reset_round = (reset.stage, reset.round)
        return [r for r in self.graph.rounds() if r != reset_round]

    def current_round(self) -> int:
        """Completed rounds plus one, capped at total_rounds."""
        if self.is_complete:
            return self.total_rounds
        completed = sum(
            1 for stage, rnd in self._counted_rounds()
            if self.graph.is_round_resolved(stage, rnd)
        )
        return min(completed + 1, self.total_rounds)

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
        if self.is_complete:
            raise TopologyError("Bracket topology is already complete")

        key = node_key(stage, round_number, position)
        graph_update = self.graph.record_result(key, winner, loser)
        result = TopologyUpdate()

        if key == self.final_key and self.reset_key:
            final = self.graph.get(key)
            if winner == final.entrant2:
                # The losers-bracket champion handed the unbeaten entrant a
                # first loss, so one more match decides the title
                for slot in (1, 2):
                    reset_update = self.graph.place(
                        self.reset_key, slot, final.entrant(slot), key
                    )
                    graph_update.touched.extend(reset_update.touched)
            else:
                self._complete(winner, loser, result)
        elif key in (self.final_key, self.reset_key):
            self._complete(winner, loser, result)

        for touched in dict.fromkeys(graph_update.touched):
            result.fills.append(self.pairing(self.graph.get(touched)))

        resolved_rounds = {
            (self.graph.get(k).stage, self.graph.get(k).round)
            for k in graph_update.resolved
        }
        result.completed_rounds = [
            r for r in self.graph.rounds()
            if r in resolved_rounds and self.graph.is_round_resolved(*r)
        ]
        return result

    def record_cancellation(self, stage: str, round_number: int, position: int) -> TopologyUpdate:
        # A cancelled elimination match leaves its node open; nothing moves
        self.graph.get(node_key(stage, round_number, position))
        return TopologyUpdate()

    def _complete(self, winner: int, loser: int, result: TopologyUpdate) -> None:
        self.is_complete = True
        self.champion = winner
        self.runner_up = loser
        result.bracket_completed = True
        result.champion = winner
        result.runner_up = loser

    def to_dict(self) -> dict:
        return {
            "type": self.bracket_type,
            "total_rounds": self.total_rounds,
            "final_key": self.final_key,
            "reset_key": self.reset_key,
            "champion": self.champion,
            "runner_up": self.runner_up,
            "is_complete": self.is_complete,
            "nodes": self.graph.to_list(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EliminationBracket":
        return cls(
            bracket_type=data["type"],
            graph=NodeGraph.from_list(data["nodes"]),
            total_rounds=data["total_rounds"],
            final_key=data["final_key"],
            reset_key=data.get("reset_key"),
            champion=data.get("champion"),
            runner_up=data.get("runner_up"),
            is_complete=data.get("is_complete", False),
        )
