"""
Elimination node graph.

Nodes live in an arena keyed by ``"{stage}:{round}:{position}"`` and refer
to each other by key, never by object reference, so the whole graph
serializes to JSON without cycles and can be rebuilt from the bracket row.

Each node has two entrant slots. A slot is either empty (waiting for a
feeder), holds an entrant id, or is marked as a bye. When both slots are
filled the node settles:

- two entrants: the node needs a match and waits for record_result()
- one bye: the real entrant wins immediately, no match is played
- two byes: the node is void and passes a bye on

Resolving a node pushes its winner along ``next`` and, in double
elimination, its loser along ``loser_next``. Every placement checks that
the target's ``prev{slot}`` link points back at the source, so a corrupt
graph raises TopologyError instead of silently overwriting a slot.
"""

from dataclasses import asdict, dataclass, field
from typing import Iterator, Optional

from bracketeer.exceptions import TopologyError


def node_key(stage: str, round_number: int, position: int) -> str:
    """
    Arena key for a node.

    Examples:
        >>> node_key("main", 2, 0)
        'main:2:0'
    """
    return f"{stage}:{round_number}:{position}"


@dataclass
class BracketNode:
    """
    One slot in the elimination bracket.

    Attributes:
        stage: 'main', 'winners', 'losers' or 'final'
        round: 1 for the first round of the stage
        position: 0-indexed position within the round
        label: Round label copied onto the match row
        number: Match number, assigned in build order
        entrant1/entrant2: Entrant ids, None until known
        bye1/bye2: Slot is a bye
        winner/loser: Set once the node resolves (None for byes)
        resolved: Node has a result (played or by bye)
        next/next_slot: Where the winner goes
        loser_next/loser_next_slot: Where the loser goes (double elimination)
        prev1/prev2: Keys of the nodes feeding slot 1 and slot 2
    """
    stage: str
    round: int
    position: int
    label: str
    number: int = 0
    entrant1: Optional[int] = None
    entrant2: Optional[int] = None
    bye1: bool = False
    bye2: bool = False
    winner: Optional[int] = None
    loser: Optional[int] = None
    resolved: bool = False
    next: Optional[str] = None
    next_slot: Optional[int] = None
    loser_next: Optional[str] = None
    loser_next_slot: Optional[int] = None
    prev1: Optional[str] = None
    prev2: Optional[str] = None

    @property
    def key(self) -> str:
        return node_key(self.stage, self.round, self.position)

    def entrant(self, slot: int) -> Optional[int]:
        return self.entrant1 if slot == 1 else self.entrant2

    def is_bye(self, slot: int) -> bool:
        return self.bye1 if slot == 1 else self.bye2

    def is_filled(self, slot: int) -> bool:
        return self.entrant(slot) is not None or self.is_bye(slot)

    def feeder(self, slot: int) -> Optional[str]:
        return self.prev1 if slot == 1 else self.prev2

    @property
    def has_bye(self) -> bool:
        return self.bye1 or self.bye2

    @property
    def is_playable(self) -> bool:
        """Both entrants known and no result yet."""
        return (
            not self.resolved
            and self.entrant1 is not None
            and self.entrant2 is not None
        )

    @property
    def needs_match(self) -> bool:
        """Holds at least one real entrant and will be decided by play."""
        return (
            not self.resolved
            and not self.has_bye
            and (self.entrant1 is not None or self.entrant2 is not None)
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "BracketNode":
        return cls(**data)


@dataclass
class GraphUpdate:
    """Nodes changed by one graph operation."""
    resolved: list[str] = field(default_factory=list)
    touched: list[str] = field(default_factory=list)

    def touch(self, key: str) -> None:
        if key not in self.touched:
            self.touched.append(key)


class NodeGraph:
    """Arena of BracketNodes with validated winner propagation."""

    def __init__(self, nodes: Optional[list[BracketNode]] = None) -> None:
        self._nodes: dict[str, BracketNode] = {}
        for node in nodes or []:
            self.add(node)

    def __contains__(self, key: str) -> bool:
        return key in self._nodes

    def __iter__(self) -> Iterator[BracketNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def add(self, node: BracketNode) -> BracketNode:
        if node.key in self._nodes:
            raise TopologyError(f"Duplicate node: {node.key}")
        self._nodes[node.key] = node
        return node

    def get(self, key: str) -> BracketNode:
        try:
            return self._nodes[key]
        except KeyError as exc:
            raise TopologyError(f"Unknown node: {key}") from exc

    def round_nodes(self, stage: str, round_number: int) -> list[BracketNode]:
        nodes = [
            n for n in self._nodes.values()
            if n.stage == stage and n.round == round_number
        ]
        return sorted(nodes, key=lambda n: n.position)

    def rounds(self) -> list[tuple[str, int]]:
        """Distinct (stage, round) pairs in build order."""
        seen: list[tuple[str, int]] = []
        for node in self._nodes.values():
            pair = (node.stage, node.round)
            if pair not in seen:
                seen.append(pair)
        return seen

    def is_round_resolved(self, stage: str, round_number: int) -> bool:
        return all(n.resolved for n in self.round_nodes(stage, round_number))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def link(self, source_key: str, target_key: str, slot: int, *, loser: bool = False) -> None:
        """Wire a source node's winner (or loser) into a target slot."""
        source = self.get(source_key)
        target = self.get(target_key)
        if loser:
            source.loser_next = target_key
            source.loser_next_slot = slot
        else:
            source.next = target_key
            source.next_slot = slot
        setattr(target, f"prev{slot}", source_key)

    def seat(self, key: str, slot: int, entrant_id: Optional[int]) -> None:
        """Fill a slot with no feeder (round 1). None seats a bye."""
        node = self.get(key)
        if entrant_id is None:
            setattr(node, f"bye{slot}", True)
        else:
            setattr(node, f"entrant{slot}", entrant_id)

    def settle_all(self) -> GraphUpdate:
        """Resolve every bye node, cascading through the graph."""
        update = GraphUpdate()
        for node in list(self._nodes.values()):
            self._settle(node, update)
        return update

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def record_result(self, key: str, winner: int, loser: int) -> GraphUpdate:
        """
        Resolve a played node and propagate its winner and loser.

        Raises:
            TopologyError: the node is already resolved, its entrants do not
                           match the result, or a downstream slot conflicts
        """
        node = self.get(key)
        if node.resolved:
            raise TopologyError(f"Node {key} is already resolved")
        if not node.is_playable:
            raise TopologyError(f"Node {key} does not have two entrants")
        if {winner, loser} != {node.entrant1, node.entrant2}:
            raise TopologyError(
                f"Result {winner} over {loser} does not match node {key} "
                f"entrants ({node.entrant1}, {node.entrant2})"
            )

        update = GraphUpdate()
        self._resolve(node, winner, loser, update)
        update.touched = [k for k in update.touched if not self.get(k).resolved]
        return update

    def place(self, target_key: str, slot: int, entrant_id: Optional[int], source_key: str) -> GraphUpdate:
        """Place an entrant into a slot outside the normal result flow."""
        update = GraphUpdate()
        self._place(target_key, slot, entrant_id, source_key, update)
        update.touched = [k for k in update.touched if not self.get(k).resolved]
        return update

    def _resolve(
        self,
        node: BracketNode,
        winner: Optional[int],
        loser: Optional[int],
        update: GraphUpdate,
    ) -> None:
        node.winner = winner
        node.loser = loser
        node.resolved = True
        update.resolved.append(node.key)

        if node.next:
            self._place(node.next, node.next_slot, winner, node.key, update)
        if node.loser_next:
            self._place(node.loser_next, node.loser_next_slot, loser, node.key, update)

    def _place(
        self,
        target_key: str,
        slot: int,
        entrant_id: Optional[int],
        source_key: str,
        update: GraphUpdate,
    ) -> None:
        target = self.get(target_key)
        if slot not in (1, 2):
            raise TopologyError(f"Invalid slot {slot} for node {target_key}")
        if target.feeder(slot) != source_key:
            raise TopologyError(
                f"Node {target_key} slot {slot} is fed by {target.feeder(slot)}, "
                f"not {source_key}"
            )
        if target.resolved:
            raise TopologyError(f"Node {target_key} is already resolved")

        current = target.entrant(slot)
        if target.is_bye(slot) or (current is not None and current != entrant_id):
            raise TopologyError(
                f"Node {target_key} slot {slot} already holds "
                f"{'a bye' if target.is_bye(slot) else current}"
            )

        if entrant_id is None:
            setattr(target, f"bye{slot}", True)
        else:
            setattr(target, f"entrant{slot}", entrant_id)
        self._settle(target, update)

    def _settle(self, node: BracketNode, update: GraphUpdate) -> None:
        if node.resolved:
            return

        if not (node.is_filled(1) and node.is_filled(2)):
            if node.needs_match:
                update.touch(node.key)
            return

        if node.has_bye:
            # A lone real entrant advances; two byes leave the node void
            winner = node.entrant2 if node.bye1 else node.entrant1
            self._resolve(node, winner, None, update)
        else:
            update.touch(node.key)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_list(self) -> list[dict]:
        return [node.to_dict() for node in self._nodes.values()]

    @classmethod
    def from_list(cls, data: list[dict]) -> "NodeGraph":
        return cls([BracketNode.from_dict(item) for item in data])
