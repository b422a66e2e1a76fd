"""Bracket format registry primitives."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence, Union

from bracketeer.brackets.round_robin import RoundRobinTable
from bracketeer.brackets.topology import EliminationBracket
from bracketeer.exceptions import UnknownBracketTypeError

Topology = Union[EliminationBracket, RoundRobinTable]
TopologyBuilder = Callable[[Sequence[int], dict], Topology]
TopologyLoader = Callable[[dict], Topology]


@dataclass(frozen=True)
class BracketFormat:
    """Registered bracket format and its builder/loader pair."""

    name: str
    build: TopologyBuilder
    load: TopologyLoader
    description: str = ""
    min_entrants: int = 2


class FormatRegistry:
    """In-memory registry for named bracket formats."""

    def __init__(self) -> None:
        self._formats: dict[str, BracketFormat] = {}

    def register(self, bracket_format: BracketFormat) -> None:
        if bracket_format.name in self._formats:
            raise ValueError(f"Bracket format already registered: {bracket_format.name}")
        self._formats[bracket_format.name] = bracket_format

    def get(self, name: str) -> BracketFormat:
        try:
            return self._formats[name]
        except KeyError as exc:
            raise UnknownBracketTypeError(
                f"Unknown bracket type: {name}",
                {"allowed": self.names()},
            ) from exc

    def names(self) -> list[str]:
        return list(self._formats)

    def load(self, data: dict) -> Topology:
        """Rebuild a topology from the JSON stored on a bracket row."""
        return self.get(data["type"]).load(data)
