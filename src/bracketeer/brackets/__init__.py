"""
Bracket topologies.

FORMATS maps a bracket type name to its builder and loader:

    from bracketeer.brackets import FORMATS

    topology = FORMATS.get("single_elimination").build(entrant_ids, settings)
    bracket.bracket_data = topology.to_dict()
    ...
    topology = FORMATS.load(bracket.bracket_data)
"""

from bracketeer.brackets import double_elimination, round_robin, single_elimination
from bracketeer.brackets.graph import BracketNode, NodeGraph, node_key
from bracketeer.brackets.registry import BracketFormat, FormatRegistry, Topology
from bracketeer.brackets.topology import EliminationBracket, Pairing, TopologyUpdate

FORMATS = FormatRegistry()
FORMATS.register(BracketFormat(
    name=single_elimination.BRACKET_TYPE,
    build=single_elimination.build,
    load=single_elimination.load,
    description="Knockout; one loss eliminates",
))
FORMATS.register(BracketFormat(
    name=double_elimination.BRACKET_TYPE,
    build=double_elimination.build,
    load=double_elimination.load,
    description="Knockout with a losers bracket; two losses eliminate",
))
FORMATS.register(BracketFormat(
    name=round_robin.BRACKET_TYPE,
    build=round_robin.build,
    load=round_robin.load,
    description="Everyone plays everyone once; standings decide",
))

__all__ = [
    "FORMATS",
    "BracketFormat",
    "BracketNode",
    "EliminationBracket",
    "FormatRegistry",
    "NodeGraph",
    "Pairing",
    "Topology",
    "TopologyUpdate",
    "node_key",
]
