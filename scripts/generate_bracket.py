#!/usr/bin/env python3
"""
Generate the bracket for a category.

Usage:
    python scripts/generate_bracket.py --category-id 12 --type single_elimination
    python scripts/generate_bracket.py --category-id 12 --type double_elimination --no-reset
    python scripts/generate_bracket.py --category-id 12 --type round_robin --seeding random --seed 42

Random seeding without --seed draws a fresh seed; it is printed and stored
on the bracket so the draw can be reproduced.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bracketeer.brackets import FORMATS
from bracketeer.config import settings
from bracketeer.engine import BracketEngine
from bracketeer.exceptions import BracketeerError
from bracketeer.seeding import SEEDING_METHODS

logging.basicConfig(
    level=settings.log_level,
    format=settings.log_format,
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a category bracket.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--category-id", type=int, required=True, help="Category to generate for")
    parser.add_argument(
        "--type",
        dest="bracket_type",
        required=True,
        choices=FORMATS.names(),
        help="Bracket format",
    )
    parser.add_argument(
        "--seeding",
        default="ranking",
        choices=SEEDING_METHODS,
        help="Seeding method (default: ranking)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for --seeding random")
    parser.add_argument(
        "--no-reset",
        action="store_true",
        help="Double elimination: no reset match when the losers champion wins the final",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()

    overrides = {"grand_final_reset": False} if args.no_reset else None
    engine = BracketEngine()
    try:
        bracket = engine.generate_bracket(
            args.category_id,
            args.bracket_type,
            args.seeding,
            seed=args.seed,
            overrides=overrides,
        )
    except BracketeerError as exc:
        logger.error("Generation failed: %s", exc)
        return 1

    print(f"Bracket {bracket.id}: {bracket.name}")
    print(f"  rounds: {bracket.total_rounds}")
    if bracket.random_seed is not None:
        print(f"  random seed: {bracket.random_seed}")
    for row in bracket.seeding_data:
        print(f"  seed {row['seed']:>3}: entrant {row['entrant_id']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
