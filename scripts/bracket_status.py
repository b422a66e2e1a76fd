#!/usr/bin/env python3
"""
Print progress for a bracket, and optionally its open matches.

Usage:
    python scripts/bracket_status.py --bracket-id 3
    python scripts/bracket_status.py --bracket-id 3 --matches open
    python scripts/bracket_status.py --bracket-id 3 --json
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bracketeer.db import Match, get_session
from bracketeer.exceptions import BracketeerError
from bracketeer.match_statuses import MATCH_STATUS_GROUPS, get_status_group
from bracketeer.services import get_bracket_status


def main() -> int:
    parser = argparse.ArgumentParser(description="Show bracket progress")
    parser.add_argument("--bracket-id", type=int, required=True, help="Bracket to report on")
    parser.add_argument(
        "--matches",
        default=None,
        choices=sorted(MATCH_STATUS_GROUPS),
        help="Also list matches in this status group",
    )
    parser.add_argument("--json", action="store_true", help="Print the status as JSON")
    args = parser.parse_args()

    with get_session() as session:
        try:
            status = get_bracket_status(session, args.bracket_id)
        except BracketeerError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

        if args.json:
            print(json.dumps(status.to_dict(), indent=2))
        else:
            print(f"Bracket {status.bracket_id} ({status.bracket_type})")
            print(f"  round {status.current_round} of {status.total_rounds}")
            print(
                f"  {status.completed_matches}/{status.total_matches} matches decided "
                f"({status.progress_pct}%), {status.in_progress_matches} in progress, "
                f"{status.cancelled_matches} cancelled"
            )
            if status.is_complete:
                print(f"  champion: entrant {status.champion_entrant_id}")
                print(f"  runner-up: entrant {status.runner_up_entrant_id}")

        if args.matches:
            matches = session.query(Match).filter(
                Match.bracket_id == args.bracket_id,
                Match.status.in_(get_status_group(args.matches)),
            ).order_by(Match.match_number).all()
            for match in matches:
                print(
                    f"  #{match.match_number:<4} {match.round_label:<20} "
                    f"{match.entrant1_id} v {match.entrant2_id}  [{match.status}] "
                    f"{match.score_display or ''}"
                )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
