"""Bracket progress reporting."""

from dataclasses import asdict, dataclass
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from bracketeer.db.models import Bracket, Match
from bracketeer.exceptions import BracketNotFoundError
from bracketeer.match_statuses import get_status_group


@dataclass
class BracketStatus:
    """Snapshot of a bracket's progress."""

    bracket_id: int
    bracket_type: str
    total_matches: int
    completed_matches: int
    in_progress_matches: int
    upcoming_matches: int
    cancelled_matches: int
    progress_pct: float
    current_round: int
    total_rounds: int
    is_complete: bool
    champion_entrant_id: Optional[int] = None
    runner_up_entrant_id: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


def get_bracket_status(session: Session, bracket_id: int) -> BracketStatus:
    """
    Count a bracket's matches by status.

    completed_matches counts every decided match (completed, walkover,
    retired). progress_pct is decided over total, one decimal place.

    Raises:
        BracketNotFoundError: unknown bracket
    """
    bracket = session.get(Bracket, bracket_id)
    if bracket is None:
        raise BracketNotFoundError(f"Bracket {bracket_id} not found")

    counts = dict(
        session.query(Match.status, func.count(Match.id))
        .filter(Match.bracket_id == bracket_id)
        .group_by(Match.status)
        .all()
    )

    total = sum(counts.values())
    completed = sum(counts.get(s, 0) for s in get_status_group("decided"))

    return BracketStatus(
        bracket_id=bracket.id,
        bracket_type=bracket.bracket_type,
        total_matches=total,
        completed_matches=completed,
        in_progress_matches=counts.get("in_progress", 0),
        upcoming_matches=counts.get("scheduled", 0),
        cancelled_matches=counts.get("cancelled", 0),
        progress_pct=round(completed / total * 100, 1) if total else 0.0,
        current_round=bracket.current_round,
        total_rounds=bracket.total_rounds,
        is_complete=bracket.is_complete,
        champion_entrant_id=bracket.champion_entrant_id,
        runner_up_entrant_id=bracket.runner_up_entrant_id,
    )
