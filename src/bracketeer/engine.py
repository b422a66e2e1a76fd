"""
BracketEngine: one transaction per inbound operation.

The service functions take a session and leave committing to the caller.
BracketEngine is the caller for scripts and embedding applications: each
method opens a session, runs one operation, and commits (dispatching
signals) or rolls back everything on error.

Returned ORM objects stay readable after the session closes
(expire_on_commit=False), but lazy relationships are not loaded.

Usage:
    engine = BracketEngine()
    bracket = engine.generate_bracket(category_id, "double_elimination", "ranking")
    engine.start_match(match_id)
    engine.record_score(match_id, "6-4 6-3", is_final=True)
    print(engine.get_bracket_status(bracket.id).to_dict())
"""

from datetime import date, time
from typing import Callable, Optional

from sqlalchemy.orm import Session

from bracketeer.db.models import Bracket, Match
from bracketeer.db.session import get_session
from bracketeer.score import ScoreInput
from bracketeer.services import (
    advancement,
    bracket_generation,
    bracket_status,
    match_lifecycle,
    match_queries,
)
from bracketeer.services.scheduling import ScheduleValidator


class BracketEngine:
    """Transactional facade over the bracket services."""

    def __init__(
        self,
        session_factory: Optional[Callable[..., Session]] = None,
        validator: Optional[ScheduleValidator] = None,
    ) -> None:
        self._session_factory = session_factory
        self._validator = validator

    def _run(self, operation, *args, **kwargs):
        with get_session(self._session_factory, expire_on_commit=False) as session:
            result = operation(session, *args, **kwargs)
            session.flush()
            return result

    def generate_bracket(
        self,
        category_id: int,
        bracket_type: str,
        seeding_method: str,
        seed: Optional[int] = None,
        overrides: Optional[dict] = None,
    ) -> Bracket:
        return self._run(
            bracket_generation.generate_bracket,
            category_id, bracket_type, seeding_method, seed, overrides,
        )

    def schedule_match(
        self,
        match_id: int,
        venue_id: Optional[int],
        scheduled_date: Optional[date],
        scheduled_time: Optional[time],
    ) -> Match:
        return self._run(
            match_lifecycle.schedule_match,
            match_id, venue_id, scheduled_date, scheduled_time, self._validator,
        )

    def start_match(self, match_id: int) -> Match:
        return self._run(match_lifecycle.start_match, match_id)

    def record_score(self, match_id: int, score: ScoreInput, is_final: bool = False) -> Match:
        return self._run(match_lifecycle.record_score, match_id, score, is_final)

    def record_walkover(self, match_id: int, winner_id: int, reason: Optional[str] = None) -> Match:
        return self._run(match_lifecycle.record_walkover, match_id, winner_id, reason)

    def record_retirement(
        self,
        match_id: int,
        retiring_id: int,
        partial_score: ScoreInput = None,
        reason: Optional[str] = None,
    ) -> Match:
        return self._run(
            match_lifecycle.record_retirement, match_id, retiring_id, partial_score, reason,
        )

    def cancel_match(self, match_id: int, reason: str) -> Match:
        return self._run(match_lifecycle.cancel_match, match_id, reason)

    def replay_match(
        self,
        match_id: int,
        reason: str,
        new_date: Optional[date] = None,
        new_time: Optional[time] = None,
    ) -> Match:
        return self._run(
            match_lifecycle.replay_match,
            match_id, reason, new_date, new_time, self._validator,
        )

    def postpone_match(
        self,
        match_id: int,
        new_date: Optional[date],
        new_time: Optional[time],
        reason: str,
    ) -> Match:
        return self._run(
            match_lifecycle.postpone_match,
            match_id, new_date, new_time, reason, self._validator,
        )

    def get_bracket_status(self, bracket_id: int) -> bracket_status.BracketStatus:
        return self._run(bracket_status.get_bracket_status, bracket_id)

    def get_match_schedule(self, tournament_id: int, on_date: Optional[date] = None) -> list[Match]:
        return self._run(match_queries.get_match_schedule, tournament_id, on_date)

    def get_player_matches(self, player_id: int, tournament_id: Optional[int] = None) -> list[Match]:
        return self._run(match_queries.get_player_matches, player_id, tournament_id)

    def resolve_advancement(self, match_id: int) -> Optional[advancement.AdvancementStats]:
        return self._run(advancement.resolve_advancement, match_id)
