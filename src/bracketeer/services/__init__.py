"""
Bracketeer services: the engine's inbound operations.

Build time:
1. Bracket generation: seeding, topology, initial match rows

Runtime:
2. Match lifecycle: schedule, start, score, walkover, retirement,
   cancellation, replay, postponement
3. Advancement: winner propagation, next-round match creation,
   round/bracket/tournament completion
4. Bracket status: progress counts
5. Match queries: order of play, a player's matches

Every function takes a SQLAlchemy session first and never commits;
wrap calls in get_session() (or use bracketeer.engine.BracketEngine).

Usage:
    from bracketeer.services import generate_bracket, record_score

    with get_session() as session:
        bracket = generate_bracket(session, category_id, "single_elimination", "ranking")
"""

from bracketeer.services.advancement import (
    AdvancementStats,
    advance_match_result,
    apply_match_result,
    resolve_advancement,
)
from bracketeer.services.bracket_generation import BracketGenerationStats, generate_bracket
from bracketeer.services.bracket_status import BracketStatus, get_bracket_status
from bracketeer.services.match_lifecycle import (
    cancel_match,
    get_match,
    postpone_match,
    record_retirement,
    record_score,
    record_walkover,
    replay_match,
    schedule_match,
    start_match,
)
from bracketeer.services.match_queries import get_match_schedule, get_player_matches
from bracketeer.services.scheduling import ScheduleValidator, VenueAvailabilityValidator

__all__ = [
    "AdvancementStats",
    "BracketGenerationStats",
    "BracketStatus",
    "ScheduleValidator",
    "VenueAvailabilityValidator",
    "advance_match_result",
    "apply_match_result",
    "cancel_match",
    "generate_bracket",
    "get_bracket_status",
    "get_match",
    "get_match_schedule",
    "get_player_matches",
    "postpone_match",
    "record_retirement",
    "record_score",
    "record_walkover",
    "replay_match",
    "resolve_advancement",
    "schedule_match",
    "start_match",
]
