"""Request and response models for the JSON API."""

from datetime import date, datetime, time
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Requests
# =============================================================================

class GenerateBracketRequest(BaseModel):
    bracket_type: str = Field(description="single_elimination, double_elimination or round_robin")
    seeding_method: str = Field(default="ranking", description="ranking, manual, random or regional")
    seed: Optional[int] = Field(default=None, description="Random seed for random seeding")
    overrides: Optional[dict[str, Any]] = Field(
        default=None,
        description="Bracket settings overrides, e.g. {\"grand_final_reset\": false}",
    )


class ScheduleRequest(BaseModel):
    venue_id: Optional[int] = None
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[time] = None


class ScoreRequest(BaseModel):
    # Either a score string ("6-4 6-3") or a structured payload
    score: Union[str, dict[str, Any]]
    is_final: bool = False


class WalkoverRequest(BaseModel):
    winner_id: int
    reason: Optional[str] = None


class RetirementRequest(BaseModel):
    retiring_id: int
    partial_score: Union[str, dict[str, Any], None] = None
    reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: str


class PostponeRequest(BaseModel):
    new_date: Optional[date] = None
    new_time: Optional[time] = None
    reason: str


class ReplayRequest(BaseModel):
    reason: str
    # The cancelled match's slot is kept when omitted
    new_date: Optional[date] = None
    new_time: Optional[time] = None


# =============================================================================
# Responses
# =============================================================================

class MatchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bracket_id: int
    stage: str
    round_number: int
    position: int
    round_label: str
    match_number: int
    entrant1_id: Optional[int]
    entrant2_id: Optional[int]
    status: str
    score: Optional[dict[str, Any]]
    score_display: Optional[str]
    winner_id: Optional[int]
    loser_id: Optional[int]
    retired_entrant_id: Optional[int]
    venue_id: Optional[int]
    scheduled_date: Optional[date]
    scheduled_time: Optional[time]
    actual_start: Optional[datetime]
    actual_end: Optional[datetime]
    postponement_count: int
    cancellation_reason: Optional[str]
    notes: Optional[str]
    advancement_pending: bool


class BracketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category_id: int
    tournament_id: int
    name: str
    bracket_type: str
    seeding_method: str
    random_seed: Optional[int]
    total_rounds: int
    current_round: int
    is_complete: bool
    champion_entrant_id: Optional[int]
    runner_up_entrant_id: Optional[int]
    settings: dict[str, Any]
    seeding_data: list[dict[str, Any]]
    generated_at: datetime
    completed_at: Optional[datetime]


class BracketDetailOut(BracketOut):
    bracket_data: dict[str, Any]
    matches: list[MatchOut]
