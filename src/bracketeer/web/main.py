"""
Bracketeer JSON API.

Thin FastAPI layer over the services. Each request runs in its own
session; endpoints that change state commit once the operation
succeeds, which also dispatches any queued signals. Engine errors are
mapped to HTTP status codes by their exception family.

Run with:
    uvicorn bracketeer.web.main:app --reload
or, using API_HOST / API_PORT / API_RELOAD from the settings:
    python -m bracketeer.web.main
"""

import logging
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from bracketeer.config import settings
from bracketeer.db.models import Bracket, Match
from bracketeer.db.session import get_db
from bracketeer.exceptions import BracketeerError, BracketNotFoundError
from bracketeer.match_statuses import normalize_status_filter
from bracketeer.services import (
    cancel_match,
    generate_bracket,
    get_bracket_status,
    get_match,
    get_match_schedule,
    get_player_matches,
    postpone_match,
    record_retirement,
    record_score,
    record_walkover,
    replay_match,
    resolve_advancement,
    schedule_match,
    start_match,
)
from bracketeer.web.schemas import (
    BracketDetailOut,
    BracketOut,
    CancelRequest,
    GenerateBracketRequest,
    MatchOut,
    PostponeRequest,
    ReplayRequest,
    RetirementRequest,
    ScheduleRequest,
    ScoreRequest,
    WalkoverRequest,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Bracketeer")


@app.exception_handler(BracketeerError)
async def bracketeer_error_handler(request: Request, exc: BracketeerError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _get_bracket(db: Session, bracket_id: int) -> Bracket:
    bracket = db.get(Bracket, bracket_id)
    if bracket is None:
        raise BracketNotFoundError(f"Bracket {bracket_id} not found")
    return bracket


def _match_response(db: Session, match: Match) -> MatchOut:
    db.commit()
    return MatchOut.model_validate(match)


# =============================================================================
# Brackets
# =============================================================================

@app.post("/api/categories/{category_id}/bracket", status_code=201, response_model=BracketOut)
def api_generate_bracket(
    category_id: int,
    body: GenerateBracketRequest,
    db: Session = Depends(get_db),
):
    """Generate the bracket for a category from its eligible entrants."""
    bracket = generate_bracket(
        db,
        category_id,
        body.bracket_type,
        body.seeding_method,
        seed=body.seed,
        overrides=body.overrides,
    )
    db.commit()
    return BracketOut.model_validate(bracket)


@app.get("/api/brackets/{bracket_id}", response_model=BracketDetailOut)
def api_get_bracket(
    bracket_id: int,
    db: Session = Depends(get_db),
    status: Optional[str] = Query(None, description="Comma-separated match statuses"),
):
    """Bracket with its topology and matches, optionally filtered by status."""
    bracket = _get_bracket(db, bracket_id)
    statuses = normalize_status_filter(status.split(",") if status else None)
    matches = (
        db.query(Match)
        .filter(Match.bracket_id == bracket_id, Match.status.in_(statuses))
        .order_by(Match.match_number)
        .all()
    )
    detail = BracketOut.model_validate(bracket).model_dump()
    return BracketDetailOut(
        **detail,
        bracket_data=bracket.bracket_data,
        matches=[MatchOut.model_validate(m) for m in matches],
    )


@app.get("/api/brackets/{bracket_id}/status")
def api_bracket_status(bracket_id: int, db: Session = Depends(get_db)):
    return get_bracket_status(db, bracket_id).to_dict()


# =============================================================================
# Matches
# =============================================================================

@app.get("/api/matches/{match_id}", response_model=MatchOut)
def api_get_match(match_id: int, db: Session = Depends(get_db)):
    return MatchOut.model_validate(get_match(db, match_id))


@app.post("/api/matches/{match_id}/schedule", response_model=MatchOut)
def api_schedule_match(match_id: int, body: ScheduleRequest, db: Session = Depends(get_db)):
    match = schedule_match(db, match_id, body.venue_id, body.scheduled_date, body.scheduled_time)
    return _match_response(db, match)


@app.post("/api/matches/{match_id}/start", response_model=MatchOut)
def api_start_match(match_id: int, db: Session = Depends(get_db)):
    return _match_response(db, start_match(db, match_id))


@app.post("/api/matches/{match_id}/score", response_model=MatchOut)
def api_record_score(match_id: int, body: ScoreRequest, db: Session = Depends(get_db)):
    match = record_score(db, match_id, body.score, is_final=body.is_final)
    return _match_response(db, match)


@app.post("/api/matches/{match_id}/walkover", response_model=MatchOut)
def api_record_walkover(match_id: int, body: WalkoverRequest, db: Session = Depends(get_db)):
    match = record_walkover(db, match_id, body.winner_id, body.reason)
    return _match_response(db, match)


@app.post("/api/matches/{match_id}/retirement", response_model=MatchOut)
def api_record_retirement(match_id: int, body: RetirementRequest, db: Session = Depends(get_db)):
    match = record_retirement(db, match_id, body.retiring_id, body.partial_score, body.reason)
    return _match_response(db, match)


@app.post("/api/matches/{match_id}/cancel", response_model=MatchOut)
def api_cancel_match(match_id: int, body: CancelRequest, db: Session = Depends(get_db)):
    return _match_response(db, cancel_match(db, match_id, body.reason))


@app.post("/api/matches/{match_id}/replay", status_code=201, response_model=MatchOut)
def api_replay_match(match_id: int, body: ReplayRequest, db: Session = Depends(get_db)):
    """Open a new match for the node a cancelled elimination match left open."""
    match = replay_match(db, match_id, body.reason, body.new_date, body.new_time)
    return _match_response(db, match)


@app.post("/api/matches/{match_id}/postpone", response_model=MatchOut)
def api_postpone_match(match_id: int, body: PostponeRequest, db: Session = Depends(get_db)):
    match = postpone_match(db, match_id, body.new_date, body.new_time, body.reason)
    return _match_response(db, match)


@app.post("/api/matches/{match_id}/resolve-advancement")
def api_resolve_advancement(match_id: int, db: Session = Depends(get_db)):
    """Replay an advancement that was deferred by a topology error."""
    stats = resolve_advancement(db, match_id)
    db.commit()
    if stats is None:
        return {"match_id": match_id, "resolved": False}
    return {"match_id": match_id, "resolved": True, "summary": stats.summary()}


# =============================================================================
# Schedules
# =============================================================================

@app.get("/api/tournaments/{tournament_id}/schedule", response_model=list[MatchOut])
def api_match_schedule(
    tournament_id: int,
    db: Session = Depends(get_db),
    on_date: Optional[date] = Query(None, alias="date", description="Only this day (YYYY-MM-DD)"),
):
    """Order of play across every bracket of a tournament."""
    return [MatchOut.model_validate(m) for m in get_match_schedule(db, tournament_id, on_date)]


@app.get("/api/players/{player_id}/matches", response_model=list[MatchOut])
def api_player_matches(
    player_id: int,
    db: Session = Depends(get_db),
    tournament_id: Optional[int] = Query(None),
):
    """Matches a player takes part in, alone or as part of a pair."""
    return [MatchOut.model_validate(m) for m in get_player_matches(db, player_id, tournament_id)]


def run() -> None:
    """Serve the API using the host, port and reload settings."""
    import uvicorn

    logging.basicConfig(level=settings.log_level, format=settings.log_format, datefmt="%H:%M:%S")
    uvicorn.run(
        "bracketeer.web.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )


if __name__ == "__main__":
    run()
