"""
Match lifecycle controller.

Owns a match's status and score. Allowed transitions:

    scheduled   → in_progress                  (start)
    scheduled   → scheduled                    (schedule: venue/date/time)
    in_progress → completed | walkover | retired
    scheduled   → walkover
    scheduled | in_progress → cancelled        (reason required)
    scheduled | in_progress → scheduled        (postpone: new date/time)

completed, walkover, retired and cancelled are terminal. In round robin a
cancelled fixture counts toward completion. In an elimination bracket the
node behind a cancelled match stays open; replay_match() opens a new
match row for it and the cancelled row is kept as history.

Every transition that produces a winner hands the match to the
advancement engine in the same transaction, so the result, its
propagation and any bracket completion commit together. None of these
functions commit; the caller's unit of work does.

Usage:
    with get_session() as session:
        start_match(session, match_id)
    with get_session() as session:
        record_score(session, match_id, "6-4 6-3", is_final=True)
"""

import logging
from datetime import date, time
from typing import Optional

from sqlalchemy.orm import Session

from bracketeer.db.models import Bracket, Match, utc_now
from bracketeer.exceptions import (
    BracketCompleteError,
    InvalidEntrantError,
    InvalidScoreError,
    InvalidTransitionError,
    MatchNotFoundError,
    MatchNotReadyError,
    MissingReasonError,
    ReplayExistsError,
)
from bracketeer.score import Score, ScoreInput, coerce_score, parse_score
from bracketeer.services.advancement import (
    apply_match_result,
    close_cancelled_match,
    find_node_match,
    load_topology,
    lock_bracket,
)
from bracketeer.services.scheduling import ScheduleValidator, default_validator
from bracketeer.signals import emit

logger = logging.getLogger(__name__)

# Statuses each action may start from
ALLOWED_FROM: dict[str, tuple[str, ...]] = {
    "schedule": ("scheduled",),
    "start": ("scheduled",),
    "record_score": ("in_progress",),
    "walkover": ("scheduled", "in_progress"),
    "retirement": ("in_progress",),
    "cancel": ("scheduled", "in_progress"),
    "postpone": ("scheduled", "in_progress"),
    "replay": ("cancelled",),
}

# Terminal status and signal for each way a match can be decided
DECIDED_BY = {
    "completed": "match_completed",
    "walkover": "match_walkover",
    "retired": "match_retired",
}


def get_match(session: Session, match_id: int) -> Match:
    match = session.get(Match, match_id)
    if match is None:
        raise MatchNotFoundError(f"Match {match_id} not found")
    return match


def _require_status(match: Match, action: str) -> None:
    allowed = ALLOWED_FROM[action]
    if match.status not in allowed:
        raise InvalidTransitionError(action, match.status, allowed)


def _require_reason(reason: Optional[str], action: str) -> str:
    if reason is None or not reason.strip():
        raise MissingReasonError(f"A reason is required to {action} a match")
    return reason.strip()


def _require_entrants(match: Match) -> None:
    if not match.has_both_entrants:
        raise MatchNotReadyError(
            f"Match {match.id} is still waiting for an entrant",
            {"entrant1_id": match.entrant1_id, "entrant2_id": match.entrant2_id},
        )


def _open_bracket(session: Session, match: Match) -> Bracket:
    bracket = session.get(Bracket, match.bracket_id)
    if bracket.is_complete:
        raise BracketCompleteError(f"Bracket {bracket.id} is already complete")
    return bracket


def _append_note(match: Match, note: str) -> None:
    match.notes = f"{match.notes}\n{note}" if match.notes else note


def schedule_match(
    session: Session,
    match_id: int,
    venue_id: Optional[int],
    scheduled_date: Optional[date],
    scheduled_time: Optional[time],
    validator: Optional[ScheduleValidator] = None,
) -> Match:
    """
    Assign a venue and time slot to a scheduled match.

    Raises:
        InvalidTransitionError: the match is not 'scheduled'
        SchedulingConflictError: the validator rejected the slot
    """
    match = get_match(session, match_id)
    _require_status(match, "schedule")
    (validator or default_validator).check(session, match, venue_id, scheduled_date, scheduled_time)

    match.venue_id = venue_id
    match.scheduled_date = scheduled_date
    match.scheduled_time = scheduled_time

    emit(
        session,
        "match_scheduled",
        match_id=match.id,
        bracket_id=match.bracket_id,
        venue_id=venue_id,
        scheduled_date=scheduled_date.isoformat() if scheduled_date else None,
        scheduled_time=scheduled_time.isoformat() if scheduled_time else None,
    )
    logger.info("Scheduled match %s at venue %s on %s %s", match.id, venue_id, scheduled_date, scheduled_time)
    return match


def start_match(session: Session, match_id: int) -> Match:
    """
    Move a scheduled match with both entrants to in_progress.

    Raises:
        InvalidTransitionError: the match is not 'scheduled'
        MatchNotReadyError: an entrant is still unknown
        BracketCompleteError: the bracket has already finished
    """
    match = get_match(session, match_id)
    _require_status(match, "start")
    _require_entrants(match)
    _open_bracket(session, match)

    match.status = "in_progress"
    match.actual_start = utc_now()

    emit(session, "match_started", match_id=match.id, bracket_id=match.bracket_id)
    logger.info("Started match %s", match.id)
    return match


def record_score(
    session: Session,
    match_id: int,
    score: ScoreInput,
    is_final: bool = False,
) -> Match:
    """
    Record a running or final score for an in-progress match.

    A partial score (is_final=False) is stored without changing status.
    A final score must determine a winner: walkover/retired scores use
    their explicit winner, anything else needs a strict set majority under
    the bracket's best-of setting. On success the match becomes completed,
    walkover or retired and the winner is advanced.

    Raises:
        InvalidTransitionError: the match is not 'in_progress'
        InvalidScoreError: the score is malformed or has no winner
        BracketCompleteError: the bracket has already finished
    """
    match = get_match(session, match_id)
    _require_status(match, "record_score")
    parsed = coerce_score(score)

    if not is_final:
        parsed.validate()
        if parsed.is_flagged:
            raise InvalidScoreError("Walkover and retirement scores must be recorded as final")
        match.score = parsed.to_payload()
        match.score_display = parsed.to_display_string()
        logger.debug("Match %s score update: %s", match.id, match.score_display)
        return match

    bracket = _open_bracket(session, match)
    winner_slot = parsed.decide(bracket.best_of)

    if parsed.walkover:
        status = "walkover"
    elif parsed.retired:
        status = "retired"
        match.retired_entrant_id = match.entrant_in(3 - winner_slot)
    else:
        status = "completed"

    return _decide(session, match, parsed, winner_slot, status)


def record_walkover(
    session: Session,
    match_id: int,
    winner_id: int,
    reason: Optional[str] = None,
) -> Match:
    """
    Decide a match because the opponent failed to appear.

    Raises:
        InvalidTransitionError: the match is already finished
        MatchNotReadyError: an entrant is still unknown
        InvalidEntrantError: winner_id is not in this match
    """
    match = get_match(session, match_id)
    _require_status(match, "walkover")
    _require_entrants(match)
    _open_bracket(session, match)

    winner_slot = match.slot_of(winner_id)
    if winner_slot is None:
        raise InvalidEntrantError(
            f"Entrant {winner_id} is not playing match {match.id}",
            {"entrant_id": winner_id},
        )

    if reason:
        _append_note(match, f"Walkover: {reason.strip()}")
    score = Score(walkover=True, winner_slot=winner_slot)
    return _decide(session, match, score, winner_slot, "walkover")


def record_retirement(
    session: Session,
    match_id: int,
    retiring_id: int,
    partial_score: ScoreInput = None,
    reason: Optional[str] = None,
) -> Match:
    """
    Decide an in-progress match because an entrant withdrew.

    The partial score is kept for the record; the other entrant wins.

    Raises:
        InvalidTransitionError: the match is not 'in_progress'
        InvalidEntrantError: retiring_id is not in this match
        InvalidScoreError: the partial score is malformed
    """
    match = get_match(session, match_id)
    _require_status(match, "retirement")
    _open_bracket(session, match)

    retiring_slot = match.slot_of(retiring_id)
    if retiring_slot is None:
        raise InvalidEntrantError(
            f"Entrant {retiring_id} is not playing match {match.id}",
            {"entrant_id": retiring_id},
        )
    winner_slot = 3 - retiring_slot

    # A display string may carry the RET marker; the winner is already known
    if isinstance(partial_score, str):
        partial = parse_score(partial_score, winner_slot=winner_slot)
    else:
        partial = coerce_score(partial_score)
    if partial.walkover:
        raise InvalidScoreError("A retirement score cannot be a walkover")
    score = Score(sets=list(partial.sets), retired=True, winner_slot=winner_slot)
    score.validate()

    match.retired_entrant_id = retiring_id
    if reason:
        _append_note(match, f"Retired: {reason.strip()}")
    return _decide(session, match, score, winner_slot, "retired")


def cancel_match(session: Session, match_id: int, reason: str) -> Match:
    """
    Cancel a match that has not finished.

    In round robin the cancelled fixture counts toward completion. In
    elimination formats the node stays open.

    Raises:
        MissingReasonError: reason is blank
        InvalidTransitionError: the match is already finished
    """
    reason = _require_reason(reason, "cancel")
    match = get_match(session, match_id)
    _require_status(match, "cancel")

    match.status = "cancelled"
    match.cancellation_reason = reason
    _append_note(match, f"Cancelled: {reason}")

    emit(session, "match_cancelled", match_id=match.id, bracket_id=match.bracket_id, reason=reason)
    logger.info("Cancelled match %s: %s", match.id, reason)

    close_cancelled_match(session, match)
    return match


def replay_match(
    session: Session,
    match_id: int,
    reason: str,
    new_date: Optional[date] = None,
    new_time: Optional[time] = None,
    validator: Optional[ScheduleValidator] = None,
) -> Match:
    """
    Open a new match for the node a cancelled elimination match left open.

    The cancelled row is kept as it is. The replay takes the node's
    entrants from the topology and keeps the venue; a new date or time
    replaces the old one and the slot is checked against the venue again.

    Returns:
        The new match, in status 'scheduled'

    Raises:
        MissingReasonError: reason is blank
        InvalidTransitionError: the match is not cancelled, or is a round
            robin fixture
        BracketCompleteError: the bracket has already finished
        ReplayExistsError: the node already has a live match
        SchedulingConflictError: the venue is taken at the new slot
    """
    reason = _require_reason(reason, "replay")
    cancelled = get_match(session, match_id)
    _require_status(cancelled, "replay")

    bracket = lock_bracket(session, cancelled.bracket_id)
    _open_bracket(session, cancelled)
    if bracket.bracket_type == "round_robin":
        # The fixture counted toward completion when it was cancelled
        raise InvalidTransitionError("replay", cancelled.status, ALLOWED_FROM["replay"])

    live = find_node_match(
        session, bracket.id, cancelled.stage, cancelled.round_number, cancelled.position
    )
    if live is not None:
        raise ReplayExistsError(
            f"Node of match {cancelled.id} is already played by match {live.id}",
            {"match_id": cancelled.id, "live_match_id": live.id},
        )

    topology = load_topology(bracket)
    pairing = topology.pairing(
        topology.node(cancelled.stage, cancelled.round_number, cancelled.position)
    )
    replay = Match(
        bracket_id=bracket.id,
        stage=cancelled.stage,
        round_number=cancelled.round_number,
        position=cancelled.position,
        round_label=cancelled.round_label,
        match_number=cancelled.match_number,
        entrant1_id=pairing.entrant1,
        entrant2_id=pairing.entrant2,
        venue_id=cancelled.venue_id,
        scheduled_date=new_date if new_date is not None else cancelled.scheduled_date,
        scheduled_time=new_time if new_time is not None else cancelled.scheduled_time,
        status="scheduled",
        notes=f"Replay of match {cancelled.id}: {reason}",
    )
    (validator or default_validator).check(
        session, replay, replay.venue_id, replay.scheduled_date, replay.scheduled_time
    )
    session.add(replay)
    session.flush()

    emit(
        session,
        "match_replayed",
        match_id=replay.id,
        replaces_match_id=cancelled.id,
        bracket_id=bracket.id,
        reason=reason,
    )
    logger.info("Match %s replays cancelled match %s: %s", replay.id, cancelled.id, reason)
    return replay


def postpone_match(
    session: Session,
    match_id: int,
    new_date: Optional[date],
    new_time: Optional[time],
    reason: str,
    validator: Optional[ScheduleValidator] = None,
) -> Match:
    """
    Move a match to a new date and time.

    The match returns to 'scheduled' (an in-progress match restarts), its
    start time is cleared and the postponement counter increments.

    Raises:
        MissingReasonError: reason is blank
        InvalidTransitionError: the match is already finished
        SchedulingConflictError: the venue is taken at the new slot
    """
    reason = _require_reason(reason, "postpone")
    match = get_match(session, match_id)
    _require_status(match, "postpone")
    (validator or default_validator).check(session, match, match.venue_id, new_date, new_time)

    previous = f"{match.scheduled_date} {match.scheduled_time}"
    match.status = "scheduled"
    match.scheduled_date = new_date
    match.scheduled_time = new_time
    match.actual_start = None
    match.postponement_count = (match.postponement_count or 0) + 1
    _append_note(match, f"Postponed from {previous}: {reason}")

    emit(
        session,
        "match_postponed",
        match_id=match.id,
        bracket_id=match.bracket_id,
        new_date=new_date.isoformat() if new_date else None,
        new_time=new_time.isoformat() if new_time else None,
        reason=reason,
    )
    logger.info("Postponed match %s to %s %s: %s", match.id, new_date, new_time, reason)
    return match


def _decide(
    session: Session,
    match: Match,
    score: Score,
    winner_slot: int,
    status: str,
) -> Match:
    match.status = status
    match.score = score.to_payload()
    match.score_display = score.to_display_string()
    match.winner_id = match.entrant_in(winner_slot)
    match.loser_id = match.entrant_in(3 - winner_slot)
    match.actual_end = utc_now()

    emit(
        session,
        DECIDED_BY[status],
        match_id=match.id,
        bracket_id=match.bracket_id,
        winner_entrant_id=match.winner_id,
        loser_entrant_id=match.loser_id,
        score=match.score_display,
    )
    logger.info(
        "Match %s %s: winner %s (%s)",
        match.id, status, match.winner_id, match.score_display,
    )

    apply_match_result(session, match)
    return match
