"""
Advancement engine: moves decided results through the bracket.

When a match is decided (completed, walkover or retired) the lifecycle
controller calls apply_match_result() in the same transaction. The engine:

1. Locks the bracket row (SELECT ... FOR UPDATE) so concurrent results in
   the same bracket rewrite its topology one at a time.
2. Loads the topology from bracket_data and records the result. In
   elimination formats the winner (and in double elimination the loser)
   is placed into the next node, cascading through any byes. In round
   robin the standings are updated.
3. Finds or creates the match row of every node that received an
   entrant and still needs to be played, filling every known slot.
4. Emits round_complete for rounds that just finished, and on the
   deciding result marks the bracket complete (champion, runner-up) and
   emits bracket_complete, plus tournament_complete once every category
   of the tournament is finished.

All consistency checks run before anything is written. If the topology
cannot absorb the result (TopologyError), the match keeps its result,
is flagged advancement_pending and an AdvancementIssue row is written;
resolve_advancement() replays it once the data is repaired. Any other
error propagates and the caller's transaction rolls back as a whole.

Match creation is find-or-create backed by the unique index on
(bracket, stage, round, position), which ignores cancelled rows. The
insert runs in a SAVEPOINT; if a concurrent transaction created the row
first, the IntegrityError is absorbed and the existing row is filled
instead. A node whose match was cancelled before both entrants arrived
gets a fresh row once they do.

Usage:
    with get_session() as session:
        match = ...  # just decided
        stats = apply_match_result(session, match)
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bracketeer.brackets import FORMATS, Pairing, Topology, TopologyUpdate
from bracketeer.db.models import AdvancementIssue, Bracket, Category, Match, utc_now
from bracketeer.exceptions import (
    BracketCompleteError,
    BracketNotFoundError,
    MatchNotFoundError,
    MatchNotReadyError,
    TopologyError,
)
from bracketeer.score import Score, coerce_score
from bracketeer.signals import emit

logger = logging.getLogger(__name__)


@dataclass
class AdvancementStats:
    """Statistics from advancing one result."""

    match_id: int
    matches_created: int = 0
    matches_updated: int = 0
    rounds_completed: list[tuple[str, int]] = field(default_factory=list)
    bracket_completed: bool = False
    tournament_completed: bool = False

    def summary(self) -> str:
        parts = [
            f"Match {self.match_id} advanced: {self.matches_created} created",
            f"{self.matches_updated} updated",
        ]
        if self.rounds_completed:
            rounds = ", ".join(f"{stage} {rnd}" for stage, rnd in self.rounds_completed)
            parts.append(f"rounds complete: {rounds}")
        if self.bracket_completed:
            parts.append("bracket complete")
        if self.tournament_completed:
            parts.append("tournament complete")
        return ", ".join(parts)


def lock_bracket(session: Session, bracket_id: int) -> Bracket:
    """Load a bracket row with a row lock, refreshing any cached copy."""
    bracket = (
        session.query(Bracket)
        .filter(Bracket.id == bracket_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if bracket is None:
        raise BracketNotFoundError(f"Bracket {bracket_id} not found")
    return bracket


def load_topology(bracket: Bracket) -> Topology:
    return FORMATS.load(bracket.bracket_data)


def find_node_match(
    session: Session,
    bracket_id: int,
    stage: str,
    round_number: int,
    position: int,
) -> Optional[Match]:
    """The live match of a node. Cancelled rows are history, not the node's match."""
    return session.query(Match).filter(
        Match.bracket_id == bracket_id,
        Match.stage == stage,
        Match.round_number == round_number,
        Match.position == position,
        Match.status != "cancelled",
    ).first()


def apply_match_result(session: Session, match: Match) -> Optional[AdvancementStats]:
    """
    Advance a decided match, flagging it instead of failing on topology errors.

    Returns:
        AdvancementStats, or None when the advancement was deferred
    """
    return _guarded(session, match, lambda: advance_match_result(session, match))


def close_cancelled_match(session: Session, match: Match) -> Optional[AdvancementStats]:
    """
    Record a cancellation in the topology.

    Round robin counts the fixture as closed (it can complete the
    bracket). Elimination formats leave the node open; nothing moves.
    """
    return _guarded(session, match, lambda: _advance_cancellation(session, match))


def advance_match_result(
    session: Session,
    match: Match,
    score: Optional[Score] = None,
) -> AdvancementStats:
    """
    Propagate a decided match through its bracket.

    Args:
        session: Database session (the caller owns the transaction)
        match: Decided match with winner_id and loser_id set
        score: Score used for round robin set counts; defaults to the
               score stored on the match

    Raises:
        MatchNotReadyError: the match has no winner
        BracketCompleteError: the bracket is already complete
        TopologyError: the topology cannot absorb the result
    """
    if not match.is_decided or match.winner_id is None:
        raise MatchNotReadyError(f"Match {match.id} has no result to advance")

    bracket = lock_bracket(session, match.bracket_id)
    if bracket.is_complete:
        raise BracketCompleteError(f"Bracket {bracket.id} is already complete")

    topology = load_topology(bracket)

    score = score or coerce_score(match.score)
    sets_1, sets_2 = score.sets_won()
    if match.winner_id == match.entrant1_id:
        winner_sets, loser_sets = sets_1, sets_2
    else:
        winner_sets, loser_sets = sets_2, sets_1

    update = topology.record_result(
        match.stage,
        match.round_number,
        match.position,
        match.winner_id,
        match.loser_id,
        winner_sets,
        loser_sets,
    )

    stats = AdvancementStats(match_id=match.id)
    _write_update(session, bracket, topology, update, stats)
    logger.info(stats.summary())
    return stats


def resolve_advancement(session: Session, match_id: int) -> Optional[AdvancementStats]:
    """
    Replay a deferred advancement and close its issues.

    Returns:
        AdvancementStats, or None when nothing was pending

    Raises:
        TopologyError: the topology still cannot absorb the result
    """
    match = session.get(Match, match_id)
    if match is None:
        raise MatchNotFoundError(f"Match {match_id} not found")
    if not match.advancement_pending:
        logger.info("Match %s has no pending advancement", match_id)
        return None

    if match.status == "cancelled":
        stats = _advance_cancellation(session, match)
    else:
        stats = advance_match_result(session, match)

    match.advancement_pending = False
    open_issues = session.query(AdvancementIssue).filter(
        AdvancementIssue.match_id == match.id,
        AdvancementIssue.resolved.is_(False),
    ).all()
    for issue in open_issues:
        issue.resolved = True
        issue.resolved_at = utc_now()

    logger.info("Resolved %d advancement issues for match %s", len(open_issues), match_id)
    return stats


# =============================================================================
# Internals
# =============================================================================

def _guarded(session: Session, match: Match, advance) -> Optional[AdvancementStats]:
    # The match result must survive a failed advancement, so it is flushed
    # into the outer transaction before the savepoint opens
    session.flush()
    try:
        with session.begin_nested():
            return advance()
    except TopologyError as exc:
        _record_issue(session, match, exc)
        return None


def _advance_cancellation(session: Session, match: Match) -> AdvancementStats:
    bracket = lock_bracket(session, match.bracket_id)
    stats = AdvancementStats(match_id=match.id)
    if bracket.is_complete:
        return stats

    topology = load_topology(bracket)
    update = topology.record_cancellation(match.stage, match.round_number, match.position)
    _write_update(session, bracket, topology, update, stats)
    return stats


def _write_update(
    session: Session,
    bracket: Bracket,
    topology: Topology,
    update: TopologyUpdate,
    stats: AdvancementStats,
) -> None:
    # Validate every target row before the first write
    plans = [(pairing, _check_target(session, bracket, pairing)) for pairing in update.fills]

    bracket.bracket_data = topology.to_dict()
    bracket.current_round = topology.current_round()

    for pairing, existing in plans:
        _upsert_node_match(session, bracket, pairing, existing, stats)

    for stage, round_number in update.completed_rounds:
        stats.rounds_completed.append((stage, round_number))
        emit(
            session,
            "round_complete",
            bracket_id=bracket.id,
            stage=stage,
            round_number=round_number,
        )

    if update.bracket_completed:
        _complete_bracket(session, bracket, update, stats)


def _check_target(session: Session, bracket: Bracket, pairing: Pairing) -> Optional[Match]:
    existing = find_node_match(session, bracket.id, pairing.stage, pairing.round, pairing.position)
    if existing is None:
        return None

    if existing.is_decided:
        raise TopologyError(
            f"Match {existing.id} for node {pairing.key} is already decided",
            {"match_id": existing.id, "node": pairing.key},
        )
    for slot in (1, 2):
        incoming = getattr(pairing, f"entrant{slot}")
        current = existing.entrant_in(slot)
        if incoming is not None and current is not None and incoming != current:
            raise TopologyError(
                f"Match {existing.id} slot {slot} holds entrant {current}, "
                f"node {pairing.key} expects {incoming}",
                {"match_id": existing.id, "node": pairing.key, "slot": slot},
            )
    return existing


def _fill_slots(match: Match, pairing: Pairing) -> bool:
    changed = False
    if pairing.entrant1 is not None and match.entrant1_id is None:
        match.entrant1_id = pairing.entrant1
        changed = True
    if pairing.entrant2 is not None and match.entrant2_id is None:
        match.entrant2_id = pairing.entrant2
        changed = True
    return changed


def _upsert_node_match(
    session: Session,
    bracket: Bracket,
    pairing: Pairing,
    existing: Optional[Match],
    stats: AdvancementStats,
) -> Match:
    if existing is not None:
        if _fill_slots(existing, pairing):
            stats.matches_updated += 1
            logger.info("Filled match %s (%s)", existing.id, pairing.key)
        return existing

    session.flush()
    match = Match(
        bracket_id=bracket.id,
        stage=pairing.stage,
        round_number=pairing.round,
        position=pairing.position,
        round_label=pairing.label,
        match_number=pairing.number,
        entrant1_id=pairing.entrant1,
        entrant2_id=pairing.entrant2,
        status="scheduled",
    )
    try:
        with session.begin_nested():
            session.add(match)
            session.flush()
    except IntegrityError:
        # A concurrent advancement created this node's match first
        existing = find_node_match(
            session, bracket.id, pairing.stage, pairing.round, pairing.position
        )
        if existing is None:
            raise
        logger.info("Match for %s created concurrently; filling it instead", pairing.key)
        _check_target(session, bracket, pairing)
        if _fill_slots(existing, pairing):
            stats.matches_updated += 1
        return existing

    stats.matches_created += 1
    logger.info(
        "Created match %s for %s (%s vs %s)",
        match.id, pairing.key, pairing.entrant1, pairing.entrant2,
    )
    return match


def _complete_bracket(
    session: Session,
    bracket: Bracket,
    update: TopologyUpdate,
    stats: AdvancementStats,
) -> None:
    bracket.is_complete = True
    bracket.champion_entrant_id = update.champion
    bracket.runner_up_entrant_id = update.runner_up
    bracket.completed_at = utc_now()
    bracket.current_round = bracket.total_rounds
    stats.bracket_completed = True

    logger.info(
        "Bracket %s complete: champion %s, runner-up %s",
        bracket.id, update.champion, update.runner_up,
    )
    emit(
        session,
        "bracket_complete",
        bracket_id=bracket.id,
        category_id=bracket.category_id,
        tournament_id=bracket.tournament_id,
        champion_entrant_id=update.champion,
        runner_up_entrant_id=update.runner_up,
    )

    session.flush()
    if _is_tournament_complete(session, bracket.tournament_id):
        stats.tournament_completed = True
        logger.info("Tournament %s complete", bracket.tournament_id)
        emit(session, "tournament_complete", tournament_id=bracket.tournament_id)


def _is_tournament_complete(session: Session, tournament_id: int) -> bool:
    """Every category of the tournament has a completed bracket."""
    categories = session.query(Category).filter(Category.tournament_id == tournament_id).count()
    completed = session.query(Bracket).filter(
        Bracket.tournament_id == tournament_id,
        Bracket.is_complete.is_(True),
    ).count()
    return categories > 0 and completed >= categories


def _record_issue(session: Session, match: Match, exc: TopologyError) -> None:
    logger.error(
        "Advancement of match %s in bracket %s failed: %s",
        match.id, match.bracket_id, exc,
    )
    match.advancement_pending = True
    session.add(AdvancementIssue(
        bracket_id=match.bracket_id,
        match_id=match.id,
        error_type=type(exc).__name__,
        error_message=str(exc),
        details={
            "node": f"{match.stage}:{match.round_number}:{match.position}",
            **exc.details,
        },
    ))
