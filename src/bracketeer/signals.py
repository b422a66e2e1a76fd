"""
Outbound signals.

Services emit signals (match_completed, round_complete, bracket_complete,
...) while they work, but collaborators must only hear about changes that
were actually committed. Signals are therefore queued on the SQLAlchemy
session and dispatched by an ``after_commit`` listener. A rollback of the
session transaction discards the queue.

Delivery is fire-and-forget: a failing handler is logged and never
affects the engine or other handlers.

Usage:
    from bracketeer.signals import signal_bus

    def notify(signal):
        print(signal.name, signal.payload)

    signal_bus.subscribe("bracket_complete", notify)
    signal_bus.subscribe("*", audit_log)  # every signal
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import event
from sqlalchemy.orm import Session

from bracketeer.db.models import utc_now

logger = logging.getLogger(__name__)

SIGNAL_NAMES = (
    "match_scheduled",
    "match_started",
    "match_completed",
    "match_walkover",
    "match_retired",
    "match_cancelled",
    "match_postponed",
    "round_complete",
    "bracket_complete",
    "tournament_complete",
)

WILDCARD = "*"

# session.info key holding signals waiting for commit
_QUEUE_KEY = "bracketeer.pending_signals"


@dataclass(frozen=True)
class Signal:
    name: str
    payload: dict = field(default_factory=dict)
    emitted_at: object = field(default_factory=utc_now)


SignalHandler = Callable[[Signal], None]


class SignalBus:
    """In-process publish/subscribe for committed engine events."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[SignalHandler]] = defaultdict(list)

    def subscribe(self, name: str, handler: SignalHandler) -> None:
        if name != WILDCARD and name not in SIGNAL_NAMES:
            raise ValueError(f"Unknown signal: {name}")
        self._handlers[name].append(handler)

    def unsubscribe(self, name: str, handler: SignalHandler) -> None:
        if handler in self._handlers.get(name, []):
            self._handlers[name].remove(handler)

    def clear(self) -> None:
        self._handlers.clear()

    def publish(self, signal: Signal) -> None:
        for handler in [*self._handlers.get(signal.name, []), *self._handlers.get(WILDCARD, [])]:
            try:
                handler(signal)
            except Exception:
                logger.exception("Signal handler %r failed for %s", handler, signal.name)


signal_bus = SignalBus()


def emit(session: Session, name: str, **payload) -> None:
    """Queue a signal for dispatch when the session commits."""
    if name not in SIGNAL_NAMES:
        raise ValueError(f"Unknown signal: {name}")
    session.info.setdefault(_QUEUE_KEY, []).append(Signal(name=name, payload=payload))


def pending_signals(session: Session) -> list[Signal]:
    """Signals queued on the session and not yet dispatched."""
    return list(session.info.get(_QUEUE_KEY, []))


@event.listens_for(Session, "after_commit")
def _dispatch_after_commit(session: Session) -> None:
    # Releasing a savepoint also fires after_commit; wait for the real commit
    if session.in_nested_transaction():
        return
    signals = session.info.pop(_QUEUE_KEY, [])
    for signal in signals:
        logger.debug("Dispatching signal %s %s", signal.name, signal.payload)
        signal_bus.publish(signal)


@event.listens_for(Session, "after_soft_rollback")
def _discard_after_rollback(session: Session, previous_transaction) -> None:
    # Savepoint rollbacks leave the outer transaction (and its signals) alive
    if previous_transaction.nested:
        return
    dropped = session.info.pop(_QUEUE_KEY, [])
    if dropped:
        logger.info("Discarded %d signals after rollback", len(dropped))
