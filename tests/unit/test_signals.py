"""
Unit tests for the signal bus and commit-time dispatch.
"""

import logging

import pytest
from sqlalchemy import text

from bracketeer.signals import Signal, SignalBus, emit, pending_signals


class TestSignalBus:
    """Tests for SignalBus subscribe/publish."""

    def test_named_and_wildcard_handlers(self):
        bus = SignalBus()
        named, everything = [], []
        bus.subscribe("bracket_complete", named.append)
        bus.subscribe("*", everything.append)

        bus.publish(Signal("bracket_complete", {"bracket_id": 1}))
        bus.publish(Signal("match_started", {"match_id": 2}))

        assert [s.name for s in named] == ["bracket_complete"]
        assert [s.name for s in everything] == ["bracket_complete", "match_started"]

    def test_unknown_signal_rejected(self):
        with pytest.raises(ValueError):
            SignalBus().subscribe("match_exploded", print)

    def test_failing_handler_is_isolated(self, caplog):
        """A broken subscriber never stops delivery to the others."""
        bus = SignalBus()
        received = []

        def broken(signal):
            raise RuntimeError("subscriber down")

        bus.subscribe("match_started", broken)
        bus.subscribe("match_started", received.append)

        with caplog.at_level(logging.ERROR, logger="bracketeer.signals"):
            bus.publish(Signal("match_started"))

        assert len(received) == 1
        assert "subscriber down" in caplog.text

    def test_unsubscribe(self):
        bus = SignalBus()
        received = []
        bus.subscribe("match_started", received.append)
        bus.unsubscribe("match_started", received.append)
        bus.publish(Signal("match_started"))
        assert received == []


class TestCommitDispatch:
    """Signals reach subscribers only when the session commits."""

    def test_dispatched_on_commit(self, db_session, received_signals):
        emit(db_session, "match_started", match_id=1)
        assert received_signals == []
        assert [s.name for s in pending_signals(db_session)] == ["match_started"]

        db_session.commit()

        assert [s.name for s in received_signals] == ["match_started"]
        assert received_signals[0].payload == {"match_id": 1}
        assert pending_signals(db_session) == []

    def test_discarded_on_rollback(self, db_session, received_signals):
        db_session.execute(text("SELECT 1"))
        emit(db_session, "match_started", match_id=1)
        db_session.rollback()
        db_session.commit()

        assert received_signals == []

    def test_savepoint_release_does_not_dispatch(self, db_session, received_signals):
        with db_session.begin_nested():
            emit(db_session, "match_started", match_id=1)
        assert received_signals == []

        db_session.commit()
        assert len(received_signals) == 1

    def test_savepoint_rollback_keeps_outer_signals(self, db_session, received_signals):
        emit(db_session, "match_started", match_id=1)
        try:
            with db_session.begin_nested():
                raise RuntimeError("inner failure")
        except RuntimeError:
            pass
        db_session.commit()

        assert [s.name for s in received_signals] == ["match_started"]

    def test_emit_rejects_unknown_signal(self, db_session):
        with pytest.raises(ValueError):
            emit(db_session, "bracket_exploded")
