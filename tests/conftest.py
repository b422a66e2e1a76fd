"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bracketeer.db.models import Base, Category, Entrant
from bracketeer.db.session import configure_sqlite_transactions
from bracketeer.services import record_score, start_match
from bracketeer.signals import signal_bus


@pytest.fixture(scope="session")
def test_engine():
    """
    Create a test database engine.

    Uses SQLite in-memory for fast tests that don't need
    PostgreSQL-specific features. StaticPool keeps the single in-memory
    database alive across threads (the API tests run requests in a
    worker thread).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite_transactions(engine)
    return engine


@pytest.fixture(scope="session")
def tables(test_engine):
    """
    Create all tables for testing.

    This fixture runs once per test session.
    """
    Base.metadata.create_all(test_engine)
    yield
    Base.metadata.drop_all(test_engine)


@pytest.fixture
def connection(test_engine, tables):
    """A connection whose outer transaction is rolled back after the test."""
    connection = test_engine.connect()
    transaction = connection.begin()
    yield connection
    transaction.rollback()
    connection.close()


@pytest.fixture
def session_factory(connection):
    """
    Sessionmaker bound to the test connection.

    Sessions commit into a SAVEPOINT, so code under test can commit
    (and fire after_commit listeners) while the test still rolls back.
    """
    return sessionmaker(bind=connection, join_transaction_mode="create_savepoint")


@pytest.fixture
def db_session(session_factory):
    """
    Create a database session for a test.

    Each test gets its own session with automatic rollback,
    ensuring tests don't affect each other.
    """
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_category(db_session):
    """
    Factory for a category with registered entrants.

    Entrants get strictly decreasing strength, so ranking seeds them in
    creation order (the first entrant is seed 1).
    """

    def _make(count, tournament_id=1, name="Open Singles", best_of=3):
        category = Category(tournament_id=tournament_id, name=name, best_of=best_of)
        db_session.add(category)
        db_session.flush()
        for i in range(count):
            db_session.add(Entrant(
                category_id=category.id,
                player_id=1000 + i,
                display_name=f"Player {i + 1}",
                strength=float(2000 - 10 * i),
            ))
        db_session.flush()
        return category

    return _make


@pytest.fixture
def play_match(db_session):
    """Start a match and finish it in straight sets for the given winner."""

    def _play(match, winner_id=None):
        start_match(db_session, match.id)
        if winner_id is None or winner_id == match.entrant1_id:
            score = "6-4 6-3"
        else:
            score = "4-6 3-6"
        return record_score(db_session, match.id, score, is_final=True)

    return _play


@pytest.fixture
def received_signals():
    """Collect every signal dispatched during the test."""
    received = []
    signal_bus.subscribe("*", received.append)
    yield received
    signal_bus.unsubscribe("*", received.append)
