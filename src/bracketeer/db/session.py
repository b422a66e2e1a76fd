"""
Database session management for Bracketeer.

Provides SQLAlchemy engine and session factory with proper
connection pooling configuration. Uses the settings from config.py.

Usage:
    # As a context manager (recommended for scripts)
    from bracketeer.db import get_session

    with get_session() as session:
        bracket = generate_bracket(session, category_id, "single_elimination", "ranking")
        # Commits automatically on exit, rolls back on exception

    # As a dependency injection (for FastAPI)
    from bracketeer.db.session import get_db

    @app.get("/api/brackets/{bracket_id}")
    def read_bracket(bracket_id: int, db: Session = Depends(get_db)):
        ...
"""

from contextlib import contextmanager
from typing import Callable, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from bracketeer.config import settings


def configure_sqlite_transactions(engine: Engine) -> None:
    """
    Let SQLAlchemy own BEGIN on SQLite connections.

    The pysqlite driver delays BEGIN until the first write, which breaks
    SAVEPOINTs (used by find-or-create of next-round matches). Disabling
    the driver's transaction handling and emitting BEGIN ourselves makes
    nested transactions behave as they do on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None

    @event.listens_for(engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    The engine is configured with:
    - Connection pool for efficient reuse (PostgreSQL)
    - Echo mode disabled (set LOG_LEVEL=DEBUG for SQL logging)
    - Pre-ping to verify connections before use (handles stale connections)
    """
    url = database_url or settings.database_url

    if url.startswith("sqlite"):
        engine = create_engine(url, echo=settings.log_level == "DEBUG")
        configure_sqlite_transactions(engine)
        return engine

    return create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,  # Verify connection is alive before using
        echo=settings.log_level == "DEBUG",  # Log SQL only in debug mode
    )


# Created on first use so importing the package never opens a pool
_engine = None


def _get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


# Session factory - bound to the engine the first time a session is needed
SessionLocal = sessionmaker(
    autocommit=False,  # We'll handle commits explicitly
    autoflush=False,  # Don't auto-flush before queries (more control)
)


def _new_session(session_factory: Optional[Callable[..., Session]] = None, **kwargs) -> Session:
    if session_factory is not None:
        return session_factory(**kwargs)
    if SessionLocal.kw.get("bind") is None:
        SessionLocal.configure(bind=_get_engine())
    return SessionLocal(**kwargs)


@contextmanager
def get_session(
    session_factory: Optional[Callable[..., Session]] = None,
    **session_kwargs,
) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.
    This is the unit of work for every engine operation: a result, its
    advancement and any bracket completion commit together or not at all.

    Args:
        session_factory: Alternative sessionmaker (tests bind one to a
                         connection); defaults to SessionLocal
        **session_kwargs: Passed to the factory (e.g. expire_on_commit=False)

    Example:
        with get_session() as session:
            record_score(session, match_id, "6-4 6-3", is_final=True)
            # Commits automatically when exiting the block

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = _new_session(session_factory, **session_kwargs)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency injection function for FastAPI.

    Use this with FastAPI's Depends() for request-scoped sessions.
    Endpoints commit explicitly once the operation succeeds.

    Example:
        @app.get("/api/matches/{match_id}")
        def read_match(match_id: int, db: Session = Depends(get_db)):
            return get_match(db, match_id)
    """
    db = _new_session()
    try:
        yield db
    finally:
        db.close()
