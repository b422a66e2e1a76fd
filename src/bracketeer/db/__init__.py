"""
Database module for Bracketeer.

Provides SQLAlchemy ORM models and session management.

Usage:
    from bracketeer.db import get_session, Bracket, Match

    with get_session() as session:
        bracket = session.get(Bracket, bracket_id)
"""

from bracketeer.db.models import (
    AdvancementIssue,
    Base,
    Bracket,
    Category,
    Entrant,
    Match,
    utc_now,
)
from bracketeer.db.session import SessionLocal, get_db, get_engine, get_session

__all__ = [
    # Base
    "Base",
    # Models
    "Category",
    "Entrant",
    "Bracket",
    "Match",
    "AdvancementIssue",
    "utc_now",
    # Session
    "get_session",
    "get_engine",
    "get_db",
    "SessionLocal",
]
