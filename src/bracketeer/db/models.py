"""
SQLAlchemy ORM models for Bracketeer.

This module defines all database tables and their relationships.
Tournaments themselves (dates, venues, registration, payments) are owned
by external services; Bracketeer stores only what the bracket engine
needs and refers to the rest by id.

Key design decisions:
- One bracket per category (unique constraint), generated once
- The bracket row's bracket_data JSON is the canonical topology
  (node graph or round robin fixtures and standings)
- Match rows are the canonical per-contest record, addressed by
  (bracket, stage, round, position) so concurrent advancement can never
  create two rows for the same node
- Byes never get a match row
- Entrants are frozen once a bracket has been generated

Tables:
- categories: Competition units within an external tournament
- entrants: Players or fixed pairs registered in a category
- brackets: Generated competition structure for one category
- matches: Schedulable contests (scheduled -> in_progress -> terminal)
- advancement_issues: Results whose propagation failed a topology check
"""

from datetime import date, datetime, time, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from bracketeer.exceptions import EntrantLockedError, UnknownPlayFormatError
from bracketeer.match_statuses import get_status_group


# =============================================================================
# Constants
# =============================================================================

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

PLAY_FORMATS = ("singles", "doubles", "mixed_doubles")

# Entrant attributes that feed seeding and identity; frozen after generation
LOCKED_ENTRANT_FIELDS = (
    "player_id",
    "partner_id",
    "display_name",
    "strength",
    "seed_number",
    "region",
    "is_eligible",
)


def utc_now() -> datetime:
    """Naive UTC timestamp for DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Category and Entrant Models
# =============================================================================

class Category(Base):
    """
    A competition unit within a tournament (e.g. "Men's Singles Open").

    The tournament itself lives in an external service; tournament_id is
    only used to group categories when deciding whether a whole
    tournament has finished.
    """

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    tournament_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    play_format: Mapped[str] = mapped_column(String(20), default="singles")  # see PLAY_FORMATS

    # Sets per match; copied into the bracket settings at generation
    best_of: Mapped[int] = mapped_column(Integer, default=3)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    entrants: Mapped[list["Entrant"]] = relationship(back_populates="category")
    bracket: Mapped[Optional["Bracket"]] = relationship(back_populates="category")

    @validates("play_format")
    def _check_play_format(self, key, value):
        if value not in PLAY_FORMATS:
            raise UnknownPlayFormatError(
                f"Unknown play format '{value}' (expected one of: {', '.join(PLAY_FORMATS)})",
                {"play_format": value},
            )
        return value

    @property
    def is_pairs(self) -> bool:
        return self.play_format in ("doubles", "mixed_doubles")

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name='{self.name}', tournament_id={self.tournament_id})>"


class Entrant(Base):
    """
    One competitive unit: a single player, or a fixed pair in doubles.

    Strength is a read-only input from the external ranking system. For a
    pair it is the average of both players (see for_pair()).

    Once a bracket is generated, locked_at is stamped and any change to
    identity or seeding attributes raises EntrantLockedError.
    """

    __tablename__ = "entrants"

    id: Mapped[int] = mapped_column(primary_key=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id", ondelete="CASCADE"))

    # External player identities
    player_id: Mapped[int] = mapped_column(Integer, nullable=False)
    partner_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    strength: Mapped[float] = mapped_column(Float, default=0.0)
    seed_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Paid, checked in and cleared to play (decided upstream)
    is_eligible: Mapped[bool] = mapped_column(Boolean, default=True)

    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    category: Mapped["Category"] = relationship(back_populates="entrants")

    __table_args__ = (
        Index("idx_entrants_category", "category_id"),
    )

    @validates(*LOCKED_ENTRANT_FIELDS)
    def _reject_locked_changes(self, key, value):
        if self.locked_at is not None:
            raise EntrantLockedError(
                f"Entrant {self.id} is locked by a generated bracket; cannot change {key}",
                {"entrant_id": self.id, "field": key},
            )
        return value

    @classmethod
    def for_pair(
        cls,
        category_id: int,
        player_id: int,
        partner_id: int,
        display_name: str,
        player_strength: float,
        partner_strength: float,
        **kwargs,
    ) -> "Entrant":
        """Build a doubles entrant whose strength is the pair average."""
        return cls(
            category_id=category_id,
            player_id=player_id,
            partner_id=partner_id,
            display_name=display_name,
            strength=(player_strength + partner_strength) / 2,
            **kwargs,
        )

    @property
    def is_locked(self) -> bool:
        return self.locked_at is not None

    def __repr__(self) -> str:
        return f"<Entrant(id={self.id}, name='{self.display_name}', strength={self.strength})>"


# =============================================================================
# Bracket Models
# =============================================================================

class Bracket(Base):
    """
    The generated competition structure for one category.

    bracket_data holds the serialized topology (see bracketeer.brackets).
    JSON columns are not mutation-tracked, so code that changes the
    topology always assigns a fresh dict.

    is_complete moves from False to True exactly once, together with
    champion/runner-up and completed_at.
    """

    __tablename__ = "brackets"

    id: Mapped[int] = mapped_column(primary_key=True)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), unique=True
    )
    tournament_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    bracket_type: Mapped[str] = mapped_column(String(30), nullable=False)
    seeding_method: Mapped[str] = mapped_column(String(20), nullable=False)
    # Seed used for random seeding, so a draw can be reproduced on dispute
    random_seed: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    total_rounds: Mapped[int] = mapped_column(Integer, nullable=False)
    current_round: Mapped[int] = mapped_column(Integer, default=1)

    is_complete: Mapped[bool] = mapped_column(Boolean, default=False)
    champion_entrant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("entrants.id"), nullable=True
    )
    runner_up_entrant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("entrants.id"), nullable=True
    )

    bracket_data: Mapped[dict] = mapped_column(JSONType, nullable=False)
    # [{"seed": 1, "entrant_id": 7}, ...]
    seeding_data: Mapped[list] = mapped_column(JSONType, nullable=False)
    # best_of, grand_final_reset, win_points, loss_points
    settings: Mapped[dict] = mapped_column(JSONType, nullable=False)

    generated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    category: Mapped["Category"] = relationship(back_populates="bracket")
    matches: Mapped[list["Match"]] = relationship(
        back_populates="bracket", order_by="Match.match_number"
    )
    champion: Mapped[Optional["Entrant"]] = relationship(foreign_keys=[champion_entrant_id])
    runner_up: Mapped[Optional["Entrant"]] = relationship(foreign_keys=[runner_up_entrant_id])

    __table_args__ = (
        Index("idx_brackets_tournament", "tournament_id"),
    )

    @property
    def best_of(self) -> int:
        return (self.settings or {}).get("best_of", 3)

    def __repr__(self) -> str:
        return (
            f"<Bracket(id={self.id}, type='{self.bracket_type}', "
            f"round={self.current_round}/{self.total_rounds}, complete={self.is_complete})>"
        )


# =============================================================================
# Match Models
# =============================================================================

class Match(Base):
    """
    A schedulable contest tied to one node of one bracket.

    Matches are created at generation for every pairing with two known
    entrants. Later-round matches are created by the advancement engine
    as soon as one entrant is known, and filled in as feeders finish.

    Score formats:
    - score: Structured payload {"sets": [{"a": 6, "b": 4}], "walkover": false,
      "retired": false, "winner": null}
    - score_display: Human-readable string like "6-4 3-6 7-6(5)"

    Match status lifecycle:
    - 'scheduled': Waiting to be played (also after a postponement)
    - 'in_progress': Being played
    - 'completed': Finished on sets
    - 'walkover': Decided because an entrant failed to appear
    - 'retired': Decided because an entrant withdrew mid-play
    - 'cancelled': Will not be played
    """

    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)
    bracket_id: Mapped[int] = mapped_column(ForeignKey("brackets.id", ondelete="CASCADE"))

    # ==========================================================================
    # Node address
    # ==========================================================================

    stage: Mapped[str] = mapped_column(String(20), nullable=False)  # 'main', 'winners', 'losers', 'final', 'group'
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    round_label: Mapped[str] = mapped_column(String(30), nullable=False)
    match_number: Mapped[int] = mapped_column(Integer, nullable=False)

    # ==========================================================================
    # Entrants and result
    # ==========================================================================

    # Nullable until the feeder match is decided
    entrant1_id: Mapped[Optional[int]] = mapped_column(ForeignKey("entrants.id"), nullable=True)
    entrant2_id: Mapped[Optional[int]] = mapped_column(ForeignKey("entrants.id"), nullable=True)

    winner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("entrants.id"), nullable=True)
    loser_id: Mapped[Optional[int]] = mapped_column(ForeignKey("entrants.id"), nullable=True)
    retired_entrant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("entrants.id"), nullable=True
    )

    score: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    score_display: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # ==========================================================================
    # Schedule
    # ==========================================================================

    venue_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    scheduled_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    scheduled_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    actual_start: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    actual_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    postponement_count: Mapped[int] = mapped_column(Integer, default=0)

    # ==========================================================================
    # Status and metadata
    # ==========================================================================

    status: Mapped[str] = mapped_column(String(20), default="scheduled")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Result recorded but its advancement failed a topology check;
    # see AdvancementIssue and services.advancement.resolve_advancement
    advancement_pending: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    bracket: Mapped["Bracket"] = relationship(back_populates="matches")
    entrant1: Mapped[Optional["Entrant"]] = relationship(foreign_keys=[entrant1_id])
    entrant2: Mapped[Optional["Entrant"]] = relationship(foreign_keys=[entrant2_id])
    winner: Mapped[Optional["Entrant"]] = relationship(foreign_keys=[winner_id])

    __table_args__ = (
        # One live match per node; cancelled rows stay beside their replay
        Index(
            "uq_matches_node",
            "bracket_id", "stage", "round_number", "position",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        Index("idx_matches_status", "status"),
        Index("idx_matches_venue_slot", "venue_id", "scheduled_date", "scheduled_time"),
    )

    @property
    def is_decided(self) -> bool:
        """Finished with a winner (completed, walkover or retired)."""
        return self.status in get_status_group("decided")

    @property
    def is_terminal(self) -> bool:
        return self.status in get_status_group("terminal")

    @property
    def has_both_entrants(self) -> bool:
        return self.entrant1_id is not None and self.entrant2_id is not None

    def slot_of(self, entrant_id: int) -> Optional[int]:
        """Slot (1 or 2) held by an entrant, or None."""
        if entrant_id is not None and entrant_id == self.entrant1_id:
            return 1
        if entrant_id is not None and entrant_id == self.entrant2_id:
            return 2
        return None

    def entrant_in(self, slot: int) -> Optional[int]:
        return self.entrant1_id if slot == 1 else self.entrant2_id

    def __repr__(self) -> str:
        return (
            f"<Match(id={self.id}, node='{self.stage}:{self.round_number}:{self.position}', "
            f"status='{self.status}')>"
        )


class AdvancementIssue(Base):
    """
    Operational error log for results that could not be advanced.

    A row is written whenever a decided match fails a topology
    consistency check. The match keeps its result; resolving the issue
    replays the advancement.
    """

    __tablename__ = "advancement_issues"

    id: Mapped[int] = mapped_column(primary_key=True)
    bracket_id: Mapped[int] = mapped_column(ForeignKey("brackets.id", ondelete="CASCADE"))
    match_id: Mapped[int] = mapped_column(ForeignKey("matches.id", ondelete="CASCADE"))
    error_type: Mapped[str] = mapped_column(String(100), nullable=False)
    error_message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    resolved: Mapped[bool] = mapped_column(Boolean, default=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    __table_args__ = (
        Index("idx_advancement_issues_open", "bracket_id", "resolved"),
    )

    def __repr__(self) -> str:
        return (
            f"<AdvancementIssue(id={self.id}, match_id={self.match_id}, "
            f"type='{self.error_type}', resolved={self.resolved})>"
        )
