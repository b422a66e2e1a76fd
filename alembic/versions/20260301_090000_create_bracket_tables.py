"""Create categories, entrants, brackets, matches and advancement_issues

Revision ID: 5a1f3c9e2b70
Revises:
Create Date: 2026-03-01 09:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic.
revision: str = "5a1f3c9e2b70"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# JSONB on PostgreSQL, JSON elsewhere (matches bracketeer.db.models.JSONType)
JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("play_format", sa.String(length=20), nullable=True),
        sa.Column("best_of", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_categories_tournament_id"), "categories", ["tournament_id"], unique=False
    )

    op.create_table(
        "entrants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("partner_id", sa.Integer(), nullable=True),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("strength", sa.Float(), nullable=True),
        sa.Column("seed_number", sa.Integer(), nullable=True),
        sa.Column("region", sa.String(length=100), nullable=True),
        sa.Column("is_eligible", sa.Boolean(), nullable=True),
        sa.Column("locked_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_entrants_category", "entrants", ["category_id"], unique=False)

    op.create_table(
        "brackets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("bracket_type", sa.String(length=30), nullable=False),
        sa.Column("seeding_method", sa.String(length=20), nullable=False),
        sa.Column("random_seed", sa.Integer(), nullable=True),
        sa.Column("total_rounds", sa.Integer(), nullable=False),
        sa.Column("current_round", sa.Integer(), nullable=True),
        sa.Column("is_complete", sa.Boolean(), nullable=True),
        sa.Column("champion_entrant_id", sa.Integer(), nullable=True),
        sa.Column("runner_up_entrant_id", sa.Integer(), nullable=True),
        sa.Column("bracket_data", JSON_TYPE, nullable=False),
        sa.Column("seeding_data", JSON_TYPE, nullable=False),
        sa.Column("settings", JSON_TYPE, nullable=False),
        sa.Column("generated_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["champion_entrant_id"], ["entrants.id"]),
        sa.ForeignKeyConstraint(["runner_up_entrant_id"], ["entrants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("category_id"),
    )
    op.create_index("idx_brackets_tournament", "brackets", ["tournament_id"], unique=False)

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bracket_id", sa.Integer(), nullable=False),
        sa.Column("stage", sa.String(length=20), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("round_label", sa.String(length=30), nullable=False),
        sa.Column("match_number", sa.Integer(), nullable=False),
        sa.Column("entrant1_id", sa.Integer(), nullable=True),
        sa.Column("entrant2_id", sa.Integer(), nullable=True),
        sa.Column("winner_id", sa.Integer(), nullable=True),
        sa.Column("loser_id", sa.Integer(), nullable=True),
        sa.Column("retired_entrant_id", sa.Integer(), nullable=True),
        sa.Column("score", JSON_TYPE, nullable=True),
        sa.Column("score_display", sa.String(length=100), nullable=True),
        sa.Column("venue_id", sa.Integer(), nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=True),
        sa.Column("scheduled_time", sa.Time(), nullable=True),
        sa.Column("actual_start", sa.DateTime(), nullable=True),
        sa.Column("actual_end", sa.DateTime(), nullable=True),
        sa.Column("postponement_count", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("advancement_pending", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["bracket_id"], ["brackets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["entrant1_id"], ["entrants.id"]),
        sa.ForeignKeyConstraint(["entrant2_id"], ["entrants.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["entrants.id"]),
        sa.ForeignKeyConstraint(["loser_id"], ["entrants.id"]),
        sa.ForeignKeyConstraint(["retired_entrant_id"], ["entrants.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_matches_node",
        "matches",
        ["bracket_id", "stage", "round_number", "position"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
        sqlite_where=sa.text("status <> 'cancelled'"),
    )
    op.create_index("idx_matches_status", "matches", ["status"], unique=False)
    op.create_index(
        "idx_matches_venue_slot",
        "matches",
        ["venue_id", "scheduled_date", "scheduled_time"],
        unique=False,
    )

    op.create_table(
        "advancement_issues",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bracket_id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("error_type", sa.String(length=100), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=False),
        sa.Column("details", JSON_TYPE, nullable=True),
        sa.Column("resolved", sa.Boolean(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["bracket_id"], ["brackets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["match_id"], ["matches.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_advancement_issues_open",
        "advancement_issues",
        ["bracket_id", "resolved"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("idx_advancement_issues_open", table_name="advancement_issues")
    op.drop_table("advancement_issues")
    op.drop_index("idx_matches_venue_slot", table_name="matches")
    op.drop_index("idx_matches_status", table_name="matches")
    op.drop_index("uq_matches_node", table_name="matches")
    op.drop_table("matches")
    op.drop_index("idx_brackets_tournament", table_name="brackets")
    op.drop_table("brackets")
    op.drop_index("idx_entrants_category", table_name="entrants")
    op.drop_table("entrants")
    op.drop_index(op.f("ix_categories_tournament_id"), table_name="categories")
    op.drop_table("categories")
