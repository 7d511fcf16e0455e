"""Initial migration: create tournament, player, match tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create tournament table
    op.create_table(
        "tournament",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("categories", sa.JSON(), nullable=False),
        sa.Column("best_of", sa.Integer(), nullable=False),
        sa.Column("points_per_game", sa.Integer(), nullable=False),
        sa.Column("deuce_enabled", sa.Boolean(), nullable=False),
        sa.Column("deuce_at", sa.Integer(), nullable=False),
        sa.Column("clear_by", sa.Integer(), nullable=False),
        sa.Column("max_points", sa.Integer(), nullable=False),
        sa.Column("group_count", sa.Integer(), nullable=False),
        sa.Column("knockout_size", sa.Integer(), nullable=False),
        sa.Column("public_view_enabled", sa.Boolean(), nullable=False),
        sa.Column("venue_pin", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tournament_slug", "tournament", ["slug"], unique=True)

    # Create player table
    op.create_table(
        "player",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("gender", sa.String(), nullable=False),
        sa.Column("department", sa.String(), nullable=True),
        sa.Column("categories", sa.JSON(), nullable=False),
        sa.Column("partner_id", sa.Integer(), nullable=True),
        sa.Column("group_id", sa.String(), nullable=True),
        sa.Column("seeded", sa.Boolean(), nullable=False),
        sa.Column("added_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["partner_id"], ["player.id"]),
        sa.UniqueConstraint("tournament_id", "name", name="uq_tournament_player_name"),
    )
    op.create_index("ix_player_tournament_id", "player", ["tournament_id"])

    # Create match table
    op.create_table(
        "match",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("round", sa.String(), nullable=False),
        sa.Column("group_id", sa.String(), nullable=True),
        sa.Column("bracket_position", sa.Integer(), nullable=False),
        sa.Column("court_number", sa.Integer(), nullable=True),
        sa.Column("scheduled_time", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("player1_id", sa.Integer(), nullable=True),
        sa.Column("player2_id", sa.Integer(), nullable=True),
        sa.Column("player1_name", sa.String(), nullable=False),
        sa.Column("player2_name", sa.String(), nullable=False),
        sa.Column("scores", sa.JSON(), nullable=False),
        sa.Column("score_history", sa.JSON(), nullable=False),
        sa.Column("winner_id", sa.Integer(), nullable=True),
        sa.Column("pending_winner_id", sa.Integer(), nullable=True),
        sa.Column("next_match_id", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["player1_id"], ["player.id"]),
        sa.ForeignKeyConstraint(["player2_id"], ["player.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["player.id"]),
        sa.ForeignKeyConstraint(["pending_winner_id"], ["player.id"]),
        sa.ForeignKeyConstraint(["next_match_id"], ["match.id"]),
    )
    op.create_index("ix_match_tournament_id", "match", ["tournament_id"])
    op.create_index("ix_match_category", "match", ["category"])
    op.create_index("ix_match_round", "match", ["round"])
    op.create_index("ix_match_group_id", "match", ["group_id"])


def downgrade() -> None:
    op.drop_index("ix_match_group_id", table_name="match")
    op.drop_index("ix_match_round", table_name="match")
    op.drop_index("ix_match_category", table_name="match")
    op.drop_index("ix_match_tournament_id", table_name="match")
    op.drop_table("match")
    op.drop_index("ix_player_tournament_id", table_name="player")
    op.drop_table("player")
    op.drop_index("ix_tournament_slug", table_name="tournament")
    op.drop_table("tournament")
