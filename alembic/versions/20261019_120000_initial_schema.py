"""Initial compsync schema

Revision ID: 3e1a7c5b9d20
Revises:
Create Date: 2026-10-19 12:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic.
revision: str = "3e1a7c5b9d20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(),
        nullable=nullable,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    op.create_table(
        "players",
        sa.Column("player_id", sa.String(length=36), nullable=False),
        sa.Column("current_ign", sa.String(length=100), nullable=False),
        sa.Column("real_name", sa.String(length=255), nullable=True),
        sa.Column("nationality", sa.String(length=100), nullable=True),
        sa.Column("wiki_url", sa.String(length=500), nullable=True),
        sa.Column("epic_account_id", sa.String(length=32), nullable=True),
        _timestamp("created_at", nullable=True),
        _timestamp("last_updated", nullable=True),
        sa.PrimaryKeyConstraint("player_id"),
        sa.UniqueConstraint("wiki_url"),
        sa.UniqueConstraint("epic_account_id"),
    )
    op.create_index("idx_players_current_ign", "players", ["current_ign"])

    op.create_table(
        "player_ign_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.String(length=36), nullable=False),
        sa.Column("ign", sa.String(length=100), nullable=False),
        _timestamp("used_from"),
        sa.Column("used_until", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["player_id"], ["players.player_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_player_ign_history_ign", "player_ign_history", ["ign"])
    op.create_index(
        "idx_player_ign_history_player_open",
        "player_ign_history",
        ["player_id", "used_until"],
    )
    # At most one open IGN per player
    op.create_index(
        "uq_player_ign_history_one_open",
        "player_ign_history",
        ["player_id"],
        unique=True,
        postgresql_where=sa.text("used_until IS NULL"),
    )

    op.create_table(
        "organizations",
        sa.Column("slug", sa.String(length=120), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("region", sa.String(length=50), nullable=True),
        sa.Column("wiki_url", sa.String(length=500), nullable=True),
        sa.Column("logo_url", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("last_updated", nullable=True),
        sa.PrimaryKeyConstraint("slug"),
    )

    op.create_table(
        "team_rosters",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_slug", sa.String(length=120), nullable=False),
        sa.Column("player_id", sa.String(length=36), nullable=True),
        sa.Column("account_id", sa.String(length=64), nullable=True),
        sa.Column("player_name", sa.String(length=100), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=True),
        sa.Column("status", sa.String(length=10), nullable=False, server_default="current"),
        _timestamp("last_updated", nullable=True),
        sa.CheckConstraint("status IN ('current', 'former')", name="ck_team_roster_status"),
        sa.ForeignKeyConstraint(["org_slug"], ["organizations.slug"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["player_id"], ["players.player_id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_slug", "player_name", name="uq_team_roster_org_player"),
    )
    op.create_index("idx_team_rosters_player_id", "team_rosters", ["player_id"])

    op.create_table(
        "player_transfers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.String(length=36), nullable=True),
        sa.Column("account_id", sa.String(length=64), nullable=True),
        sa.Column("player_name", sa.String(length=100), nullable=False),
        sa.Column("from_org_slug", sa.String(length=120), nullable=True),
        sa.Column("to_org_slug", sa.String(length=120), nullable=True),
        sa.Column("transfer_date", sa.Date(), nullable=False),
        sa.Column("transfer_type", sa.String(length=20), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        _timestamp("created_at", nullable=True),
        sa.ForeignKeyConstraint(["player_id"], ["players.player_id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_player_transfers_player_date",
        "player_transfers",
        ["player_name", "transfer_date"],
    )
    op.create_index("idx_player_transfers_player_id", "player_transfers", ["player_id"])

    op.create_table(
        "tournaments",
        sa.Column("tournament_id", sa.String(length=120), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("tier", sa.String(length=20), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("prize_pool", sa.Numeric(14, 2), nullable=True),
        sa.Column("region", sa.String(length=20), nullable=True),
        sa.Column("game_mode", sa.String(length=20), nullable=True),
        sa.Column("wiki_url", sa.String(length=500), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="completed"),
        _timestamp("last_updated", nullable=True),
        sa.CheckConstraint(
            "status IN ('upcoming', 'ongoing', 'completed')",
            name="ck_tournament_status",
        ),
        sa.PrimaryKeyConstraint("tournament_id"),
    )
    op.create_index("idx_tournaments_start_date", "tournaments", ["start_date"])

    op.create_table(
        "tournament_results",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.String(length=255), nullable=False),
        sa.Column("window_id", sa.String(length=255), nullable=False),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=True),
        sa.Column("points", sa.Integer(), nullable=True),
        sa.Column("linked_player_id", sa.String(length=36), nullable=True),
        _timestamp("last_updated", nullable=True),
        sa.ForeignKeyConstraint(["linked_player_id"], ["players.player_id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("window_id", "account_id", name="uq_tournament_result_window_account"),
    )
    op.create_index("idx_tournament_results_display_name", "tournament_results", ["display_name"])
    op.create_index("idx_tournament_results_account_id", "tournament_results", ["account_id"])
    # Case-insensitive IGN lookups during account id discovery
    op.create_index(
        "idx_tournament_results_display_name_lower",
        "tournament_results",
        [sa.text("lower(display_name)")],
    )

    op.create_table(
        "player_tournament_earnings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.String(length=36), nullable=False),
        sa.Column("tournament_id", sa.String(length=100), nullable=False),
        sa.Column("tournament_name", sa.String(length=255), nullable=False),
        sa.Column("tournament_date", sa.Date(), nullable=False),
        sa.Column("placement", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("tier", sa.String(length=20), nullable=True),
        sa.Column("game_mode", sa.String(length=20), nullable=True),
        sa.Column("region", sa.String(length=20), nullable=True),
        sa.Column("season", sa.String(length=50), nullable=True),
        sa.Column("wiki_url", sa.String(length=500), nullable=True),
        sa.Column("team_size", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("teammates", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("org_slug_at_time", sa.String(length=120), nullable=True),
        _timestamp("created_at", nullable=True),
        _timestamp("last_updated", nullable=True),
        sa.CheckConstraint("amount > 0", name="ck_player_tournament_earning_amount_positive"),
        sa.ForeignKeyConstraint(["player_id"], ["players.player_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "tournament_id", name="uq_player_tournament_earning"),
    )
    op.create_index(
        "idx_player_tournament_earnings_date",
        "player_tournament_earnings",
        ["tournament_date"],
    )
    op.create_index(
        "idx_player_tournament_earnings_org",
        "player_tournament_earnings",
        ["org_slug_at_time"],
    )

    op.create_table(
        "player_earnings_summary",
        sa.Column("player_id", sa.String(length=36), nullable=False),
        sa.Column("total_earnings", sa.Numeric(16, 2), nullable=False),
        sa.Column("tournament_count", sa.Integer(), nullable=False),
        sa.Column("first_place_count", sa.Integer(), nullable=False),
        sa.Column("top10_count", sa.Integer(), nullable=False),
        sa.Column("best_placement", sa.Integer(), nullable=True),
        sa.Column("highest_earning", sa.Numeric(14, 2), nullable=False),
        sa.Column("earnings_by_year", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("last_tournament_date", sa.Date(), nullable=True),
        _timestamp("last_updated", nullable=True),
        sa.ForeignKeyConstraint(["player_id"], ["players.player_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("player_id"),
    )

    op.create_table(
        "pipeline_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("run_id", sa.String(length=64), nullable=False),
        _timestamp("started_at"),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("summary_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("run_id"),
    )
    op.create_index("idx_pipeline_runs_started_at", "pipeline_runs", ["started_at"])
    op.create_index(
        "idx_pipeline_runs_status_started_at",
        "pipeline_runs",
        ["status", "started_at"],
    )

    op.create_table(
        "pipeline_stage_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("run_id", sa.String(length=64), nullable=False),
        sa.Column("stage_name", sa.String(length=80), nullable=False),
        _timestamp("started_at"),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("metrics_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("error_text", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["run_id"], ["pipeline_runs.run_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_pipeline_stage_runs_run_stage",
        "pipeline_stage_runs",
        ["run_id", "stage_name"],
    )


def downgrade() -> None:
    op.drop_index("idx_pipeline_stage_runs_run_stage", table_name="pipeline_stage_runs")
    op.drop_table("pipeline_stage_runs")
    op.drop_index("idx_pipeline_runs_status_started_at", table_name="pipeline_runs")
    op.drop_index("idx_pipeline_runs_started_at", table_name="pipeline_runs")
    op.drop_table("pipeline_runs")
    op.drop_table("player_earnings_summary")
    op.drop_index("idx_player_tournament_earnings_org", table_name="player_tournament_earnings")
    op.drop_index("idx_player_tournament_earnings_date", table_name="player_tournament_earnings")
    op.drop_table("player_tournament_earnings")
    op.drop_index("idx_tournament_results_display_name_lower", table_name="tournament_results")
    op.drop_index("idx_tournament_results_account_id", table_name="tournament_results")
    op.drop_index("idx_tournament_results_display_name", table_name="tournament_results")
    op.drop_table("tournament_results")
    op.drop_index("idx_tournaments_start_date", table_name="tournaments")
    op.drop_table("tournaments")
    op.drop_index("idx_player_transfers_player_id", table_name="player_transfers")
    op.drop_index("idx_player_transfers_player_date", table_name="player_transfers")
    op.drop_table("player_transfers")
    op.drop_index("idx_team_rosters_player_id", table_name="team_rosters")
    op.drop_table("team_rosters")
    op.drop_table("organizations")
    op.drop_index("uq_player_ign_history_one_open", table_name="player_ign_history")
    op.drop_index("idx_player_ign_history_player_open", table_name="player_ign_history")
    op.drop_index("idx_player_ign_history_ign", table_name="player_ign_history")
    op.drop_table("player_ign_history")
    op.drop_index("idx_players_current_ign", table_name="players")
    op.drop_table("players")
