"""
SQLAlchemy ORM models for compsync.

This module defines the reconciled record set. The schema is designed around
two identity namespaces that never reference each other directly:

- the wiki namespace, where players are known by in-game name (IGN) and
  wiki URL
- the platform namespace, where players are known by an opaque 32-char
  hexadecimal account id

Players carry both once they have been linked. Rosters and transfers keep a
denormalized copy of the account id which is refreshed whenever a link is
made.

Tables:
- players: Canonical player records (UUID primary key)
- player_ign_history: Every IGN a player has used, at most one open entry
- organizations: Teams/orgs keyed by slug
- team_rosters: Current and former roster entries per organization
- player_transfers: Roster moves scraped from the transfer portal
- tournaments: Tournament master data keyed by slug
- tournament_results: Platform event results keyed by account id
- player_tournament_earnings: One row per (player, tournament_id)
- player_earnings_summary: Aggregates recomputed after each earnings sync
- pipeline_runs / pipeline_stage_runs: Sync run audit trail
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Player Models
# =============================================================================

class Player(Base):
    """
    Canonical player record.

    The player_id is an internal UUID (stored as its canonical string form).
    current_ign is the display name; its history lives in player_ign_history
    and is only ever changed through PlayerIdentityService.update_player_ign.

    epic_account_id is the platform identifier. It is unique across players
    and is set once by the identity resolver.
    """
    __tablename__ = "players"

    player_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    current_ign: Mapped[str] = mapped_column(String(100), nullable=False)
    real_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    nationality: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    wiki_url: Mapped[Optional[str]] = mapped_column(String(500), unique=True, nullable=True)
    epic_account_id: Mapped[Optional[str]] = mapped_column(String(32), unique=True, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    ign_history: Mapped[list["PlayerIgnHistory"]] = relationship(
        back_populates="player",
        cascade="all, delete-orphan",
        order_by="PlayerIgnHistory.used_from",
    )

    __table_args__ = (
        Index("idx_players_current_ign", "current_ign"),
    )

    def __repr__(self) -> str:
        return f"<Player(id={self.player_id}, ign='{self.current_ign}')>"


class PlayerIgnHistory(Base):
    """
    One IGN a player used over a period of time.

    used_until is NULL for the entry that is currently in use. There is at
    most one such open entry per player.
    """
    __tablename__ = "player_ign_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[str] = mapped_column(
        ForeignKey("players.player_id", ondelete="CASCADE"), nullable=False
    )
    ign: Mapped[str] = mapped_column(String(100), nullable=False)
    used_from: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    used_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    player: Mapped["Player"] = relationship(back_populates="ign_history")

    __table_args__ = (
        Index("idx_player_ign_history_ign", "ign"),
        Index("idx_player_ign_history_player_open", "player_id", "used_until"),
        Index(
            "uq_player_ign_history_one_open",
            "player_id",
            unique=True,
            postgresql_where=text("used_until IS NULL"),
            sqlite_where=text("used_until IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<PlayerIgnHistory(ign='{self.ign}', until={self.used_until})>"


# =============================================================================
# Organization Models
# =============================================================================

class Organization(Base):
    """Team/organization keyed by its URL slug."""
    __tablename__ = "organizations"

    slug: Mapped[str] = mapped_column(String(120), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    region: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    wiki_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<Organization(slug='{self.slug}')>"


class TeamRoster(Base):
    """
    A player's membership of an organization.

    account_id is a denormalized copy of Player.epic_account_id. It stays
    NULL until the player has been linked.
    """
    __tablename__ = "team_rosters"

    id: Mapped[int] = mapped_column(primary_key=True)
    org_slug: Mapped[str] = mapped_column(
        ForeignKey("organizations.slug", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("players.player_id", ondelete="SET NULL"), nullable=True
    )
    account_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    player_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="current")
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        UniqueConstraint("org_slug", "player_name", name="uq_team_roster_org_player"),
        CheckConstraint("status IN ('current', 'former')", name="ck_team_roster_status"),
        Index("idx_team_rosters_player_id", "player_id"),
    )

    def __repr__(self) -> str:
        return f"<TeamRoster(org='{self.org_slug}', player='{self.player_name}')>"


class PlayerTransfer(Base):
    """A roster move scraped from the transfer portal."""
    __tablename__ = "player_transfers"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("players.player_id", ondelete="SET NULL"), nullable=True
    )
    account_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    player_name: Mapped[str] = mapped_column(String(100), nullable=False)
    from_org_slug: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    to_org_slug: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    transfer_date: Mapped[date] = mapped_column(Date, nullable=False)
    transfer_type: Mapped[str] = mapped_column(String(20), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_player_transfers_player_date", "player_name", "transfer_date"),
        Index("idx_player_transfers_player_id", "player_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<PlayerTransfer({self.player_name}: {self.from_org_slug} -> "
            f"{self.to_org_slug} on {self.transfer_date})>"
        )


# =============================================================================
# Tournament Models
# =============================================================================

class Tournament(Base):
    """Tournament master data keyed by its slug."""
    __tablename__ = "tournaments"

    tournament_id: Mapped[str] = mapped_column(String(120), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tier: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    prize_pool: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    game_mode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    wiki_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="completed")
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('upcoming', 'ongoing', 'completed')",
            name="ck_tournament_status",
        ),
        Index("idx_tournaments_start_date", "start_date"),
    )

    def __repr__(self) -> str:
        return f"<Tournament(id='{self.tournament_id}', status='{self.status}')>"


class TournamentResult(Base):
    """
    A ranked entry from a platform event window.

    These rows are the platform side of identity resolution: display_name is
    matched against player IGNs to discover account ids.
    """
    __tablename__ = "tournament_results"

    id: Mapped[int] = mapped_column(primary_key=True)
    event_id: Mapped[str] = mapped_column(String(255), nullable=False)
    window_id: Mapped[str] = mapped_column(String(255), nullable=False)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    rank: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    points: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    linked_player_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("players.player_id", ondelete="SET NULL"), nullable=True
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        UniqueConstraint("window_id", "account_id", name="uq_tournament_result_window_account"),
        Index("idx_tournament_results_display_name", "display_name"),
        Index("idx_tournament_results_account_id", "account_id"),
    )

    def __repr__(self) -> str:
        return f"<TournamentResult(window='{self.window_id}', name='{self.display_name}')>"


# =============================================================================
# Earnings Models
# =============================================================================

class PlayerTournamentEarning(Base):
    """
    A player's prize from one tournament.

    tournament_id is the deterministic dedup key derived from (date, name).
    Rows are created once per (player_id, tournament_id) and updated in
    place afterwards; they are never deleted by the sync.
    """
    __tablename__ = "player_tournament_earnings"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[str] = mapped_column(
        ForeignKey("players.player_id", ondelete="CASCADE"), nullable=False
    )
    tournament_id: Mapped[str] = mapped_column(String(100), nullable=False)
    tournament_name: Mapped[str] = mapped_column(String(255), nullable=False)
    tournament_date: Mapped[date] = mapped_column(Date, nullable=False)
    placement: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    tier: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    game_mode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    season: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    wiki_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    team_size: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    teammates: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    org_slug_at_time: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        UniqueConstraint("player_id", "tournament_id", name="uq_player_tournament_earning"),
        CheckConstraint("amount > 0", name="ck_player_tournament_earning_amount_positive"),
        Index("idx_player_tournament_earnings_date", "tournament_date"),
        Index("idx_player_tournament_earnings_org", "org_slug_at_time"),
    )

    def __repr__(self) -> str:
        return f"<PlayerTournamentEarning({self.player_id}, '{self.tournament_id}', {self.amount})>"


class PlayerEarningsSummary(Base):
    """Per-player aggregates recomputed after every earnings sync."""
    __tablename__ = "player_earnings_summary"

    player_id: Mapped[str] = mapped_column(
        ForeignKey("players.player_id", ondelete="CASCADE"), primary_key=True
    )
    total_earnings: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    tournament_count: Mapped[int] = mapped_column(Integer, nullable=False)
    first_place_count: Mapped[int] = mapped_column(Integer, nullable=False)
    top10_count: Mapped[int] = mapped_column(Integer, nullable=False)
    best_placement: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    highest_earning: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    earnings_by_year: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    last_tournament_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<PlayerEarningsSummary({self.player_id}, total={self.total_earnings})>"


# =============================================================================
# Pipeline Run Models
# =============================================================================

class PipelineRun(Base):
    """Top-level record of a sync run."""

    __tablename__ = "pipeline_runs"

    id: Mapped[int] = mapped_column(primary_key=True)
    run_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    summary_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    stage_runs: Mapped[list["PipelineStageRun"]] = relationship(
        back_populates="pipeline_run",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_pipeline_runs_started_at", "started_at"),
        Index("idx_pipeline_runs_status_started_at", "status", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<PipelineRun(run_id='{self.run_id}', status='{self.status}')>"


class PipelineStageRun(Base):
    """Per-stage execution record for each sync run."""

    __tablename__ = "pipeline_stage_runs"

    id: Mapped[int] = mapped_column(primary_key=True)
    run_id: Mapped[str] = mapped_column(
        ForeignKey("pipeline_runs.run_id", ondelete="CASCADE"),
        nullable=False,
    )
    stage_name: Mapped[str] = mapped_column(String(80), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    metrics_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    pipeline_run: Mapped["PipelineRun"] = relationship(back_populates="stage_runs")

    __table_args__ = (
        Index("idx_pipeline_stage_runs_run_stage", "run_id", "stage_name"),
    )

    def __repr__(self) -> str:
        return f"<PipelineStageRun(run_id='{self.run_id}', stage='{self.stage_name}')>"
