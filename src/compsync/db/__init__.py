"""
Database module for CompSync.

Provides SQLAlchemy ORM models, session management and the earnings
repository used by the upsert engine.

Usage:
    from compsync.db import get_session, Player

    with get_session() as session:
        players = session.query(Player).all()
"""

from compsync.db.models import (
    Base,
    Player,
    PlayerIgnHistory,
    Organization,
    TeamRoster,
    PlayerTransfer,
    Tournament,
    TournamentResult,
    PlayerTournamentEarning,
    PlayerEarningsSummary,
    PipelineRun,
    PipelineStageRun,
)
from compsync.db.session import get_session, get_engine

__all__ = [
    # Base
    "Base",
    # Models
    "Player",
    "PlayerIgnHistory",
    "Organization",
    "TeamRoster",
    "PlayerTransfer",
    "Tournament",
    "TournamentResult",
    "PlayerTournamentEarning",
    "PlayerEarningsSummary",
    "PipelineRun",
    "PipelineStageRun",
    # Session
    "get_session",
    "get_engine",
]
