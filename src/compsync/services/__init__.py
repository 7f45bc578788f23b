"""
CompSync services - write paths for parsed documents.

Usage:
    from compsync.services import ingest_player_earnings, upsert_tournaments

    with get_session() as session:
        stats = ingest_player_earnings(session, player_id, html)
"""

from compsync.services.earnings_ingestion import (
    EarningsIngestionStats,
    SkipReasonCounters,
    extract_earning_records,
    ingest_player_earnings,
    update_player_earnings_summary,
)
from compsync.services.entity_sync import (
    EntitySyncStats,
    record_transfers,
    sync_roster,
    upsert_organizations,
    upsert_platform_results,
    upsert_tournaments,
)

__all__ = [
    "EarningsIngestionStats",
    "SkipReasonCounters",
    "extract_earning_records",
    "ingest_player_earnings",
    "update_player_earnings_summary",
    "EntitySyncStats",
    "record_transfers",
    "sync_roster",
    "upsert_organizations",
    "upsert_platform_results",
    "upsert_tournaments",
]
