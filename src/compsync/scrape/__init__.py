"""
Document parsing for CompSync.

Everything here turns already-fetched HTML/JSON into typed records:
- parsers.fields: Field normalizers (earnings, placement, date, tier, ...)
- tables: Result-table extraction into RawRow sequences
- tournament_identity: Tournament naming strategies and dedup keys
- wiki: Tournament/org portals, rosters, transfers, player infobox
- platform: Platform live-data event results

The network side lives in scrape.fetch (Playwright) and is only imported by
the sync stages and scripts.
"""

from compsync.scrape.base import EarningRecord, RawCell, RawLink, RawRow
from compsync.scrape.tables import extract_rows
from compsync.scrape.tournament_identity import make_tournament_id, resolve_tournament_name

__all__ = [
    "EarningRecord",
    "RawCell",
    "RawLink",
    "RawRow",
    "extract_rows",
    "make_tournament_id",
    "resolve_tournament_name",
]
