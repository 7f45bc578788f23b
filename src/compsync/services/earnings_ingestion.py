"""
Earnings ingestion service - turns a player's wiki results page into
PlayerTournamentEarning rows.

Pipeline for one player page:

    HTML -> extract_rows() -> RawRow
         -> normalizers + tournament name resolver -> EarningRecord
         -> EarningsUpsertEngine -> repository (create / update / unchanged)
         -> update_player_earnings_summary()

Rows are dropped, never defaulted, when a required field is missing. Each
drop is counted in SkipReasonCounters (in this order of checks):
- no_date: no ISO date in the date cell
- no_placement: placement cell did not parse to a rank
- no_tournament_name: neither name strategy matched
- no_positive_earnings: prize cell parsed to zero
- duplicate: the tournament_id was already produced earlier in this page

A prize cell of exactly "-" means "no prize" on the wiki and is dropped
without touching any counter.

Usage:
    from compsync.services.earnings_ingestion import ingest_player_earnings

    with get_session() as session:
        stats = ingest_player_earnings(session, player_id, html)
        print(stats.summary())
"""

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from compsync.db.models import PlayerEarningsSummary, PlayerTournamentEarning
from compsync.db.repository import (
    EARNING_FIELDS,
    EarningsRepository,
    SqlEarningsRepository,
    record_values,
)
from compsync.scrape.base import EarningRecord, RawRow
from compsync.scrape.parsers.fields import (
    extract_game_mode,
    extract_region,
    extract_season,
    extract_tier,
    parse_date,
    parse_earnings,
    parse_placement,
)
from compsync.scrape.tables import extract_rows, to_soup
from compsync.scrape.tournament_identity import make_tournament_id, resolve_tournament_name

logger = logging.getLogger(__name__)

NO_PRIZE_MARKER = "-"

# Set on create only; a later roster move must not rewrite history
CREATE_ONLY_FIELDS = ("org_slug_at_time",)


@dataclass
class SkipReasonCounters:
    """Why raw rows did not become earning records. Reset every run."""
    no_date: int = 0
    no_placement: int = 0
    no_tournament_name: int = 0
    no_positive_earnings: int = 0
    duplicate: int = 0

    @property
    def total(self) -> int:
        return (
            self.no_date
            + self.no_placement
            + self.no_tournament_name
            + self.no_positive_earnings
            + self.duplicate
        )

    def merge(self, other: "SkipReasonCounters") -> None:
        for name, value in asdict(other).items():
            setattr(self, name, getattr(self, name) + value)

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class EarningsIngestionStats:
    """Statistics from an earnings ingestion run (one or more players)."""
    players_processed: int = 0
    rows_seen: int = 0
    records_extracted: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skips: SkipReasonCounters = field(default_factory=SkipReasonCounters)
    errors: list[str] = field(default_factory=list)

    def merge(self, other: "EarningsIngestionStats") -> None:
        self.players_processed += other.players_processed
        self.rows_seen += other.rows_seen
        self.records_extracted += other.records_extracted
        self.created += other.created
        self.updated += other.updated
        self.unchanged += other.unchanged
        self.skips.merge(other.skips)
        self.errors.extend(other.errors)

    def to_metrics(self) -> dict:
        return {
            "players_processed": self.players_processed,
            "rows_seen": self.rows_seen,
            "records_extracted": self.records_extracted,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "skips": self.skips.to_dict(),
            "errors": len(self.errors),
        }

    def summary(self) -> str:
        """Return a human-readable summary of ingestion results."""
        lines = [
            "Earnings ingestion complete:",
            f"  Players processed:        {self.players_processed}",
            f"  Rows seen:                {self.rows_seen}",
            f"  Records extracted:        {self.records_extracted}",
            f"  Earnings created:         {self.created}",
            f"  Earnings updated:         {self.updated}",
            f"  Earnings unchanged:       {self.unchanged}",
            f"  Skipped (no date):        {self.skips.no_date}",
            f"  Skipped (no placement):   {self.skips.no_placement}",
            f"  Skipped (no name):        {self.skips.no_tournament_name}",
            f"  Skipped (no earnings):    {self.skips.no_positive_earnings}",
            f"  Skipped (duplicate):      {self.skips.duplicate}",
        ]
        if self.errors:
            lines.append(f"  Errors: {len(self.errors)}")
            for err in self.errors[:5]:
                lines.append(f"    - {err}")
            if len(self.errors) > 5:
                lines.append(f"    ... and {len(self.errors) - 5} more")
        return "\n".join(lines)


# =============================================================================
# Extraction
# =============================================================================

def _row_tier(row: RawRow) -> Optional[str]:
    for cell in row.cells:
        tier = extract_tier(cell.sort_value) or extract_tier(cell.text)
        if tier:
            return tier
    return None


def extract_earning_records(
    document,
    counters: Optional[SkipReasonCounters] = None,
) -> list[EarningRecord]:
    """
    Normalize every result row of a page into EarningRecords.

    Args:
        document: HTML string or parsed BeautifulSoup tree
        counters: Skip tally to increment; a fresh one is used if omitted

    Returns:
        Records sorted by tournament date, newest first
    """
    if counters is None:
        counters = SkipReasonCounters()

    records: list[EarningRecord] = []
    seen_ids: set[str] = set()

    for row in extract_rows(document):
        # "-" means no prize was paid out, which is not a scrape problem
        prize_text = row.prize_text.strip()
        if prize_text == NO_PRIZE_MARKER:
            continue

        tournament_date = parse_date(row.date_text)
        if tournament_date is None:
            counters.no_date += 1
            continue

        placement = parse_placement(row.placement_text)
        if not placement.is_ranked:
            counters.no_placement += 1
            continue

        resolved = resolve_tournament_name(row)
        if resolved is None:
            counters.no_tournament_name += 1
            continue

        amount = parse_earnings(prize_text)
        if amount <= 0:
            counters.no_positive_earnings += 1
            continue

        tournament_id = make_tournament_id(tournament_date, resolved.name)
        if tournament_id in seen_ids:
            counters.duplicate += 1
            continue
        seen_ids.add(tournament_id)

        teammates = row.teammates
        records.append(EarningRecord(
            tournament_id=tournament_id,
            tournament_name=resolved.name,
            tournament_date=tournament_date,
            placement=placement.value,
            amount=amount,
            tier=_row_tier(row) or extract_tier(resolved.name),
            game_mode=extract_game_mode(resolved.name),
            region=extract_region(resolved.name),
            season=extract_season(resolved.name),
            wiki_url=resolved.wiki_url,
            team_size=len(teammates) + 1 if teammates else 1,
            teammates=teammates,
        ))

    records.sort(key=lambda r: r.tournament_date, reverse=True)
    return records


# =============================================================================
# Upsert
# =============================================================================

def _values_equal(current, new) -> bool:
    if current in (None, []) and new in (None, []):
        return True
    if current is None or new is None:
        return False
    # Numeric columns come back as Decimal("100.00") for an input of 100
    if isinstance(current, Decimal) or isinstance(new, Decimal):
        return Decimal(str(current)) == Decimal(str(new))
    return current == new


class EarningsUpsertEngine:
    """
    Create-or-update earning records against an EarningsRepository.

    Existing rows are only written when at least one field differs, so a
    replay of the same page produces no writes. Nothing is ever deleted.
    """

    def __init__(self, repository: EarningsRepository):
        self.repository = repository

    def upsert(
        self,
        player_id: str,
        record: EarningRecord,
        org_slug_at_time: Optional[str] = None,
    ) -> str:
        """
        Persist one record.

        Returns:
            "created", "updated" or "unchanged"
        """
        values = record_values(record, org_slug_at_time)
        existing = self.repository.get(player_id, record.tournament_id)

        if existing is None:
            self.repository.create(player_id, record.tournament_id, values)
            return "created"

        changed = {
            name: values[name]
            for name in EARNING_FIELDS
            if name not in CREATE_ONLY_FIELDS
            and not _values_equal(existing.get(name), values[name])
        }
        if not changed:
            return "unchanged"

        self.repository.update(player_id, record.tournament_id, changed)
        return "updated"

    def upsert_all(
        self,
        player_id: str,
        records: Iterable[EarningRecord],
        stats: EarningsIngestionStats,
        org_slug_at_time: Optional[str] = None,
    ) -> None:
        for record in records:
            outcome = self.upsert(player_id, record, org_slug_at_time)
            if outcome == "created":
                stats.created += 1
            elif outcome == "updated":
                stats.updated += 1
            else:
                stats.unchanged += 1


# =============================================================================
# Entry Points
# =============================================================================

def ingest_player_earnings(
    session: Session,
    player_id: str,
    document,
    repository: Optional[EarningsRepository] = None,
) -> EarningsIngestionStats:
    """
    Extract, upsert and summarize the earnings on one player page.

    Each record is written inside its own savepoint; a failing record is
    logged and counted in stats.errors without aborting the rest.

    Args:
        session: SQLAlchemy database session
        player_id: Player the page belongs to
        document: HTML string or parsed tree of the player's results page
        repository: Storage override (defaults to SqlEarningsRepository)

    Returns:
        EarningsIngestionStats for this player
    """
    stats = EarningsIngestionStats(players_processed=1)
    repository = repository or SqlEarningsRepository(session)
    engine = EarningsUpsertEngine(repository)

    soup = to_soup(document)
    stats.rows_seen = sum(1 for _ in extract_rows(soup))
    records = extract_earning_records(soup, stats.skips)
    stats.records_extracted = len(records)

    org_slug = repository.current_org_slug(player_id)

    for record in records:
        try:
            with session.begin_nested():
                engine.upsert_all(player_id, [record], stats, org_slug)
        except Exception as e:
            error_msg = f"{record.tournament_name}: {e}"
            stats.errors.append(error_msg)
            logger.error("Failed to sync earning for player %s: %s", player_id, error_msg)

    if records:
        update_player_earnings_summary(session, player_id)

    logger.info(
        "Player %s: %d earnings (%d created, %d updated, %d unchanged, %d skipped)",
        player_id, len(records), stats.created, stats.updated, stats.unchanged, stats.skips.total,
    )
    return stats


def update_player_earnings_summary(
    session: Session,
    player_id: str,
) -> Optional[PlayerEarningsSummary]:
    """
    Recompute the aggregated earnings row for a player.

    Returns None (and leaves any existing summary alone) when the player has
    no earnings.
    """
    earnings = session.execute(
        select(PlayerTournamentEarning)
        .where(PlayerTournamentEarning.player_id == player_id)
        .order_by(PlayerTournamentEarning.tournament_date.desc())
    ).scalars().all()

    if not earnings:
        return None

    amounts = [Decimal(str(e.amount)) for e in earnings]
    by_year: dict[str, Decimal] = defaultdict(Decimal)
    for e, amount in zip(earnings, amounts):
        by_year[str(e.tournament_date.year)] += amount

    summary = session.get(PlayerEarningsSummary, player_id)
    if summary is None:
        summary = PlayerEarningsSummary(player_id=player_id)
        session.add(summary)

    summary.total_earnings = sum(amounts, Decimal(0))
    summary.tournament_count = len(earnings)
    summary.first_place_count = sum(1 for e in earnings if e.placement == 1)
    summary.top10_count = sum(1 for e in earnings if e.placement <= 10)
    summary.best_placement = min(e.placement for e in earnings)
    summary.highest_earning = max(amounts)
    summary.earnings_by_year = {year: float(total) for year, total in sorted(by_year.items())}
    summary.last_tournament_date = earnings[0].tournament_date

    session.flush()
    return summary
