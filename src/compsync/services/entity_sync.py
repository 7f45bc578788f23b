"""
Entity sync service - idempotent upserts for the non-earnings records.

Each function takes the parsed dataclasses of one document and writes them:

- upsert_tournaments():       Tournament keyed by tournament_id (slug)
- upsert_organizations():     Organization keyed by slug
- sync_roster():              TeamRoster keyed by (org_slug, player_name),
                              creating Player rows for unknown players
- record_transfers():         PlayerTransfer, created once per
                              (player_name, date, from, to)
- upsert_platform_results():  TournamentResult keyed by (window_id, account_id)

Every entity is written inside its own savepoint. A failing entity is
rolled back, logged and counted; the rest of the batch continues. Rows are
only touched when a value actually changed, so replaying a document is a
no-op.

Usage:
    with get_session() as session:
        stats = upsert_tournaments(session, parse_tournament_table(html))
        logger.info(stats.summary("Tournaments"))
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from compsync.db.models import (
    Organization,
    Player,
    PlayerTransfer,
    TeamRoster,
    Tournament,
    TournamentResult,
)
from compsync.orgs import OrgResolver
from compsync.players.identity import PlayerIdentityService, placeholder_account_id
from compsync.scrape.base import (
    ScrapedOrg,
    ScrapedPlatformResult,
    ScrapedRosterEntry,
    ScrapedTournament,
    ScrapedTransfer,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class EntitySyncStats:
    """Statistics from one entity upsert batch."""
    total: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    players_created: int = 0
    errors: list[str] = field(default_factory=list)

    def record(self, outcome: str) -> None:
        if outcome == "created":
            self.created += 1
        elif outcome == "updated":
            self.updated += 1
        else:
            self.unchanged += 1

    def merge(self, other: "EntitySyncStats") -> None:
        self.total += other.total
        self.created += other.created
        self.updated += other.updated
        self.unchanged += other.unchanged
        self.players_created += other.players_created
        self.errors.extend(other.errors)

    def to_metrics(self) -> dict:
        return {
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "players_created": self.players_created,
            "errors": len(self.errors),
        }

    def summary(self, label: str) -> str:
        """Return a human-readable summary of the batch."""
        lines = [
            f"{label} sync complete:",
            f"  Total processed:  {self.total}",
            f"  Created:          {self.created}",
            f"  Updated:          {self.updated}",
            f"  Unchanged:        {self.unchanged}",
        ]
        if self.players_created:
            lines.append(f"  Players created:  {self.players_created}")
        if self.errors:
            lines.append(f"  Errors: {len(self.errors)}")
            for err in self.errors[:5]:
                lines.append(f"    - {err}")
            if len(self.errors) > 5:
                lines.append(f"    ... and {len(self.errors) - 5} more")
        return "\n".join(lines)


def apply_changes(row, values: dict) -> bool:
    """Set the attributes that differ; True if anything changed."""
    changed = False
    for name, value in values.items():
        if getattr(row, name) != value:
            setattr(row, name, value)
            changed = True
    return changed


def _each_in_savepoint(
    session: Session,
    items: Iterable[T],
    stats: EntitySyncStats,
    describe: Callable[[T], str],
    handle: Callable[[T], str],
    on_error: Optional[Callable[[], None]] = None,
) -> None:
    """
    Run handle() for each item inside its own savepoint.

    on_error runs after a savepoint has been rolled back, so callers can
    drop in-memory state that referred to the discarded rows.
    """
    for item in items:
        stats.total += 1
        try:
            with session.begin_nested():
                outcome = handle(item)
                session.flush()
        except Exception as e:
            error_msg = f"{describe(item)}: {e}"
            stats.errors.append(error_msg)
            logger.error("Error syncing %s", error_msg)
            if on_error is not None:
                on_error()
            continue
        stats.record(outcome)


# =============================================================================
# Tournaments
# =============================================================================

def upsert_tournaments(
    session: Session,
    tournaments: Iterable[ScrapedTournament],
) -> EntitySyncStats:
    stats = EntitySyncStats()

    def handle(scraped: ScrapedTournament) -> str:
        values = {
            "name": scraped.name,
            "tier": scraped.tier,
            "start_date": scraped.start_date,
            "end_date": scraped.end_date,
            "prize_pool": scraped.prize_pool,
            "region": scraped.region,
            "game_mode": scraped.game_mode,
            "wiki_url": scraped.wiki_url,
            "status": scraped.status,
        }
        existing = session.get(Tournament, scraped.tournament_id)
        if existing is None:
            session.add(Tournament(tournament_id=scraped.tournament_id, **values))
            return "created"
        # Keep known facts when a sparser listing omits them
        values = {k: v for k, v in values.items() if v is not None}
        return "updated" if apply_changes(existing, values) else "unchanged"

    _each_in_savepoint(session, tournaments, stats, lambda t: t.tournament_id, handle)
    return stats


# =============================================================================
# Organizations / Rosters
# =============================================================================

def upsert_organizations(
    session: Session,
    orgs: Iterable[ScrapedOrg],
    resolver: Optional[OrgResolver] = None,
) -> EntitySyncStats:
    stats = EntitySyncStats()

    def handle(scraped: ScrapedOrg) -> str:
        values = {
            "name": scraped.name,
            "wiki_url": scraped.wiki_url,
            "region": scraped.region,
            "logo_url": scraped.logo_url,
        }
        existing = session.get(Organization, scraped.slug)
        if resolver is not None:
            resolver.remember(scraped.slug, scraped.name)
        if existing is None:
            session.add(Organization(slug=scraped.slug, **values))
            return "created"
        values = {k: v for k, v in values.items() if v is not None}
        return "updated" if apply_changes(existing, values) else "unchanged"

    _each_in_savepoint(
        session, orgs, stats, lambda o: o.slug, handle,
        on_error=resolver.reload if resolver is not None else None,
    )
    return stats


def find_or_create_player(
    identity: PlayerIdentityService,
    ign: str,
    wiki_url: Optional[str] = None,
    real_name: Optional[str] = None,
    nationality: Optional[str] = None,
) -> tuple[Player, bool]:
    """
    Player for a wiki mention: by wiki URL, then by IGN, else a new row.

    Returns:
        (player, created)
    """
    player = None
    if wiki_url:
        player = identity.find_player_by_wiki_url(wiki_url)
    if player is None:
        player = identity.find_player_by_ign(ign)
        if player is not None and wiki_url and not player.wiki_url:
            player.wiki_url = wiki_url
    if player is not None:
        if real_name and not player.real_name:
            player.real_name = real_name
        if nationality and not player.nationality:
            player.nationality = nationality
        return player, False

    player = identity.create_player(
        ign=ign,
        wiki_url=wiki_url,
        real_name=real_name,
        nationality=nationality,
    )
    return player, True


def sync_roster(
    session: Session,
    org_slug: str,
    entries: Iterable[ScrapedRosterEntry],
    identity: PlayerIdentityService,
) -> EntitySyncStats:
    """
    Upsert the roster of one organization.

    Players missing from the page are left as they are; a roster entry only
    moves to "former" when the page says so.
    """
    stats = EntitySyncStats()
    existing_by_name: dict[str, TeamRoster] = {}

    def load_existing() -> None:
        existing_by_name.clear()
        rows = session.execute(
            select(TeamRoster).where(TeamRoster.org_slug == org_slug)
        ).scalars().all()
        existing_by_name.update((row.player_name.lower(), row) for row in rows)

    load_existing()
    # Players created by the entry currently in its savepoint
    attempt_players: list[str] = []

    def rollback_entry() -> None:
        stats.players_created -= len(attempt_players)
        load_existing()

    def handle(entry: ScrapedRosterEntry) -> str:
        attempt_players.clear()
        player, created = find_or_create_player(
            identity, entry.ign, entry.wiki_url, entry.real_name, entry.nationality,
        )
        if created:
            stats.players_created += 1
            attempt_players.append(player.player_id)

        values = {
            "player_id": player.player_id,
            "account_id": player.epic_account_id,
            "role": entry.role,
            "status": entry.status,
        }
        row = existing_by_name.get(entry.ign.lower())
        if row is None:
            row = TeamRoster(org_slug=org_slug, player_name=entry.ign, **values)
            session.add(row)
            existing_by_name[entry.ign.lower()] = row
            return "created"
        if apply_changes(row, values):
            row.last_updated = datetime.utcnow()
            return "updated"
        return "unchanged"

    _each_in_savepoint(
        session, entries, stats, lambda e: f"{org_slug}/{e.ign}", handle,
        on_error=rollback_entry,
    )
    return stats


# =============================================================================
# Transfers
# =============================================================================

def record_transfers(
    session: Session,
    transfers: Iterable[ScrapedTransfer],
    resolver: OrgResolver,
) -> EntitySyncStats:
    """
    Insert transfers that are not stored yet. Existing rows are never changed.

    Player rows are linked when the name or wiki URL is known; otherwise the
    transfer carries a "wiki-<name>" placeholder account id.
    """
    stats = EntitySyncStats()

    def handle(scraped: ScrapedTransfer) -> str:
        conditions = [func.lower(Player.current_ign) == scraped.player_name.lower()]
        if scraped.player_wiki_url:
            conditions.append(Player.wiki_url == scraped.player_wiki_url)
        player = None
        for condition in conditions:
            player = session.execute(select(Player).where(condition).limit(1)).scalar_one_or_none()
            if player is not None:
                break

        from_slug = resolver.resolve_or_create(scraped.from_org)
        to_slug = resolver.resolve_or_create(scraped.to_org)

        existing = session.execute(
            select(PlayerTransfer.id).where(
                func.lower(PlayerTransfer.player_name) == scraped.player_name.lower(),
                PlayerTransfer.transfer_date == scraped.transfer_date,
                PlayerTransfer.from_org_slug.is_(None) if from_slug is None
                else PlayerTransfer.from_org_slug == from_slug,
                PlayerTransfer.to_org_slug.is_(None) if to_slug is None
                else PlayerTransfer.to_org_slug == to_slug,
            ).limit(1)
        ).scalar_one_or_none()
        if existing is not None:
            return "unchanged"

        account_id = player.epic_account_id if player and player.epic_account_id else None
        session.add(PlayerTransfer(
            player_id=player.player_id if player else None,
            account_id=account_id or placeholder_account_id(scraped.player_name),
            player_name=scraped.player_name,
            from_org_slug=from_slug,
            to_org_slug=to_slug,
            transfer_date=scraped.transfer_date,
            transfer_type=scraped.transfer_type,
            details=scraped.details,
        ))
        return "created"

    _each_in_savepoint(
        session, transfers, stats,
        lambda t: f"{t.player_name} ({t.transfer_date})", handle,
        on_error=resolver.reload,
    )
    return stats


# =============================================================================
# Platform results
# =============================================================================

def upsert_platform_results(
    session: Session,
    results: Iterable[ScrapedPlatformResult],
) -> EntitySyncStats:
    """
    Upsert platform results and link them to players that own the account id.
    """
    stats = EntitySyncStats()
    owner_cache: dict[str, Optional[str]] = {}

    def owner_of(account_id: str) -> Optional[str]:
        if account_id not in owner_cache:
            owner_cache[account_id] = session.execute(
                select(Player.player_id).where(Player.epic_account_id == account_id)
            ).scalar_one_or_none()
        return owner_cache[account_id]

    def handle(scraped: ScrapedPlatformResult) -> str:
        existing = session.execute(
            select(TournamentResult).where(
                TournamentResult.window_id == scraped.window_id,
                TournamentResult.account_id == scraped.account_id,
            )
        ).scalar_one_or_none()

        values = {
            "event_id": scraped.event_id,
            "display_name": scraped.display_name,
            "rank": scraped.rank,
            "points": scraped.points,
        }
        linked = owner_of(scraped.account_id)
        if linked:
            values["linked_player_id"] = linked

        if existing is None:
            session.add(TournamentResult(
                window_id=scraped.window_id,
                account_id=scraped.account_id,
                **values,
            ))
            return "created"
        return "updated" if apply_changes(existing, values) else "unchanged"

    _each_in_savepoint(
        session, results, stats,
        lambda r: f"{r.window_id}/{r.account_id}", handle,
    )
    return stats
