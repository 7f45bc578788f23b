"""
Sync stage runners.

Each runner takes a StageContext and returns its metrics dict. The shape of
every stage is the same: fetch a document (after ctx.throttle.wait()), parse
it, write it through a service inside ctx.session_scope().

Fetch failures for one entity (one organization roster, one player page)
are logged with the entity and the loop moves on. Anything else, including
a failed fetch of a stage's top-level document, propagates to the
orchestrator, which records the stage as failed.

Options read from ctx.options:
    year           tournaments: listing year (default: run year)
    limit          teams/players/earnings: cap on entities fetched
    player         earnings: restrict to one player (any identifier
                   accepted by resolve_player_identity)
    events_url     reference: override settings.platform_events_url
"""

import logging
from typing import Optional

from sqlalchemy import select

from compsync.config import settings
from compsync.db.models import Player
from compsync.orgs import OrgResolver
from compsync.players.identity import PlayerIdentityService, PlayerNotFoundError
from compsync.scrape.fetch import FetchError
from compsync.scrape.platform import parse_platform_results
from compsync.scrape.wiki import (
    org_portal_url,
    parse_org_portal,
    parse_player_profile,
    parse_roster,
    parse_tournament_table,
    parse_transfers,
    previous_month,
    results_page_url,
    tournament_portal_url,
    tournaments_year_url,
    transfers_url,
)
from compsync.services.earnings_ingestion import EarningsIngestionStats, ingest_player_earnings
from compsync.services.entity_sync import (
    EntitySyncStats,
    record_transfers,
    sync_roster,
    upsert_organizations,
    upsert_platform_results,
    upsert_tournaments,
)
from compsync.tasks.runtime import StageContext, StageSkipped

logger = logging.getLogger(__name__)


async def _fetch_html(ctx: StageContext, url: str) -> str:
    await ctx.throttle.wait()
    logger.debug("[%s] Fetching %s", ctx.stage_name, url)
    return await ctx.fetcher.fetch_html(url)


def _limited(items: list, ctx: StageContext) -> list:
    limit = ctx.options.get("limit")
    return items[:limit] if limit else items


# =============================================================================
# Tournaments / Schedule
# =============================================================================

async def sync_tournaments(ctx: StageContext) -> dict:
    """Upsert every tournament listed for the year."""
    year = int(ctx.options.get("year") or ctx.started_at.year)
    html = await _fetch_html(ctx, tournaments_year_url(year))
    tournaments = parse_tournament_table(html, today=ctx.started_at.date())

    with ctx.session_scope() as session:
        stats = upsert_tournaments(session, tournaments)

    logger.info(stats.summary("Tournament"))
    return {"year": year, "parsed": len(tournaments), **stats.to_metrics()}


async def sync_schedule(ctx: StageContext) -> dict:
    """Upsert the upcoming tournaments from the tournament portal."""
    html = await _fetch_html(ctx, tournament_portal_url())
    upcoming = [
        t for t in parse_tournament_table(html, today=ctx.started_at.date())
        if t.status == "upcoming"
    ]

    with ctx.session_scope() as session:
        stats = upsert_tournaments(session, upcoming)

    logger.info(stats.summary("Schedule"))
    return {"upcoming": len(upcoming), **stats.to_metrics()}


# =============================================================================
# Teams
# =============================================================================

async def sync_teams(ctx: StageContext) -> dict:
    """Upsert organizations, then the roster of each one."""
    html = await _fetch_html(ctx, org_portal_url())
    orgs = parse_org_portal(html)

    with ctx.session_scope() as session:
        org_stats = upsert_organizations(session, orgs, OrgResolver(session))
    logger.info(org_stats.summary("Organization"))

    roster_stats = EntitySyncStats()
    fetch_failures = 0
    for org in _limited([o for o in orgs if o.wiki_url], ctx):
        try:
            roster_html = await _fetch_html(ctx, org.wiki_url)
        except FetchError as e:
            fetch_failures += 1
            logger.error("Failed to fetch roster for %s: %s", org.slug, e)
            continue

        entries = parse_roster(roster_html)
        if not entries:
            logger.debug("No roster entries on %s", org.wiki_url)
            continue

        with ctx.session_scope() as session:
            roster_stats.merge(sync_roster(session, org.slug, entries, PlayerIdentityService(session)))

    logger.info(roster_stats.summary("Roster"))
    return {
        "organizations": org_stats.to_metrics(),
        "rosters": roster_stats.to_metrics(),
        "fetch_failures": fetch_failures,
    }


# =============================================================================
# Players
# =============================================================================

async def sync_players(ctx: StageContext) -> dict:
    """
    Refresh IGNs from player infoboxes, then reconcile account ids.

    A changed infobox IGN goes through update_player_ign so the IGN history
    keeps exactly one open entry.
    """
    with ctx.session_scope() as session:
        targets = session.execute(
            select(Player.player_id, Player.wiki_url)
            .where(Player.wiki_url.is_not(None))
            .order_by(Player.current_ign)
        ).all()

    checked = renamed = fetch_failures = missing = 0
    for player_id, wiki_url in _limited(list(targets), ctx):
        try:
            html = await _fetch_html(ctx, wiki_url)
        except FetchError as e:
            fetch_failures += 1
            logger.error("Failed to fetch player %s: %s", player_id, e)
            continue

        profile = parse_player_profile(html)
        if profile is None:
            missing += 1
            continue
        checked += 1

        with ctx.session_scope() as session:
            identity = PlayerIdentityService(session)
            if identity.update_player_ign(player_id, profile.ign):
                renamed += 1
            player = session.get(Player, player_id)
            if profile.real_name and not player.real_name:
                player.real_name = profile.real_name
            if profile.nationality and not player.nationality:
                player.nationality = profile.nationality

    with ctx.session_scope() as session:
        reconcile = PlayerIdentityService(session).reconcile_account_ids()

    logger.info(
        "Player sync complete: %d checked, %d renamed, %d fetch failures, %d account ids linked",
        checked, renamed, fetch_failures, reconcile.linked,
    )
    return {
        "checked": checked,
        "renamed": renamed,
        "missing_infobox": missing,
        "fetch_failures": fetch_failures,
        "reconcile": reconcile.to_metrics(),
    }


# =============================================================================
# Reference (platform live data)
# =============================================================================

async def sync_reference(ctx: StageContext) -> dict:
    """Upsert platform event results and link them to known players."""
    url = ctx.options.get("events_url") or settings.platform_events_url
    if not url:
        raise StageSkipped("platform_events_url is not configured")

    await ctx.throttle.wait()
    payload = await ctx.fetcher.fetch_json(url)
    results = parse_platform_results(payload)

    with ctx.session_scope() as session:
        stats = upsert_platform_results(session, results)

    logger.info(stats.summary("Reference"))
    return {"entries": len(results), **stats.to_metrics()}


# =============================================================================
# Transfers
# =============================================================================

async def sync_transfers(ctx: StageContext) -> dict:
    """
    Record this month's transfers.

    Early in a month the wiki may not have created the page yet; a 404 falls
    back to the previous month.
    """
    year, month = ctx.started_at.year, ctx.started_at.month
    try:
        html = await _fetch_html(ctx, transfers_url(year, month))
    except FetchError as e:
        if not e.is_not_found:
            raise
        year, month = previous_month(year, month)
        logger.info("No transfer page yet for this month, using %d-%02d", year, month)
        html = await _fetch_html(ctx, transfers_url(year, month))

    transfers = parse_transfers(html)

    with ctx.session_scope() as session:
        stats = record_transfers(session, transfers, OrgResolver(session))

    logger.info(stats.summary("Transfer"))
    return {"month": f"{year}-{month:02d}", "parsed": len(transfers), **stats.to_metrics()}


# =============================================================================
# Earnings
# =============================================================================

def _earnings_targets(ctx: StageContext) -> list[tuple[str, str]]:
    identifier = ctx.options.get("player")
    with ctx.session_scope() as session:
        if identifier:
            player = PlayerIdentityService(session).resolve_player_identity(identifier)
            if player is None:
                raise PlayerNotFoundError(f"No player matches '{identifier}'")
            if not player.wiki_url:
                raise PlayerNotFoundError(f"Player {player.current_ign} has no wiki page")
            return [(player.player_id, player.wiki_url)]

        rows = session.execute(
            select(Player.player_id, Player.wiki_url)
            .where(Player.wiki_url.is_not(None))
            .order_by(Player.current_ign)
        ).all()
    return _limited([(pid, url) for pid, url in rows], ctx)


async def _fetch_results_page(ctx: StageContext, wiki_url: str) -> Optional[str]:
    """The player's /Results subpage, else the main page, else None."""
    try:
        return await _fetch_html(ctx, results_page_url(wiki_url))
    except FetchError as e:
        logger.debug("Results subpage unavailable (%s), trying main page", e)

    try:
        return await _fetch_html(ctx, wiki_url)
    except FetchError as e:
        logger.error("Failed to fetch earnings for %s: %s", wiki_url, e)
        return None


async def sync_earnings(ctx: StageContext) -> dict:
    """Ingest the results table of every player with a wiki page."""
    stats = EarningsIngestionStats()
    fetch_failures = 0

    for player_id, wiki_url in _earnings_targets(ctx):
        html = await _fetch_results_page(ctx, wiki_url)
        if html is None:
            fetch_failures += 1
            continue

        with ctx.session_scope() as session:
            stats.merge(ingest_player_earnings(session, player_id, html))

    logger.info(stats.summary())
    return {**stats.to_metrics(), "fetch_failures": fetch_failures}
