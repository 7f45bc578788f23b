"""
Unit tests for the entity sync service.

Each test runs inside the rolled-back transaction from conftest, so the
savepoint-per-entity behaviour is exercised against a real database.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import select

from compsync.db.models import (
    Organization,
    Player,
    PlayerTransfer,
    TeamRoster,
    Tournament,
    TournamentResult,
)
from compsync.orgs import OrgResolver
from compsync.players.identity import PlayerIdentityService
from compsync.scrape.base import (
    ScrapedOrg,
    ScrapedPlatformResult,
    ScrapedRosterEntry,
    ScrapedTournament,
    ScrapedTransfer,
)
from compsync.services.entity_sync import (
    EntitySyncStats,
    find_or_create_player,
    record_transfers,
    sync_roster,
    upsert_organizations,
    upsert_platform_results,
    upsert_tournaments,
)

ACCOUNT_A = "a" * 32


class TestUpsertTournaments:
    """Tests for upsert_tournaments."""

    def test_create_update_unchanged(self, db_session):
        scraped = ScrapedTournament(
            tournament_id="fncs-major-1",
            name="FNCS Major 1",
            start_date=date(2024, 3, 15),
            prize_pool=Decimal("1000000"),
            status="upcoming",
        )
        assert upsert_tournaments(db_session, [scraped]).created == 1
        assert upsert_tournaments(db_session, [scraped]).unchanged == 1

        scraped.status = "completed"
        assert upsert_tournaments(db_session, [scraped]).updated == 1
        assert db_session.get(Tournament, "fncs-major-1").status == "completed"

    def test_sparse_listing_keeps_known_fields(self, db_session):
        upsert_tournaments(db_session, [ScrapedTournament(
            tournament_id="fncs-major-1",
            name="FNCS Major 1",
            tier="S-Tier",
            prize_pool=Decimal("1000000"),
        )])

        stats = upsert_tournaments(db_session, [
            ScrapedTournament(tournament_id="fncs-major-1", name="FNCS Major 1"),
        ])

        tournament = db_session.get(Tournament, "fncs-major-1")
        assert stats.unchanged == 1
        assert tournament.tier == "S-Tier"
        assert tournament.prize_pool == Decimal("1000000")

    def test_failing_entity_does_not_stop_batch(self, db_session):
        stats = upsert_tournaments(db_session, [
            ScrapedTournament(tournament_id="broken", name=None),
            ScrapedTournament(tournament_id="cash-cup", name="Cash Cup"),
        ])

        assert stats.total == 2
        assert stats.created == 1
        assert len(stats.errors) == 1
        assert stats.errors[0].startswith("broken:")
        assert db_session.get(Tournament, "cash-cup") is not None


class TestOrganizationsAndRosters:
    """Tests for upsert_organizations and sync_roster."""

    def test_organizations_feed_resolver(self, db_session):
        resolver = OrgResolver(db_session)
        stats = upsert_organizations(
            db_session,
            [ScrapedOrg(slug="team-liquid", name="Team Liquid", region="Europe")],
            resolver=resolver,
        )

        assert stats.created == 1
        assert resolver.match("Liquid") == "team-liquid"

    def test_roster_creates_players_once(self, db_session):
        db_session.add(Organization(slug="team-liquid", name="Team Liquid"))
        db_session.flush()
        identity = PlayerIdentityService(db_session)
        entries = [
            ScrapedRosterEntry(ign="Bugha", wiki_url="https://liquipedia.net/fortnite/Bugha", real_name="Kyle"),
            ScrapedRosterEntry(ign="Coachy", role="Coach"),
        ]

        first = sync_roster(db_session, "team-liquid", entries, identity)
        second = sync_roster(db_session, "team-liquid", entries, identity)

        assert (first.created, first.players_created) == (2, 2)
        assert (second.unchanged, second.players_created) == (2, 0)
        players = db_session.execute(select(Player)).scalars().all()
        assert sorted(p.current_ign for p in players) == ["Bugha", "Coachy"]
        # Unlinked players leave the roster account id empty
        rows = db_session.execute(select(TeamRoster)).scalars().all()
        assert [r.account_id for r in rows] == [None, None]

    def test_roster_status_change(self, db_session):
        db_session.add(Organization(slug="team-liquid", name="Team Liquid"))
        db_session.flush()
        identity = PlayerIdentityService(db_session)
        sync_roster(db_session, "team-liquid", [ScrapedRosterEntry(ign="Bugha")], identity)

        stats = sync_roster(
            db_session, "team-liquid", [ScrapedRosterEntry(ign="bugha", status="former")], identity,
        )

        row = db_session.execute(select(TeamRoster)).scalar_one()
        assert stats.updated == 1
        assert row.status == "former"
        assert row.player_name == "Bugha"

    def test_failed_entry_does_not_leak_into_later_entries(self, db_session):
        db_session.add(Organization(slug="team-liquid", name="Team Liquid"))
        db_session.flush()
        identity = PlayerIdentityService(db_session)
        entries = [
            # Rejected by the status check constraint
            ScrapedRosterEntry(ign="Alpha", status="loaned"),
            ScrapedRosterEntry(ign="Alpha", status="current"),
        ]

        stats = sync_roster(db_session, "team-liquid", entries, identity)

        assert len(stats.errors) == 1
        assert (stats.created, stats.updated, stats.players_created) == (1, 0, 1)
        row = db_session.execute(select(TeamRoster)).scalar_one()
        assert (row.player_name, row.status) == ("Alpha", "current")
        assert len(db_session.execute(select(Player)).scalars().all()) == 1

    def test_find_or_create_fills_missing_fields(self, db_session):
        identity = PlayerIdentityService(db_session)
        existing = identity.create_player("Bugha")

        player, created = find_or_create_player(
            identity, "BUGHA", wiki_url="https://liquipedia.net/fortnite/Bugha", nationality="US",
        )

        assert created is False
        assert player is existing
        assert player.wiki_url == "https://liquipedia.net/fortnite/Bugha"
        assert player.nationality == "US"


class TestRecordTransfers:
    """Tests for record_transfers."""

    def _transfer(self, **overrides):
        values = dict(
            player_name="Bugha",
            transfer_date=date(2024, 3, 5),
            transfer_type="transfer",
            from_org="Sentinels",
            to_org="Team Liquid",
        )
        values.update(overrides)
        return ScrapedTransfer(**values)

    def test_insert_once_with_placeholder_account(self, db_session):
        resolver = OrgResolver(db_session)

        first = record_transfers(db_session, [self._transfer()], resolver)
        second = record_transfers(db_session, [self._transfer(player_name="bugha")], resolver)

        assert first.created == 1
        assert second.unchanged == 1
        transfer = db_session.execute(select(PlayerTransfer)).scalar_one()
        assert transfer.account_id == "wiki-Bugha"
        assert transfer.player_id is None
        assert (transfer.from_org_slug, transfer.to_org_slug) == ("sentinels", "team-liquid")

    def test_links_known_player(self, db_session):
        identity = PlayerIdentityService(db_session)
        player = identity.create_player("Bugha")
        identity.link_account_id_to_player(player.player_id, ACCOUNT_A)

        record_transfers(db_session, [self._transfer(to_org=None, transfer_type="leave")], OrgResolver(db_session))

        transfer = db_session.execute(select(PlayerTransfer)).scalar_one()
        assert transfer.player_id == player.player_id
        assert transfer.account_id == ACCOUNT_A
        assert transfer.to_org_slug is None

    def test_variant_org_name_maps_to_existing_slug(self, db_session):
        db_session.add(Organization(slug="team-liquid", name="Team Liquid"))
        db_session.flush()

        record_transfers(db_session, [self._transfer(to_org="Liquid")], OrgResolver(db_session))

        transfer = db_session.execute(select(PlayerTransfer)).scalar_one()
        assert transfer.to_org_slug == "team-liquid"

    def test_failed_transfer_does_not_leak_created_org(self, db_session):
        resolver = OrgResolver(db_session)
        transfers = [
            # No date: the insert fails after the org was created
            self._transfer(from_org=None, to_org="Sentinels", transfer_date=None),
            self._transfer(from_org=None, to_org="Sentinels"),
        ]

        stats = record_transfers(db_session, transfers, resolver)

        assert len(stats.errors) == 1
        assert stats.created == 1
        assert db_session.get(Organization, "sentinels") is not None
        transfer = db_session.execute(select(PlayerTransfer)).scalar_one()
        assert transfer.to_org_slug == "sentinels"

    def test_long_name_placeholder_fits_column(self, db_session):
        name = "x" * 100

        record_transfers(db_session, [self._transfer(player_name=name)], OrgResolver(db_session))

        transfer = db_session.execute(select(PlayerTransfer)).scalar_one()
        assert transfer.account_id == ("wiki-" + name)[:64]
        assert transfer.player_name == name


class TestUpsertPlatformResults:
    """Tests for upsert_platform_results."""

    def test_upsert_and_link(self, db_session):
        identity = PlayerIdentityService(db_session)
        player = identity.create_player("Bugha")
        identity.link_account_id_to_player(player.player_id, ACCOUNT_A)
        result = ScrapedPlatformResult(
            event_id="evt", window_id="w1", account_id=ACCOUNT_A,
            display_name="Bugha", rank=3, points=50,
        )

        assert upsert_platform_results(db_session, [result]).created == 1
        assert upsert_platform_results(db_session, [result]).unchanged == 1

        result.rank = 1
        assert upsert_platform_results(db_session, [result]).updated == 1

        row = db_session.execute(select(TournamentResult)).scalar_one()
        assert row.rank == 1
        assert row.linked_player_id == player.player_id


class TestEntitySyncStats:
    """Tests for EntitySyncStats bookkeeping."""

    def test_merge_and_summary(self):
        first = EntitySyncStats(total=2, created=2)
        second = EntitySyncStats(total=1, unchanged=1, errors=["x: boom"])
        first.merge(second)

        assert first.to_metrics() == {
            "total": 3,
            "created": 2,
            "updated": 0,
            "unchanged": 1,
            "players_created": 0,
            "errors": 1,
        }
        summary = first.summary("Transfers")
        assert summary.startswith("Transfers sync complete:")
        assert "x: boom" in summary
