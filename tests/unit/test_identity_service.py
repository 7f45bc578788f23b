"""
Unit tests for PlayerIdentityService.

Covers account id discovery from platform results, conflict-checked
linking, the identifier resolution order and IGN history.
"""

import uuid

import pytest
from sqlalchemy import select

from compsync.db.models import (
    PlayerIgnHistory,
    PlayerTransfer,
    TeamRoster,
    TournamentResult,
)
from compsync.players.identity import (
    PlayerIdentityService,
    PlayerNotFoundError,
    is_account_id,
    is_placeholder_account_id,
    is_uuid,
)

ACCOUNT_A = "a" * 32
ACCOUNT_B = "0123456789abcdef0123456789abcdef"


@pytest.fixture
def service(db_session):
    return PlayerIdentityService(db_session, min_confidence=2)


def _result(db_session, account_id, display_name, window):
    db_session.add(TournamentResult(
        event_id="evt",
        window_id=window,
        account_id=account_id,
        display_name=display_name,
    ))
    db_session.flush()


class TestShapes:
    """Tests for identifier shape checks."""

    def test_account_id(self):
        assert is_account_id(ACCOUNT_B)
        assert is_account_id(ACCOUNT_B.upper())
        assert not is_account_id("wiki-bugha")
        assert not is_account_id("abc")

    def test_uuid(self):
        assert is_uuid(str(uuid.uuid4()))
        assert is_uuid(ACCOUNT_B)  # 32 hex chars parse as a UUID too
        assert not is_uuid("Bugha")

    def test_placeholder(self):
        assert is_placeholder_account_id("wiki-Bugha")
        assert is_placeholder_account_id("player_123")
        assert not is_placeholder_account_id(ACCOUNT_A)


class TestDiscoverAccountId:
    """Tests for discover_account_id_for_player."""

    def test_most_frequent_candidate_wins(self, db_session, service):
        player = service.create_player("Bugha")
        _result(db_session, ACCOUNT_A, "bugha", "w1")
        _result(db_session, ACCOUNT_B, "Bugha", "w2")
        _result(db_session, ACCOUNT_B, "BUGHA", "w3")

        assert service.discover_account_id_for_player(player.player_id) == ACCOUNT_B
        assert service.low_confidence_hits == 0

    def test_historical_igns_count(self, db_session, service):
        player = service.create_player("Bugha")
        service.update_player_ign(player.player_id, "Bugha2")
        _result(db_session, ACCOUNT_A, "Bugha", "w1")
        _result(db_session, ACCOUNT_A, "Bugha2", "w2")

        assert service.discover_account_id_for_player(player.player_id) == ACCOUNT_A

    def test_placeholder_and_malformed_ids_are_ignored(self, db_session, service):
        player = service.create_player("Bugha")
        for window in ("w1", "w2", "w3"):
            _result(db_session, "wiki-Bugha", "Bugha", window)
            _result(db_session, "not-a-hex-id", "Bugha", window)

        assert service.discover_account_id_for_player(player.player_id) is None

    def test_single_appearance_is_returned_with_low_confidence(self, db_session, service):
        player = service.create_player("Bugha")
        _result(db_session, ACCOUNT_A, "Bugha", "w1")

        assert service.discover_account_id_for_player(player.player_id) == ACCOUNT_A
        assert service.low_confidence_hits == 1

    def test_existing_link_is_returned(self, db_session, service):
        player = service.create_player("Bugha")
        player.epic_account_id = ACCOUNT_B
        _result(db_session, ACCOUNT_A, "Bugha", "w1")

        assert service.discover_account_id_for_player(player.player_id) == ACCOUNT_B


class TestLinkAccountId:
    """Tests for link_account_id_to_player."""

    def test_link_is_idempotent(self, service):
        player = service.create_player("Bugha")

        assert service.link_account_id_to_player(player.player_id, ACCOUNT_A) is True
        assert service.link_account_id_to_player(player.player_id, ACCOUNT_A) is True
        assert player.epic_account_id == ACCOUNT_A

    def test_conflict_returns_false_and_changes_nothing(self, service):
        owner = service.create_player("Bugha")
        other = service.create_player("Clix")
        service.link_account_id_to_player(owner.player_id, ACCOUNT_A)

        assert service.link_account_id_to_player(other.player_id, ACCOUNT_A) is False
        assert owner.epic_account_id == ACCOUNT_A
        assert other.epic_account_id is None

    def test_link_propagates_to_rosters_and_transfers(self, db_session, service):
        player = service.create_player("Bugha")
        db_session.add(TeamRoster(
            org_slug="sentinels", player_id=player.player_id,
            player_name="Bugha", account_id="wiki-Bugha",
        ))
        db_session.add(PlayerTransfer(
            player_id=player.player_id, player_name="Bugha", account_id="wiki-Bugha",
            transfer_date=player.created_at.date(), transfer_type="join",
        ))
        db_session.flush()

        service.link_account_id_to_player(player.player_id, ACCOUNT_A)

        roster_ids = db_session.execute(select(TeamRoster.account_id)).scalars().all()
        transfer_ids = db_session.execute(select(PlayerTransfer.account_id)).scalars().all()
        assert roster_ids == [ACCOUNT_A]
        assert transfer_ids == [ACCOUNT_A]

    def test_unknown_player_raises(self, service):
        with pytest.raises(PlayerNotFoundError):
            service.link_account_id_to_player(str(uuid.uuid4()), ACCOUNT_A)

    def test_reconcile_links_and_counts_conflicts(self, db_session, service):
        owner = service.create_player("Bugha")
        service.link_account_id_to_player(owner.player_id, ACCOUNT_A)
        # An old IGN of another player shares the owner's account id
        imposter = service.create_player("Bugha_old")
        clix = service.create_player("Clix")
        _result(db_session, ACCOUNT_A, "Bugha_old", "w1")
        _result(db_session, ACCOUNT_B, "Clix", "w1")
        _result(db_session, ACCOUNT_B, "Clix", "w2")

        stats = service.reconcile_account_ids()

        assert stats.linked == 1
        assert stats.conflicts == 1
        assert stats.linked_players == [clix.player_id]
        assert imposter.epic_account_id is None
        assert clix.epic_account_id == ACCOUNT_B


class TestResolvePlayerIdentity:
    """Tests for the lookup order of resolve_player_identity."""

    def test_account_id_is_tried_first(self, db_session, service):
        # Player whose UUID (without hyphens) is also another player's account id
        target = service.create_player("Target")
        shadow_id = uuid.UUID(target.player_id).hex
        owner = service.create_player("Owner")
        service.link_account_id_to_player(owner.player_id, shadow_id)

        assert service.resolve_player_identity(shadow_id) is owner

    def test_hex_miss_falls_through_to_uuid(self, service):
        target = service.create_player("Target")
        hex_id = uuid.UUID(target.player_id).hex

        assert service.resolve_player_identity(hex_id) is target

    def test_account_id_via_linked_result(self, db_session, service):
        player = service.create_player("Bugha")
        db_session.add(TournamentResult(
            event_id="evt", window_id="w1", account_id=ACCOUNT_A,
            display_name="Bugha", linked_player_id=player.player_id,
        ))
        db_session.flush()

        assert service.resolve_player_identity(ACCOUNT_A) is player

    def test_wiki_url(self, service):
        player = service.create_player("Bugha", wiki_url="https://liquipedia.net/fortnite/Bugha")

        assert service.resolve_player_identity("https://liquipedia.net/fortnite/Bugha") is player
        assert service.resolve_player_identity("/fortnite/Bugha") is player

    def test_current_and_historical_ign(self, service):
        player = service.create_player("Bugha")
        service.update_player_ign(player.player_id, "Bugha2")

        assert service.resolve_player_identity("bugha2") is player
        assert service.resolve_player_identity("BUGHA") is player
        assert service.resolve_player_identity("Nobody") is None


class TestUpdatePlayerIgn:
    """Tests for IGN history maintenance."""

    def _open_entries(self, db_session, player_id):
        return db_session.execute(
            select(PlayerIgnHistory).where(
                PlayerIgnHistory.player_id == player_id,
                PlayerIgnHistory.used_until.is_(None),
            )
        ).scalars().all()

    def test_change_closes_old_entry(self, db_session, service):
        player = service.create_player("Bugha")

        assert service.update_player_ign(player.player_id, "Bugha2") is True

        open_entries = self._open_entries(db_session, player.player_id)
        assert [e.ign for e in open_entries] == ["Bugha2"]
        assert player.current_ign == "Bugha2"
        assert len(player.ign_history) == 2

    def test_case_only_change_is_noop(self, db_session, service):
        player = service.create_player("Bugha")

        assert service.update_player_ign(player.player_id, "BUGHA") is False
        assert player.current_ign == "Bugha"
        assert len(self._open_entries(db_session, player.player_id)) == 1

    def test_repeated_changes_keep_one_open_entry(self, db_session, service):
        player = service.create_player("A1")
        for ign in ("A2", "A3", "A4"):
            service.update_player_ign(player.player_id, ign)

        assert len(self._open_entries(db_session, player.player_id)) == 1
        assert [h.ign for h in player.ign_history] == ["A1", "A2", "A3", "A4"]

    def test_unknown_player_raises(self, service):
        with pytest.raises(PlayerNotFoundError):
            service.update_player_ign(str(uuid.uuid4()), "x")
