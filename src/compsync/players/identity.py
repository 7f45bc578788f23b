"""
Player identity service for bridging wiki players and platform accounts.

Wiki data identifies a player by IGN or wiki URL; the platform's result
feeds identify them by a 32-character hex account id. This service links
the two:

- discover_account_id_for_player(): vote over platform result rows whose
  display name matches any IGN the player has used
- link_account_id_to_player(): store the id, refusing to steal it from
  another player, and copy it onto roster/transfer rows
- resolve_player_identity(): find a player from any identifier, trying the
  least ambiguous kind first:
    1. platform account id (32 hex chars)
    2. internal player UUID
    3. wiki URL
    4. current IGN, then IGN history
- update_player_ign(): the only writer of IGN history

Conflicts are never auto-resolved. link_account_id_to_player() returns False
and the operator decides which player owns the id.
"""

import logging
import re
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from compsync.config import settings
from compsync.db.models import (
    Player,
    PlayerIgnHistory,
    PlayerTransfer,
    TeamRoster,
    TournamentResult,
)

logger = logging.getLogger(__name__)

_ACCOUNT_ID = re.compile(r"^[a-f0-9]{32}$", re.IGNORECASE)

# Synthetic ids written by wiki scrapes and placeholder feeds
PLACEHOLDER_PREFIXES = ("wiki-", "player_")

# Width of every account_id column
ACCOUNT_ID_MAX_LENGTH = 64


class PlayerNotFoundError(LookupError):
    """Raised when an operation names a player_id that does not exist."""


def is_account_id(value: str) -> bool:
    """True for strings shaped like a platform account id."""
    return bool(value) and bool(_ACCOUNT_ID.match(value))


def is_uuid(value: str) -> bool:
    """True for anything uuid.UUID() accepts (hyphenated or 32 hex chars)."""
    try:
        uuid.UUID(value)
    except (TypeError, ValueError, AttributeError):
        return False
    return True


def is_placeholder_account_id(value: str) -> bool:
    return value.startswith(PLACEHOLDER_PREFIXES)


def placeholder_account_id(name: str) -> str:
    """
    Placeholder account id for a player known only by wiki name.

    Cut to ACCOUNT_ID_MAX_LENGTH so it fits the account_id columns.
    """
    return f"wiki-{name}"[:ACCOUNT_ID_MAX_LENGTH]


@dataclass
class ReconcileStats:
    """Statistics from an account-id reconciliation pass."""
    players_checked: int = 0
    discovered: int = 0
    linked: int = 0
    conflicts: int = 0
    low_confidence: int = 0
    linked_players: list[str] = field(default_factory=list)

    def to_metrics(self) -> dict:
        return {
            "players_checked": self.players_checked,
            "discovered": self.discovered,
            "linked": self.linked,
            "conflicts": self.conflicts,
            "low_confidence": self.low_confidence,
        }


class PlayerIdentityService:
    """
    Service for resolving and linking player identities.

    Usage:
        service = PlayerIdentityService(db_session)

        account_id = service.discover_account_id_for_player(player_id)
        if account_id and service.link_account_id_to_player(player_id, account_id):
            ...

        player = service.resolve_player_identity("Bugha")
    """

    def __init__(self, db: Session, min_confidence: Optional[int] = None):
        """
        Initialize the identity service.

        Args:
            db: SQLAlchemy session for database operations
            min_confidence: Appearance count below which a discovered id is
                logged as low confidence (it is still returned)
        """
        self.db = db
        self.min_confidence = (
            min_confidence if min_confidence is not None else settings.identity_min_confidence
        )
        self.low_confidence_hits = 0

    # =========================================================================
    # Discovery / Linking
    # =========================================================================

    def all_igns(self, player: Player) -> list[str]:
        """Current IGN followed by every historical IGN, without repeats."""
        igns: list[str] = []
        for ign in [player.current_ign, *(h.ign for h in player.ign_history)]:
            if ign and ign not in igns:
                igns.append(ign)
        return igns

    def discover_account_id_for_player(self, player_id: str) -> Optional[str]:
        """
        Find the most likely platform account id for a player.

        Returns the existing id if one is already linked. Otherwise counts
        result rows per account id across all of the player's IGNs
        (case-insensitive) and returns the id with the most rows. Ties go
        to the id seen first. Placeholder and non-hex ids never qualify.
        """
        player = self.db.get(Player, player_id)
        if player is None:
            return None
        if player.epic_account_id:
            return player.epic_account_id

        igns = self.all_igns(player)
        if not igns:
            return None

        lowered = [ign.lower() for ign in igns]
        rows = self.db.execute(
            select(TournamentResult.account_id)
            .where(func.lower(TournamentResult.display_name).in_(lowered))
            .order_by(TournamentResult.id)
        ).scalars().all()

        counts: Counter[str] = Counter()
        for account_id in rows:
            if is_placeholder_account_id(account_id):
                continue
            if not is_account_id(account_id):
                continue
            counts[account_id] += 1

        if not counts:
            return None

        # Counter.most_common keeps insertion order among equal counts
        best_account_id, best_count = counts.most_common(1)[0]

        if best_count < self.min_confidence:
            self.low_confidence_hits += 1
            logger.warning(
                "Low confidence account id for %s: only %d appearance(s)",
                player.current_ign, best_count,
            )

        return best_account_id

    def link_account_id_to_player(self, player_id: str, account_id: str) -> bool:
        """
        Attach an account id to a player.

        Returns False without writing anything if a different player already
        owns the id. On success, roster and transfer rows of the player get
        the same id.

        Raises:
            PlayerNotFoundError: If player_id does not exist
        """
        player = self.db.get(Player, player_id)
        if player is None:
            raise PlayerNotFoundError(player_id)

        owner = self.db.execute(
            select(Player).where(Player.epic_account_id == account_id)
        ).scalar_one_or_none()

        if owner is not None and owner.player_id != player_id:
            logger.warning(
                "Account id %s already linked to %s (%s)",
                account_id, owner.current_ign, owner.player_id,
            )
            return False

        player.epic_account_id = account_id
        player.last_updated = datetime.utcnow()

        self.db.execute(
            update(TeamRoster)
            .where(TeamRoster.player_id == player_id)
            .values(account_id=account_id)
        )
        self.db.execute(
            update(PlayerTransfer)
            .where(PlayerTransfer.player_id == player_id)
            .values(account_id=account_id)
        )
        self.db.flush()
        return True

    def batch_discover_account_ids(self, player_ids: Iterable[str]) -> dict[str, str]:
        """Discover ids for many players; players with no candidate are omitted."""
        found: dict[str, str] = {}
        for player_id in player_ids:
            account_id = self.discover_account_id_for_player(player_id)
            if account_id:
                found[player_id] = account_id
        return found

    def reconcile_account_ids(self, player_ids: Optional[Iterable[str]] = None) -> ReconcileStats:
        """
        Discover and link account ids for players that have none.

        Each link runs in its own savepoint so a constraint failure on one
        player does not undo the others.
        """
        if player_ids is None:
            player_ids = self.db.execute(
                select(Player.player_id).where(Player.epic_account_id.is_(None))
            ).scalars().all()

        stats = ReconcileStats()
        low_before = self.low_confidence_hits

        for player_id in player_ids:
            stats.players_checked += 1
            player = self.db.get(Player, player_id)
            if player is None or player.epic_account_id:
                continue

            account_id = self.discover_account_id_for_player(player_id)
            if not account_id:
                continue
            stats.discovered += 1

            with self.db.begin_nested():
                linked = self.link_account_id_to_player(player_id, account_id)
            if linked:
                stats.linked += 1
                stats.linked_players.append(player_id)
            else:
                stats.conflicts += 1

        stats.low_confidence = self.low_confidence_hits - low_before
        logger.info(
            "Account id reconcile: %d checked, %d linked, %d conflicts",
            stats.players_checked, stats.linked, stats.conflicts,
        )
        return stats

    # =========================================================================
    # Lookup
    # =========================================================================

    def find_player_by_account_id(self, account_id: str) -> Optional[Player]:
        """Direct lookup, then via a result row that was linked to a player."""
        player = self.db.execute(
            select(Player).where(Player.epic_account_id == account_id)
        ).scalar_one_or_none()
        if player is not None:
            return player

        linked_player_id = self.db.execute(
            select(TournamentResult.linked_player_id)
            .where(
                TournamentResult.account_id == account_id,
                TournamentResult.linked_player_id.is_not(None),
            )
            .limit(1)
        ).scalar_one_or_none()
        if linked_player_id:
            return self.db.get(Player, linked_player_id)
        return None

    def find_player_by_ign(self, ign: str) -> Optional[Player]:
        """Case-insensitive match on current IGN, then on IGN history."""
        lowered = ign.lower()
        player = self.db.execute(
            select(Player).where(func.lower(Player.current_ign) == lowered).limit(1)
        ).scalar_one_or_none()
        if player is not None:
            return player

        history = self.db.execute(
            select(PlayerIgnHistory)
            .where(func.lower(PlayerIgnHistory.ign) == lowered)
            .order_by(PlayerIgnHistory.used_from.desc())
            .limit(1)
        ).scalar_one_or_none()
        return history.player if history else None

    def find_player_by_wiki_url(self, identifier: str) -> Optional[Player]:
        url = identifier
        if not identifier.startswith("http"):
            url = f"{settings.wiki_base_url.rstrip('/')}{identifier}"
        return self.db.execute(
            select(Player).where(Player.wiki_url == url).limit(1)
        ).scalar_one_or_none()

    def _looks_like_wiki_url(self, identifier: str) -> bool:
        host = settings.wiki_base_url.split("://", 1)[-1].rstrip("/")
        return host in identifier or identifier.startswith(f"/{settings.wiki_game_namespace}/")

    def resolve_player_identity(self, identifier: str) -> Optional[Player]:
        """
        Find a player from any identifier.

        Each tier is only tried when the identifier has the right shape, and
        a miss falls through to the next tier. A 32-hex string is tried as
        an account id before being tried as a UUID.
        """
        if not identifier:
            return None

        if is_account_id(identifier):
            player = self.find_player_by_account_id(identifier)
            if player is not None:
                return player

        if is_uuid(identifier):
            player = self.db.get(Player, str(uuid.UUID(identifier)))
            if player is not None:
                return player

        if self._looks_like_wiki_url(identifier):
            player = self.find_player_by_wiki_url(identifier)
            if player is not None:
                return player

        return self.find_player_by_ign(identifier)

    # =========================================================================
    # Mutation
    # =========================================================================

    def create_player(
        self,
        ign: str,
        wiki_url: Optional[str] = None,
        real_name: Optional[str] = None,
        nationality: Optional[str] = None,
    ) -> Player:
        """Create a player with an open IGN history entry."""
        now = datetime.utcnow()
        player = Player(
            player_id=str(uuid.uuid4()),
            current_ign=ign,
            wiki_url=wiki_url,
            real_name=real_name,
            nationality=nationality,
            created_at=now,
            last_updated=now,
        )
        player.ign_history.append(PlayerIgnHistory(ign=ign, used_from=now))
        self.db.add(player)
        self.db.flush()
        logger.info("Created player %s (%s)", ign, player.player_id)
        return player

    def update_player_ign(self, player_id: str, new_ign: str) -> bool:
        """
        Record an IGN change.

        Closes the open history entry, opens a new one and updates
        current_ign. Case-only or no changes are ignored.

        Returns:
            True if the IGN changed

        Raises:
            PlayerNotFoundError: If player_id does not exist
        """
        player = self.db.get(Player, player_id)
        if player is None:
            raise PlayerNotFoundError(player_id)

        if player.current_ign.lower() == new_ign.lower():
            return False

        now = datetime.utcnow()
        for entry in player.ign_history:
            if entry.used_until is None:
                entry.used_until = now
        player.ign_history.append(PlayerIgnHistory(ign=new_ign, used_from=now))

        old_ign = player.current_ign
        player.current_ign = new_ign
        player.last_updated = now
        self.db.flush()

        logger.info("Updated IGN: %s -> %s", old_ign, new_ign)
        return True
