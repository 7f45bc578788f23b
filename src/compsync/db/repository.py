"""
Earnings repository.

The upsert engine talks to storage only through EarningsRepository, keyed
by (player_id, tournament_id). SqlEarningsRepository is the SQLAlchemy
implementation; tests can substitute an in-memory one.

The repository never deletes rows. Removing an earning is an operator
action outside the sync.
"""

from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from compsync.db.models import PlayerTournamentEarning, TeamRoster
from compsync.scrape.base import EarningRecord

# Fields compared when deciding whether an existing row needs an update
EARNING_FIELDS = (
    "tournament_name",
    "tournament_date",
    "placement",
    "amount",
    "tier",
    "game_mode",
    "region",
    "season",
    "wiki_url",
    "team_size",
    "teammates",
    "org_slug_at_time",
)


def record_values(record: EarningRecord, org_slug_at_time: Optional[str] = None) -> dict:
    """Column values for an earning row built from a normalized record."""
    return {
        "tournament_name": record.tournament_name,
        "tournament_date": record.tournament_date,
        "placement": record.placement,
        "amount": record.amount,
        "tier": record.tier,
        "game_mode": record.game_mode,
        "region": record.region,
        "season": record.season,
        "wiki_url": record.wiki_url,
        "team_size": record.team_size,
        "teammates": list(record.teammates) or None,
        "org_slug_at_time": org_slug_at_time,
    }


class EarningsRepository(ABC):
    """Storage for per-player tournament earnings."""

    @abstractmethod
    def get(self, player_id: str, tournament_id: str) -> Optional[dict]:
        """Current column values for the key, or None if absent."""

    @abstractmethod
    def create(self, player_id: str, tournament_id: str, values: dict) -> None:
        """Insert a new earning."""

    @abstractmethod
    def update(self, player_id: str, tournament_id: str, values: dict) -> None:
        """Overwrite the given columns of an existing earning."""

    def current_org_slug(self, player_id: str) -> Optional[str]:
        """Org the player currently plays for, if known."""
        return None


class SqlEarningsRepository(EarningsRepository):
    """EarningsRepository backed by the player_tournament_earnings table."""

    def __init__(self, session: Session):
        self.session = session

    def _find(self, player_id: str, tournament_id: str) -> Optional[PlayerTournamentEarning]:
        return self.session.execute(
            select(PlayerTournamentEarning).where(
                PlayerTournamentEarning.player_id == player_id,
                PlayerTournamentEarning.tournament_id == tournament_id,
            )
        ).scalar_one_or_none()

    def get(self, player_id: str, tournament_id: str) -> Optional[dict]:
        row = self._find(player_id, tournament_id)
        if row is None:
            return None
        return {name: getattr(row, name) for name in EARNING_FIELDS}

    def create(self, player_id: str, tournament_id: str, values: dict) -> None:
        row = PlayerTournamentEarning(
            player_id=player_id,
            tournament_id=tournament_id,
            **values,
        )
        self.session.add(row)
        self.session.flush()

    def update(self, player_id: str, tournament_id: str, values: dict) -> None:
        row = self._find(player_id, tournament_id)
        if row is None:
            raise LookupError(f"No earning for player {player_id} / {tournament_id}")
        for name, value in values.items():
            setattr(row, name, value)
        self.session.flush()

    def current_org_slug(self, player_id: str) -> Optional[str]:
        return self.session.execute(
            select(TeamRoster.org_slug)
            .where(TeamRoster.player_id == player_id, TeamRoster.status == "current")
            .limit(1)
        ).scalar_one_or_none()
