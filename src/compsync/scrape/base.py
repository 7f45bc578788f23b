"""
Common data structures for scraped documents.

Every parser in compsync.scrape returns these plain dataclasses. They hold
only what the source said, with light normalization; persistence happens in
compsync.services.

- RawCell / RawRow: one result-table row before normalization
- EarningRecord: a normalized, keyed prize entry for one player
- ScrapedTournament, ScrapedOrg, ScrapedRosterEntry, ScrapedTransfer,
  ScrapedPlayerProfile, ScrapedPlatformResult: inputs to the entity sync
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class RawLink:
    """An anchor inside a table cell."""
    href: str
    text: str
    title: Optional[str] = None
    is_self_link: bool = False

    @property
    def label(self) -> str:
        """Title attribute when present, otherwise the visible text."""
        return (self.title or self.text or "").strip()


@dataclass(frozen=True)
class RawCell:
    """
    Text of a single <td> plus the metadata the resolvers look at.

    sort_value is the cell's data-sort-value attribute, which on the wiki
    often holds the full tournament name while the visible text is an icon
    or abbreviation.
    """
    text: str
    sort_value: Optional[str] = None
    placement_text: Optional[str] = None
    links: tuple[RawLink, ...] = ()
    player_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class RawRow:
    """
    One data row of a qualifying result table.

    The column indices come from the table header; they are resolved against
    this row's cells so a row shorter than the header still yields text.
    """
    cells: tuple[RawCell, ...]
    date_index: int
    placement_index: int
    prize_index: int

    def _cell(self, index: int) -> Optional[RawCell]:
        # Negative indices count from the end (-1 = last cell)
        if -len(self.cells) <= index < len(self.cells):
            return self.cells[index]
        return None

    @property
    def date_text(self) -> str:
        cell = self._cell(self.date_index)
        return cell.text if cell else ""

    @property
    def placement_text(self) -> str:
        cell = self._cell(self.placement_index)
        if cell is None:
            return ""
        return cell.placement_text or cell.text

    @property
    def prize_text(self) -> str:
        cell = self._cell(self.prize_index)
        if cell is None:
            cell = self.cells[-1] if self.cells else None
        return cell.text if cell else ""

    @property
    def teammates(self) -> list[str]:
        names: list[str] = []
        for cell in self.cells:
            for name in cell.player_names:
                if name not in names:
                    names.append(name)
        return names


@dataclass
class EarningRecord:
    """
    A normalized prize entry, ready for upsert.

    tournament_id is derived from (tournament_date, tournament_name) and is
    the idempotency key. amount is always > 0.
    """
    tournament_id: str
    tournament_name: str
    tournament_date: date
    placement: int
    amount: Decimal

    tier: Optional[str] = None
    game_mode: Optional[str] = None
    region: Optional[str] = None
    season: Optional[str] = None
    wiki_url: Optional[str] = None
    team_size: int = 1
    teammates: list[str] = field(default_factory=list)

    def __repr__(self) -> str:
        return f"<EarningRecord({self.tournament_id}, #{self.placement}, {self.amount})>"


@dataclass
class ScrapedTournament:
    """A tournament row from the portal or the upcoming schedule."""
    tournament_id: str
    name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    tier: Optional[str] = None
    prize_pool: Optional[Decimal] = None
    region: Optional[str] = None
    game_mode: Optional[str] = None
    wiki_url: Optional[str] = None
    status: str = "completed"

    def __repr__(self) -> str:
        return f"<ScrapedTournament({self.tournament_id}, {self.start_date})>"


@dataclass
class ScrapedOrg:
    """An organization listed on the teams portal."""
    slug: str
    name: str
    wiki_url: Optional[str] = None
    region: Optional[str] = None
    logo_url: Optional[str] = None


@dataclass
class ScrapedRosterEntry:
    """A player row from an organization's roster page."""
    ign: str
    status: str = "current"  # 'current' or 'former'
    role: Optional[str] = None
    real_name: Optional[str] = None
    nationality: Optional[str] = None
    wiki_url: Optional[str] = None


@dataclass
class ScrapedTransfer:
    """A row from the transfer portal."""
    player_name: str
    transfer_date: date
    transfer_type: str  # 'join', 'leave', 'transfer', 'release', 'retire'
    from_org: Optional[str] = None
    to_org: Optional[str] = None
    player_wiki_url: Optional[str] = None
    details: Optional[str] = None


@dataclass
class ScrapedPlayerProfile:
    """The infobox of a player's wiki page."""
    ign: str
    real_name: Optional[str] = None
    nationality: Optional[str] = None


@dataclass
class ScrapedPlatformResult:
    """One ranked entry of a platform event window."""
    event_id: str
    window_id: str
    account_id: str
    display_name: str
    rank: Optional[int] = None
    points: Optional[int] = None
