"""
Tournament name resolution and dedup-key derivation.

A result row rarely states the tournament name in one predictable cell, so
the name is found by an ordered list of strategies. Each strategy looks at
the whole row and returns a ResolvedName or None; resolve_tournament_name()
stops at the first hit.

Strategies (in order):
1. sort_value_strategy: a cell's data-sort-value that looks like a full
   tournament name
2. link_text_strategy: the first tournament link inside the wiki's game
   namespace

The dedup key is make_tournament_id(date, name): a lower-case slug of
"YYYY-MM-DD-<name>" cut to 100 characters. It only depends on its inputs,
so re-scraping the same row always produces the same key.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Sequence

from compsync.config import settings
from compsync.scrape.base import RawLink, RawRow

TOURNAMENT_ID_MAX_LENGTH = 100

# Substrings that mark a value as a tier/frequency label, not a name
TIER_LABELS = ("Tier", "S-Tier", "A-Tier", "B-Tier", "C-Tier", "D-Tier", "Weekly")

SORT_VALUE_MIN_LENGTH = 10
COMPOUND_FIRST_PART_MIN_LENGTH = 20
LINK_TEXT_MIN_LENGTH = 8

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class ResolvedName:
    """A tournament name found in a row, with the link it came with."""
    name: str
    wiki_url: Optional[str] = None


TournamentNameStrategy = Callable[[RawRow], Optional[ResolvedName]]


# =============================================================================
# Helpers
# =============================================================================

def has_tier_label(text: str) -> bool:
    return any(label in text for label in TIER_LABELS)


def absolute_wiki_url(href: str) -> str:
    """Prefix site-relative wiki hrefs with the configured wiki host."""
    if href.startswith("http"):
        return href
    return f"{settings.wiki_base_url.rstrip('/')}{href}"


def _namespace_segment() -> str:
    return f"/{settings.wiki_game_namespace}/"


def _is_namespace_link(link: RawLink) -> bool:
    return _namespace_segment() in link.href


# =============================================================================
# Strategies
# =============================================================================

def sort_value_strategy(row: RawRow) -> Optional[ResolvedName]:
    """
    Accept the first sort value that reads like a tournament name.

    Rejected: values of 10 characters or fewer, values carrying a tier
    label, and "A / B" compounds whose first part is 20 characters or
    fewer (team and player listings look like that).
    """
    for cell in row.cells:
        value = cell.sort_value
        if not value or len(value) <= SORT_VALUE_MIN_LENGTH:
            continue
        if has_tier_label(value):
            continue

        parts = value.split(" / ")
        if len(parts) > 1 and len(parts[0]) <= COMPOUND_FIRST_PART_MIN_LENGTH:
            continue

        wiki_url = None
        for link in cell.links:
            if _is_namespace_link(link) and "index.php" not in link.href:
                wiki_url = absolute_wiki_url(link.href)
                break
        return ResolvedName(name=value, wiki_url=wiki_url)

    return None


def link_text_strategy(row: RawRow) -> Optional[ResolvedName]:
    """
    Fall back to the first qualifying tournament link.

    Listing pages (``_Tournaments``), edit links (``index.php``) and tier
    or weekly labels are skipped. The label (title, else text) must be
    longer than 8 characters.
    """
    for cell in row.cells:
        for link in cell.links:
            if not _is_namespace_link(link):
                continue
            if "_Tournaments" in link.href or "index.php" in link.href:
                continue

            label = link.label
            if has_tier_label(label):
                continue
            if len(label) > LINK_TEXT_MIN_LENGTH:
                return ResolvedName(name=label, wiki_url=absolute_wiki_url(link.href))

    return None


TOURNAMENT_NAME_STRATEGIES: tuple[TournamentNameStrategy, ...] = (
    sort_value_strategy,
    link_text_strategy,
)


def resolve_tournament_name(
    row: RawRow,
    strategies: Sequence[TournamentNameStrategy] = TOURNAMENT_NAME_STRATEGIES,
) -> Optional[ResolvedName]:
    """Apply the strategies in order and return the first match."""
    for strategy in strategies:
        resolved = strategy(row)
        if resolved is not None:
            return resolved
    return None


# =============================================================================
# Dedup Key
# =============================================================================

def slugify(text: str) -> str:
    """
    Lower-case, collapse each run of non-alphanumerics to '-', trim '-'.

    Examples:
        >>> slugify("FNCS Grand Finals: EU!")
        'fncs-grand-finals-eu'
    """
    return _NON_ALNUM.sub("-", text.lower()).strip("-")


def make_tournament_id(tournament_date: date, tournament_name: str) -> str:
    """Deterministic dedup key for a (date, name) pair."""
    slug = slugify(f"{tournament_date.isoformat()}-{tournament_name}")
    return slug[:TOURNAMENT_ID_MAX_LENGTH]
