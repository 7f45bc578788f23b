"""
Field normalizers for wiki result tables.

Turns free-text cell fragments into typed values:
- Prize money: "$12,345.67" -> Decimal("12345.67")
- Placements: "3rd", "9-16", "Top 8" -> Ranked(...), anything else -> UNRANKED
- Dates: embedded ISO "YYYY-MM-DD" -> date, anything else -> None

None of these functions raise. Unparseable input maps onto an explicit
"no value" result and the caller decides whether to skip the row.

Also contains the metadata extractors (tier, game mode, region, season)
used to enrich earning records from the tournament name.
"""

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

# Stored in the placement column when a row's placement cannot be read.
UNRANKED_PLACEMENT = 999

_NON_AMOUNT_CHARS = re.compile(r"[^0-9.,]")
_LEADING_INT = re.compile(r"^(\d+)")
_RANGE = re.compile(r"(\d+)[a-z]*\s*[-–]\s*(\d+)")
_TOP_N = re.compile(r"top\s*(\d+)")
_ISO_DATE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")


# =============================================================================
# Placement result type
# =============================================================================

@dataclass(frozen=True)
class Ranked:
    """A placement read from the source."""
    rank: int

    @property
    def is_ranked(self) -> bool:
        return True

    @property
    def value(self) -> int:
        return self.rank


@dataclass(frozen=True)
class Unranked:
    """The source did not give a usable placement."""

    @property
    def is_ranked(self) -> bool:
        return False

    @property
    def value(self) -> int:
        return UNRANKED_PLACEMENT


UNRANKED = Unranked()

Placement = Union[Ranked, Unranked]


# =============================================================================
# Normalizers
# =============================================================================

def parse_earnings(text: Optional[str]) -> Decimal:
    """
    Parse a prize amount.

    Strips everything but digits, '.' and ',', drops the thousands
    separators and parses what is left. Returns Decimal(0) when nothing
    numeric remains; callers treat zero as "no earnings".

    Examples:
        >>> parse_earnings("$12,345.67")
        Decimal('12345.67')
        >>> parse_earnings("-")
        Decimal('0')
    """
    if not text:
        return Decimal(0)

    cleaned = _NON_AMOUNT_CHARS.sub("", text).replace(",", "")
    # "1.234.5" style garbage: keep the leading well-formed number
    match = re.match(r"\d*\.?\d*", cleaned)
    candidate = match.group(0) if match else ""
    if not candidate or candidate == ".":
        return Decimal(0)

    try:
        value = Decimal(candidate)
    except InvalidOperation:
        return Decimal(0)

    return value if value > 0 else Decimal(0)


def parse_placement(text: Optional[str]) -> Placement:
    """
    Parse a placement cell.

    Tries, in order: a leading integer ("3rd"), the lower bound of a range
    ("9-16", "5th–8th"), a "top N" phrase. Anything else is UNRANKED.
    """
    if not text:
        return UNRANKED

    lowered = text.lower().strip()

    direct = _LEADING_INT.match(lowered)
    if direct:
        return Ranked(int(direct.group(1)))

    range_match = _RANGE.search(lowered)
    if range_match:
        return Ranked(int(range_match.group(1)))

    top_match = _TOP_N.search(lowered)
    if top_match:
        return Ranked(int(top_match.group(1)))

    return UNRANKED


def parse_date(text: Optional[str]) -> Optional[date]:
    """
    Find an ISO date inside the text.

    Only YYYY-MM-DD is recognised. Month names, partial dates and invalid
    calendar dates (2023-02-30) all return None.
    """
    if not text:
        return None

    match = _ISO_DATE.search(text)
    if not match:
        return None

    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


# =============================================================================
# Metadata Extractors
# =============================================================================

_TIER_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"S[- ]?Tier", re.I), "S-Tier"),
    (re.compile(r"A[- ]?Tier", re.I), "A-Tier"),
    (re.compile(r"B[- ]?Tier", re.I), "B-Tier"),
    (re.compile(r"C[- ]?Tier", re.I), "C-Tier"),
    (re.compile(r"D[- ]?Tier", re.I), "D-Tier"),
    (re.compile(r"Weekly", re.I), "Weekly"),
    (re.compile(r"Monthly", re.I), "Monthly"),
    (re.compile(r"Qualifier", re.I), "Qualifier"),
]

# Checked in order; longer spellings first so "NA East" wins over "EU" etc.
_REGION_PATTERNS: list[tuple[str, str]] = [
    ("NA East", "NAE"),
    ("NA-East", "NAE"),
    ("NAE", "NAE"),
    ("NA West", "NAW"),
    ("NA-West", "NAW"),
    ("NAW", "NAW"),
    ("Europe", "EU"),
    ("EU", "EU"),
    ("Brazil", "BR"),
    ("BR", "BR"),
    ("Oceania", "OCE"),
    ("OCE", "OCE"),
    ("ASIA", "ASIA"),
    ("Asia", "ASIA"),
    ("Middle East", "ME"),
    ("ME", "ME"),
]


def extract_tier(text: Optional[str]) -> Optional[str]:
    """Return the normalized tier label mentioned in the text, if any."""
    if not text:
        return None
    for pattern, label in _TIER_PATTERNS:
        if pattern.search(text):
            return label
    return None


def extract_game_mode(text: Optional[str]) -> Optional[str]:
    """Solo / Duo / Trios / Squads from a tournament name."""
    if not text:
        return None
    lowered = text.lower()
    if "solo" in lowered:
        return "Solo"
    if "duo" in lowered:
        return "Duo"
    if "trio" in lowered:
        return "Trios"
    if "squad" in lowered:
        return "Squads"
    return None


def extract_region(text: Optional[str]) -> Optional[str]:
    """Region code from a tournament name (word-boundary match)."""
    if not text:
        return None
    for pattern, region in _REGION_PATTERNS:
        if re.search(rf"(?<![A-Za-z]){re.escape(pattern)}(?![A-Za-z])", text):
            return region
    return None


def extract_season(text: Optional[str]) -> Optional[str]:
    """
    Season label from a tournament name.

    "Chapter 4 Season 2" and "C4:S2" both become "C4:S2"; a bare
    "Season 7" stays "Season 7"; "FNCS Chapter 4" becomes "FNCS Chapter 4".
    """
    if not text:
        return None

    chapter_season = re.search(r"Chapter\s*(\d+)\s*[-:]?\s*Season\s*(\d+)", text, re.I)
    if chapter_season:
        return f"C{chapter_season.group(1)}:S{chapter_season.group(2)}"

    short = re.search(r"\bC(\d+)\s*:\s*S(\d+)\b", text, re.I)
    if short:
        return f"C{short.group(1)}:S{short.group(2)}"

    season_only = re.search(r"Season\s*(\d+)", text, re.I)
    if season_only:
        return f"Season {season_only.group(1)}"

    fncs = re.search(r"FNCS\s*(?:Chapter\s*)?(\d+)", text, re.I)
    if fncs:
        return f"FNCS Chapter {fncs.group(1)}"

    return None
