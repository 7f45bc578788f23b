"""
Parsers for the wiki documents consumed by the sync stages.

Each parser takes HTML (or an already parsed tree) and returns the plain
dataclasses from compsync.scrape.base. Parsers never fetch and never touch
the database. Unusable rows are dropped silently; the wiki's markup is not
a stable contract, so every selector has a fallback.

Documents:
- Tournaments/<year> and Portal:Tournaments -> parse_tournament_table()
- Portal:Teams                              -> parse_org_portal()
- <Org page>                                -> parse_roster()
- Player_Transfers/<year>/<Month>           -> parse_transfers()
- <Player page>                             -> parse_player_profile()

URL helpers build the page addresses from settings.wiki_base_url and
settings.wiki_game_namespace.
"""

import calendar
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from bs4 import Tag

from compsync.config import settings
from compsync.scrape.base import (
    ScrapedOrg,
    ScrapedPlayerProfile,
    ScrapedRosterEntry,
    ScrapedTournament,
    ScrapedTransfer,
)
from compsync.scrape.parsers.fields import (
    extract_game_mode,
    extract_region,
    extract_tier,
    parse_date,
)
from compsync.scrape.tables import clean_text, to_soup
from compsync.scrape.tournament_identity import absolute_wiki_url, slugify

MAX_NAME_LENGTH = 50

# Link targets that are never players, orgs or tournaments
_NON_ENTITY_HREFS = ("Portal:", "Category:", "File:", "index.php", "Special:")

_INVALID_PLAYER_NAMES = [
    re.compile(p, re.I)
    for p in (
        r"^[sabcd]-tier$",
        r"^tier$",
        r"^tournaments?$",
        r"^results?$",
        r"^achievements?$",
        r"^history$",
        r"^overview$",
        r"^statistics?$",
        r"^portal:",
        r"^category:",
        r"^file:",
    )
]

_FLAG_CODE = re.compile(r"/([a-z]{2})\.png", re.I)
_PRIZE_POOL = re.compile(r"\$\s?([\d,]+(?:\.\d+)?)")
_MONTHS = {name.lower(): index for index, name in enumerate(calendar.month_abbr) if name}

# "Jan 05 - 07, 2024", "Jan 30 - Feb 02, 2024", "Jan 05, 2024"
_TEXT_DATE_RANGE = re.compile(
    r"([A-Z][a-z]{2})[a-z]*\.?\s+(\d{1,2})"
    r"(?:\s*[-–]\s*(?:([A-Z][a-z]{2})[a-z]*\.?\s+)?(\d{1,2}))?"
    r",?\s+(\d{4})"
)
_ISO_DATE_ALL = re.compile(r"\d{4}-\d{2}-\d{2}")


# =============================================================================
# URLs
# =============================================================================

def wiki_page_url(path: str) -> str:
    """Absolute URL of a page in the game namespace."""
    base = settings.wiki_base_url.rstrip("/")
    return f"{base}/{settings.wiki_game_namespace}/{path.lstrip('/')}"


def tournaments_year_url(year: int) -> str:
    return wiki_page_url(f"Tournaments/{year}")


def tournament_portal_url() -> str:
    return wiki_page_url("Portal:Tournaments")


def org_portal_url() -> str:
    return wiki_page_url("Portal:Teams")


def transfers_url(year: int, month: int) -> str:
    return wiki_page_url(f"Player_Transfers/{year}/{calendar.month_name[month]}")


def previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def results_page_url(player_wiki_url: str) -> str:
    """The /Results subpage holds a player's full result history."""
    return f"{player_wiki_url.rstrip('/')}/Results"


# =============================================================================
# Shared helpers
# =============================================================================

def _namespace_links(node: Tag) -> list[Tag]:
    segment = f"/{settings.wiki_game_namespace}/"
    links = []
    for anchor in node.find_all("a", href=True):
        href = anchor["href"]
        if segment not in href:
            continue
        if any(marker in href for marker in _NON_ENTITY_HREFS):
            continue
        links.append(anchor)
    return links


def _flag_code(node: Tag) -> Optional[str]:
    img = node.select_one('img[src*="flag"], .flag img')
    if img is None:
        return None
    match = _FLAG_CODE.search(img.get("src", ""))
    return match.group(1).upper() if match else None


def _own_cells(tr: Tag) -> list[Tag]:
    return tr.find_all("td", recursive=False)


def parse_prize_pool(text: str) -> Optional[Decimal]:
    """First dollar amount in the text."""
    match = _PRIZE_POOL.search(text or "")
    if not match:
        return None
    try:
        value = Decimal(match.group(1).replace(",", ""))
    except InvalidOperation:
        return None
    return value if value > 0 else None


def parse_date_range(text: str) -> tuple[Optional[date], Optional[date]]:
    """
    Start and end date from a row's text.

    Accepts ISO dates (first two found) or the wiki's "Mon DD - DD, YYYY"
    and "Mon DD - Mon DD, YYYY" spellings. A single date is both start and
    end.
    """
    if not text:
        return None, None

    iso = [parse_date(m) for m in _ISO_DATE_ALL.findall(text)]
    iso = [d for d in iso if d is not None]
    if iso:
        return iso[0], iso[1] if len(iso) > 1 else iso[0]

    # "Major 1 2024" in a tournament name has the same shape as a date
    for match in _TEXT_DATE_RANGE.finditer(text):
        if match.group(1).lower() in _MONTHS:
            break
    else:
        return None, None

    start_month_name, start_day, end_month_name, end_day, year = match.groups()
    start_month = _MONTHS[start_month_name.lower()]
    end_month = _MONTHS.get(end_month_name.lower()) if end_month_name else start_month
    if end_month is None:
        end_month = start_month

    try:
        start = date(int(year), start_month, int(start_day))
        end = date(int(year), end_month, int(end_day)) if end_day else start
    except ValueError:
        return None, None

    # "Dec 30 - Jan 02, 2024" spans the new year
    if end < start:
        try:
            start = start.replace(year=start.year - 1)
        except ValueError:
            return None, None
    return start, end


def tournament_status(start: Optional[date], end: Optional[date], today: date) -> str:
    if start and start > today:
        return "upcoming"
    if start and end and start <= today <= end:
        return "ongoing"
    return "completed"


# =============================================================================
# Tournaments
# =============================================================================

def parse_tournament_table(document, today: Optional[date] = None) -> list[ScrapedTournament]:
    """
    Tournaments listed in wikitable rows.

    Used for both the yearly tournament pages and the portal's upcoming
    section; status is derived from the dates relative to `today`.
    """
    soup = to_soup(document)
    today = today or date.today()
    tournaments: list[ScrapedTournament] = []
    seen: set[str] = set()

    for table in soup.select("table.wikitable"):
        for tr in table.find_all("tr"):
            cells = _own_cells(tr)
            if len(cells) < 3:
                continue

            links = [a for a in _namespace_links(tr) if "Player_Transfers" not in a["href"]]
            if not links:
                continue
            link = links[0]
            name = clean_text(link.get_text(" ")) or (link.get("title") or "").strip()
            if len(name) < 3:
                continue

            tournament_id = slugify(name)
            if not tournament_id or tournament_id in seen:
                continue
            seen.add(tournament_id)

            row_text = clean_text(tr.get_text(" "))
            tier_source = cells[0].get("data-sort-value") or clean_text(cells[0].get_text(" "))
            start, end = parse_date_range(row_text)

            tournaments.append(ScrapedTournament(
                tournament_id=tournament_id,
                name=name,
                start_date=start,
                end_date=end,
                tier=extract_tier(tier_source) or extract_tier(name),
                prize_pool=parse_prize_pool(row_text),
                region=extract_region(row_text),
                game_mode=extract_game_mode(name),
                wiki_url=absolute_wiki_url(link["href"]),
                status=tournament_status(start, end, today),
            ))

    return tournaments


# =============================================================================
# Organizations
# =============================================================================

def parse_org_portal(document) -> list[ScrapedOrg]:
    """
    Organizations on the teams portal.

    Team cards inherit the region of the closest preceding h2/h3 heading
    ("Disbanded" headings do not change it). Teams that only appear in
    wikitables get no region.
    """
    soup = to_soup(document)
    orgs: list[ScrapedOrg] = []
    seen: set[str] = set()
    current_region: Optional[str] = None

    selector = "h2, h3, .team-template-team-standard, .teamcard, table.wikitable td:first-child"
    for el in soup.select(selector):
        if el.name in ("h2", "h3"):
            headline = el.select_one(".mw-headline")
            text = clean_text((headline or el).get_text(" "))
            if text and "Disbanded" not in text:
                current_region = text
            continue

        links = _namespace_links(el)
        if not links:
            continue
        link = links[0]
        name = clean_text(link.get_text(" ")) or (link.get("title") or "").strip()
        slug = slugify(name)
        if not slug or slug in seen:
            continue
        seen.add(slug)

        in_table = el.name == "td"
        logo = None if in_table else el.find("img")
        logo_src = (logo.get("src") or logo.get("data-src")) if logo else None

        orgs.append(ScrapedOrg(
            slug=slug,
            name=name,
            wiki_url=absolute_wiki_url(link["href"]),
            region=None if in_table else current_region,
            logo_url=absolute_wiki_url(logo_src) if logo_src else None,
        ))

    return orgs


def _detect_section(text: str) -> Optional[str]:
    lowered = text.lower()
    if any(word in lowered for word in ("former", "inactive", "left", "previous")):
        return "former"
    if any(word in lowered for word in ("current", "active roster", "player roster")):
        return "current"
    return None


def _detect_role(row_text: str) -> str:
    lowered = row_text.lower()
    if "coach" in lowered:
        return "Coach"
    if "manager" in lowered:
        return "Manager"
    if "analyst" in lowered:
        return "Analyst"
    if "substitute" in lowered:
        return "Substitute"
    return "Player"


def clean_real_name(name: Optional[str]) -> Optional[str]:
    """
    Undo the wiki's "(Name)Name" duplication.

    Examples:
        >>> clean_real_name("(Kyle Giersdorf)Kyle Giersdorf")
        'Kyle Giersdorf'
    """
    if not name:
        return None
    name = name.strip()
    match = re.match(r"^\(([^)]+)\)(.*)$", name)
    if match:
        inside, after = match.group(1).strip(), match.group(2).strip()
        return after or inside
    return name or None


def is_valid_player_name(name: str) -> bool:
    if not name or len(name) > MAX_NAME_LENGTH:
        return False
    return not any(pattern.match(name) for pattern in _INVALID_PLAYER_NAMES)


def parse_roster(document) -> list[ScrapedRosterEntry]:
    """
    Players on an organization page.

    Walks headings and roster tables in document order. A heading or table
    caption mentioning "former"/"inactive" marks the following rows as
    former; "current"/"active roster" switches back. Each IGN is kept once
    (case-insensitive), first occurrence wins.
    """
    soup = to_soup(document)
    entries: list[ScrapedRosterEntry] = []
    seen: set[str] = set()
    section = "current"

    for el in soup.select("h2, h3, h4, table.wikitable, table.roster-card"):
        if el.name in ("h2", "h3", "h4"):
            section = _detect_section(el.get_text(" ")) or section
            continue

        caption = el.find("caption")
        table_section = _detect_section(caption.get_text(" ")) if caption else None
        effective = table_section or section

        for tr in el.find_all("tr"):
            cells = _own_cells(tr)
            if len(cells) < 2:
                continue

            links = [a for a in _namespace_links(tr) if "Tournament" not in a["href"]]
            link = links[0] if links else None
            ign = clean_text(link.get_text(" ")) if link else clean_text(cells[1].get_text(" "))
            if not is_valid_player_name(ign):
                continue
            if ign.lower() in seen:
                continue
            seen.add(ign.lower())

            row_text = clean_text(tr.get_text(" "))
            real_name = clean_text(cells[2].get_text(" ")) if len(cells) > 2 else None
            if not real_name:
                paren = re.search(r"\(([^)]+)\)", row_text)
                real_name = paren.group(1) if paren else None

            entries.append(ScrapedRosterEntry(
                ign=ign,
                status=effective,
                role=_detect_role(row_text),
                real_name=clean_real_name(real_name),
                nationality=_flag_code(tr),
                wiki_url=absolute_wiki_url(link["href"]) if link else None,
            ))

    return entries


# =============================================================================
# Transfers
# =============================================================================

def _transfer_org_name(cell: Optional[Tag]) -> Optional[str]:
    """Org named in a transfer cell, or None for "no team"."""
    if cell is None:
        return None

    highlighted = cell.find(attrs={"data-highlighting-class": True})
    if highlighted is not None:
        name = highlighted["data-highlighting-class"].strip()
        if len(name) >= 2 and name.lower() != "none":
            return name

    links = _namespace_links(cell)
    if links:
        title = (links[0].get("title") or "").strip()
        if len(title) >= 2 and title.lower() != "none":
            return title
        name = clean_text(links[0].get_text(" "))
    else:
        name = clean_text(" ".join(
            s for s in cell.find_all(string=True)
            if s.parent is not None and s.parent.name != "small"
        ))

    if not name or name in ("-", "—") or name.lower() == "none" or len(name) < 2:
        return None
    return name


def _cell_by_class(cells: list[Tag], css_class: str) -> Optional[Tag]:
    for cell in cells:
        if css_class in (cell.get("class") or []):
            return cell
    return None


def parse_transfers(document, limit: Optional[int] = None) -> list[ScrapedTransfer]:
    """
    Rows of a monthly transfer page (div.divRow > div.divCell layout).

    Transfer type comes from which side has an org: only new -> join, only
    old -> leave, both -> transfer. A reference note mentioning "retire" or
    "release" overrides it. Rows with neither org are skipped.
    """
    soup = to_soup(document)
    transfers: list[ScrapedTransfer] = []

    for row in soup.select("div.divRow"):
        if limit is not None and len(transfers) >= limit:
            break
        if "divHeaderRow" in (row.get("class") or []):
            continue

        cells = row.find_all("div", class_="divCell", recursive=False)
        if len(cells) < 5:
            continue

        date_cell = _cell_by_class(cells, "Date") or cells[0]
        transfer_date = parse_date(clean_text(date_cell.get_text(" ")))
        if transfer_date is None:
            continue

        name_cell = _cell_by_class(cells, "Name") or cells[1]
        player_links = _namespace_links(name_cell)
        player_link = player_links[0] if player_links else None
        player_name = clean_text(player_link.get_text(" ")) if player_link else ""
        if not player_name:
            player_name = clean_text(name_cell.get_text(" "))
        if len(player_name) < 2 or len(player_name) > MAX_NAME_LENGTH:
            continue

        from_org = _transfer_org_name(_cell_by_class(cells, "OldTeam"))
        to_org = _transfer_org_name(_cell_by_class(cells, "NewTeam"))
        if from_org and to_org:
            transfer_type = "transfer"
        elif to_org:
            transfer_type = "join"
        elif from_org:
            transfer_type = "leave"
        else:
            continue

        ref_cell = _cell_by_class(cells, "Ref")
        details = clean_text(ref_cell.get_text(" ")) if ref_cell else ""
        if "retire" in details.lower():
            transfer_type = "retire"
        if "release" in details.lower():
            transfer_type = "release"

        transfers.append(ScrapedTransfer(
            player_name=player_name,
            transfer_date=transfer_date,
            transfer_type=transfer_type,
            from_org=from_org,
            to_org=to_org,
            player_wiki_url=absolute_wiki_url(player_link["href"]) if player_link else None,
            details=details if 0 < len(details) < 500 else None,
        ))

    return transfers


# =============================================================================
# Player infobox
# =============================================================================

def parse_player_profile(document) -> Optional[ScrapedPlayerProfile]:
    """
    IGN, real name and nationality from a player page.

    The IGN is the infobox header (minus its edit buttons), falling back to
    the page heading. Returns None when neither is present.
    """
    soup = to_soup(document)

    ign = ""
    header = soup.select_one(".infobox-header")
    if header is not None:
        ign = clean_text(" ".join(
            s for s in header.find_all(string=True)
            if not any(
                "infobox-buttons" in (parent.get("class") or [])
                for parent in s.parents
                if isinstance(parent, Tag)
            )
        ))
    if not ign:
        heading = soup.select_one("h1#firstHeading, h1.firstHeading")
        ign = clean_text(heading.get_text(" ")) if heading else ""
    if not ign:
        return None

    real_name = None
    nationality = None
    for label_div in soup.select(".infobox-description"):
        label = clean_text(label_div.get_text(" ")).lower().rstrip(":").strip()
        value_div = label_div.find_next_sibling("div")
        if value_div is None:
            continue
        value = clean_text(value_div.get_text(" "))

        if label == "name" and real_name is None and 0 < len(value) < 100:
            real_name = value
        elif label in ("nationality", "country") and nationality is None:
            nationality = _flag_code(value_div)

    return ScrapedPlayerProfile(ign=ign, real_name=clean_real_name(real_name), nationality=nationality)
