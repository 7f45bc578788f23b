"""
Result-table extraction for wiki player pages.

Walks every <table> in a document and keeps only tables whose header row
mentions both a date column and a prize column. Standings, schedules and
infobox tables fail that test and are ignored.

For each qualifying table the header is mapped onto column indices:
- date: first header containing "date" (fallback: column 0)
- placement: first header containing "place" (fallback: column 1)
- prize: first header containing "prize" (fallback: last column)

Header cells are expanded by their colspan so that a two-column
"Tournament" header does not shift the prize index.

Rows are yielded lazily as RawRow objects. Rows containing <th> cells and
rows with fewer than MIN_ROW_CELLS cells are skipped silently. The source
document is only read, never modified.
"""

import re
from dataclasses import dataclass
from typing import Iterator, Union

from bs4 import BeautifulSoup, Tag

from compsync.scrape.base import RawCell, RawLink, RawRow

MIN_ROW_CELLS = 4

DATE_TOKEN = "date"
PLACEMENT_TOKEN = "place"
PRIZE_TOKEN = "prize"

# Sentinel meaning "last cell of the row"
LAST_COLUMN = -1

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ColumnMap:
    """Column indices for one result table."""
    date_index: int
    placement_index: int
    prize_index: int


def clean_text(text: str) -> str:
    """Collapse whitespace (including non-breaking spaces) and trim."""
    return _WHITESPACE.sub(" ", text.replace("\xa0", " ")).strip()


def to_soup(document: Union[str, bytes, BeautifulSoup, Tag]) -> Union[BeautifulSoup, Tag]:
    """Accept raw HTML or an already parsed tree."""
    if isinstance(document, (BeautifulSoup, Tag)):
        return document
    return BeautifulSoup(document, "lxml")


# =============================================================================
# Table Classification
# =============================================================================

def _own_rows(table: Tag) -> list[Tag]:
    """<tr> elements belonging to this table (not to nested tables)."""
    return [tr for tr in table.find_all("tr") if tr.find_parent("table") is table]


def header_texts(table: Tag) -> list[str]:
    """
    Lower-cased header texts of the first row that has <th> cells.

    A header with colspan=N contributes N entries so indices line up with
    data cells.
    """
    for tr in _own_rows(table):
        ths = tr.find_all("th", recursive=False)
        if not ths:
            continue
        texts: list[str] = []
        for th in ths:
            label = clean_text(th.get_text(" ")).lower()
            try:
                span = max(int(th.get("colspan", 1)), 1)
            except (TypeError, ValueError):
                span = 1
            texts.extend([label] * span)
        return texts
    return []


def is_result_table(headers: list[str]) -> bool:
    """A table qualifies when it has both a date-like and a prize-like header."""
    has_date = any(DATE_TOKEN in h for h in headers)
    has_prize = any(PRIZE_TOKEN in h for h in headers)
    return has_date and has_prize


def _first_index(headers: list[str], token: str) -> int:
    for index, text in enumerate(headers):
        if token in text:
            return index
    return -1


def classify_columns(headers: list[str]) -> ColumnMap:
    """Map header keywords onto column indices, with positional fallbacks."""
    date_index = _first_index(headers, DATE_TOKEN)
    placement_index = _first_index(headers, PLACEMENT_TOKEN)
    prize_index = _first_index(headers, PRIZE_TOKEN)

    return ColumnMap(
        date_index=date_index if date_index >= 0 else 0,
        placement_index=placement_index if placement_index >= 0 else 1,
        prize_index=prize_index if prize_index >= 0 else LAST_COLUMN,
    )


# =============================================================================
# Cell / Row Conversion
# =============================================================================

def _to_raw_link(anchor: Tag) -> RawLink:
    classes = anchor.get("class") or []
    return RawLink(
        href=anchor.get("href", ""),
        text=clean_text(anchor.get_text(" ")),
        title=anchor.get("title"),
        is_self_link="mw-selflink" in classes,
    )


def _cell_player_names(td: Tag) -> tuple[str, ...]:
    names: list[str] = []
    for anchor in td.select(".block-player .name a, .block-players-wrapper a"):
        if "mw-selflink" in (anchor.get("class") or []):
            continue
        name = clean_text(anchor.get_text(" "))
        if name and len(name) < 50 and name not in names:
            names.append(name)
    return tuple(names)


def to_raw_cell(td: Tag) -> RawCell:
    """Capture the text and resolver-relevant metadata of a <td>."""
    placement_node = td.select_one(".placement-text")
    placement_text = clean_text(placement_node.get_text(" ")) if placement_node else None

    sort_value = td.get("data-sort-value")
    if sort_value is not None:
        sort_value = clean_text(sort_value)

    return RawCell(
        text=clean_text(td.get_text(" ")),
        sort_value=sort_value or None,
        placement_text=placement_text or None,
        links=tuple(_to_raw_link(a) for a in td.find_all("a")),
        player_names=_cell_player_names(td),
    )


def iter_table_rows(table: Tag, columns: ColumnMap) -> Iterator[RawRow]:
    """Yield data rows of one qualifying table."""
    for tr in _own_rows(table):
        if tr.find("th", recursive=False) is not None:
            continue
        tds = tr.find_all("td", recursive=False)
        if len(tds) < MIN_ROW_CELLS:
            continue
        yield RawRow(
            cells=tuple(to_raw_cell(td) for td in tds),
            date_index=columns.date_index,
            placement_index=columns.placement_index,
            prize_index=columns.prize_index,
        )


def iter_result_tables(document) -> Iterator[tuple[Tag, ColumnMap]]:
    """Yield (table, column map) for every qualifying table in the document."""
    soup = to_soup(document)
    for table in soup.find_all("table"):
        headers = header_texts(table)
        if not is_result_table(headers):
            continue
        yield table, classify_columns(headers)


def extract_rows(document) -> Iterator[RawRow]:
    """
    Lazily yield every RawRow from every qualifying table.

    Each table is handled independently, so the generator can be restarted
    on the same document and yields the same rows again.
    """
    for table, columns in iter_result_tables(document):
        yield from iter_table_rows(table, columns)
