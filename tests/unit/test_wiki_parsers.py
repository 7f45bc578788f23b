"""
Unit tests for the wiki document parsers.

Fixture snippets mirror the markup of the live pages: wikitable tournament
listings, team cards on the teams portal, roster tables split by headings
and the div-based transfer list.
"""

from datetime import date
from decimal import Decimal

from compsync.scrape.wiki import (
    clean_real_name,
    is_valid_player_name,
    parse_date_range,
    parse_org_portal,
    parse_player_profile,
    parse_prize_pool,
    parse_roster,
    parse_tournament_table,
    parse_transfers,
    previous_month,
    results_page_url,
    tournament_status,
    transfers_url,
)

TOURNAMENT_TABLE_HTML = """
<html><body>
<table class="wikitable">
  <tr><th>Tier</th><th>Tournament</th><th>Date</th><th>Prize</th></tr>
  <tr>
    <td data-sort-value="S-Tier">S</td>
    <td><a href="/fortnite/FNCS/2024/Major_1" title="FNCS Major 1 2024">FNCS Major 1 2024</a></td>
    <td>Mar 15 - 17, 2024</td>
    <td>$1,000,000</td>
  </tr>
  <tr>
    <td>A-Tier</td>
    <td><a href="/fortnite/Cash_Cup/Solo/EU">Cash Cup Solo EU</a></td>
    <td>2024-06-01</td>
    <td>$10,000</td>
  </tr>
  <tr>
    <td>B-Tier</td>
    <td><a href="/fortnite/Summer_Cup">Summer Cup Duos</a></td>
    <td>Jun 30 - Jul 02, 2024</td>
    <td>TBD</td>
  </tr>
  <tr>
    <td>A-Tier</td>
    <td><a href="/fortnite/Cash_Cup/Solo/EU">Cash Cup Solo EU</a></td>
    <td>2024-06-01</td>
    <td>$10,000</td>
  </tr>
  <tr>
    <td>-</td>
    <td><a href="/fortnite/Player_Transfers/2024/June">Transfers</a></td>
    <td>2024-06-01</td>
  </tr>
</table>
<table class="infobox"><tr><td>x</td><td><a href="/fortnite/Other_Cup">Other Cup</a></td><td>y</td></tr></table>
</body></html>
"""

ORG_PORTAL_HTML = """
<html><body>
<h2><span class="mw-headline">Europe</span></h2>
<div class="team-template-team-standard">
  <img src="/commons/images/team_liquid.png"><a href="/fortnite/Team_Liquid">Team Liquid</a>
</div>
<h3><span class="mw-headline">Disbanded</span></h3>
<div class="teamcard"><a href="/fortnite/Old_Team">Old Team</a></div>
<h2>North America</h2>
<div class="teamcard"><a href="/fortnite/Sentinels">Sentinels</a></div>
<div class="teamcard"><a href="/fortnite/Category:Teams">All teams</a></div>
<table class="wikitable">
  <tr><td><a href="/fortnite/Guild_Esports">Guild Esports</a></td><td>UK</td></tr>
  <tr><td><a href="/fortnite/Team_Liquid">Team Liquid</a></td><td>NL</td></tr>
</table>
</body></html>
"""

ROSTER_HTML = """
<html><body>
<h2>Active Roster</h2>
<table class="wikitable">
  <tr><th>ID</th><th>Name</th></tr>
  <tr>
    <td><span class="flag"><img src="/commons/images/us.png"></span> <a href="/fortnite/Bugha">Bugha</a></td>
    <td>(Kyle Giersdorf)Kyle Giersdorf</td>
  </tr>
  <tr>
    <td><a href="/fortnite/Coachy">Coachy</a></td><td>Coach</td><td>John Smith</td>
  </tr>
  <tr>
    <td><a href="/fortnite/S-Tier">S-Tier</a></td><td>x</td>
  </tr>
</table>
<h3>Former Players</h3>
<table class="wikitable">
  <tr><td><a href="/fortnite/Clix">Clix</a></td><td>-</td></tr>
  <tr><td><a href="/fortnite/Bugha">Bugha</a></td><td>-</td></tr>
</table>
<table class="wikitable">
  <caption>Current Roster</caption>
  <tr><td><a href="/fortnite/Mongraal">Mongraal</a></td><td>Substitute</td></tr>
</table>
</body></html>
"""


def _transfer_row(date_text, name_html, old_html, new_html, ref=""):
    return f"""
    <div class="divRow">
      <div class="divCell Date">{date_text}</div>
      <div class="divCell Name">{name_html}</div>
      <div class="divCell Team OldTeam">{old_html}</div>
      <div class="divCell Icon"></div>
      <div class="divCell Team NewTeam">{new_html}</div>
      <div class="divCell Ref">{ref}</div>
    </div>
    """


def _org(name):
    return f'<span data-highlighting-class="{name}"></span>'


TRANSFERS_HTML = "<div class='divTable'>" + "".join([
    '<div class="divRow divHeaderRow"><div class="divCell">Date</div><div class="divCell">Name</div>'
    '<div class="divCell">Old</div><div class="divCell"></div><div class="divCell">New</div></div>',
    _transfer_row("2024-03-05", '<a href="/fortnite/Bugha">Bugha</a>', _org("Sentinels"), _org("Team Liquid")),
    _transfer_row("2024-03-06", "Clix", _org("None"), '<a href="/fortnite/FaZe_Clan" title="FaZe Clan"><img></a>'),
    _transfer_row("2024-03-07", "Mongraal", _org("Guild Esports"), "", ref="Retired from competitive play"),
    _transfer_row("2024-03-08", "Mitr0", _org("Team Liquid"), "-", ref="Released"),
    _transfer_row("2024-03-09", "Nobody", "", ""),
    _transfer_row("TBA", "Later", _org("Sentinels"), _org("Team Liquid")),
]) + "</div>"

PLAYER_PAGE_HTML = """
<html><body>
<h1 id="firstHeading">Bugha (page)</h1>
<div class="infobox-header"><span class="infobox-buttons">[e][h]</span>Bugha</div>
<div>
  <div class="infobox-cell-2 infobox-description">Name:</div>
  <div>(Kyle Giersdorf)Kyle Giersdorf</div>
</div>
<div>
  <div class="infobox-cell-2 infobox-description">Nationality:</div>
  <div><span class="flag"><img src="/commons/images/us.png"></span> United States</div>
</div>
</body></html>
"""


class TestUrlHelpers:
    """Tests for page URL helpers."""

    def test_transfers_url(self):
        assert transfers_url(2024, 3) == "https://liquipedia.net/fortnite/Player_Transfers/2024/March"

    def test_previous_month(self):
        assert previous_month(2024, 3) == (2024, 2)
        assert previous_month(2024, 1) == (2023, 12)

    def test_results_page_url(self):
        assert results_page_url("https://liquipedia.net/fortnite/Bugha/") == (
            "https://liquipedia.net/fortnite/Bugha/Results"
        )


class TestDateRangeAndPrize:
    """Tests for parse_date_range, tournament_status and parse_prize_pool."""

    def test_iso_dates(self):
        assert parse_date_range("2024-01-05 to 2024-01-07") == (date(2024, 1, 5), date(2024, 1, 7))
        assert parse_date_range("2024-01-05") == (date(2024, 1, 5), date(2024, 1, 5))

    def test_text_ranges(self):
        assert parse_date_range("Jan 05 - 07, 2024") == (date(2024, 1, 5), date(2024, 1, 7))
        assert parse_date_range("Jan 30 - Feb 02, 2024") == (date(2024, 1, 30), date(2024, 2, 2))
        assert parse_date_range("Jan 05, 2024") == (date(2024, 1, 5), date(2024, 1, 5))

    def test_range_across_new_year(self):
        assert parse_date_range("Dec 30 - Jan 02, 2024") == (date(2023, 12, 30), date(2024, 1, 2))

    def test_name_shaped_like_date_is_skipped(self):
        text = "FNCS Major 1 2024 Mar 15 - 17, 2024"
        assert parse_date_range(text) == (date(2024, 3, 15), date(2024, 3, 17))

    def test_unparseable(self):
        assert parse_date_range("") == (None, None)
        assert parse_date_range("Cup 12 2024") == (None, None)

    def test_status(self):
        today = date(2024, 6, 1)
        assert tournament_status(date(2024, 7, 1), None, today) == "upcoming"
        assert tournament_status(date(2024, 5, 30), date(2024, 6, 2), today) == "ongoing"
        assert tournament_status(date(2024, 5, 1), date(2024, 5, 2), today) == "completed"
        assert tournament_status(None, None, today) == "completed"

    def test_prize_pool(self):
        assert parse_prize_pool("Prize $1,000,000 USD") == Decimal("1000000")
        assert parse_prize_pool("$0") is None
        assert parse_prize_pool("TBD") is None


class TestParseTournamentTable:
    """Tests for parse_tournament_table."""

    def test_rows(self):
        tournaments = parse_tournament_table(TOURNAMENT_TABLE_HTML, today=date(2024, 6, 1))

        assert [t.tournament_id for t in tournaments] == [
            "fncs-major-1-2024",
            "cash-cup-solo-eu",
            "summer-cup-duos",
        ]

        major, cash_cup, summer = tournaments
        assert major.tier == "S-Tier"
        assert major.prize_pool == Decimal("1000000")
        assert (major.start_date, major.end_date) == (date(2024, 3, 15), date(2024, 3, 17))
        assert major.status == "completed"
        assert major.wiki_url == "https://liquipedia.net/fortnite/FNCS/2024/Major_1"

        assert cash_cup.region == "EU"
        assert cash_cup.game_mode == "Solo"
        assert cash_cup.status == "ongoing"

        assert summer.game_mode == "Duo"
        assert summer.prize_pool is None
        assert summer.status == "upcoming"


class TestParseOrgPortal:
    """Tests for parse_org_portal."""

    def test_cards_and_tables(self):
        orgs = {o.slug: o for o in parse_org_portal(ORG_PORTAL_HTML)}

        assert list(orgs) == ["team-liquid", "old-team", "sentinels", "guild-esports"]
        assert orgs["team-liquid"].region == "Europe"
        assert orgs["team-liquid"].logo_url == "https://liquipedia.net/commons/images/team_liquid.png"
        assert orgs["team-liquid"].wiki_url == "https://liquipedia.net/fortnite/Team_Liquid"
        # Disbanded heading does not change the region
        assert orgs["old-team"].region == "Europe"
        assert orgs["sentinels"].region == "North America"
        assert orgs["guild-esports"].region is None
        assert orgs["guild-esports"].logo_url is None


class TestParseRoster:
    """Tests for parse_roster."""

    def test_sections_and_fields(self):
        entries = {e.ign: e for e in parse_roster(ROSTER_HTML)}

        assert list(entries) == ["Bugha", "Coachy", "Clix", "Mongraal"]

        bugha = entries["Bugha"]
        assert bugha.status == "current"
        assert bugha.role == "Player"
        assert bugha.real_name == "Kyle Giersdorf"
        assert bugha.nationality == "US"
        assert bugha.wiki_url == "https://liquipedia.net/fortnite/Bugha"

        assert entries["Coachy"].role == "Coach"
        assert entries["Coachy"].real_name == "John Smith"
        assert entries["Clix"].status == "former"
        # Table caption overrides the preceding "Former" heading
        assert entries["Mongraal"].status == "current"
        assert entries["Mongraal"].role == "Substitute"

    def test_player_name_validation(self):
        assert is_valid_player_name("Bugha")
        assert not is_valid_player_name("S-Tier")
        assert not is_valid_player_name("Results")
        assert not is_valid_player_name("x" * 51)
        assert not is_valid_player_name("")

    def test_clean_real_name(self):
        assert clean_real_name("(Kyle Giersdorf)Kyle Giersdorf") == "Kyle Giersdorf"
        assert clean_real_name("(Kyle)") == "Kyle"
        assert clean_real_name("Kyle") == "Kyle"
        assert clean_real_name("   ") is None
        assert clean_real_name(None) is None


class TestParseTransfers:
    """Tests for parse_transfers."""

    def test_types_and_orgs(self):
        transfers = parse_transfers(TRANSFERS_HTML)

        assert [(t.player_name, t.transfer_type) for t in transfers] == [
            ("Bugha", "transfer"),
            ("Clix", "join"),
            ("Mongraal", "retire"),
            ("Mitr0", "release"),
        ]

        bugha, clix, mongraal, mitr0 = transfers
        assert (bugha.from_org, bugha.to_org) == ("Sentinels", "Team Liquid")
        assert bugha.player_wiki_url == "https://liquipedia.net/fortnite/Bugha"
        assert bugha.transfer_date == date(2024, 3, 5)
        assert bugha.details is None

        assert (clix.from_org, clix.to_org) == (None, "FaZe Clan")
        assert clix.player_wiki_url is None

        assert mongraal.details == "Retired from competitive play"
        assert mitr0.to_org is None

    def test_limit(self):
        assert len(parse_transfers(TRANSFERS_HTML, limit=1)) == 1


class TestParsePlayerProfile:
    """Tests for parse_player_profile."""

    def test_infobox(self):
        profile = parse_player_profile(PLAYER_PAGE_HTML)

        assert profile.ign == "Bugha"
        assert profile.real_name == "Kyle Giersdorf"
        assert profile.nationality == "US"

    def test_heading_fallback(self):
        profile = parse_player_profile('<h1 id="firstHeading">Clix</h1>')

        assert profile.ign == "Clix"
        assert profile.real_name is None
        assert profile.nationality is None

    def test_no_identity(self):
        assert parse_player_profile("<html><body><p>Missing</p></body></html>") is None
