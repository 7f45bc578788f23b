"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from compsync.db.models import Base


@pytest.fixture(scope="session")
def test_engine():
    """
    Create a test database engine.

    Uses SQLite in-memory for fast tests that don't need
    PostgreSQL-specific features.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
    )

    # pysqlite starts transactions lazily, which breaks SAVEPOINT nesting.
    # Let SQLAlchemy emit BEGIN itself so begin_nested() works as on Postgres.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture(scope="session")
def tables(test_engine):
    """
    Create all tables for testing.

    This fixture runs once per test session.
    """
    Base.metadata.create_all(test_engine)
    yield
    Base.metadata.drop_all(test_engine)


@pytest.fixture
def db_session(test_engine, tables):
    """
    Create a database session for a test.

    Each test gets its own session with automatic rollback,
    ensuring tests don't affect each other.
    """
    connection = test_engine.connect()
    transaction = connection.begin()

    Session = sessionmaker(bind=connection)
    session = Session()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def session_scope(db_session):
    """
    Stand-in for get_session() that hands out the test session.

    Flushes instead of committing so the per-test rollback still applies.
    """
    @contextmanager
    def _scope():
        yield db_session
        db_session.flush()

    return _scope


# =============================================================================
# HTML fixtures
# =============================================================================

RESULTS_PAGE_HTML = """
<html><body>
<h1 id="firstHeading">Bugha/Results</h1>

<table class="wikitable standings">
  <tr><th>Place</th><th>Team</th><th>Points</th></tr>
  <tr><td>1</td><td>Team A</td><td>400</td><td>extra</td></tr>
</table>

<table class="wikitable sortable">
  <tr>
    <th>Date</th><th>Place</th><th>Tier</th><th colspan="2">Tournament</th>
    <th>Team</th><th>Prize</th>
  </tr>
  <tr>
    <td>2023-05-14</td>
    <td data-sort-value="3"><span class="placement-text">3rd</span></td>
    <td>S-Tier</td>
    <td data-sort-value="FNCS Chapter 4 Season 2 Grand Finals EU">
      <a href="/fortnite/FNCS/2023/C4S2/Grand_Finals/EU" title="FNCS/2023/C4S2/Grand Finals/EU">icon</a>
    </td>
    <td><a href="/fortnite/FNCS/2023/C4S2/Grand_Finals/EU">FNCS C4S2 Grand Finals</a></td>
    <td><div class="block-players-wrapper">
      <a href="/fortnite/Mongraal">Mongraal</a> <a href="/fortnite/Mitr0">Mitr0</a>
    </div></td>
    <td>$12,345.67</td>
  </tr>
  <tr>
    <td>2023-03-01</td>
    <td>1st</td>
    <td><a href="/fortnite/A-Tier_Tournaments">A-Tier</a></td>
    <td></td>
    <td><a href="/fortnite/Cash_Cup/Solo/2023/Week_9" title="Cash Cup Solo 2023 Week 9">Cash Cup</a></td>
    <td></td>
    <td>$1,000</td>
  </tr>
  <tr>
    <td>2023-02-01</td>
    <td>5th</td>
    <td>B-Tier</td>
    <td data-sort-value="Some Long Tournament Name"></td>
    <td></td>
    <td></td>
    <td>-</td>
  </tr>
  <tr>
    <td>2023-01-15</td>
    <td>10th</td>
    <td>B-Tier</td>
    <td data-sort-value="Another Long Tournament"></td>
    <td></td>
    <td></td>
    <td>TBD</td>
  </tr>
  <tr>
    <td>Jan 2023</td>
    <td>2nd</td>
    <td>B-Tier</td>
    <td data-sort-value="Undated Long Tournament"></td>
    <td></td>
    <td></td>
    <td>$300</td>
  </tr>
  <tr>
    <td>2022-12-20</td>
    <td>DQ</td>
    <td>B-Tier</td>
    <td data-sort-value="Disqualified Long Tournament"></td>
    <td></td>
    <td></td>
    <td>$300</td>
  </tr>
  <tr>
    <td>2022-12-01</td>
    <td>2nd</td>
    <td>B-Tier</td>
    <td>Nameless</td>
    <td></td>
    <td>solo</td>
    <td>$500</td>
  </tr>
  <tr>
    <td>2023-05-14</td>
    <td>3rd</td>
    <td>S-Tier</td>
    <td data-sort-value="FNCS Chapter 4 Season 2 Grand Finals EU"></td>
    <td></td>
    <td></td>
    <td>$12,345.67</td>
  </tr>
  <tr><th colspan="7">2022</th></tr>
  <tr><td>2022-06-01</td><td>1st</td><td>$50</td></tr>
</table>
</body></html>
"""


@pytest.fixture
def results_page_html():
    """A player results page: 2 usable rows plus one row per skip reason."""
    return RESULTS_PAGE_HTML
