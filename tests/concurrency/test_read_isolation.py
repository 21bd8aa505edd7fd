"""
Reads alongside a held write lock.

A second connection opens a write transaction on the file-backed SQLite
database and keeps it open.  Read operations of the Ledger begin deferred
transactions and must still return; write operations queue behind the lock
and surface DatabaseBusyError once the busy timeout runs out.

Run with: pytest tests/concurrency -v
Skip with: pytest -m "not concurrency"
"""

import sqlite3
from datetime import datetime, timezone

import pytest

from ledger_config.schema import LedgerConfig
from ledger_kernel.db.engine import create_engine_from_url, create_session_factory
from ledger_kernel.domain.cache import NullCache
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.values import DateRange
from ledger_kernel.exceptions import DatabaseBusyError
from ledger_modules._orm_registry import create_all_tables
from ledger_services import Ledger

from tests.conftest import STORE_ID, TEST_ACTOR, make_header

pytestmark = pytest.mark.concurrency

JANUARY = DateRange.month(2024, 1)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "ledger.db"


@pytest.fixture
def impatient_ledger(db_path):
    engine = create_engine_from_url(f"sqlite:///{db_path}", sqlite_busy_timeout=0.5)
    create_all_tables(engine)
    ledger = Ledger(
        create_session_factory(engine),
        config=LedgerConfig(max_retries=0, retry_backoff_seconds=0.0),
        cache=NullCache(),
        clock=DeterministicClock(datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)),
    )
    ledger.create_chart(STORE_ID, "Casa Centre", actor=TEST_ACTOR)
    yield ledger
    engine.dispose()


@pytest.fixture
def held_write_lock(db_path, impatient_ledger):
    conn = sqlite3.connect(str(db_path), isolation_level=None, timeout=0.5)
    conn.execute("BEGIN IMMEDIATE")
    yield conn
    conn.execute("ROLLBACK")
    conn.close()


class TestReadsDuringWrite:
    def test_chart_read_is_not_blocked(self, impatient_ledger, held_write_lock):
        chart = impatient_ledger.get_chart(STORE_ID)
        assert chart is not None
        assert chart.account("571") is not None

    def test_balances_read_is_not_blocked(self, impatient_ledger, held_write_lock):
        balances = impatient_ledger.store_balances(STORE_ID, JANUARY)
        assert balances

    def test_entry_listing_is_not_blocked(self, impatient_ledger, held_write_lock):
        assert impatient_ledger.list_entries(STORE_ID, JANUARY) == []

    def test_write_waits_for_the_lock(self, impatient_ledger, held_write_lock):
        with pytest.raises(DatabaseBusyError) as exc_info:
            impatient_ledger.create_entry(make_header())
        assert exc_info.value.operation == "create_entry"

    def test_write_proceeds_once_released(self, impatient_ledger, held_write_lock):
        held_write_lock.execute("ROLLBACK")
        held_write_lock.execute("BEGIN")
        entry_id = impatient_ledger.create_entry(make_header())
        assert impatient_ledger.get_entry(entry_id).status == "draft"
