"""
Pytest fixtures for the restaurant ledger test suite.

Provides:
- A fresh in-memory SQLite database per test (file-backed for concurrency
  tests, see ``file_engine``)
- A Ledger wired with a DeterministicClock and a TTLCache
- A seeded chart of accounts for STORE_ID
- Structured log capture
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from ledger_config.schema import LedgerConfig
from ledger_kernel.db.engine import create_engine_from_url, create_session_factory
from ledger_kernel.domain.cache import TTLCache
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import EntryHeader, LineSpec
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_modules._orm_registry import create_all_tables
from ledger_services import Ledger

STORE_ID = "store-1"
TEST_ACTOR = "tester"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.on_order_completed(...)
            logs = captured_logs()
            assert any(r["message"] == "event_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "concurrency: tests that run several threads against a file-backed database"
    )
    config.addinivalue_line("markers", "slow: tests that take more than a second")


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database with every table created."""
    eng = create_engine_from_url("sqlite:///:memory:")
    create_all_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite database, for tests where threads need real connections."""
    eng = create_engine_from_url(f"sqlite:///{tmp_path / 'ledger.db'}", sqlite_busy_timeout=60.0)
    create_all_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


# =============================================================================
# Ledger fixtures
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def cache(clock):
    return TTLCache(clock)


@pytest.fixture
def config():
    return LedgerConfig(retry_backoff_seconds=0.0)


@pytest.fixture
def ledger(session_factory, config, cache, clock):
    return Ledger(session_factory, config=config, cache=cache, clock=clock)


@pytest.fixture
def chart(ledger):
    """The seeded chart of STORE_ID."""
    return ledger.create_chart(STORE_ID, "Casa Centre", actor=TEST_ACTOR)


@pytest.fixture
def account_id(ledger, chart):
    """Look up an account id of STORE_ID by code."""

    def _account_id(code: str):
        return ledger.get_chart(STORE_ID).account(code).id

    return _account_id


def make_header(**overrides) -> EntryHeader:
    values = {
        "entry_date": date(2024, 1, 15),
        "journal": "OD",
        "description": "Manual entry",
        "store_id": STORE_ID,
        "created_by": TEST_ACTOR,
    }
    values.update(overrides)
    return EntryHeader(**values)


@pytest.fixture
def post_entry(ledger, chart):
    """
    Post a simple two-line entry: Dr ``debit_code`` / Cr ``credit_code``.

    Returns the posted JournalEntryInfo.
    """

    def _post(
        debit_code: str,
        credit_code: str,
        amount,
        entry_date: date = date(2024, 1, 15),
        **header,
    ):
        amount = Decimal(str(amount))
        return ledger.post_entry(
            make_header(entry_date=entry_date, **header),
            [
                LineSpec.debit_line(debit_code, amount),
                LineSpec.credit_line(credit_code, amount),
            ],
        )

    return _post


@pytest.fixture
def header_factory():
    return make_header
