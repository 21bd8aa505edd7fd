"""
Tests for the Ledger facade itself: unit-of-work retries, mapping of
database-busy errors, log context binding and fiscal period management.
"""

import sqlite3
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from ledger_config.schema import LedgerConfig
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.values import DateRange
from ledger_kernel.exceptions import (
    ConcurrencyError,
    DatabaseBusyError,
    EntryNumberCollisionError,
    InvalidStatusTransitionError,
    PeriodNotFoundError,
    PeriodOverlapError,
    ValidationError,
)
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.sequence_service import SequenceService
from ledger_services import Ledger

from tests.conftest import STORE_ID, TEST_ACTOR, make_header


@pytest.fixture
def retrying_ledger(session_factory, cache, clock):
    ledger = Ledger(
        session_factory,
        config=LedgerConfig(max_retries=2, retry_backoff_seconds=0.0),
        cache=cache,
        clock=clock,
    )
    ledger.create_chart(STORE_ID, "Casa Centre", actor=TEST_ACTOR)
    return ledger


class TestUnitOfWorkRetry:
    def test_concurrency_error_is_retried(self, retrying_ledger, monkeypatch, captured_logs):
        original = SequenceService.next_value
        calls = {"count": 0}

        def flaky(self, store_id, fiscal_year):
            calls["count"] += 1
            if calls["count"] == 1:
                raise EntryNumberCollisionError(store_id, fiscal_year)
            return original(self, store_id, fiscal_year)

        monkeypatch.setattr(SequenceService, "next_value", flaky)

        entry = retrying_ledger.get_entry(retrying_ledger.create_entry(make_header()))

        assert calls["count"] == 2
        # The failed attempt rolled back, so its allocation is not visible
        assert entry.entry_number == "202401000001"
        retries = [r for r in captured_logs() if r["message"] == "unit_of_work_retry"]
        assert len(retries) == 1
        assert retries[0]["operation"] == "create_entry"

    def test_retries_exhausted(self, retrying_ledger, monkeypatch, captured_logs):
        calls = {"count": 0}

        def always_collides(self, store_id, fiscal_year):
            calls["count"] += 1
            raise EntryNumberCollisionError(store_id, fiscal_year)

        monkeypatch.setattr(SequenceService, "next_value", always_collides)

        with pytest.raises(ConcurrencyError):
            retrying_ledger.create_entry(make_header())
        assert calls["count"] == 3
        messages = [r["message"] for r in captured_logs()]
        assert "unit_of_work_retries_exhausted" in messages

    def test_non_concurrency_errors_are_not_retried(self, retrying_ledger, monkeypatch):
        calls = {"count": 0}
        original = JournalService.create_entry

        def counting(self, header, reversal_of_id=None):
            calls["count"] += 1
            return original(self, header, reversal_of_id)

        monkeypatch.setattr(JournalService, "create_entry", counting)

        with pytest.raises(ValidationError):
            retrying_ledger.create_entry(make_header(journal=""))
        assert calls["count"] == 1


class TestDatabaseBusyMapping:
    def test_locked_database_becomes_database_busy(self, retrying_ledger, monkeypatch):
        calls = {"count": 0}

        def locked(self, header, reversal_of_id=None):
            calls["count"] += 1
            raise OperationalError(
                "UPDATE entry_sequences", {}, sqlite3.OperationalError("database is locked")
            )

        monkeypatch.setattr(JournalService, "create_entry", locked)

        with pytest.raises(DatabaseBusyError) as exc_info:
            retrying_ledger.create_entry(make_header())
        assert exc_info.value.operation == "create_entry"
        assert "database is locked" in exc_info.value.detail
        assert calls["count"] == 3

    def test_other_operational_errors_propagate(self, retrying_ledger, monkeypatch):
        def broken(self, header, reversal_of_id=None):
            raise OperationalError("SELECT 1", {}, sqlite3.OperationalError("no such table: x"))

        monkeypatch.setattr(JournalService, "create_entry", broken)

        with pytest.raises(OperationalError):
            retrying_ledger.create_entry(make_header())


class TestAtomicManualPosting:
    def test_failed_post_entry_leaves_nothing(self, ledger, chart):
        with pytest.raises(ValidationError):
            ledger.post_entry(
                make_header(),
                [LineSpec.debit_line("571", 10), LineSpec(account_code="101")],
            )
        assert ledger.dangling_drafts(STORE_ID) == []
        entry = ledger.post_entry(
            make_header(),
            [LineSpec.debit_line("571", 10), LineSpec.credit_line("101", 10)],
        )
        assert entry.entry_number == "202401000001"


class TestLogContext:
    def test_context_bound_per_call(self, ledger, chart, captured_logs):
        ledger.post_entry(
            make_header(),
            [LineSpec.debit_line("571", 10), LineSpec.credit_line("101", 10)],
        )
        records = [r for r in captured_logs() if r["message"] == "entry_lines_added"]
        assert records[0]["store_id"] == STORE_ID
        assert records[0]["actor_id"] == TEST_ACTOR

    def test_separate_calls_get_separate_correlation_ids(self, ledger, chart, captured_logs):
        for _ in range(2):
            ledger.create_entry(make_header())
        ids = {
            r["correlation_id"]
            for r in captured_logs()
            if r["message"] == "journal_entry_created"
        }
        assert len(ids) == 2


class TestPeriods:
    def test_create_and_list(self, ledger, chart):
        ledger.create_period(
            STORE_ID, "2024-02", "February", date(2024, 2, 1), date(2024, 2, 29), TEST_ACTOR
        )
        ledger.create_period(
            STORE_ID, "2024-01", "January", date(2024, 1, 1), date(2024, 1, 31), TEST_ACTOR
        )
        periods = ledger.list_periods(STORE_ID)
        assert [p.period_code for p in periods] == ["2024-01", "2024-02"]
        assert all(p.is_open for p in periods)
        assert periods[1].date_range == DateRange.month(2024, 2)

    def test_overlap_rejected(self, ledger, chart):
        ledger.create_period(
            STORE_ID, "2024-01", "January", date(2024, 1, 1), date(2024, 1, 31), TEST_ACTOR
        )
        with pytest.raises(PeriodOverlapError) as exc_info:
            ledger.create_period(
                STORE_ID, "2024-Q1", "Q1", date(2024, 1, 15), date(2024, 3, 31), TEST_ACTOR
            )
        assert exc_info.value.existing_period_code == "2024-01"

    def test_inverted_dates_rejected(self, ledger, chart):
        with pytest.raises(ValidationError) as exc_info:
            ledger.create_period(
                STORE_ID, "bad", "Bad", date(2024, 2, 1), date(2024, 1, 1), TEST_ACTOR
            )
        assert exc_info.value.fields == ("end_date",)

    def test_close_then_lock(self, ledger, chart):
        ledger.create_period(
            STORE_ID, "2024-01", "January", date(2024, 1, 1), date(2024, 1, 31), TEST_ACTOR
        )
        assert ledger.close_period(STORE_ID, "2024-01", TEST_ACTOR).status == "closed"
        with pytest.raises(InvalidStatusTransitionError):
            ledger.close_period(STORE_ID, "2024-01", TEST_ACTOR)
        assert ledger.lock_period(STORE_ID, "2024-01", TEST_ACTOR).status == "locked"

    def test_open_period_cannot_be_locked(self, ledger, chart):
        ledger.create_period(
            STORE_ID, "2024-01", "January", date(2024, 1, 1), date(2024, 1, 31), TEST_ACTOR
        )
        with pytest.raises(InvalidStatusTransitionError):
            ledger.lock_period(STORE_ID, "2024-01", TEST_ACTOR)

    def test_reports_accept_period_codes(self, ledger, chart, post_entry, account_id):
        ledger.create_period(
            STORE_ID, "2024-01", "January", date(2024, 1, 1), date(2024, 1, 31), TEST_ACTOR
        )
        post_entry("571", "101", Decimal("75"))
        balance = ledger.account_balances(account_id("571"), "2024-01")
        assert balance.period == DateRange.month(2024, 1)
        assert balance.closing == Decimal("75.00")

    def test_unknown_period_code(self, ledger, chart, account_id):
        with pytest.raises(PeriodNotFoundError):
            ledger.account_balances(account_id("571"), "2099-01")
