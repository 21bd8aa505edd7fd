"""
Journal engine tests: entry creation and numbering, line validation, the
balance check, reversal, draft discarding and the immutability of posted
entries.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_config.schema import LedgerConfig
from ledger_kernel.domain.dtos import EntryHeader, LineSpec
from ledger_kernel.domain.values import DateRange
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ChartNotFoundError,
    ClosedPeriodError,
    EntryAlreadyReversedError,
    EntryNotFoundError,
    EntryNotPostedError,
    ImmutabilityViolationError,
    StoreMismatchError,
    UnbalancedEntryError,
    ValidationError,
)
from ledger_kernel.models.journal import JournalEntry
from ledger_services import Ledger

from tests.conftest import STORE_ID, TEST_ACTOR, make_header


def _pair(amount, debit_code="571", credit_code="101"):
    return [LineSpec.debit_line(debit_code, amount), LineSpec.credit_line(credit_code, amount)]


class TestCreateEntry:
    def test_draft_with_entry_number(self, ledger, chart):
        entry_id = ledger.create_entry(make_header())
        entry = ledger.get_entry(entry_id)
        assert entry.status == "draft"
        assert entry.entry_number == "202401000001"
        assert entry.fiscal_year == 2024
        assert entry.lines == ()

    def test_missing_fields_reported_together(self, ledger, chart):
        with pytest.raises(ValidationError) as exc_info:
            ledger.create_entry(EntryHeader())
        assert set(exc_info.value.fields) == {
            "entry_date",
            "journal",
            "description",
            "store_id",
            "created_by",
        }

    def test_blank_description_rejected(self, ledger, chart):
        with pytest.raises(ValidationError) as exc_info:
            ledger.create_entry(make_header(description="   "))
        assert exc_info.value.fields == ("description",)

    def test_store_without_chart(self, ledger):
        with pytest.raises(ChartNotFoundError):
            ledger.create_entry(make_header(store_id="store-9"))

    def test_numbers_are_sequential(self, ledger, chart):
        numbers = [ledger.get_entry(ledger.create_entry(make_header())).entry_number for _ in range(3)]
        assert numbers == ["202401000001", "202401000002", "202401000003"]

    def test_number_carries_entry_month(self, ledger, chart):
        ledger.create_entry(make_header())
        march = ledger.get_entry(ledger.create_entry(make_header(entry_date=date(2024, 3, 2))))
        assert march.entry_number == "202403000002"

    def test_sequence_restarts_each_fiscal_year(self, ledger, chart):
        ledger.create_entry(make_header())
        entry = ledger.get_entry(ledger.create_entry(make_header(entry_date=date(2025, 1, 3))))
        assert entry.entry_number == "202501000001"

    def test_sequences_are_per_store(self, ledger, chart):
        ledger.create_chart("store-2", "Rabat", actor=TEST_ACTOR)
        ledger.create_entry(make_header())
        other = ledger.get_entry(ledger.create_entry(make_header(store_id="store-2")))
        assert other.entry_number == "202401000001"

    def test_configured_sequence_width(self, session_factory, cache, clock):
        ledger = Ledger(
            session_factory,
            config=LedgerConfig(entry_sequence_width=4),
            cache=cache,
            clock=clock,
        )
        ledger.create_chart(STORE_ID, "Casa", actor=TEST_ACTOR)
        entry = ledger.get_entry(ledger.create_entry(make_header()))
        assert entry.entry_number == "2024010001"

    def test_closed_period_rejects_entries(self, ledger, chart):
        ledger.create_period(
            STORE_ID, "2023-12", "December 2023", date(2023, 12, 1), date(2023, 12, 31), TEST_ACTOR
        )
        ledger.close_period(STORE_ID, "2023-12", TEST_ACTOR)
        with pytest.raises(ClosedPeriodError) as exc_info:
            ledger.create_entry(make_header(entry_date=date(2023, 12, 15)))
        assert exc_info.value.period_code == "2023-12"

    def test_open_period_accepts_entries(self, ledger, chart):
        ledger.create_period(
            STORE_ID, "2024-01", "January 2024", date(2024, 1, 1), date(2024, 1, 31), TEST_ACTOR
        )
        entry = ledger.post_entry(make_header(), _pair(10))
        assert entry.status == "posted"


class TestAddLines:
    def test_balanced_lines_post_the_entry(self, ledger, chart, clock):
        entry_id = ledger.create_entry(make_header())
        entry = ledger.add_lines(entry_id, _pair(Decimal("250.50")))
        assert entry.status == "posted"
        assert entry.posted_at == clock.now()
        assert entry.total_debits == entry.total_credits == Decimal("250.50")
        assert [line.account_code for line in entry.lines] == ["571", "101"]
        assert [line.line_seq for line in entry.lines] == [0, 1]

    def test_unbalanced_lines_rejected_with_totals(self, ledger, chart):
        entry_id = ledger.create_entry(make_header())
        with pytest.raises(UnbalancedEntryError) as exc_info:
            ledger.add_lines(
                entry_id,
                [LineSpec.debit_line("571", 100), LineSpec.credit_line("101", Decimal("100.02"))],
            )
        assert exc_info.value.debit_total == Decimal("100")
        assert exc_info.value.credit_total == Decimal("100.02")
        assert ledger.get_entry(entry_id).status == "draft"

    def test_difference_within_tolerance_accepted(self, ledger, chart):
        entry = ledger.post_entry(
            make_header(),
            [LineSpec.debit_line("571", 100), LineSpec.credit_line("101", Decimal("100.005"))],
        )
        assert entry.status == "posted"

    def test_amount_errors_collected(self, ledger, chart):
        entry_id = ledger.create_entry(make_header())
        with pytest.raises(ValidationError) as exc_info:
            ledger.add_lines(
                entry_id,
                [
                    LineSpec(account_code="571", debit=Decimal("-5")),
                    LineSpec(account_code="101"),
                ],
            )
        assert exc_info.value.fields == ("lines[0].debit", "lines[1]")

    def test_no_lines(self, ledger, chart):
        entry_id = ledger.create_entry(make_header())
        with pytest.raises(ValidationError) as exc_info:
            ledger.add_lines(entry_id, [])
        assert exc_info.value.fields == ("lines",)

    def test_unknown_account(self, ledger, chart):
        entry_id = ledger.create_entry(make_header())
        with pytest.raises(AccountNotFoundError):
            ledger.add_lines(entry_id, _pair(10, debit_code="999"))

    def test_line_from_another_store(self, ledger, chart):
        entry_id = ledger.create_entry(make_header())
        with pytest.raises(StoreMismatchError):
            ledger.add_lines(
                entry_id,
                [
                    LineSpec.debit_line("571", 10, store_id="store-2"),
                    LineSpec.credit_line("101", 10),
                ],
            )

    def test_lines_stamped_with_entry_store_and_date(self, ledger, chart, session_factory):
        entry = ledger.post_entry(make_header(entry_date=date(2024, 1, 20)), _pair(10))
        with session_factory() as session:
            model = session.get(JournalEntry, entry.id)
            assert {line.store_id for line in model.lines} == {STORE_ID}
            assert {line.line_date for line in model.lines} == {date(2024, 1, 20)}

    def test_posted_entry_accepts_no_more_lines(self, ledger, chart):
        entry = ledger.post_entry(make_header(), _pair(10))
        with pytest.raises(ImmutabilityViolationError):
            ledger.add_lines(entry.id, _pair(5))

    def test_unknown_entry(self, ledger, chart):
        with pytest.raises(EntryNotFoundError):
            ledger.add_lines(uuid4(), _pair(5))


class TestDrafts:
    def test_failed_add_lines_leaves_dangling_draft(self, ledger, chart):
        entry_id = ledger.create_entry(make_header())
        with pytest.raises(UnbalancedEntryError):
            ledger.add_lines(
                entry_id, [LineSpec.debit_line("571", 10), LineSpec.credit_line("101", 9)]
            )
        assert [d.id for d in ledger.dangling_drafts(STORE_ID)] == [entry_id]

    def test_discard_draft(self, ledger, chart):
        entry_id = ledger.create_entry(make_header())
        ledger.discard_draft(entry_id)
        assert ledger.get_entry(entry_id) is None
        assert ledger.dangling_drafts(STORE_ID) == []

    def test_discarded_number_is_not_reused(self, ledger, chart):
        ledger.discard_draft(ledger.create_entry(make_header()))
        entry = ledger.get_entry(ledger.create_entry(make_header()))
        assert entry.entry_number == "202401000002"

    def test_posted_entry_cannot_be_discarded(self, ledger, chart):
        entry = ledger.post_entry(make_header(), _pair(10))
        with pytest.raises(ImmutabilityViolationError):
            ledger.discard_draft(entry.id)

    def test_drafts_are_invisible_to_balances(self, ledger, chart, account_id):
        ledger.create_entry(make_header())
        balance = ledger.account_balances(account_id("571"), DateRange.month(2024, 1))
        assert balance.closing == Decimal("0")


class TestReversal:
    def test_reversal_swaps_debits_and_credits(self, ledger, chart):
        original = ledger.post_entry(make_header(), _pair(Decimal("80.25")))
        reversal = ledger.get_entry(ledger.reverse_entry(original.id, actor="manager"))

        assert reversal.status == "posted"
        assert reversal.reversal_of_id == original.id
        assert reversal.reference == f"REVERSAL:{original.entry_number}"
        assert reversal.entry_date == original.entry_date
        assert reversal.created_by == "manager"
        assert [(l.account_code, l.debit, l.credit) for l in reversal.lines] == [
            ("571", Decimal("0"), Decimal("80.25")),
            ("101", Decimal("80.25"), Decimal("0")),
        ]

    def test_original_flagged_and_kept(self, ledger, chart):
        original = ledger.post_entry(make_header(), _pair(10))
        ledger.reverse_entry(original.id)
        after = ledger.get_entry(original.id)
        assert after.status == "reversed"
        assert after.lines == original.lines

    def test_reason_becomes_description(self, ledger, chart):
        original = ledger.post_entry(make_header(), _pair(10))
        reversal = ledger.get_entry(ledger.reverse_entry(original.id, reason="Wrong till"))
        assert reversal.description == "Wrong till"

    def test_double_reversal_rejected(self, ledger, chart):
        original = ledger.post_entry(make_header(), _pair(10))
        ledger.reverse_entry(original.id)
        with pytest.raises(EntryAlreadyReversedError):
            ledger.reverse_entry(original.id)

    def test_draft_cannot_be_reversed(self, ledger, chart):
        entry_id = ledger.create_entry(make_header())
        with pytest.raises(EntryNotPostedError):
            ledger.reverse_entry(entry_id)


class TestLineAmounts:
    """Line amounts read back as cents, whatever scale the column stores."""

    def test_amounts_are_quantized_to_cents(self, ledger, chart):
        entry = ledger.post_entry(make_header(), _pair(10))
        stored = ledger.get_entry(entry.id)
        assert [str(l.debit) for l in stored.lines] == ["10.00", "0.00"]
        assert [str(l.credit) for l in stored.lines] == ["0.00", "10.00"]

    def test_totals_are_in_cents(self, ledger, chart):
        entry = ledger.get_entry(ledger.post_entry(make_header(), _pair("80.25")).id)
        assert entry.total_debits == Decimal("80.25")
        assert entry.total_debits.as_tuple().exponent == -2


class TestImmutability:
    """Posted rows cannot be changed through the ORM."""

    def test_posted_entry_update_blocked(self, ledger, chart, session_factory):
        entry = ledger.post_entry(make_header(), _pair(10))
        with session_factory() as session:
            model = session.get(JournalEntry, entry.id)
            model.description = "tampered"
            with pytest.raises(ImmutabilityViolationError):
                session.flush()
            session.rollback()

    def test_posted_line_update_blocked(self, ledger, chart, session_factory):
        entry = ledger.post_entry(make_header(), _pair(10))
        with session_factory() as session:
            model = session.get(JournalEntry, entry.id)
            model.lines[0].debit = Decimal("1000")
            with pytest.raises(ImmutabilityViolationError):
                session.flush()
            session.rollback()

    def test_posted_entry_delete_blocked(self, ledger, chart, session_factory):
        entry = ledger.post_entry(make_header(), _pair(10))
        with session_factory() as session:
            session.delete(session.get(JournalEntry, entry.id))
            with pytest.raises(ImmutabilityViolationError):
                session.flush()
            session.rollback()


class TestJournalLogging:
    def test_creation_logged_with_correlation_id(self, ledger, chart, captured_logs):
        ledger.post_entry(make_header(), _pair(10))
        records = [r for r in captured_logs() if r["message"] == "journal_entry_created"]
        assert len(records) == 1
        assert records[0]["entry_number"] == "202401000001"
        assert records[0]["store_id"] == STORE_ID
        assert records[0]["correlation_id"]
