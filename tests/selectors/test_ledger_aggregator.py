"""
Ledger aggregator: opening, movement and closing balances, the general
ledger listing and store-wide balances.  Balances are always derived from
booked journal lines.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.values import DateRange
from ledger_kernel.exceptions import AccountNotFoundError

from tests.conftest import STORE_ID, TEST_ACTOR, make_header

JANUARY = DateRange.month(2024, 1)
FEBRUARY = DateRange.month(2024, 2)


@pytest.fixture
def two_months(ledger, chart, post_entry):
    """Capital paid into the bank in January, goods bought in February."""
    post_entry("571", "101", Decimal("500"), entry_date=date(2024, 1, 10))
    post_entry("601", "571", Decimal("200"), entry_date=date(2024, 2, 5))


class TestAccountBalances:
    def test_opening_equals_previous_closing(self, ledger, account_id, two_months):
        january = ledger.account_balances(account_id("571"), JANUARY)
        february = ledger.account_balances(account_id("571"), FEBRUARY)

        assert january.opening == Decimal("0")
        assert january.period_debits == Decimal("500.00")
        assert january.closing == Decimal("500.00")

        assert february.opening == january.closing
        assert february.period_debits == Decimal("0")
        assert february.period_credits == Decimal("200.00")
        assert february.period_movement == Decimal("-200.00")
        assert february.closing == Decimal("300.00")

    def test_balance_metadata(self, ledger, account_id, two_months):
        balance = ledger.account_balances(account_id("601"), FEBRUARY)
        assert balance.account_code == "601"
        assert balance.account_type == "expense"
        assert balance.period == FEBRUARY
        assert balance.has_activity

    def test_no_activity_is_zero(self, ledger, chart, account_id):
        balance = ledger.account_balances(account_id("4456"), JANUARY)
        assert balance.opening == balance.closing == Decimal("0")
        assert not balance.has_activity

    def test_later_entries_do_not_leak_backwards(self, ledger, account_id, two_months):
        january = ledger.account_balances(account_id("601"), JANUARY)
        assert january.closing == Decimal("0")

    def test_drafts_excluded(self, ledger, account_id, two_months):
        ledger.create_entry(make_header(entry_date=date(2024, 1, 20)))
        assert ledger.account_balances(account_id("571"), JANUARY).closing == Decimal("500.00")

    def test_reversed_entry_nets_to_zero(self, ledger, account_id, chart, post_entry):
        entry = post_entry("5311", "701", Decimal("42.50"))
        ledger.reverse_entry(entry.id)
        balance = ledger.account_balances(account_id("5311"), JANUARY)
        assert balance.period_debits == Decimal("42.50")
        assert balance.period_credits == Decimal("42.50")
        assert balance.closing == Decimal("0")

    def test_unknown_account(self, ledger, chart):
        with pytest.raises(AccountNotFoundError):
            ledger.account_balances(uuid4(), JANUARY)

    def test_period_code_resolution(self, ledger, account_id, two_months):
        ledger.create_period(
            STORE_ID, "2024-02", "February", date(2024, 2, 1), date(2024, 2, 29), TEST_ACTOR
        )
        by_code = ledger.account_balances(account_id("571"), "2024-02")
        by_range = ledger.account_balances(account_id("571"), FEBRUARY)
        assert by_code == by_range


class TestGeneralLedger:
    def test_running_balance(self, ledger, account_id, two_months, post_entry):
        post_entry("571", "701", Decimal("80"), entry_date=date(2024, 2, 12))
        listing = ledger.get_general_ledger(account_id("571"), FEBRUARY)

        assert listing.opening == Decimal("500.00")
        assert [(l.debit, l.credit) for l in listing.lines] == [
            (Decimal("0"), Decimal("200.00")),
            (Decimal("80.00"), Decimal("0")),
        ]
        assert [l.running_balance for l in listing.lines] == [
            Decimal("300.00"),
            Decimal("380.00"),
        ]
        assert listing.closing == Decimal("380.00")
        assert listing.total_debits == Decimal("80.00")
        assert listing.total_credits == Decimal("200.00")

    def test_lines_ordered_by_entry_number(self, ledger, account_id, two_months):
        listing = ledger.get_general_ledger(account_id("571"), DateRange.year(2024))
        numbers = [l.entry_number for l in listing.lines]
        assert numbers == sorted(numbers)
        assert listing.opening == Decimal("0")

    def test_unknown_account(self, ledger, chart):
        with pytest.raises(AccountNotFoundError):
            ledger.get_general_ledger(uuid4(), JANUARY)


class TestStoreBalances:
    def test_one_row_per_account(self, ledger, chart, two_months):
        balances = ledger.store_balances(STORE_ID, FEBRUARY)
        assert [b.account_code for b in balances] == sorted(a.code for a in chart.accounts)

    def test_books_balance(self, ledger, two_months):
        balances = ledger.store_balances(STORE_ID, DateRange.year(2024))
        assert sum((b.closing for b in balances), Decimal("0")) == Decimal("0")

    def test_stores_do_not_mix(self, ledger, two_months):
        ledger.create_chart("store-2", "Rabat", actor=TEST_ACTOR)
        balances = ledger.store_balances("store-2", DateRange.year(2024))
        assert all(not b.has_activity for b in balances)
