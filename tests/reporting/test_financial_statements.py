"""
Trial balance, income statement, balance sheet and profitability reports.

The pure builders in ``statements`` are covered directly; the facade tests
check that reports read booked balances and that trial balance snapshots
are persisted.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import delete, false, func, select

from ledger_kernel.domain.values import DateRange
from ledger_kernel.exceptions import (
    ConcurrencyError,
    PeriodNotFoundError,
    TrialBalanceConflictError,
    ValidationError,
)
from ledger_kernel.selectors.ledger_selector import AccountPeriodBalance
from ledger_modules.reporting import service as reporting_service
from ledger_modules.reporting import statements
from ledger_modules.reporting.models import (
    BalanceSheet,
    IncomeStatement,
    StatementStatus,
    StatementType,
)
from ledger_modules.reporting.orm import TrialBalanceSnapshot, TrialBalanceSnapshotLine

from tests.conftest import STORE_ID, TEST_ACTOR

JANUARY = DateRange.month(2024, 1)


def _balance(code, account_type, category, opening="0", debits="0", credits="0", postable=True):
    return AccountPeriodBalance(
        account_id=uuid4(),
        account_code=code,
        account_name=f"Account {code}",
        account_type=account_type,
        category=category,
        postable=postable,
        period=JANUARY,
        opening=Decimal(opening),
        period_debits=Decimal(debits),
        period_credits=Decimal(credits),
    )


@pytest.fixture
def trading_month(ledger, chart, post_entry):
    """Capital 5000, sales 1000 into the till, purchases 700 from the bank."""
    post_entry("571", "101", Decimal("5000"), entry_date=date(2024, 1, 2))
    post_entry("5311", "701", Decimal("1000"), entry_date=date(2024, 1, 10))
    post_entry("601", "571", Decimal("700"), entry_date=date(2024, 1, 20))


class TestHelpers:
    @pytest.mark.parametrize(
        "net, columns",
        [
            (Decimal("150"), (Decimal("150"), Decimal("0"))),
            (Decimal("-40"), (Decimal("0"), Decimal("40"))),
            (Decimal("0"), (Decimal("0"), Decimal("0"))),
        ],
    )
    def test_split_balance(self, net, columns):
        assert statements.split_balance(net) == columns

    def test_margin(self):
        assert statements.margin(Decimal("300"), Decimal("1000")) == Decimal("30.00")
        assert statements.margin(Decimal("1"), Decimal("3")) == Decimal("33.33")

    def test_margin_without_revenue(self):
        assert statements.margin(Decimal("-50"), Decimal("0")) == Decimal("0")


class TestPureBuilders:
    def test_trial_balance_skips_non_postable_accounts(self):
        balances = [
            _balance("53", "asset", "cash", debits="10", postable=False),
            _balance("571", "asset", "bank", opening="100", debits="20"),
            _balance("101", "equity", "capital", opening="-100", credits="20"),
        ]
        report = statements.build_trial_balance(
            STORE_ID, JANUARY, balances, Decimal("0.01"), datetime(2024, 2, 1, tzinfo=timezone.utc)
        )
        assert [line.account_code for line in report.lines] == ["571", "101"]
        bank = report.line("571")
        assert (bank.opening_debit, bank.period_debit, bank.closing_debit) == (
            Decimal("100"),
            Decimal("20"),
            Decimal("120"),
        )
        assert report.line("101").closing_credit == Decimal("120")
        assert report.is_balanced
        assert report.difference == Decimal("0")

    def test_out_of_balance_detected(self):
        balances = [_balance("571", "asset", "bank", debits="10")]
        report = statements.build_trial_balance(
            STORE_ID, JANUARY, balances, Decimal("0.01"), datetime(2024, 2, 1, tzinfo=timezone.utc)
        )
        assert not report.is_balanced
        assert report.difference == Decimal("10")

    def test_income_statement_natural_signs(self):
        balances = [
            _balance("701", "revenue", "sales", credits="1000"),
            _balance("601", "expense", "purchases", debits="700"),
            _balance("571", "asset", "bank", debits="300"),
        ]
        income = statements.build_income_statement(STORE_ID, JANUARY, balances)
        assert [(l.account_code, l.amount) for l in income.revenue] == [("701", Decimal("1000"))]
        assert [(l.account_code, l.amount) for l in income.expenses] == [("601", Decimal("700"))]
        assert income.net_result == Decimal("300")
        assert income.gross_margin == Decimal("30.00")
        assert income.is_profitable


class TestTrialBalance:
    def test_balanced_after_trading(self, ledger, trading_month):
        report = ledger.get_trial_balance(JANUARY, STORE_ID, actor=TEST_ACTOR)
        assert report.is_balanced
        assert report.total_closing_debit == report.total_closing_credit == Decimal("6000.00")
        assert report.total_period_debit == report.total_period_credit
        assert report.line("571").closing_debit == Decimal("4300.00")
        assert report.line("701").closing_credit == Decimal("1000.00")
        assert report.snapshot_id is not None

    def test_every_postable_account_listed(self, ledger, chart, trading_month):
        report = ledger.get_trial_balance(JANUARY, STORE_ID)
        postable = sorted(a.code for a in chart.accounts if a.postable)
        assert [line.account_code for line in report.lines] == postable

    def test_regeneration_replaces_snapshot(self, ledger, trading_month, post_entry, session_factory):
        first = ledger.get_trial_balance(JANUARY, STORE_ID)
        post_entry("5311", "701", Decimal("50"), entry_date=date(2024, 1, 25))
        second = ledger.get_trial_balance(JANUARY, STORE_ID)

        assert second.snapshot_id != first.snapshot_id
        assert second.line("701").closing_credit == Decimal("1050.00")
        with session_factory() as session:
            assert session.scalar(select(func.count()).select_from(TrialBalanceSnapshot)) == 1
            line_count = session.scalar(select(func.count()).select_from(TrialBalanceSnapshotLine))
            assert line_count == len(second.lines)

    def test_latest_snapshot_read_back(self, ledger, trading_month):
        assert ledger.latest_trial_balance(JANUARY, STORE_ID) is None
        generated = ledger.get_trial_balance(JANUARY, STORE_ID)
        stored = ledger.latest_trial_balance(JANUARY, STORE_ID)
        assert stored.snapshot_id == generated.snapshot_id
        assert stored.lines == generated.lines
        assert stored.total_closing_debit == Decimal("6000.00")
        assert stored.is_balanced

    def test_snapshots_kept_per_period(self, ledger, trading_month, session_factory):
        ledger.get_trial_balance(JANUARY, STORE_ID)
        ledger.get_trial_balance(DateRange.month(2024, 2), STORE_ID)
        with session_factory() as session:
            assert session.scalar(select(func.count()).select_from(TrialBalanceSnapshot)) == 2

    def test_opening_columns_carry_prior_months(self, ledger, trading_month):
        report = ledger.get_trial_balance(DateRange.month(2024, 2), STORE_ID)
        bank = report.line("571")
        assert bank.opening_debit == Decimal("4300.00")
        assert bank.period_debit == bank.period_credit == Decimal("0")

    def test_unknown_period_code(self, ledger, chart):
        with pytest.raises(PeriodNotFoundError):
            ledger.get_trial_balance("2024-13", STORE_ID)

    def test_concurrent_snapshot_is_retried(
        self, ledger, trading_month, monkeypatch, captured_logs, session_factory
    ):
        first = ledger.get_trial_balance(JANUARY, STORE_ID)
        calls = {"count": 0}

        def delete_racing_an_insert(model):
            calls["count"] += 1
            statement = delete(model)
            if calls["count"] == 1:
                # The other writer's snapshot lands after this delete ran
                return statement.where(false())
            return statement

        monkeypatch.setattr(reporting_service, "delete", delete_racing_an_insert)

        second = ledger.get_trial_balance(JANUARY, STORE_ID)
        assert second.snapshot_id != first.snapshot_id
        assert calls["count"] == 2
        retries = [r for r in captured_logs() if r["message"] == "unit_of_work_retry"]
        assert [r["error_code"] for r in retries] == ["TRIAL_BALANCE_CONFLICT"]
        with session_factory() as session:
            assert session.scalar(select(func.count()).select_from(TrialBalanceSnapshot)) == 1

    def test_snapshot_conflict_is_a_concurrency_error(self):
        error = TrialBalanceConflictError(STORE_ID, "2024-01-01", "2024-01-31")
        assert isinstance(error, ConcurrencyError)
        assert "2024-01-31" in str(error)


class TestFinancialStatements:
    def test_income_statement(self, ledger, trading_month):
        statement = ledger.generate_financial_statement("income_statement", JANUARY, STORE_ID)
        assert statement.statement_type == StatementType.INCOME_STATEMENT
        assert statement.currency == "MAD"
        assert statement.is_draft
        income = statement.data
        assert isinstance(income, IncomeStatement)
        assert income.total_revenue == Decimal("1000.00")
        assert income.total_expenses == Decimal("700.00")
        assert income.net_result == Decimal("300.00")
        assert income.gross_margin == Decimal("30.00")

    def test_balance_sheet_balances(self, ledger, trading_month, config):
        statement = ledger.generate_financial_statement(
            StatementType.BALANCE_SHEET, JANUARY, STORE_ID
        )
        sheet = statement.data
        assert isinstance(sheet, BalanceSheet)
        assert sheet.total_assets == Decimal("5300.00")
        assert sheet.equity.total == Decimal("5000.00")
        assert sheet.current_result == Decimal("300.00")
        assert sheet.is_balanced(config.balance_tolerance)

    def test_approval_returns_approved_copy(self, ledger, trading_month):
        statement = ledger.generate_financial_statement("income_statement", JANUARY, STORE_ID)
        approved = statement.approve()
        assert approved.status == StatementStatus.APPROVED
        assert not approved.is_draft
        assert approved.data == statement.data
        assert statement.is_draft

    def test_cash_flow_not_supported(self, ledger, chart):
        with pytest.raises(ValidationError) as exc_info:
            ledger.generate_financial_statement("cash_flow", JANUARY, STORE_ID)
        assert exc_info.value.fields == ("statement_type",)

    def test_unknown_statement_type(self, ledger, chart):
        with pytest.raises(ValidationError):
            ledger.generate_financial_statement("cash_forecast", JANUARY, STORE_ID)

    def test_empty_period(self, ledger, chart):
        income = ledger.generate_financial_statement("income_statement", JANUARY, STORE_ID).data
        assert income.revenue == ()
        assert income.net_result == Decimal("0")
        assert income.gross_margin == Decimal("0")


class TestProfitability:
    def test_margins(self, ledger, trading_month, post_entry):
        post_entry("611", "571", Decimal("100"), entry_date=date(2024, 1, 22))
        analysis = ledger.analyze_profitability(JANUARY, STORE_ID)

        assert analysis.total_revenue == Decimal("1000.00")
        assert analysis.purchases == Decimal("700.00")
        assert analysis.total_costs == Decimal("800.00")
        assert analysis.gross_profit == Decimal("300.00")
        assert analysis.gross_margin == Decimal("30.00")
        assert analysis.net_profit == Decimal("200.00")
        assert analysis.net_margin == Decimal("20.00")
