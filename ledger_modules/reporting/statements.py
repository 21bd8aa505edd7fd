"""
Pure financial statement transformation functions.

These functions turn the per-account balances computed by the kernel
LedgerSelector into trial balances, income statements, balance sheets and
profitability figures.  ZERO I/O.  ZERO side effects.  Deterministic:
the same balances always produce the same report.

All monetary values are Decimal.  All outputs are frozen dataclasses.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from ledger_kernel.domain.values import ZERO, DateRange, round_money
from ledger_kernel.models.account import AccountCategory, AccountType
from ledger_kernel.selectors.ledger_selector import AccountPeriodBalance
from ledger_modules.reporting.models import (
    BalanceSheet,
    BalanceSheetSection,
    IncomeStatement,
    ProfitabilityAnalysis,
    StatementLine,
    TrialBalanceLine,
    TrialBalanceReport,
)

HUNDRED = Decimal("100")


# =========================================================================
# Helpers
# =========================================================================


def split_balance(net: Decimal) -> tuple[Decimal, Decimal]:
    """Signed debit-minus-credit net -> (debit column, credit column)."""
    return max(ZERO, net), max(ZERO, -net)


def margin(amount: Decimal, revenue: Decimal) -> Decimal:
    """amount / revenue * 100 rounded to cents; zero when revenue is zero."""
    if revenue == ZERO:
        return ZERO
    return round_money(amount / revenue * HUNDRED)


def _of_type(
    balances: Iterable[AccountPeriodBalance], account_type: AccountType
) -> list[AccountPeriodBalance]:
    return [b for b in balances if b.account_type == account_type.value]


def _statement_lines(
    balances: Iterable[AccountPeriodBalance],
    amount_of,
) -> tuple[StatementLine, ...]:
    lines = []
    for balance in balances:
        amount = amount_of(balance)
        if amount == ZERO:
            continue
        lines.append(
            StatementLine(
                account_code=balance.account_code,
                account_name=balance.account_name,
                amount=amount,
            )
        )
    return tuple(lines)


def _total(lines: Iterable[StatementLine]) -> Decimal:
    return sum((line.amount for line in lines), ZERO)


# =========================================================================
# Trial balance
# =========================================================================


def build_trial_balance(
    store_id: str,
    period: DateRange,
    balances: Iterable[AccountPeriodBalance],
    tolerance: Decimal,
    generated_at: datetime,
) -> TrialBalanceReport:
    """
    Trial balance over every postable account of the store.

    Opening, period movement and closing are each split into a debit and a
    credit column with max(0, +net) and max(0, -net).
    """
    lines = []
    for balance in balances:
        if not balance.postable:
            continue
        opening_debit, opening_credit = split_balance(balance.opening)
        period_debit, period_credit = split_balance(balance.period_movement)
        closing_debit, closing_credit = split_balance(balance.closing)
        lines.append(
            TrialBalanceLine(
                account_id=balance.account_id,
                account_code=balance.account_code,
                account_name=balance.account_name,
                account_type=balance.account_type,
                opening_debit=opening_debit,
                opening_credit=opening_credit,
                period_debit=period_debit,
                period_credit=period_credit,
                closing_debit=closing_debit,
                closing_credit=closing_credit,
            )
        )

    def column(name: str) -> Decimal:
        return sum((getattr(line, name) for line in lines), ZERO)

    total_closing_debit = column("closing_debit")
    total_closing_credit = column("closing_credit")
    return TrialBalanceReport(
        store_id=store_id,
        period=period,
        generated_at=generated_at,
        lines=tuple(lines),
        total_opening_debit=column("opening_debit"),
        total_opening_credit=column("opening_credit"),
        total_period_debit=column("period_debit"),
        total_period_credit=column("period_credit"),
        total_closing_debit=total_closing_debit,
        total_closing_credit=total_closing_credit,
        is_balanced=abs(total_closing_debit - total_closing_credit) <= tolerance,
    )


# =========================================================================
# Income statement
# =========================================================================


def build_income_statement(
    store_id: str,
    period: DateRange,
    balances: Iterable[AccountPeriodBalance],
) -> IncomeStatement:
    """Period movement of revenue and expense accounts, natural sign."""
    balances = list(balances)
    revenue = _statement_lines(
        _of_type(balances, AccountType.REVENUE), lambda b: -b.period_movement
    )
    expenses = _statement_lines(
        _of_type(balances, AccountType.EXPENSE), lambda b: b.period_movement
    )
    total_revenue = _total(revenue)
    total_expenses = _total(expenses)
    net_result = total_revenue - total_expenses
    return IncomeStatement(
        store_id=store_id,
        period=period,
        revenue=revenue,
        expenses=expenses,
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        net_result=net_result,
        gross_margin=margin(net_result, total_revenue),
    )


# =========================================================================
# Balance sheet
# =========================================================================


def build_balance_sheet(
    store_id: str,
    period: DateRange,
    balances: Iterable[AccountPeriodBalance],
) -> BalanceSheet:
    """
    Closing balances in natural sign.  Revenue and expense accounts are not
    listed; their net goes to ``current_result``.
    """
    balances = list(balances)

    def section(title: str, account_type: AccountType, sign: int) -> BalanceSheetSection:
        lines = _statement_lines(_of_type(balances, account_type), lambda b: sign * b.closing)
        return BalanceSheetSection(title=title, lines=lines, total=_total(lines))

    revenue = sum((-b.closing for b in _of_type(balances, AccountType.REVENUE)), ZERO)
    expenses = sum((b.closing for b in _of_type(balances, AccountType.EXPENSE)), ZERO)
    return BalanceSheet(
        store_id=store_id,
        period=period,
        assets=section("Assets", AccountType.ASSET, 1),
        liabilities=section("Liabilities", AccountType.LIABILITY, -1),
        equity=section("Equity", AccountType.EQUITY, -1),
        current_result=revenue - expenses,
    )


# =========================================================================
# Profitability
# =========================================================================


def build_profitability(
    store_id: str,
    period: DateRange,
    balances: Iterable[AccountPeriodBalance],
) -> ProfitabilityAnalysis:
    """Revenue, costs and margins; gross profit deducts purchases only."""
    balances = list(balances)
    income = build_income_statement(store_id, period, balances)
    purchases = sum(
        (
            b.period_movement
            for b in _of_type(balances, AccountType.EXPENSE)
            if b.category == AccountCategory.PURCHASES.value
        ),
        ZERO,
    )
    gross_profit = income.total_revenue - purchases
    return ProfitabilityAnalysis(
        store_id=store_id,
        period=period,
        total_revenue=income.total_revenue,
        total_costs=income.total_expenses,
        purchases=purchases,
        gross_profit=gross_profit,
        gross_margin=margin(gross_profit, income.total_revenue),
        net_profit=income.net_result,
        net_margin=margin(income.net_result, income.total_revenue),
    )
