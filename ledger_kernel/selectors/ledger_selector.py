"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: The ledger aggregator.  Opening, period-movement and closing
    balances per account, general-ledger listings with a running balance,
    and the taxable base lines read by the VAT calculator.  The ledger is a
    derived view over booked JournalLines -- no balance is stored anywhere.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.

Invariants enforced:
    - Only lines of POSTED or REVERSED entries count (BOOKED_STATUSES).
      Drafts are invisible to every balance.  A reversed entry still counts
      because its reversal entry carries the offsetting lines.
    - opening  = net (debit - credit) of booked lines dated before the
      period start, which equals the closing balance of the preceding
      period and is zero before the account's first activity.
    - movement = net of booked lines dated within the period.
    - closing  = opening + movement.
    - Aggregation is done in SQL with SUM(CASE ...); nothing is cached.

Failure modes:
    - AccountNotFoundError for an unknown account_id.
    - Returns zero balances (never None) for accounts without activity.

Audit relevance:
    Every report (trial balance, statements, VAT) reads balances through
    this selector, so a correction (reversal) is reflected everywhere on
    the next read.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.values import ZERO, DateRange, round_money, to_decimal
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.journal import BOOKED_STATUSES, JournalEntry, JournalLine
from ledger_kernel.selectors.base import BaseSelector


def _money(value) -> Decimal:
    return round_money(to_decimal(value))


@dataclass(frozen=True)
class AccountPeriodBalance:
    """Opening, movement and closing of one account over a period.

    All amounts are signed debit-minus-credit nets.
    """

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    category: str
    postable: bool
    period: DateRange
    opening: Decimal
    period_debits: Decimal
    period_credits: Decimal

    @property
    def period_movement(self) -> Decimal:
        return self.period_debits - self.period_credits

    @property
    def closing(self) -> Decimal:
        return self.opening + self.period_movement

    @property
    def has_activity(self) -> bool:
        return bool(self.opening or self.period_debits or self.period_credits)


@dataclass(frozen=True)
class GeneralLedgerLine:
    entry_id: UUID
    entry_number: str
    entry_date: date
    journal: str
    description: str | None
    debit: Decimal
    credit: Decimal
    running_balance: Decimal
    order_id: str | None


@dataclass(frozen=True)
class GeneralLedger:
    """Booked lines of one account over a range, with running balance."""

    account_id: UUID
    account_code: str
    account_name: str
    period: DateRange
    opening: Decimal
    lines: tuple[GeneralLedgerLine, ...]

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    @property
    def closing(self) -> Decimal:
        return self.opening + self.total_debits - self.total_credits


@dataclass(frozen=True)
class TaxableLine:
    """A booked line tagged with a VAT category."""

    line_id: UUID
    entry_id: UUID
    account_code: str
    account_type: str
    vat_category: str
    debit: Decimal
    credit: Decimal


class LedgerSelector(BaseSelector[JournalLine]):
    """
    Selector for ledger balances -- the authoritative balance computation.

    Contract:
        Balances derive from booked JournalLines of one store.  Results
        are rounded to cents.

    Non-goals:
        - No currency conversion; a store keeps its books in one currency.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _booked_lines(self, up_to: date, store_id: str | None = None):
        query = (
            select(
                JournalLine.account_id.label("account_id"),
                JournalLine.line_date.label("line_date"),
                JournalLine.debit.label("debit"),
                JournalLine.credit.label("credit"),
            )
            .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
            .where(
                JournalEntry.status.in_(BOOKED_STATUSES),
                JournalLine.line_date <= up_to,
            )
        )
        if store_id is not None:
            query = query.where(JournalLine.store_id == store_id)
        return query.subquery("booked")

    def _balance_query(self, period: DateRange, store_id: str | None = None):
        booked = self._booked_lines(period.end, store_id)
        before = booked.c.line_date < period.start
        within = booked.c.line_date >= period.start

        opening = func.coalesce(
            func.sum(case((before, booked.c.debit - booked.c.credit), else_=Decimal("0"))),
            Decimal("0"),
        ).label("opening")
        period_debits = func.coalesce(
            func.sum(case((within, booked.c.debit), else_=Decimal("0"))),
            Decimal("0"),
        ).label("period_debits")
        period_credits = func.coalesce(
            func.sum(case((within, booked.c.credit), else_=Decimal("0"))),
            Decimal("0"),
        ).label("period_credits")

        return (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                Account.category,
                Account.postable,
                opening,
                period_debits,
                period_credits,
            )
            .select_from(Account)
            .outerjoin(booked, booked.c.account_id == Account.id)
            .group_by(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                Account.category,
                Account.postable,
            )
            .order_by(Account.code)
        )

    @staticmethod
    def _to_balance(row, period: DateRange) -> AccountPeriodBalance:
        return AccountPeriodBalance(
            account_id=row.id,
            account_code=row.code,
            account_name=row.name,
            account_type=row.account_type,
            category=row.category,
            postable=row.postable,
            period=period,
            opening=_money(row.opening),
            period_debits=_money(row.period_debits),
            period_credits=_money(row.period_credits),
        )

    def account_balances(self, account_id: UUID, period: DateRange) -> AccountPeriodBalance:
        """
        Opening, movement and closing of one account.

        Raises:
            AccountNotFoundError: unknown account_id.
        """
        row = self.session.execute(
            self._balance_query(period).where(Account.id == account_id)
        ).one_or_none()
        if row is None:
            raise AccountNotFoundError(str(account_id))
        return self._to_balance(row, period)

    def store_balances(
        self,
        store_id: str,
        period: DateRange,
        account_types: tuple[AccountType, ...] | None = None,
    ) -> list[AccountPeriodBalance]:
        """Balances of every account of a store in one grouped query."""
        query = self._balance_query(period, store_id).where(Account.store_id == store_id)
        if account_types:
            query = query.where(Account.account_type.in_([t.value for t in account_types]))
        return [self._to_balance(row, period) for row in self.session.execute(query).all()]

    def general_ledger(self, account_id: UUID, date_range: DateRange) -> GeneralLedger:
        """
        Booked lines of an account within the range, oldest first, with a
        running balance starting from the opening balance.
        """
        balance = self.account_balances(account_id, date_range)

        rows = self.session.execute(
            select(
                JournalEntry.id,
                JournalEntry.entry_number,
                JournalEntry.entry_date,
                JournalEntry.journal,
                JournalLine.description,
                JournalLine.debit,
                JournalLine.credit,
                JournalLine.order_id,
            )
            .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
            .where(
                JournalLine.account_id == account_id,
                JournalEntry.status.in_(BOOKED_STATUSES),
                JournalLine.line_date >= date_range.start,
                JournalLine.line_date <= date_range.end,
            )
            .order_by(JournalEntry.entry_date, JournalEntry.entry_number, JournalLine.line_seq)
        ).all()

        running = balance.opening
        lines = []
        for row in rows:
            debit = _money(row.debit)
            credit = _money(row.credit)
            running = running + debit - credit
            lines.append(
                GeneralLedgerLine(
                    entry_id=row.id,
                    entry_number=row.entry_number,
                    entry_date=row.entry_date,
                    journal=row.journal,
                    description=row.description,
                    debit=debit,
                    credit=credit,
                    running_balance=running,
                    order_id=row.order_id,
                )
            )

        return GeneralLedger(
            account_id=account_id,
            account_code=balance.account_code,
            account_name=balance.account_name,
            period=date_range,
            opening=balance.opening,
            lines=tuple(lines),
        )

    def taxable_lines(
        self,
        store_id: str,
        date_range: DateRange,
        account_types: tuple[AccountType, ...] = (AccountType.REVENUE, AccountType.EXPENSE),
    ) -> list[TaxableLine]:
        """Booked lines with a vat_category on revenue/expense accounts."""
        rows = self.session.execute(
            select(
                JournalLine.id,
                JournalLine.journal_entry_id,
                Account.code,
                Account.account_type,
                JournalLine.vat_category,
                JournalLine.debit,
                JournalLine.credit,
            )
            .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
            .join(Account, Account.id == JournalLine.account_id)
            .where(
                and_(
                    JournalLine.store_id == store_id,
                    JournalEntry.status.in_(BOOKED_STATUSES),
                    JournalLine.vat_category.isnot(None),
                    JournalLine.line_date >= date_range.start,
                    JournalLine.line_date <= date_range.end,
                    Account.account_type.in_([t.value for t in account_types]),
                )
            )
            .order_by(JournalLine.line_date, JournalLine.id)
        ).all()
        return [
            TaxableLine(
                line_id=row.id,
                entry_id=row.journal_entry_id,
                account_code=row.code,
                account_type=row.account_type,
                vat_category=row.vat_category,
                debit=to_decimal(row.debit),
                credit=to_decimal(row.credit),
            )
            for row in rows
        ]
