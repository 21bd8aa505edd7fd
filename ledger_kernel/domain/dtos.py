"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the kernel boundary:
    EntryHeader and LineSpec (journal input), and the read-side AccountInfo,
    ChartInfo, JournalLineInfo, JournalEntryInfo and FiscalPeriodInfo.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
    from_model() class methods are boundary converters invoked from services
    and selectors only.

Invariants enforced:
    - Amounts on LineSpec are Decimal.  Range checks (non-negative, one side
      non-zero) are NOT done here: JournalService validates every line and
      reports all violations together.
    - Selectors and the Ledger facade return these DTOs, never ORM entities.

Data flow:
    EntryHeader -> JournalEntry (draft) + [LineSpec] -> JournalEntryInfo
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.domain.values import ZERO, DateRange, round_money, to_decimal

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account as AccountModel
    from ledger_kernel.models.account import ChartOfAccounts as ChartModel
    from ledger_kernel.models.fiscal_period import FiscalPeriod as FiscalPeriodModel
    from ledger_kernel.models.journal import JournalEntry as JournalEntryModel
    from ledger_kernel.models.journal import JournalLine as JournalLineModel


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


# ---------------------------------------------------------------------------
# Journal input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EntryHeader:
    """
    Header of a journal entry to create.

    Every field is optional at construction so that JournalService can
    report every missing field in a single ValidationError.
    """

    entry_date: date | None = None
    journal: str | None = None
    description: str | None = None
    store_id: str | None = None
    created_by: str | None = None
    reference: str | None = None


@dataclass(frozen=True)
class LineSpec:
    """
    Specification for one journal line.

    Contract:
        References an account by code (resolved against the entry's store
        chart).  Normally exactly one of debit/credit is non-zero.

    Guarantees:
        - debit and credit are Decimal (ints, strings and floats are
          converted; floats through str()).
    """

    account_code: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str | None = None
    order_id: str | None = None
    inventory_item_id: str | None = None
    vat_category: str | None = None
    # When set, must equal the entry's store
    store_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_decimal(self.debit))
        object.__setattr__(self, "credit", to_decimal(self.credit))
        if self.vat_category is not None:
            object.__setattr__(self, "vat_category", _value(self.vat_category))

    @classmethod
    def debit_line(cls, account_code: str, amount, **kwargs) -> LineSpec:
        return cls(account_code=account_code, debit=to_decimal(amount), **kwargs)

    @classmethod
    def credit_line(cls, account_code: str, amount, **kwargs) -> LineSpec:
        return cls(account_code=account_code, credit=to_decimal(amount), **kwargs)

    @property
    def signed_amount(self) -> Decimal:
        return self.debit - self.credit


# ---------------------------------------------------------------------------
# Chart of accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountInfo:
    """Read-only view of an account."""

    id: UUID
    code: str
    name: str
    category: str
    account_type: str
    normal_balance: str
    level: int
    parent_code: str | None
    postable: bool
    is_active: bool

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountInfo:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            category=_value(model.category),
            account_type=_value(model.account_type),
            normal_balance=_value(model.normal_balance),
            level=model.level,
            parent_code=model.parent_code,
            postable=model.postable,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class ChartInfo:
    """A store's chart with its accounts, ordered by code."""

    id: UUID
    store_id: str
    name: str
    currency: str
    fiscal_year_start_month: int
    fiscal_year_start_day: int
    is_active: bool
    accounts: tuple[AccountInfo, ...] = field(default_factory=tuple)

    @classmethod
    def from_model(cls, model: ChartModel) -> ChartInfo:
        return cls(
            id=model.id,
            store_id=model.store_id,
            name=model.name,
            currency=model.currency,
            fiscal_year_start_month=model.fiscal_year_start_month,
            fiscal_year_start_day=model.fiscal_year_start_day,
            is_active=model.is_active,
            accounts=tuple(
                AccountInfo.from_model(a)
                for a in sorted(model.accounts, key=lambda a: a.code)
            ),
        )

    def account(self, code: str) -> AccountInfo | None:
        for info in self.accounts:
            if info.code == code:
                return info
        return None

    def accounts_of_type(self, account_type: str) -> tuple[AccountInfo, ...]:
        account_type = _value(account_type)
        return tuple(a for a in self.accounts if a.account_type == account_type)


# ---------------------------------------------------------------------------
# Journal read side
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JournalLineInfo:
    id: UUID
    account_id: UUID
    account_code: str
    account_name: str
    debit: Decimal
    credit: Decimal
    description: str | None
    order_id: str | None
    inventory_item_id: str | None
    vat_category: str | None
    line_seq: int

    @classmethod
    def from_model(cls, model: JournalLineModel) -> JournalLineInfo:
        return cls(
            id=model.id,
            account_id=model.account_id,
            account_code=model.account.code,
            account_name=model.account.name,
            debit=round_money(to_decimal(model.debit)),
            credit=round_money(to_decimal(model.credit)),
            description=model.description,
            order_id=model.order_id,
            inventory_item_id=model.inventory_item_id,
            vat_category=model.vat_category,
            line_seq=model.line_seq,
        )


@dataclass(frozen=True)
class JournalEntryInfo:
    """
    Immutable record of a journal entry and its lines.

    Guarantees:
        - lines are ordered by line_seq.
        - status is the plain string value (draft/posted/reversed).
    """

    id: UUID
    store_id: str
    entry_number: str
    fiscal_year: int
    entry_date: date
    journal: str
    description: str
    reference: str | None
    status: str
    reversal_of_id: UUID | None
    created_by: str
    posted_at: datetime | None
    lines: tuple[JournalLineInfo, ...]

    @classmethod
    def from_model(cls, model: JournalEntryModel) -> JournalEntryInfo:
        return cls(
            id=model.id,
            store_id=model.store_id,
            entry_number=model.entry_number,
            fiscal_year=model.fiscal_year,
            entry_date=model.entry_date,
            journal=model.journal,
            description=model.description,
            reference=model.reference,
            status=_value(model.status),
            reversal_of_id=model.reversal_of_id,
            created_by=model.created_by_id,
            posted_at=model.posted_at,
            lines=tuple(JournalLineInfo.from_model(line) for line in model.lines),
        )

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    def is_balanced(self, tolerance: Decimal) -> bool:
        return bool(self.lines) and abs(self.total_debits - self.total_credits) <= tolerance


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FiscalPeriodInfo:
    id: UUID
    store_id: str
    period_code: str
    name: str
    start_date: date
    end_date: date
    status: str

    @classmethod
    def from_model(cls, model: FiscalPeriodModel) -> FiscalPeriodInfo:
        return cls(
            id=model.id,
            store_id=model.store_id,
            period_code=model.period_code,
            name=model.name,
            start_date=model.start_date,
            end_date=model.end_date,
            status=_value(model.status),
        )

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)

    @property
    def is_open(self) -> bool:
        return self.status == "open"
