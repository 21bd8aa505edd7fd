"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for a store's Chart of Accounts and its
    accounts -- the target of every journal line.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One chart per store (uq_chart_store).
    - Account code unique within a chart (uq_account_chart_code).
    - account_type is derived from category through CATEGORY_TYPES, an
      exhaustive mapping checked at import time: adding a category without a
      type mapping fails immediately instead of defaulting to asset.
    - Fiscal-year bounds are fixed when the chart is created.
    - Accounts are never deleted; deactivation is a soft flag.

Failure modes:
    - IntegrityError on duplicate chart per store or duplicate code per chart.
    - KeyError from type_for_category() on a value outside AccountCategory.

Audit relevance:
    Historical journal lines must stay resolvable, so account rows are
    never removed and their category/type never change once referenced.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


class AccountCategory(str, Enum):
    """Finer classification of accounts, grouped by plan class."""

    # Class 1 - permanent financing
    CAPITAL = "capital"
    RESERVES = "reserves"
    RETAINED_EARNINGS = "retained_earnings"
    RESULT = "result"

    # Class 2 - fixed assets
    INTANGIBLE_ASSETS = "intangible_assets"
    TANGIBLE_ASSETS = "tangible_assets"
    FINANCIAL_ASSETS = "financial_assets"
    CURRENT_ASSETS = "current_assets"

    # Class 3 - stocks
    RAW_MATERIALS = "raw_materials"
    CONSUMABLES = "consumables"
    PRODUCTS_IN_PROGRESS = "products_in_progress"
    FINISHED_PRODUCTS = "finished_products"
    GOODS = "goods"

    # Class 4 - third parties
    SUPPLIERS = "suppliers"
    CUSTOMERS = "customers"
    STATE = "state"
    PERSONNEL = "personnel"
    OTHERS_DEBTORS = "others_debtors"
    OTHERS_CREDITORS = "others_creditors"

    # Class 5 - treasury
    CASH = "cash"
    BANK = "bank"
    OTHER_MEANS = "other_means"

    # Class 6 - expenses
    PURCHASES = "purchases"
    EXTERNAL_SERVICES = "external_services"
    TAXES = "taxes"
    PAYROLL = "payroll"
    OTHER_EXPENSES = "other_expenses"

    # Class 7 - income
    SALES = "sales"
    OTHER_INCOME = "other_income"
    SUBSIDIES = "subsidies"


CATEGORY_TYPES: dict[AccountCategory, AccountType] = {
    AccountCategory.CAPITAL: AccountType.EQUITY,
    AccountCategory.RESERVES: AccountType.EQUITY,
    AccountCategory.RETAINED_EARNINGS: AccountType.EQUITY,
    AccountCategory.RESULT: AccountType.EQUITY,
    AccountCategory.INTANGIBLE_ASSETS: AccountType.ASSET,
    AccountCategory.TANGIBLE_ASSETS: AccountType.ASSET,
    AccountCategory.FINANCIAL_ASSETS: AccountType.ASSET,
    AccountCategory.CURRENT_ASSETS: AccountType.ASSET,
    AccountCategory.RAW_MATERIALS: AccountType.ASSET,
    AccountCategory.CONSUMABLES: AccountType.ASSET,
    AccountCategory.PRODUCTS_IN_PROGRESS: AccountType.ASSET,
    AccountCategory.FINISHED_PRODUCTS: AccountType.ASSET,
    AccountCategory.GOODS: AccountType.ASSET,
    AccountCategory.CUSTOMERS: AccountType.ASSET,
    AccountCategory.PERSONNEL: AccountType.ASSET,
    AccountCategory.OTHERS_DEBTORS: AccountType.ASSET,
    AccountCategory.SUPPLIERS: AccountType.LIABILITY,
    AccountCategory.STATE: AccountType.LIABILITY,
    AccountCategory.OTHERS_CREDITORS: AccountType.LIABILITY,
    AccountCategory.CASH: AccountType.ASSET,
    AccountCategory.BANK: AccountType.ASSET,
    AccountCategory.OTHER_MEANS: AccountType.ASSET,
    AccountCategory.PURCHASES: AccountType.EXPENSE,
    AccountCategory.EXTERNAL_SERVICES: AccountType.EXPENSE,
    AccountCategory.TAXES: AccountType.EXPENSE,
    AccountCategory.PAYROLL: AccountType.EXPENSE,
    AccountCategory.OTHER_EXPENSES: AccountType.EXPENSE,
    AccountCategory.SALES: AccountType.REVENUE,
    AccountCategory.OTHER_INCOME: AccountType.REVENUE,
    AccountCategory.SUBSIDIES: AccountType.REVENUE,
}

_unmapped = set(AccountCategory) - set(CATEGORY_TYPES)
if _unmapped:
    raise RuntimeError(
        f"AccountCategory values without an AccountType: {sorted(c.value for c in _unmapped)}"
    )


def type_for_category(category: AccountCategory | str) -> AccountType:
    """Exhaustive category -> type lookup.

    Raises:
        ValueError: if ``category`` is not an AccountCategory value.
    """
    return CATEGORY_TYPES[AccountCategory(category)]


def normal_balance_for(account_type: AccountType) -> NormalBalance:
    if account_type in (AccountType.ASSET, AccountType.EXPENSE):
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


class ChartOfAccounts(TrackedBase):
    """
    A store's chart of accounts.

    Contract:
        Created once at store onboarding.  fiscal_year_start_month/day and
        currency are fixed at creation.

    Guarantees:
        - store_id is unique.
        - accounts are loaded eagerly and ordered by code.
    """

    __tablename__ = "charts_of_accounts"

    __table_args__ = (
        UniqueConstraint("store_id", name="uq_chart_store"),
    )

    store_id: Mapped[str] = mapped_column(String(100), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    fiscal_year_start_month: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1,
    )

    fiscal_year_start_day: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    accounts: Mapped[list["Account"]] = relationship(
        back_populates="chart",
        lazy="selectin",
        order_by="Account.code",
    )

    def __repr__(self) -> str:
        return f"<ChartOfAccounts store={self.store_id}: {self.name}>"


class Account(TrackedBase):
    """
    Chart of Accounts entry -- a single node in a store's ledger structure.

    Contract:
        code is unique within its chart.  account_type always equals
        CATEGORY_TYPES[category].  Only postable, active accounts accept
        journal lines.

    Guarantees:
        - level == len(code).
        - parent_code is the longest proper prefix of code present in the
          same chart (None for top-level accounts).

    Non-goals:
        - Balances are never stored here; they are aggregated from lines.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("chart_id", "code", name="uq_account_chart_code"),
        Index("idx_account_store_code", "store_id", "code"),
        Index("idx_account_type", "account_type"),
    )

    chart_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("charts_of_accounts.id"),
        nullable=False,
    )

    # Denormalized from the chart so lines can be checked without a join
    store_id: Mapped[str] = mapped_column(String(100), nullable=False)

    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    category: Mapped[AccountCategory] = mapped_column(String(30), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    level: Mapped[int] = mapped_column(Integer, nullable=False)

    parent_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    postable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    chart: Mapped["ChartOfAccounts"] = relationship(back_populates="accounts")

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def normal_balance(self) -> NormalBalance:
        return normal_balance_for(AccountType(self.account_type))

    @property
    def accepts_lines(self) -> bool:
        return self.postable and self.is_active
