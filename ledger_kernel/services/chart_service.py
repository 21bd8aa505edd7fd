"""
ChartService -- per-store chart of accounts.

Responsibility:
    Creates a store's chart from the reference set, serves it (through the
    injected cache) to the journal engine and reports, and manages custom
    sub-accounts and soft deactivation.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - One chart per store.
    - account_type always derived from category (type_for_category).
    - parent_code is the longest proper prefix of the code present in the
      chart; level is len(code).
    - The cache is only an optimisation: every mutation invalidates the
      store's entry and a miss reads the database.
    - A chart is written to the cache stamped with the version read before
      loading it, so a load that raced an invalidation is dropped.  A store
      this service mutated is never cached from its uncommitted state.

Failure modes:
    - ChartAlreadyExistsError on a second create_chart for a store.
    - ChartNotFoundError / AccountNotFoundError on missing references.
    - ValidationError on a bad custom account (duplicate code, bad category).
"""

from collections.abc import Iterable
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.cache import Cache, NullCache
from ledger_kernel.domain.dtos import AccountInfo, ChartInfo
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ChartAlreadyExistsError,
    ChartNotFoundError,
    FieldError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import (
    Account,
    AccountCategory,
    ChartOfAccounts,
    type_for_category,
)
from ledger_kernel.services.base import BaseService

logger = get_logger("services.chart")


class ReferenceAccountLike(Protocol):
    code: str
    name: str
    category: AccountCategory
    postable: bool


def _parent_code(code: str, existing_codes: Iterable[str]) -> str | None:
    """Longest proper prefix of ``code`` found in ``existing_codes``."""
    existing = set(existing_codes)
    for length in range(len(code) - 1, 0, -1):
        if code[:length] in existing:
            return code[:length]
    return None


def chart_cache_key(store_id: str) -> str:
    return f"chart:{store_id}"


class ChartService(BaseService[ChartOfAccounts]):
    """
    Service for store charts of accounts.

    Contract:
        ``get_chart`` returns None for a store without a chart; callers that
        need one use ``require_chart``.

    Guarantees:
        - Returned charts are frozen ChartInfo DTOs, safe to cache and share.
        - Every write flushes and invalidates the store's cache entry.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT delete accounts.
    """

    def __init__(
        self,
        session: Session,
        cache: Cache | None = None,
        cache_ttl_seconds: float = 600.0,
    ):
        super().__init__(session)
        self._cache = cache if cache is not None else NullCache()
        self._mutated_stores: set[str] = set()
        self._cache_ttl_seconds = cache_ttl_seconds

    # ------------------------------------------------------------------
    # Chart
    # ------------------------------------------------------------------

    def create_chart(
        self,
        store_id: str,
        name: str,
        actor: str,
        reference_accounts: Iterable[ReferenceAccountLike],
        currency: str = "MAD",
        fiscal_year_start_month: int = 1,
        fiscal_year_start_day: int = 1,
    ) -> ChartInfo:
        """
        Create a store's chart seeded with the reference accounts.

        Raises:
            ValidationError: if store_id, name or actor is blank.
            ChartAlreadyExistsError: if the store already has a chart.
        """
        errors = []
        if not store_id:
            errors.append(FieldError(field="store_id", message="required"))
        if not name:
            errors.append(FieldError(field="name", message="required"))
        if not actor:
            errors.append(FieldError(field="actor", message="required"))
        if errors:
            raise ValidationError(errors)

        if self._load_chart(store_id) is not None:
            raise ChartAlreadyExistsError(store_id)

        chart = ChartOfAccounts(
            store_id=store_id,
            name=name,
            currency=currency,
            fiscal_year_start_month=fiscal_year_start_month,
            fiscal_year_start_day=fiscal_year_start_day,
            is_active=True,
            created_by_id=actor,
        )
        self.session.add(chart)
        self.session.flush()

        references = sorted(reference_accounts, key=lambda r: r.code)
        codes: list[str] = []
        for ref in references:
            category = AccountCategory(ref.category)
            self.session.add(
                Account(
                    chart_id=chart.id,
                    store_id=store_id,
                    code=ref.code,
                    name=ref.name,
                    category=category.value,
                    account_type=type_for_category(category).value,
                    level=len(ref.code),
                    parent_code=_parent_code(ref.code, codes),
                    postable=ref.postable,
                    is_active=True,
                    created_by_id=actor,
                )
            )
            codes.append(ref.code)
        self.session.flush()
        self.session.refresh(chart)

        self._mark_mutated(store_id)
        logger.info(
            "chart_created",
            extra={
                "store_id": store_id,
                "chart_id": str(chart.id),
                "account_count": len(codes),
            },
        )
        return ChartInfo.from_model(chart)

    def get_chart(self, store_id: str) -> ChartInfo | None:
        """Chart with its accounts, or None when the store has none."""
        key = chart_cache_key(store_id)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("chart_cache_hit", extra={"store_id": store_id})
            return cached

        version = self._cache.version(key)
        chart = self._load_chart(store_id)
        if chart is None:
            return None
        info = ChartInfo.from_model(chart)
        if store_id not in self._mutated_stores:
            self._cache.set(key, info, self._cache_ttl_seconds, version=version)
        logger.debug("chart_cache_miss", extra={"store_id": store_id})
        return info

    def require_chart(self, store_id: str) -> ChartInfo:
        info = self.get_chart(store_id)
        if info is None:
            raise ChartNotFoundError(store_id)
        return info

    def invalidate(self, store_id: str) -> None:
        """Drop the store's cached chart (called again after commit)."""
        self._cache.invalidate(chart_cache_key(store_id))

    def _mark_mutated(self, store_id: str) -> None:
        self._mutated_stores.add(store_id)
        self._cache.invalidate(chart_cache_key(store_id))

    def _load_chart(self, store_id: str) -> ChartOfAccounts | None:
        return self.session.execute(
            select(ChartOfAccounts).where(ChartOfAccounts.store_id == store_id)
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def get_account(self, store_id: str, code: str) -> Account:
        """
        Account ORM row of a store by code.

        Raises:
            AccountNotFoundError: if the code is not in the store's chart.
        """
        account = self.session.execute(
            select(Account).where(Account.store_id == store_id, Account.code == code)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(f"{store_id}/{code}")
        return account

    def add_account(
        self,
        store_id: str,
        code: str,
        name: str,
        category: AccountCategory | str,
        actor: str,
        postable: bool = True,
    ) -> AccountInfo:
        """
        Add a custom account (typically a sub-account such as 5313).

        Raises:
            ChartNotFoundError: if the store has no chart.
            ValidationError: on a blank/non-numeric/duplicate code, a blank
                name or an unknown category.
        """
        chart = self._load_chart(store_id)
        if chart is None:
            raise ChartNotFoundError(store_id)

        existing_codes = [a.code for a in chart.accounts]
        errors = []
        if not code or not code.isdigit():
            errors.append(FieldError(field="code", message="must be a non-empty numeric code"))
        elif code in existing_codes:
            errors.append(FieldError(field="code", message=f"account {code} already exists"))
        if not name:
            errors.append(FieldError(field="name", message="required"))
        try:
            category = AccountCategory(category)
        except ValueError:
            errors.append(FieldError(field="category", message=f"unknown category {category!r}"))
        if errors:
            raise ValidationError(errors)

        account = Account(
            store_id=store_id,
            code=code,
            name=name,
            category=category.value,
            account_type=type_for_category(category).value,
            level=len(code),
            parent_code=_parent_code(code, existing_codes),
            postable=postable,
            is_active=True,
            created_by_id=actor,
        )
        chart.accounts.append(account)
        self.session.flush()

        self._mark_mutated(store_id)
        logger.info(
            "account_added",
            extra={"store_id": store_id, "account_code": code, "category": category.value},
        )
        return AccountInfo.from_model(account)

    def deactivate_account(self, store_id: str, code: str, actor: str) -> AccountInfo:
        """Soft-deactivate an account; it stops accepting new lines."""
        account = self.get_account(store_id, code)
        if account.is_active:
            account.is_active = False
            account.updated_by_id = actor
            self.session.flush()
            self._mark_mutated(store_id)
            logger.info(
                "account_deactivated",
                extra={"store_id": store_id, "account_code": code},
            )
        return AccountInfo.from_model(account)
