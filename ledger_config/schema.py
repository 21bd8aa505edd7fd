"""
Ledger Configuration Schema (``ledger_config.schema``).

Responsibility
--------------
Defines ``LedgerConfig``, the single frozen configuration object handed to
the ``Ledger`` facade and, through it, to every service.  Field defaults
follow Moroccan restaurant practice (MAD, VAT due on the 20th of the
following month, 0.01 balance tolerance).

Invariants enforced
-------------------
* Every numeric setting is validated in ``__post_init__``; an invalid value
  raises ``ConfigurationError`` naming the key.
* Monetary settings (tolerance, VAT rates, regime thresholds) are Decimal.
* Partial ``accounts`` / ``journals`` / ``vat_rates`` maps given to
  ``from_dict`` are merged over the defaults, never replace them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Self

from ledger_kernel.exceptions import ConfigurationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("config.schema")

DEFAULT_VAT_RATES: dict[str, Decimal | None] = {
    "standard": Decimal("0.20"),
    "reduced": Decimal("0.10"),
    "super_reduced": Decimal("0.07"),
    "zero": Decimal("0"),
    # Exonerated without a right to deduct
    "exempt": None,
}

DEFAULT_TAX_REGIMES: dict[str, Decimal] = {
    "REAL_NORMAL": Decimal("500000"),
    "REAL_SIMPLIFIE": Decimal("2000000"),
    "FORFAIT": Decimal("500000"),
    "EXEMPTION": Decimal("0"),
}

# Posting role -> account code in the store's chart
DEFAULT_ACCOUNTS: dict[str, str] = {
    "revenue": "701",
    "vat_collected": "445",
    "vat_due": "4456",
    "vat_recoverable": "4457",
    "receivable": "411",
    "payable": "401",
    "purchases": "601",
    "bank": "571",
    "cash": "5311",
    "card": "571",
    "mobile": "571",
}

DEFAULT_JOURNALS: dict[str, str] = {
    "sales": "VT",
    "bank": "BK",
    "cash": "CA",
    "tax": "TVA",
    "purchases": "AC",
    "misc": "OD",
}


def _decimal(key: str, value: Any) -> Decimal:
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ConfigurationError(key, f"not a decimal: {value!r}") from exc


@dataclass(frozen=True)
class LedgerConfig:
    """
    Configuration for one Ledger instance.

    Override at instantiation or load from YAML:

        config = LedgerConfig(balance_tolerance=Decimal("0.005"))
        config = load_ledger_config("restaurant.yaml")
    """

    currency: str = "MAD"

    # |debits - credits| accepted as balanced
    balance_tolerance: Decimal = Decimal("0.01")

    # Day of the month after the period end on which VAT is due
    vat_due_day: int = 20

    # Digits of the sequential part of an entry number
    entry_sequence_width: int = 6

    chart_cache_ttl_seconds: float = 600.0

    fiscal_year_start_month: int = 1
    fiscal_year_start_day: int = 1

    vat_rates: dict[str, Decimal | None] = field(
        default_factory=lambda: dict(DEFAULT_VAT_RATES),
    )
    tax_regimes: dict[str, Decimal] = field(
        default_factory=lambda: dict(DEFAULT_TAX_REGIMES),
    )
    accounts: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ACCOUNTS))
    journals: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_JOURNALS))

    # Retries of a unit of work that failed with a ConcurrencyError
    max_retries: int = 10
    retry_backoff_seconds: float = 0.05

    # None -> bundled ledger_config/defaults/reference_chart.yaml
    reference_chart_path: str | None = None

    def __post_init__(self):
        if len(self.currency) != 3:
            raise ConfigurationError("currency", "must be a 3-letter ISO 4217 code")
        if self.balance_tolerance < 0:
            raise ConfigurationError("balance_tolerance", "cannot be negative")
        if not 1 <= self.vat_due_day <= 28:
            raise ConfigurationError("vat_due_day", "must be between 1 and 28")
        if not 1 <= self.entry_sequence_width <= 12:
            raise ConfigurationError("entry_sequence_width", "must be between 1 and 12")
        if self.chart_cache_ttl_seconds < 0:
            raise ConfigurationError("chart_cache_ttl_seconds", "cannot be negative")
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ConfigurationError("fiscal_year_start_month", "must be between 1 and 12")
        if not 1 <= self.fiscal_year_start_day <= 28:
            raise ConfigurationError("fiscal_year_start_day", "must be between 1 and 28")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries", "cannot be negative")
        if self.retry_backoff_seconds < 0:
            raise ConfigurationError("retry_backoff_seconds", "cannot be negative")
        for category, rate in self.vat_rates.items():
            if rate is not None and not Decimal("0") <= rate < Decimal("1"):
                raise ConfigurationError(f"vat_rates.{category}", "must be in [0, 1)")
        missing_accounts = set(DEFAULT_ACCOUNTS) - set(self.accounts)
        if missing_accounts:
            raise ConfigurationError(
                "accounts", f"missing roles: {', '.join(sorted(missing_accounts))}"
            )
        missing_journals = set(DEFAULT_JOURNALS) - set(self.journals)
        if missing_journals:
            raise ConfigurationError(
                "journals", f"missing journals: {', '.join(sorted(missing_journals))}"
            )
        logger.debug(
            "ledger_config_validated",
            extra={
                "currency": self.currency,
                "balance_tolerance": self.balance_tolerance,
                "vat_due_day": self.vat_due_day,
            },
        )

    def account_code(self, role: str) -> str:
        try:
            return self.accounts[role]
        except KeyError:
            raise ConfigurationError(f"accounts.{role}", "no account mapped") from None

    def journal_code(self, name: str) -> str:
        try:
            return self.journals[name]
        except KeyError:
            raise ConfigurationError(f"journals.{name}", "no journal mapped") from None

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("ledger_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """
        Create config from a dictionary (typically parsed YAML).

        Raises:
            ConfigurationError: on unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(
                ", ".join(sorted(unknown)), "unknown configuration key"
            )

        kwargs = dict(data)
        if "balance_tolerance" in kwargs:
            kwargs["balance_tolerance"] = _decimal(
                "balance_tolerance", kwargs["balance_tolerance"]
            )
        if "vat_rates" in kwargs:
            rates = dict(DEFAULT_VAT_RATES)
            for category, rate in (kwargs["vat_rates"] or {}).items():
                rates[category] = (
                    None if rate is None else _decimal(f"vat_rates.{category}", rate)
                )
            kwargs["vat_rates"] = rates
        if "tax_regimes" in kwargs:
            regimes = dict(DEFAULT_TAX_REGIMES)
            for regime, threshold in (kwargs["tax_regimes"] or {}).items():
                regimes[regime] = _decimal(f"tax_regimes.{regime}", threshold)
            kwargs["tax_regimes"] = regimes
        if "accounts" in kwargs:
            kwargs["accounts"] = {
                **DEFAULT_ACCOUNTS,
                **{k: str(v) for k, v in (kwargs["accounts"] or {}).items()},
            }
        if "journals" in kwargs:
            kwargs["journals"] = {**DEFAULT_JOURNALS, **(kwargs["journals"] or {})}

        logger.info(
            "ledger_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**kwargs)
