"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerError:

    LedgerError (base)
    |
    +-- ValidationError                (caller can correct and retry)
    |   +-- ChartDataError
    |   +-- ChartAlreadyExistsError
    |   +-- AccountNotPostableError
    |   +-- AccountInactiveError
    |   +-- StoreMismatchError
    |   +-- ImmutabilityViolationError
    |   +-- EntryNotPostedError
    |   +-- EntryAlreadyReversedError
    |   +-- PeriodOverlapError
    |   +-- ClosedPeriodError
    |   +-- VATReportFiledError
    |   +-- InvalidStatusTransitionError
    |
    +-- UnbalancedEntryError           (never coerced, always rejected)
    |
    +-- NotFoundError                  (required reference absent)
    |   +-- ChartNotFoundError
    |   +-- AccountNotFoundError
    |   +-- EntryNotFoundError
    |   +-- PeriodNotFoundError
    |   +-- VATReportNotFoundError
    |
    +-- ConcurrencyError               (retry with a fresh sequence)
    |   +-- EntryNumberCollisionError
    |   +-- DatabaseBusyError
    |   +-- ReportConflictError
    |       +-- TrialBalanceConflictError
    |       +-- VATReportConflictError
    |
    +-- PostingRuleNotFoundError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Missing/invalid fields (all listed)
                | CHART_DATA_INVALID          | Reference chart has conflicting codes
                | CHART_ALREADY_EXISTS        | Store already has a chart
                | ACCOUNT_NOT_POSTABLE        | Line targets a header account
                | ACCOUNT_INACTIVE            | Line targets a deactivated account
                | STORE_MISMATCH              | Line store differs from entry store
                | IMMUTABILITY_VIOLATION      | Modifying a posted entry or its lines
                | ENTRY_NOT_POSTED            | Reversing a draft entry
                | ENTRY_ALREADY_REVERSED      | Reversing twice
                | PERIOD_OVERLAP              | Period date ranges intersect
                | CLOSED_PERIOD               | Posting into a closed period
                | VAT_REPORT_FILED            | Regenerating a filed VAT report
                | INVALID_STATUS_TRANSITION   | Illegal VAT report lifecycle move
----------------|-----------------------------|-----------------------------------------
Balance         | UNBALANCED_ENTRY            | |debits - credits| > tolerance
----------------|-----------------------------|-----------------------------------------
Not found       | CHART_NOT_FOUND             | Store has no chart
                | ACCOUNT_NOT_FOUND           | Code/ID absent from the chart
                | ENTRY_NOT_FOUND             | Entry ID doesn't exist
                | PERIOD_NOT_FOUND            | Period code unknown for the store
                | VAT_REPORT_NOT_FOUND        | VAT report ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Concurrency     | ENTRY_NUMBER_COLLISION      | Two writers got the same number
                | DATABASE_BUSY               | Lock timeout / serialization failure
                | TRIAL_BALANCE_CONFLICT      | Concurrent snapshot for one period
                | VAT_REPORT_CONFLICT         | Concurrent VAT report for one period
----------------|-----------------------------|-----------------------------------------
Posting         | POSTING_RULE_NOT_FOUND      | No rule registered for event type
----------------|-----------------------------|-----------------------------------------
Config          | CONFIGURATION_ERROR         | Invalid ledger configuration

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        ledger.add_lines(entry_id, lines)
    except UnbalancedEntryError as e:
        return {"error": e.code, "debit_total": e.debit_total,
                "credit_total": e.credit_total}
    except ValidationError as e:
        return {"error": e.code, "fields": [f.field for f in e.errors]}

ConcurrencyError is retried by the Ledger facade and is not expected to reach
end users unless every retry fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


class LedgerError(Exception):
    """
    Base exception for all ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_ERROR"


# Validation-related exceptions


@dataclass(frozen=True)
class FieldError:
    """A single violated field."""

    field: str
    message: str


class ValidationError(LedgerError):
    """Missing or invalid fields; every violation is listed."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, errors: list[FieldError] | tuple[FieldError, ...] | str):
        if isinstance(errors, str):
            errors = (FieldError(field="", message=errors),)
        self.errors = tuple(errors)
        detail = "; ".join(
            f"{e.field}: {e.message}" if e.field else e.message for e in self.errors
        )
        super().__init__(f"Validation failed: {detail}")

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(e.field for e in self.errors)


class ChartDataError(ValidationError):
    """Reference chart data contains conflicting duplicate codes."""

    code: str = "CHART_DATA_INVALID"

    def __init__(self, duplicate_codes: list[str]):
        self.duplicate_codes = tuple(duplicate_codes)
        super().__init__(
            [
                FieldError(field=f"accounts[{code}]", message="duplicate code with conflicting definition")
                for code in self.duplicate_codes
            ]
        )


class ChartAlreadyExistsError(ValidationError):
    """The store already owns a chart of accounts."""

    code: str = "CHART_ALREADY_EXISTS"

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__([FieldError(field="store_id", message=f"chart already exists for store {store_id}")])


class AccountNotPostableError(ValidationError):
    """Account does not accept journal lines."""

    code: str = "ACCOUNT_NOT_POSTABLE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__([FieldError(field="account", message=f"account {account_code} is not postable")])


class AccountInactiveError(ValidationError):
    """Account is deactivated."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__([FieldError(field="account", message=f"account {account_code} is inactive")])


class StoreMismatchError(ValidationError):
    """A line or account belongs to a different store than its entry."""

    code: str = "STORE_MISMATCH"

    def __init__(self, expected_store_id: str, actual_store_id: str):
        self.expected_store_id = expected_store_id
        self.actual_store_id = actual_store_id
        super().__init__(
            [
                FieldError(
                    field="store_id",
                    message=f"expected store {expected_store_id}, got {actual_store_id}",
                )
            ]
        )


class ImmutabilityViolationError(ValidationError):
    """Attempted to modify or delete a posted journal entry or its lines."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            [FieldError(field=entity_type, message=f"{entity_id}: {reason}")]
        )


class EntryNotPostedError(ValidationError):
    """Cannot reverse an entry that is not posted."""

    code: str = "ENTRY_NOT_POSTED"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.status = status
        super().__init__(
            [FieldError(field="entry_id", message=f"entry {entry_id} is {status}, not posted")]
        )


class EntryAlreadyReversedError(ValidationError):
    """Entry has already been reversed."""

    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(
            [FieldError(field="entry_id", message=f"entry {entry_id} has already been reversed")]
        )


class PeriodOverlapError(ValidationError):
    """New period overlaps an existing one for the same store."""

    code: str = "PERIOD_OVERLAP"

    def __init__(self, new_period_code: str, existing_period_code: str):
        self.new_period_code = new_period_code
        self.existing_period_code = existing_period_code
        super().__init__(
            [
                FieldError(
                    field="period",
                    message=f"{new_period_code} overlaps existing period {existing_period_code}",
                )
            ]
        )


class ClosedPeriodError(ValidationError):
    """Posting into a closed or locked period."""

    code: str = "CLOSED_PERIOD"

    def __init__(self, period_code: str, entry_date: str):
        self.period_code = period_code
        self.entry_date = entry_date
        super().__init__(
            [FieldError(field="entry_date", message=f"{entry_date} falls in closed period {period_code}")]
        )


class VATReportFiledError(ValidationError):
    """VAT report was filed and can no longer be regenerated."""

    code: str = "VAT_REPORT_FILED"

    def __init__(self, report_id: str, status: str):
        self.report_id = report_id
        self.status = status
        super().__init__(
            [FieldError(field="status", message=f"VAT report {report_id} is {status}")]
        )


class InvalidStatusTransitionError(ValidationError):
    """Illegal lifecycle transition."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, entity_type: str, from_status: str, to_status: str):
        self.entity_type = entity_type
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            [
                FieldError(
                    field="status",
                    message=f"{entity_type} cannot move from {from_status} to {to_status}",
                )
            ]
        )


# Balance


class UnbalancedEntryError(LedgerError):
    """Journal entry debits do not equal credits within tolerance."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(
        self,
        debit_total: Decimal,
        credit_total: Decimal,
        tolerance: Decimal | None = None,
        entry_id: str | None = None,
    ):
        self.debit_total = debit_total
        self.credit_total = credit_total
        self.tolerance = tolerance
        self.entry_id = entry_id
        super().__init__(
            f"Unbalanced entry: debit_total={debit_total}, credit_total={credit_total}"
        )


# Not-found exceptions


class NotFoundError(LedgerError):
    """A required reference does not exist."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class ChartNotFoundError(NotFoundError):
    code: str = "CHART_NOT_FOUND"
    entity_type: str = "Chart of accounts"


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"
    entity_type: str = "Account"


class EntryNotFoundError(NotFoundError):
    code: str = "ENTRY_NOT_FOUND"
    entity_type: str = "Journal entry"


class PeriodNotFoundError(NotFoundError):
    code: str = "PERIOD_NOT_FOUND"
    entity_type: str = "Fiscal period"


class VATReportNotFoundError(NotFoundError):
    code: str = "VAT_REPORT_NOT_FOUND"
    entity_type: str = "VAT report"


# Concurrency-related exceptions


class ConcurrencyError(LedgerError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class EntryNumberCollisionError(ConcurrencyError):
    """Two writers were assigned the same entry number."""

    code: str = "ENTRY_NUMBER_COLLISION"

    def __init__(self, store_id: str, fiscal_year: int, entry_number: str | None = None):
        self.store_id = store_id
        self.fiscal_year = fiscal_year
        self.entry_number = entry_number
        super().__init__(
            f"Entry number collision for store {store_id}, fiscal year {fiscal_year}"
        )


class DatabaseBusyError(ConcurrencyError):
    """The database refused the write because of a competing transaction."""

    code: str = "DATABASE_BUSY"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Database busy during {operation}: {detail}")


class ReportConflictError(ConcurrencyError):
    """Another transaction stored the same store/period report first."""

    code: str = "REPORT_CONFLICT"
    report_kind: str = "report"

    def __init__(self, store_id: str, period_start: str, period_end: str):
        self.store_id = store_id
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(
            f"Concurrent {self.report_kind} for store {store_id}, "
            f"period {period_start} - {period_end}"
        )


class TrialBalanceConflictError(ReportConflictError):
    code: str = "TRIAL_BALANCE_CONFLICT"
    report_kind: str = "trial balance snapshot"


class VATReportConflictError(ReportConflictError):
    code: str = "VAT_REPORT_CONFLICT"
    report_kind: str = "VAT report"


# Posting


class PostingRuleNotFoundError(LedgerError):
    """No posting rule registered for an event type."""

    code: str = "POSTING_RULE_NOT_FOUND"

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"No posting rule found for event type: {event_type}")


# Configuration


class ConfigurationError(LedgerError):
    """Ledger configuration is invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}: {reason}")
