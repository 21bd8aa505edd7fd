"""
Values -- small immutable value objects and Decimal helpers.

Responsibility:
    DateRange (the scope of every aggregation), money coercion/rounding and
    fiscal-year arithmetic shared by services, selectors and modules.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - Monetary values are Decimal; floats are converted through str() so
      0.1 stays 0.1.
    - DateRange.start <= DateRange.end.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from ledger_kernel.exceptions import FieldError, ValidationError

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """Coerce a monetary input to Decimal (None -> 0)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValidationError(
                [FieldError(field="end", message=f"end {self.end} is before start {self.start}")]
            )

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def label(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"

    @classmethod
    def month(cls, year: int, month: int) -> DateRange:
        start = date(year, month, 1)
        next_month = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        return cls(start, next_month - timedelta(days=1))

    @classmethod
    def year(cls, year: int) -> DateRange:
        return cls(date(year, 1, 1), date(year, 12, 31))


def fiscal_year_for(day: date, start_month: int = 1, start_day: int = 1) -> int:
    """
    Fiscal year label for a date, named after the calendar year it starts in.

    With the default January 1 start this is simply ``day.year``.
    """
    if (day.month, day.day) >= (start_month, start_day):
        return day.year
    return day.year - 1
