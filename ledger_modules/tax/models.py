"""
Tax Domain Models.

Responsibility:
    Frozen dataclass DTOs for Moroccan VAT: categories, per-line
    calculations, the net position of a period and the period VAT report,
    plus the report status lifecycle and the calendar of recurring tax
    obligations.

Architecture:
    ledger_modules -- pure data containers with no I/O and no ORM coupling.

Invariants:
    - All models are ``frozen=True``.
    - All monetary fields use ``Decimal`` -- NEVER ``float``.
    - Report status moves only along VAT_REPORT_TRANSITIONS.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.values import ZERO, DateRange


class VATCategory(str, Enum):
    """Moroccan VAT categories."""

    STANDARD = "standard"  # 20%
    REDUCED = "reduced"  # 10%
    SUPER_REDUCED = "super_reduced"  # 7%
    ZERO = "zero"
    # Exonerated, no right to deduct
    EXEMPT = "exempt"


class TaxRegime(str, Enum):
    REAL_NORMAL = "REAL_NORMAL"
    REAL_SIMPLIFIE = "REAL_SIMPLIFIE"
    FORFAIT = "FORFAIT"
    EXEMPTION = "EXEMPTION"


class VATReportStatus(str, Enum):
    """VAT report lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    PAID = "paid"


VAT_REPORT_TRANSITIONS: dict[VATReportStatus, frozenset[VATReportStatus]] = {
    VATReportStatus.DRAFT: frozenset({VATReportStatus.SUBMITTED}),
    VATReportStatus.SUBMITTED: frozenset({VATReportStatus.ACCEPTED, VATReportStatus.REJECTED}),
    VATReportStatus.ACCEPTED: frozenset({VATReportStatus.PAID}),
    VATReportStatus.REJECTED: frozenset(),
    VATReportStatus.PAID: frozenset(),
}


class ObligationFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


@dataclass(frozen=True)
class TaxObligation:
    """A recurring filing or payment and its next two deadlines."""

    code: str
    name: str
    description: str
    frequency: ObligationFrequency
    due_date: date
    next_due_date: date
    mandatory: bool = True


@dataclass(frozen=True)
class VATLine:
    """VAT computed on one taxable base."""

    category: VATCategory
    base: Decimal
    rate: Decimal
    vat_amount: Decimal
    total: Decimal
    recoverable: bool


@dataclass(frozen=True)
class VATPosition:
    """Net VAT of a period: payable when positive, refundable when negative."""

    vat_on_sales: Decimal
    vat_on_purchases: Decimal
    payable: Decimal
    refundable: Decimal
    net: Decimal


@dataclass(frozen=True)
class VATCategoryTotal:
    category: VATCategory
    base: Decimal
    vat_amount: Decimal


@dataclass(frozen=True)
class VATReport:
    """
    A store's VAT report for one period.

    The totals are computed line by line from the taxable revenue and
    expense lines.  ``booked_vat_on_sales`` and ``booked_vat_on_purchases``
    are the amounts actually moved off the VAT collected and recoverable
    accounts; ``booked_difference`` is non-zero when the VAT booked on the
    orders and invoices differs from the rate applied to their bases.
    """

    id: UUID
    store_id: str
    period: DateRange
    taxable_sales: Decimal
    vat_on_sales: Decimal
    taxable_purchases: Decimal
    vat_on_purchases: Decimal
    vat_payable: Decimal
    vat_refundable: Decimal
    net_vat: Decimal
    due_date: date
    status: VATReportStatus
    generated_at: datetime
    entry_ids: tuple[UUID, ...] = ()
    sales_by_category: tuple[VATCategoryTotal, ...] = field(default=())
    purchases_by_category: tuple[VATCategoryTotal, ...] = field(default=())
    submitted_at: datetime | None = None
    payment_reference: str | None = None
    booked_vat_on_sales: Decimal = ZERO
    booked_vat_on_purchases: Decimal = ZERO

    @property
    def booked_difference(self) -> Decimal:
        return (self.booked_vat_on_sales - self.booked_vat_on_purchases) - self.net_vat

    @property
    def is_draft(self) -> bool:
        return self.status == VATReportStatus.DRAFT
