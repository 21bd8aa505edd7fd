"""
Tax ORM Persistence Models (``ledger_modules.tax.orm``).

Responsibility:
    Persist VAT reports.  One record per (store, period); a draft record is
    updated in place when the report is regenerated.

Architecture position:
    **Modules layer** -- persistence companion to ``tax.models``.
    Inherits from ``TrackedBase``.

Invariants enforced:
    - Monetary fields are Decimal (Numeric(38,9)) -- NEVER float.
    - Status is stored as the VATReportStatus .value string.
    - The TVA journal entries a report generated are referenced by id so
      that regeneration can reverse them.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.values import DateRange, round_money, to_decimal
from ledger_modules.tax.models import VATCategoryTotal, VATReport, VATReportStatus


def _money(value) -> Decimal:
    return round_money(to_decimal(value))


class VATReportRecord(TrackedBase):
    """
    ORM model for ``VATReport``.

    Guarantees:
        - uq_vat_report_store_period: one report per store and period.
    """

    __tablename__ = "vat_reports"

    __table_args__ = (
        UniqueConstraint("store_id", "period_start", "period_end", name="uq_vat_report_store_period"),
        Index("idx_vat_report_store_status", "store_id", "status"),
    )

    store_id: Mapped[str] = mapped_column(String(100), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    taxable_sales: Mapped[Decimal]
    vat_on_sales: Mapped[Decimal]
    taxable_purchases: Mapped[Decimal]
    vat_on_purchases: Mapped[Decimal]
    vat_payable: Mapped[Decimal]
    vat_refundable: Mapped[Decimal]
    net_vat: Mapped[Decimal]
    booked_vat_on_sales: Mapped[Decimal]
    booked_vat_on_purchases: Mapped[Decimal]
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VATReportStatus.DRAFT.value
    )
    generated_at: Mapped[datetime]
    submitted_at: Mapped[datetime | None]
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    collected_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )
    deductible_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )
    settlement_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )

    @property
    def entry_ids(self) -> tuple[UUID, ...]:
        return tuple(
            entry_id
            for entry_id in (
                self.collected_entry_id,
                self.deductible_entry_id,
                self.settlement_entry_id,
            )
            if entry_id is not None
        )

    def to_dto(
        self,
        sales_by_category: tuple[VATCategoryTotal, ...] = (),
        purchases_by_category: tuple[VATCategoryTotal, ...] = (),
    ) -> VATReport:
        return VATReport(
            id=self.id,
            store_id=self.store_id,
            period=DateRange(self.period_start, self.period_end),
            taxable_sales=_money(self.taxable_sales),
            vat_on_sales=_money(self.vat_on_sales),
            taxable_purchases=_money(self.taxable_purchases),
            vat_on_purchases=_money(self.vat_on_purchases),
            vat_payable=_money(self.vat_payable),
            vat_refundable=_money(self.vat_refundable),
            net_vat=_money(self.net_vat),
            booked_vat_on_sales=_money(self.booked_vat_on_sales),
            booked_vat_on_purchases=_money(self.booked_vat_on_purchases),
            due_date=self.due_date,
            status=VATReportStatus(self.status),
            generated_at=self.generated_at,
            entry_ids=self.entry_ids,
            sales_by_category=sales_by_category,
            purchases_by_category=purchases_by_category,
            submitted_at=self.submitted_at,
            payment_reference=self.payment_reference,
        )
