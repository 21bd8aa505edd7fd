"""
Pure VAT calculation functions.

No database, no clock.  Rates come from LedgerConfig.vat_rates; a rate of
``None`` marks a category without VAT and without deduction (exempt).
"""

from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from decimal import Decimal

from ledger_config.schema import DEFAULT_TAX_REGIMES, DEFAULT_VAT_RATES
from ledger_kernel.domain.values import ZERO, round_money, to_decimal
from ledger_kernel.exceptions import FieldError, ValidationError
from ledger_modules.tax.models import (
    ObligationFrequency,
    TaxObligation,
    TaxRegime,
    VATCategory,
    VATCategoryTotal,
    VATLine,
    VATPosition,
)


def _category(category: VATCategory | str) -> VATCategory:
    try:
        return VATCategory(category)
    except ValueError:
        raise ValidationError(
            [FieldError(field="vat_category", message=f"unknown VAT category {category!r}")]
        ) from None


def calculate_line_vat(
    amount: Decimal | int | str,
    category: VATCategory | str = VATCategory.STANDARD,
    rates: Mapping[str, Decimal | None] | None = None,
    recoverable: bool = True,
) -> VATLine:
    """
    VAT on a base amount, rounded to cents half-up.

    >>> calculate_line_vat(Decimal("100"), "standard").vat_amount
    Decimal('20.00')
    """
    category = _category(category)
    rates = DEFAULT_VAT_RATES if rates is None else rates
    rate = rates.get(category.value)

    base = round_money(to_decimal(amount))
    vat_amount = round_money(base * rate) if rate is not None else ZERO
    return VATLine(
        category=category,
        base=base,
        rate=rate if rate is not None else ZERO,
        vat_amount=vat_amount,
        total=base + vat_amount,
        recoverable=recoverable and rate is not None,
    )


def net_vat_position(vat_on_sales: Decimal, vat_on_purchases: Decimal) -> VATPosition:
    """
    Net VAT: payable = max(0, sales - purchases), refundable the opposite,
    net = payable - refundable.
    """
    difference = vat_on_sales - vat_on_purchases
    payable = max(ZERO, difference)
    refundable = max(ZERO, -difference)
    return VATPosition(
        vat_on_sales=vat_on_sales,
        vat_on_purchases=vat_on_purchases,
        payable=payable,
        refundable=refundable,
        net=payable - refundable,
    )


def vat_due_date(period_end: date, due_day: int = 20) -> date:
    """``due_day`` of the month following the period end."""
    if period_end.month == 12:
        return date(period_end.year + 1, 1, due_day)
    return date(period_end.year, period_end.month + 1, due_day)


# (month, day) of the fixed-date obligations
_QUARTER_ENDS = ((3, 31), (6, 30), (9, 30), (12, 31))
_PROFESSIONAL_TAX_DUE = (1, 31)
_TRAINING_TAX_DUE = (2, 28)


def _next_quarter_end(on_or_after: date) -> date:
    for month, day in _QUARTER_ENDS:
        due = date(on_or_after.year, month, day)
        if due >= on_or_after:
            return due
    month, day = _QUARTER_ENDS[0]
    return date(on_or_after.year + 1, month, day)


def _next_annual(on_or_after: date, month_day: tuple[int, int]) -> date:
    due = date(on_or_after.year, *month_day)
    return due if due >= on_or_after else date(on_or_after.year + 1, *month_day)


def tax_obligations(period_end: date, due_day: int = 20) -> tuple[TaxObligation, ...]:
    """
    The recurring obligations of a restaurant with their next deadlines on
    or after ``period_end``.

    VAT is declared every month on ``due_day`` of the following month.
    Corporate tax is paid in installments at each calendar quarter end.
    Professional tax falls due on 31 January and the training tax on
    28 February.
    """
    vat_due = vat_due_date(period_end, due_day)
    corporate_due = _next_quarter_end(period_end)
    professional_due = _next_annual(period_end, _PROFESSIONAL_TAX_DUE)
    training_due = _next_annual(period_end, _TRAINING_TAX_DUE)
    return (
        TaxObligation(
            code="vat_monthly",
            name="Déclaration TVA mensuelle",
            description="Monthly VAT return and payment",
            frequency=ObligationFrequency.MONTHLY,
            due_date=vat_due,
            next_due_date=vat_due_date(vat_due, due_day),
        ),
        TaxObligation(
            code="corporate_tax",
            name="Impôt sur les sociétés",
            description="Corporate tax installment",
            frequency=ObligationFrequency.QUARTERLY,
            due_date=corporate_due,
            next_due_date=_next_quarter_end(corporate_due + timedelta(days=1)),
        ),
        TaxObligation(
            code="professional_tax",
            name="Taxe professionnelle",
            description="Annual professional tax",
            frequency=ObligationFrequency.ANNUALLY,
            due_date=professional_due,
            next_due_date=date(professional_due.year + 1, *_PROFESSIONAL_TAX_DUE),
        ),
        TaxObligation(
            code="training_tax",
            name="Taxe de formation professionnelle",
            description="Annual vocational training tax",
            frequency=ObligationFrequency.ANNUALLY,
            due_date=training_due,
            next_due_date=date(training_due.year + 1, *_TRAINING_TAX_DUE),
        ),
    )


def determine_tax_regime(
    annual_revenue: Decimal,
    thresholds: Mapping[str, Decimal] | None = None,
) -> TaxRegime:
    """
    Regime by annual revenue: exemption below the exemption threshold,
    real normal below the simplified threshold, simplified above.
    """
    thresholds = DEFAULT_TAX_REGIMES if thresholds is None else thresholds
    if annual_revenue < thresholds[TaxRegime.EXEMPTION.value]:
        return TaxRegime.EXEMPTION
    if annual_revenue < thresholds[TaxRegime.REAL_SIMPLIFIE.value]:
        return TaxRegime.REAL_NORMAL
    return TaxRegime.REAL_SIMPLIFIE


def totals_by_category(lines: Iterable[VATLine]) -> tuple[VATCategoryTotal, ...]:
    """Sum base and VAT per category, in VATCategory order."""
    bases: dict[VATCategory, Decimal] = {}
    amounts: dict[VATCategory, Decimal] = {}
    for line in lines:
        bases[line.category] = bases.get(line.category, ZERO) + line.base
        amounts[line.category] = amounts.get(line.category, ZERO) + line.vat_amount
    return tuple(
        VATCategoryTotal(category=category, base=bases[category], vat_amount=amounts[category])
        for category in VATCategory
        if category in bases
    )
