"""
PeriodService -- fiscal period lifecycle and period resolution.

Responsibility:
    Creates, closes and locks a store's fiscal periods, and resolves the
    ``period`` argument of reports (a period_code or a DateRange) to an
    inclusive date range.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the Ledger facade; JournalService reads the period table
    directly to reject postings into closed periods.

Invariants enforced:
    - Periods of one store never overlap (start1 <= end2 AND start2 <= end1
      is rejected).
    - A closed period never reopens; CLOSED -> LOCKED is the only onward
      move.
    - Returns frozen FiscalPeriodInfo DTOs, never ORM entities.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - ValidationError: start_date after end_date, blank code or name.
    - PeriodOverlapError: new range overlaps an existing period.
    - PeriodNotFoundError: unknown period_code for the store.
    - InvalidStatusTransitionError: closing a closed period, locking an
      open one.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import FiscalPeriodInfo
from ledger_kernel.domain.values import DateRange
from ledger_kernel.exceptions import (
    FieldError,
    InvalidStatusTransitionError,
    PeriodNotFoundError,
    PeriodOverlapError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.fiscal_period import FiscalPeriod, PeriodStatus
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period")


class PeriodService(BaseService[FiscalPeriod]):
    """
    Service for managing fiscal periods.

    Contract:
        ``resolve`` accepts either a period_code (looked up for the store)
        or a DateRange (used as is, no period row needed).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def create_period(
        self,
        store_id: str,
        period_code: str,
        name: str,
        start_date: date,
        end_date: date,
        actor: str,
    ) -> FiscalPeriodInfo:
        """
        Create a new open fiscal period for a store.

        Raises:
            ValidationError: on blank fields or start_date > end_date.
            PeriodOverlapError: if the range overlaps an existing period.
        """
        errors = []
        if not period_code:
            errors.append(FieldError(field="period_code", message="required"))
        if not name:
            errors.append(FieldError(field="name", message="required"))
        if start_date is None or end_date is None:
            errors.append(FieldError(field="start_date", message="start and end dates are required"))
        elif start_date > end_date:
            errors.append(
                FieldError(
                    field="end_date",
                    message=f"end_date ({end_date}) is before start_date ({start_date})",
                )
            )
        if errors:
            raise ValidationError(errors)

        self._validate_no_overlap(store_id, period_code, start_date, end_date)

        period = FiscalPeriod(
            store_id=store_id,
            period_code=period_code,
            name=name,
            start_date=start_date,
            end_date=end_date,
            status=PeriodStatus.OPEN.value,
            created_by_id=actor,
        )
        self.session.add(period)
        self.session.flush()

        logger.info(
            "period_created",
            extra={
                "store_id": store_id,
                "period_code": period_code,
                "start_date": str(start_date),
                "end_date": str(end_date),
            },
        )
        return FiscalPeriodInfo.from_model(period)

    def _validate_no_overlap(
        self,
        store_id: str,
        new_period_code: str,
        start_date: date,
        end_date: date,
    ) -> None:
        overlapping = self.session.execute(
            select(FiscalPeriod)
            .where(
                FiscalPeriod.store_id == store_id,
                FiscalPeriod.start_date <= end_date,
                FiscalPeriod.end_date >= start_date,
            )
            .limit(1)
        ).scalar_one_or_none()
        if overlapping is not None:
            raise PeriodOverlapError(
                new_period_code=new_period_code,
                existing_period_code=overlapping.period_code,
            )

    def close_period(self, store_id: str, period_code: str, actor: str) -> FiscalPeriodInfo:
        """
        Close a period; no entry dated inside it can be created afterwards.

        Raises:
            PeriodNotFoundError: unknown period.
            InvalidStatusTransitionError: the period is already closed.
        """
        period = self._get_period_orm(store_id, period_code)
        if period.is_closed:
            raise InvalidStatusTransitionError("FiscalPeriod", str(period.status), "closed")

        period.close(actor, self._clock.now())
        self.session.flush()

        logger.info(
            "period_closed",
            extra={"store_id": store_id, "period_code": period_code},
        )
        return FiscalPeriodInfo.from_model(period)

    def lock_period(self, store_id: str, period_code: str, actor: str) -> FiscalPeriodInfo:
        period = self._get_period_orm(store_id, period_code)
        if period.status != PeriodStatus.CLOSED:
            raise InvalidStatusTransitionError("FiscalPeriod", str(period.status), "locked")

        period.status = PeriodStatus.LOCKED.value
        self.session.flush()
        logger.info(
            "period_locked",
            extra={"store_id": store_id, "period_code": period_code, "actor": actor},
        )
        return FiscalPeriodInfo.from_model(period)

    def _get_period_orm(self, store_id: str, period_code: str) -> FiscalPeriod:
        period = self.session.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.store_id == store_id,
                FiscalPeriod.period_code == period_code,
            )
        ).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(f"{store_id}/{period_code}")
        return period

    def list_periods(self, store_id: str) -> list[FiscalPeriodInfo]:
        periods = self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.store_id == store_id)
            .order_by(FiscalPeriod.start_date)
        ).scalars()
        return [FiscalPeriodInfo.from_model(p) for p in periods]

    def resolve(self, store_id: str, period: str | DateRange) -> DateRange:
        """
        Turn a report's period argument into a DateRange.

        Raises:
            PeriodNotFoundError: a period_code unknown for the store.
        """
        if isinstance(period, DateRange):
            return period
        return FiscalPeriodInfo.from_model(self._get_period_orm(store_id, period)).date_range
