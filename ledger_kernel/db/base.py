"""
Declarative bases shared by every ledger table.

Responsibility:
    Fixes the column conventions of the schema: UUID primary keys stored as
    text, Numeric(38, 9) for every Decimal amount, timezone-aware
    timestamps, deterministic constraint names, and the created/updated
    actor columns carried by ledger records.

Architecture position:
    Kernel > DB.  Imported by kernel models and module ORM classes; imports
    nothing from the rest of the project.

Invariants enforced:
    - Amounts never map to a float column.
    - Primary keys are uuid4 values, so rows from different stores never
      collide when databases are merged.
    - ``created_by_id`` is mandatory on tracked rows.

Audit relevance:
    ``updated_at`` and ``updated_by_id`` are bookkeeping columns; the
    immutability listeners ignore them when deciding whether a posted row
    changed.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime, MetaData, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

AMOUNT_TYPE = Numeric(38, 9)
ACTOR_ID_LENGTH = 100

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UUIDString(TypeDecorator):
    """A uuid.UUID in Python, its 36-character text form in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else uuid.UUID(value)


class Base(DeclarativeBase):
    """
    Root of every mapped class.

    Guarantees:
        - ``id`` defaults to uuid4.
        - Annotated ``Decimal`` columns become Numeric(38, 9), ``datetime``
          columns are timezone-aware, ``int`` columns are BIGINT.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        Decimal: AMOUNT_TYPE,
        datetime: DateTime(timezone=True),
        uuid.UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[uuid.UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid.uuid4)


class TrackedBase(Base):
    """
    Abstract base for rows that record who wrote them.

    ``created_at`` and ``updated_at`` are filled by the database clock;
    business dates (entry date, period bounds) live in their own columns.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
    created_by_id: Mapped[str] = mapped_column(String(ACTOR_ID_LENGTH), nullable=False)
    updated_by_id: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
