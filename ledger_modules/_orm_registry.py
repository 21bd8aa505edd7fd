"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure the module-level SQLAlchemy ORM models (trial-balance snapshots,
VAT report records) are imported so that ``Base.metadata`` contains their
tables, then create every table.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``ledger_modules``
packages and from ``ledger_kernel.db.engine``.  MUST NOT be imported by
``ledger_kernel``.

Usage
-----
``tests/conftest.py`` and applications call ``create_all_tables(engine)``.
"""

from sqlalchemy.engine import Engine


def import_all_orm_models() -> None:
    """Import kernel models and every ``ledger_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    import ledger_kernel.models  # noqa: F401
    import ledger_kernel.services.sequence_service  # noqa: F401
    import ledger_modules.reporting.orm  # noqa: F401
    import ledger_modules.tax.orm  # noqa: F401


def create_all_tables(engine: Engine) -> None:
    """Create kernel and module tables on ``engine``."""
    from ledger_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables(engine)
