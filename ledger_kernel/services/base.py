"""
Common base for the kernel's write services.

Responsibility:
    Holds the Session a service writes through.  Chart, period, journal and
    module services all persist with ``flush()`` inside the transaction the
    Ledger facade opened.

Invariants enforced:
    - A service never commits or rolls back.  Creating a journal entry and
      attaching its lines happen in one transaction, so a failed rule leaves
      no draft behind.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Write service bound to the caller's Session.

    Non-goals:
        Read-only queries live in ``ledger_kernel.selectors``.
    """

    def __init__(self, session: Session):
        self.session = session
