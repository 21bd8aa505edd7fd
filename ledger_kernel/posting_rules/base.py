"""
Base posting rule protocol.

Posting rules transform business events (order completed, payment settled,
supplier invoice received) into journal lines deterministically.  A rule
never touches the database: it receives the event and the posting-role ->
account-code map and returns a PostingTarget that the PostingService hands
to the JournalService.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol, runtime_checkable

from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.exceptions import FieldError, ValidationError


@runtime_checkable
class PostingEvent(Protocol):
    """Minimal shape of an event a posting rule accepts."""

    @property
    def event_type(self) -> str:
        ...

    @property
    def store_id(self) -> str:
        ...

    @property
    def timestamp(self) -> datetime:
        ...


@dataclass(frozen=True)
class PostingTarget:
    """Everything needed to create one journal entry from an event."""

    journal: str
    entry_date: date
    description: str
    reference: str | None
    lines: tuple[LineSpec, ...]


@runtime_checkable
class PostingRule(Protocol):
    """
    Protocol for posting rules.

    Each rule is:
    - Deterministic: the same event always produces the same lines
    - Versioned: several versions of a rule may be registered
    - Stateless: no side effects during computation
    """

    @property
    def event_type(self) -> str:
        """Event type this rule handles."""
        ...

    @property
    def version(self) -> int:
        """Version of this rule."""
        ...

    def compute_lines(self, event: PostingEvent, accounts: Mapping[str, str]) -> list[LineSpec]:
        """
        Compute journal lines from an event.

        Args:
            event: The event to transform.
            accounts: Posting role -> account code.

        Returns:
            List of LineSpec describing the journal lines.
        """
        ...

    def build(
        self,
        event: PostingEvent,
        accounts: Mapping[str, str],
        journals: Mapping[str, str],
    ) -> PostingTarget:
        ...


class BasePostingRule(ABC):
    """
    Abstract base class for posting rules.

    Subclasses supply the lines and name the journal; the header
    (date, description, reference) has sensible defaults.
    """

    @property
    @abstractmethod
    def event_type(self) -> str:
        """Event type this rule handles."""
        pass

    @property
    @abstractmethod
    def version(self) -> int:
        """Version of this rule."""
        pass

    @abstractmethod
    def compute_lines(self, event: PostingEvent, accounts: Mapping[str, str]) -> list[LineSpec]:
        pass

    def journal_name(self, event: PostingEvent) -> str:
        """Key into the journals map (sales, bank, cash, purchases, ...)."""
        return "misc"

    def describe(self, event: PostingEvent) -> str:
        return f"{self.event_type} v{self.version}"

    def reference(self, event: PostingEvent) -> str | None:
        return None

    def validate_event(self, event: PostingEvent) -> None:
        """
        Validate that the event is suitable for this rule.

        Override in subclasses to add validation.

        Raises:
            ValidationError: If the event is invalid.
        """
        if event.event_type != self.event_type:
            raise ValidationError(
                [
                    FieldError(
                        field="event_type",
                        message=f"expected {self.event_type}, got {event.event_type}",
                    )
                ]
            )

    def build(
        self,
        event: PostingEvent,
        accounts: Mapping[str, str],
        journals: Mapping[str, str],
    ) -> PostingTarget:
        self.validate_event(event)
        return PostingTarget(
            journal=journals[self.journal_name(event)],
            entry_date=event.timestamp.date(),
            description=self.describe(event),
            reference=self.reference(event),
            lines=tuple(self.compute_lines(event, accounts)),
        )
