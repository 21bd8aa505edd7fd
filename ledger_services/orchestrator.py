"""
ledger_services.orchestrator -- per-session DI container for ledger services.

Responsibility:
    Creates every kernel and module service exactly once for one session
    and wires them together.  No service creates other services internally
    (JournalService's own SequenceService aside).

Architecture position:
    Services -- the top layer.  The only place where kernel services and
    module services are constructed and composed.

Invariants enforced:
    - Single-instance lifecycle: one JournalService per session, shared by
      manual entries, posting rules and VAT reports.
    - All services share the same Session, Clock and Cache.

Non-goals:
    - Does NOT manage transaction boundaries (the Ledger facade does).
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from ledger_config.schema import LedgerConfig
from ledger_kernel.domain.cache import Cache
from ledger_kernel.domain.clock import Clock
from ledger_kernel.posting_rules.registry import PostingRuleRegistry
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.chart_service import ChartService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.period_service import PeriodService
from ledger_modules.posting.service import PostingService
from ledger_modules.reporting.service import ReportingService
from ledger_modules.tax.service import VATService


class LedgerOrchestrator:
    """Central factory for the services of one unit of work.

    Contract:
        Receives a Session plus the Ledger's config, cache, clock and
        posting-rule registry, and exposes every service as an attribute.
    """

    def __init__(
        self,
        session: Session,
        config: LedgerConfig,
        cache: Cache,
        clock: Clock,
        registry: PostingRuleRegistry,
    ) -> None:
        self.session = session
        self.clock = clock

        self.charts = ChartService(
            session, cache=cache, cache_ttl_seconds=config.chart_cache_ttl_seconds
        )
        self.periods = PeriodService(session, clock)
        self.journal = JournalService(
            session,
            clock,
            balance_tolerance=config.balance_tolerance,
            sequence_width=config.entry_sequence_width,
        )

        self.journal_selector = JournalSelector(session)
        self.ledger_selector = LedgerSelector(session)

        self.posting = PostingService(
            session,
            self.journal,
            registry,
            accounts=config.accounts,
            journals=config.journals,
        )
        self.reporting = ReportingService(
            session,
            clock,
            balance_tolerance=config.balance_tolerance,
            currency=config.currency,
        )
        self.vat = VATService(
            session,
            self.journal,
            accounts=config.accounts,
            journals=config.journals,
            vat_rates=config.vat_rates,
            vat_due_day=config.vat_due_day,
            clock=clock,
        )
