"""Top-level services: the Ledger facade and its per-session orchestrator."""

from ledger_services.ledger import Ledger
from ledger_services.orchestrator import LedgerOrchestrator

__all__ = ["Ledger", "LedgerOrchestrator"]
