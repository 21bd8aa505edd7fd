"""Posting rules for transforming business events into journal lines."""

from ledger_kernel.posting_rules.base import (
    BasePostingRule,
    PostingEvent,
    PostingRule,
    PostingTarget,
)
from ledger_kernel.posting_rules.registry import PostingRuleRegistry

__all__ = [
    "BasePostingRule",
    "PostingEvent",
    "PostingRule",
    "PostingRuleRegistry",
    "PostingTarget",
]
