"""
Posting rule registry.

Manages registration and lookup of rules by event type.  There is no
process-wide default registry: the Ledger facade receives one (usually from
``ledger_modules.posting.build_default_registry()``).
"""

from collections.abc import Mapping

from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.exceptions import PostingRuleNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.posting_rules.base import PostingEvent, PostingRule

logger = get_logger("posting_rules.registry")


class PostingRuleRegistry:
    """
    Registry for posting rules.

    Supports several versions per event type; the most recently registered
    default version is used unless one is requested explicitly.
    """

    def __init__(self):
        # event_type -> version -> rule
        self._rules: dict[str, dict[int, PostingRule]] = {}
        self._default_versions: dict[str, int] = {}

    def register(self, rule: PostingRule, set_default: bool = True) -> None:
        event_type = rule.event_type
        version = rule.version

        self._rules.setdefault(event_type, {})[version] = rule
        if set_default:
            self._default_versions[event_type] = version

        logger.debug(
            "posting_rule_registered",
            extra={"event_type": event_type, "version": version},
        )

    def get_rule(self, event_type: str, version: int | None = None) -> PostingRule:
        """
        Get the posting rule for an event type.

        Raises:
            PostingRuleNotFoundError: no rule (or no such version) registered.
        """
        versions = self._rules.get(event_type)
        if not versions:
            raise PostingRuleNotFoundError(event_type)

        if version is None:
            version = self._default_versions.get(event_type, max(versions))

        rule = versions.get(version)
        if rule is None:
            raise PostingRuleNotFoundError(f"{event_type} v{version}")
        return rule

    def compute_lines(
        self,
        event: PostingEvent,
        accounts: Mapping[str, str],
        version: int | None = None,
    ) -> list[LineSpec]:
        """Look up the rule for the event and compute its lines."""
        return self.get_rule(event.event_type, version).compute_lines(event, accounts)

    def list_event_types(self) -> list[str]:
        return sorted(self._rules)

    def list_versions(self, event_type: str) -> list[int]:
        return sorted(self._rules.get(event_type, {}))
