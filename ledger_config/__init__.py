"""
Ledger configuration.

``LedgerConfig`` is the one configuration object of a Ledger instance;
``load_ledger_config`` reads it from YAML.  ``load_reference_chart`` loads
the chart of accounts that seeds every new store.
"""

from ledger_config.loader import (
    ReferenceAccount,
    load_ledger_config,
    load_reference_chart,
    load_yaml_file,
    parse_reference_chart,
)
from ledger_config.schema import LedgerConfig

__all__ = [
    "LedgerConfig",
    "ReferenceAccount",
    "load_ledger_config",
    "load_reference_chart",
    "load_yaml_file",
    "parse_reference_chart",
]
