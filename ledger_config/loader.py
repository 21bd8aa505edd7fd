"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads YAML files into typed objects: the ``LedgerConfig`` and the
reference chart of accounts used to seed every new store chart.

Invariants enforced
-------------------
* YAML is read with ``yaml.safe_load`` only.
* The reference chart never carries two different definitions for one
  code: conflicting duplicates raise ``ChartDataError`` listing every
  conflicting code.  Identical duplicates are collapsed with a warning.
* Every category in the reference chart is an ``AccountCategory`` value.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown config key or bad value  -> ``ConfigurationError``.
* Bad chart row  -> ``ValidationError`` naming the row.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import LedgerConfig
from ledger_kernel.exceptions import ChartDataError, FieldError, ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountCategory

logger = get_logger("config.loader")

DEFAULTS_DIR = Path(__file__).parent / "defaults"
DEFAULT_CONFIG_PATH = DEFAULTS_DIR / "ledger.yaml"
DEFAULT_REFERENCE_CHART_PATH = DEFAULTS_DIR / "reference_chart.yaml"


@dataclass(frozen=True)
class ReferenceAccount:
    """One account of the reference chart."""

    code: str
    name: str
    category: AccountCategory
    postable: bool = True


def load_yaml_file(path: Path | str) -> Any:
    """
    Load a single YAML file.

    Postconditions:
        - Returns the parsed document ({} if the file is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_ledger_config(path: Path | str | None = None) -> LedgerConfig:
    """Load a LedgerConfig from YAML (bundled defaults when ``path`` is None)."""
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(source)
    logger.info("ledger_config_file_loaded", extra={"path": str(source)})
    return LedgerConfig.from_dict(data.get("ledger", data))


def parse_reference_chart(rows: list[dict[str, Any]]) -> tuple[ReferenceAccount, ...]:
    """
    Parse and deduplicate reference chart rows.

    Raises:
        ValidationError: if a row lacks code/name or has an unknown category.
        ChartDataError: if one code has two different definitions.
    """
    errors: list[FieldError] = []
    parsed: list[ReferenceAccount] = []
    for index, row in enumerate(rows):
        code = str(row.get("code") or "").strip()
        name = str(row.get("name") or "").strip()
        if not code:
            errors.append(FieldError(field=f"accounts[{index}].code", message="required"))
            continue
        if not name:
            errors.append(FieldError(field=f"accounts[{code}].name", message="required"))
        try:
            category = AccountCategory(row.get("category"))
        except ValueError:
            errors.append(
                FieldError(
                    field=f"accounts[{code}].category",
                    message=f"unknown category {row.get('category')!r}",
                )
            )
            continue
        parsed.append(
            ReferenceAccount(
                code=code,
                name=name,
                category=category,
                postable=bool(row.get("postable", True)),
            )
        )
    if errors:
        raise ValidationError(errors)

    by_code: dict[str, ReferenceAccount] = {}
    conflicts: list[str] = []
    for account in parsed:
        existing = by_code.get(account.code)
        if existing is None:
            by_code[account.code] = account
        elif existing != account:
            if account.code not in conflicts:
                conflicts.append(account.code)
        else:
            logger.warning(
                "reference_chart_duplicate_collapsed",
                extra={"account_code": account.code},
            )

    if conflicts:
        logger.error(
            "reference_chart_conflicting_duplicates",
            extra={"account_codes": conflicts},
        )
        raise ChartDataError(conflicts)

    return tuple(sorted(by_code.values(), key=lambda a: a.code))


def load_reference_chart(path: Path | str | None = None) -> tuple[ReferenceAccount, ...]:
    """Load the reference chart (bundled Moroccan plan when ``path`` is None)."""
    source = Path(path) if path is not None else DEFAULT_REFERENCE_CHART_PATH
    data = load_yaml_file(source)
    rows = data.get("accounts", []) if isinstance(data, dict) else data
    accounts = parse_reference_chart(rows)
    logger.info(
        "reference_chart_loaded",
        extra={"path": str(source), "account_count": len(accounts)},
    )
    return accounts
