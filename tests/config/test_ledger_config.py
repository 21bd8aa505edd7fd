"""
Tests for LedgerConfig and the YAML loaders (ledger settings and the
reference chart of accounts).
"""

from decimal import Decimal

import pytest
import yaml

from ledger_config.loader import (
    ReferenceAccount,
    load_ledger_config,
    load_reference_chart,
    parse_reference_chart,
)
from ledger_config.schema import DEFAULT_ACCOUNTS, LedgerConfig
from ledger_kernel.exceptions import ChartDataError, ConfigurationError, ValidationError
from ledger_kernel.models.account import AccountCategory


class TestLedgerConfigDefaults:
    def test_defaults(self):
        config = LedgerConfig.with_defaults()
        assert config.currency == "MAD"
        assert config.balance_tolerance == Decimal("0.01")
        assert config.vat_due_day == 20
        assert config.vat_rates["standard"] == Decimal("0.20")
        assert config.vat_rates["exempt"] is None
        assert config.account_code("vat_due") == "4456"
        assert config.journal_code("tax") == "TVA"

    def test_bundled_yaml_matches_defaults(self):
        assert load_ledger_config() == LedgerConfig()

    def test_instances_do_not_share_maps(self):
        first = LedgerConfig()
        first.vat_rates["standard"] = Decimal("0.5")
        assert LedgerConfig().vat_rates["standard"] == Decimal("0.20")


class TestLedgerConfigValidation:
    @pytest.mark.parametrize(
        "kwargs, key",
        [
            ({"currency": "DIRHAM"}, "currency"),
            ({"balance_tolerance": Decimal("-0.01")}, "balance_tolerance"),
            ({"vat_due_day": 31}, "vat_due_day"),
            ({"entry_sequence_width": 0}, "entry_sequence_width"),
            ({"max_retries": -1}, "max_retries"),
            ({"vat_rates": {"standard": Decimal("1.5")}}, "vat_rates.standard"),
        ],
    )
    def test_invalid_values_name_the_key(self, kwargs, key):
        with pytest.raises(ConfigurationError) as exc_info:
            LedgerConfig(**kwargs)
        assert exc_info.value.key == key

    def test_missing_account_role(self):
        accounts = dict(DEFAULT_ACCOUNTS)
        del accounts["vat_due"]
        with pytest.raises(ConfigurationError) as exc_info:
            LedgerConfig(accounts=accounts)
        assert "vat_due" in exc_info.value.reason

    def test_unknown_role_lookup(self):
        with pytest.raises(ConfigurationError):
            LedgerConfig().account_code("petty_cash")


class TestLedgerConfigFromDict:
    def test_partial_maps_merge_over_defaults(self):
        config = LedgerConfig.from_dict(
            {
                "balance_tolerance": "0.005",
                "vat_rates": {"reduced": "0.14"},
                "accounts": {"cash": 5312},
            }
        )
        assert config.balance_tolerance == Decimal("0.005")
        assert config.vat_rates["reduced"] == Decimal("0.14")
        assert config.vat_rates["standard"] == Decimal("0.20")
        assert config.accounts["cash"] == "5312"
        assert config.accounts["bank"] == "571"

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            LedgerConfig.from_dict({"colour": "blue"})
        assert exc_info.value.key == "colour"

    def test_bad_decimal_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            LedgerConfig.from_dict({"balance_tolerance": "a cent"})
        assert exc_info.value.key == "balance_tolerance"

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "ledger.yaml"
        path.write_text(yaml.safe_dump({"ledger": {"vat_due_day": 15, "currency": "EUR"}}))
        config = load_ledger_config(path)
        assert config.vat_due_day == 15
        assert config.currency == "EUR"


class TestReferenceChart:
    """The reference chart never carries two definitions of one code."""

    def test_bundled_chart_loads(self):
        accounts = load_reference_chart()
        codes = [a.code for a in accounts]
        assert codes == sorted(codes)
        assert len(codes) == len(set(codes))
        for role_code in set(DEFAULT_ACCOUNTS.values()):
            assert role_code in codes

    def test_identical_duplicates_collapse(self):
        row = {"code": "571", "name": "Banques", "category": "bank"}
        accounts = parse_reference_chart([row, dict(row)])
        assert accounts == (ReferenceAccount("571", "Banques", AccountCategory.BANK),)

    def test_conflicting_duplicates_rejected(self):
        rows = [
            {"code": "5711", "name": "Compte courants", "category": "bank"},
            {"code": "5711", "name": "Caisse annexe", "category": "cash"},
            {"code": "601", "name": "Achats", "category": "purchases"},
            {"code": "601", "name": "Achats", "category": "purchases", "postable": False},
        ]
        with pytest.raises(ChartDataError) as exc_info:
            parse_reference_chart(rows)
        assert exc_info.value.duplicate_codes == ("5711", "601")

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_reference_chart([{"code": "999", "name": "Mystery", "category": "misc"}])
        assert exc_info.value.fields == ("accounts[999].category",)

    def test_missing_fields_reported_together(self):
        rows = [
            {"name": "No code", "category": "bank"},
            {"code": "572", "category": "bank"},
        ]
        with pytest.raises(ValidationError) as exc_info:
            parse_reference_chart(rows)
        assert set(exc_info.value.fields) == {"accounts[0].code", "accounts[572].name"}
