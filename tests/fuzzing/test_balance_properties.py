"""
Property-based tests of the journal engine with Hypothesis.

Properties:
- Any line set whose debits equal its credits posts, and the posted entry
  balances.
- Any line set off by more than the tolerance is rejected and nothing is
  booked.
- Reversing an entry returns every touched account to its prior balance,
  and reversing the reversal books the original lines again.
"""

from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.values import DateRange
from ledger_kernel.exceptions import UnbalancedEntryError

from tests.conftest import STORE_ID, make_header

JANUARY = DateRange.month(2024, 1)

DEBIT_CODES = ("571", "5311", "601", "611", "411")
CREDIT_CODES = ("101", "701", "401", "445")

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("99999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

fixture_settings = settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)


@st.composite
def balanced_line_sets(draw):
    """Several debit lines against one or more credit lines of the same total."""
    debits = draw(st.lists(amounts, min_size=1, max_size=6))
    total = sum(debits, Decimal("0"))
    split = draw(st.integers(min_value=1, max_value=3))
    credits = [(total / split).quantize(Decimal("0.01")) for _ in range(split - 1)]
    credits.append(total - sum(credits, Decimal("0")))
    credits = [c for c in credits if c > 0] or [total]

    lines = [
        LineSpec.debit_line(draw(st.sampled_from(DEBIT_CODES)), amount) for amount in debits
    ]
    lines += [
        LineSpec.credit_line(draw(st.sampled_from(CREDIT_CODES)), amount) for amount in credits
    ]
    return draw(st.permutations(lines))


class TestBalanceInvariant:
    @fixture_settings
    @given(lines=balanced_line_sets())
    def test_balanced_sets_always_post(self, ledger, chart, lines):
        entry = ledger.post_entry(make_header(), lines)
        assert entry.status == "posted"
        assert entry.total_debits == entry.total_credits
        assert len(entry.lines) == len(lines)

    @fixture_settings
    @given(
        lines=balanced_line_sets(),
        skew=st.decimals(
            min_value=Decimal("0.02"),
            max_value=Decimal("1000"),
            places=2,
            allow_nan=False,
            allow_infinity=False,
        ),
    )
    def test_unbalanced_sets_never_post(self, ledger, chart, lines, skew):
        skewed = list(lines) + [LineSpec.debit_line("571", skew)]
        before = ledger.list_entries(STORE_ID, JANUARY)
        with pytest.raises(UnbalancedEntryError) as exc_info:
            ledger.post_entry(make_header(), skewed)
        assert exc_info.value.debit_total - exc_info.value.credit_total == skew
        assert ledger.list_entries(STORE_ID, JANUARY) == before
        assert ledger.dangling_drafts(STORE_ID) == []


class TestReversalDoubleNegation:
    @fixture_settings
    @given(lines=balanced_line_sets())
    def test_reversal_restores_every_balance(self, ledger, chart, account_id, lines):
        codes = sorted({line.account_code for line in lines})
        before = {
            code: ledger.account_balances(account_id(code), JANUARY).closing for code in codes
        }

        entry = ledger.post_entry(make_header(), lines)
        ledger.reverse_entry(entry.id)

        after = {
            code: ledger.account_balances(account_id(code), JANUARY).closing for code in codes
        }
        assert after == before

    @fixture_settings
    @given(lines=balanced_line_sets())
    def test_reversing_the_reversal_restores_the_lines(self, ledger, chart, lines):
        entry = ledger.post_entry(make_header(), lines)
        reversal_id = ledger.reverse_entry(entry.id)
        restored = ledger.get_entry(ledger.reverse_entry(reversal_id))

        def shape(journal_entry):
            return [(l.account_code, l.debit, l.credit) for l in journal_entry.lines]

        assert shape(restored) == shape(entry)
        assert restored.reversal_of_id == reversal_id
        assert ledger.get_entry(reversal_id).status == "reversed"
