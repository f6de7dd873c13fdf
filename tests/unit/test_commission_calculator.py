"""
Unit tests for the commission calculator.

Covers the base -> gross -> withholding -> payable chain, negative bases,
rounding for storage and the roll-up of several sale entries.
"""
from decimal import Decimal

import pytest

from app.services.commission_calculator import (
    CommissionInput,
    calculate_commission,
    calculate_for_input,
    coerce_amount,
    percent_to_fraction,
    round_money,
    summarize_commission_entries,
)

D = Decimal


class TestCalculateCommission:
    def test_worked_example(self):
        result = calculate_commission(D("1000"), D("50"), D("20"), D("0.10"), D("0.05"))

        assert result.base_for_commission == D("1030")
        assert result.gross_commission == D("103")
        assert result.withholding_tax_amount == D("5.15")
        assert result.total_commission_payable == D("97.85")

    def test_payable_is_gross_minus_withholding(self):
        result = calculate_commission(D("2500"), D("0"), D("125"), D("0.075"), D("0.10"))

        assert result.total_commission_payable == result.gross_commission - result.withholding_tax_amount

    def test_negative_base_propagates_by_default(self):
        result = calculate_commission(D("500"), D("0"), D("600"), D("0.10"), D("0"))

        assert result.base_for_commission == D("-100")
        assert result.gross_commission == D("-10")
        assert result.withholding_tax_amount == D("0")
        assert result.total_commission_payable == D("-10")

    def test_negative_base_clamped_to_zero(self):
        result = calculate_commission(
            D("500"), D("0"), D("600"), D("0.10"), D("0.05"), clamp_negative_base=True
        )

        assert result.base_for_commission == D("0")
        assert result.gross_commission == D("0")
        assert result.total_commission_payable == D("0")

    def test_clamp_leaves_positive_base_alone(self):
        plain = calculate_commission(D("1000"), D("50"), D("20"), D("0.10"), D("0.05"))
        clamped = calculate_commission(
            D("1000"), D("50"), D("20"), D("0.10"), D("0.05"), clamp_negative_base=True
        )
        assert plain == clamped

    def test_zero_rate_gives_zero_commission(self):
        result = calculate_commission(D("1000"), D("0"), D("0"), D("0"), D("0.05"))

        assert result.base_for_commission == D("1000")
        assert result.gross_commission == D("0")
        assert result.total_commission_payable == D("0")

    def test_full_withholding(self):
        result = calculate_commission(D("100"), D("0"), D("0"), D("0.10"), D("1"))
        assert result.withholding_tax_amount == result.gross_commission
        assert result.total_commission_payable == D("0")

    def test_same_inputs_same_result(self):
        args = (D("1234.56"), D("10.10"), D("4.66"), D("0.125"), D("0.02"))
        assert calculate_commission(*args) == calculate_commission(*args)

    def test_no_rounding_before_storage(self):
        result = calculate_commission(D("33.33"), D("0"), D("0"), D("0.125"), D("0"))
        assert result.gross_commission == D("4.16625")

    def test_calculate_for_input_matches_positional_call(self):
        entry = CommissionInput(
            amount_received=D("1000"),
            additions=D("50"),
            deductions=D("20"),
            commission_rate=D("0.10"),
            withholding_tax_rate=D("0.05"),
        )
        assert calculate_for_input(entry) == calculate_commission(
            D("1000"), D("50"), D("20"), D("0.10"), D("0.05")
        )


class TestRounding:
    def test_rounded_quantizes_every_figure(self):
        result = calculate_commission(D("33.33"), D("0"), D("0"), D("0.125"), D("0.1")).rounded()

        assert result.base_for_commission == D("33.33")
        assert result.gross_commission == D("4.17")
        assert result.withholding_tax_amount == D("0.42")
        assert result.total_commission_payable == D("3.75")

    def test_round_money_half_up(self):
        assert round_money(D("0.005")) == D("0.01")
        assert round_money(D("2.345")) == D("2.35")
        assert round_money(D("-2.345")) == D("-2.35")


class TestCoerceAmount:
    @pytest.mark.parametrize("value", [None, "", "   ", "abc", "NaN", "Infinity", True, False])
    def test_non_numeric_becomes_zero(self, value):
        assert coerce_amount(value) == D("0")

    def test_numbers_and_strings(self):
        assert coerce_amount(5) == D("5")
        assert coerce_amount(2.5) == D("2.5")
        assert coerce_amount(" 12.30 ") == D("12.30")
        assert coerce_amount("1,250.50") == D("1250.50")
        assert coerce_amount(D("7.01")) == D("7.01")

    def test_percent_to_fraction(self):
        assert percent_to_fraction("10") == D("0.1")
        assert percent_to_fraction(D("7.5")) == D("0.075")
        assert percent_to_fraction("n/a") == D("0")


class TestSummarizeCommissionEntries:
    def test_totals_are_sums_of_rounded_lines(self):
        entries = [
            CommissionInput(D("1000"), D("50"), D("20"), D("0.10"), D("0.05")),
            CommissionInput(D("33.33"), D("0"), D("0"), D("0.125"), D("0.1")),
        ]

        results, totals = summarize_commission_entries(entries)

        assert len(results) == 2
        assert results[0].total_commission_payable == D("97.85")
        assert results[1].total_commission_payable == D("3.75")
        assert totals.total_amount_received == D("1033.33")
        assert totals.total_additions == D("50")
        assert totals.total_deductions == D("20")
        assert totals.total_base_for_commission == D("1063.33")
        assert totals.total_gross_commission == D("107.17")
        assert totals.total_withholding_tax_amount == D("5.57")
        assert totals.total_commission_payable == sum(
            (r.total_commission_payable for r in results), D("0")
        )

    def test_empty_entries(self):
        results, totals = summarize_commission_entries([])

        assert results == []
        assert totals.total_commission_payable == D("0")
        assert totals.total_base_for_commission == D("0")

    def test_clamp_applies_to_every_entry(self):
        entries = [
            CommissionInput(D("500"), D("0"), D("600"), D("0.10"), D("0")),
            CommissionInput(D("1000"), D("0"), D("0"), D("0.10"), D("0")),
        ]

        _, plain = summarize_commission_entries(entries)
        _, clamped = summarize_commission_entries(entries, clamp_negative_base=True)

        assert plain.total_commission_payable == D("90")
        assert clamped.total_commission_payable == D("100")
