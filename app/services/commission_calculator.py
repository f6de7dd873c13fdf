"""
Commission calculation and recipient allocation checks.

Pure helpers, no database access:
- calculate_commission(): base -> gross -> withholding tax -> net payable
- summarize_commission_entries(): roll several sale entries into commission totals
- check_allocations() / validate_allocations(): recipient shares vs. net payable

Formula:
    base_for_commission      = amount_received + additions - deductions
    gross_commission         = base_for_commission * commission_rate
    withholding_tax_amount   = gross_commission * withholding_tax_rate
    total_commission_payable = gross_commission - withholding_tax_amount

Rates are fractions (0.10 for 10%). The API carries percentages; convert with
percent_to_fraction() first.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

__all__ = [
    "ZERO",
    "DEFAULT_ALLOCATION_TOLERANCE",
    "ALLOCATION_EXCEEDS_PAYABLE_MESSAGE",
    "CommissionInput",
    "CommissionResult",
    "CommissionTotals",
    "AllocationCheck",
    "AllocationExceedsPayableError",
    "coerce_amount",
    "percent_to_fraction",
    "round_money",
    "calculate_commission",
    "calculate_for_input",
    "summarize_commission_entries",
    "check_allocations",
    "validate_allocations",
]


ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_CENT = Decimal("0.01")

DEFAULT_ALLOCATION_TOLERANCE = Decimal("0.01")
ALLOCATION_EXCEEDS_PAYABLE_MESSAGE = "Total distributed exceeds commission payable"


# -----------------------------
# Input helpers
# -----------------------------

def coerce_amount(value: Any) -> Decimal:
    """Convert user input to Decimal; missing or non-numeric input becomes 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    try:
        result = Decimal(str(value).strip().replace(",", ""))
    except (InvalidOperation, ValueError):
        return ZERO
    return result if result.is_finite() else ZERO


def percent_to_fraction(percent: Any) -> Decimal:
    """10 -> 0.10"""
    return coerce_amount(percent) / _HUNDRED


def round_money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


# -----------------------------
# Calculator
# -----------------------------

@dataclass(frozen=True)
class CommissionInput:
    amount_received: Decimal
    additions: Decimal = ZERO
    deductions: Decimal = ZERO
    commission_rate: Decimal = ZERO
    withholding_tax_rate: Decimal = ZERO


@dataclass(frozen=True)
class CommissionResult:
    base_for_commission: Decimal
    gross_commission: Decimal
    withholding_tax_amount: Decimal
    total_commission_payable: Decimal

    def rounded(self) -> "CommissionResult":
        """Quantize every figure to cents for storage."""
        return CommissionResult(
            base_for_commission=round_money(self.base_for_commission),
            gross_commission=round_money(self.gross_commission),
            withholding_tax_amount=round_money(self.withholding_tax_amount),
            total_commission_payable=round_money(self.total_commission_payable),
        )


def calculate_commission(
    amount_received: Decimal,
    additions: Decimal,
    deductions: Decimal,
    commission_rate: Decimal,
    withholding_tax_rate: Decimal,
    *,
    clamp_negative_base: bool = False,
) -> CommissionResult:
    """
    Compute base, gross commission, withholding tax and net payable.

    A negative base (deductions larger than receipts plus additions) is carried
    through unless clamp_negative_base is set, in which case the base floors at 0.
    No rounding is applied; call .rounded() before persisting.
    """
    base = amount_received + additions - deductions
    if clamp_negative_base and base < ZERO:
        base = ZERO

    gross = base * commission_rate
    withholding = gross * withholding_tax_rate
    payable = gross - withholding

    return CommissionResult(
        base_for_commission=base,
        gross_commission=gross,
        withholding_tax_amount=withholding,
        total_commission_payable=payable,
    )


def calculate_for_input(entry: CommissionInput, *, clamp_negative_base: bool = False) -> CommissionResult:
    return calculate_commission(
        entry.amount_received,
        entry.additions,
        entry.deductions,
        entry.commission_rate,
        entry.withholding_tax_rate,
        clamp_negative_base=clamp_negative_base,
    )


@dataclass(frozen=True)
class CommissionTotals:
    total_amount_received: Decimal = ZERO
    total_additions: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_base_for_commission: Decimal = ZERO
    total_gross_commission: Decimal = ZERO
    total_withholding_tax_amount: Decimal = ZERO
    total_commission_payable: Decimal = ZERO


def summarize_commission_entries(
    entries: Iterable[CommissionInput],
    *,
    clamp_negative_base: bool = False,
) -> tuple[list[CommissionResult], CommissionTotals]:
    """
    Calculate every entry (rounded to cents) and sum them into commission totals.

    Totals are the sums of the rounded per-entry figures so that the header
    always equals the sum of its stored lines.
    """
    results: list[CommissionResult] = []
    received = additions = deductions = ZERO
    base = gross = withholding = payable = ZERO

    for entry in entries:
        result = calculate_for_input(entry, clamp_negative_base=clamp_negative_base).rounded()
        results.append(result)

        received += entry.amount_received
        additions += entry.additions
        deductions += entry.deductions
        base += result.base_for_commission
        gross += result.gross_commission
        withholding += result.withholding_tax_amount
        payable += result.total_commission_payable

    totals = CommissionTotals(
        total_amount_received=received,
        total_additions=additions,
        total_deductions=deductions,
        total_base_for_commission=base,
        total_gross_commission=gross,
        total_withholding_tax_amount=withholding,
        total_commission_payable=payable,
    )
    return results, totals


# -----------------------------
# Recipient allocation
# -----------------------------

class AllocationExceedsPayableError(ValueError):
    """Recipient shares add up to more than the commission payable."""

    def __init__(self, total_allocated: Decimal, total_payable: Decimal):
        self.message = ALLOCATION_EXCEEDS_PAYABLE_MESSAGE
        self.total_allocated = total_allocated
        self.total_payable = total_payable
        self.details = {
            "total_allocated": str(total_allocated),
            "total_commission_payable": str(total_payable),
        }
        super().__init__(self.message)


@dataclass(frozen=True)
class AllocationCheck:
    total_allocated: Decimal
    total_commission_payable: Decimal
    remaining: Decimal
    tolerance: Decimal
    is_valid: bool

    @property
    def message(self) -> Optional[str]:
        return None if self.is_valid else ALLOCATION_EXCEEDS_PAYABLE_MESSAGE


def check_allocations(
    amounts: Iterable[Decimal],
    total_payable: Decimal,
    tolerance: Decimal = DEFAULT_ALLOCATION_TOLERANCE,
) -> AllocationCheck:
    """sum(amounts) <= total_payable + tolerance"""
    allocated = sum(amounts, ZERO)
    return AllocationCheck(
        total_allocated=allocated,
        total_commission_payable=total_payable,
        remaining=total_payable - allocated,
        tolerance=tolerance,
        is_valid=allocated <= total_payable + tolerance,
    )


def validate_allocations(
    amounts: Iterable[Decimal],
    total_payable: Decimal,
    tolerance: Decimal = DEFAULT_ALLOCATION_TOLERANCE,
) -> AllocationCheck:
    """Like check_allocations() but raises AllocationExceedsPayableError on failure."""
    check = check_allocations(amounts, total_payable, tolerance)
    if not check.is_valid:
        raise AllocationExceedsPayableError(check.total_allocated, total_payable)
    return check
