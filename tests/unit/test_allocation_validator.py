"""Unit tests for recipient allocation checks against the commission payable."""
from decimal import Decimal

import pytest

from app.services.commission_calculator import (
    ALLOCATION_EXCEEDS_PAYABLE_MESSAGE,
    AllocationExceedsPayableError,
    check_allocations,
    validate_allocations,
)

D = Decimal


def test_shares_above_payable_are_rejected():
    check = check_allocations([D("60"), D("38")], D("97.85"))

    assert check.is_valid is False
    assert check.total_allocated == D("98")
    assert check.remaining == D("-0.15")
    assert check.message == ALLOCATION_EXCEEDS_PAYABLE_MESSAGE
    assert check.message == "Total distributed exceeds commission payable"


def test_exact_allocation_is_accepted():
    check = check_allocations([D("60"), D("37.85")], D("97.85"))

    assert check.is_valid is True
    assert check.remaining == D("0")
    assert check.message is None


def test_partial_allocation_leaves_remaining():
    check = check_allocations([D("50")], D("97.85"))

    assert check.is_valid is True
    assert check.remaining == D("47.85")


def test_one_cent_over_is_within_tolerance():
    assert check_allocations([D("60"), D("37.86")], D("97.85")).is_valid is True
    assert check_allocations([D("60"), D("37.87")], D("97.85")).is_valid is False


def test_custom_tolerance():
    assert check_allocations([D("97.86")], D("97.85"), tolerance=D("0")).is_valid is False
    assert check_allocations([D("98.85")], D("97.85"), tolerance=D("1")).is_valid is True


def test_no_recipients_is_valid():
    check = check_allocations([], D("97.85"))

    assert check.is_valid is True
    assert check.total_allocated == D("0")


def test_negative_payable_rejects_any_share():
    assert check_allocations([D("1")], D("-10")).is_valid is False


def test_validate_raises_with_details():
    with pytest.raises(AllocationExceedsPayableError) as exc_info:
        validate_allocations([D("60"), D("38")], D("97.85"))

    err = exc_info.value
    assert isinstance(err, ValueError)
    assert str(err) == ALLOCATION_EXCEEDS_PAYABLE_MESSAGE
    assert err.total_allocated == D("98")
    assert err.details == {"total_allocated": "98", "total_commission_payable": "97.85"}


def test_validate_returns_check_when_valid():
    amounts = [D("60"), D("37.85")]

    check = validate_allocations(amounts, D("97.85"))

    assert check.is_valid is True
    assert amounts == [D("60"), D("37.85")]
