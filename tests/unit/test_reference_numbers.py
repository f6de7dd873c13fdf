from datetime import date

import pytest

from app.services.reference_number_service import (
    daily_series,
    format_reference,
    highest_sequence,
    is_valid_manual_reference,
    monthly_series,
    next_references,
    parse_sequence,
    references_after,
)


def test_series_formats():
    assert monthly_series("COMM", date(2024, 5, 31)) == "COMM.2024/05/"
    assert monthly_series("COMM-PAY", date(2024, 12, 1)) == "COMM-PAY.2024/12/"
    assert daily_series("JE", date(2024, 5, 31)) == "JE-20240531-"


def test_first_reference_in_series():
    assert next_references(None, "COMM.2024/05/") == ["COMM.2024/05/0001"]


def test_next_after_last():
    assert next_references("COMM.2024/05/0041", "COMM.2024/05/") == ["COMM.2024/05/0042"]


def test_batch_is_consecutive():
    refs = next_references("COMM-PAY.2024/05/0009", "COMM-PAY.2024/05/", count=3)
    assert refs == ["COMM-PAY.2024/05/0010", "COMM-PAY.2024/05/0011", "COMM-PAY.2024/05/0012"]


def test_new_month_restarts():
    assert next_references("COMM.2024/04/0120", "COMM.2024/05/") == ["COMM.2024/05/0001"]


def test_sequence_grows_past_padding():
    assert next_references("COMM.2024/05/9999", "COMM.2024/05/") == ["COMM.2024/05/10000"]


def test_parse_sequence():
    assert parse_sequence("JE-20240531-0007", "JE-20240531-") == 7
    assert parse_sequence("JE-20240531-00A7", "JE-20240531-") == 0
    assert parse_sequence("", "JE-20240531-") == 0
    assert parse_sequence(None, "JE-20240531-") == 0


def test_format_reference_padding():
    assert format_reference("JE-20240531-", 3) == "JE-20240531-0003"
    assert format_reference("X-", 3, padding=6) == "X-000003"


def test_count_must_be_positive():
    with pytest.raises(ValueError):
        next_references(None, "COMM.2024/05/", count=0)


def test_highest_sequence_skips_malformed_tails():
    issued = ["COMM.2024/05/0001", "COMM.2024/05/0001-B", "COMM.2024/05/0003", "COMM.2024/05/XYZ12345"]
    assert highest_sequence(issued, "COMM.2024/05/") == 3
    assert references_after(3, "COMM.2024/05/") == ["COMM.2024/05/0004"]


def test_highest_sequence_compares_numbers_not_strings():
    assert highest_sequence(["COMM.2024/05/9999", "COMM.2024/05/10000"], "COMM.2024/05/") == 10000
    assert highest_sequence([], "COMM.2024/05/") == 0


def test_manual_references():
    assert is_valid_manual_reference("COMM-MANUAL-1", "COMM")
    assert is_valid_manual_reference("INV/77", "COMM")
    assert is_valid_manual_reference("COMM.2024/05/0007", "COMM")
    assert not is_valid_manual_reference("COMM.2024/05/0001-B", "COMM")
    assert not is_valid_manual_reference("COMM.2024/13/0001", "COMM")
    assert not is_valid_manual_reference("COMM.draft", "COMM")
