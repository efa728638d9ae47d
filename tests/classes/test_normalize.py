import datetime
import logging

import pytest

from race_sync.classes.normalize import (
    build_raw_data_string,
    clean_currency_value,
    clean_numeric_value,
    clean_p3_value,
    clean_percent_value,
    clean_veto_rating,
    format_date_for_api,
    is_safe_number,
    resolve_candidate_value,
    sheet_serial_to_date,
)


def test_clean_numeric_value_rounds_and_strips_symbols():
    assert clean_numeric_value(2.345) == 2.35
    assert clean_numeric_value("$1,234.567") == 1234.57
    assert clean_numeric_value("12.5abc") == 12.5


def test_clean_numeric_value_keeps_zero():
    assert clean_numeric_value(0) == 0.0
    assert clean_numeric_value("0") == 0.0


def test_clean_numeric_value_drops_values_beyond_bound(caplog):
    caplog.set_level(logging.WARNING)
    assert clean_numeric_value(12000000000) is None
    assert clean_numeric_value("12000000000") is None
    assert clean_numeric_value(999999999) == 999999999.0
    assert "exceeds" in caplog.text


def test_clean_numeric_value_rejects_invalid_tokens():
    assert clean_numeric_value(None) is None
    assert clean_numeric_value("") is None
    assert clean_numeric_value("SC", "SC") is None
    assert clean_numeric_value("#DIV/0!") is None
    assert clean_numeric_value("abc") is None


def test_clean_currency_value_formats_numbers():
    assert clean_currency_value(19722) == "$19,722.00"
    assert clean_currency_value(19722, "19722") == "$19,722.00"
    assert clean_currency_value(-5) == "-$5.00"


def test_clean_currency_value_prefers_display_with_dollar_sign():
    assert clean_currency_value("$1,234.5", "$1,234.5") == "$1,234.50"
    assert clean_currency_value(1234.5, "$1,234.50") == "$1,234.50"


def test_clean_currency_value_rejects_scratches():
    assert clean_currency_value("SC", "SC") is None
    assert clean_currency_value(None, None) is None


def test_clean_percent_value_scales_fractions():
    assert clean_percent_value(0.45, "0.45") == "45.00%"
    assert clean_percent_value(12.5) == "12.50%"


def test_clean_percent_value_uses_percent_display():
    assert clean_percent_value(0.45, "45%") == "45.00%"
    assert clean_percent_value(0.333, " 33.3 % ") == "33.30%"


def test_clean_percent_value_rejects_invalid():
    assert clean_percent_value("N/A", "N/A") is None
    assert clean_percent_value(None) is None


def test_clean_p3_value_passes_false_through():
    assert clean_p3_value(False, "FALSE") == "FALSE"
    assert clean_p3_value("FALSE") == "FALSE"


def test_clean_p3_value_formats_numbers_and_truncates_text(caplog):
    caplog.set_level(logging.WARNING)
    assert clean_p3_value(3.456) == "3.46"
    assert clean_p3_value("x" * 25) == "x" * 20
    assert "truncating" in caplog.text


def test_clean_veto_rating_one_decimal():
    assert clean_veto_rating(7.25) == "7.3"
    assert clean_veto_rating("8") == "8.0"
    assert clean_veto_rating("SC") is None


def test_resolve_candidate_value_falls_back_to_display():
    candidate = resolve_candidate_value("SC", "3")
    assert candidate.string_value == "3"
    assert resolve_candidate_value("", "N/A") is None


def test_is_safe_number():
    assert is_safe_number(1.5)
    assert is_safe_number(1e15)
    assert not is_safe_number(True)
    assert not is_safe_number(float("inf"))
    assert not is_safe_number(float("nan"))
    assert not is_safe_number(1e16)
    assert not is_safe_number("3")


def test_build_raw_data_string_uses_sixteen_display_tokens():
    result = build_raw_data_string(3, ["x", "a", 2.0])
    tokens = result.split(" | ")

    assert len(tokens) == 17
    assert tokens[:3] == ["3", "a", "2"]
    assert build_raw_data_string(4, None) == "4"


def test_sheet_serial_to_date_handles_serials_and_text():
    assert sheet_serial_to_date(45905) == datetime.date(2025, 9, 5)
    assert sheet_serial_to_date("09/05/25") == datetime.date(2025, 9, 5)
    assert sheet_serial_to_date(datetime.datetime(2025, 9, 5, 12, 0)) == datetime.date(2025, 9, 5)
    assert sheet_serial_to_date("garbage") is None
    assert sheet_serial_to_date(True) is None


def test_format_date_for_api():
    assert format_date_for_api(datetime.date(2025, 9, 5)) == "09-05-25"


@pytest.mark.parametrize("value", [2.345, -1.005, 0.125, "$1,234.567", 999999999.995, -0.004, 1e-9, 0])
def test_clean_numeric_value_is_idempotent(value):
    once = clean_numeric_value(value)

    assert clean_numeric_value(once) == once


def test_huge_integers_are_dropped_not_raised():
    huge = 10**400

    assert not is_safe_number(huge)
    assert not is_safe_number(-huge)
    assert clean_numeric_value(huge) is None
    assert clean_currency_value(huge) is None
    assert clean_percent_value(huge) is None
    assert clean_veto_rating(huge) is None
    assert sheet_serial_to_date(huge) is None


def test_clean_percent_value_scales_bare_fraction():
    assert clean_percent_value(0.1822) == "18.22%"


@pytest.mark.parametrize("value", ["#VALUE!", "#DIV/0!", "", "n/a"])
def test_currency_and_percent_reject_error_strings(value):
    assert clean_currency_value(value, value) is None
    assert clean_percent_value(value, value) is None


def test_values_past_decimal_precision_do_not_raise():
    assert clean_numeric_value(1e30) is None
    assert clean_numeric_value("1e30") is None
    assert clean_currency_value(1e30) == "$1,000,000,000,000,000,000,000,000,000,000.00"
    assert clean_p3_value(1e30) == "1000000000000000000000000000000.00"
