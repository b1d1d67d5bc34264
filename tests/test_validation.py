"""
Tests for sample value validation utilities.
"""

import math

from metrics_panel.domain.utils.validation import (
    filter_valid_floats,
    is_valid_float,
    parse_sample_value,
)


def test_is_valid_float():
    assert is_valid_float(42.5)
    assert is_valid_float(0.0)
    assert not is_valid_float(math.nan)
    assert not is_valid_float(math.inf)
    assert not is_valid_float(-math.inf)


def test_parse_sample_value_strings():
    assert parse_sample_value("3.5") == 3.5
    assert parse_sample_value(" 2 ") == 2.0
    assert parse_sample_value("1e3") == 1000.0
    assert math.isinf(parse_sample_value("+Inf"))


def test_parse_sample_value_reads_leading_number():
    assert parse_sample_value("12abc") == 12.0
    assert parse_sample_value("1_000") == 1.0
    assert parse_sample_value("-.5ms") == -0.5
    assert parse_sample_value("1e") == 1.0
    assert math.isnan(parse_sample_value("abc12"))


def test_parse_sample_value_garbage_is_nan():
    for raw in ("bad", "", None, True, [1], {"a": 1}):
        assert math.isnan(parse_sample_value(raw))


def test_parse_sample_value_numbers():
    assert parse_sample_value(7) == 7.0
    assert parse_sample_value(0.25) == 0.25


def test_filter_valid_floats():
    """Test filtering mixed finite and non-finite values."""
    valid, invalid = filter_valid_floats([1.0, math.inf, 2.0, math.nan])
    assert valid == [1.0, 2.0]
    assert invalid == 2


def test_filter_valid_floats_logs_when_asked(caplog):
    with caplog.at_level("DEBUG", logger="metrics_panel.domain.utils.validation"):
        filter_valid_floats([math.nan], log_invalid=True, log_context="t")
    assert any("invalid_float_filtered" in r.getMessage() for r in caplog.records)
