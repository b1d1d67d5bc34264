"""
Tests for chart value formatting.
"""

import math

from metrics_panel.domain.utils.units import (
    CompactUnit,
    compact_axis_value,
    compact_scale,
    format_tooltip_value,
)


def test_compact_scale():
    assert compact_scale(2_500_000.0) == (2.5, CompactUnit.MILLIONS)
    assert compact_scale(1_000.0) == (1.0, CompactUnit.THOUSANDS)
    assert compact_scale(999.0) == (999.0, CompactUnit.NONE)


def test_compact_axis_value_thresholds():
    assert compact_axis_value(1_000_000) == "1.0M"
    assert compact_axis_value(1_500_000) == "1.5M"
    assert compact_axis_value(2048) == "2.0K"
    assert compact_axis_value(999) == "999"
    assert compact_axis_value(0.256) == "0.26"
    assert compact_axis_value(0) == "0"
    assert compact_axis_value(42.7) == "43"
    assert compact_axis_value(-5) == "-5"


def test_compact_axis_value_non_finite():
    assert compact_axis_value(math.nan) == "nan"


def test_format_tooltip_value():
    assert format_tooltip_value(3.14159) == "3.14"
    assert format_tooltip_value(2) == "2.00"
    assert format_tooltip_value(None) == "-"
    assert format_tooltip_value(math.inf) == "-"
