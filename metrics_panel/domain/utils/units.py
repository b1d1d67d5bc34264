"""
Numeric display rules for chart axes and tooltips.

These are the reproducible parts of chart formatting; anything visual (line
styles, gridlines) stays with the rendering layer.
"""

import math
from enum import Enum
from typing import Optional, Tuple


class CompactUnit(Enum):
    """Suffixes used by axis-label compaction."""

    NONE = ""
    THOUSANDS = "K"
    MILLIONS = "M"


_SCALE = {
    CompactUnit.NONE: 1.0,
    CompactUnit.THOUSANDS: 1_000.0,
    CompactUnit.MILLIONS: 1_000_000.0,
}


def compact_scale(value: float) -> Tuple[float, CompactUnit]:
    """
    Pick the compaction unit for ``value`` and return the scaled value.

    Examples
    --------
    >>> compact_scale(2_500_000.0)
    (2.5, <CompactUnit.MILLIONS: 'M'>)
    >>> compact_scale(999.0)
    (999.0, <CompactUnit.NONE: ''>)
    """
    if value >= _SCALE[CompactUnit.MILLIONS]:
        return value / _SCALE[CompactUnit.MILLIONS], CompactUnit.MILLIONS
    if value >= _SCALE[CompactUnit.THOUSANDS]:
        return value / _SCALE[CompactUnit.THOUSANDS], CompactUnit.THOUSANDS
    return value, CompactUnit.NONE


def compact_axis_value(value: float) -> str:
    """
    Format a y-axis tick value.

    Millions and thousands get one decimal and an ``M``/``K`` suffix,
    fractions between 0 and 1 get two decimals, anything else is rendered as
    an integer.

    Examples
    --------
    >>> compact_axis_value(1_500_000)
    '1.5M'
    >>> compact_axis_value(2048)
    '2.0K'
    >>> compact_axis_value(0.256)
    '0.26'
    >>> compact_axis_value(42.7)
    '43'
    """
    if not math.isfinite(value):
        return str(value)
    scaled, unit = compact_scale(value)
    if unit is not CompactUnit.NONE:
        return f"{scaled:.1f}{unit.value}"
    if 0 < value < 1:
        return f"{value:.2f}"
    return f"{value:.0f}"


def format_tooltip_value(value: Optional[float]) -> str:
    """
    Format a hovered point value with two decimals.

    Missing and non-finite values render as ``"-"``.

    Examples
    --------
    >>> format_tooltip_value(3.14159)
    '3.14'
    >>> format_tooltip_value(float("nan"))
    '-'
    """
    if value is None or not math.isfinite(value):
        return "-"
    return f"{value:.2f}"
