"""
Validation utilities for sample values.

Backends ship sample values as strings ("1", "0.25", "NaN", "+Inf"). These
helpers turn them into floats and separate the finite values that take part
in statistics from the ones that only keep their place on a chart axis.
"""

import logging
import math
import re
from typing import Any, List, Sequence, Tuple

logger = logging.getLogger(__name__)

# Leading decimal number, as read by a lenient parser ("12abc" -> 12).
_NUMERIC_PREFIX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def is_valid_float(value: float) -> bool:
    """
    Check if a float value is finite and JSON-serializable.

    Examples
    --------
    >>> is_valid_float(42.5)
    True
    >>> is_valid_float(float('nan'))
    False
    """
    return math.isfinite(value)


def parse_sample_value(raw: Any) -> float:
    """
    Parse a raw sample value into a float.

    Never raises: anything that is not a number, or a string holding one,
    becomes ``NaN``. Strings are read up to the first character that cannot
    continue a decimal number, so ``"12abc"`` is 12 and ``"1_000"`` is 1;
    the ``NaN`` and ``Inf`` spellings Prometheus emits are kept.

    Parameters
    ----------
    raw : Any
        Sample value as shipped by the backend (usually a string)

    Returns
    -------
    float
        Parsed value, or ``nan`` when parsing fails

    Examples
    --------
    >>> parse_sample_value("3.5")
    3.5
    >>> parse_sample_value("bad")
    nan
    >>> parse_sample_value("12abc")
    12.0
    """
    if isinstance(raw, bool):
        return math.nan
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if "_" not in text:
            try:
                return float(text)
            except ValueError:
                pass
        match = _NUMERIC_PREFIX.match(text)
        return float(match.group(0)) if match else math.nan
    return math.nan


def filter_valid_floats(
    values: Sequence[float],
    log_invalid: bool = False,
    log_context: str = "unknown",
) -> Tuple[List[float], int]:
    """
    Filter a list of floats to only include valid (finite) values.

    Parameters
    ----------
    values : Sequence[float]
        Float values to filter
    log_invalid : bool, default=False
        Whether to log a debug record for each invalid value
    log_context : str, default="unknown"
        Context string for logging (e.g., "aggregate.samples")

    Returns
    -------
    tuple of (List[float], int)
        Tuple of (valid values, count of invalid values removed)

    Examples
    --------
    >>> filter_valid_floats([1.0, 2.0, float('inf'), 3.0, float('nan')])
    ([1.0, 2.0, 3.0], 2)
    """
    valid_values: List[float] = []
    invalid_count = 0

    for value in values:
        if is_valid_float(value):
            valid_values.append(value)
        else:
            invalid_count += 1
            if log_invalid:
                logger.debug(
                    "%s.invalid_float_filtered",
                    log_context,
                    extra={"value": str(value)},
                )

    return valid_values, invalid_count
