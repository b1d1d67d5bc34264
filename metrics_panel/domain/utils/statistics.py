"""
Statistical summary utilities for series samples.

Computes the per-series figures shown in the table view. All calculations are
deterministic and ignore values that did not parse to a finite float.
"""

import logging
import statistics
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .validation import filter_valid_floats

logger = logging.getLogger(__name__)

AVG_DECIMALS = 4


@dataclass(frozen=True)
class SampleStatistics:
    """
    Container for summary metrics over parsed sample values.

    Attributes
    ----------
    latest : float or None
        Last finite value in sample order
    min : float or None
        Minimum value
    max : float or None
        Maximum value
    mean : float or None
        Average value, rounded to ``AVG_DECIMALS`` places
    count : int
        Number of finite values that took part
    invalid : int
        Number of values dropped because they were not finite
    """

    latest: Optional[float]
    min: Optional[float]
    max: Optional[float]
    mean: Optional[float]
    count: int
    invalid: int = 0


def compute_statistics(values: Optional[Sequence[float]]) -> SampleStatistics:
    """
    Compute latest/min/max/mean/count over the finite entries of ``values``.

    Non-finite entries (``NaN`` from unparsable samples, infinities) are
    skipped. An input with no finite values yields a result whose figures
    are all ``None`` and whose count is zero; the function never raises.

    Parameters
    ----------
    values : Sequence[float] or None
        Parsed sample values in time order

    Returns
    -------
    SampleStatistics

    Examples
    --------
    >>> stats = compute_statistics([1.0, 3.0, float("nan")])
    >>> (stats.latest, stats.min, stats.max, stats.mean, stats.count)
    (3.0, 1.0, 3.0, 2.0, 2)
    """
    if not values:
        return SampleStatistics(None, None, None, None, 0)

    valid: List[float]
    valid, invalid = filter_valid_floats(values)
    if not valid:
        return SampleStatistics(None, None, None, None, 0, invalid)

    min_val = min(valid)
    max_val = max(valid)
    # Rounding must not push the mean outside [min, max].
    mean_val = min(max(round(statistics.fmean(valid), AVG_DECIMALS), min_val), max_val)
    return SampleStatistics(
        latest=valid[-1],
        min=min_val,
        max=max_val,
        mean=mean_val,
        count=len(valid),
        invalid=invalid,
    )
