"""
Timestamp parsing and conversion utilities.

Provides utilities for parsing Unix timestamps (seconds and milliseconds),
converting sample timestamps to chart milliseconds, and rendering them as
local date-time text for table rows.
"""

import logging
from datetime import datetime, timezone, tzinfo
from typing import Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Threshold: values at or above are treated as milliseconds
_MS_THRESHOLD = 10_000_000_000


def parse_timestamp(
    value: Optional[Union[str, int, float]], tz: Optional[tzinfo] = timezone.utc
) -> Optional[datetime]:
    """
    Parse a Unix timestamp in seconds or milliseconds.

    Parameters
    ----------
    value : str, int, float, or None
        The timestamp to parse; numeric strings are accepted
    tz : tzinfo or None, default=UTC
        Target timezone; ``None`` means the local timezone

    Returns
    -------
    datetime or None
        Timezone-aware datetime, or None if parsing fails

    Examples
    --------
    >>> parse_timestamp(1697385600)
    datetime.datetime(2023, 10, 15, 16, 0, tzinfo=datetime.timezone.utc)
    >>> parse_timestamp(1697385600000)
    datetime.datetime(2023, 10, 15, 16, 0, tzinfo=datetime.timezone.utc)
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            logger.warning(
                "timestamps.parse_failed",
                extra={"value": value, "error": "not numeric"},
            )
            return None

    try:
        seconds = value / 1000.0 if value >= _MS_THRESHOLD else float(value)
        if tz is None:
            return datetime.fromtimestamp(seconds).astimezone()
        return datetime.fromtimestamp(seconds, tz=tz)
    except (ValueError, TypeError, OSError, OverflowError):
        logger.warning(
            "timestamps.parse_unix_failed",
            extra={"value": value, "error": "invalid timestamp"},
        )
        return None


def to_epoch_ms(seconds: Union[int, float]) -> float:
    """
    Convert a sample timestamp in seconds to chart milliseconds.

    Examples
    --------
    >>> to_epoch_ms(120)
    120000.0
    """
    return float(seconds) * 1000.0


def format_timestamp(
    value: Optional[Union[int, float]],
    fmt: str = DEFAULT_DATETIME_FORMAT,
    tz: Optional[tzinfo] = None,
) -> str:
    """
    Render a sample timestamp as date-time text.

    Parameters
    ----------
    value : int, float, or None
        Unix timestamp in seconds (milliseconds are auto-detected)
    fmt : str
        ``strftime`` format
    tz : tzinfo or None
        Display timezone; ``None`` uses the host's local timezone

    Returns
    -------
    str
        Formatted text, or ``"0"`` when there is no usable timestamp

    Examples
    --------
    >>> format_timestamp(0, tz=timezone.utc)
    '1970-01-01 00:00:00'
    >>> format_timestamp(None)
    '0'
    """
    dt = parse_timestamp(value, tz=tz)
    if dt is None:
        return "0"
    return dt.strftime(fmt)
