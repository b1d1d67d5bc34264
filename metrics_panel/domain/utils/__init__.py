"""
Shared utilities for the metrics pipeline.

Modules
-------
validation
    Sample value parsing and float validation
timestamps
    Unix timestamp parsing, millisecond conversion and display formatting
statistics
    Summary statistics over parsed sample values (latest, min, max, mean,
    count)
units
    Numeric compaction rules for chart axes and tooltips
"""

__all__ = []
