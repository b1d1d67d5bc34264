"""
Metrics panel Python package.

This package hosts the metrics query and visualization pipeline behind the
console's "search view metrics" panel: query adapters, the pure domain
pipeline, the view controller, and a thin HTTP service. See README.md for
usage.
"""

from .__version__ import __version__, __view_model_version__

__all__ = ["__version__", "__view_model_version__"]
