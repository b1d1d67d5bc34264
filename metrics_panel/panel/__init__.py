"""Panel view controller and row projections."""

from .controller import (
    PanelInputs,
    PanelVariant,
    ViewController,
    compute_fetch_key,
    is_ready,
)

__all__ = [
    "PanelInputs",
    "PanelVariant",
    "ViewController",
    "compute_fetch_key",
    "is_ready",
]
