"""
Preprocessing module for BTC Levels system.

Normalizes raw daily bars into the series frame used by the pipeline.
"""

from .bar_series import (
    Bar,
    SERIES_COLUMNS,
    bars_to_frame,
    empty_series,
    normalize_bars,
    validate_series,
    require_min_bars,
    has_volume
)

__all__ = [
    "Bar",
    "SERIES_COLUMNS",
    "bars_to_frame",
    "empty_series",
    "normalize_bars",
    "validate_series",
    "require_min_bars",
    "has_volume"
]
