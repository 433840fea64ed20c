"""
Prominence Calibrator

Derives the extrema prominence threshold from how price moved around
levels the validator already trusts. The result never drops below the
policy floor.
"""

from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

from ..config.levels_config import LevelPolicy, get_config
from ..preprocessing.bar_series import validate_series
from ..utils.helpers import ensure_positive_price
from ..utils.logger import get_logger
from .validator import ValidatedLevel

logger = get_logger(__name__)


def calibrate_prominence(
    validated: Iterable[Union[ValidatedLevel, float]],
    series: pd.DataFrame,
    policy: Optional[LevelPolicy] = None
) -> float:
    """
    Estimate the prominence fraction for extrema detection

    For each validated level, average the one-bar-ahead close-to-close swing
    ``|close[i+1] - close[i]| / close[i]`` over bars whose low or high lies
    within ``calibration_proximity`` of the level; average those per-level
    means. Levels no bar came near are skipped.

    Returns:
        ``max(prominence_floor, estimate)``; the floor when nothing is
        validated or no swing qualifies
    """
    policy = policy or get_config().policy
    floor = float(policy.prominence_floor)

    levels = [
        v.level if isinstance(v, ValidatedLevel) else ensure_positive_price(v, "level")
        for v in validated
    ]
    if not levels or series is None or len(series) < 2:
        return floor
    validate_series(series)

    lows = series['low'].to_numpy(dtype=float)[:-1]
    highs = series['high'].to_numpy(dtype=float)[:-1]
    closes = series['close'].to_numpy(dtype=float)
    swings = np.abs(np.diff(closes)) / closes[:-1]

    per_level = []
    for level in levels:
        near = (
            (np.abs(lows - level) / level <= policy.calibration_proximity) |
            (np.abs(highs - level) / level <= policy.calibration_proximity)
        )
        if near.any():
            per_level.append(float(swings[near].mean()))

    if not per_level:
        return floor

    estimate = float(np.mean(per_level))
    prominence = max(floor, estimate)
    logger.info(
        "Prominence calibrated",
        levels=len(levels),
        estimate=round(estimate, 6),
        prominence=round(prominence, 6)
    )
    return prominence
