"""
Predefined Level Validator for Support/Resistance System

Scores externally configured levels against the bar history: a level is
kept when price repeatedly reached it (touches) and repeatedly closed
across it (reversals).
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..config.levels_config import LevelPolicy, get_config
from ..preprocessing.bar_series import validate_series
from ..utils.helpers import ensure_positive_prices
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ValidatedLevel:
    """Predefined level with its historical touch statistics"""
    level: float
    touches: int
    reversals: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def count_touches_and_reversals(
    level: float,
    series: pd.DataFrame,
    touch_tolerance: float
) -> Tuple[int, int]:
    """
    Count touches and reversals of ``level`` over adjacent bar pairs

    A pair touches the level when it lies inside the pair's combined
    low/high envelope widened by ``touch_tolerance``. A touching pair is a
    reversal when the close moves from strictly one side of the level to
    strictly the other.
    """
    if len(series) < 2:
        return 0, 0

    lows = series['low'].to_numpy(dtype=float)
    highs = series['high'].to_numpy(dtype=float)
    closes = series['close'].to_numpy(dtype=float)

    envelope_low = np.minimum(lows[:-1], lows[1:]) * (1 - touch_tolerance)
    envelope_high = np.maximum(highs[:-1], highs[1:]) * (1 + touch_tolerance)
    touching = (level >= envelope_low) & (level <= envelope_high)

    prev_close, curr_close = closes[:-1], closes[1:]
    crossed = (
        ((prev_close < level) & (curr_close > level)) |
        ((prev_close > level) & (curr_close < level))
    )

    return int(touching.sum()), int((touching & crossed).sum())


def validate_levels(
    levels: Iterable[float],
    series: pd.DataFrame,
    policy: Optional[LevelPolicy] = None
) -> List[ValidatedLevel]:
    """
    Validate predefined levels against the bar history

    Args:
        levels: Predefined price levels
        series: Bar series, oldest first
        policy: Thresholds (defaults to the configured policy)

    Returns:
        Levels with enough touches and reversals, ascending by level.
        Empty levels or an empty series give an empty list.
    """
    policy = policy or get_config().policy
    levels = ensure_positive_prices(levels, "level")

    if not levels or series is None or series.empty:
        return []
    validate_series(series)

    validated = []
    for level in sorted(set(levels)):
        touches, reversals = count_touches_and_reversals(level, series, policy.touch_tolerance)
        if touches >= policy.min_touches and reversals >= policy.min_reversals:
            validated.append(ValidatedLevel(level=level, touches=touches, reversals=reversals))
        else:
            logger.debug("Level rejected", level=level, touches=touches, reversals=reversals)

    logger.info("Predefined levels validated", candidates=len(set(levels)), validated=len(validated))
    return validated
