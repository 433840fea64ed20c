"""
Extrema Detector

Finds local maxima and minima of a price series that stand out from the
nearest opposing extreme by at least a prominence fraction. Maxima of the
high series become resistances, minima of the low series supports (or both
from the close series in ``DetectionMode.CLOSE``).
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy.ndimage import maximum_filter1d, minimum_filter1d

from ..config.levels_config import DetectionMode, LevelPolicy, get_config
from ..preprocessing.bar_series import validate_series
from ..utils.exceptions import InvalidDataException
from ..utils.logger import get_logger, timed_operation

logger = get_logger(__name__)


@dataclass
class ExtremaResult:
    """Accepted extrema values and their series indices, in index order"""
    maxima: List[float] = field(default_factory=list)
    minima: List[float] = field(default_factory=list)
    maxima_indices: List[int] = field(default_factory=list)
    minima_indices: List[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.maxima and not self.minima


@dataclass
class RawLevels:
    """Unprocessed detector output for both sides"""
    supports: List[float] = field(default_factory=list)
    resistances: List[float] = field(default_factory=list)


def detect_extrema(
    values: Union[Sequence[float], np.ndarray, pd.Series],
    window_size: int,
    min_distance: int,
    prominence: float
) -> ExtremaResult:
    """
    Detect prominent local extrema

    Index ``i`` with a full window ``[i - window_size, i + window_size]`` is a
    maximum candidate when it equals the window maximum; its prominence is
    ``(v[i] - min(v[i - min_distance:i])) / v[i]``. Minima mirror this with
    ``(max(v[i:i + min_distance]) - v[i]) / v[i]``. Candidates with
    prominence ``>= prominence`` are accepted. Tied values are independent
    candidates; an index whose whole window is flat is a maximum candidate
    and never a minimum candidate.

    Args:
        values: Strictly positive prices, oldest first
        window_size: Half-width of the extremum window (>= 1)
        min_distance: Bars scanned for the opposing extreme (>= 1)
        prominence: Minimum prominence fraction

    Returns:
        ExtremaResult; empty when the series is shorter than one window
    """
    if window_size < 1 or min_distance < 1:
        raise InvalidDataException(
            "window_size and min_distance must be >= 1",
            validation_errors={'window_size': window_size, 'min_distance': min_distance}
        )
    if prominence < 0:
        raise InvalidDataException(
            "prominence must be non-negative",
            validation_errors={'prominence': prominence}
        )

    arr = np.asarray(values, dtype=float)
    n = len(arr)
    if n < 2 * window_size + 1:
        return ExtremaResult()

    if not np.all(np.isfinite(arr)) or np.any(arr <= 0):
        raise InvalidDataException("Series values must be finite positive prices")

    size = 2 * window_size + 1
    rolling_max = maximum_filter1d(arr, size=size, mode='nearest')
    rolling_min = minimum_filter1d(arr, size=size, mode='nearest')

    candidates = np.arange(window_size, n - window_size)
    # a flat window counts as a maximum only, so no index is both
    window_varies = rolling_max[candidates] != rolling_min[candidates]
    max_candidates = candidates[arr[candidates] == rolling_max[candidates]]
    min_candidates = candidates[window_varies & (arr[candidates] == rolling_min[candidates])]

    result = ExtremaResult()

    for i in max_candidates:
        value = arr[i]
        left_min = arr[max(0, i - min_distance):i].min()
        if (value - left_min) / value >= prominence:
            result.maxima.append(float(value))
            result.maxima_indices.append(int(i))

    for i in min_candidates:
        value = arr[i]
        right_max = arr[i:min(n, i + min_distance)].max()
        if (right_max - value) / value >= prominence:
            result.minima.append(float(value))
            result.minima_indices.append(int(i))

    return result


@timed_operation("detect_raw_levels")
def detect_raw_levels(
    series: pd.DataFrame,
    prominence: float,
    policy: Optional[LevelPolicy] = None
) -> RawLevels:
    """
    Run the detector on the series according to the policy's mode

    ``HIGH_LOW`` scans highs for resistances and lows for supports;
    ``CLOSE`` scans closes for both. With ``recent_only`` set, only extrema
    from the most recent half of the series are kept.
    """
    policy = policy or get_config().policy

    if series is None or series.empty:
        return RawLevels()
    validate_series(series)

    def scan(column: str) -> ExtremaResult:
        return detect_extrema(
            series[column].to_numpy(dtype=float),
            policy.window_size,
            policy.min_distance,
            prominence
        )

    if policy.detection_mode == DetectionMode.CLOSE:
        resistance_scan = support_scan = scan('close')
    else:
        resistance_scan = scan('high')
        support_scan = scan('low')

    resistances = list(zip(resistance_scan.maxima_indices, resistance_scan.maxima))
    supports = list(zip(support_scan.minima_indices, support_scan.minima))

    if policy.recent_only:
        cutoff = len(series) // 2
        resistances = [(i, v) for i, v in resistances if i >= cutoff]
        supports = [(i, v) for i, v in supports if i >= cutoff]

    raw = RawLevels(
        supports=[v for _, v in supports],
        resistances=[v for _, v in resistances]
    )
    logger.debug(
        "Raw levels detected",
        mode=policy.detection_mode.value,
        supports=len(raw.supports),
        resistances=len(raw.resistances)
    )
    return raw
