"""
Level Post-Processor for Support/Resistance System

Turns raw detector output into a bounded, ranked level set. Stages run in
a fixed order for each side: range filter, predefined blend, volume
weighting, clustering, ranking. The closest support below and resistance
above the current price are picked from the retained levels.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from ..config.levels_config import LevelPolicy, get_config
from ..preprocessing.bar_series import has_volume
from ..utils.helpers import ensure_positive_price, ensure_positive_prices, relative_difference
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PostProcessOptions:
    """Optional stages of the post-processor"""
    use_predefined_blend: bool = False
    use_volume_weighting: bool = False

    @classmethod
    def from_policy(cls, policy: LevelPolicy) -> "PostProcessOptions":
        return cls(
            use_predefined_blend=policy.use_predefined_blend,
            use_volume_weighting=policy.use_volume_weighting
        )


@dataclass
class PostProcessResult:
    """Final level set plus the closest support and resistance"""
    levels: List[float] = field(default_factory=list)
    support: Optional[float] = None
    resistance: Optional[float] = None
    supports: List[float] = field(default_factory=list)
    resistances: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def filter_by_range(
    levels: Iterable[float],
    current_price: float,
    min_multiplier: float,
    max_multiplier: float
) -> List[float]:
    """Keep levels inside ``[price * min_multiplier, price * max_multiplier]``"""
    low, high = current_price * min_multiplier, current_price * max_multiplier
    return [level for level in levels if low <= level <= high]


def blend_predefined(
    levels: List[float],
    predefined: Iterable[float],
    tolerance: float
) -> List[float]:
    """
    Inject each predefined level that has no detected level within
    ``tolerance`` of it
    """
    detected = list(levels)
    blended = list(levels)
    for level in predefined:
        if not any(relative_difference(d, level) <= tolerance for d in detected):
            blended.append(level)
    return blended


def filter_by_volume(
    levels: List[float],
    series: pd.DataFrame,
    proximity: float,
    multiplier: float
) -> List[float]:
    """
    Keep levels whose traded volume is at least ``multiplier`` times the
    average daily volume

    A level's volume is the total volume of bars whose low or high lies
    within ``proximity`` of it. Without usable volume the levels pass
    through unchanged.
    """
    if not has_volume(series):
        logger.warning("Volume weighting requested but series has no volume data")
        return list(levels)

    lows = series['low'].to_numpy(dtype=float)
    highs = series['high'].to_numpy(dtype=float)
    volume = series['volume'].to_numpy(dtype=float)
    threshold = multiplier * float(np.nanmean(volume))

    kept = []
    for level in levels:
        near = (
            (np.abs(lows - level) / level <= proximity) |
            (np.abs(highs - level) / level <= proximity)
        )
        if float(np.nansum(volume[near])) >= threshold:
            kept.append(level)
    return kept


def cluster_levels(levels: Iterable[float], tolerance: float = 0.01) -> List[float]:
    """
    Merge near-duplicate levels

    Walks the sorted levels; a level joins the current cluster when it lies
    within ``tolerance`` of the cluster mean, otherwise the mean is emitted
    and a new cluster starts. The output is ascending with neighbours more
    than ``tolerance`` apart, so clustering it again returns it unchanged.
    """
    ordered = sorted(float(level) for level in levels)
    if not ordered:
        return []

    clusters = []
    members = [ordered[0]]
    for level in ordered[1:]:
        mean = sum(members) / len(members)
        if relative_difference(level, mean) <= tolerance:
            members.append(level)
        else:
            clusters.append(mean)
            members = [level]
    clusters.append(sum(members) / len(members))
    return clusters


def limit_levels(levels: List[float], current_price: float, max_levels: int) -> List[float]:
    """Keep the ``max_levels`` levels nearest the current price, ascending"""
    if len(levels) <= max_levels:
        return sorted(levels)
    nearest = sorted(levels, key=lambda level: (abs(level - current_price), level))[:max_levels]
    return sorted(nearest)


def post_process(
    raw_supports: Iterable[float],
    raw_resistances: Iterable[float],
    current_price: float,
    series: Optional[pd.DataFrame] = None,
    predefined_levels: Optional[Iterable[float]] = None,
    options: Optional[PostProcessOptions] = None,
    policy: Optional[LevelPolicy] = None
) -> PostProcessResult:
    """
    Post-process raw detected levels

    Args:
        raw_supports: Detected support candidates
        raw_resistances: Detected resistance candidates
        current_price: Current price (strictly positive)
        series: Bar series, read by volume weighting
        predefined_levels: Levels injected by the predefined blend
        options: Enabled optional stages (defaults from the policy)
        policy: Tuning constants (defaults to the configured policy)

    Returns:
        PostProcessResult; the support is the greatest retained support
        strictly below the price, the resistance the smallest retained
        resistance strictly above it. Levels removed by the range filter are
        never picked.
    """
    policy = policy or get_config().policy
    options = options or PostProcessOptions.from_policy(policy)
    current_price = ensure_positive_price(current_price, "current_price")
    raw_supports = ensure_positive_prices(raw_supports, "support")
    raw_resistances = ensure_positive_prices(raw_resistances, "resistance")
    predefined = ensure_positive_prices(predefined_levels, "predefined_level")

    def in_range(levels: Iterable[float]) -> List[float]:
        return filter_by_range(
            levels, current_price, policy.range_min_multiplier, policy.range_max_multiplier
        )

    predefined = in_range(predefined)

    def process_side(raw: List[float]) -> List[float]:
        levels = in_range(raw)
        if options.use_predefined_blend and predefined:
            levels = blend_predefined(levels, predefined, policy.blend_tolerance)
        if options.use_volume_weighting and levels and series is not None:
            levels = filter_by_volume(
                levels, series, policy.volume_proximity, policy.volume_multiplier
            )
        levels = cluster_levels(levels, policy.cluster_tolerance)
        return limit_levels(levels, current_price, policy.max_levels)

    supports = process_side(raw_supports)
    resistances = process_side(raw_resistances)

    levels = limit_levels(
        cluster_levels(supports + resistances, policy.cluster_tolerance),
        current_price,
        policy.max_levels
    )

    below = [s for s in supports if s < current_price]
    above = [r for r in resistances if r > current_price]

    result = PostProcessResult(
        levels=levels,
        support=max(below) if below else None,
        resistance=min(above) if above else None,
        supports=supports,
        resistances=resistances
    )
    logger.info(
        "Levels post-processed",
        current_price=current_price,
        levels=len(levels),
        support=result.support,
        resistance=result.resistance,
        blend=options.use_predefined_blend,
        volume_weighting=options.use_volume_weighting
    )
    return result
