"""
Support and Resistance Pipeline
Composes cache, validator, calibrator, detector, post-processor and
similarity scorer into one report per request.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from ..config.levels_config import LevelPolicy, get_config
from ..market_data.cache import BarSeriesCache
from ..preprocessing.bar_series import require_min_bars
from ..utils.exceptions import InsufficientDataException
from ..utils.helpers import ensure_positive_price, ensure_positive_prices
from ..utils.logger import LoggerMixin, timed_operation
from .calibrator import calibrate_prominence
from .extrema import detect_raw_levels
from .post_processor import PostProcessOptions, PostProcessResult, post_process
from .similarity import similarity_score
from .validator import ValidatedLevel, validate_levels


@dataclass
class LevelsReport:
    """Result of one pipeline run"""
    current_price: float
    support: Optional[float]
    resistance: Optional[float]
    levels: List[float]
    supports: List[float]
    resistances: List[float]
    predefined_levels: List[float]
    validated_levels: List[ValidatedLevel]
    prominence: float
    similarity: float
    bars_analyzed: int
    stale: bool = False
    insufficient_data: bool = False
    detection_time_ms: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current_price': self.current_price,
            'support': self.support,
            'resistance': self.resistance,
            'levels': self.levels,
            'supports': self.supports,
            'resistances': self.resistances,
            'predefined_levels': self.predefined_levels,
            'validated_levels': [v.to_dict() for v in self.validated_levels],
            'prominence': self.prominence,
            'similarity': self.similarity,
            'bars_analyzed': self.bars_analyzed,
            'stale': self.stale,
            'insufficient_data': self.insufficient_data,
            'detection_time_ms': self.detection_time_ms,
            'timestamp': self.timestamp.isoformat()
        }


class LevelsPipeline(LoggerMixin):
    """
    Level-detection pipeline for a single instrument.

    Owns no state besides a reference to the shared bar series cache and the
    read-only predefined levels; every run produces a fresh report.
    """

    def __init__(
        self,
        cache: BarSeriesCache,
        predefined_levels: Optional[Iterable[float]] = None,
        policy: Optional[LevelPolicy] = None,
        options: Optional[PostProcessOptions] = None
    ):
        super().__init__()
        self.cache = cache
        self.predefined_levels = sorted(set(ensure_positive_prices(predefined_levels, "predefined_level")))
        self.policy = policy or get_config().policy
        self.options = options or PostProcessOptions.from_policy(self.policy)

        self.set_log_context(
            symbol=cache.config.symbol,
            currency=cache.config.currency,
            mode=self.policy.detection_mode.value
        )
        self.logger.info("Pipeline initialized", predefined_levels=len(self.predefined_levels))

    @timed_operation("levels_pipeline_run")
    async def run(self, current_price: float) -> LevelsReport:
        """
        Produce a levels report for ``current_price``

        Raises:
            DataUnavailableException: No series, fresh or cached
        """
        snapshot = await self.cache.get_series()
        return self.analyze(snapshot.series, current_price, stale=snapshot.stale)

    def analyze(
        self,
        series: pd.DataFrame,
        current_price: float,
        stale: bool = False
    ) -> LevelsReport:
        """Run the analytical stages on an already obtained series"""
        started = time.perf_counter()
        current_price = ensure_positive_price(current_price, "current_price")

        validated = validate_levels(self.predefined_levels, series, self.policy)
        prominence = calibrate_prominence(validated, series, self.policy)

        insufficient = False
        try:
            require_min_bars(series, self.policy.min_bars)
        except InsufficientDataException as e:
            insufficient = True
            self.logger.warning("Insufficient data, no levels detected", **e.details)

        if insufficient:
            processed = PostProcessResult()
        else:
            raw = detect_raw_levels(series, prominence, self.policy)
            processed = post_process(
                raw.supports,
                raw.resistances,
                current_price,
                series,
                predefined_levels=self.predefined_levels,
                options=self.options,
                policy=self.policy
            )

        similarity = similarity_score(processed.levels, validated, self.policy.similarity_tolerance)

        report = LevelsReport(
            current_price=current_price,
            support=processed.support,
            resistance=processed.resistance,
            levels=processed.levels,
            supports=processed.supports,
            resistances=processed.resistances,
            predefined_levels=list(self.predefined_levels),
            validated_levels=validated,
            prominence=prominence,
            similarity=similarity,
            bars_analyzed=len(series),
            stale=stale,
            insufficient_data=insufficient,
            detection_time_ms=(time.perf_counter() - started) * 1000
        )

        self.logger.info(
            "Levels report ready",
            support=report.support,
            resistance=report.resistance,
            levels=len(report.levels),
            validated=len(validated),
            similarity=round(similarity, 2),
            stale=stale
        )
        return report
