"""
Support and Resistance Detection System

Derives support and resistance levels from daily bars and reconciles them
with predefined levels.

## Stages

- Predefined level validation (touches and reversals)
- Prominence calibration from validated levels
- Local extrema detection on high/low or close series
- Post-processing: range filter, predefined blend, volume weighting,
  clustering, ranking, closest pick
- Similarity between detected and validated levels

## Usage Example

```python
from btc_levels.market_data import BarSeriesCache, CryptoCompareClient
from btc_levels.support_resistance import LevelsPipeline

client = CryptoCompareClient()
cache = BarSeriesCache(client)
pipeline = LevelsPipeline(cache, predefined_levels=[60000, 65000])

report = await pipeline.run(current_price=await client.fetch_current_price())
print(report.support, report.resistance)
```
"""

from .validator import ValidatedLevel, validate_levels, count_touches_and_reversals
from .calibrator import calibrate_prominence
from .extrema import ExtremaResult, RawLevels, detect_extrema, detect_raw_levels
from .post_processor import (
    PostProcessOptions,
    PostProcessResult,
    post_process,
    cluster_levels,
    filter_by_range,
    blend_predefined,
    filter_by_volume,
    limit_levels
)
from .similarity import similarity_score
from .pipeline import LevelsPipeline, LevelsReport

__all__ = [
    # Validation
    "ValidatedLevel",
    "validate_levels",
    "count_touches_and_reversals",

    # Calibration
    "calibrate_prominence",

    # Detection
    "ExtremaResult",
    "RawLevels",
    "detect_extrema",
    "detect_raw_levels",

    # Post-processing
    "PostProcessOptions",
    "PostProcessResult",
    "post_process",
    "cluster_levels",
    "filter_by_range",
    "blend_predefined",
    "filter_by_volume",
    "limit_levels",

    # Scoring
    "similarity_score",

    # Pipeline
    "LevelsPipeline",
    "LevelsReport"
]

__version__ = "1.0.0"
