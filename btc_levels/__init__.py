"""
BTC Levels Package

Support and resistance levels for BTC derived from daily price history.

Key Features:
- Daily history from CryptoCompare behind a 24h process-wide cache
- Validation of predefined levels by touches and reversals
- Prominence calibrated from validated levels
- Local extrema detection on high/low or close series
- Range filter, predefined blend, optional volume weighting, clustering
- Similarity between detected and validated levels
- HTTP API with JSON and plain text reports
"""

import logging

__version__ = "1.0.0"
__license__ = "MIT"

logging.getLogger(__name__).addHandler(logging.NullHandler())

from .config.levels_config import LevelsConfig, LevelPolicy, DetectionMode, get_config
from .market_data.cache import BarSeriesCache
from .market_data.cryptocompare import CryptoCompareClient
from .market_data.predefined import load_predefined_levels
from .support_resistance.pipeline import LevelsPipeline, LevelsReport
from .utils.helpers import format_levels_report
from .utils.logger import get_logger
from .api.levels_api import create_levels_app

__all__ = [
    # Core classes
    "LevelsPipeline",
    "LevelsReport",
    "BarSeriesCache",
    "CryptoCompareClient",
    "load_predefined_levels",

    # Configuration
    "LevelsConfig",
    "LevelPolicy",
    "DetectionMode",
    "get_config",

    # Utilities
    "get_logger",
    "format_levels_report",

    # API
    "create_levels_app",

    "__version__",
    "__license__"
]
