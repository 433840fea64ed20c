"""
Market data access: the bar series cache, the CryptoCompare client and
the predefined levels loader.
"""

from .cache import BarSeriesCache, CacheEntry, SeriesSnapshot, HistoryFetcher
from .cryptocompare import CryptoCompareClient
from .predefined import load_predefined_levels

__all__ = [
    "BarSeriesCache",
    "CacheEntry",
    "SeriesSnapshot",
    "HistoryFetcher",
    "CryptoCompareClient",
    "load_predefined_levels"
]
