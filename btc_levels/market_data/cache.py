"""
Bar Series Cache for BTC Levels system.

Single-slot, process-wide cache of the daily bar series. Fresh entries are
served without network access; expired entries are refreshed through a
history fetcher. When a refresh fails the previous entry is served with a
stale flag; without any entry the run fails with ``DataUnavailableException``.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

import pandas as pd

from ..config.levels_config import DataConfig, get_config
from ..preprocessing.bar_series import normalize_bars
from ..utils.exceptions import (
    DataFetchException,
    DataUnavailableException,
    InvalidDataException
)
from ..utils.logger import LoggerMixin


class HistoryFetcher(Protocol):
    """External collaborator returning raw daily bars ending at ``end_time``"""

    async def fetch_history(self, lookback_days: int, end_time: float) -> List[Dict[str, Any]]:
        ...


@dataclass(frozen=True)
class CacheEntry:
    """Cached series and the unix time it was fetched at"""
    series: pd.DataFrame
    fetched_at: float

    def age_ms(self, now: float) -> float:
        return (now - self.fetched_at) * 1000


@dataclass(frozen=True)
class SeriesSnapshot:
    """
    Series handed to a pipeline run

    ``stale`` is set when a refresh failed and an older entry was served.
    """
    series: pd.DataFrame
    fetched_at: float
    stale: bool = False

    @property
    def bars(self) -> int:
        return len(self.series)


class BarSeriesCache(LoggerMixin):
    """
    Cache of the one instrument's daily bar series

    Constructed once by the composition root and passed to every run.
    Entries are swapped whole, so concurrent readers never see a partial
    series. A lock coalesces refreshes triggered by near-simultaneous misses.
    """

    def __init__(
        self,
        fetcher: HistoryFetcher,
        config: Optional[DataConfig] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            fetcher: History source
            config: Data settings providing default max age and lookback
            clock: Returns current unix time in seconds
        """
        super().__init__()

        self.fetcher = fetcher
        self.config = config or get_config().data
        self._clock = clock

        self._entry: Optional[CacheEntry] = None
        # created on first use so it binds to the running event loop
        self._refresh_lock: Optional[asyncio.Lock] = None

        self._hits = 0
        self._refreshes = 0
        self._failures = 0
        self._stale_serves = 0

        self.set_log_context(symbol=self.config.symbol, currency=self.config.currency)

    @property
    def entry(self) -> Optional[CacheEntry]:
        return self._entry

    def _is_fresh(self, entry: Optional[CacheEntry], now: float, max_age_ms: float) -> bool:
        return entry is not None and entry.age_ms(now) < max_age_ms

    async def get_series(
        self,
        max_age_ms: Optional[float] = None,
        lookback_days: Optional[int] = None
    ) -> SeriesSnapshot:
        """
        Return the cached series, refreshing it when older than ``max_age_ms``

        Args:
            max_age_ms: Maximum entry age (defaults to the configured value)
            lookback_days: Days of history to fetch on refresh

        Returns:
            SeriesSnapshot, ``stale=True`` when an old entry is served after a
            failed refresh

        Raises:
            DataUnavailableException: Refresh failed and nothing is cached
        """
        max_age_ms = self.config.cache_max_age_ms if max_age_ms is None else max_age_ms
        lookback_days = self.config.lookback_days if lookback_days is None else lookback_days

        entry = self._entry
        if self._is_fresh(entry, self._clock(), max_age_ms):
            self._hits += 1
            self.logger.debug("Using cached historical data", bars=len(entry.series))
            return SeriesSnapshot(series=entry.series, fetched_at=entry.fetched_at)

        if self._refresh_lock is None:
            self._refresh_lock = asyncio.Lock()

        async with self._refresh_lock:
            # another waiter may have refreshed while this one was blocked
            entry = self._entry
            now = self._clock()
            if self._is_fresh(entry, now, max_age_ms):
                self._hits += 1
                return SeriesSnapshot(series=entry.series, fetched_at=entry.fetched_at)

            try:
                series = await self._fetch(lookback_days, now)
            except (DataFetchException, InvalidDataException) as e:
                self._failures += 1
                if entry is not None:
                    self._stale_serves += 1
                    self.logger.warning(
                        "History refresh failed, serving stale data",
                        error=str(e),
                        age_ms=round(entry.age_ms(now)),
                        bars=len(entry.series)
                    )
                    return SeriesSnapshot(series=entry.series, fetched_at=entry.fetched_at, stale=True)

                self.logger.error("History refresh failed and no cached data", error=str(e))
                raise DataUnavailableException(
                    "No historical data available: fetch failed and cache is empty",
                    data_source=type(self.fetcher).__name__,
                    original_exception=e
                )

            self._entry = CacheEntry(series=series, fetched_at=now)
            self._refreshes += 1
            self.logger.info(
                "Fetched and cached historical data",
                bars=len(series),
                lookback_days=lookback_days
            )
            return SeriesSnapshot(series=series, fetched_at=now)

    async def _fetch(self, lookback_days: int, now: float) -> pd.DataFrame:
        raw = await self.fetcher.fetch_history(lookback_days, now)
        series = normalize_bars(raw, end_time=now, lookback_days=lookback_days)
        if series.empty:
            raise DataFetchException(
                "History fetch returned no usable bars",
                data_source=type(self.fetcher).__name__
            )
        return series

    def clear(self):
        """Drop the cached entry"""
        self._entry = None
        self.logger.info("Cache cleared")

    def get_cache_stats(self) -> Dict[str, Any]:
        entry = self._entry
        return {
            'has_entry': entry is not None,
            'bars': len(entry.series) if entry is not None else 0,
            'fetched_at': entry.fetched_at if entry is not None else None,
            'age_ms': round(entry.age_ms(self._clock())) if entry is not None else None,
            'max_age_ms': self.config.cache_max_age_ms,
            'hits': self._hits,
            'refreshes': self._refreshes,
            'failures': self._failures,
            'stale_serves': self._stale_serves,
        }
