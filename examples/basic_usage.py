"""
Basic usage example for the BTC levels system.

This example demonstrates the fundamental workflow:
1. Sample data generation behind a history fetcher
2. Cached series retrieval
3. Level detection with predefined levels
4. Text report
"""

import asyncio
import time

import numpy as np

from btc_levels.config import DataConfig, LevelPolicy
from btc_levels.market_data import BarSeriesCache
from btc_levels.support_resistance import LevelsPipeline
from btc_levels.utils import format_levels_report

DAY = 24 * 60 * 60


class SampleHistoryFetcher:
    """Generates a random walk of daily bars instead of calling the API"""

    def __init__(self, base_price: float = 50000.0, seed: int = 42):
        self.base_price = base_price
        self.rng = np.random.default_rng(seed)

    async def fetch_history(self, lookback_days, end_time):
        print(f"Generating {lookback_days} days of sample bars...")
        end_day = int(end_time) // DAY * DAY
        closes = self.base_price * np.exp(np.cumsum(self.rng.normal(0, 0.03, lookback_days)))

        bars = []
        for i, close in enumerate(closes):
            spread = abs(self.rng.normal(0, 0.02))
            bars.append({
                "time": end_day - (lookback_days - 1 - i) * DAY,
                "open": float(close),
                "high": float(close * (1 + spread)),
                "low": float(close * (1 - spread)),
                "close": float(close),
                "volumefrom": float(self.rng.uniform(1000, 10000)),
            })
        return bars


async def main():
    print("BTC Levels - Basic Usage Example")
    print("=" * 40)

    cache = BarSeriesCache(SampleHistoryFetcher(), DataConfig(lookback_days=365))
    pipeline = LevelsPipeline(
        cache,
        predefined_levels=[40000, 45000, 50000, 55000, 60000],
        policy=LevelPolicy(use_volume_weighting=True)
    )

    snapshot = await cache.get_series()
    current_price = float(snapshot.series["close"].iloc[-1])
    print(f"Loaded {snapshot.bars} bars, last close {current_price:,.2f}")

    started = time.perf_counter()
    report = await pipeline.run(current_price)
    print(f"Pipeline finished in {time.perf_counter() - started:.3f}s\n")

    print(format_levels_report(report))

    # Second run is served from the cache
    await pipeline.run(current_price)
    print("\nCache stats:", cache.get_cache_stats())


if __name__ == "__main__":
    asyncio.run(main())
