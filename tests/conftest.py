"""
Shared fixtures for BTC levels tests.
"""

from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
import pytest

from btc_levels.config import DataConfig, LevelPolicy
from btc_levels.preprocessing import Bar, bars_to_frame

DAY = 24 * 60 * 60
NOW = 1_700_000_000 // DAY * DAY


def make_records(
    closes: Sequence[float],
    spread: float = 0.01,
    volumes: Optional[Sequence[float]] = None,
    end_time: int = NOW
) -> List[dict]:
    """Daily source records ending at ``end_time`` with high/low ``spread`` around close"""
    n = len(closes)
    records = []
    for i, close in enumerate(closes):
        record = {
            "time": end_time - (n - 1 - i) * DAY,
            "open": float(close),
            "high": float(close) * (1 + spread),
            "low": float(close) * (1 - spread),
            "close": float(close),
        }
        if volumes is not None:
            record["volumefrom"] = float(volumes[i])
        records.append(record)
    return records


def make_series(
    closes: Sequence[float],
    spread: float = 0.01,
    volumes: Optional[Sequence[float]] = None
) -> pd.DataFrame:
    return bars_to_frame([Bar.from_mapping(r) for r in make_records(closes, spread, volumes)])


def sine_closes(n: int = 300, base: float = 100.0, amplitude: float = 20.0, period: int = 60) -> np.ndarray:
    i = np.arange(n)
    return base + amplitude * np.sin(2 * np.pi * i / period)


def double_bottom_closes(n: int = 200, level: float = 100.0) -> List[float]:
    """Flat market at ``level * 1.04`` dipping below ``level`` twice"""
    closes = [level * 1.04] * n
    for bottom in (n // 4, 3 * n // 4):
        closes[bottom] = level * 0.99
    return closes


class FakeClock:
    """Settable unix clock"""

    def __init__(self, now: float = NOW):
        self.now = float(now)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def policy():
    """Default policy independent of the environment"""
    return LevelPolicy()


@pytest.fixture
def data_config():
    return DataConfig(api_key="test-key", lookback_days=730)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sine_records():
    return make_records(sine_closes())


@pytest.fixture
def sine_series():
    return make_series(sine_closes())


@pytest.fixture
def double_bottom_series():
    return make_series(double_bottom_closes())
