"""
Bar series preprocessing for BTC Levels system.

Parses raw daily bars, drops malformed ones, rejects duplicate timestamps,
orders oldest first and cuts the series to the lookback window. The result
is a ``pandas.DataFrame`` consumed read-only by every pipeline stage.
"""

import math
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from ..utils.exceptions import InvalidDataException, InsufficientDataException
from ..utils.helpers import SECONDS_PER_DAY
from ..utils.logger import get_logger

logger = get_logger(__name__)

SERIES_COLUMNS = ["time", "open", "high", "low", "close", "volume"]
REQUIRED_COLUMNS = ["time", "high", "low", "close"]


@dataclass(frozen=True)
class Bar:
    """
    One daily OHLC(V) bar

    ``time`` is a unix timestamp in seconds aligned to the day.
    """
    time: int
    high: float
    low: float
    close: float
    open: Optional[float] = None
    volume: Optional[float] = None

    @property
    def is_valid(self) -> bool:
        """Positive finite prices with ``low <= close <= high``"""
        prices = (self.high, self.low, self.close)
        if not all(math.isfinite(p) and p > 0 for p in prices):
            return False
        if self.volume is not None and (not math.isfinite(self.volume) or self.volume < 0):
            return False
        return self.low <= self.close <= self.high

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Bar":
        """
        Build a bar from a source record

        Raises:
            InvalidDataException: On missing fields or non-numeric values
        """
        try:
            volume = raw.get("volume")
            if volume is None:
                # CryptoCompare reports traded base volume as volumefrom
                volume = raw.get("volumefrom")
            open_price = raw.get("open")
            return cls(
                time=int(raw["time"]),
                high=float(raw["high"]),
                low=float(raw["low"]),
                close=float(raw["close"]),
                open=float(open_price) if open_price is not None else None,
                volume=float(volume) if volume is not None else None,
            )
        except KeyError as e:
            raise InvalidDataException(
                f"Bar is missing required field {e}",
                data_info={'record': dict(raw)},
                original_exception=e
            )
        except (TypeError, ValueError) as e:
            raise InvalidDataException(
                f"Bar has a non-numeric field: {e}",
                data_info={'record': dict(raw)},
                original_exception=e
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def empty_series() -> pd.DataFrame:
    """An empty series with the canonical columns"""
    return pd.DataFrame({col: pd.Series(dtype="float64") for col in SERIES_COLUMNS}).astype({"time": "int64"})


def bars_to_frame(bars: List[Bar]) -> pd.DataFrame:
    """Convert bars to the canonical series frame, keeping their order"""
    if not bars:
        return empty_series()

    df = pd.DataFrame(
        [
            {
                "time": bar.time,
                "open": bar.open if bar.open is not None else np.nan,
                "high": bar.high,
                "low": bar.low,
                "close": bar.close,
                "volume": bar.volume if bar.volume is not None else np.nan,
            }
            for bar in bars
        ],
        columns=SERIES_COLUMNS,
    )
    return df.astype({"time": "int64", "open": "float64", "volume": "float64"})


def _valid_rows(df: pd.DataFrame) -> pd.Series:
    """Row mask matching ``Bar.is_valid``"""
    prices = df[["high", "low", "close"]]
    positive = (np.isfinite(prices) & (prices > 0)).all(axis=1)
    volume_ok = df["volume"].isna() | (np.isfinite(df["volume"]) & (df["volume"] >= 0))
    ordered = (df["low"] <= df["close"]) & (df["close"] <= df["high"])
    return positive & volume_ok & ordered


def normalize_bars(
    raw_bars: Iterable[Union[Bar, Mapping[str, Any]]],
    end_time: Optional[float] = None,
    lookback_days: Optional[int] = None
) -> pd.DataFrame:
    """
    Normalize fetched bars into a series

    Steps, in order: parse, reject duplicate timestamps keeping the first
    occurrence in source order, drop invalid bars, sort oldest first, keep
    bars inside ``[end_time - lookback_days, end_time]``.

    Args:
        raw_bars: Bars or source records in any order
        end_time: Window end as unix seconds (defaults to now)
        lookback_days: Window length in days (``None`` keeps everything)

    Returns:
        Series DataFrame (possibly empty)
    """
    parsed = [bar if isinstance(bar, Bar) else Bar.from_mapping(bar) for bar in raw_bars]
    df = bars_to_frame(parsed)
    received = len(df)

    df = df.drop_duplicates(subset=["time"], keep="first")
    if len(df) != received:
        logger.debug("Rejected duplicate timestamps", duplicates=received - len(df))

    valid = _valid_rows(df)
    if not valid.all():
        logger.warning(
            "Dropped invalid bars",
            dropped=int((~valid).sum()),
            received=received
        )
        df = df[valid]

    df = df.sort_values("time", kind="stable")

    if lookback_days is not None:
        end = time.time() if end_time is None else end_time
        start = end - lookback_days * SECONDS_PER_DAY
        df = df[(df["time"] >= start) & (df["time"] <= end)]

    return df.reset_index(drop=True)


def validate_series(series: pd.DataFrame) -> None:
    """
    Check a series carries the columns the pipeline reads

    Raises:
        InvalidDataException: If required columns are missing
    """
    missing = [col for col in REQUIRED_COLUMNS if col not in series.columns]
    if missing:
        raise InvalidDataException(
            f"Series is missing required columns: {missing}",
            validation_errors={'missing_columns': missing},
            data_info={'columns': list(series.columns)}
        )


def require_min_bars(series: pd.DataFrame, min_bars: int) -> None:
    """
    Raises:
        InsufficientDataException: If the series has fewer than ``min_bars`` bars
    """
    if len(series) < min_bars:
        raise InsufficientDataException(
            f"Insufficient data: {len(series)} bars, {min_bars} required",
            required_bars=min_bars,
            provided_bars=len(series)
        )


def has_volume(series: pd.DataFrame) -> bool:
    """True when the series carries usable (non-NaN, non-zero) volume"""
    if "volume" not in series.columns or series.empty:
        return False
    volume = series["volume"].to_numpy(dtype=float)
    return bool(np.isfinite(volume).any() and np.nansum(volume) > 0)
