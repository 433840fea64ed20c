"""
Tests for bar series preprocessing.
"""

import numpy as np
import pytest

from btc_levels.preprocessing import (
    Bar,
    SERIES_COLUMNS,
    bars_to_frame,
    empty_series,
    has_volume,
    normalize_bars,
    require_min_bars,
    validate_series
)
from btc_levels.utils.exceptions import InsufficientDataException, InvalidDataException

from conftest import DAY, NOW, make_records, make_series


class TestBar:
    """Tests for a single bar"""

    def test_from_mapping(self):
        bar = Bar.from_mapping({"time": NOW, "high": 11, "low": 9, "close": 10, "open": 10, "volume": 5})

        assert bar.time == NOW
        assert bar.high == 11.0
        assert bar.volume == 5.0
        assert bar.is_valid

    def test_volumefrom_fallback(self):
        bar = Bar.from_mapping({"time": NOW, "high": 11, "low": 9, "close": 10, "volumefrom": 42})
        assert bar.volume == 42.0

    def test_missing_field(self):
        with pytest.raises(InvalidDataException, match="missing"):
            Bar.from_mapping({"time": NOW, "high": 11, "close": 10})

    def test_non_numeric_field(self):
        with pytest.raises(InvalidDataException):
            Bar.from_mapping({"time": NOW, "high": "abc", "low": 9, "close": 10})

    @pytest.mark.parametrize("high,low,close", [
        (11, 9, 12),     # close above high
        (11, 9, 8),      # close below low
        (11, 0, 10),     # zero low
        (float("nan"), 9, 10),
    ])
    def test_invalid_bars(self, high, low, close):
        assert not Bar(time=NOW, high=high, low=low, close=close).is_valid

    def test_negative_volume_invalid(self):
        assert not Bar(time=NOW, high=11, low=9, close=10, volume=-1).is_valid


class TestNormalizeBars:
    """Tests for normalize_bars"""

    def test_sorts_oldest_first(self):
        records = make_records([1, 2, 3, 4])
        series = normalize_bars(reversed(records))

        assert list(series["close"]) == [1, 2, 3, 4]
        assert series["time"].is_monotonic_increasing
        assert list(series.columns) == SERIES_COLUMNS

    def test_drops_invalid_bars(self):
        records = make_records([1, 2, 3])
        records[1]["close"] = records[1]["high"] * 2

        series = normalize_bars(records)
        assert list(series["close"]) == [1, 3]

    def test_duplicate_timestamps_keep_first(self):
        records = make_records([10, 20])
        duplicate = dict(records[1], close=20.1, high=21, low=19)

        series = normalize_bars([records[0], records[1], duplicate])

        assert len(series) == 2
        assert series["close"].iloc[-1] == 20

    def test_duplicate_rejected_even_when_first_is_invalid(self):
        first = {"time": DAY, "high": 1.0, "low": 3.0, "close": 2.0}
        second = {"time": DAY, "high": 3.0, "low": 1.0, "close": 2.0}

        series = normalize_bars([first, second])

        assert series.empty

    def test_index_is_reset(self):
        records = make_records([1, 2, 3])
        series = normalize_bars(reversed(records))
        assert list(series.index) == [0, 1, 2]

    def test_lookback_window(self):
        records = make_records(list(range(1, 11)))
        series = normalize_bars(records, end_time=NOW, lookback_days=3)

        assert len(series) == 4
        assert series["time"].iloc[0] == NOW - 3 * DAY

    def test_bars_after_end_time_excluded(self):
        records = make_records([1, 2, 3], end_time=NOW + DAY)
        series = normalize_bars(records, end_time=NOW, lookback_days=10)
        assert len(series) == 2

    def test_empty_input(self):
        series = normalize_bars([])
        assert series.empty
        assert list(series.columns) == SERIES_COLUMNS


class TestSeriesChecks:
    """Tests for series validation helpers"""

    def test_validate_series_missing_columns(self):
        series = make_series([1, 2, 3]).drop(columns=["low"])
        with pytest.raises(InvalidDataException):
            validate_series(series)

    def test_require_min_bars(self):
        series = make_series([1, 2, 3])
        require_min_bars(series, 3)

        with pytest.raises(InsufficientDataException) as exc_info:
            require_min_bars(series, 4)
        assert exc_info.value.details["provided_bars"] == 3
        assert exc_info.value.details["required_bars"] == 4

    def test_has_volume(self):
        assert has_volume(make_series([1, 2], volumes=[5, 6]))
        assert not has_volume(make_series([1, 2]))
        assert not has_volume(make_series([1, 2], volumes=[0, 0]))
        assert not has_volume(empty_series())

    def test_bars_to_frame_missing_volume_is_nan(self):
        frame = bars_to_frame([Bar(time=NOW, high=2, low=1, close=1.5)])
        assert np.isnan(frame["volume"].iloc[0])
        assert np.isnan(frame["open"].iloc[0])
