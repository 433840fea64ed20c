"""
Tests for the levels pipeline.
"""

from unittest.mock import AsyncMock

import pytest

from btc_levels.config import LevelPolicy
from btc_levels.market_data import BarSeriesCache
from btc_levels.preprocessing import empty_series
from btc_levels.support_resistance import LevelsPipeline, PostProcessOptions
from btc_levels.utils import format_levels_report
from btc_levels.utils.exceptions import DataFetchException, DataUnavailableException

from conftest import make_series

DAY_SECONDS = 24 * 60 * 60


@pytest.fixture
def fetcher(sine_records):
    mock = AsyncMock()
    mock.fetch_history = AsyncMock(return_value=sine_records)
    return mock


@pytest.fixture
def cache(fetcher, data_config, clock):
    return BarSeriesCache(fetcher, data_config, clock=clock)


@pytest.fixture
def pipeline(cache, policy):
    return LevelsPipeline(cache, predefined_levels=[101.0, 500.0], policy=policy)


class TestLevelsPipeline:
    """Tests for LevelsPipeline"""

    def test_initialization(self, cache, policy):
        pipeline = LevelsPipeline(cache, predefined_levels=[65000, 60000, 60000], policy=policy)

        assert pipeline.predefined_levels == [60000.0, 65000.0]
        assert pipeline.options == PostProcessOptions.from_policy(policy)

    @pytest.mark.asyncio
    async def test_run(self, pipeline, fetcher):
        report = await pipeline.run(100.0)

        assert report.bars_analyzed == 300
        assert not report.stale
        assert not report.insufficient_data
        assert report.levels
        for level in report.levels:
            assert 30.0 <= level <= 250.0
        assert report.support is not None and report.support < 100.0
        assert report.resistance is not None and report.resistance > 100.0
        assert report.prominence >= 0.02
        fetcher.fetch_history.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_predefined_level_validated(self, pipeline):
        report = await pipeline.run(100.0)

        assert [v.level for v in report.validated_levels] == [101.0]
        assert report.predefined_levels == [101.0, 500.0]
        assert 0.0 <= report.similarity <= 100.0

    @pytest.mark.asyncio
    async def test_stale_flag_propagates(self, pipeline, fetcher, clock):
        await pipeline.run(100.0)
        fetcher.fetch_history.side_effect = DataFetchException("down")
        clock.advance(2 * DAY_SECONDS)

        report = await pipeline.run(100.0)

        assert report.stale
        assert report.levels

    @pytest.mark.asyncio
    async def test_no_data_raises(self, pipeline, fetcher):
        fetcher.fetch_history.side_effect = DataFetchException("down")

        with pytest.raises(DataUnavailableException):
            await pipeline.run(100.0)

    def test_insufficient_data(self, pipeline):
        report = pipeline.analyze(make_series([100.0 + i for i in range(50)]), 120.0)

        assert report.insufficient_data
        assert report.levels == []
        assert report.support is None
        assert report.resistance is None
        assert report.similarity == 0.0
        assert report.bars_analyzed == 50

    def test_empty_series(self, pipeline):
        report = pipeline.analyze(empty_series(), 100.0)

        assert report.levels == []
        assert report.validated_levels == []
        assert report.prominence == pipeline.policy.prominence_floor

    def test_close_mode(self, cache, sine_series):
        pipeline = LevelsPipeline(cache, policy=LevelPolicy(detection_mode="close"))
        report = pipeline.analyze(sine_series, 100.0)

        assert report.support == pytest.approx(80.0)
        assert report.resistance == pytest.approx(120.0)

    def test_report_to_dict(self, pipeline, sine_series):
        data = pipeline.analyze(sine_series, 100.0).to_dict()

        assert data["current_price"] == 100.0
        assert isinstance(data["timestamp"], str)
        assert data["validated_levels"][0]["level"] == 101.0

    def test_text_report(self, pipeline, sine_series):
        text = format_levels_report(pipeline.analyze(sine_series, 100.0))

        assert text.startswith("BTC Levels Report (Price: $100.00)")
        assert "Closest:" in text
        assert "Predefined Levels:" in text
        assert "Similarity with validated levels:" in text
