"""
Tests for the CryptoCompare client.
"""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from btc_levels.config import DataConfig
from btc_levels.market_data import CryptoCompareClient
from btc_levels.utils.exceptions import DataFetchException

from conftest import NOW, make_records


def make_session(payload=None, status=200):
    """Session mock whose ``get`` works as an async context manager"""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)

    request = MagicMock()
    request.__aenter__ = AsyncMock(return_value=response)
    request.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.closed = False
    session.get = MagicMock(return_value=request)
    session.close = AsyncMock()
    return session


class TestCryptoCompareClient:
    """Tests for CryptoCompareClient"""

    @pytest.mark.asyncio
    async def test_fetch_history(self, data_config):
        records = make_records([100, 101, 102])
        session = make_session({"Response": "Success", "Data": {"Data": records}})
        client = CryptoCompareClient(data_config, session=session)

        rows = await client.fetch_history(730, NOW)

        assert rows == records
        url = session.get.call_args.args[0]
        params = session.get.call_args.kwargs["params"]
        assert url == "https://min-api.cryptocompare.com/data/v2/histoday"
        assert params == {
            "fsym": "BTC",
            "tsym": "USD",
            "limit": 730,
            "toTs": NOW,
            "api_key": "test-key",
        }

    @pytest.mark.asyncio
    async def test_history_limit_clipped(self, data_config):
        session = make_session({"Data": {"Data": []}})
        client = CryptoCompareClient(data_config, session=session)

        await client.fetch_history(5000, NOW)

        assert session.get.call_args.kwargs["params"]["limit"] == CryptoCompareClient.MAX_HISTORY_LIMIT

    @pytest.mark.asyncio
    async def test_api_error_payload(self, data_config):
        session = make_session({"Response": "Error", "Message": "rate limit"})
        client = CryptoCompareClient(data_config, session=session)

        with pytest.raises(DataFetchException, match="rate limit"):
            await client.fetch_history(730, NOW)

    @pytest.mark.asyncio
    async def test_http_error(self, data_config):
        client = CryptoCompareClient(data_config, session=make_session({}, status=500))

        with pytest.raises(DataFetchException) as exc_info:
            await client.fetch_history(730, NOW)
        assert exc_info.value.error_code == "DATA_FETCH_ERROR"
        assert exc_info.value.details["endpoint"] == "v2/histoday"

    @pytest.mark.asyncio
    async def test_transport_error(self, data_config):
        session = make_session()
        session.get.side_effect = aiohttp.ClientError("connection reset")
        client = CryptoCompareClient(data_config, session=session)

        with pytest.raises(DataFetchException):
            await client.fetch_history(730, NOW)

    @pytest.mark.asyncio
    async def test_unexpected_history_payload(self, data_config):
        client = CryptoCompareClient(data_config, session=make_session({"Data": None}))

        with pytest.raises(DataFetchException):
            await client.fetch_history(730, NOW)

    @pytest.mark.asyncio
    async def test_history_rows_not_a_list(self, data_config):
        session = make_session({"Data": {"Data": {"time": NOW, "close": 1.0}}})
        client = CryptoCompareClient(data_config, session=session)

        with pytest.raises(DataFetchException, match="Data.Data"):
            await client.fetch_history(730, NOW)

    @pytest.mark.asyncio
    async def test_fetch_current_price(self, data_config):
        session = make_session({"USD": 65432.1})
        client = CryptoCompareClient(data_config, session=session)

        assert await client.fetch_current_price() == 65432.1
        assert session.get.call_args.kwargs["params"]["tsyms"] == "USD"

    @pytest.mark.asyncio
    async def test_invalid_price_payload(self, data_config):
        client = CryptoCompareClient(data_config, session=make_session({"USD": 0}))

        with pytest.raises(DataFetchException):
            await client.fetch_current_price()

    @pytest.mark.asyncio
    async def test_no_api_key(self):
        session = make_session({"USD": 1.0})
        client = CryptoCompareClient(DataConfig(api_key=None), session=session)
        await client.fetch_current_price()

        assert "api_key" not in session.get.call_args.kwargs["params"]

    @pytest.mark.asyncio
    async def test_injected_session_not_closed(self, data_config):
        session = make_session()
        async with CryptoCompareClient(data_config, session=session):
            pass
        session.close.assert_not_awaited()
