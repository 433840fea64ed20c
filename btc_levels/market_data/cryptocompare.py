"""
CryptoCompare REST client.

Async fetches of daily history (``v2/histoday``) and the spot price
(``price``). Transport, HTTP and payload errors surface as
``DataFetchException``; retries and fallbacks belong to the caller.
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp

from ..config.levels_config import DataConfig, get_config
from ..utils.exceptions import DataFetchException, InvalidDataException
from ..utils.helpers import ensure_positive_price
from ..utils.logger import LoggerMixin


class CryptoCompareClient(LoggerMixin):
    """Read-only client for the CryptoCompare data API"""

    SOURCE = "cryptocompare"
    MAX_HISTORY_LIMIT = 2000

    def __init__(
        self,
        config: Optional[DataConfig] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        super().__init__()
        self.config = config or get_config().data
        self._session = session
        self._owns_session = session is None

        self.set_log_context(source=self.SOURCE, symbol=self.config.symbol)

    async def __aenter__(self) -> "CryptoCompareClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout_seconds)
            )
            self._owns_session = True
        return self._session

    async def close(self):
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        url = f"{self.config.api_base_url.rstrip('/')}/{path}"
        if self.config.api_key:
            params = {**params, "api_key": self.config.api_key}

        session = await self._get_session()
        try:
            async with session.get(url, params=params) as response:
                if response.status != 200:
                    raise DataFetchException(
                        f"CryptoCompare returned HTTP {response.status}",
                        data_source=self.SOURCE,
                        endpoint=path
                    )
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise DataFetchException(
                f"CryptoCompare request failed: {e}",
                data_source=self.SOURCE,
                endpoint=path,
                original_exception=e
            )

        if isinstance(payload, dict) and payload.get("Response") == "Error":
            raise DataFetchException(
                f"CryptoCompare error: {payload.get('Message', 'unknown error')}",
                data_source=self.SOURCE,
                endpoint=path
            )
        return payload

    async def fetch_history(self, lookback_days: int, end_time: float) -> List[Dict[str, Any]]:
        """
        Fetch daily bars ending at ``end_time``

        Args:
            lookback_days: Days of history (clipped to the API limit)
            end_time: Unix seconds of the last bar

        Returns:
            Raw bar records as returned by the API
        """
        params = {
            "fsym": self.config.symbol,
            "tsym": self.config.currency,
            "limit": min(int(lookback_days), self.MAX_HISTORY_LIMIT),
            "toTs": int(end_time),
        }
        payload = await self._get_json("v2/histoday", params)

        try:
            rows = payload["Data"]["Data"]
        except (KeyError, TypeError) as e:
            raise DataFetchException(
                "Unexpected histoday payload",
                data_source=self.SOURCE,
                endpoint="v2/histoday",
                original_exception=e
            )
        if not isinstance(rows, list):
            raise DataFetchException(
                f"Unexpected histoday payload: Data.Data is {type(rows).__name__}",
                data_source=self.SOURCE,
                endpoint="v2/histoday"
            )

        self.logger.info("Fetched historical bars", bars=len(rows), lookback_days=lookback_days)
        return rows

    async def fetch_current_price(self) -> float:
        """Fetch the spot price of the configured pair"""
        payload = await self._get_json(
            "price",
            {"fsym": self.config.symbol, "tsyms": self.config.currency}
        )

        try:
            price = ensure_positive_price(payload[self.config.currency], "current_price")
        except (KeyError, TypeError, InvalidDataException) as e:
            raise DataFetchException(
                "Unexpected price payload",
                data_source=self.SOURCE,
                endpoint="price",
                original_exception=e
            )

        self.logger.info("Current price fetched", price=price)
        return price
