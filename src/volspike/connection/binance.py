"""
Binance USDT-M 永续合约 REST 行情源

端点:
- /fapi/v1/exchangeInfo   活跃合约
- /fapi/v1/ticker/24hr    24h 成交额 (quoteVolume)
- /fapi/v1/klines         K线
- /fapi/v1/premiumIndex   资金费率 (lastFundingRate)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..core.config import ExchangeConfig
from ..core.exceptions import SourceUnavailable
from .base import Candle, FundingInfo, Interval, MarketDataSource
from .rate_limiter import BinanceRateLimiter

logger = logging.getLogger(__name__)


def parse_binance_kline(row: List[Any]) -> Candle:
    """[openTime, open, high, low, close, volume, closeTime, quoteVolume, ...]"""
    return Candle(
        open_time=int(row[0]),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5]),
    )


class BinanceFuturesSource(MarketDataSource):
    """Binance 合约公共行情 (无需签名)"""

    name = "binance"
    label = "Binance"
    symbol_suffix = "USDT"

    INTERVALS = {
        Interval.ONE_HOUR: "1h",
        Interval.FOUR_HOURS: "4h",
        Interval.ONE_DAY: "1d",
    }

    def __init__(self, config: Optional[ExchangeConfig] = None, rate_limiter: Optional[BinanceRateLimiter] = None):
        super().__init__(config or ExchangeConfig(name="binance"))
        self.rate_limiter = rate_limiter or BinanceRateLimiter()

    def _headers(self) -> Dict[str, str]:
        headers = {}
        if self.config.api_key:
            headers["X-MBX-APIKEY"] = self.config.api_key
        return headers

    async def _request(self, path: str, params: Optional[Dict] = None, symbol: str = "") -> Any:
        await self.rate_limiter.acquire(path, params)
        return await self._get_json(path, params=params, headers=self._headers(), symbol=symbol)

    def _on_rate_limited(self, retry_after: float) -> None:
        super()._on_rate_limited(retry_after)
        self.rate_limiter.handle_429(retry_after)

    async def get_candles(self, symbol: str, interval: Interval, limit: int) -> List[Candle]:
        params = {
            "symbol": symbol,
            "interval": self.INTERVALS[Interval(interval)],
            "limit": limit,
        }
        data = await self._request("/fapi/v1/klines", params, symbol=symbol)
        if not isinstance(data, list):
            raise SourceUnavailable(f"Unexpected klines payload for {symbol}", exchange=self.name, symbol=symbol)
        try:
            return [parse_binance_kline(row) for row in data]
        except (IndexError, TypeError, ValueError) as e:
            raise SourceUnavailable(f"Malformed kline for {symbol}: {e}", exchange=self.name, symbol=symbol) from e

    async def list_active_symbols(self) -> List[str]:
        data = await self._request("/fapi/v1/exchangeInfo")
        try:
            return [
                s["symbol"]
                for s in data["symbols"]
                if s.get("status") == "TRADING"
                and s.get("contractType") == "PERPETUAL"
                and s.get("quoteAsset", "USDT") == "USDT"
            ]
        except (KeyError, TypeError) as e:
            raise SourceUnavailable(f"Malformed exchangeInfo payload: {e}", exchange=self.name) from e

    async def get_24h_quote_volume(self) -> Dict[str, float]:
        data = await self._request("/fapi/v1/ticker/24hr")
        volumes: Dict[str, float] = {}
        for ticker in data or []:
            try:
                volumes[ticker["symbol"]] = float(ticker.get("quoteVolume", 0))
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping malformed ticker: {ticker}")
        return volumes

    async def get_funding_rate(self, symbol: str) -> FundingInfo:
        data = await self._request("/fapi/v1/premiumIndex", {"symbol": symbol}, symbol=symbol)
        try:
            next_time = int(data.get("nextFundingTime") or 0)
            return FundingInfo(
                symbol=symbol,
                funding_rate=float(data["lastFundingRate"]),
                next_funding_time=datetime.fromtimestamp(next_time / 1000, tz=timezone.utc) if next_time else None,
                mark_price=float(data["markPrice"]) if data.get("markPrice") else None,
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise SourceUnavailable(f"Malformed premiumIndex for {symbol}: {e}", exchange=self.name, symbol=symbol) from e
