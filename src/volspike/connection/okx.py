"""
OKX USDT 永续 (SWAP) REST 行情源

请求需携带 OK-ACCESS-* 签名头:
    sign = base64(HMAC_SHA256(secret, timestamp + method + requestPath + body))
"""

import base64
import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from ..core.config import ExchangeConfig
from ..core.exceptions import ConfigurationMissing, SourceUnavailable
from .base import Candle, FundingInfo, Interval, MarketDataSource

logger = logging.getLogger(__name__)


def okx_timestamp(now: Optional[datetime] = None) -> str:
    """ISO8601 毫秒时间戳, 例如 2020-12-08T09:08:57.715Z"""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def sign_request(secret: str, timestamp: str, method: str, request_path: str, body: str = "") -> str:
    message = f"{timestamp}{method.upper()}{request_path}{body}"
    digest = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def parse_okx_candle(row: List[Any]) -> Candle:
    """[ts, o, h, l, c, vol, volCcy, volCcyQuote, confirm]"""
    return Candle(
        open_time=int(row[0]),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5]),
    )


class OkxSwapSource(MarketDataSource):
    """OKX SWAP 行情 (需要 API Key / Secret / Passphrase)"""

    name = "okx"
    label = "OKX"
    symbol_suffix = "-USDT-SWAP"

    INTERVALS = {
        Interval.ONE_HOUR: "1H",
        Interval.FOUR_HOURS: "4H",
        Interval.ONE_DAY: "1Dutc",
    }

    def __init__(self, config: Optional[ExchangeConfig] = None):
        config = config or ExchangeConfig(name="okx")
        missing = [
            key for key, value in (
                ("api_key", config.api_key),
                ("api_secret", config.api_secret),
                ("passphrase", config.passphrase),
            )
            if not value
        ]
        if missing:
            raise ConfigurationMissing(
                f"OKX credentials not configured: {', '.join(missing)}",
                exchange="okx",
                missing=missing,
            )
        super().__init__(config)

    def _signed_headers(self, method: str, request_path: str, body: str = "") -> Dict[str, str]:
        timestamp = okx_timestamp()
        return {
            "OK-ACCESS-KEY": self.config.api_key,
            "OK-ACCESS-SIGN": sign_request(self.config.api_secret, timestamp, method, request_path, body),
            "OK-ACCESS-TIMESTAMP": timestamp,
            "OK-ACCESS-PASSPHRASE": self.config.passphrase,
        }

    async def _request(self, path: str, params: Optional[Dict] = None, symbol: str = "") -> List[Any]:
        # 签名需要与实际请求路径 (含查询串) 完全一致
        request_path = f"{path}?{urlencode(params)}" if params else path
        payload = await self._get_json(
            request_path,
            headers=self._signed_headers("GET", request_path),
            symbol=symbol,
        )
        if not isinstance(payload, dict) or str(payload.get("code")) != "0":
            msg = payload.get("msg") if isinstance(payload, dict) else payload
            raise SourceUnavailable(f"OKX {path} error: {msg}", exchange=self.name, symbol=symbol)
        return payload.get("data") or []

    async def get_candles(self, symbol: str, interval: Interval, limit: int) -> List[Candle]:
        params = {
            "instId": symbol,
            "bar": self.INTERVALS[Interval(interval)],
            "limit": limit,
        }
        data = await self._request("/api/v5/market/candles", params, symbol=symbol)
        try:
            candles = [parse_okx_candle(row) for row in data]
        except (IndexError, TypeError, ValueError) as e:
            raise SourceUnavailable(f"Malformed candle for {symbol}: {e}", exchange=self.name, symbol=symbol) from e
        # OKX 返回最新在前
        candles.reverse()
        return candles

    async def list_active_symbols(self) -> List[str]:
        data = await self._request("/api/v5/public/instruments", {"instType": "SWAP"})
        return [
            inst["instId"]
            for inst in data
            if inst.get("state") == "live" and str(inst.get("instId", "")).endswith(self.symbol_suffix)
        ]

    async def get_24h_quote_volume(self) -> Dict[str, float]:
        data = await self._request("/api/v5/market/tickers", {"instType": "SWAP"})
        volumes: Dict[str, float] = {}
        for ticker in data:
            inst_id = str(ticker.get("instId", ""))
            if not inst_id.endswith(self.symbol_suffix):
                continue
            try:
                volumes[inst_id] = float(ticker["volCcy24h"]) * float(ticker["open24h"])
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping malformed ticker: {inst_id}")
        return volumes

    async def get_funding_rate(self, symbol: str) -> FundingInfo:
        data = await self._request("/api/v5/public/funding-rate", {"instId": symbol}, symbol=symbol)
        try:
            item = data[0]
            next_time = int(item.get("nextFundingTime") or 0)
            return FundingInfo(
                symbol=symbol,
                funding_rate=float(item["fundingRate"]),
                next_funding_time=datetime.fromtimestamp(next_time / 1000, tz=timezone.utc) if next_time else None,
                mark_price=float(item["markPx"]) if item.get("markPx") else None,
            )
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
            raise SourceUnavailable(f"Malformed funding-rate for {symbol}: {e}", exchange=self.name, symbol=symbol) from e
