"""
测试交易所行情源
"""

import base64
import hashlib
import hmac
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from volspike.connection import create_source
from volspike.connection.base import Candle, Interval
from volspike.connection.binance import BinanceFuturesSource, parse_binance_kline
from volspike.connection.okx import OkxSwapSource, okx_timestamp, parse_okx_candle, sign_request
from volspike.connection.rate_limiter import BinanceRateLimiter
from volspike.core.config import ExchangeConfig
from volspike.core.exceptions import ConfigurationMissing, SourceUnavailable, ValidationError


class FakeResponse:
    def __init__(self, status=200, payload=None, headers=None, text=""):
        self.status = status
        self.payload = payload
        self.headers = headers or {}
        self._text = text

    async def json(self, content_type=None):
        return self.payload

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    closed = False

    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.response

    async def close(self):
        self.closed = True


def okx_config():
    return ExchangeConfig(name="okx", api_key="key", api_secret="secret", passphrase="pass")


class TestBinanceFuturesSource:
    """测试 Binance 行情解析"""

    def test_parse_kline_uses_base_volume(self):
        row = [1700000000000, "1.0", "1.5", "0.9", "1.2", "12345.6", 1700086399999, "99999.9", 10]

        candle = parse_binance_kline(row)

        assert candle == Candle(1700000000000, 1.0, 1.5, 0.9, 1.2, 12345.6)

    def test_display_symbol(self):
        assert BinanceFuturesSource().display_symbol("BTCUSDT") == "BTC"

    @pytest.mark.asyncio
    async def test_get_candles(self):
        source = BinanceFuturesSource()
        source._get_json = AsyncMock(return_value=[
            [1, "1", "1", "1", "1", "10", 2, "10", 1],
            [2, "1", "1", "1", "1", "20", 3, "20", 1],
        ])

        candles = await source.get_candles("BTCUSDT", Interval.ONE_DAY, 2)

        assert [c.volume for c in candles] == [10.0, 20.0]
        args, kwargs = source._get_json.call_args
        assert args[0] == "/fapi/v1/klines"
        assert kwargs["params"] == {"symbol": "BTCUSDT", "interval": "1d", "limit": 2}

    @pytest.mark.asyncio
    async def test_malformed_klines(self):
        source = BinanceFuturesSource()
        source._get_json = AsyncMock(return_value={"code": -1121, "msg": "Invalid symbol."})

        with pytest.raises(SourceUnavailable):
            await source.get_candles("NOPEUSDT", Interval.ONE_DAY, 21)

    @pytest.mark.asyncio
    async def test_list_active_symbols(self):
        source = BinanceFuturesSource()
        source._get_json = AsyncMock(return_value={"symbols": [
            {"symbol": "BTCUSDT", "status": "TRADING", "contractType": "PERPETUAL", "quoteAsset": "USDT"},
            {"symbol": "ETHUSDT_240329", "status": "TRADING", "contractType": "CURRENT_QUARTER", "quoteAsset": "USDT"},
            {"symbol": "OLDUSDT", "status": "SETTLING", "contractType": "PERPETUAL", "quoteAsset": "USDT"},
            {"symbol": "BTCUSDC", "status": "TRADING", "contractType": "PERPETUAL", "quoteAsset": "USDC"},
        ]})

        assert await source.list_active_symbols() == ["BTCUSDT"]

    @pytest.mark.asyncio
    async def test_quote_volume(self):
        source = BinanceFuturesSource()
        source._get_json = AsyncMock(return_value=[
            {"symbol": "BTCUSDT", "quoteVolume": "1500000000.5"},
            {"symbol": "BADUSDT", "quoteVolume": "n/a"},
        ])

        assert await source.get_24h_quote_volume() == {"BTCUSDT": 1500000000.5}

    @pytest.mark.asyncio
    async def test_http_429_marks_limiter(self):
        limiter = BinanceRateLimiter()
        source = BinanceFuturesSource(rate_limiter=limiter)
        source._session = FakeSession(FakeResponse(status=429, headers={"Retry-After": "30"}))

        with pytest.raises(SourceUnavailable) as exc_info:
            await source.get_24h_quote_volume()

        assert exc_info.value.status == 429
        assert exc_info.value.retry_after == 30
        assert limiter._blocked_until > 0

    @pytest.mark.asyncio
    async def test_http_error_is_source_unavailable(self):
        source = BinanceFuturesSource()
        session = FakeSession(FakeResponse(status=503, text="maintenance"))
        source._session = session

        with pytest.raises(SourceUnavailable) as exc_info:
            await source.get_candles("BTCUSDT", Interval.ONE_HOUR, 21)

        assert exc_info.value.status == 503
        assert exc_info.value.symbol == "BTCUSDT"
        url, kwargs = session.calls[0]
        assert url == "https://fapi.binance.com/fapi/v1/klines"
        assert kwargs["proxy"] is None


class TestOkxSwapSource:
    """测试 OKX 行情与签名"""

    def test_missing_credentials(self):
        with pytest.raises(ConfigurationMissing) as exc_info:
            OkxSwapSource(ExchangeConfig(name="okx", api_key="key"))

        assert exc_info.value.exchange == "okx"
        assert exc_info.value.missing == ["api_secret", "passphrase"]

    def test_create_source_propagates_missing_credentials(self):
        with pytest.raises(ConfigurationMissing):
            create_source(ExchangeConfig(name="okx"))

    def test_create_unknown_source(self):
        with pytest.raises(ValidationError):
            create_source(ExchangeConfig(name="kraken"))

    def test_sign_request(self):
        ts = "2020-12-08T09:08:57.715Z"
        path = "/api/v5/market/candles?instId=BTC-USDT-SWAP&bar=1H&limit=21"

        signature = sign_request("secret", ts, "get", path)

        expected = hmac.new(b"secret", f"{ts}GET{path}".encode(), hashlib.sha256).digest()
        assert base64.b64decode(signature) == expected
        assert sign_request("secret", ts, "GET", path, body="{}") != signature

    def test_timestamp_format(self):
        now = datetime(2020, 12, 8, 9, 8, 57, 715000, tzinfo=timezone.utc)
        assert okx_timestamp(now) == "2020-12-08T09:08:57.715Z"

    def test_parse_candle(self):
        row = ["1700000000000", "2", "3", "1", "2.5", "400", "40", "1000", "1"]
        assert parse_okx_candle(row).volume == 400.0

    @pytest.mark.asyncio
    async def test_get_candles_reversed_and_signed(self):
        source = OkxSwapSource(okx_config())
        source._get_json = AsyncMock(return_value={"code": "0", "data": [
            ["3", "1", "1", "1", "1", "30", "0", "0", "0"],
            ["2", "1", "1", "1", "1", "20", "0", "0", "1"],
            ["1", "1", "1", "1", "1", "10", "0", "0", "1"],
        ]})

        candles = await source.get_candles("BTC-USDT-SWAP", Interval.ONE_DAY, 3)

        assert [c.open_time for c in candles] == [1, 2, 3]
        args, kwargs = source._get_json.call_args
        assert args[0] == "/api/v5/market/candles?instId=BTC-USDT-SWAP&bar=1Dutc&limit=3"
        headers = kwargs["headers"]
        assert headers["OK-ACCESS-KEY"] == "key"
        assert headers["OK-ACCESS-PASSPHRASE"] == "pass"
        assert headers["OK-ACCESS-SIGN"] == sign_request("secret", headers["OK-ACCESS-TIMESTAMP"], "GET", args[0])

    @pytest.mark.asyncio
    async def test_error_code(self):
        source = OkxSwapSource(okx_config())
        source._get_json = AsyncMock(return_value={"code": "50011", "msg": "Too Many Requests", "data": []})

        with pytest.raises(SourceUnavailable):
            await source.get_candles("BTC-USDT-SWAP", Interval.ONE_HOUR, 21)

    @pytest.mark.asyncio
    async def test_list_active_symbols(self):
        source = OkxSwapSource(okx_config())
        source._get_json = AsyncMock(return_value={"code": "0", "data": [
            {"instId": "BTC-USDT-SWAP", "state": "live"},
            {"instId": "BTC-USD-SWAP", "state": "live"},
            {"instId": "OLD-USDT-SWAP", "state": "suspend"},
        ]})

        assert await source.list_active_symbols() == ["BTC-USDT-SWAP"]

    @pytest.mark.asyncio
    async def test_quote_volume_from_base_volume_and_open(self):
        source = OkxSwapSource(okx_config())
        source._get_json = AsyncMock(return_value={"code": "0", "data": [
            {"instId": "BTC-USDT-SWAP", "volCcy24h": "1000", "open24h": "50000"},
            {"instId": "BTC-USD-SWAP", "volCcy24h": "1", "open24h": "1"},
            {"instId": "BAD-USDT-SWAP", "volCcy24h": ""},
        ]})

        assert await source.get_24h_quote_volume() == {"BTC-USDT-SWAP": 50_000_000.0}


class TestBinanceRateLimiter:
    """测试权重计算"""

    @pytest.mark.parametrize("limit,weight", [(21, 1), (100, 2), (499, 2), (500, 5), (1000, 5), (1500, 10)])
    def test_kline_weight(self, limit, weight):
        limiter = BinanceRateLimiter()
        assert limiter.get_weight("/fapi/v1/klines", {"limit": limit}) == weight

    def test_ticker_weight(self):
        limiter = BinanceRateLimiter()
        assert limiter.get_weight("/fapi/v1/ticker/24hr") == 40
        assert limiter.get_weight("/fapi/v1/ticker/24hr", {"symbol": "BTCUSDT"}) == 1

    def test_premium_index_weight(self):
        limiter = BinanceRateLimiter()
        assert limiter.get_weight("/fapi/v1/premiumIndex") == 10
        assert limiter.get_weight("/fapi/v1/premiumIndex", {"symbol": "BTCUSDT"}) == 1

    @pytest.mark.asyncio
    async def test_acquire_tracks_usage(self):
        limiter = BinanceRateLimiter()

        await limiter.acquire("/fapi/v1/ticker/24hr")
        await limiter.acquire("/fapi/v1/klines", {"limit": 21})

        assert limiter.current_usage == 41
        assert limiter.effective_limit == 2160


class TestFundingRate:
    """测试资金费率解析"""

    @pytest.mark.asyncio
    async def test_binance_premium_index(self):
        source = BinanceFuturesSource()
        source._get_json = AsyncMock(return_value={
            "symbol": "BTCUSDT",
            "markPrice": "43000.5",
            "lastFundingRate": "-0.00625",
            "nextFundingTime": 1704182400000,
        })

        info = await source.get_funding_rate("BTCUSDT")

        assert info.symbol == "BTCUSDT"
        assert info.funding_rate == -0.00625
        assert info.funding_rate_pct == pytest.approx(-0.625)
        assert info.mark_price == 43000.5
        assert info.next_funding_time == datetime(2024, 1, 2, 8, 0, tzinfo=timezone.utc)
        args, kwargs = source._get_json.call_args
        assert args[0] == "/fapi/v1/premiumIndex"
        assert kwargs["params"] == {"symbol": "BTCUSDT"}

    @pytest.mark.asyncio
    async def test_binance_malformed_premium_index(self):
        source = BinanceFuturesSource()
        source._get_json = AsyncMock(return_value={"code": -1121, "msg": "Invalid symbol."})

        with pytest.raises(SourceUnavailable):
            await source.get_funding_rate("NOPEUSDT")

    @pytest.mark.asyncio
    async def test_okx_funding_rate(self):
        source = OkxSwapSource(okx_config())
        source._get_json = AsyncMock(return_value={"code": "0", "data": [{
            "instId": "BTC-USDT-SWAP",
            "fundingRate": "0.0051",
            "nextFundingTime": "1704182400000",
        }]})

        info = await source.get_funding_rate("BTC-USDT-SWAP")

        assert info.funding_rate_pct == pytest.approx(0.51)
        assert info.mark_price is None
        assert info.next_funding_time == datetime(2024, 1, 2, 8, 0, tzinfo=timezone.utc)
        args, _ = source._get_json.call_args
        assert args[0] == "/api/v5/public/funding-rate?instId=BTC-USDT-SWAP"

    @pytest.mark.asyncio
    async def test_okx_empty_funding_rate(self):
        source = OkxSwapSource(okx_config())
        source._get_json = AsyncMock(return_value={"code": "0", "data": []})

        with pytest.raises(SourceUnavailable):
            await source.get_funding_rate("BTC-USDT-SWAP")
