"""
测试 K线窗口获取
"""

from typing import Dict, List

import aiohttp
import pytest

from volspike.connection.base import Candle, FundingInfo, Interval, MarketDataSource
from volspike.core.config import ExchangeConfig
from volspike.core.exceptions import IncompleteWindow, SourceUnavailable, ValidationError
from volspike.scanner.candle_fetcher import CandleWindowFetcher


def make_candles(volumes) -> List[Candle]:
    return [
        Candle(open_time=i, open=1.0, high=1.0, low=1.0, close=1.0, volume=float(v))
        for i, v in enumerate(volumes)
    ]


class FakeSource(MarketDataSource):
    name = "fake"
    label = "Fake"
    symbol_suffix = "USDT"

    def __init__(self, candles=None, error=None):
        super().__init__(ExchangeConfig(name="fake"))
        self.candles = candles or {}
        self.error = error
        self.calls = []

    async def get_candles(self, symbol: str, interval: Interval, limit: int) -> List[Candle]:
        self.calls.append((symbol, interval, limit))
        if self.error:
            raise self.error
        return self.candles.get(symbol, [])

    async def list_active_symbols(self) -> List[str]:
        return list(self.candles)

    async def get_24h_quote_volume(self) -> Dict[str, float]:
        return {}

    async def get_funding_rate(self, symbol: str) -> FundingInfo:
        return FundingInfo(symbol=symbol, funding_rate=0.0001)


class TestCandleWindowFetcher:
    """测试窗口获取"""

    @pytest.mark.asyncio
    async def test_fetch_full_window(self):
        source = FakeSource({"BTCUSDT": make_candles(range(21))})
        fetcher = CandleWindowFetcher(source)

        window = await fetcher.fetch("BTCUSDT", Interval.ONE_DAY, 21)

        assert len(window) == 21
        assert len(window.baseline) == 20
        assert window.current.volume == 20
        assert source.calls == [("BTCUSDT", Interval.ONE_DAY, 21)]

    @pytest.mark.asyncio
    async def test_extra_candles_keep_newest(self):
        source = FakeSource({"BTCUSDT": make_candles(range(25))})

        window = await CandleWindowFetcher(source).fetch("BTCUSDT", "1d", 21)

        assert len(window) == 21
        assert window.candles[0].volume == 4
        assert window.current.volume == 24
        assert window.interval is Interval.ONE_DAY

    @pytest.mark.asyncio
    async def test_short_history_is_incomplete(self):
        """新上线合约 K线不足"""
        source = FakeSource({"NEWUSDT": make_candles(range(5))})

        with pytest.raises(IncompleteWindow) as exc_info:
            await CandleWindowFetcher(source).fetch("NEWUSDT", Interval.ONE_DAY, 21)

        assert exc_info.value.expected == 21
        assert exc_info.value.received == 5

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped(self):
        source = FakeSource(error=aiohttp.ClientConnectionError("reset"))

        with pytest.raises(SourceUnavailable) as exc_info:
            await CandleWindowFetcher(source).fetch("BTCUSDT", Interval.ONE_HOUR, 21)

        assert exc_info.value.exchange == "fake"
        assert exc_info.value.symbol == "BTCUSDT"

    @pytest.mark.asyncio
    async def test_source_unavailable_passes_through(self):
        error = SourceUnavailable("HTTP 500", exchange="fake", symbol="BTCUSDT", status=500)
        source = FakeSource(error=error)

        with pytest.raises(SourceUnavailable) as exc_info:
            await CandleWindowFetcher(source).fetch("BTCUSDT", Interval.ONE_HOUR, 21)

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_window_size_must_be_at_least_two(self):
        source = FakeSource({"BTCUSDT": make_candles(range(21))})

        with pytest.raises(ValidationError):
            await CandleWindowFetcher(source).fetch("BTCUSDT", Interval.ONE_DAY, 1)

        assert source.calls == []

    @pytest.mark.asyncio
    async def test_try_fetch_returns_none_on_failure(self):
        fetcher = CandleWindowFetcher(FakeSource({"NEWUSDT": make_candles(range(3))}))
        assert await fetcher.try_fetch("NEWUSDT", Interval.ONE_DAY, 21) is None

        failing = CandleWindowFetcher(FakeSource(error=ValueError("bad payload")))
        assert await failing.try_fetch("BTCUSDT", Interval.ONE_DAY, 21) is None
