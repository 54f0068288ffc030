"""
K线窗口获取

给定交易对和窗口长度 N+1，获取最近 N+1 根 K线:
- 前 N 根为基准 (baseline)
- 最后一根为当前 K线 (current)
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import aiohttp

from ..connection.base import Candle, Interval, MarketDataSource
from ..core.exceptions import IncompleteWindow, SourceUnavailable, ValidationError
from ..metrics import record_fetch_failure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandleWindow:
    """按时间升序排列的 K线窗口"""
    symbol: str
    interval: Interval
    candles: Tuple[Candle, ...]

    def __post_init__(self):
        if len(self.candles) < 2:
            raise ValidationError(
                f"CandleWindow needs at least 2 candles, got {len(self.candles)}",
                field="candles",
            )

    @property
    def baseline(self) -> Tuple[Candle, ...]:
        return self.candles[:-1]

    @property
    def current(self) -> Candle:
        return self.candles[-1]

    def __len__(self) -> int:
        return len(self.candles)


class CandleWindowFetcher:
    """通过行情源获取完整的 K线窗口"""

    def __init__(self, source: MarketDataSource):
        self.source = source

    async def fetch(self, symbol: str, interval: Interval, window_size: int) -> CandleWindow:
        """
        获取 window_size 根 K线

        Raises:
            ValidationError: window_size < 2
            IncompleteWindow: 行情源返回的 K线不足
            SourceUnavailable: 网络/HTTP/数据格式错误
        """
        if window_size < 2:
            raise ValidationError(f"window_size must be >= 2, got {window_size}", field="window_size")
        interval = Interval(interval)

        try:
            candles = await self.source.get_candles(symbol, interval, window_size)
        except SourceUnavailable:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, KeyError, IndexError, TypeError, ValueError) as e:
            raise SourceUnavailable(
                f"Failed to fetch candles for {symbol}: {e!r}",
                exchange=self.source.name,
                symbol=symbol,
            ) from e

        if len(candles) < window_size:
            raise IncompleteWindow(symbol, expected=window_size, received=len(candles))

        return CandleWindow(
            symbol=symbol,
            interval=interval,
            candles=tuple(candles[-window_size:]),
        )

    async def try_fetch(self, symbol: str, interval: Interval, window_size: int) -> Optional[CandleWindow]:
        """非致命版本: 失败时记录日志并返回 None"""
        try:
            return await self.fetch(symbol, interval, window_size)
        except IncompleteWindow as e:
            logger.debug(f"Skipping {symbol}: {e.message}")
            record_fetch_failure(self.source.name, "incomplete_window")
        except SourceUnavailable as e:
            logger.warning(f"Candles unavailable for {symbol}: {e.message}")
            record_fetch_failure(self.source.name, "source_unavailable")
        return None
