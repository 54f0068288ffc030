"""
行情源基类

提供 REST 行情源的抽象接口和通用功能:
- aiohttp 会话管理 (超时、代理)
- 统一的错误包装 (SourceUnavailable)
- K线 / 交易对 / 24h 成交额 / 资金费率接口
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import asyncio
import logging

import aiohttp

from ..core.config import ExchangeConfig
from ..core.exceptions import SourceUnavailable

logger = logging.getLogger(__name__)


class Interval(str, Enum):
    """K线周期"""
    ONE_HOUR = "1h"
    FOUR_HOURS = "4h"
    ONE_DAY = "1d"


@dataclass(frozen=True)
class Candle:
    """单根 K线 (只读)"""
    open_time: int  # ms
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class FundingInfo:
    """当前资金费率"""
    symbol: str
    funding_rate: float  # 小数, 0.005 = 0.5%
    next_funding_time: Optional[datetime] = None
    mark_price: Optional[float] = None

    @property
    def funding_rate_pct(self) -> float:
        return self.funding_rate * 100


class MarketDataSource(ABC):
    """
    交易所 REST 行情源基类

    子类负责交易所差异 (字段名、后缀、签名)，核心逻辑只依赖本接口。
    """

    name: str = "unknown"
    label: str = "Unknown"
    symbol_suffix: str = ""

    def __init__(self, config: ExchangeConfig):
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None

    async def start(self) -> None:
        """创建 HTTP 会话"""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def stop(self) -> None:
        """关闭 HTTP 会话"""
        if self._session:
            await self._session.close()

    async def __aenter__(self) -> "MarketDataSource":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    def display_symbol(self, symbol: str) -> str:
        """去掉交易所后缀，仅用于展示"""
        if self.symbol_suffix and symbol.endswith(self.symbol_suffix):
            return symbol[: -len(self.symbol_suffix)]
        return symbol

    @abstractmethod
    async def get_candles(self, symbol: str, interval: Interval, limit: int) -> List[Candle]:
        """获取最近 limit 根 K线，按时间升序"""
        pass

    @abstractmethod
    async def list_active_symbols(self) -> List[str]:
        """获取可交易的 USDT 永续合约"""
        pass

    @abstractmethod
    async def get_24h_quote_volume(self) -> Dict[str, float]:
        """获取 24h 成交额 (USDT)"""
        pass

    @abstractmethod
    async def get_funding_rate(self, symbol: str) -> FundingInfo:
        """获取单个合约的当前资金费率"""
        pass

    async def _get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        symbol: str = "",
    ) -> Any:
        """GET 请求，所有传输层错误统一包装为 SourceUnavailable"""
        if self._session is None:
            await self.start()

        url = f"{self.config.rest_url}{path}"
        try:
            async with self._session.get(
                url,
                params=params,
                headers=headers,
                proxy=self.config.proxy or None,
            ) as resp:
                if resp.status in (418, 429):
                    retry_after = float(resp.headers.get("Retry-After", 60))
                    self._on_rate_limited(retry_after)
                    raise SourceUnavailable(
                        f"{self.name} rate limited on {path}",
                        exchange=self.name,
                        symbol=symbol,
                        status=resp.status,
                        retry_after=retry_after,
                    )
                if resp.status != 200:
                    raise SourceUnavailable(
                        f"{self.name} {path} HTTP {resp.status}: {await resp.text()}",
                        exchange=self.name,
                        symbol=symbol,
                        status=resp.status,
                    )
                return await resp.json(content_type=None)
        except SourceUnavailable:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise SourceUnavailable(
                f"{self.name} {path} request failed: {e!r}",
                exchange=self.name,
                symbol=symbol,
            ) from e

    def _on_rate_limited(self, retry_after: float) -> None:
        logger.warning(f"{self.name} rate limited, Retry-After {retry_after}s")
