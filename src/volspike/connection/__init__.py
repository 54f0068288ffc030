"""Exchange market data sources."""

from typing import Optional

from ..core.config import ExchangeConfig
from ..core.exceptions import ValidationError
from .base import Candle, FundingInfo, Interval, MarketDataSource
from .binance import BinanceFuturesSource
from .okx import OkxSwapSource
from .rate_limiter import BinanceRateLimiter

SOURCES = {
    "binance": BinanceFuturesSource,
    "okx": OkxSwapSource,
}


def create_source(config: ExchangeConfig) -> MarketDataSource:
    """按交易所名称创建行情源 (OKX 缺少凭证时抛出 ConfigurationMissing)"""
    source_cls: Optional[type] = SOURCES.get(config.name)
    if source_cls is None:
        raise ValidationError(f"Unknown exchange: {config.name}", field="exchanges")
    return source_cls(config)


__all__ = [
    "Candle",
    "FundingInfo",
    "Interval",
    "MarketDataSource",
    "BinanceFuturesSource",
    "OkxSwapSource",
    "BinanceRateLimiter",
    "SOURCES",
    "create_source",
]
