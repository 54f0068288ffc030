"""
资金费率 / 价格剧烈波动扫描器

对流动性筛选后的每个交易对:
- 资金费率: |费率| > funding_threshold_pct (默认 0.5%) 时提醒
- 价格波动: 最新一根 swing_interval K线 (默认 4h) |涨跌幅| > price_swing_pct (默认 10%) 时提醒

两类提醒分别生成一条消息，通过同一个 Telegram 通道分段推送。
持续模式默认在每天奇数小时的第 50 分钟执行。
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from ..bot.delivery import DeliveryReport
from ..bot.digest import format_funding_alerts, format_price_swings
from ..connection.base import Candle, FundingInfo, Interval, MarketDataSource
from ..core.config import Config
from ..core.exceptions import SourceUnavailable
from ..metrics import record_alerts, record_fetch_failure
from .base import BaseScanner
from .batch import process_in_batches

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FundingRateAlert:
    """资金费率异常"""
    symbol: str
    funding_rate_pct: float
    mark_price: Optional[float] = None
    next_funding_time: Optional[datetime] = None

    @property
    def alert_type(self) -> str:
        return "extreme_positive" if self.funding_rate_pct > 0 else "extreme_negative"


@dataclass(frozen=True)
class PriceSwingAlert:
    """单根 K线价格剧烈波动"""
    symbol: str
    change_pct: float
    open_price: float
    close_price: float


@dataclass(frozen=True)
class SymbolAlerts:
    symbol: str
    funding: Optional[FundingRateAlert] = None
    swing: Optional[PriceSwingAlert] = None


def check_funding(info: Optional[FundingInfo], threshold_pct: float) -> Optional[FundingRateAlert]:
    """费率 > threshold 或 < -threshold (严格) 时返回提醒"""
    if info is None:
        return None
    pct = info.funding_rate_pct
    if abs(pct) <= threshold_pct:
        return None
    return FundingRateAlert(
        symbol=info.symbol,
        funding_rate_pct=pct,
        mark_price=info.mark_price,
        next_funding_time=info.next_funding_time,
    )


def check_price_swing(symbol: str, candle: Optional[Candle], threshold_pct: float) -> Optional[PriceSwingAlert]:
    """|收盘 - 开盘| / 开盘 > threshold 时返回提醒; 开盘价 <= 0 视为无效"""
    if candle is None or candle.open <= 0:
        return None
    change_pct = (candle.close - candle.open) / candle.open * 100
    if abs(change_pct) <= threshold_pct:
        return None
    return PriceSwingAlert(
        symbol=symbol,
        change_pct=change_pct,
        open_price=candle.open,
        close_price=candle.close,
    )


@dataclass
class MarketAlertReport:
    """单个交易所资金费率 / 价格波动扫描结果"""
    exchange: str
    symbols_total: int = 0
    symbols_selected: int = 0
    funding_alerts: List[FundingRateAlert] = field(default_factory=list)
    swing_alerts: List[PriceSwingAlert] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)
    deliveries: List[DeliveryReport] = field(default_factory=list)
    duration: float = 0.0
    error: Optional[str] = None


class FundingRateScanner(BaseScanner):
    """
    资金费率 / 价格剧烈波动扫描器

    扫描逻辑:
    1. 获取活跃合约并按 24h 成交额筛选
    2. 分批获取每个交易对的资金费率和最新 K线
    3. 筛选极端值并生成提醒消息
    """

    task_name = "funding scan"
    report_cls = MarketAlertReport

    def schedule(self) -> Tuple[int, int, int]:
        alerts = self.config.alerts
        return alerts.schedule_minute, alerts.schedule_every_hours, alerts.schedule_hour_offset

    async def _fetch_funding(self, source: MarketDataSource, symbol: str) -> Optional[FundingInfo]:
        try:
            return await source.get_funding_rate(symbol)
        except SourceUnavailable as e:
            logger.warning(f"Funding rate unavailable for {symbol}: {e.message}")
            record_fetch_failure(source.name, "funding_unavailable")
            return None

    async def _fetch_latest_candle(self, source: MarketDataSource, symbol: str) -> Optional[Candle]:
        try:
            candles = await source.get_candles(symbol, Interval(self.config.alerts.swing_interval), 1)
        except SourceUnavailable as e:
            logger.warning(f"Candles unavailable for {symbol}: {e.message}")
            record_fetch_failure(source.name, "source_unavailable")
            return None
        return candles[-1] if candles else None

    async def scan_exchange(self, source: MarketDataSource) -> MarketAlertReport:
        alerts_config = self.config.alerts
        monitor = self.config.monitor
        report = MarketAlertReport(exchange=source.name)
        started = time.perf_counter()

        try:
            universe, symbols = await self.load_symbols(source)
        except SourceUnavailable as e:
            logger.error(f"{source.label} universe unavailable: {e.message}")
            report.error = e.message
            return report

        report.symbols_total = len(universe)
        report.symbols_selected = len(symbols)

        async def analyze(symbol: str) -> Optional[SymbolAlerts]:
            funding = check_funding(
                await self._fetch_funding(source, symbol),
                alerts_config.funding_threshold_pct,
            )
            swing = check_price_swing(
                symbol,
                await self._fetch_latest_candle(source, symbol),
                alerts_config.price_swing_pct,
            )
            if funding is None and swing is None:
                return None
            return SymbolAlerts(symbol=symbol, funding=funding, swing=swing)

        found = await process_in_batches(
            symbols,
            monitor.batch_size,
            monitor.inter_batch_delay,
            analyze,
            sleep=self._sleep,
        )
        report.funding_alerts = [a.funding for a in found if a.funding is not None]
        report.swing_alerts = [a.swing for a in found if a.swing is not None]

        if report.funding_alerts:
            report.messages.append(format_funding_alerts(
                report.funding_alerts,
                source.label,
                alerts_config.funding_threshold_pct,
                symbol_suffix=source.symbol_suffix,
            ))
        if report.swing_alerts:
            report.messages.append(format_price_swings(
                report.swing_alerts,
                source.label,
                alerts_config.price_swing_pct,
                alerts_config.swing_interval,
                symbol_suffix=source.symbol_suffix,
            ))
        report.duration = time.perf_counter() - started

        record_alerts(source.name, "funding", len(report.funding_alerts))
        record_alerts(source.name, "price_swing", len(report.swing_alerts))
        logger.info(
            f"{source.label}: {len(report.funding_alerts)} funding alerts, "
            f"{len(report.swing_alerts)} price swings in {len(symbols)} symbols ({report.duration:.1f}s)"
        )
        return report

    async def deliver(self, report: MarketAlertReport) -> List[DeliveryReport]:
        """资金费率和价格波动各推送一条 (没有提醒则不推送)"""
        for message in report.messages:
            delivery = await self.send_text(message)
            if delivery is not None:
                report.deliveries.append(delivery)
        return report.deliveries


async def run_funding_scanner(config: Optional[Config] = None, continuous: bool = True) -> List[MarketAlertReport]:
    """运行资金费率 / 价格波动扫描器"""
    scanner = FundingRateScanner(config)
    await scanner.start()

    try:
        if continuous:
            await scanner.run_continuous(serve_metrics=False)
            return []
        return await scanner.scan_once()
    finally:
        await scanner.stop()
