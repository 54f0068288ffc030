"""
成交量异动扫描器

单轮流程 (每个交易所):
1. 获取活跃永续合约 + 24h 成交额
2. 按成交额过滤低流动性币种
3. 分批获取 K线窗口并计算成交量比率
4. 生成异动报告
5. 分段推送到 Telegram

持续模式: 启动时执行一次，之后每小时第 55 分钟执行 (可配置)。
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from ..bot.delivery import DeliveryReport
from ..bot.digest import DigestFormatter, rank_anomalies
from ..connection.base import Interval, MarketDataSource
from ..core.config import Config
from ..core.exceptions import SourceUnavailable
from ..metrics import record_scan
from .base import BaseScanner, filter_liquid_symbols
from .batch import process_in_batches
from .candle_fetcher import CandleWindowFetcher
from .volume_anomaly import VolumeAnomalyDetector, VolumeAnomalyResult

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    """单个交易所单轮扫描结果"""
    exchange: str
    interval: str = ""
    symbols_total: int = 0
    symbols_selected: int = 0
    results: List[VolumeAnomalyResult] = field(default_factory=list)
    anomalies: List[VolumeAnomalyResult] = field(default_factory=list)
    digest: str = ""
    delivery: Optional[DeliveryReport] = None
    duration: float = 0.0
    error: Optional[str] = None

    @property
    def symbols_scanned(self) -> int:
        return len(self.results)


class VolumeSpikeScanner(BaseScanner):
    """多交易所成交量异动扫描器"""

    task_name = "volume scan"
    report_cls = ScanReport

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        monitor = self.config.monitor
        self.detector = VolumeAnomalyDetector(monitor.volume_multiplier)
        self.formatter = DigestFormatter(
            multiplier=monitor.volume_multiplier,
            high_ratio_threshold=monitor.high_ratio_threshold,
            interval=monitor.interval,
        )

    def interval_for(self, source: MarketDataSource) -> Interval:
        """交易所单独配置的周期优先于 monitor.interval"""
        return Interval(source.config.interval or self.config.monitor.interval)

    def schedule(self) -> Tuple[int, int, int]:
        monitor = self.config.monitor
        return monitor.schedule_minute, monitor.schedule_every_hours, 0

    async def scan_exchange(self, source: MarketDataSource) -> ScanReport:
        monitor = self.config.monitor
        interval = self.interval_for(source)
        report = ScanReport(exchange=source.name, interval=interval.value)
        started = time.perf_counter()

        try:
            universe, symbols = await self.load_symbols(source)
        except SourceUnavailable as e:
            logger.error(f"{source.label} universe unavailable: {e.message}")
            report.error = e.message
            return report

        report.symbols_total = len(universe)
        report.symbols_selected = len(symbols)

        fetcher = CandleWindowFetcher(source)

        async def analyze(symbol: str) -> Optional[VolumeAnomalyResult]:
            window = await fetcher.try_fetch(symbol, interval, monitor.window_size)
            return self.detector.detect(window)

        report.results = await process_in_batches(
            symbols,
            monitor.batch_size,
            monitor.inter_batch_delay,
            analyze,
            sleep=self._sleep,
        )
        report.anomalies = rank_anomalies(report.results, monitor.volume_multiplier)
        report.digest = self.formatter.format(
            report.results,
            source.label,
            symbol_suffix=source.symbol_suffix,
            now=datetime.now(timezone.utc),
            interval=interval.value,
        )
        report.duration = time.perf_counter() - started

        record_scan(source.name, report.duration, report.symbols_scanned, len(report.anomalies))
        logger.info(
            f"{source.label}: analyzed {report.symbols_scanned}/{len(symbols)} symbols "
            f"on {interval.value}, {len(report.anomalies)} abnormal ({report.duration:.1f}s)"
        )
        return report

    async def deliver(self, report: ScanReport) -> Optional[DeliveryReport]:
        """推送报告; 无异动且未开启 notify_empty 时跳过"""
        if not report.anomalies and not self.config.monitor.notify_empty:
            logger.debug(f"{report.exchange}: nothing to deliver")
            return None
        report.delivery = await self.send_text(report.digest)
        return report.delivery


async def run_volume_scanner(config: Optional[Config] = None, continuous: bool = True) -> List[ScanReport]:
    """运行成交量异动扫描器"""
    scanner = VolumeSpikeScanner(config)
    await scanner.start()

    try:
        if continuous:
            await scanner.run_continuous()
            return []
        return await scanner.scan_once()
    finally:
        await scanner.stop()


__all__ = ["ScanReport", "VolumeSpikeScanner", "filter_liquid_symbols", "run_volume_scanner"]
