"""
扫描器基类

成交量异动扫描器和资金费率 / 价格波动扫描器共用的流程:
- Telegram 通道的创建与关闭
- 按配置创建交易所行情源 (缺少凭证的交易所跳过)
- 交易对获取与流动性预筛选
- 分段推送与错误提示
- 持续模式的定时循环
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..bot.delivery import ChunkedDelivery, DeliveryReport
from ..bot.digest import format_error_notice
from ..bot.telegram_bot import MessageTransport, TelegramBot
from ..connection import create_source
from ..connection.base import MarketDataSource
from ..core.config import Config
from ..core.exceptions import ConfigurationMissing, ValidationError
from ..core.time import seconds_until_next_run
from ..metrics import start_metrics_server

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


def filter_liquid_symbols(
    symbols: Iterable[str],
    quote_volumes: Dict[str, float],
    min_quote_volume: float,
    ignore_list: Sequence[str] = (),
    ignore_substrings: Sequence[str] = (),
) -> List[str]:
    """
    流动性预筛选

    保留 24h 成交额 > min_quote_volume 的交易对，去掉忽略列表，按成交额降序。
    """
    ignored = set(ignore_list)
    selected = [
        s for s in symbols
        if quote_volumes.get(s, 0) > min_quote_volume
        and s not in ignored
        and not any(sub in s for sub in ignore_substrings)
    ]
    selected.sort(key=lambda s: quote_volumes.get(s, 0), reverse=True)
    return selected


class BaseScanner(ABC):
    """
    多交易所扫描器基类

    交易所之间串行执行; 单个交易所失败不影响其他交易所。
    子类实现 scan_exchange / deliver / schedule。
    """

    task_name = "scan"

    def __init__(
        self,
        config: Optional[Config] = None,
        sources: Optional[List[MarketDataSource]] = None,
        transport: Optional[MessageTransport] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.config = config or Config()
        self._sources = sources
        self._transport = transport
        self._owns_transport = False
        self._sleep = sleep
        self._running = False

    async def start(self) -> None:
        telegram = self.config.telegram
        if self._transport is None and telegram.is_configured:
            self._transport = TelegramBot(telegram, timeout=telegram.timeout, proxy=telegram.proxy)
            self._owns_transport = True
        if isinstance(self._transport, TelegramBot):
            await self._transport.start()
        self._running = True
        logger.info(f"{type(self).__name__} started (telegram={'on' if self._transport else 'off'})")

    async def stop(self) -> None:
        self._running = False
        if self._owns_transport and isinstance(self._transport, TelegramBot):
            await self._transport.stop()
        logger.info(f"{type(self).__name__} stopped")

    def _build_sources(self) -> List[MarketDataSource]:
        if self._sources is not None:
            return list(self._sources)

        sources = []
        for exc_config in self.config.enabled_exchanges():
            try:
                sources.append(create_source(exc_config))
            except ConfigurationMissing as e:
                logger.warning(f"Skipping {exc_config.name}: {e.message}")
        return sources

    async def load_symbols(self, source: MarketDataSource) -> Tuple[List[str], List[str]]:
        """
        获取活跃合约并按流动性筛选

        Returns:
            (全部活跃合约, 筛选后的交易对)

        Raises:
            SourceUnavailable: 合约列表或 24h 成交额获取失败
        """
        monitor = self.config.monitor
        universe = await source.list_active_symbols()
        quote_volumes = await source.get_24h_quote_volume()
        symbols = filter_liquid_symbols(
            universe,
            quote_volumes,
            monitor.min_quote_volume,
            monitor.ignore_list,
            monitor.ignore_substrings,
        )
        logger.info(
            f"{source.label}: {len(universe)} active contracts, "
            f"{len(symbols)} above {monitor.min_quote_volume:,.0f} quote volume"
        )
        return universe, symbols

    async def send_text(self, text: str) -> Optional[DeliveryReport]:
        """分段推送文本, 未配置通道时返回 None"""
        if self._transport is None:
            return None

        monitor = self.config.monitor
        delivery = ChunkedDelivery(
            self._transport.send,
            max_segment_length=monitor.max_segment_length,
            max_retries=monitor.max_retries,
            retry_delay=monitor.retry_delay,
            segment_delay=monitor.segment_delay,
            sleep=self._sleep,
        )
        report = await delivery.deliver(text)
        for status in report.failed:
            logger.error(status.error.message)
        return report

    async def notify_error(self, source: MarketDataSource, error: str) -> Optional[DeliveryReport]:
        """扫描失败时推送简短错误提示"""
        if not self.config.monitor.notify_errors:
            return None
        return await self.send_text(format_error_notice(source.label, self.task_name, error))

    def _error_report(self, source: MarketDataSource, error: str) -> Any:
        return self.report_cls(exchange=source.name, error=error)

    @property
    @abstractmethod
    def report_cls(self) -> type:
        """单个交易所的结果类型 (需要 exchange / error 字段)"""

    @abstractmethod
    async def scan_exchange(self, source: MarketDataSource) -> Any:
        """单个交易所完整扫描 (不推送)"""

    @abstractmethod
    async def deliver(self, report: Any) -> Any:
        """推送单个交易所的结果"""

    @abstractmethod
    def schedule(self) -> Tuple[int, int, int]:
        """(minute, every_hours, offset_hours)"""

    async def scan_once(self) -> List[Any]:
        """所有交易所执行一轮"""
        reports = []
        for source in self._build_sources():
            try:
                async with source:
                    report = await self.scan_exchange(source)
            except asyncio.CancelledError:
                raise
            except ValidationError:
                raise
            except Exception as e:
                logger.exception(f"{source.label} {self.task_name} failed: {e}")
                report = self._error_report(source, str(e))

            if report.error:
                await self.notify_error(source, report.error)
            else:
                await self.deliver(report)
            reports.append(report)
        return reports

    async def run_continuous(self, serve_metrics: bool = True) -> None:
        """持续模式: 立即执行一次, 之后按计划时间执行"""
        minute, every_hours, offset_hours = self.schedule()
        metrics_runner = None
        if serve_metrics and self.config.metrics_port > 0:
            try:
                metrics_runner = await start_metrics_server(port=self.config.metrics_port)
            except OSError as e:
                logger.warning(f"Failed to start metrics server on port {self.config.metrics_port}: {e}")

        try:
            while self._running:
                try:
                    reports = await self.scan_once()
                    logger.info(f"{type(self).__name__}: round complete for {len(reports)} exchanges")
                except asyncio.CancelledError:
                    raise
                except ValidationError:
                    raise
                except Exception as e:
                    logger.exception(f"Scan error: {e}")

                delay = seconds_until_next_run(
                    datetime.now(timezone.utc),
                    minute=minute,
                    every_hours=every_hours,
                    offset_hours=offset_hours,
                )
                logger.info(f"{type(self).__name__}: next round in {delay / 60:.1f} minutes")
                await self._sleep(delay)
        finally:
            if metrics_runner:
                await metrics_runner.cleanup()
