"""
Prometheus 指标模块

提供监控指标:
- 扫描耗时 / 扫描币种数
- K线获取失败计数
- 成交量异动计数
- 资金费率 / 价格波动提醒计数
- Telegram 推送结果
"""

import logging
from prometheus_client import Counter, Gauge, Histogram, Info, generate_latest, CONTENT_TYPE_LATEST
from aiohttp import web

logger = logging.getLogger(__name__)


# ============ Scanner 指标 ============
SCAN_DURATION = Histogram(
    'volspike_scan_duration_seconds',
    'Time spent on each exchange scan',
    ['exchange'],
    buckets=(1, 5, 10, 30, 60, 120, 300)
)

SYMBOLS_SCANNED = Gauge(
    'volspike_symbols_scanned',
    'Number of symbols with a complete candle window in last scan',
    ['exchange']
)

FETCH_FAILURES = Counter(
    'volspike_fetch_failures_total',
    'Candle window fetch failures',
    ['exchange', 'reason']
)

VOLUME_SPIKES_DETECTED = Counter(
    'volspike_volume_spikes_total',
    'Total abnormal volume results detected',
    ['exchange']
)

MARKET_ALERTS = Counter(
    'volspike_market_alerts_total',
    'Funding rate and price swing alerts detected',
    ['exchange', 'kind']
)

# ============ Telegram 指标 ============
TELEGRAM_MESSAGES_SENT = Counter(
    'volspike_telegram_messages_sent_total',
    'Total Telegram messages sent',
    ['result']
)

# ============ 系统信息 ============
SYSTEM_INFO = Info(
    'volspike',
    'VolSpike monitor information'
)

SYSTEM_INFO.info({
    'version': '1.0.0',
})


def record_fetch_failure(exchange: str, reason: str) -> None:
    """记录 K线获取失败"""
    FETCH_FAILURES.labels(exchange=exchange, reason=reason).inc()


def record_alerts(exchange: str, kind: str, count: int) -> None:
    """记录资金费率 / 价格波动提醒数量"""
    if count:
        MARKET_ALERTS.labels(exchange=exchange, kind=kind).inc(count)


def record_scan(exchange: str, duration: float, symbols_scanned: int, spikes: int) -> None:
    """记录一次交易所扫描"""
    SCAN_DURATION.labels(exchange=exchange).observe(duration)
    SYMBOLS_SCANNED.labels(exchange=exchange).set(symbols_scanned)
    if spikes:
        VOLUME_SPIKES_DETECTED.labels(exchange=exchange).inc(spikes)


# ============ HTTP 端点 ============

async def metrics_handler(request: web.Request) -> web.Response:
    """Prometheus metrics endpoint"""
    return web.Response(
        body=generate_latest(),
        headers={"Content-Type": CONTENT_TYPE_LATEST},
    )


async def health_handler(request: web.Request) -> web.Response:
    """Health check endpoint"""
    return web.Response(text="OK", status=200)


def create_metrics_app() -> web.Application:
    """创建 metrics HTTP 应用"""
    app = web.Application()
    app.router.add_get('/metrics', metrics_handler)
    app.router.add_get('/health', health_handler)
    return app


async def start_metrics_server(host: str = "0.0.0.0", port: int = 8000) -> web.AppRunner:
    """启动 metrics 服务器"""
    app = create_metrics_app()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"Metrics server running at http://{host}:{port}/metrics")
    return runner
