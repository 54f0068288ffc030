"""
成交量异动报告格式化

输出纯文本 (无 parse_mode)，可直接交给任意文本通道。
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, List, Optional

from ..core.time import format_dt

if TYPE_CHECKING:
    from ..scanner.funding_scanner import FundingRateAlert, PriceSwingAlert
    from ..scanner.volume_anomaly import VolumeAnomalyResult

FIRST_TRIGGER_MARK = "🆕"
HIGH_RATIO_MARK = "🔥"
BLANK_MARK = "  "
DIVIDER = "-" * 58
NO_ANOMALY_LINE = "No abnormal volume detected"
FUNDING_MARK = "💰"
SWING_MARK = "📈"
ERROR_MARK = "❌"


def format_number(num: float, decimals: int = 2) -> str:
    """1234567 -> 1.23M"""
    if math.isinf(num):
        return "inf"
    if num >= 1_000_000_000:
        return f"{num / 1_000_000_000:.{decimals}f}B"
    elif num >= 1_000_000:
        return f"{num / 1_000_000:.{decimals}f}M"
    elif num >= 1_000:
        return f"{num / 1_000:.{decimals}f}K"
    return f"{num:.{decimals}f}"


def strip_suffix(symbol: str, suffix: str) -> str:
    if suffix and symbol.endswith(suffix):
        return symbol[: -len(suffix)]
    return symbol


def rank_anomalies(results: Iterable[VolumeAnomalyResult], multiplier: float) -> List[VolumeAnomalyResult]:
    """筛选 ratio >= multiplier 并按 ratio 降序 (sorted 稳定, 同值保持原顺序)"""
    return sorted(
        (r for r in results if r.volume_ratio >= multiplier),
        key=lambda r: r.volume_ratio,
        reverse=True,
    )


class DigestFormatter:
    """
    异动报告

    每行: [首次触发标记][高倍数标记] 倍数 涨跌幅 当前成交量 平均成交量 收盘价 币种
    """

    def __init__(self, multiplier: float = 2.0, high_ratio_threshold: float = 5.0, interval: str = "1d"):
        self.multiplier = multiplier
        self.high_ratio_threshold = high_ratio_threshold
        self.interval = interval

    def format_row(self, result: VolumeAnomalyResult, symbol_suffix: str = "") -> str:
        first = FIRST_TRIGGER_MARK if result.is_first_trigger else BLANK_MARK
        high = HIGH_RATIO_MARK if result.volume_ratio >= self.high_ratio_threshold else BLANK_MARK
        ratio = f"{result.volume_ratio:.2f}x"
        change = f"{result.price_change_pct:+.2f}%"
        volume = format_number(result.current_volume)
        avg = format_number(result.avg_volume)
        close = f"{result.close_price:.4f}"
        name = strip_suffix(result.symbol, symbol_suffix)
        return f"{first}{high} {ratio:>8} {change:>8} {volume:>9} {avg:>9} {close:>12}  {name}"

    def format(
        self,
        results: List[VolumeAnomalyResult],
        exchange_label: str,
        symbol_suffix: str = "",
        now: Optional[datetime] = None,
        interval: Optional[str] = None,
    ) -> str:
        anomalies = rank_anomalies(results, self.multiplier)
        now = now or datetime.now(timezone.utc)
        interval = interval or self.interval

        lines = [
            f"📊 {exchange_label} Volume Spike ({interval}, ≥{self.multiplier:g}x avg)",
            f"Analyzed {len(results)} symbols | {len(anomalies)} abnormal",
        ]

        if anomalies:
            lines.append(f"{BLANK_MARK}{BLANK_MARK} {'Ratio':>8} {'Change':>8} {'Volume':>9} {'Avg':>9} {'Close':>12}  Symbol")
            lines.append(DIVIDER)
            lines.extend(self.format_row(r, symbol_suffix) for r in anomalies)
            lines.append(DIVIDER)
            lines.append(
                f"{FIRST_TRIGGER_MARK} first trigger  {HIGH_RATIO_MARK} ≥{self.high_ratio_threshold:g}x"
            )
        else:
            lines.append(NO_ANOMALY_LINE)

        lines.append(f"Completed at: {format_dt(now)}")
        return "\n".join(lines)


def format_funding_alerts(
    alerts: List[FundingRateAlert],
    exchange_label: str,
    threshold_pct: float,
    symbol_suffix: str = "",
) -> str:
    """资金费率异常提醒, 按 |费率| 降序"""
    ranked = sorted(alerts, key=lambda a: abs(a.funding_rate_pct), reverse=True)
    lines = [f"{FUNDING_MARK} {exchange_label} Funding Rate Alert >{threshold_pct:g}% <-{threshold_pct:g}%", ""]
    for alert in ranked:
        name = strip_suffix(alert.symbol, symbol_suffix)
        line = f"{FUNDING_MARK} {name} : {alert.funding_rate_pct:.2f}%"
        if alert.next_funding_time is not None:
            line += f" (next {format_dt(alert.next_funding_time, fmt='%H:%M %Z')})"
        lines.append(line)
    return "\n".join(lines)


def format_price_swings(
    alerts: List[PriceSwingAlert],
    exchange_label: str,
    threshold_pct: float,
    interval: str,
    symbol_suffix: str = "",
) -> str:
    """价格剧烈波动提醒, 按 |涨跌幅| 降序"""
    ranked = sorted(alerts, key=lambda a: abs(a.change_pct), reverse=True)
    lines = [f"{SWING_MARK} {exchange_label} Price Swing Alert >{threshold_pct:g}%", ""]
    for alert in ranked:
        name = strip_suffix(alert.symbol, symbol_suffix)
        lines.append(
            f"{SWING_MARK} {name} {interval}: {alert.change_pct:+.2f}% "
            f"(open: {alert.open_price:.4f}, now: {alert.close_price:.4f})"
        )
    return "\n".join(lines)


def format_error_notice(exchange_label: str, task: str, error: str) -> str:
    return f"{ERROR_MARK} {exchange_label} {task} failed: {error}"
