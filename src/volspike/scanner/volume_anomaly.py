"""
成交量异动检测

基于 K线窗口计算:
- avg_volume: 前 N 根 K线平均成交量 (不含当前 K线)
- volume_ratio: 当前成交量 / 平均成交量
- price_change_pct: 当前 K线涨跌幅
- is_first_trigger: 当前 K线首次突破倍数阈值 (窗口内此前没有 K线达到过阈值)
"""

import math
from dataclasses import dataclass
from typing import Optional

from .candle_fetcher import CandleWindow


@dataclass(frozen=True)
class VolumeAnomalyResult:
    """单个交易对的成交量分析结果"""
    symbol: str
    current_volume: float
    avg_volume: float
    volume_ratio: float
    price_change_pct: float
    close_price: float
    is_first_trigger: bool

    def is_anomaly(self, multiplier: float) -> bool:
        return self.volume_ratio >= multiplier


def detect(window: Optional[CandleWindow], multiplier: float) -> Optional[VolumeAnomalyResult]:
    """
    计算单个窗口的成交量比率

    窗口缺失 (获取失败) 时返回 None。
    """
    if window is None:
        return None

    baseline = [c.volume for c in window.baseline]
    current = window.current

    avg_volume = sum(baseline) / len(baseline)
    # 基准为 0 视为最大异动
    volume_ratio = current.volume / avg_volume if avg_volume > 0 else math.inf

    if current.open > 0:
        price_change_pct = (current.close - current.open) / current.open * 100
    else:
        price_change_pct = 0.0

    trigger_level = avg_volume * multiplier
    is_first_trigger = volume_ratio >= multiplier and not any(v >= trigger_level for v in baseline)

    return VolumeAnomalyResult(
        symbol=window.symbol,
        current_volume=current.volume,
        avg_volume=avg_volume,
        volume_ratio=volume_ratio,
        price_change_pct=price_change_pct,
        close_price=current.close,
        is_first_trigger=is_first_trigger,
    )


class VolumeAnomalyDetector:
    """带固定倍数阈值的检测器"""

    def __init__(self, multiplier: float = 2.0):
        self.multiplier = multiplier

    def detect(self, window: Optional[CandleWindow]) -> Optional[VolumeAnomalyResult]:
        return detect(window, self.multiplier)

    def is_anomaly(self, result: VolumeAnomalyResult) -> bool:
        return result.is_anomaly(self.multiplier)
