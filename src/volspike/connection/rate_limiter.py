"""
Binance 权重制速率限制器

- 2400 权重/分钟 (USDT-M Futures)
- 不同端点权重不同 (K线权重随 limit 变化)
- 超限返回 HTTP 429/418 + Retry-After
"""

import asyncio
import time
from collections import deque
from typing import Deque, Dict, Optional, Tuple


class BinanceRateLimiter:
    """滑动窗口权重限制器，预留 10% 缓冲"""

    ENDPOINT_WEIGHTS = {
        "/fapi/v1/exchangeInfo": 1,
        "/fapi/v1/ticker/24hr": 40,  # 不带 symbol 参数
        "/fapi/v1/klines": 2,  # 默认 limit=500
        "/fapi/v1/premiumIndex": 10,  # 不带 symbol 参数
    }

    def __init__(self, max_weight: int = 2400, window_seconds: float = 60, buffer: float = 0.1):
        self.max_weight = max_weight
        self.window_seconds = window_seconds
        self.effective_limit = int(max_weight * (1 - buffer))

        self._requests: Deque[Tuple[float, int]] = deque()
        self._current_weight = 0
        self._blocked_until = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self, endpoint: str, params: Optional[Dict] = None) -> None:
        """等待直到有足够权重额度"""
        weight = self.get_weight(endpoint, params)

        async with self._lock:
            now = time.monotonic()
            if now < self._blocked_until:
                await asyncio.sleep(self._blocked_until - now)

            self._cleanup(time.monotonic())

            while self._requests and self._current_weight + weight > self.effective_limit:
                oldest = self._requests[0][0]
                await asyncio.sleep(max(oldest + self.window_seconds - time.monotonic(), 0) + 0.1)
                self._cleanup(time.monotonic())

            self._requests.append((time.monotonic(), weight))
            self._current_weight += weight

    def handle_429(self, retry_after: float) -> None:
        """处理 429/418 响应"""
        self._blocked_until = max(self._blocked_until, time.monotonic() + retry_after)

    def _cleanup(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._requests and self._requests[0][0] < cutoff:
            _, weight = self._requests.popleft()
            self._current_weight -= weight

    def get_weight(self, endpoint: str, params: Optional[Dict] = None) -> int:
        """获取端点权重"""
        if endpoint == "/fapi/v1/klines" and params:
            limit = int(params.get("limit", 500))
            if limit < 100:
                return 1
            elif limit < 500:
                return 2
            elif limit <= 1000:
                return 5
            return 10
        if endpoint in ("/fapi/v1/ticker/24hr", "/fapi/v1/premiumIndex") and params and params.get("symbol"):
            return 1
        return self.ENDPOINT_WEIGHTS.get(endpoint, 1)

    @property
    def current_usage(self) -> int:
        self._cleanup(time.monotonic())
        return self._current_weight
