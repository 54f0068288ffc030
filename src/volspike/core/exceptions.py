"""
VolSpike 自定义异常

提供层次化的异常类，用于区分可恢复的单币种故障和致命的配置错误。
"""

from typing import Optional, Sequence


class VolSpikeError(Exception):
    """VolSpike 基础异常类"""

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(self.message)


class SourceUnavailable(VolSpikeError):
    """行情源不可用 (网络错误、超时、HTTP 错误、数据格式错误)"""

    def __init__(
        self,
        message: str,
        exchange: str = "",
        symbol: str = "",
        status: Optional[int] = None,
        retry_after: float = 0,
    ):
        super().__init__(message, code="SOURCE_UNAVAILABLE")
        self.exchange = exchange
        self.symbol = symbol
        self.status = status
        self.retry_after = retry_after


class IncompleteWindow(VolSpikeError):
    """K线数量不足 (新上线币种、历史稀疏)"""

    def __init__(self, symbol: str, expected: int, received: int):
        super().__init__(
            f"{symbol}: expected {expected} candles, got {received}",
            code="INCOMPLETE_WINDOW",
        )
        self.symbol = symbol
        self.expected = expected
        self.received = received


class DeliveryFailure(VolSpikeError):
    """消息分段在重试后仍发送失败"""

    def __init__(self, message: str, segment_indices: Sequence[int] = ()):
        super().__init__(message, code="DELIVERY_FAILURE")
        self.segment_indices = list(segment_indices)


class ConfigurationMissing(VolSpikeError):
    """缺少必要配置 (如交易所 API 凭证)，该交易所本轮被跳过"""

    def __init__(self, message: str, exchange: str = "", missing: Sequence[str] = ()):
        super().__init__(message, code="CONFIGURATION_MISSING")
        self.exchange = exchange
        self.missing = list(missing)


class ValidationError(VolSpikeError):
    """参数验证错误"""

    def __init__(self, message: str, field: str = ""):
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field
