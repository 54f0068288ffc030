"""
VolSpike Monitor

永续合约成交量异动监控: 多交易所批量拉取 K线，检测成交量突增并推送 Telegram 报告。
"""

__version__ = "1.0.0"
__author__ = "VolSpike Team"

# Lazy imports to avoid circular dependencies
def __getattr__(name):
    if name == "connection":
        from . import connection
        return connection
    elif name == "scanner":
        from . import scanner
        return scanner
    elif name == "bot":
        from . import bot
        return bot
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "__version__",
    "connection",
    "scanner",
    "bot",
]
