"""Core configuration and exceptions."""

from .config import Config, MonitorConfig, MarketAlertConfig, ExchangeConfig, TelegramConfig, load_config
from .exceptions import (
    VolSpikeError,
    SourceUnavailable,
    IncompleteWindow,
    DeliveryFailure,
    ConfigurationMissing,
    ValidationError,
)

__all__ = [
    "Config",
    "MonitorConfig",
    "MarketAlertConfig",
    "ExchangeConfig",
    "TelegramConfig",
    "load_config",
    "VolSpikeError",
    "SourceUnavailable",
    "IncompleteWindow",
    "DeliveryFailure",
    "ConfigurationMissing",
    "ValidationError",
]
