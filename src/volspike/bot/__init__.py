"""Telegram delivery module."""

from .telegram_bot import TelegramBot, MessageTransport, TELEGRAM_MAX_LENGTH
from .digest import (
    DigestFormatter,
    format_error_notice,
    format_funding_alerts,
    format_number,
    format_price_swings,
    rank_anomalies,
)
from .delivery import ChunkedDelivery, DeliveryReport, SegmentStatus, split_message

__all__ = [
    "TelegramBot",
    "MessageTransport",
    "TELEGRAM_MAX_LENGTH",
    "DigestFormatter",
    "format_number",
    "format_funding_alerts",
    "format_price_swings",
    "format_error_notice",
    "rank_anomalies",
    "ChunkedDelivery",
    "DeliveryReport",
    "SegmentStatus",
    "split_message",
]
