"""
Telegram 推送通道

只负责 sendMessage 调用; 拆分与重试由 ChunkedDelivery 处理。
"""

import asyncio
import logging
from typing import Optional, Protocol

import aiohttp

from ..core.config import TelegramConfig
from ..metrics import TELEGRAM_MESSAGES_SENT

logger = logging.getLogger(__name__)

# Telegram 单条消息上限
TELEGRAM_MAX_LENGTH = 4096


class MessageTransport(Protocol):
    async def send(self, text: str) -> bool:
        ...


class TelegramBot:
    """Telegram Bot API 客户端"""

    API_BASE = "https://api.telegram.org/bot"

    def __init__(self, config: TelegramConfig, timeout: float = 10.0, proxy: str = ""):
        self.config = config
        self.timeout = timeout
        self.proxy = proxy
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def api_url(self) -> str:
        return f"{self.API_BASE}{self.config.bot_token}"

    async def start(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))

    async def stop(self) -> None:
        if self._session:
            await self._session.close()

    async def __aenter__(self) -> "TelegramBot":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    def build_payload(self, text: str, parse_mode: Optional[str] = None) -> dict:
        data = {
            "chat_id": self.config.chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            data["parse_mode"] = parse_mode
        if self.config.topic_id is not None:
            data["message_thread_id"] = self.config.topic_id
        return data

    async def send_message(self, text: str, parse_mode: Optional[str] = None) -> bool:
        """发送消息

        Args:
            text: 消息内容 (不超过 TELEGRAM_MAX_LENGTH)
            parse_mode: 解析模式 (HTML/Markdown), None 表示纯文本

        Returns:
            发送是否成功
        """
        if not self.config.is_configured:
            logger.warning("Telegram bot token or chat_id not configured")
            return False
        if self._session is None:
            await self.start()

        url = f"{self.api_url}/sendMessage"
        try:
            async with self._session.post(
                url,
                json=self.build_payload(text, parse_mode),
                proxy=self.proxy or None,
            ) as resp:
                if resp.status == 200:
                    TELEGRAM_MESSAGES_SENT.labels(result="ok").inc()
                    return True
                error = await resp.text()
                logger.error(f"Telegram send error ({resp.status}): {error}")
                TELEGRAM_MESSAGES_SENT.labels(result="error").inc()
                return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Telegram error: {e!r}")
            TELEGRAM_MESSAGES_SENT.labels(result="exception").inc()
            return False

    async def send(self, text: str) -> bool:
        """MessageTransport 接口: 纯文本发送"""
        return await self.send_message(text)
