"""
测试 Telegram 推送与指标端点
"""

import pytest

from volspike.bot.telegram_bot import TelegramBot
from volspike.core.config import TelegramConfig
from volspike.metrics import TELEGRAM_MESSAGES_SENT, health_handler, metrics_handler, record_alerts


class TestTelegramBot:
    """测试消息构造"""

    def test_payload_is_plain_text(self):
        bot = TelegramBot(TelegramConfig(bot_token="123:abc", chat_id="-100"))

        payload = bot.build_payload("hello")

        assert payload == {"chat_id": "-100", "text": "hello", "disable_web_page_preview": True}
        assert bot.api_url == "https://api.telegram.org/bot123:abc"

    def test_payload_with_topic(self):
        bot = TelegramBot(TelegramConfig(bot_token="t", chat_id="c", topic_id=42))

        payload = bot.build_payload("hello", parse_mode="HTML")

        assert payload["message_thread_id"] == 42
        assert payload["parse_mode"] == "HTML"

    @pytest.mark.asyncio
    async def test_unconfigured_bot_does_not_send(self):
        bot = TelegramBot(TelegramConfig(enabled=True))

        assert await bot.send("hello") is False
        assert bot._session is None


class TestMetricsEndpoints:
    """测试 /metrics 与 /health"""

    @pytest.mark.asyncio
    async def test_health(self):
        resp = await health_handler(None)
        assert resp.status == 200
        assert resp.text == "OK"

    @pytest.mark.asyncio
    async def test_metrics_exposes_counters(self):
        TELEGRAM_MESSAGES_SENT.labels(result="ok").inc(0)

        resp = await metrics_handler(None)

        assert b"volspike_telegram_messages_sent_total" in resp.body

    @pytest.mark.asyncio
    async def test_market_alert_counter(self):
        record_alerts("counter-check", "funding", 2)
        record_alerts("counter-check", "price_swing", 0)

        resp = await metrics_handler(None)

        assert b'volspike_market_alerts_total{exchange="counter-check",kind="funding"} 2.0' in resp.body
        assert b'exchange="counter-check",kind="price_swing"' not in resp.body
