# tests/test_notifier.py
"""
Unit tests for Telegram and webhook delivery
"""
import json
from unittest.mock import Mock

import aiohttp
import pytest

from solana_alert_bot_bundle.alert_bot.notifier import (
    TELEGRAM_API,
    TelegramNotifier,
    WebhookNotifier,
    format_alert_message,
    format_batch_summary,
    make_notifiers,
)

from conftest import MINT, FakeResponse, make_alert


class TestFormatting:
    """Markdown message bodies"""

    def test_alert_message(self):
        text = format_alert_message(make_alert())

        assert text.startswith("🚨 *VALID MEME COIN SETUP DETECTED*")
        assert "*Validation Score:* 4/7 ⚠️" in text
        assert "💰 Liquidity: $60.0k" in text
        assert "👥 Top Holder: n/a" in text
        assert "✅ Sell Test Passed" in text
        assert "❌ Organic Volume" in text
        assert f"https://jup.ag/swap/SOL-{MINT}" in text
        assert "🟢 BUY - High confidence setup" in text

    def test_pair_address_preferred_for_chart_link(self):
        alert = make_alert()
        alert.token.pair_address = "PairXYZ"
        assert "https://dexscreener.com/solana/PairXYZ" in format_alert_message(alert)

    def test_batch_summary_lists_valid_only(self):
        alerts = [make_alert(mint="A"), make_alert(mint="B", is_valid=False)]
        text = format_batch_summary(alerts)
        assert "Found 1 valid setup(s)" in text
        assert text.count("*GOOD*") == 1

    def test_batch_summary_empty(self):
        assert format_batch_summary([make_alert(is_valid=False)]) is None


class TestTelegramNotifier:
    """sendMessage over a fake session"""

    @pytest.mark.asyncio
    async def test_send_alert(self, fake_session):
        notifier = TelegramNotifier("123:abc", "42", session=fake_session)

        assert await notifier.send_alert(make_alert()) is True

        url = fake_session.post.call_args.args[0]
        payload = fake_session.post.call_args.kwargs["json"]
        assert url == TELEGRAM_API.format(token="123:abc")
        assert payload["chat_id"] == "42"
        assert payload["parse_mode"] == "Markdown"
        assert payload["disable_web_page_preview"] is True

    @pytest.mark.asyncio
    async def test_api_error_returns_false(self, fake_session):
        fake_session.post.return_value = FakeResponse(400, '{"description": "chat not found"}')
        notifier = TelegramNotifier("123:abc", "42", session=fake_session)

        assert await notifier.send_test_message() is False

    @pytest.mark.asyncio
    async def test_transport_error_returns_false(self, fake_session):
        fake_session.post.side_effect = aiohttp.ClientConnectionError("reset")
        notifier = TelegramNotifier("123:abc", "42", session=fake_session)

        assert await notifier.send_alert(make_alert()) is False

    @pytest.mark.asyncio
    async def test_unconfigured_skips(self, fake_session):
        notifier = TelegramNotifier("", "", session=fake_session)

        assert await notifier.send_alert(make_alert()) is False
        fake_session.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_batch_sends_nothing(self, fake_session):
        notifier = TelegramNotifier("123:abc", "42", session=fake_session)

        assert await notifier.send_batch_summary([]) is False
        fake_session.post.assert_not_called()


class TestWebhookNotifier:
    """JSON webhook"""

    @pytest.mark.asyncio
    async def test_posts_alert_json(self, fake_session):
        notifier = WebhookNotifier("https://hooks.example/alerts", session=fake_session)

        assert await notifier.send_alert(make_alert()) is True

        body = json.loads(fake_session.post.call_args.kwargs["data"])
        assert body["token"]["mint"] == MINT
        assert body["composite_score"] == 72

    @pytest.mark.asyncio
    async def test_server_error(self, fake_session):
        fake_session.post.return_value = FakeResponse(502, "bad gateway")
        notifier = WebhookNotifier("https://hooks.example/alerts", session=fake_session)

        assert await notifier.send_alert(make_alert()) is False


class TestMakeNotifiers:
    """Channel selection from config and env"""

    def test_only_enabled_channels(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
        monkeypatch.setenv("TELEGRAM_CHAT_ID", "42")
        monkeypatch.delenv("FORCE_DISABLE_TELEGRAM", raising=False)
        cfg = {"alerts": {"telegram_enabled": True, "webhook_enabled": False, "webhook_url": "https://hooks.example"}}

        out = make_notifiers(cfg, Mock())

        assert list(out) == ["telegram"]
