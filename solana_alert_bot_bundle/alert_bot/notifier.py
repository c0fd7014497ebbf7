# solana_alert_bot_bundle/alert_bot/notifier.py
"""
Alert delivery: Telegram ``sendMessage`` (Markdown) and a generic JSON webhook.

Both senders return ``True``/``False`` and never raise on transport errors; a
failed delivery is logged and the scan carries on.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from solana_alert_bot_bundle.common.feature_flags import is_enabled_telegram, is_enabled_webhook

from .models import Alert
from .utils_exec import custom_json_encoder

logger = logging.getLogger("AlertBot")

TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"

_CHECK_LABELS = (
    ("narrative", "Narrative"),
    ("attention", "Fresh Attention"),
    ("liquidity", "Clean Liquidity"),
    ("volume", "Organic Volume"),
    ("contract", "Contract Verified"),
    ("holders", "Holder Distribution"),
    ("sell_test", "Sell Test Passed"),
)


def _tick(ok: bool) -> str:
    return "✅" if ok else "❌"


def format_alert_message(alert: Alert) -> str:
    token = alert.token
    checks = alert.checks
    complete = "✅" if alert.passed_checks == alert.total_checks else "⚠️"
    top = f"{token.top_holder_percent:.1f}%" if token.top_holder_percent is not None else "n/a"

    lines: List[str] = [
        "🚨 *VALID MEME COIN SETUP DETECTED*",
        "",
        f"*Token:* {token.symbol} ({token.name or token.symbol})",
        f"*Setup Type:* {alert.setup_type}",
        f"*Validation Score:* {alert.passed_checks}/{alert.total_checks} {complete}",
        f"*Composite Score:* {alert.composite_score}/100 (tier {alert.tier_reached})",
        "",
        "*📊 Key Metrics*",
        f"💰 Liquidity: ${token.liquidity / 1000:.1f}k",
        f"📈 Volume Δ: +{token.volume_increase:.0f}%",
        f"👥 Top Holder: {top}",
        f"💵 Price: ${token.price_usd}",
        f"📊 Market Cap: ${token.market_cap / 1000:.1f}k",
        "",
        "*🔍 Validation Checks*",
    ]
    lines.extend(f"{_tick(getattr(checks, attr))} {label}" for attr, label in _CHECK_LABELS)
    lines += [
        "",
        "*🛡️ Safety Score*",
        f"RugCheck: {alert.contract_score:.0f}/100",
        "",
        "*📝 Narrative*",
        token.narrative or "-",
        "",
        "*🔗 Links*",
        f"[Trade on Jupiter](https://jup.ag/swap/SOL-{token.mint})",
        f"[DEX Screener](https://dexscreener.com/solana/{token.pair_address or token.mint})",
        "",
        "*📋 Contract*",
        f"`{token.mint}`",
    ]
    if alert.recommendations:
        lines += ["", "*🧭 Recommendations*"]
        lines.extend(alert.recommendations)
    lines += ["", "⚠️ *Always validate manually before trading*"]
    return "\n".join(lines)


def format_batch_summary(alerts: Sequence[Alert]) -> Optional[str]:
    valid = [a for a in alerts if a.is_valid]
    if not valid:
        return None
    body = "\n\n".join(
        f"{i}. *{a.token.symbol}* - {a.setup_type}\n"
        f"   💰 ${a.token.liquidity / 1000:.1f}k liquidity\n"
        f"   📈 +{a.token.volume_increase:.0f}% volume"
        for i, a in enumerate(valid, start=1)
    )
    return f"📊 *Alert Summary*\n\nFound {len(valid)} valid setup(s):\n\n{body}\n\nCheck the dashboard for full details."


class TelegramNotifier:
    def __init__(self, bot_token: Optional[str] = None, chat_id: Optional[str] = None, *,
                 session: aiohttp.ClientSession, timeout: float = 10.0):
        self.bot_token = bot_token if bot_token is not None else os.getenv("TELEGRAM_BOT_TOKEN", "")
        self.chat_id = chat_id if chat_id is not None else os.getenv("TELEGRAM_CHAT_ID", "")
        self.session = session
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    async def _send(self, text: str, *, preview: bool = False) -> bool:
        if not self.configured:
            logger.info("Telegram not configured - skipping message")
            return False
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "Markdown",
            "disable_web_page_preview": not preview,
        }
        try:
            async with self.session.post(TELEGRAM_API.format(token=self.bot_token), json=payload,
                                         timeout=self.timeout) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    logger.error("Telegram API error %s: %s", resp.status, body[:300])
                    return False
                return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Failed to send Telegram message: %s", e)
            return False

    async def send_alert(self, alert: Alert) -> bool:
        ok = await self._send(format_alert_message(alert))
        if ok:
            logger.info("Telegram alert sent for %s", alert.token.symbol)
        return ok

    async def send_batch_summary(self, alerts: Sequence[Alert]) -> bool:
        text = format_batch_summary(alerts)
        return await self._send(text) if text else False

    async def send_test_message(self) -> bool:
        text = (
            "🤖 *Solana Alert Bot*\n\n"
            "Test message - your Telegram integration is working!\n\n"
            "The bot is configured and ready to send alerts."
        )
        return await self._send(text)


class WebhookNotifier:
    def __init__(self, url: Optional[str] = None, *, session: aiohttp.ClientSession, timeout: float = 10.0):
        self.url = url or os.getenv("ALERT_WEBHOOK_URL", "")
        self.session = session
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def send_alert(self, alert: Alert) -> bool:
        if not self.configured:
            return False
        body = json.dumps(alert.as_dict(), default=custom_json_encoder)
        try:
            async with self.session.post(self.url, data=body, timeout=self.timeout,
                                         headers={"Content-Type": "application/json"}) as resp:
                if resp.status >= 300:
                    logger.warning("Webhook %s returned HTTP %s", self.url, resp.status)
                    return False
                return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Webhook delivery failed for %s: %s", alert.token.symbol, e)
            return False


def make_notifiers(cfg: Dict[str, Any], session: aiohttp.ClientSession) -> Dict[str, Any]:
    """Channel name -> notifier, only for channels enabled by config + env."""
    out: Dict[str, Any] = {}
    if is_enabled_telegram(cfg):
        out["telegram"] = TelegramNotifier(session=session)
    if is_enabled_webhook(cfg):
        out["webhook"] = WebhookNotifier((cfg.get("alerts") or {}).get("webhook_url"), session=session)
    return out


__all__ = [
    "TelegramNotifier",
    "WebhookNotifier",
    "make_notifiers",
    "format_alert_message",
    "format_batch_summary",
]
