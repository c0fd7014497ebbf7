# tests/conftest.py
"""
Global pytest configuration and fixtures
"""
import json
import random
from typing import Any, Dict
from unittest.mock import AsyncMock, Mock

import pytest

from solana_alert_bot_bundle.alert_bot.models import (
    Alert,
    BotSettings,
    BundleAnalysis,
    ContractReport,
    FreshnessResult,
    HolderDistribution,
    LiquidityStability,
    MarketContext,
    QuickSecurity,
    SellabilityResult,
    SocialSignals,
    TokenCandidate,
    TxPatternResult,
    ValidationChecks,
    WhaleActivity,
)
from solana_alert_bot_bundle.alert_bot.narrative import SocialScorer
from solana_alert_bot_bundle.alert_bot.tiered_validator import ValidatorDeps

MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"

STRONG_NARRATIVE = (
    "Backed by an experienced team with a completed audit and active Telegram/Twitter/website"
)


class MemoryStore:
    """In-memory stand-in for the SQLite storage collaborator."""

    def __init__(self):
        self.state: Dict[str, Any] = {}
        self.alerts: Dict[str, Any] = {}
        self.sent: Dict[tuple, bool] = {}

    async def get_state(self, key):
        return self.state.get(key)

    async def set_state(self, key, value):
        self.state[key] = value

    async def upsert_alert(self, alert):
        self.alerts[alert.token.mint] = alert

    async def was_recently_sent(self, mint, channel, within_hours=24):
        return self.sent.get((mint, channel), False)

    async def mark_sent(self, mint, channel):
        self.sent[(mint, channel)] = True


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def settings():
    """Default bot settings (min liquidity 50k, max top holder 10%)."""
    return BotSettings()


@pytest.fixture
def token():
    """Healthy candidate used by the end-to-end validation scenarios."""
    return TokenCandidate(
        mint=MINT,
        symbol="GOOD",
        name="Good Token",
        narrative=STRONG_NARRATIVE,
        liquidity=60_000,
        volume_increase=250,
        price_usd="0.0042",
        market_cap=450_000,
        pair_address="PairAddr1111111111111111111111111111111111",
    )


@pytest.fixture
def mock_deps():
    """ValidatorDeps where every adapter is an AsyncMock returning a clean result."""
    rugcheck = AsyncMock()
    rugcheck.validate_contract.return_value = ContractReport(verified=True, risks=[], score=90)

    jupiter = AsyncMock()
    jupiter.test_sellability.return_value = SellabilityResult(can_sell=True, reason="Token is sellable", slippage=0.3)

    holders = AsyncMock()
    holders.get_holder_distribution.return_value = HolderDistribution(top_holder_percent=5.0, holder_count=420)
    holders.get_whale_activity.return_value = WhaleActivity()

    security = AsyncMock()
    security.check.return_value = QuickSecurity(mint_authority=False, freeze_authority=False, checked=True)

    market = AsyncMock()
    market.check_freshness.return_value = FreshnessResult(is_fresh=True, age_minutes=30)
    market.check_market_context.return_value = MarketContext()
    market.analyze_tx_patterns.return_value = TxPatternResult()
    market.check_liquidity_stability.return_value = LiquidityStability()

    bundles = AsyncMock()
    bundles.detect.return_value = BundleAnalysis()

    devs = AsyncMock()
    devs.get_token_creator.return_value = None

    return ValidatorDeps(
        rugcheck=rugcheck,
        jupiter=jupiter,
        holders=holders,
        security=security,
        market=market,
        bundles=bundles,
        devs=devs,
        ai=None,
        pump=None,
        social=SocialScorer(rng=random.Random(7)),
    )


@pytest.fixture
def tier23_mocks(mock_deps):
    """Every adapter method that must stay untouched when tier 1 rejects."""
    return [
        mock_deps.rugcheck.validate_contract,
        mock_deps.jupiter.test_sellability,
        mock_deps.holders.get_holder_distribution,
        mock_deps.holders.get_whale_activity,
        mock_deps.market.analyze_tx_patterns,
        mock_deps.market.check_liquidity_stability,
        mock_deps.bundles.detect,
        mock_deps.devs.get_token_creator,
        mock_deps.devs.get_developer_credit_score,
    ]


class FakeResponse:
    """Minimal aiohttp response used as an async context manager."""

    def __init__(self, status: int = 200, body: str = "", headers=None):
        self.status = status
        self._body = body
        self.headers = headers or {}
        self.request_info = Mock(real_url="https://example.invalid")
        self.history = ()

    async def text(self):
        return self._body

    async def json(self, content_type=None):
        return json.loads(self._body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


@pytest.fixture
def fake_session():
    session = Mock()
    session.post = Mock(return_value=FakeResponse(200, "{}"))
    session.get = Mock(return_value=FakeResponse(200, "{}"))
    session.request = Mock(return_value=FakeResponse(200, "{}"))
    return session


def make_alert(mint=MINT, score=72, alert_id="alert-1", **overrides) -> Alert:
    """A valid tier 3 alert with four of seven checks passed."""
    fields = dict(
        id=alert_id,
        timestamp="2023-11-14T22:13:20Z",
        token=TokenCandidate(mint=mint, symbol="GOOD", name="Good Token", liquidity=60_000,
                             volume_increase=250, price_usd="0.0042", market_cap=450_000),
        checks=ValidationChecks(narrative=True, liquidity=True, contract=True, sell_test=True),
        is_valid=True,
        passed_checks=4,
        total_checks=7,
        setup_type="Pullback Entry",
        contract_score=90,
        composite_score=score,
        social_signals=SocialSignals(),
        whale_activity=WhaleActivity(),
        recommendations=["🟢 BUY - High confidence setup"],
        tier_reached=3,
    )
    fields.update(overrides)
    return Alert(**fields)
