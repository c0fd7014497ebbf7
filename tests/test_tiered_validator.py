# tests/test_tiered_validator.py
"""
Unit tests for TieredValidator and the end-to-end scoring scenarios
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from solana_alert_bot_bundle.alert_bot.models import (
    AIAnalysis,
    BundleAnalysis,
    ContractReport,
    DevScore,
    FreshnessResult,
    HolderDistribution,
    MarketContext,
    PumpAnalysis,
    QuickSecurity,
    SellabilityResult,
)
from solana_alert_bot_bundle.alert_bot.scoring_engine import BUY, score_validation
from solana_alert_bot_bundle.alert_bot.tiered_validator import TieredValidator


class TestEndToEndScenarios:
    """Validation plus composite scoring with every adapter mocked"""

    @pytest.mark.asyncio
    async def test_scenario_a_healthy_token_reaches_tier_three(self, mock_deps, token, settings):
        """Clean adapters and a strong narrative give a valid BUY"""
        result = await TieredValidator(mock_deps).validate(token, settings)
        composite = score_validation(result)

        assert result.tier_reached == 3
        assert result.checks.contract is True
        assert result.checks.liquidity is True
        assert result.checks.passed_count() == 7
        assert result.risks == []
        assert composite.score > 70
        assert composite.is_valid is True
        assert composite.recommendations[0] == BUY

    @pytest.mark.asyncio
    async def test_scenario_b_freeze_authority_stops_at_tier_one(self, mock_deps, tier23_mocks, token, settings):
        """A freeze authority rejects in tier 1 and no deeper adapter runs"""
        mock_deps.security.check.return_value = QuickSecurity(freeze_authority=True, checked=True)

        result = await TieredValidator(mock_deps).validate(token, settings)
        composite = score_validation(result)

        assert result.tier_reached == 1
        assert result.checks.contract is False
        assert result.contract_score == 0
        assert composite.score == 0
        assert composite.is_valid is False
        assert "Freeze authority enabled" in result.risks
        for m in tier23_mocks:
            m.assert_not_called()

    @pytest.mark.asyncio
    async def test_scenario_c_bundled_launch_stops_at_tier_two(self, mock_deps, token, settings):
        """A bundled launch fails the tier 2 gate even though contract and sell pass"""
        mock_deps.bundles.detect.return_value = BundleAnalysis(
            is_bundled=True, bundle_percentage=15.0, sybil_count=7,
            details=["Sybil pattern detected: 7 repeated wallet interactions in first 20 txs"],
        )

        result = await TieredValidator(mock_deps).validate(token, settings)
        composite = score_validation(result)

        assert result.tier_reached == 2
        assert result.checks.sell_test is True
        assert composite.is_valid is False
        assert "Bundled launch detected (7 sybil wallets)" in result.risks
        mock_deps.devs.get_token_creator.assert_not_called()
        mock_deps.holders.get_whale_activity.assert_not_called()

    @pytest.mark.asyncio
    async def test_idempotent_under_identical_mocks(self, mock_deps, token, settings):
        """Re-validating with the same responses yields the same checks and score"""
        validator = TieredValidator(mock_deps)
        first = await validator.validate(token, settings)
        second = await validator.validate(token, settings)

        assert first.checks == second.checks
        assert score_validation(first).score == score_validation(second).score


class TestTierOne:
    """Tier 1 gate behavior"""

    @pytest.mark.asyncio
    async def test_mint_authority_keeps_tier_two_untouched(self, mock_deps, tier23_mocks, token, settings):
        mock_deps.security.check.return_value = QuickSecurity(mint_authority=True, checked=True)

        result = await TieredValidator(mock_deps).validate(token, settings)

        assert result.tier_reached == 1
        assert result.risks[0] == "Mint authority enabled"
        for m in tier23_mocks:
            assert m.call_count == 0

    @pytest.mark.asyncio
    async def test_stale_token_gets_neutral_contract_score(self, mock_deps, token, settings):
        """Only freshness failed, so the contract score stays at 50"""
        mock_deps.market.check_freshness.return_value = FreshnessResult(is_fresh=False, age_minutes=300)

        result = await TieredValidator(mock_deps).validate(token, settings)

        assert result.tier_reached == 1
        assert result.contract_score == 50
        assert result.risks == ["Token is 300 minutes old (>120min)"]

    @pytest.mark.asyncio
    async def test_unfavorable_market_is_reported(self, mock_deps, token, settings):
        mock_deps.market.check_market_context.return_value = MarketContext(
            is_risk_on=False, sol_trend="bearish", should_trade=False
        )

        result = await TieredValidator(mock_deps).validate(token, settings)

        assert result.tier_reached == 1
        assert "Unfavorable market (SOL bearish)" in result.risks
        assert result.enhancements.market_context.is_risk_on is False

    @pytest.mark.asyncio
    async def test_slow_checks_time_out_open(self, mock_deps, token, settings):
        """A tier 1 check that exceeds the timeout is treated as passing"""
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)
            return FreshnessResult(is_fresh=False, age_minutes=999)

        mock_deps.market.check_freshness = AsyncMock(side_effect=slow)
        mock_deps.tier1_timeout = 0.01

        result = await TieredValidator(mock_deps).validate(token, settings)

        assert result.tier_reached == 3
        assert result.enhancements.freshness.is_fresh is True


class TestTierTwo:
    """Tier 2 gate and risk ordering"""

    @pytest.mark.asyncio
    async def test_unsellable_token_is_rejected(self, mock_deps, token, settings):
        mock_deps.jupiter.test_sellability.return_value = SellabilityResult(
            can_sell=False, reason="No liquidity route found - potential honeypot"
        )

        result = await TieredValidator(mock_deps).validate(token, settings)

        assert result.tier_reached == 2
        assert result.checks.sell_test is False
        assert "No liquidity route found - potential honeypot" in result.risks

    @pytest.mark.asyncio
    async def test_concentrated_holders_are_rejected(self, mock_deps, token, settings):
        mock_deps.holders.get_holder_distribution.return_value = HolderDistribution(
            top_holder_percent=42.0, holder_count=12
        )

        result = await TieredValidator(mock_deps).validate(token, settings)

        assert result.tier_reached == 2
        assert result.checks.holders is False
        assert result.token.top_holder_percent == 42.0
        assert "Top holder owns 42.0% of supply" in result.risks

    @pytest.mark.asyncio
    async def test_risk_order(self, mock_deps, token, settings):
        """Contract risks come before sellability, holders and bundle strings"""
        mock_deps.rugcheck.validate_contract.return_value = ContractReport(
            verified=False, risks=["Mutable metadata"], score=80
        )
        mock_deps.jupiter.test_sellability.return_value = SellabilityResult(can_sell=False, reason="Price impact too high")
        mock_deps.holders.get_holder_distribution.return_value = HolderDistribution(15.0, 30)
        mock_deps.bundles.detect.return_value = BundleAnalysis(is_bundled=True, sybil_count=6, details=["x"])

        result = await TieredValidator(mock_deps).validate(token, settings)

        assert result.risks == [
            "Mutable metadata",
            "Price impact too high",
            "Top holder owns 15.0% of supply",
            "x",
            "Bundled launch detected (6 sybil wallets)",
        ]
        assert result.contract_score == 80


class TestTierThree:
    """Tier 3 enrichment"""

    @pytest.mark.asyncio
    async def test_dev_score_and_ai_are_attached(self, mock_deps, token, settings):
        mock_deps.devs.get_token_creator.return_value = "Creator111"
        mock_deps.devs.get_developer_credit_score.return_value = DevScore(score=75, reputation="High", previous_tokens=6)
        mock_deps.ai = AsyncMock()
        mock_deps.ai.analyze.return_value = AIAnalysis(
            narrative_score=83, hype_score=71, sentiment="bullish", summary="Solid.", potential="moonshot"
        )

        result = await TieredValidator(mock_deps).validate(token, settings)

        assert result.enhancements.dev_score.reputation == "High"
        assert result.enhancements.ai_analysis.narrative_score == 83
        mock_deps.devs.get_developer_credit_score.assert_awaited_once_with("Creator111")
        mock_deps.ai.analyze.assert_awaited_once()
        assert mock_deps.ai.analyze.await_args.args[1] == "balanced"

    @pytest.mark.asyncio
    async def test_bonding_curve_progress_enriches_copy(self, mock_deps, token, settings):
        token.narrative = "Official community launch on pump.fun backed by the team"
        mock_deps.pump = AsyncMock()
        mock_deps.pump.analyze.return_value = PumpAnalysis(bonding_progress=42.5)

        result = await TieredValidator(mock_deps).validate(token, settings)

        assert result.token.narrative.endswith(" | Pump.fun Bonding: 42.5%")
        assert "Bonding" not in token.narrative
        mock_deps.pump.analyze.assert_awaited_once_with(token.mint)

    @pytest.mark.asyncio
    async def test_pump_skipped_for_regular_pairs(self, mock_deps, token, settings):
        mock_deps.pump = AsyncMock()

        await TieredValidator(mock_deps).validate(token, settings)

        mock_deps.pump.analyze.assert_not_called()
