# solana_alert_bot_bundle/alert_bot/tiered_validator.py
"""
Three-tier validation funnel for a single token.

Tier 1  freshness + market context + quick mint/freeze authority check
Tier 2  contract report, sell simulation, holders, tx patterns, bundles, liquidity drain
Tier 3  developer history, AI narrative, whales, pump.fun curve (no gate)

Every tier fans out with ``asyncio.gather`` and waits for all of its checks
before gating. Adapters return their own safe defaults on failure, so anything
raised out of ``validate`` is a programming error and is left to propagate.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, List, Optional, TypeVar

from .models import (
    BotSettings,
    ContractReport,
    DevScore,
    EnhancementBundle,
    FreshnessResult,
    MarketContext,
    QuickSecurity,
    SellabilityResult,
    TokenCandidate,
    ValidationChecks,
    ValidationResult,
    WhaleActivity,
)
from .narrative import SocialScorer, score_narrative
from .pump_tracker import enhance_with_pump_data, looks_like_bonding_curve

logger = logging.getLogger("AlertBot")

T = TypeVar("T")

MAX_TOKEN_AGE_MINUTES = 120
ORGANIC_VOLUME_MIN = 150
ORGANIC_VOLUME_MAX = 10_000


@dataclass
class ValidatorDeps:
    """Collaborators built once per process (see ``solana_alert_bot.build_deps``)."""
    rugcheck: Any          # validate_contract(mint) -> ContractReport
    jupiter: Any           # test_sellability(mint) -> SellabilityResult
    holders: Any           # get_holder_distribution / get_whale_activity
    security: Any          # check(mint) -> QuickSecurity
    market: Any            # MarketChecks
    bundles: Any           # detect(mint) -> BundleAnalysis
    devs: Any              # get_token_creator / get_developer_credit_score
    ai: Any = None         # analyze(token, mode) -> Optional[AIAnalysis]
    pump: Any = None       # analyze(mint) -> Optional[PumpAnalysis]
    social: Optional[SocialScorer] = None
    tier1_timeout: float = 4.0


async def _bounded(aw: Awaitable[T], timeout: float, default: T, label: str, mint: str) -> T:
    try:
        return await asyncio.wait_for(aw, timeout=timeout)
    except asyncio.TimeoutError:
        logger.debug("%s timed out after %.1fs for %s", label, timeout, mint)
        return default


def build_checks(token: TokenCandidate, settings: BotSettings, narrative_score: float,
                 contract: Optional[ContractReport], sell: Optional[SellabilityResult],
                 *, security_gate: bool = True) -> ValidationChecks:
    """``security_gate`` is False when the tier-2 gate rejected the token; the contract check then fails."""
    top = token.top_holder_percent
    return ValidationChecks(
        narrative=narrative_score > 40,
        attention=token.volume_increase > settings.min_volume_increase,
        liquidity=token.liquidity > settings.min_liquidity,
        volume=ORGANIC_VOLUME_MIN < token.volume_increase < ORGANIC_VOLUME_MAX,
        contract=bool(security_gate and contract and contract.verified and not contract.risks),
        holders=top is not None and top < settings.max_top_holder_percent,
        sell_test=bool(sell and sell.can_sell),
    )


class TieredValidator:
    def __init__(self, deps: ValidatorDeps):
        self.deps = deps
        self.social = deps.social or SocialScorer()

    # ---------------- tier 1 ----------------
    async def _tier1(self, mint: str):
        d = self.deps
        t = float(d.tier1_timeout)
        return await asyncio.gather(
            _bounded(d.market.check_freshness(mint), t, FreshnessResult(), "freshness", mint),
            _bounded(d.market.check_market_context(), t, MarketContext(), "market context", mint),
            _bounded(d.security.check(mint), t, QuickSecurity(), "quick security", mint),
        )

    # ---------------- tier 2 ----------------
    async def _tier2(self, token: TokenCandidate):
        d = self.deps
        mint = token.mint
        return await asyncio.gather(
            d.rugcheck.validate_contract(mint),
            d.jupiter.test_sellability(mint),
            d.holders.get_holder_distribution(mint),
            d.market.analyze_tx_patterns(mint),
            d.bundles.detect(mint),
            d.market.check_liquidity_stability(mint, token.liquidity),
        )

    # ---------------- tier 3 ----------------
    async def _dev_score(self, mint: str) -> Optional[DevScore]:
        creator = await self.deps.devs.get_token_creator(mint)
        if not creator:
            return None
        return await self.deps.devs.get_developer_credit_score(creator)

    async def _ai(self, token: TokenCandidate, mode: str):
        if self.deps.ai is None:
            return None
        return await self.deps.ai.analyze(token, mode)

    async def _pump(self, token: TokenCandidate, settings: BotSettings):
        if self.deps.pump is None or not looks_like_bonding_curve(token, settings.min_liquidity):
            return None
        return await self.deps.pump.analyze(token.mint)

    async def validate(self, token: TokenCandidate, settings: BotSettings) -> ValidationResult:
        token = replace(token)
        mint = token.mint
        enh = EnhancementBundle()
        enh.narrative_quality = score_narrative(token.narrative, token.symbol, token.socials)
        enh.social_signals = self.social.score(token.socials)
        risks: List[str] = []

        # ---- Tier 1 ----
        freshness, market, security = await self._tier1(mint)
        enh.freshness, enh.market_context = freshness, market

        if not freshness.is_fresh:
            risks.append(f"Token is {freshness.age_minutes} minutes old (>{MAX_TOKEN_AGE_MINUTES}min)")
        if not market.should_trade:
            risks.append(f"Unfavorable market (SOL {market.sol_trend})")
        risks.extend(security.risks())

        if risks:
            contract_score = 0.0 if not security.passed else 50.0
            risks.extend(enh.narrative_quality.warnings)
            checks = build_checks(token, settings, enh.narrative_quality.score, None, None)
            logger.info("Tier 1 rejected %s (%s): %s", token.symbol, mint, "; ".join(risks))
            return ValidationResult(checks, contract_score, risks, 1, enh, token)

        # ---- Tier 2 ----
        contract, sell, holders, patterns, bundle, liquidity = await self._tier2(token)
        token.top_holder_percent = holders.top_holder_percent
        enh.tx_patterns = patterns
        enh.bundle_analysis = bundle
        enh.liquidity_stability = liquidity

        risks.extend(contract.risks)
        if not sell.can_sell:
            risks.append(sell.reason)
        if holders.top_holder_percent >= settings.max_top_holder_percent:
            risks.append(f"Top holder owns {holders.top_holder_percent:.1f}% of supply")
        risks.extend(patterns.suspicious_patterns)
        if liquidity.warning:
            risks.append(liquidity.warning)
        if bundle.is_bundled:
            risks.extend(bundle.details)
            risks.append(f"Bundled launch detected ({bundle.sybil_count} sybil wallets)")

        gate2 = (
            contract.verified
            and sell.can_sell
            and holders.top_holder_percent < settings.max_top_holder_percent
            and not bundle.is_bundled
        )
        if not gate2:
            risks.extend(enh.narrative_quality.warnings)
            checks = build_checks(token, settings, enh.narrative_quality.score, contract, sell,
                                  security_gate=False)
            logger.info("Tier 2 rejected %s (%s): %s", token.symbol, mint, "; ".join(risks) or "gate failed")
            return ValidationResult(checks, contract.score, risks, 2, enh, token)

        # ---- Tier 3 ----
        dev, ai, whales, pump = await asyncio.gather(
            self._dev_score(mint),
            self._ai(token, settings.ai_mode),
            self.deps.holders.get_whale_activity(mint),
            self._pump(token, settings),
        )
        enh.dev_score = dev
        enh.ai_analysis = ai
        enh.whale_activity = whales or WhaleActivity()

        if pump is not None:
            token = enhance_with_pump_data(token, pump.bonding_progress)
            enh.narrative_quality = score_narrative(token.narrative, token.symbol, token.socials)

        risks.extend(enh.narrative_quality.warnings)
        checks = build_checks(token, settings, enh.narrative_quality.score, contract, sell)
        logger.info("Tier 3 complete for %s (%s): %d/%d checks", token.symbol, mint,
                    checks.passed_count(), checks.total)
        return ValidationResult(checks, contract.score, risks, 3, enh, token)


__all__ = ["ValidatorDeps", "TieredValidator", "build_checks"]
