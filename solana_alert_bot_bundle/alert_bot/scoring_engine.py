# scoring_engine.py
"""
Solana Alert Bot: Composite Scorer
-----------------------------------
Blends a ValidationResult into one 0..100 integer, a validity flag and ordered
recommendation strings. Used by the batch scan, the single-token check and the
webhook payload alike.

Formula:
    composite = 0.40 * contract_score
              + 0.20 * narrative        (AI narrative score, else heuristic narrative)
              + 0.15 * social           (AI hype score, else heuristic social score)
              + 0.05 * whale_score
              + 0.20 * liquidity        (100 if liquidity stable, else 0)
    then additive penalties, rounded and clamped to [0, 100].
    A token rejected by the tier 1 gate scores 0.

Validity is independent of the composite:
    is_valid = narrative and liquidity and contract and sell_test
"""

from __future__ import annotations

from typing import Dict, List

from .models import CompositeScore, ValidationResult, _num


# ---------- Policy ----------

WEIGHTS: Dict[str, float] = {
    "contract": 0.40,
    "narrative": 0.20,
    "social": 0.15,
    "whale": 0.05,
    "liquidity": 0.20,
}

PENALTIES: Dict[str, float] = {
    "not_fresh": 10,
    "not_organic": 20,
    "risk_off": 10,
    "bundled": 30,
    "bad_dev": 20,
}

BAD_DEV_SCORE = 20

STRONG_BUY = "🟢 STRONG BUY - All signals aligned"
BUY = "🟢 BUY - High confidence setup"
MODERATE = "🟡 MODERATE - Exercise caution"
AVOID = "🔴 AVOID - High risk"


# ---------- Utilities ----------

def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def score_tier_label(score: int) -> str:
    if score >= 80:
        return STRONG_BUY
    if score >= 70:
        return BUY
    if score >= 60:
        return MODERATE
    return AVOID


# ---------- Scoring ----------

def composite_breakdown(result: ValidationResult) -> Dict[str, float]:
    """Per-component weighted contributions and penalties (useful for logs and tests)."""
    enh = result.enhancements
    ai = enh.ai_analysis

    narrative = ai.narrative_score if ai is not None else enh.narrative_quality.score
    social = ai.hype_score if ai is not None else enh.social_signals.overall_score
    # liquidity stability is only measured from tier 2 on
    liquidity = 100.0 if result.tier_reached >= 2 and enh.liquidity_stability.is_stable else 0.0

    parts = {
        "contract": WEIGHTS["contract"] * _num(result.contract_score),
        "narrative": WEIGHTS["narrative"] * _num(narrative),
        "social": WEIGHTS["social"] * _num(social),
        "whale": WEIGHTS["whale"] * _num(enh.whale_activity.score),
        "liquidity": WEIGHTS["liquidity"] * liquidity,
    }

    penalty = 0.0
    if not enh.freshness.is_fresh:
        penalty += PENALTIES["not_fresh"]
    if not enh.tx_patterns.is_organic:
        penalty += PENALTIES["not_organic"]
    if not enh.market_context.is_risk_on:
        penalty += PENALTIES["risk_off"]
    if enh.bundle_analysis.is_bundled:
        penalty += PENALTIES["bundled"]
    if enh.dev_score is not None and enh.dev_score.score < BAD_DEV_SCORE:
        penalty += PENALTIES["bad_dev"]
    parts["penalty"] = -penalty
    return parts


def recommendations_for(score: int, result: ValidationResult) -> List[str]:
    enh = result.enhancements
    recs = [score_tier_label(score)]

    if enh.whale_activity.involved:
        recs.append("🐋 Whale wallets involved")
    if enh.bundle_analysis.is_bundled:
        recs.append("⛔ BUNDLED LAUNCH - Avoid")
    if enh.dev_score is not None and enh.dev_score.reputation == "High":
        recs.append("⭐ Trusted developer history")
    if enh.tx_patterns.suspicious_patterns:
        recs.append("⚠️ Suspicious patterns detected")

    ai = enh.ai_analysis
    if ai is not None:
        recs.append(f"🤖 AI Summary: {ai.summary}")
        for bullet in ai.intelligence_brief:
            recs.append(f"💡 Brief: {bullet}")
        if ai.potential == "moonshot":
            recs.append("🚀 AI high potential detected")
    return recs


def score_validation(result: ValidationResult) -> CompositeScore:
    if result.tier_reached <= 1:
        score = 0
    else:
        parts = composite_breakdown(result)
        score = int(_clamp(round(sum(parts.values())), 0, 100))

    c = result.checks
    is_valid = bool(c.narrative and c.liquidity and c.contract and c.sell_test)
    return CompositeScore(score=score, is_valid=is_valid, recommendations=recommendations_for(score, result))


__all__ = ["WEIGHTS", "PENALTIES", "score_validation", "composite_breakdown", "recommendations_for"]
