# solana_alert_bot_bundle/alert_bot/eligibility.py
from __future__ import annotations

import logging
from typing import Optional, Tuple

from .models import BotSettings, TokenCandidate, _num
from .narrative import score_narrative

logger = logging.getLogger("AlertBot")

# Standardize pre-filter rejections at INFO so they're easy to grep in logs
REJECT_TAG = "PREFILTER-REJECT"

MIN_NARRATIVE_SCORE = 30
MIN_MARKET_CAP = 10_000
MAX_MARKET_CAP = 100_000_000


def _log_reject(token: TokenCandidate, reason: str) -> None:
    logger.info("%s %s (%s): %s", REJECT_TAG, token.symbol, token.mint, reason)


def _reject_reason(token: TokenCandidate, settings: BotSettings) -> Optional[str]:
    # narrative only; socials are scored later by the validator
    if score_narrative(token.narrative, token.symbol).score < MIN_NARRATIVE_SCORE:
        return "Poor narrative quality"
    if token.liquidity < settings.min_liquidity:
        return "Insufficient liquidity"
    if token.volume_increase < settings.min_volume_increase:
        return "Volume spike too low"
    if token.market_cap < MIN_MARKET_CAP:
        return "Market cap too low (likely scam)"
    if token.market_cap > MAX_MARKET_CAP:
        return "Market cap too high (already discovered)"
    if _num(token.price_usd) <= 0:
        return "Invalid price"
    return None


def should_validate(token: TokenCandidate, settings: BotSettings) -> Tuple[bool, Optional[str]]:
    """Cheap pre-filter run before the tiered validator spends any API quota."""
    reason = _reject_reason(token, settings)
    if reason:
        _log_reject(token, reason)
        return False, reason
    return True, None


__all__ = ["should_validate", "MIN_NARRATIVE_SCORE", "MIN_MARKET_CAP", "MAX_MARKET_CAP"]
