# solana_alert_bot_bundle/alert_bot/alerts.py
from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable

from .models import Alert, BotSettings, TokenCandidate
from .scoring_engine import score_validation
from .tiered_validator import TieredValidator

logger = logging.getLogger("AlertBot")

BASE_BREAK = "Base Break"
PULLBACK_ENTRY = "Pullback Entry"
BASE_BREAK_VOLUME = 500


def setup_type_for(token: TokenCandidate) -> str:
    return BASE_BREAK if token.volume_increase > BASE_BREAK_VOLUME else PULLBACK_ENTRY


def _utc_iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class AlertAssembler:
    """
    Validate -> score -> Alert. Valid alerts are upserted by mint through
    ``store.upsert_alert``; invalid ones are only returned.
    """

    def __init__(self, validator: TieredValidator, store: Any, *, clock: Callable[[], float] = time.time):
        self.validator = validator
        self.store = store
        self._clock = clock

    async def create_alert(self, token: TokenCandidate, settings: BotSettings) -> Alert:
        result = await self.validator.validate(token, settings)
        composite = score_validation(result)
        enh = result.enhancements
        validated = result.token or token

        ai = enh.ai_analysis
        if ai is not None:
            ai = replace(ai, mode=settings.ai_mode)

        now = self._clock()
        alert = Alert(
            id=f"alert-{token.mint}-{int(now * 1000)}",
            timestamp=_utc_iso(now),
            token=validated,
            checks=result.checks,
            is_valid=composite.is_valid,
            passed_checks=result.checks.passed_count(),
            total_checks=result.checks.total,
            setup_type=setup_type_for(validated),
            contract_score=result.contract_score,
            composite_score=composite.score,
            social_signals=enh.social_signals,
            whale_activity=enh.whale_activity,
            recommendations=composite.recommendations,
            risks=list(result.risks),
            dev_score=enh.dev_score,
            bundle_analysis=enh.bundle_analysis,
            ai_analysis=ai,
            tier_reached=result.tier_reached,
        )

        if alert.is_valid and self.store is not None:
            try:
                await self.store.upsert_alert(alert)
            except (sqlite3.Error, OSError) as e:
                logger.error("[Persistence] Failed to save alert for %s: %s", token.mint, e, exc_info=True)
        return alert


__all__ = ["AlertAssembler", "setup_type_for", "BASE_BREAK", "PULLBACK_ENTRY"]
