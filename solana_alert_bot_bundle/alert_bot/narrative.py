# solana_alert_bot_bundle/alert_bot/narrative.py
# Keyword narrative scoring and the social-presence proxy. Pure, no I/O.
from __future__ import annotations

import random
import re
from typing import Optional, Tuple

from .models import NarrativeQuality, SocialLinks, SocialSignals

POSITIVE_KEYWORDS: Tuple[Tuple[str, int], ...] = (
    ("partnership", 15),
    ("audit", 20),
    ("team", 10),
    ("utility", 15),
    ("ecosystem", 15),
    ("community", 10),
    ("launch", 10),
    ("developed", 10),
    ("backed", 15),
    ("official", 10),
)

NEGATIVE_KEYWORDS: Tuple[Tuple[str, int], ...] = (
    ("moon", -15),
    ("lambo", -20),
    ("100x", -25),
    ("1000x", -30),
    ("wen", -10),
    ("scam", -30),
    ("pump", -15),
    ("rugpull", -30),
    ("guaranteed", -20),
    ("millionaire", -25),
)

_URL_RE = re.compile(r"https?://")


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def score_narrative(narrative: str, symbol: str, socials: Optional[SocialLinks] = None) -> NarrativeQuality:
    """
    Heuristic 0-100 narrative quality.

    Matching is a plain substring search, so "pump" also hits "pump.fun" and a
    bonding-curve enriched narrative re-scores slightly lower.
    """
    narrative = narrative or ""
    text = f"{narrative} {symbol or ''}".lower()
    signals = []
    warnings = []
    score = 50.0

    for word, weight in POSITIVE_KEYWORDS:
        if word in text:
            score += weight
            signals.append(f"Found: {word}")

    for word, weight in NEGATIVE_KEYWORDS:
        if word in text:
            score += weight
            warnings.append(f"Red flag: {word}")

    if len(narrative) < 20:
        score -= 10
        warnings.append("Very short description")
    if len(narrative) > 200:
        score += 5
        signals.append("Detailed description")

    if _URL_RE.search(narrative):
        score += 10
        signals.append("Contains links")

    if socials is not None:
        if socials.website:
            score += 10
            signals.append("Website present")
        if socials.twitter:
            score += 20
            signals.append("Twitter verified")
        if socials.telegram:
            score += 15
            signals.append("Telegram active")
        if socials.has_all():
            score += 10
            signals.append("Full social presence")

    return NarrativeQuality(score=_clamp(score, 0, 100), signals=signals, warnings=warnings)


class SocialScorer:
    """
    Social-presence proxy. The engagement term is random noise standing in for
    real social metrics; pass a seeded ``random.Random`` for reproducible scores.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def score(self, socials: Optional[SocialLinks]) -> SocialSignals:
        if socials is None or not socials.has_any():
            return SocialSignals(overall_score=15, sentiment="neutral", twitter_mentions=0)

        score = 10
        if socials.website:
            score += 15
        if socials.twitter:
            score += 20
        if socials.telegram:
            score += 15
        if socials.has_all():
            score += 10

        score = _clamp(score + self.rng.randint(-5, 14), 10, 100)
        if score > 60:
            sentiment = "bullish"
        elif score > 35:
            sentiment = "neutral"
        else:
            sentiment = "weak"
        mentions = self.rng.randint(5, 54) if socials.twitter else 0
        return SocialSignals(overall_score=score, sentiment=sentiment, twitter_mentions=mentions)
