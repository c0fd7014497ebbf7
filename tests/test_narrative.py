# tests/test_narrative.py
"""
Unit tests for narrative quality and social scoring
"""
import random

import pytest

from solana_alert_bot_bundle.alert_bot.models import SocialLinks
from solana_alert_bot_bundle.alert_bot.narrative import SocialScorer, score_narrative


class TestScoreNarrative:
    """Keyword heuristic"""

    def test_positive_keywords(self):
        q = score_narrative("Backed by a doxxed team with a completed audit", "CAT")
        assert q.score == 95
        assert "Found: audit" in q.signals
        assert q.warnings == []

    def test_negative_keywords_and_short_text(self):
        q = score_narrative("wen lambo 100x", "MOON")
        # 50 - 15 - 20 - 25 - 10 - 10 (short)
        assert q.score == 0
        assert "Very short description" in q.warnings
        assert "Red flag: moon" in q.warnings

    def test_symbol_is_part_of_the_text(self):
        assert score_narrative("A plain description of a coin", "SCAM").score == 20

    def test_links_and_long_description(self):
        text = "Community token " + ("x" * 200) + " https://example.org"
        q = score_narrative(text, "ABC")
        assert "Contains links" in q.signals
        assert "Detailed description" in q.signals
        assert q.score == 75

    def test_socials_add_presence_bonus(self):
        socials = SocialLinks(website="https://a.io", twitter="https://x.com/a", telegram="https://t.me/a")
        q = score_narrative("A plain description of a coin", "ABC", socials)
        # 50 + 10 + 20 + 15 + 10, clamped
        assert q.score == 100
        assert "Full social presence" in q.signals

    def test_score_is_clamped(self):
        text = "partnership audit team utility ecosystem community launch developed backed official"
        assert score_narrative(text, "X").score == 100


class TestSocialScorer:
    """Presence proxy with seeded engagement noise"""

    def test_no_socials_is_neutral(self):
        s = SocialScorer().score(None)
        assert (s.overall_score, s.sentiment, s.twitter_mentions) == (15, "neutral", 0)

    def test_empty_links_count_as_no_socials(self):
        s = SocialScorer().score(SocialLinks())
        assert s.overall_score == 15

    def test_seeded_rng_is_reproducible(self):
        links = SocialLinks(website="https://a.io", twitter="https://x.com/a")
        a = SocialScorer(rng=random.Random(42)).score(links)
        b = SocialScorer(rng=random.Random(42)).score(links)
        assert a == b

    @pytest.mark.parametrize("seed", range(10))
    def test_bounds(self, seed):
        links = SocialLinks(website="https://a.io", twitter="https://x.com/a", telegram="https://t.me/a")
        s = SocialScorer(rng=random.Random(seed)).score(links)
        # base 70 plus engagement in [-5, 14]
        assert 65 <= s.overall_score <= 84
        assert s.sentiment == "bullish"
        assert 5 <= s.twitter_mentions <= 54

    def test_telegram_only_has_no_mentions(self):
        s = SocialScorer(rng=random.Random(1)).score(SocialLinks(telegram="https://t.me/a"))
        assert s.twitter_mentions == 0
        assert 20 <= s.overall_score <= 39
