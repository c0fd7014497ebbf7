# tests/test_dexscreener_client.py
"""
Unit tests for DexScreener discovery
"""
from unittest.mock import Mock

import pytest

from solana_alert_bot_bundle.alert_bot.dexscreener_client import (
    DexScreenerClient,
    dedupe_pairs,
    is_valid_mint,
    pairs_to_candidates,
    socials_from_pair,
    volume_increase_pct,
)

from conftest import MINT

USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


def _pair(mint=MINT, *, h1=500.0, h24=2_000.0, liquidity=25_000.0, chain="solana", symbol="POP", **extra):
    pair = {
        "chainId": chain,
        "pairAddress": f"pair-{mint[:6]}-{liquidity:.0f}",
        "baseToken": {"address": mint, "symbol": symbol, "name": f"{symbol} token"},
        "priceUsd": "0.0042",
        "fdv": 450_000,
        "liquidity": {"usd": liquidity},
        "volume": {"h1": h1, "h6": h1 * 4, "h24": h24},
        "priceChange": {"h24": 12.5},
    }
    pair.update(extra)
    return pair


class TestPureHelpers:
    """Pair parsing"""

    def test_volume_increase_is_run_rate(self):
        # 500 * 24 / 2000 * 100
        assert volume_increase_pct(_pair()) == pytest.approx(600.0)
        assert volume_increase_pct(_pair(h24=0)) == 0.0

    def test_mint_validation(self):
        assert is_valid_mint(MINT) is True
        assert is_valid_mint("not-a-mint") is False

    def test_dedupe_keeps_deepest_pool(self):
        pairs = [_pair(liquidity=5_000), _pair(liquidity=90_000), _pair(USDC)]
        out = dedupe_pairs(pairs)
        assert len(out) == 2
        assert out[0]["liquidity"]["usd"] == 90_000

    def test_socials(self):
        info = {
            "websites": [{"label": "Website", "url": "https://pop.io"}],
            "socials": [{"type": "twitter", "url": "https://x.com/pop"}, {"type": "telegram", "url": "https://t.me/pop"}],
        }
        links = socials_from_pair(_pair(info=info))
        assert (links.website, links.twitter, links.telegram) == ("https://pop.io", "https://x.com/pop", "https://t.me/pop")


class TestPairsToCandidates:
    """Discovery filter"""

    def test_accepts_spiking_solana_pair(self):
        (c,) = pairs_to_candidates([_pair()])
        assert c.mint == MINT
        assert c.volume_increase == pytest.approx(600.0)
        assert c.narrative == "Trending on DEX Screener with 600% volume increase"
        assert c.market_cap == 450_000
        assert c.price_usd == "0.0042"

    @pytest.mark.parametrize("pair", [
        _pair(chain="ethereum"),
        _pair("bad-mint"),
        _pair(h1=0),
        _pair(h1=10.0),
        _pair(liquidity=500.0),
    ])
    def test_rejections(self, pair):
        assert pairs_to_candidates([pair]) == []

    def test_candidate_cap(self):
        pairs = [_pair(MINT), _pair(USDC)]
        assert len(pairs_to_candidates(pairs, max_candidates=1)) == 1


class TestDexScreenerClient:
    """HTTP client with a fake requests module"""

    @staticmethod
    def _http(status=200, payload=None):
        resp = Mock(status_code=status, text="")
        resp.json.return_value = payload
        http = Mock()
        http.get.return_value = resp
        return http

    @pytest.mark.asyncio
    async def test_scan_uses_cache(self):
        http = self._http(payload={"pairs": [_pair()]})
        client = DexScreenerClient(queries=("raydium",), http=http)
        try:
            first = await client.scan(200)
            second = await client.scan(200)
        finally:
            client.close()

        assert [c.mint for c in first] == [MINT]
        assert [c.mint for c in second] == [MINT]
        assert http.get.call_count == 1
        assert http.get.call_args.args[0].endswith("/search?q=raydium")

    @pytest.mark.asyncio
    async def test_fetch_token_candidate(self):
        http = self._http(payload={"pairs": [_pair(chain="base"), _pair(liquidity=80_000)]})
        client = DexScreenerClient(http=http)
        try:
            c = await client.fetch_token_candidate(MINT)
        finally:
            client.close()

        assert c.liquidity == 80_000
        assert c.narrative == "Token found on DEX Screener"

    @pytest.mark.asyncio
    async def test_invalid_mint_skips_http(self):
        http = self._http()
        client = DexScreenerClient(http=http)
        try:
            assert await client.fetch_token_candidate("nope") is None
        finally:
            client.close()
        http.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_found(self):
        client = DexScreenerClient(http=self._http(status=404))
        try:
            assert await client.fetch_token_candidate(MINT) is None
        finally:
            client.close()
