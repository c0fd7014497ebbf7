# tests/test_jupiter_client.py
"""
Unit tests for the Jupiter quote client
"""
import json

import aiohttp
import pytest

from solana_alert_bot_bundle.alert_bot.jupiter_client import (
    HIGH_IMPACT_REASON,
    INVALID_QUOTE_REASON,
    NO_ROUTE_REASON,
    SELL_OK_REASON,
    JupiterClient,
)
from solana_alert_bot_bundle.common.constants import SOL_MINT, USDC_MINT

from conftest import MINT, FakeResponse


class TestSellability:
    """mint -> wSOL sell simulation"""

    @pytest.mark.asyncio
    async def test_sellable(self, fake_session):
        quote = {"outAmount": "123456", "priceImpactPct": "0.8", "slippageBps": 50}
        fake_session.get.return_value = FakeResponse(200, json.dumps(quote))

        r = await JupiterClient(session=fake_session).test_sellability(MINT)

        assert (r.can_sell, r.reason) == (True, SELL_OK_REASON)
        assert r.slippage == 0.5
        params = fake_session.get.call_args.kwargs["params"]
        assert (params["inputMint"], params["outputMint"]) == (MINT, SOL_MINT)
        assert fake_session.get.call_args.args[0] == "https://public.jupiterapi.com/quote"

    @pytest.mark.asyncio
    async def test_high_impact_still_sellable(self, fake_session):
        fake_session.get.return_value = FakeResponse(200, json.dumps({"outAmount": "10", "priceImpactPct": "25"}))

        r = await JupiterClient(session=fake_session).test_sellability(MINT)

        assert (r.can_sell, r.reason) == (True, HIGH_IMPACT_REASON)

    @pytest.mark.asyncio
    async def test_no_route(self, fake_session):
        fake_session.get.return_value = FakeResponse(400, '{"error": "COULD_NOT_FIND_ANY_ROUTE"}')

        r = await JupiterClient(session=fake_session).test_sellability(MINT)

        assert (r.can_sell, r.reason) == (False, NO_ROUTE_REASON)

    @pytest.mark.asyncio
    async def test_zero_quote(self, fake_session):
        fake_session.get.return_value = FakeResponse(200, json.dumps({"outAmount": "0"}))

        r = await JupiterClient(session=fake_session).test_sellability(MINT)

        assert (r.can_sell, r.reason) == (False, INVALID_QUOTE_REASON)

    @pytest.mark.asyncio
    async def test_transport_error_fails_closed(self, fake_session):
        fake_session.get.side_effect = aiohttp.ClientConnectionError("refused")

        r = await JupiterClient(session=fake_session).test_sellability(MINT)

        assert r.can_sell is False
        assert r.reason == "refused"


class TestPrices:
    """Spot price from buy quotes"""

    @pytest.mark.asyncio
    async def test_sol_price_from_usdc_quote(self, fake_session):
        # 1 SOL -> 150 USDC (6 decimals)
        fake_session.get.return_value = FakeResponse(200, json.dumps({"outAmount": "150000000"}))

        price = await JupiterClient(session=fake_session).get_sol_price_usd()

        assert price == pytest.approx(150.0)
        params = fake_session.get.call_args.kwargs["params"]
        assert (params["inputMint"], params["outputMint"], params["amount"]) == (SOL_MINT, USDC_MINT, "1000000000")

    @pytest.mark.asyncio
    async def test_missing_quote(self, fake_session):
        fake_session.get.return_value = FakeResponse(500, "")

        assert await JupiterClient(session=fake_session).get_sol_price_usd() is None
