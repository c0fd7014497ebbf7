# solana_alert_bot_bundle/alert_bot/jupiter_client.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from solana_alert_bot_bundle.common.constants import LAMPORTS_PER_SOL, SOL_MINT, USDC_MINT

from .models import SellabilityResult

logger = logging.getLogger(__name__)

NO_ROUTE_REASON = "No swap route found - possible honeypot or low liquidity"
INVALID_QUOTE_REASON = "Invalid quote returned - token may be unsellable"
HIGH_IMPACT_REASON = "High price impact detected - low liquidity"
SELL_OK_REASON = "Sell simulation successful"


class JupiterClient:
    """Quote-only Jupiter client: sell simulation and spot price from route quotes."""

    def __init__(self, base_url: str = "https://public.jupiterapi.com", *,
                 session: Optional[aiohttp.ClientSession] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=float(timeout))

    async def start(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession(headers={"Accept": "application/json"})
            self._owns_session = True

    async def close(self) -> None:
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    async def _quote(self, params: Dict[str, str]) -> tuple[int, Optional[Dict[str, Any]]]:
        if self._session is None:
            await self.start()
        async with self._session.get(f"{self.base_url}/quote", params=params, timeout=self._timeout) as resp:
            if resp.status != 200:
                return resp.status, None
            data = await resp.json(content_type=None)
            return resp.status, data if isinstance(data, dict) else None

    async def test_sellability(self, mint: str, amount: int = 10_000_000) -> SellabilityResult:
        """
        Ask for a mint→wSOL route. No route (or a zero quote) is treated as a
        probable honeypot; transport errors fail closed.
        """
        params = {
            "inputMint": mint,
            "outputMint": SOL_MINT,
            "amount": str(int(amount)),
            "slippageBps": "50",
            "onlyDirectRoutes": "false",
            "asLegacyTransaction": "false",
        }
        try:
            status, quote = await self._quote(params)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning("Sell test error for %s: %s", mint, e)
            return SellabilityResult(can_sell=False, reason=str(e) or "Unknown error during sell test")

        if status != 200 or quote is None:
            return SellabilityResult(can_sell=False, reason=NO_ROUTE_REASON)

        out_amount = quote.get("outAmount")
        if not out_amount or str(out_amount) == "0":
            return SellabilityResult(can_sell=False, reason=INVALID_QUOTE_REASON)

        try:
            price_impact = float(quote.get("priceImpactPct") or 0)
        except (TypeError, ValueError):
            price_impact = 0.0
        slippage = float(quote.get("slippageBps") or 0) / 100

        if price_impact > 10:
            return SellabilityResult(True, HIGH_IMPACT_REASON, slippage, price_impact)
        return SellabilityResult(True, SELL_OK_REASON, slippage, price_impact)

    async def get_token_price(self, mint: str, amount_sol: float = 1.0) -> Optional[float]:
        """Tokens (base units) received per lamport when buying ``mint`` with ``amount_sol`` SOL."""
        lamports = int(amount_sol * LAMPORTS_PER_SOL)
        params = {"inputMint": SOL_MINT, "outputMint": mint, "amount": str(lamports), "slippageBps": "50"}
        try:
            status, quote = await self._quote(params)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug("Price fetch error for %s: %s", mint, e)
            return None
        if status != 200 or not quote or not quote.get("outAmount"):
            return None
        try:
            return float(quote["outAmount"]) / lamports
        except (TypeError, ValueError):
            return None

    async def get_sol_price_usd(self) -> Optional[float]:
        # USDC has 6 decimals vs 9 for lamports, hence the x1000
        price = await self.get_token_price(USDC_MINT)
        return price * 1000 if price else None
