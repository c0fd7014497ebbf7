# solana_alert_bot_bundle/alert_bot/holders.py
# Holder concentration and whale presence from the largest token accounts.
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

import aiohttp

from solana_alert_bot_bundle.common.constants import LAMPORTS_PER_SOL

from .models import HolderDistribution, WhaleActivity
from .rpc_client import ChainRpcClient, RpcError

logger = logging.getLogger(__name__)

WHALE_MIN_SOL = 100.0
WHALE_SAMPLE = 5

_ADAPTER_ERRORS = (RpcError, aiohttp.ClientError, asyncio.TimeoutError, ValueError, KeyError, TypeError)


def _amount(acc: Dict[str, Any]) -> float:
    try:
        return float(acc.get("amount") or 0)
    except (TypeError, ValueError):
        return 0.0


class HolderAnalyzer:
    def __init__(self, rpc: ChainRpcClient, *, balance_timeout: float = 5.0):
        self.rpc = rpc
        self.balance_timeout = float(balance_timeout)

    async def get_holder_distribution(self, mint: str) -> HolderDistribution:
        """Top account share of the sampled supply; worst case (100%, 0) when unknown."""
        try:
            accounts = await self.rpc.get_token_largest_accounts(mint)
        except _ADAPTER_ERRORS as e:
            logger.warning("Holder distribution error for %s: %s", mint, e)
            return HolderDistribution(top_holder_percent=100.0, holder_count=0)

        if not accounts:
            return HolderDistribution(top_holder_percent=100.0, holder_count=0)

        total = sum(_amount(a) for a in accounts)
        top = _amount(accounts[0])
        pct = (top / total) * 100 if total > 0 else 100.0
        return HolderDistribution(top_holder_percent=round(pct, 2), holder_count=len(accounts))

    async def get_top_holders(self, mint: str, top_n: int = 10) -> List[Dict[str, Any]]:
        try:
            accounts = await self.rpc.get_token_largest_accounts(mint)
        except _ADAPTER_ERRORS as e:
            logger.debug("Top holders error for %s: %s", mint, e)
            return []
        total = sum(_amount(a) for a in accounts)
        if total <= 0:
            return []
        return [
            {"address": a.get("address"), "percentage": _amount(a) / total * 100, "amount": a.get("amount")}
            for a in accounts[:top_n]
        ]

    async def _sol_balance(self, address: str) -> float:
        try:
            info = await asyncio.wait_for(self.rpc.get_account_info(address), timeout=self.balance_timeout)
        except _ADAPTER_ERRORS as e:
            logger.debug("Whale check failed for %s: %s", address, e)
            return 0.0
        if not info:
            return 0.0
        return float(info.get("lamports") or 0) / LAMPORTS_PER_SOL

    async def get_whale_activity(self, mint: str) -> WhaleActivity:
        try:
            dist = await self.get_holder_distribution(mint)
            if dist.holder_count < WHALE_SAMPLE:
                return WhaleActivity(involved=False, confidence=10, score=10)

            holders = await self.get_top_holders(mint, WHALE_SAMPLE)
            balances = await asyncio.gather(*(self._sol_balance(h["address"]) for h in holders if h.get("address")))
            whales = sum(1 for b in balances if b > WHALE_MIN_SOL)

            involved = whales >= 2
            score = 80 + whales * 4 if involved else whales * 30
            confidence = 90 if dist.holder_count > 50 else 60
            return WhaleActivity(involved=involved, confidence=min(100, confidence), score=min(100, score))
        except _ADAPTER_ERRORS as e:
            logger.warning("Whale activity check error for %s: %s", mint, e)
            return WhaleActivity(involved=False, confidence=0, score=0)
