# solana_alert_bot_bundle/alert_bot/dev_reputation.py
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from .models import DevScore
from .rpc_client import ChainRpcClient, RpcError

logger = logging.getLogger(__name__)

_ERRORS = (RpcError, aiohttp.ClientError, asyncio.TimeoutError, KeyError, IndexError, TypeError, ValueError)


def reputation_for(launches: int) -> str:
    if launches <= 0:
        return "New"
    if launches > 5:
        return "High"
    if launches > 1:
        return "Medium"
    return "Low"


def score_history(launches: int) -> DevScore:
    """Credit score from the number of prior launches by the same creator wallet."""
    if launches <= 0:
        return DevScore(score=50, reputation="New", previous_tokens=0, details=["Brand new developer wallet"])

    score = max(0, min(100, 50 + min(launches * 5, 25)))
    if launches > 10:
        details = [f"Serial developer: {launches} previous launches"]
    else:
        details = [f"Experienced developer: {launches} previous launches"]
    return DevScore(score=score, reputation=reputation_for(launches), previous_tokens=launches, details=details)


class DevReputation:
    def __init__(self, rpc: ChainRpcClient):
        self.rpc = rpc

    async def get_token_creator(self, mint: str) -> Optional[str]:
        """First signer of the oldest of the latest 100 signatures (usually the create tx)."""
        try:
            sigs = await self.rpc.get_signatures_for_address(mint, limit=100)
            if not sigs:
                return None
            tx = await self.rpc.get_transaction(sigs[-1]["signature"])
            if not tx:
                return None
            first = tx["transaction"]["message"]["accountKeys"][0]
            return first.get("pubkey") if isinstance(first, dict) else str(first)
        except _ERRORS as e:
            logger.debug("Error getting token creator for %s: %s", mint, e)
            return None

    async def get_developer_credit_score(self, creator: str) -> DevScore:
        try:
            assets = await self.rpc.get_assets_by_creator(creator, limit=100)
        except _ERRORS as e:
            logger.warning("Error calculating dev score for %s: %s", creator, e)
            return DevScore(score=50, reputation="New", details=["Error analyzing history"])

        previous = [
            a for a in assets
            if any(isinstance(auth, dict) and auth.get("address") == creator for auth in (a.get("authorities") or []))
        ]
        return score_history(len(previous))
