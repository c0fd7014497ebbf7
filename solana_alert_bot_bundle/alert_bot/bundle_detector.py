# solana_alert_bot_bundle/alert_bot/bundle_detector.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .models import BundleAnalysis
from .rpc_client import ChainRpcClient, RpcError

logger = logging.getLogger(__name__)

SIGNATURE_WINDOW = 100
EARLY_TX_SAMPLE = 10
PRE_BATCH_PAUSE = 0.8


def _first_signer(tx: Dict[str, Any]) -> Optional[str]:
    keys = (((tx.get("transaction") or {}).get("message") or {}).get("accountKeys")) or []
    if not keys:
        return None
    first = keys[0]
    return first.get("pubkey") if isinstance(first, dict) else str(first)


def _touches_mint(tx: Dict[str, Any], mint: str) -> bool:
    balances = (tx.get("meta") or {}).get("postTokenBalances") or []
    return any(isinstance(b, dict) and b.get("mint") == mint for b in balances)


def analyze_launch_transactions(mint: str, transactions: List[Dict[str, Any]]) -> BundleAnalysis:
    """Score the earliest transactions of a mint for same-block stuffing and repeat signers."""
    if not transactions:
        return BundleAnalysis()

    creation_slot = transactions[0].get("slot")
    creation_block = [tx for tx in transactions if tx.get("slot") == creation_slot]

    buys = 0
    wallets = set()
    for tx in transactions:
        if _touches_mint(tx, mint):
            buys += 1
            signer = _first_signer(tx)
            if signer:
                wallets.add(signer)
    sybil = buys - len(wallets)

    details: List[str] = []
    if len(creation_block) > 5:
        details.append(f"High block activity: {len(creation_block)} transactions in the first block")
    if sybil > 2:
        details.append(f"Sybil pattern detected: {sybil} repeated wallet interactions in first 20 txs")

    bundled = len(creation_block) > 10 or sybil > 5
    return BundleAnalysis(is_bundled=bundled, bundle_percentage=15.0 if bundled else 0.0,
                          sybil_count=sybil, details=details)


class BundleDetector:
    def __init__(self, rpc: ChainRpcClient, *, pause: float = PRE_BATCH_PAUSE):
        self.rpc = rpc
        self.pause = float(pause)

    async def detect(self, mint: str) -> BundleAnalysis:
        try:
            sigs = await self.rpc.get_signatures_for_address(mint, limit=SIGNATURE_WINDOW)
            if not sigs:
                return BundleAnalysis()
            # newest-first from the node
            earliest = [s["signature"] for s in reversed(sigs)][:EARLY_TX_SAMPLE]

            await asyncio.sleep(self.pause)

            try:
                results = await self.rpc.batch([
                    ("getTransaction", [sig, {"maxSupportedTransactionVersion": 0, "encoding": "jsonParsed"}])
                    for sig in earliest
                ])
            except (RpcError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning("Bundle detector: batch failed for %s: %s", mint, e)
                return BundleAnalysis(details=["RPC Limit Reached"])

            transactions = [tx for tx in results if isinstance(tx, dict)]
            return analyze_launch_transactions(mint, transactions)
        except (RpcError, aiohttp.ClientError, asyncio.TimeoutError, KeyError, TypeError, ValueError) as e:
            logger.warning("Error detecting bundled launch for %s: %s", mint, e)
            return BundleAnalysis()
