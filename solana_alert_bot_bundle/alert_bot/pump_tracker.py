# solana_alert_bot_bundle/alert_bot/pump_tracker.py
from __future__ import annotations

import asyncio
import base64
import logging
import struct
from dataclasses import replace
from typing import Any, Dict, Optional

import aiohttp
from solders.pubkey import Pubkey

from solana_alert_bot_bundle.common.constants import LAMPORTS_PER_SOL, PUMP_FUN_PROGRAM_ID

from .models import PumpAnalysis, TokenCandidate
from .rpc_client import ChainRpcClient, RpcError

logger = logging.getLogger(__name__)

# pump.fun migrates a curve once ~85 SOL of real reserves are in
GRADUATION_SOL = 85.0
NEAR_CURVE_PCT = 80.0
KOTH_PCT = 95.0

# discriminator | virtual_token | virtual_sol | real_token | real_sol | total_supply | complete
_CURVE_LAYOUT = struct.Struct("<8sQQQQQ?")


def bonding_curve_address(mint: str) -> Pubkey:
    pda, _bump = Pubkey.find_program_address(
        [b"bonding-curve", bytes(Pubkey.from_string(mint))],
        Pubkey.from_string(PUMP_FUN_PROGRAM_ID),
    )
    return pda


def decode_bonding_curve(raw: bytes) -> Optional[Dict[str, Any]]:
    if len(raw) < _CURVE_LAYOUT.size:
        return None
    _disc, v_token, v_sol, r_token, r_sol, supply, complete = _CURVE_LAYOUT.unpack_from(raw, 0)
    return {
        "virtual_token_reserves": v_token,
        "virtual_sol_reserves": v_sol,
        "real_token_reserves": r_token,
        "real_sol_reserves": r_sol,
        "token_total_supply": supply,
        "complete": bool(complete),
    }


def progress_from_curve(curve: Dict[str, Any]) -> float:
    if curve.get("complete"):
        return 100.0
    sol = float(curve.get("real_sol_reserves") or 0) / LAMPORTS_PER_SOL
    return min(sol / GRADUATION_SOL * 100, 100.0)


def looks_like_bonding_curve(token: TokenCandidate, min_liquidity: float) -> bool:
    """Pump.fun style launch: mentioned in the narrative, or no DEX pair yet and thin liquidity."""
    text = (token.narrative or "").lower()
    if "pump" in text:
        return True
    return not token.pair_address and token.liquidity < min_liquidity


def enhance_with_pump_data(token: TokenCandidate, progress: float) -> TokenCandidate:
    return replace(token, narrative=f"{token.narrative} | Pump.fun Bonding: {progress:.1f}%")


class PumpTracker:
    def __init__(self, rpc: ChainRpcClient):
        self.rpc = rpc

    async def analyze(self, mint: str) -> Optional[PumpAnalysis]:
        """Curve progress for ``mint``; None when there is no readable pump.fun curve."""
        try:
            address = str(bonding_curve_address(mint))
            value = await self.rpc.get_account_info(address, encoding="base64")
        except (RpcError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug("Pump.fun analysis error for %s: %s", mint, e)
            return None
        if not value:
            return None

        data = value.get("data")
        if not (isinstance(data, list) and data):
            return None
        try:
            curve = decode_bonding_curve(base64.b64decode(data[0]))
        except (ValueError, struct.error):
            curve = None
        if curve is None:
            return None

        progress = progress_from_curve(curve)
        return PumpAnalysis(
            is_near_bonding_curve=progress > NEAR_CURVE_PCT,
            bonding_progress=progress,
            king_of_the_hill_potential=progress > KOTH_PCT,
            complete=curve["complete"],
        )
