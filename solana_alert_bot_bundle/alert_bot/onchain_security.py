# solana_alert_bot_bundle/alert_bot/onchain_security.py
# Quick mint/freeze authority check straight from the SPL mint account.
from __future__ import annotations

import asyncio
import base64
import logging
import struct
from typing import Any, Optional

import aiohttp

from .models import QuickSecurity
from .rpc_client import ChainRpcClient, RpcError

logger = logging.getLogger(__name__)

# SPL Mint: COption<Pubkey> mint_authority | u64 supply | u8 decimals | bool init | COption<Pubkey> freeze
_MINT_LAYOUT_LEN = 82
_FREEZE_TAG_OFFSET = 4 + 32 + 8 + 1 + 1


def decode_mint_authorities(raw: bytes) -> Optional[QuickSecurity]:
    if len(raw) < _MINT_LAYOUT_LEN:
        return None
    (mint_tag,) = struct.unpack_from("<I", raw, 0)
    (freeze_tag,) = struct.unpack_from("<I", raw, _FREEZE_TAG_OFFSET)
    return QuickSecurity(mint_authority=mint_tag == 1, freeze_authority=freeze_tag == 1, checked=True)


def _from_account(value: Any) -> Optional[QuickSecurity]:
    if not isinstance(value, dict):
        return None
    data = value.get("data")
    if isinstance(data, dict):
        info = (data.get("parsed") or {}).get("info")
        if isinstance(info, dict):
            return QuickSecurity(
                mint_authority=bool(info.get("mintAuthority")),
                freeze_authority=bool(info.get("freezeAuthority")),
                checked=True,
            )
        return None
    if isinstance(data, list) and data and data[-1] == "base64":
        try:
            return decode_mint_authorities(base64.b64decode(data[0]))
        except (ValueError, struct.error):
            return None
    return None


class QuickSecurityChecker:
    """
    Authoritative when the mint account can be read; otherwise returns an
    unchecked result that passes (the full contract report runs in tier 2).
    """

    def __init__(self, rpc: ChainRpcClient):
        self.rpc = rpc

    async def check(self, mint: str) -> QuickSecurity:
        try:
            value = await self.rpc.get_account_info(mint, encoding="jsonParsed")
        except (RpcError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug("Quick security check unavailable for %s: %s", mint, e)
            return QuickSecurity()

        result = _from_account(value)
        if result is None:
            logger.debug("Quick security: mint account for %s not readable", mint)
            return QuickSecurity()
        return result
