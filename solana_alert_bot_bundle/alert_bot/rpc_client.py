# solana_alert_bot_bundle/alert_bot/rpc_client.py
import os
import time
import random
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp

logger = logging.getLogger(__name__)


class RpcError(Exception):
    """JSON-RPC error object (or an unusable HTTP status) returned by the node."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class RpcRateLimited(RpcError):
    """HTTP 429 (or a JSON-RPC rate-limit error) after retries were used up."""


def _looks_rate_limited(err: Dict[str, Any]) -> bool:
    code = err.get("code")
    msg = str(err.get("message") or "").lower()
    return code in (429, -32429) or "rate limit" in msg or "too many requests" in msg


class ChainRpcClient:
    """
    Minimal async Solana JSON-RPC client (Helius or any standard endpoint).

    Spaces calls by ``min_interval``, bounds concurrency with a semaphore and
    backs off on 429 honoring Retry-After. Batches are sent as a single JSON
    array and are not retried on 429 so the caller can degrade immediately.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        max_concurrency: int = 4,
        min_interval: float = 0.15,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 0.5,
        backoff_max: float = 15.0,
    ):
        self.url = url or os.getenv("HELIUS_RPC_URL") or os.getenv("SOLANA_RPC_URL")
        self._session = session
        self._owns_session = session is None
        self._sem = asyncio.Semaphore(max_concurrency)
        self._min_interval = float(min_interval)
        self._timeout = float(timeout)
        self._max_retries = max(1, int(max_retries))
        self._backoff_base = float(backoff_base)
        self._backoff_max = float(backoff_max)
        self._last_call = 0.0
        self._rate_lock = asyncio.Lock()
        self._next_id = 0

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def start(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession(headers={"Content-Type": "application/json"})
            self._owns_session = True

    async def close(self) -> None:
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    async def _wait_rate_slot(self) -> None:
        async with self._rate_lock:
            to_wait = self._min_interval - (time.time() - self._last_call)
            if to_wait > 0:
                await asyncio.sleep(to_wait)
            self._last_call = time.time()

    def _backoff(self, attempt: int) -> float:
        base = self._backoff_base * (2 ** (attempt - 1))
        jitter = random.uniform(0, base * 0.1)
        return min(base + jitter, self._backoff_max)

    def _payload(self, method: str, params: Optional[Sequence[Any]]) -> Dict[str, Any]:
        self._next_id += 1
        return {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": list(params or [])}

    async def _post(self, body: Any, timeout: Optional[float], *, retry_429: bool) -> Any:
        if not self.url:
            raise RpcError("RPC url not configured")
        if self._session is None:
            await self.start()

        tmo = aiohttp.ClientTimeout(total=timeout or self._timeout)
        attempts = self._max_retries if retry_429 else 1
        for attempt in range(1, attempts + 1):
            async with self._sem:
                await self._wait_rate_slot()
                async with self._session.post(self.url, json=body, timeout=tmo) as resp:
                    if resp.status == 429:
                        if attempt >= attempts:
                            raise RpcRateLimited("RPC rate limited", code=429)
                        wait = self._backoff(attempt)
                        ra = resp.headers.get("Retry-After")
                        if ra:
                            try:
                                wait = max(wait, float(ra))
                            except ValueError:
                                pass
                        logger.warning("RPC 429 → retry in %.1fs", wait)
                    elif 500 <= resp.status < 600 and attempt < attempts:
                        wait = self._backoff(attempt)
                        logger.warning("RPC %d → retry in %.1fs", resp.status, wait)
                    elif resp.status != 200:
                        raise RpcError(f"RPC HTTP {resp.status}", code=resp.status)
                    else:
                        return await resp.json(content_type=None)
            await asyncio.sleep(wait)
        raise RpcError("Max retries exceeded")

    async def call(self, method: str, params: Optional[Sequence[Any]] = None, *, timeout: Optional[float] = None) -> Any:
        """Single JSON-RPC call; returns ``result`` or raises RpcError/RpcRateLimited."""
        data = await self._post(self._payload(method, params), timeout, retry_429=True)
        if not isinstance(data, dict):
            raise RpcError(f"Malformed RPC response for {method}")
        err = data.get("error")
        if err:
            if isinstance(err, dict) and _looks_rate_limited(err):
                raise RpcRateLimited(str(err.get("message")), code=err.get("code"))
            msg = err.get("message") if isinstance(err, dict) else str(err)
            raise RpcError(f"{method}: {msg}", code=err.get("code") if isinstance(err, dict) else None)
        return data.get("result")

    async def batch(self, calls: Sequence[Tuple[str, Sequence[Any]]], *, timeout: Optional[float] = None) -> List[Any]:
        """
        Send several calls as one JSON-RPC batch. Results come back in request
        order; an entry whose call errored is None.
        """
        if not calls:
            return []
        body = [self._payload(m, p) for m, p in calls]
        data = await self._post(body, timeout, retry_429=False)
        if isinstance(data, dict) and data.get("error"):
            err = data["error"]
            if isinstance(err, dict) and _looks_rate_limited(err):
                raise RpcRateLimited(str(err.get("message")), code=err.get("code"))
            raise RpcError(str(err))
        if not isinstance(data, list):
            raise RpcError("Malformed batch response")

        by_id: Dict[Any, Any] = {}
        for item in data:
            if not isinstance(item, dict):
                continue
            err = item.get("error")
            if isinstance(err, dict) and _looks_rate_limited(err):
                raise RpcRateLimited(str(err.get("message")), code=err.get("code"))
            by_id[item.get("id")] = None if err else item.get("result")
        return [by_id.get(req["id"]) for req in body]

    # ---- Convenience wrappers ----
    async def get_signatures_for_address(self, address: str, *, limit: int = 100,
                                         timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        res = await self.call("getSignaturesForAddress", [address, {"limit": int(limit)}], timeout=timeout)
        return res if isinstance(res, list) else []

    async def get_transaction(self, signature: str, *, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        res = await self.call(
            "getTransaction",
            [signature, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}],
            timeout=timeout,
        )
        return res if isinstance(res, dict) else None

    async def get_account_info(self, address: str, *, encoding: str = "jsonParsed",
                               timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        res = await self.call("getAccountInfo", [address, {"encoding": encoding}], timeout=timeout)
        if isinstance(res, dict):
            return res.get("value")
        return None

    async def get_token_largest_accounts(self, mint: str, *, timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        res = await self.call("getTokenLargestAccounts", [mint], timeout=timeout)
        value = res.get("value") if isinstance(res, dict) else None
        return value if isinstance(value, list) else []

    async def get_assets_by_creator(self, creator: str, *, page: int = 1, limit: int = 100,
                                    timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        """Helius DAS ``getAssetsByCreator`` (object params, not a positional list)."""
        body = self._payload("getAssetsByCreator", None)
        body["params"] = {"creatorAddress": creator, "onlyVerified": False, "page": page, "limit": limit}
        data = await self._post(body, timeout, retry_429=True)
        if not isinstance(data, dict):
            raise RpcError("Malformed DAS response")
        if data.get("error"):
            raise RpcError(f"getAssetsByCreator: {data['error']}")
        items = (data.get("result") or {}).get("items")
        return items if isinstance(items, list) else []
