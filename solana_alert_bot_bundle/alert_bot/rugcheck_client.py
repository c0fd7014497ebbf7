# solana_alert_bot_bundle/alert_bot/rugcheck_client.py
import os
import time
import random
import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .models import ContractReport

logger = logging.getLogger(__name__)


class RugcheckClient:
    """
    Async Rugcheck client with rate spacing, concurrency limit, Retry-After honoring,
    and exponential backoff with jitter. Uses either a static JWT
    (Authorization: Bearer <jwt>) or an API key (X-API-KEY); the public report
    endpoint also answers anonymously.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://api.rugcheck.xyz",
        *,
        session: Optional[aiohttp.ClientSession] = None,
        max_concurrency: int = 1,
        min_interval: float = 1.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
        timeout: float = 20.0,
    ):
        self.api_key = api_key or os.getenv("RUGCHECK_API_KEY")
        self.base_url = base_url.rstrip("/")
        self._sem = asyncio.Semaphore(max_concurrency)
        self._min_interval = float(min_interval)
        self._max_retries = max(1, int(max_retries))
        self._backoff_base = float(backoff_base)
        self._backoff_max = float(backoff_max)
        self._timeout = float(timeout)
        self._last_call = 0.0
        self._session = session
        self._owns_session = session is None
        self._rate_lock = asyncio.Lock()

    async def start(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession(headers={"Accept": "application/json"})
            self._owns_session = True

    async def close(self) -> None:
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    async def _wait_rate_slot(self) -> None:
        # Ensure at least min_interval between calls
        async with self._rate_lock:
            to_wait = self._min_interval - (time.time() - self._last_call)
            if to_wait > 0:
                await asyncio.sleep(to_wait)

    def _backoff(self, attempt: int) -> float:
        base = self._backoff_base * (2 ** (attempt - 1))
        capped = min(base, self._backoff_max)
        jitter = random.uniform(0, base * 0.1)
        return min(capped + jitter, self._backoff_max)

    def _redact(self, s: Optional[str]) -> str:
        if not s:
            return "<missing>"
        s = str(s)
        if len(s) <= 10:
            return s[:2] + "..." + s[-2:]
        return s[:4] + "..." + s[-4:]

    def _auth_headers(self) -> Dict[str, str]:
        jwt_token = os.getenv("RUGCHECK_JWT_TOKEN") or os.getenv("RUGCHECK_JWT")
        if jwt_token:
            logger.debug("Using static RUGCHECK_JWT_TOKEN (redacted=%s)", self._redact(jwt_token))
            return {"Authorization": f"Bearer {jwt_token}"}
        if self.api_key:
            logger.debug("Using RUGCHECK_API_KEY (redacted=%s)", self._redact(self.api_key))
            return {"X-API-KEY": str(self.api_key)}
        return {}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        allow_404: bool = False,
    ) -> Any:
        """
        Generic HTTP request with retry and rate limiting.

        If allow_404=True, return None when server responds 404 instead of raising.
        """
        if self._session is None:
            await self.start()

        url = path if path.startswith("http") else f"{self.base_url}{path if path.startswith('/') else '/' + path}"
        tmo = aiohttp.ClientTimeout(total=timeout or self._timeout)
        last_exc: Optional[Exception] = None

        for attempt in range(1, self._max_retries + 1):
            try:
                async with self._sem:
                    await self._wait_rate_slot()
                    logger.debug("RugCheck → %s %s | Params: %s", method.upper(), url, params or {})
                    async with self._session.request(
                        method, url, params=params, headers=self._auth_headers(), timeout=tmo
                    ) as resp:
                        self._last_call = time.time()
                        status = resp.status

                        if status == 200:
                            return await resp.json(content_type=None)

                        if status == 404 and allow_404:
                            logger.debug("RugCheck 404 (not found) for %s; returning None", url)
                            return None

                        if status == 429 or 500 <= status < 600:
                            wait = self._backoff(attempt)
                            ra = resp.headers.get("Retry-After")
                            if ra:
                                try:
                                    wait = max(wait, float(ra))
                                except ValueError:
                                    pass
                            last_exc = aiohttp.ClientResponseError(
                                resp.request_info, resp.history, status=status, message=f"HTTP {status}"
                            )
                            if attempt < self._max_retries:
                                logger.warning("RugCheck %d → retry in %.1fs", status, wait)
                                await asyncio.sleep(wait)
                            continue

                        text = await resp.text()
                        logger.warning("RugCheck failed %d → %s", status, text[:400])
                        resp.raise_for_status()

            except (asyncio.TimeoutError, aiohttp.ClientConnectionError) as e:
                last_exc = e
                if attempt < self._max_retries:
                    wait = self._backoff(attempt)
                    logger.debug("Network error → retry in %.1fs", wait, exc_info=True)
                    await asyncio.sleep(wait)

        raise last_exc or RuntimeError("Max retries exceeded")

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    # ---- Endpoint wrappers ----
    async def get_report(self, mint: str, *, timeout: Optional[float] = None) -> Optional[dict]:
        """GET /v1/tokens/{mint}/report. Returns parsed JSON on 200, None on 404."""
        data = await self.get(f"/v1/tokens/{mint}/report", timeout=timeout, allow_404=True)
        return data if isinstance(data, dict) else None

    async def validate_contract(self, mint: str) -> ContractReport:
        """
        Contract-safety verdict for ``mint``.

        Never raises for transport or payload problems: an unreachable API or a
        missing report yields ``verified=False`` with a neutral score of 50 so the
        token fails the contract gate without being scored as a confirmed rug.
        """
        try:
            data = await self.get_report(mint)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning("Rugcheck validation failed for %s: %s", mint, e)
            return ContractReport(verified=False, risks=[f"Validation failed: {e}"], score=50.0)

        if not data:
            return ContractReport(verified=False, risks=["API error or token not found"], score=50.0)
        return parse_report(data)


def parse_report(data: Dict[str, Any]) -> ContractReport:
    risks: List[str] = []
    for r in data.get("risks") or []:
        if isinstance(r, dict):
            risks.append(str(r.get("name") or r.get("description") or "Unknown risk"))

    if data.get("freezeAuthority"):
        risks.append("Freeze authority enabled")
    if data.get("mintAuthority"):
        risks.append("Mint authority enabled")
    if data.get("isLpBurned") is False:
        risks.append("Liquidity not burned")
        if data.get("isLpLocked") is False:
            risks.append("Liquidity not locked or burned")

    raw_score = data.get("score")
    try:
        score = float(raw_score) if raw_score else max(0.0, 100.0 - 20.0 * len(risks))
    except (TypeError, ValueError):
        score = max(0.0, 100.0 - 20.0 * len(risks))
    score = max(0.0, min(100.0, score))

    top_holders = [
        {"address": h.get("address"), "percentage": h.get("pct", h.get("percentage", 0)) or 0}
        for h in (data.get("topHolders") or [])
        if isinstance(h, dict)
    ]
    return ContractReport(verified=not risks, risks=risks, score=score, top_holders=top_holders)


def make_rugcheck_client(cfg: Optional[Dict[str, Any]] = None,
                         session: Optional[aiohttp.ClientSession] = None) -> RugcheckClient:
    rc = (cfg or {}).get("rugcheck") or {}
    return RugcheckClient(
        api_key=os.getenv("RUGCHECK_API_KEY") or os.getenv("RUGCHECK_KEY"),
        base_url=rc.get("base_url", "https://api.rugcheck.xyz"),
        session=session,
        min_interval=float(rc.get("min_interval", 1.0)),
        max_retries=int(rc.get("max_retries", 3)),
        timeout=float(rc.get("timeout", 20)),
    )
