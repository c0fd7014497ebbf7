# dexscreener_client.py
"""
DexScreener discovery client.

Features
--------
* Global rate-limit (approximately 1 req / 1.2 s)
* TTLCache (5 min) for search and token lookups
* CircuitBreaker429 integration: stops hammering the API after 5 consecutive 429s
* Exponential back-off on 429
* Thread-safe (single-worker executor); async callers go through run_in_executor

Public API
----------
DexScreenerClient.scan(volume_threshold) -> List[TokenCandidate]
DexScreenerClient.fetch_token_candidate(mint) -> Optional[TokenCandidate]
pairs_to_candidates(pairs, ...) -> List[TokenCandidate]
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Sequence
from urllib.parse import quote

import requests
from cachetools import TTLCache
from solders.pubkey import Pubkey

from .models import SocialLinks, TokenCandidate, _num
from .utils_exec import CircuitBreaker429

logger = logging.getLogger("AlertBot")

# ----------------------------------------------------------------------
# Constants
# ----------------------------------------------------------------------
DEX_BASE = "https://api.dexscreener.com/latest/dex"
SEARCH_URL = DEX_BASE + "/search?q={}"
TOKEN_URL = DEX_BASE + "/tokens/{}"

DEFAULT_QUERIES = ("raydium", "meteora", "pump.fun", "orca")
DISCOVERY_MIN_LIQUIDITY = 1000.0
MAX_CANDIDATES = 10
MIN_CALL_SPACING = 1.2

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Accept": "application/json",
    "Origin": "https://dexscreener.com",
    "Referer": "https://dexscreener.com/",
}


# ----------------------------------------------------------------------
# Pure helpers
# ----------------------------------------------------------------------
def is_valid_mint(mint: str) -> bool:
    try:
        Pubkey.from_string(mint)
        return True
    except ValueError:
        return False


def volume_increase_pct(pair: Dict[str, Any]) -> float:
    """Run-rate comparison: (h1 * 24 / h24) * 100."""
    vol = pair.get("volume") or {}
    h1, h24 = _num(vol.get("h1")), _num(vol.get("h24"))
    if h24 <= 0:
        return 0.0
    return (h1 * 24) / h24 * 100


def socials_from_pair(pair: Dict[str, Any]) -> SocialLinks:
    info = pair.get("info") or {}
    by_type: Dict[str, str] = {}
    for s in info.get("socials") or []:
        if isinstance(s, dict) and s.get("type") and s.get("url"):
            by_type.setdefault(str(s["type"]).lower(), s["url"])
    websites = [w.get("url") for w in (info.get("websites") or []) if isinstance(w, dict) and w.get("url")]
    return SocialLinks(
        website=websites[0] if websites else None,
        twitter=by_type.get("twitter"),
        telegram=by_type.get("telegram"),
    )


def dedupe_pairs(pairs: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """One pair per base mint, keeping the higher-liquidity pair."""
    best: Dict[str, Dict[str, Any]] = {}
    for p in pairs:
        mint = ((p.get("baseToken") or {}).get("address") or "").strip()
        if not mint:
            continue
        existing = best.get(mint)
        liq = _num((p.get("liquidity") or {}).get("usd"))
        if existing is None or liq > _num((existing.get("liquidity") or {}).get("usd")):
            best[mint] = p
    return list(best.values())


def pair_to_candidate(pair: Dict[str, Any], *, narrative: Optional[str] = None,
                      volume_increase: Optional[float] = None) -> TokenCandidate:
    base = pair.get("baseToken") or {}
    vol = pair.get("volume") or {}
    change = volume_increase_pct(pair) if volume_increase is None else volume_increase
    symbol = base.get("symbol") or "UNKNOWN"
    return TokenCandidate(
        mint=base.get("address"),
        symbol=symbol,
        name=base.get("name") or symbol,
        narrative=narrative or f"Trending on DEX Screener with {change:.0f}% volume increase",
        liquidity=_num((pair.get("liquidity") or {}).get("usd")),
        volume_increase=change,
        price_usd=str(pair.get("priceUsd") or "0"),
        market_cap=_num(pair.get("fdv") or pair.get("marketCap")),
        pair_address=pair.get("pairAddress"),
        volume_1h=_num(vol.get("h1")),
        volume_6h=_num(vol.get("h6")),
        volume_24h=_num(vol.get("h24")),
        price_change_24h=_num((pair.get("priceChange") or {}).get("h24")),
        socials=socials_from_pair(pair),
    )


def pairs_to_candidates(
    pairs: Sequence[Dict[str, Any]],
    *,
    volume_threshold: float = 200.0,
    min_liquidity: float = DISCOVERY_MIN_LIQUIDITY,
    max_candidates: int = MAX_CANDIDATES,
) -> List[TokenCandidate]:
    out: List[TokenCandidate] = []
    for pair in dedupe_pairs(pairs):
        sym = (pair.get("baseToken") or {}).get("symbol", "?")
        if pair.get("chainId") != "solana":
            continue
        mint = (pair.get("baseToken") or {}).get("address") or ""
        if not is_valid_mint(mint):
            logger.debug("[Rejection] %s: invalid mint %r", sym, mint)
            continue

        vol = pair.get("volume") or {}
        if not vol.get("h24") or not vol.get("h1"):
            logger.debug("[Rejection] %s: Missing volume metrics (h1: %s, h24: %s)", sym, vol.get("h1"), vol.get("h24"))
            continue

        change = volume_increase_pct(pair)
        liquidity = _num((pair.get("liquidity") or {}).get("usd"))
        if change < volume_threshold:
            logger.debug("[Rejection] %s: Low volume spike %.0f%% (min %s)", sym, change, volume_threshold)
            continue
        if liquidity < min_liquidity:
            logger.debug("[Rejection] %s: Low liquidity $%.0f (min %.0f)", sym, liquidity, min_liquidity)
            continue

        logger.debug("[PASS] %s: Spike %.0f%%, Liq $%.0f", sym, change, liquidity)
        out.append(pair_to_candidate(pair, volume_increase=change))
        if len(out) >= max_candidates:
            break
    return out


# ----------------------------------------------------------------------
# Client
# ----------------------------------------------------------------------
class DexScreenerClient:
    def __init__(
        self,
        *,
        queries: Sequence[str] = DEFAULT_QUERIES,
        min_liquidity: float = DISCOVERY_MIN_LIQUIDITY,
        max_candidates: int = MAX_CANDIDATES,
        timeout: float = 5.0,
        http: Any = None,
    ):
        self.queries = tuple(queries)
        self.min_liquidity = float(min_liquidity)
        self.max_candidates = int(max_candidates)
        self.timeout = float(timeout)
        self._http = http or requests
        self._last_call = 0.0
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1)
        self._cache: TTLCache = TTLCache(maxsize=1_000, ttl=300)
        # 5 consecutive 429s -> 2-minute cooldown
        self._breaker = CircuitBreaker429(threshold=5, cooldown_seconds=120)

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    # ---- low level (runs on the executor thread) ----
    def _rate_limited_get(self, url: str) -> Optional[Any]:
        with self._lock:
            elapsed = time.time() - self._last_call
            if elapsed < MIN_CALL_SPACING:
                time.sleep(MIN_CALL_SPACING - elapsed)
            self._last_call = time.time()

        for attempt in range(3):
            try:
                resp = self._http.get(url, headers=HEADERS, timeout=self.timeout)

                if resp.status_code == 200:
                    self._breaker.record(is_429=False)
                    return resp.json()

                if resp.status_code == 429:
                    self._breaker.record(is_429=True)
                    wait = (2 ** attempt) + 2
                    logger.warning("DexScreener 429: backing off %s seconds (attempt %s)", wait, attempt + 1)
                    time.sleep(wait)
                    continue

                if resp.status_code == 404:
                    self._breaker.record(is_429=False)
                    return None

                logger.debug("DexScreener HTTP %s: %s", resp.status_code, resp.text[:200])
                return None

            except (requests.exceptions.RequestException, ValueError) as e:
                if attempt == 2:
                    logger.debug("DexScreener request failed after retries: %s", e)
                else:
                    time.sleep(2)
        return None

    def _get_cached(self, url: str) -> Optional[Any]:
        if self._breaker.is_open():
            logger.info("DexScreener circuit breaker OPEN (%.0fs left); skipping %s",
                        self._breaker.remaining_cooldown(), url)
            return None
        if url in self._cache:
            return self._cache[url]
        data = self._rate_limited_get(url)
        if data is not None:
            self._cache[url] = data
        return data

    def _search_sync(self, volume_threshold: float) -> List[TokenCandidate]:
        all_pairs: List[Dict[str, Any]] = []
        for q in self.queries:
            logger.debug("Searching DexScreener for: %s...", q)
            data = self._get_cached(SEARCH_URL.format(quote(q)))
            pairs = (data or {}).get("pairs") if isinstance(data, dict) else None
            if isinstance(pairs, list):
                all_pairs.extend(p for p in pairs if isinstance(p, dict))
            else:
                logger.warning("Search failed for %s", q)

        if not all_pairs:
            logger.warning("No pairs found in any search query")
            return []

        out = pairs_to_candidates(
            all_pairs,
            volume_threshold=volume_threshold,
            min_liquidity=self.min_liquidity,
            max_candidates=self.max_candidates,
        )
        logger.info("DexScreener discovery: %d pairs -> %d candidates", len(all_pairs), len(out))
        return out

    def _token_sync(self, mint: str) -> Optional[TokenCandidate]:
        data = self._get_cached(TOKEN_URL.format(mint))
        pairs = data.get("pairs") if isinstance(data, dict) else data
        if not isinstance(pairs, list):
            return None
        solana = [p for p in pairs if isinstance(p, dict) and p.get("chainId") == "solana"]
        if not solana:
            return None
        best = dedupe_pairs(solana)[0]
        return pair_to_candidate(best, narrative="Token found on DEX Screener", volume_increase=volume_increase_pct(best))

    # ---- async API ----
    async def scan(self, volume_threshold: float = 200.0) -> List[TokenCandidate]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._search_sync, float(volume_threshold))

    async def fetch_token_candidate(self, mint: str) -> Optional[TokenCandidate]:
        mint = (mint or "").strip()
        if not is_valid_mint(mint):
            logger.warning("Not a valid Solana mint: %r", mint)
            return None
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._token_sync, mint)


def make_dexscreener_client(cfg: Dict[str, Any]) -> DexScreenerClient:
    d = (cfg or {}).get("discovery", {}) or {}
    return DexScreenerClient(
        queries=d.get("queries") or DEFAULT_QUERIES,
        min_liquidity=float(d.get("min_liquidity_usd", DISCOVERY_MIN_LIQUIDITY)),
        max_candidates=int(d.get("max_candidates", MAX_CANDIDATES)),
        timeout=float(d.get("request_timeout", 5)),
    )


__all__ = [
    "DexScreenerClient",
    "make_dexscreener_client",
    "pairs_to_candidates",
    "pair_to_candidate",
    "dedupe_pairs",
    "volume_increase_pct",
    "is_valid_mint",
]
