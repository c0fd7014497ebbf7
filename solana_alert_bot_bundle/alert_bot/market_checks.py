# solana_alert_bot_bundle/alert_bot/market_checks.py
"""
Freshness, transaction-pattern, liquidity-stability and market-context checks.

All four fail open: an error reads as fresh, organic, stable or risk-on.
Liquidity and SOL price state is a single rolling record per key in the
storage collaborator (``kv_state`` table in production).
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from statistics import mean, pvariance
from typing import Any, Callable, List, Optional, Protocol

import aiohttp

from .models import FreshnessResult, LiquidityStability, MarketContext, TxPatternResult
from .rpc_client import ChainRpcClient, RpcError

logger = logging.getLogger(__name__)

MAX_AGE_MINUTES = 120
PATTERN_WINDOW = 50
INTERVAL_WINDOW = 20
DRAIN_PCT = -20.0
DRAIN_WINDOW_MINUTES = 30
SOL_HISTORY_KEY = "sol-price-history"
SOL_HISTORY_LEN = 20

_ERRORS = (RpcError, aiohttp.ClientError, asyncio.TimeoutError, KeyError, TypeError, ValueError)
_STATE_ERRORS = (sqlite3.Error, OSError, TypeError, ValueError)


class StateStore(Protocol):
    async def get_state(self, key: str) -> Any: ...

    async def set_state(self, key: str, value: Any) -> None: ...


class PriceSource(Protocol):
    async def get_sol_price_usd(self) -> Optional[float]: ...


def liquidity_key(mint: str) -> str:
    return f"liquidity-{mint}"


def detect_tx_patterns(block_times: List[int]) -> TxPatternResult:
    """``block_times`` newest first, as returned by getSignaturesForAddress."""
    patterns: List[str] = []

    if len(block_times) >= PATTERN_WINDOW:
        span_minutes = (block_times[0] - block_times[-1]) / 60
        if span_minutes < 5:
            patterns.append("High-frequency trading detected")

    recent = block_times[:INTERVAL_WINDOW]
    intervals = [recent[i - 1] - recent[i] for i in range(1, len(recent))]
    if len(intervals) > 5:
        avg = mean(intervals)
        if pvariance(intervals, mu=avg) < 10 and avg < 60:
            patterns.append("Regular transaction intervals (bot pattern)")

    return TxPatternResult(is_organic=not patterns, suspicious_patterns=patterns)


class MarketChecks:
    def __init__(self, rpc: ChainRpcClient, prices: PriceSource, store: StateStore,
                 *, clock: Callable[[], float] = time.time):
        self.rpc = rpc
        self.prices = prices
        self.store = store
        self.clock = clock

    # ---------------- freshness ----------------
    async def check_freshness(self, mint: str) -> FreshnessResult:
        try:
            sigs = await self.rpc.get_signatures_for_address(mint, limit=1)
        except _ERRORS as e:
            logger.debug("Freshness check error for %s: %s", mint, e)
            return FreshnessResult()
        if not sigs or not sigs[0].get("blockTime"):
            return FreshnessResult()
        age = int((self.clock() - float(sigs[0]["blockTime"])) // 60)
        return FreshnessResult(is_fresh=age < MAX_AGE_MINUTES, age_minutes=age)

    # ---------------- tx patterns ----------------
    async def analyze_tx_patterns(self, mint: str) -> TxPatternResult:
        try:
            sigs = await self.rpc.get_signatures_for_address(mint, limit=PATTERN_WINDOW)
        except _ERRORS as e:
            logger.debug("Transaction pattern analysis error for %s: %s", mint, e)
            return TxPatternResult()
        times = [int(s["blockTime"]) for s in sigs if s.get("blockTime")]
        return detect_tx_patterns(times)

    # ---------------- liquidity stability ----------------
    async def check_liquidity_stability(self, mint: str, current_liquidity: float) -> LiquidityStability:
        key = liquidity_key(mint)
        now = self.clock()
        try:
            previous = await self.store.get_state(key)
            await self.store.set_state(key, {"liquidity": float(current_liquidity), "timestamp": now})
        except _STATE_ERRORS as e:
            logger.warning("Liquidity stability state unavailable for %s: %s", mint, e)
            return LiquidityStability()

        if not isinstance(previous, dict):
            return LiquidityStability(is_stable=True, liquidity_change=0.0)

        try:
            prev_liq = float(previous["liquidity"])
            elapsed_min = (now - float(previous["timestamp"])) / 60
        except (KeyError, TypeError, ValueError):
            return LiquidityStability()
        if prev_liq <= 0:
            return LiquidityStability()

        change = (float(current_liquidity) - prev_liq) / prev_liq * 100
        if change < DRAIN_PCT and elapsed_min < DRAIN_WINDOW_MINUTES:
            return LiquidityStability(
                is_stable=False,
                liquidity_change=change,
                warning=f"Liquidity dropped {abs(change):.1f}% in {elapsed_min:.0f} minutes",
            )
        return LiquidityStability(is_stable=True, liquidity_change=change)

    # ---------------- market context ----------------
    async def check_market_context(self) -> MarketContext:
        try:
            price = await self.prices.get_sol_price_usd()
        except _ERRORS as e:
            logger.debug("SOL price fetch failed: %s", e)
            return MarketContext()
        if not price:
            return MarketContext()

        try:
            history = await self.store.get_state(SOL_HISTORY_KEY)
            history = [float(p) for p in history] if isinstance(history, list) else []
            history.append(float(price))
            history = history[-SOL_HISTORY_LEN:]
            await self.store.set_state(SOL_HISTORY_KEY, history)
        except _STATE_ERRORS as e:
            logger.warning("Market context state unavailable: %s", e)
            return MarketContext()

        return market_context_from_history(history)


def market_context_from_history(history: List[float]) -> MarketContext:
    if len(history) < 5:
        return MarketContext()
    older = mean(history[:5])
    recent = mean(history[-5:])
    if older <= 0:
        return MarketContext()
    change = (recent - older) / older * 100

    trend = "neutral"
    if change > 2:
        trend = "bullish"
    elif change < -2:
        trend = "bearish"
    should_trade = change > -5
    return MarketContext(is_risk_on=should_trade, sol_trend=trend, should_trade=should_trade)
