from __future__ import annotations

import asyncio
import logging
import os
import random
import signal
import sqlite3
import traceback
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from solana_alert_bot_bundle.common.constants import stop_flag_path
from solana_alert_bot_bundle.common.feature_flags import is_enabled_ai, resolved_run_flags
from solana_alert_bot_bundle.utils.env_loader import ensure_appdata_env_bootstrap, load_env_first_found

from solana_alert_bot_bundle.alert_bot import database
from solana_alert_bot_bundle.alert_bot.ai_analyst import make_ai_analyst
from solana_alert_bot_bundle.alert_bot.alerts import AlertAssembler
from solana_alert_bot_bundle.alert_bot.bundle_detector import BundleDetector
from solana_alert_bot_bundle.alert_bot.dev_reputation import DevReputation
from solana_alert_bot_bundle.alert_bot.dexscreener_client import DexScreenerClient, make_dexscreener_client
from solana_alert_bot_bundle.alert_bot.eligibility import should_validate
from solana_alert_bot_bundle.alert_bot.holders import HolderAnalyzer
from solana_alert_bot_bundle.alert_bot.jupiter_client import JupiterClient
from solana_alert_bot_bundle.alert_bot.market_checks import MarketChecks
from solana_alert_bot_bundle.alert_bot.models import Alert, BotSettings
from solana_alert_bot_bundle.alert_bot.notifier import make_notifiers
from solana_alert_bot_bundle.alert_bot.onchain_security import QuickSecurityChecker
from solana_alert_bot_bundle.alert_bot.pump_tracker import PumpTracker
from solana_alert_bot_bundle.alert_bot.rpc_client import ChainRpcClient
from solana_alert_bot_bundle.alert_bot.rugcheck_client import make_rugcheck_client
from solana_alert_bot_bundle.alert_bot.tiered_validator import TieredValidator, ValidatorDeps
from solana_alert_bot_bundle.alert_bot.utils_exec import (
    _resolve_config_path,
    deduplicate_by_mint,
    load_config,
    resolve_db_path,
    setup_logging,
)

logger = logging.getLogger("AlertBot")


# ---------------------------------------------------------------
# Safe env helpers (tolerate quotes/underscores)
# ---------------------------------------------------------------
def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    v = v.strip().strip('"').strip("'")
    return v if v != "" else default


def _env_int(name: str, default: int) -> int:
    v = _env_str(name)
    if not v:
        return default
    try:
        return int(v.replace("_", ""))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    v = _env_str(name)
    if not v:
        return default
    try:
        return float(v.replace("_", ""))
    except ValueError:
        return default


AIOHTTP_CONN_LIMIT = _env_int("AIOHTTP_CONN_LIMIT", 30)


# ---------------------------------------------------------------
# Stop flag
# ---------------------------------------------------------------
def _should_stop() -> bool:
    try:
        return stop_flag_path().exists()
    except OSError:
        return False


def _request_stop() -> None:
    try:
        stop_flag_path().write_text("stop", encoding="utf-8")
    except OSError as e:
        logger.warning("Unable to write stop flag: %s", e)


def log_error_with_stacktrace(message: str, error: Exception) -> None:
    logger.error("%s: %s\n%s", message, error, traceback.format_exc())


# ---------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------
@dataclass
class BotServices:
    rpc: ChainRpcClient
    jupiter: JupiterClient
    discovery: DexScreenerClient
    validator: TieredValidator
    assembler: AlertAssembler
    store: Any
    notifiers: Dict[str, Any] = field(default_factory=dict)

    def close(self) -> None:
        self.discovery.close()


def _make_rpc(cfg: Dict[str, Any], session: aiohttp.ClientSession) -> ChainRpcClient:
    rpc_cfg = cfg.get("rpc") or {}
    return ChainRpcClient(
        rpc_cfg.get("url"),
        session=session,
        min_interval=float(rpc_cfg.get("min_interval", 0.15)),
        timeout=float(rpc_cfg.get("timeout", 10)),
        max_retries=int(rpc_cfg.get("max_retries", 3)),
    )


def build_deps(cfg: Dict[str, Any], session: aiohttp.ClientSession, store: Any,
               rpc: Optional[ChainRpcClient] = None) -> ValidatorDeps:
    """Construct every adapter once; they share ``session`` and the RPC client."""
    vcfg = cfg.get("validator") or {}
    jcfg = cfg.get("jupiter") or {}

    rpc = rpc or _make_rpc(cfg, session)
    if not rpc.configured:
        logger.warning("No RPC URL configured (rpc.url / HELIUS_RPC_URL / SOLANA_RPC_URL); on-chain checks will fall back to defaults")

    jupiter = JupiterClient(jcfg.get("base_url", "https://public.jupiterapi.com"),
                            session=session, timeout=float(jcfg.get("timeout", 10)))
    return ValidatorDeps(
        rugcheck=make_rugcheck_client(cfg, session),
        jupiter=jupiter,
        holders=HolderAnalyzer(rpc, balance_timeout=float(vcfg.get("whale_balance_timeout", 5.0))),
        security=QuickSecurityChecker(rpc),
        market=MarketChecks(rpc, jupiter, store),
        bundles=BundleDetector(rpc),
        devs=DevReputation(rpc),
        ai=make_ai_analyst(cfg, session) if is_enabled_ai(cfg) else None,
        pump=PumpTracker(rpc),
        tier1_timeout=float(vcfg.get("tier1_timeout", 4.0)),
    )


def build_services(cfg: Dict[str, Any], session: aiohttp.ClientSession, store: Any) -> BotServices:
    rpc = _make_rpc(cfg, session)
    deps = build_deps(cfg, session, store, rpc=rpc)
    validator = TieredValidator(deps)
    return BotServices(
        rpc=rpc,
        jupiter=deps.jupiter,
        discovery=make_dexscreener_client(cfg),
        validator=validator,
        assembler=AlertAssembler(validator, store),
        store=store,
        notifiers=make_notifiers(cfg, session),
    )


# ---------------------------------------------------------------
# One scan cycle
# ---------------------------------------------------------------
@dataclass
class ScanSummary:
    scanned: int = 0
    prefiltered: int = 0
    valid: int = 0
    delivered: int = 0
    errors: int = 0
    alerts: List[Alert] = field(default_factory=list)


def _passes_delivery_filters(alert: Alert, settings: BotSettings) -> bool:
    if alert.composite_score < settings.min_composite_score:
        return False
    if settings.whale_only and not alert.whale_activity.involved:
        return False
    return True


async def _deliver(services: BotServices, alert: Alert, dedup_hours: float) -> int:
    sent = 0
    for channel, notifier in services.notifiers.items():
        try:
            if await services.store.was_recently_sent(alert.token.mint, channel, dedup_hours):
                logger.debug("Skipping %s alert for %s (sent within %.0fh)", channel, alert.token.symbol, dedup_hours)
                continue
            if await notifier.send_alert(alert):
                await services.store.mark_sent(alert.token.mint, channel)
                sent += 1
        except (sqlite3.Error, OSError) as e:
            logger.warning("Delivery bookkeeping failed for %s/%s: %s", alert.token.mint, channel, e)
    return sent


async def run_scan_cycle(services: BotServices, cfg: Dict[str, Any]) -> ScanSummary:
    """Discover, pre-filter, validate sequentially, score and deliver."""
    settings = BotSettings.from_config(cfg)
    dedup_hours = float((cfg.get("alerts") or {}).get("dedup_hours", 24))
    summary = ScanSummary()

    candidates = deduplicate_by_mint(await services.discovery.scan(settings.min_volume_increase))
    logger.info("Scan cycle: %d candidate(s) from discovery", len(candidates))

    for token in candidates:
        ok, reason = should_validate(token, settings)
        if not ok:
            summary.prefiltered += 1
            continue
        summary.scanned += 1
        try:
            alert = await services.assembler.create_alert(token, settings)
        except Exception as e:
            # one bad token must not abort the batch
            summary.errors += 1
            log_error_with_stacktrace(f"Validation failed for {token.symbol} ({token.mint})", e)
            continue

        logger.info("%s: tier=%d score=%d valid=%s checks=%d/%d",
                    token.symbol, alert.tier_reached, alert.composite_score, alert.is_valid,
                    alert.passed_checks, alert.total_checks)
        if not alert.is_valid:
            continue
        summary.valid += 1
        if not _passes_delivery_filters(alert, settings):
            continue
        summary.alerts.append(alert)
        summary.delivered += await _deliver(services, alert, dedup_hours)

    telegram = services.notifiers.get("telegram")
    if telegram is not None and len(summary.alerts) > 1:
        await telegram.send_batch_summary(summary.alerts)

    logger.info("Scan summary: scanned=%d prefiltered=%d valid=%d alerts=%d delivered=%d errors=%d",
                summary.scanned, summary.prefiltered, summary.valid, len(summary.alerts),
                summary.delivered, summary.errors)
    return summary


async def check_single_token(services: BotServices, mint: str,
                             settings: Optional[BotSettings] = None) -> Optional[Alert]:
    """Single-token path: look the mint up on DexScreener and run the full pipeline (no pre-filter)."""
    token = await services.discovery.fetch_token_candidate(mint)
    if token is None:
        logger.warning("Token %s not found on DEX Screener", mint)
        return None
    return await services.assembler.create_alert(token, settings or BotSettings())


# ---------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------
async def _async_main_loop(config_path: Optional[str] = None, *, once: bool = False) -> None:
    if config_path is None:
        config_path = str(_resolve_config_path())
    ensure_appdata_env_bootstrap()
    load_env_first_found()

    config = load_config(config_path)
    setup_logging(config)
    logger.info("Starting alert scan loop (config: %s)", config_path)
    logger.info("RUN FLAGS: %s", resolved_run_flags(config))

    database.configure_db_path(resolve_db_path(config))
    await database.init_db()
    await database.prune_old_alerts(float((config.get("alerts") or {}).get("prune_hours", 168)))
    store = database.AlertStore()

    timeout = aiohttp.ClientTimeout(total=30, sock_connect=10, sock_read=20)
    connector = aiohttp.TCPConnector(limit=AIOHTTP_CONN_LIMIT, enable_cleanup_closed=True)

    services: Optional[BotServices] = None
    try:
        async with aiohttp.ClientSession(timeout=timeout, connector=connector) as session:
            services = build_services(config, session, store)

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.add_signal_handler(sig, _request_stop)
                except NotImplementedError:
                    pass  # Windows

            try:
                stop_flag_path().unlink(missing_ok=True)
            except OSError:
                pass

            while not _should_stop():
                try:
                    # Re-read config each iteration so edits take effect without a restart
                    config = load_config(config_path)
                    await run_scan_cycle(services, config)
                except (aiohttp.ClientError, asyncio.TimeoutError, sqlite3.Error, OSError) as e:
                    logger.error("Scan cycle error: %s", e, exc_info=True)

                if once:
                    break
                interval = _env_float("SCAN_CYCLE_SECONDS",
                                      float((config.get("settings") or {}).get("scan_interval", 60)))
                jitter = random.uniform(0.0, min(5.0, interval * 0.25))
                await asyncio.sleep(interval + jitter)

            logger.info("Stop requested; exiting main loop.")
    finally:
        if services is not None:
            services.close()
        await database.close_shared_db()


async def _async_check(mint: str, config_path: Optional[str] = None) -> Optional[Alert]:
    ensure_appdata_env_bootstrap()
    load_env_first_found()
    config = load_config(config_path)
    setup_logging(config)

    database.configure_db_path(resolve_db_path(config))
    await database.init_db()
    services: Optional[BotServices] = None
    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=30)) as session:
            services = build_services(config, session, database.AlertStore())
            return await check_single_token(services, mint, BotSettings.from_config(config))
    finally:
        if services is not None:
            services.close()
        await database.close_shared_db()


def main_loop(config_path: Optional[str] = None, *, once: bool = False) -> Optional[asyncio.Task]:
    """Synchronous entry point.
    If an event loop is already running, schedule the async loop as a Task and return it.
    Otherwise run it to completion and return None.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        logger.info("Detected running asyncio loop; scheduling main loop as a task.")
        return loop.create_task(_async_main_loop(config_path, once=once))
    asyncio.run(_async_main_loop(config_path, once=once))
    return None


def check_token(mint: str, config_path: Optional[str] = None) -> Optional[Alert]:
    return asyncio.run(_async_check(mint, config_path))


__all__ = [
    "BotServices",
    "ScanSummary",
    "build_deps",
    "build_services",
    "run_scan_cycle",
    "check_single_token",
    "main_loop",
    "check_token",
]
