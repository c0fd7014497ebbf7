# solana_alert_bot_bundle/alert_bot/utils_exec.py
# Config, logging, rate-limit and small formatting helpers shared by the bot runtime.
from __future__ import annotations

import copy
import logging
import math
import os
import time
from dataclasses import asdict, is_dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from solders.pubkey import Pubkey
from solders.signature import Signature

from solana_alert_bot_bundle.common.constants import (
    APP_NAME,
    config_path,
    db_path,
    logs_dir,
)

logger = logging.getLogger("AlertBot")

# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------
DEFAULT_CONFIG: Dict[str, Any] = {
    "logging": {
        "file": None,  # resolved to <appdata>/logs/bot.log
        "log_level": "INFO",
        "log_rotation_size_mb": 10,
        "log_max_files": 5,
    },
    "settings": {
        "min_liquidity": 50000,
        "max_top_holder_percent": 10,
        "min_volume_increase": 200,
        "scan_interval": 60,
        "enable_telegram_alerts": False,
        "min_composite_score": 50,
        "min_social_score": 30,
        "whale_only": False,
        "ai_mode": "balanced",
    },
    "discovery": {
        "queries": ["raydium", "meteora", "pump.fun", "orca"],
        "max_candidates": 10,
        "min_liquidity_usd": 1000,
        "request_timeout": 5,
    },
    "rpc": {
        "url": None,  # falls back to HELIUS_RPC_URL / SOLANA_RPC_URL
        "min_interval": 0.15,
        "timeout": 10,
        "max_retries": 3,
    },
    "rugcheck": {
        "base_url": "https://api.rugcheck.xyz",
        "timeout": 20,
        "min_interval": 1.0,
        "max_retries": 3,
    },
    "jupiter": {
        "base_url": "https://public.jupiterapi.com",
        "timeout": 10,
    },
    "ai": {
        "enabled": True,
        "gemini_model": "gemini-flash-latest",
        "groq_model": "llama-3.3-70b-versatile",
        "max_inline_retry_delay": 5.0,
        "retry_backoff_base": 1.0,
        "timeout": 30,
    },
    "validator": {
        "tier1_timeout": 4.0,
        "whale_balance_timeout": 5.0,
    },
    "alerts": {
        "telegram_enabled": False,
        "webhook_enabled": False,
        "webhook_url": None,
        "dedup_hours": 24,
        "prune_hours": 168,
    },
    "database": {
        "path": None,  # resolved to <appdata>/alerts.sqlite3
    },
}

# -----------------------------------------------------------------------------
# Config & logging helpers
# -----------------------------------------------------------------------------
_missing_cfg_last_log_ts: float = 0.0


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _resolve_config_path(path: Optional[str] = None) -> Path:
    candidates: List[Path] = []
    if path:
        candidates.append(Path(path))
    candidates.append(config_path())
    candidates.append(Path.cwd() / "config.yaml")
    for c in candidates:
        if c.exists():
            return c
    if path:
        return Path(path)
    return config_path()


def _create_default_config(cfg_path: Path) -> None:
    try:
        if not cfg_path.exists() or (cfg_path.stat().st_size == 0):
            cfg_path.parent.mkdir(parents=True, exist_ok=True)
            default_cfg = copy.deepcopy(DEFAULT_CONFIG)
            default_cfg["logging"]["file"] = str(logs_dir() / "bot.log")
            default_cfg["database"]["path"] = str(db_path())
            cfg_path.write_text("# Auto-generated default config\n" + yaml.safe_dump(default_cfg, sort_keys=False),
                                encoding="utf-8")
    except OSError as e:
        logger.debug("Could not create default config at %s: %s", cfg_path, e)


def load_config(path: str | None = None) -> Dict[str, Any]:
    """
    Load config.yaml (explicit path, then appdata, then ./config.yaml). A default
    file is written on first run. Missing sections are filled from DEFAULT_CONFIG
    so callers can index sections without guarding every key.
    """
    global _missing_cfg_last_log_ts
    cfg_path = _resolve_config_path(path)
    _create_default_config(cfg_path)
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        logger.debug("Loaded configuration from %s", cfg_path)
    except (OSError, yaml.YAMLError) as e:
        now = time.time()
        if now - _missing_cfg_last_log_ts > 30:
            logger.error("Failed to load config from %s: %s", cfg_path, e)
            _missing_cfg_last_log_ts = now
        loaded = {}
    if not isinstance(loaded, dict):
        loaded = {}
    return _deep_merge(DEFAULT_CONFIG, loaded)


_LOG_SENTINEL_ATTR = "_solana_alert_logging_file"


def setup_logging(config: dict[str, Any] | None) -> logging.Logger:
    log_cfg = (config or {}).get("logging", {}) if isinstance(config, dict) else {}

    raw_file = log_cfg.get("file") or (logs_dir() / "bot.log")
    log_file = Path(raw_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    level_name = str(log_cfg.get("log_level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    max_size_mb = int(log_cfg.get("log_rotation_size_mb", 10))
    max_files = int(log_cfg.get("log_max_files", 5))

    root = logging.getLogger()
    root.setLevel(level)

    if getattr(root, _LOG_SENTINEL_ATTR, None) == str(log_file):
        for h in root.handlers:
            h.setLevel(level)
        return logging.getLogger("AlertBot")

    file_handler: Optional[RotatingFileHandler] = None
    for h in list(root.handlers):
        if isinstance(h, RotatingFileHandler) and getattr(h, "baseFilename", None) == str(log_file):
            file_handler = h
            break
    if file_handler is None:
        file_handler = RotatingFileHandler(
            str(log_file),
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=max_files,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        file_handler.setLevel(level)
        root.addHandler(file_handler)
    else:
        file_handler.setLevel(level)

    has_console = any(isinstance(h, logging.StreamHandler) and not hasattr(h, "baseFilename") for h in root.handlers)
    if not has_console:
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        sh.setLevel(level)
        root.addHandler(sh)

    # third-party chatter
    logging.getLogger("aiosqlite").setLevel(max(level, logging.INFO))
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))

    for name in ("AlertBot", "SolanaAlertBot"):
        lx = logging.getLogger(name)
        lx.handlers.clear()
        lx.propagate = True
        lx.setLevel(level)

    setattr(root, _LOG_SENTINEL_ATTR, str(log_file))
    logging.getLogger("AlertBot").info("Logging configured: level=%s, file=%s", level_name, str(log_file))
    return logging.getLogger("AlertBot")


def resolve_db_path(config: Optional[Dict[str, Any]] = None) -> str:
    """Configured database.path (env vars and ~ expanded), else the appdata default."""
    raw = ((config or {}).get("database") or {}).get("path") or os.getenv("ALERT_DB_PATH")
    if raw:
        return os.path.abspath(os.path.expanduser(os.path.expandvars(str(raw))))
    return str(db_path())


# -----------------------------------------------------------------------------
# JSON helpers
# -----------------------------------------------------------------------------
def custom_json_encoder(obj: object) -> Any:
    if isinstance(obj, (Pubkey, Signature)):
        return str(obj)
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def deduplicate_by_mint(tokens: List[Any]) -> List[Any]:
    """Keep the first occurrence of each mint (works on dicts or objects with ``.mint``)."""
    seen: set[str] = set()
    out: List[Any] = []
    for t in tokens or []:
        mint = t.get("mint") if isinstance(t, dict) else getattr(t, "mint", None)
        if mint and mint not in seen:
            seen.add(mint)
            out.append(t)
    return out


# -----------------------------------------------------------------------------
# Circuit-breaker helper
# -----------------------------------------------------------------------------
class CircuitBreaker429:
    def __init__(self, threshold: int = 5, cooldown_seconds: int = 60):
        self.threshold = int(threshold)
        self.cooldown_seconds = int(cooldown_seconds)
        self._count = 0
        self._last_trip_time: Optional[float] = None

    def record(self, is_429: bool) -> None:
        if is_429:
            self._count += 1
            if self._count >= self.threshold:
                self._last_trip_time = time.time()
        else:
            self._count = 0
            self._last_trip_time = None

    def is_open(self) -> bool:
        if self._last_trip_time is None:
            return False
        if (time.time() - self._last_trip_time) > self.cooldown_seconds:
            self._count = 0
            self._last_trip_time = None
            return False
        return True

    def remaining_cooldown(self) -> float:
        if self._last_trip_time is None:
            return 0.0
        return max(0.0, self.cooldown_seconds - (time.time() - self._last_trip_time))


# ---------- formatting helpers ----------------------------------------------------------
def format_usd(value: float | int | None, *, compact: bool = False, decimals: int = 2) -> str:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return "$0.00"

    if not math.isfinite(num):
        return "$0.00"

    sign = "-" if num < 0 else ""
    n = abs(num)

    if compact:
        if n >= 1_000_000_000:
            return f"{sign}${n/1_000_000_000:.{decimals}f}B"
        if n >= 1_000_000:
            return f"{sign}${n/1_000_000:.{decimals}f}M"
        if n >= 1_000:
            return f"{sign}${n/1_000:.{decimals}f}K"
        return f"{sign}${n:.{decimals}f}"

    return f"{sign}${n:,.{decimals}f}"


__all__ = [
    "APP_NAME",
    "DEFAULT_CONFIG",
    "load_config",
    "setup_logging",
    "resolve_db_path",
    "custom_json_encoder",
    "deduplicate_by_mint",
    "CircuitBreaker429",
    "format_usd",
]
