# solana_alert_bot_bundle/utils/env_loader.py
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from solana_alert_bot_bundle.common.constants import APP_NAME, appdata_dir

logger = logging.getLogger(__name__)


def _exe_dir() -> Path:
    if getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS"):
        return Path(sys.argv[0]).resolve().parent
    return Path(__file__).resolve().parents[2]


def _appdata_env_path() -> Path:
    return appdata_dir() / ".env"


def _candidate_env_paths() -> list[Path]:
    return [
        Path.cwd() / ".env",  # project CWD (dev)
        _exe_dir() / ".env",  # alongside the checkout / binary
        _appdata_env_path(),  # user appdata
    ]


def load_env_first_found(override: bool = False) -> Optional[Path]:
    """
    Priority:
      1) DOTENV_PATH env var (if set and exists)
      2) Per-user appdata path: <appdata>/SolanaAlertBot/.env
      3) Fallback to candidate list (CWD, checkout dir, appdata)
    Returns the Path loaded or None.
    """
    dotenv_override = os.environ.get("DOTENV_PATH")
    if dotenv_override:
        p = Path(dotenv_override)
        if p.exists():
            load_dotenv(dotenv_path=str(p), override=override)
            logger.info("Loaded .env from DOTENV_PATH: %s", str(p))
            return p
        logger.warning("DOTENV_PATH set but file not found: %s", str(p))

    preferred = _appdata_env_path()
    if preferred.exists():
        load_dotenv(dotenv_path=str(preferred), override=override)
        logger.info("Loaded preferred .env from appdata: %s", str(preferred))
        return preferred

    for p in _candidate_env_paths():
        if p.exists():
            load_dotenv(dotenv_path=str(p), override=override)
            logger.info("Loaded .env from candidate path: %s", str(p))
            return p

    logger.warning("No .env file found by loader.")
    return None


def ensure_appdata_env_bootstrap() -> Path:
    """Write a skeleton .env into appdata on first run so users know which keys exist."""
    dst = _appdata_env_path()
    dst.parent.mkdir(parents=True, exist_ok=True)
    if dst.exists():
        return dst

    dst.write_text(
        "HELIUS_RPC_URL=\n"
        "GEMINI_API_KEY=\n"
        "GROQ_API_KEY=\n"
        "RUGCHECK_API_KEY=\n"
        "TELEGRAM_BOT_TOKEN=\n"
        "TELEGRAM_CHAT_ID=\n"
        "ALERT_WEBHOOK_URL=\n",
        encoding="utf-8",
    )
    logger.info("Created skeleton %s .env at %s", APP_NAME, str(dst))
    return dst


__all__ = [
    "load_env_first_found",
    "ensure_appdata_env_bootstrap",
]
