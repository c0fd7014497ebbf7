# solana_alert_bot_bundle/common/constants.py
from __future__ import annotations

import os
import platform
from pathlib import Path
from typing import Optional, Final

# Public API re-exported by common/__init__.py
__all__ = [
    "APP_NAME",
    "local_appdata_dir",
    "appdata_dir",
    "logs_dir",
    "config_path",
    "db_path",
    "stop_flag_path",
    "SOL_MINT",
    "USDC_MINT",
    "PUMP_FUN_PROGRAM_ID",
    "LAMPORTS_PER_SOL",
]

# -----------------------------------------------------------------------------
# App naming
# -----------------------------------------------------------------------------
APP_NAME: Final[str] = "SolanaAlertBot"  # used as the directory name across platforms

# -----------------------------------------------------------------------------
# Well-known chain addresses
# -----------------------------------------------------------------------------
SOL_MINT: Final[str] = "So11111111111111111111111111111111111111112"
USDC_MINT: Final[str] = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
PUMP_FUN_PROGRAM_ID: Final[str] = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
LAMPORTS_PER_SOL: Final[int] = 1_000_000_000

# -----------------------------------------------------------------------------
# Platform-aware base dirs
# -----------------------------------------------------------------------------
def _windows_local_appdata() -> Optional[Path]:
    """Return Windows LocalAppData (LOCALAPPDATA), or None."""
    val = os.getenv("LOCALAPPDATA") or os.getenv("LOCAL_APPDATA")
    if not val:
        return None
    try:
        p = Path(val).expanduser()
        if p.exists() or p.parent.exists():
            return p
    except OSError:
        pass
    return None


def _windows_roaming_appdata() -> Optional[Path]:
    """Return Windows Roaming (APPDATA), or None."""
    val = os.getenv("APPDATA")
    if not val:
        return None
    try:
        p = Path(val).expanduser()
        if p.exists() or p.parent.exists():
            return p
    except OSError:
        pass
    return None


def _xdg_data_home() -> Path:
    val = os.getenv("XDG_DATA_HOME")
    return Path(val).expanduser() if val else (Path.home() / ".local" / "share")


def local_appdata_dir() -> Path:
    r"""
    Cross-platform "local app data" root for this user.

    - Windows:  %LOCALAPPDATA%
    - macOS:    ~/Library/Application Support
    - Linux:    ~/.local/share
    """
    system = platform.system().lower()
    if system.startswith("win"):
        return _windows_local_appdata() or _windows_roaming_appdata() or Path.home()
    if system == "darwin":
        return Path.home() / "Library" / "Application Support"
    return _xdg_data_home()


def appdata_dir() -> Path:
    """Full application data directory (``<local appdata>/SolanaAlertBot``)."""
    return local_appdata_dir() / APP_NAME


def logs_dir() -> Path:
    """Directory where rotating logs are stored."""
    return appdata_dir() / "logs"


def config_path() -> Path:
    """Default location for YAML config."""
    return appdata_dir() / "config.yaml"


def db_path() -> Path:
    """Default SQLite DB location (alerts + rolling check state)."""
    return appdata_dir() / "alerts.sqlite3"


def stop_flag_path() -> Path:
    """Touching this file asks the scan loop to exit after the current cycle."""
    return appdata_dir() / "bot_stop_flag.txt"


__doc__ = r"""
Cross-platform paths for the SolanaAlertBot app.

Paths:
  Windows:  %LOCALAPPDATA%\SolanaAlertBot\{config.yaml, alerts.sqlite3, logs\}
  macOS:    ~/Library/Application Support/SolanaAlertBot/...
  Linux:    ~/.local/share/SolanaAlertBot/...
"""
