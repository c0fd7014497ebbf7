# solana_alert_bot_bundle/utils/__init__.py
# -*- coding: utf-8 -*-
from __future__ import annotations

from .env_loader import (
    ensure_appdata_env_bootstrap,
    load_env_first_found,
)

__all__ = [
    "load_env_first_found",
    "ensure_appdata_env_bootstrap",
]
