# solana_alert_bot_bundle/alert_bot/__init__.py
from __future__ import annotations

import importlib as _importlib

__all__ = [
    "ai_analyst",
    "alerts",
    "bundle_detector",
    "database",
    "dev_reputation",
    "dexscreener_client",
    "eligibility",
    "holders",
    "jupiter_client",
    "market_checks",
    "models",
    "narrative",
    "notifier",
    "onchain_security",
    "pump_tracker",
    "rpc_client",
    "rugcheck_client",
    "scoring_engine",
    "tiered_validator",
    "utils_exec",
]


def __getattr__(name: str):
    if name in __all__:
        return _importlib.import_module(f"{__name__}.{name}")
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(list(globals().keys()) + __all__)
