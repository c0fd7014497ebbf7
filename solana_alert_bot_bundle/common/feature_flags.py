# solana_alert_bot_bundle/common/feature_flags.py
import os


def _env_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    v = str(v).strip().lower()
    return v in ("1", "true", "yes", "y", "on")


def is_enabled_ai(cfg: dict) -> bool:
    # Hard env kill-switch wins
    if _env_bool("FORCE_DISABLE_AI", False):
        return False
    cfg_toggle = bool((cfg.get("ai") or {}).get("enabled", True))
    has_key = bool(os.getenv("GEMINI_API_KEY") or os.getenv("GROQ_API_KEY"))
    return cfg_toggle and has_key


def is_enabled_telegram(cfg: dict) -> bool:
    if _env_bool("FORCE_DISABLE_TELEGRAM", False):
        return False
    cfg_toggle = bool((cfg.get("alerts") or {}).get("telegram_enabled", False))
    settings_toggle = bool((cfg.get("settings") or {}).get("enable_telegram_alerts", False))
    creds_ok = bool(os.getenv("TELEGRAM_BOT_TOKEN")) and bool(os.getenv("TELEGRAM_CHAT_ID"))
    return (cfg_toggle or settings_toggle) and creds_ok


def is_enabled_webhook(cfg: dict) -> bool:
    if _env_bool("FORCE_DISABLE_WEBHOOK", False):
        return False
    alerts_cfg = cfg.get("alerts") or {}
    url = alerts_cfg.get("webhook_url") or os.getenv("ALERT_WEBHOOK_URL")
    return bool(alerts_cfg.get("webhook_enabled", False)) and bool(url)


def resolved_run_flags(cfg: dict) -> dict:
    # unify & truthify what we print in logs
    return {
        "ai": is_enabled_ai(cfg),
        "telegram": is_enabled_telegram(cfg),
        "webhook": is_enabled_webhook(cfg),
        "env": {
            "FORCE_DISABLE_AI": _env_bool("FORCE_DISABLE_AI", False),
            "FORCE_DISABLE_TELEGRAM": _env_bool("FORCE_DISABLE_TELEGRAM", False),
            "FORCE_DISABLE_WEBHOOK": _env_bool("FORCE_DISABLE_WEBHOOK", False),
        },
    }
