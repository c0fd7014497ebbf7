# tests/test_utils_exec.py
"""
Unit tests for config loading and shared helpers
"""
import json
from unittest.mock import patch

import pytest
import yaml

from solana_alert_bot_bundle.alert_bot.models import BotSettings, TokenCandidate
from solana_alert_bot_bundle.alert_bot.utils_exec import (
    CircuitBreaker429,
    custom_json_encoder,
    deduplicate_by_mint,
    format_usd,
    load_config,
    resolve_db_path,
)


class TestConfig:
    """config.yaml loading"""

    def test_user_values_merge_over_defaults(self, tmp_path):
        cfg_file = tmp_path / "config.yaml"
        cfg_file.write_text(yaml.safe_dump({"settings": {"min_liquidity": 75000, "ai_mode": "aggressive"}}))

        cfg = load_config(str(cfg_file))

        assert cfg["settings"]["min_liquidity"] == 75000
        assert cfg["settings"]["max_top_holder_percent"] == 10
        assert cfg["discovery"]["max_candidates"] == 10

        settings = BotSettings.from_config(cfg)
        assert settings.min_liquidity == 75000
        assert settings.ai_mode == "aggressive"

    def test_default_file_is_written(self, tmp_path):
        cfg_file = tmp_path / "fresh" / "config.yaml"
        with patch("solana_alert_bot_bundle.alert_bot.utils_exec.config_path", return_value=cfg_file):
            cfg = load_config(str(cfg_file))

        assert cfg_file.exists()
        assert cfg["settings"]["scan_interval"] == 60

    def test_unknown_ai_mode_falls_back(self):
        assert BotSettings.from_config({"settings": {"ai_mode": "yolo"}}).ai_mode == "balanced"

    def test_db_path_expands_user(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        path = resolve_db_path({"database": {"path": "~/alerts.db"}})
        assert path == str(tmp_path / "alerts.db")


class TestCircuitBreaker429:
    """Consecutive 429 tracking"""

    def test_trips_after_threshold(self):
        cb = CircuitBreaker429(threshold=3, cooldown_seconds=60)
        for _ in range(2):
            cb.record(is_429=True)
        assert cb.is_open() is False
        cb.record(is_429=True)
        assert cb.is_open() is True
        assert 0 < cb.remaining_cooldown() <= 60

    def test_success_resets(self):
        cb = CircuitBreaker429(threshold=1, cooldown_seconds=60)
        cb.record(is_429=True)
        cb.record(is_429=False)
        assert cb.is_open() is False

    def test_cooldown_expires(self):
        cb = CircuitBreaker429(threshold=1, cooldown_seconds=60)
        with patch("solana_alert_bot_bundle.alert_bot.utils_exec.time.time", return_value=1000.0):
            cb.record(is_429=True)
        with patch("solana_alert_bot_bundle.alert_bot.utils_exec.time.time", return_value=1061.0):
            assert cb.is_open() is False


class TestHelpers:
    """Small formatting and dedup helpers"""

    @pytest.mark.parametrize("value,kwargs,expected", [
        (1234.5, {}, "$1,234.50"),
        (450000, {"decimals": 0}, "$450,000"),
        (2_500_000, {"compact": True}, "$2.50M"),
        (-1500, {"compact": True, "decimals": 1}, "-$1.5K"),
        (None, {}, "$0.00"),
        (float("nan"), {}, "$0.00"),
    ])
    def test_format_usd(self, value, kwargs, expected):
        assert format_usd(value, **kwargs) == expected

    def test_dedupe_keeps_first(self):
        a = TokenCandidate(mint="A", symbol="ONE")
        tokens = [a, TokenCandidate(mint="A", symbol="TWO"), {"mint": "B"}, {"mint": None}]
        assert deduplicate_by_mint(tokens) == [a, {"mint": "B"}]

    def test_json_encoder_handles_sets_and_dataclasses(self):
        out = json.loads(json.dumps({"s": {"b", "a"}, "t": TokenCandidate(mint="M", symbol="S")}, default=custom_json_encoder))
        assert out["s"] == ["a", "b"]
        assert out["t"]["mint"] == "M"

    def test_json_encoder_rejects_unknown(self):
        with pytest.raises(TypeError):
            custom_json_encoder(object())
