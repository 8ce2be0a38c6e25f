"""
Tests: settings.yaml integrity and BotSettings resolution (env overrides,
validation).
"""

from pathlib import Path

import pytest
import yaml

from tradeguard.core.exceptions import ConfigError
from tradeguard.utils import BotSettings, ConfigLoader, load_settings, settings_from_dict

PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"


def load_yaml(filename: str) -> dict:
    path = CONFIG_DIR / filename
    assert path.exists(), f"Config file not found: {path}"
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


# ── settings.yaml ─────────────────────────────────────────────────────────────

def test_settings_has_required_sections():
    cfg = load_yaml("settings.yaml")
    for section in ["trading", "sessions", "hard_filter", "circuit_breaker",
                    "monitoring", "broker", "candles", "telegram", "decision", "paths", "logging"]:
        assert section in cfg, f"settings.yaml missing section: {section}"


def test_settings_defaults_resolve():
    settings = settings_from_dict(load_yaml("settings.yaml"), environ={})
    assert settings.supported_symbols == ["XAUUSD", "EURUSD", "GBPUSD", "USDJPY"]
    assert settings.trading_sessions == "14:00-23:00,19:00-04:00"
    assert settings.timezone == "Asia/Jakarta"
    assert settings.swing_lookback == 8
    assert settings.range_multiplier == 1.5
    assert settings.body_ratio == 0.7
    assert settings.max_losses_per_day == 3
    assert settings.monitoring_interval_minutes == 2.0


def test_load_settings_from_directory(monkeypatch):
    for name in ("SUPPORTED_PAIRS", "MAX_LOSSES_PER_DAY", "TRADING_SESSIONS", "OHLCV_API_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings("settings", str(CONFIG_DIR))
    assert isinstance(settings, BotSettings)
    assert settings.candles_base_url == "https://api.mt5.flx.web.id"


def test_missing_settings_file_uses_defaults(tmp_path):
    settings = load_settings("settings", str(tmp_path))
    assert settings.supported_symbols == []
    assert settings.state_dir == "data"


# ── ConfigLoader ─────────────────────────────────────────────────────────────

def test_config_loader_dot_path(tmp_path):
    (tmp_path / "demo.yaml").write_text("a:\n  b:\n    c: 5\n", encoding="utf-8")
    loader = ConfigLoader(str(tmp_path))
    assert loader.get("demo", "a.b.c") == 5
    assert loader.get("demo", "a.x", "fallback") == "fallback"
    assert loader.get("absent", "a", 1) == 1


def test_config_loader_required_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigLoader(str(tmp_path)).load("nothing")


def test_config_loader_caches_first_read(tmp_path):
    path = tmp_path / "demo.yaml"
    path.write_text("v: 1\n", encoding="utf-8")
    loader = ConfigLoader(str(tmp_path))
    assert loader.get("demo", "v") == 1
    path.write_text("v: 2\n", encoding="utf-8")
    assert loader.get("demo", "v") == 1


# ── environment overrides ────────────────────────────────────────────────────

def test_env_overrides_win():
    env = {
        "SUPPORTED_PAIRS": "xauusd, eurusd",
        "TRADING_SESSIONS": "08:00-12:00",
        "MAX_LOSSES_PER_DAY": "2",
        "SWEEP_ATR_MULTIPLIER": "2.0",
        "BROKER_API_KEY": "k",
        "DECISION_COMMAND": "",
    }
    settings = settings_from_dict({"decision": {"command": "cat"}}, environ=env)
    assert settings.supported_symbols == ["XAUUSD", "EURUSD"]
    assert settings.trading_sessions == "08:00-12:00"
    assert settings.max_losses_per_day == 2
    assert settings.range_multiplier == 2.0
    assert settings.broker_api_key == "k"
    # empty env values do not override
    assert settings.decision_command == "cat"


@pytest.mark.parametrize("config, env", [
    ({}, {"MAX_LOSSES_PER_DAY": "three"}),
    ({"hard_filter": {"swing_lookback": 0}}, {}),
    ({"circuit_breaker": {"max_losses_per_day": 0}}, {}),
    ({"trading": {"volume": "lots"}}, {}),
    ({"trading": ["not", "a", "mapping"]}, {}),
])
def test_invalid_values_raise_config_error(config, env):
    with pytest.raises(ConfigError):
        settings_from_dict(config, environ=env)


def test_settings_are_frozen():
    settings = settings_from_dict({}, environ={})
    with pytest.raises(AttributeError):
        settings.max_losses_per_day = 10
