"""
Configuration loader utility.
Loads YAML configuration files and overlays the bot's environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from ..core.exceptions import ConfigError


class ConfigLoader:
    """Load and manage configuration files."""

    def __init__(self, config_dir: str = "config"):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Path to configuration directory
        """
        self.config_dir = Path(config_dir)
        self._configs: Dict[str, Dict[str, Any]] = {}

    def load(self, config_name: str, required: bool = True) -> Optional[Dict[str, Any]]:
        """
        Load a configuration file.

        Args:
            config_name: Name of config file (without .yaml extension)
            required: If True, raise error if file not found

        Returns:
            Configuration dictionary or None if not found and not required

        Raises:
            FileNotFoundError: If required config file not found
            yaml.YAMLError: If config file is invalid YAML
        """
        if config_name in self._configs:
            return self._configs[config_name]

        config_path = self.config_dir / f"{config_name}.yaml"

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            if required:
                raise FileNotFoundError(f"Required config file not found: {config_path}")
            return None
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Error parsing config file {config_path}: {e}")

        self._configs[config_name] = config
        return config

    def get(self, config_name: str, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Example:
            >>> loader = ConfigLoader()
            >>> loader.get("settings", "monitoring.interval_minutes", 2)
        """
        config = self.load(config_name, required=False)
        if config is None:
            return default

        value = config
        for key in key_path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value


# Global config loader instance
_config_loader: Optional[ConfigLoader] = None


def get_config_loader(config_dir: str = "config") -> ConfigLoader:
    """Get the global configuration loader instance."""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader(config_dir)
    return _config_loader


def get_config_value(config_name: str, key_path: str, default: Any = None) -> Any:
    """Convenience function to get a configuration value."""
    return get_config_loader().get(config_name, key_path, default)


# ── Typed settings ────────────────────────────────────────────────────────────

DEFAULT_SESSIONS = "14:00-23:00,19:00-04:00"


@dataclass(frozen=True)
class BotSettings:
    """Resolved runtime settings passed explicitly into each component."""

    supported_symbols: List[str] = field(default_factory=list)
    trade_volume: float = 0.01
    order_comment: str = "TradeGuard"
    timezone: str = "Asia/Jakarta"
    trading_sessions: str = DEFAULT_SESSIONS
    swing_lookback: int = 8
    range_multiplier: float = 1.5
    body_ratio: float = 0.7
    atr_period: int = 14
    allow_m1_fallback: bool = True
    max_losses_per_day: int = 3
    monitoring_interval_minutes: float = 2.0
    monitoring_initial_delay_seconds: float = 5.0
    deal_lookback_hours: int = 48
    analysis_interval_minutes: float = 60.0
    analysis_symbol_delay_seconds: float = 5.0
    broker_base_url: str = ""
    broker_api_key: str = ""
    broker_timeout: float = 15.0
    candles_base_url: str = ""
    candles_timeout: float = 15.0
    telegram_token: str = ""
    telegram_enabled: bool = False
    decision_command: str = ""
    decision_timeout: int = 120
    state_dir: str = "data"


# env var -> (settings field, caster)
_ENV_OVERRIDES = {
    "SUPPORTED_PAIRS": ("supported_symbols", "symbols"),
    "TRADE_VOLUME": ("trade_volume", float),
    "TRADING_SESSIONS": ("trading_sessions", str),
    "SWING_LOOKBACK": ("swing_lookback", int),
    "SWEEP_ATR_MULTIPLIER": ("range_multiplier", float),
    "MIN_BODY_RATIO": ("body_ratio", float),
    "MAX_LOSSES_PER_DAY": ("max_losses_per_day", int),
    "MONITORING_INTERVAL_MINUTES": ("monitoring_interval_minutes", float),
    "BROKER_API_BASE_URL": ("broker_base_url", str),
    "BROKER_API_KEY": ("broker_api_key", str),
    "OHLCV_API_BASE_URL": ("candles_base_url", str),
    "TELEGRAM_BOT_TOKEN": ("telegram_token", str),
    "DECISION_COMMAND": ("decision_command", str),
}


def _parse_symbols(raw) -> List[str]:
    if isinstance(raw, str):
        raw = raw.split(",")
    return [str(s).strip().upper() for s in (raw or []) if str(s).strip()]


def _section(config: Mapping, name: str) -> Dict[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"settings.{name} must be a mapping, got {type(value).__name__}")
    return value


def settings_from_dict(
    config: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> BotSettings:
    """
    Build BotSettings from a parsed settings.yaml plus environment overrides.

    Args:
        config: Parsed settings.yaml content
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigError: If a value cannot be converted
    """
    environ = os.environ if environ is None else environ

    trading = _section(config, "trading")
    sessions = _section(config, "sessions")
    hard_filter = _section(config, "hard_filter")
    breaker = _section(config, "circuit_breaker")
    monitoring = _section(config, "monitoring")
    analysis = _section(config, "analysis")
    broker = _section(config, "broker")
    candles = _section(config, "candles")
    telegram = _section(config, "telegram")
    decision = _section(config, "decision")
    paths = _section(config, "paths")

    values: Dict[str, Any] = {
        "supported_symbols": _parse_symbols(trading.get("supported_symbols", [])),
        "trade_volume": trading.get("volume", 0.01),
        "order_comment": trading.get("comment", "TradeGuard"),
        "timezone": sessions.get("timezone", "Asia/Jakarta"),
        "trading_sessions": sessions.get("trading_sessions", DEFAULT_SESSIONS),
        "swing_lookback": hard_filter.get("swing_lookback", 8),
        "range_multiplier": hard_filter.get("range_multiplier", 1.5),
        "body_ratio": hard_filter.get("body_ratio", 0.7),
        "atr_period": hard_filter.get("atr_period", 14),
        "allow_m1_fallback": hard_filter.get("allow_m1_fallback", True),
        "max_losses_per_day": breaker.get("max_losses_per_day", 3),
        "monitoring_interval_minutes": monitoring.get("interval_minutes", 2),
        "monitoring_initial_delay_seconds": monitoring.get("initial_delay_seconds", 5),
        "deal_lookback_hours": monitoring.get("deal_lookback_hours", 48),
        "analysis_interval_minutes": analysis.get("interval_minutes", 60),
        "analysis_symbol_delay_seconds": analysis.get("symbol_delay_seconds", 5),
        "broker_base_url": broker.get("base_url", ""),
        "broker_api_key": broker.get("api_key", ""),
        "broker_timeout": broker.get("timeout", 15),
        "candles_base_url": candles.get("base_url", ""),
        "candles_timeout": candles.get("timeout", 15),
        "telegram_token": telegram.get("token", ""),
        "telegram_enabled": telegram.get("enabled", False),
        "decision_command": decision.get("command", ""),
        "decision_timeout": decision.get("timeout", 120),
        "state_dir": paths.get("state_dir", "data"),
    }

    for env_name, (key, caster) in _ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        if caster == "symbols":
            values[key] = _parse_symbols(raw)
            continue
        try:
            values[key] = caster(raw)
        except ValueError:
            raise ConfigError(f"Invalid value for {env_name}: {raw!r}")

    numeric = {
        "trade_volume": float, "swing_lookback": int, "range_multiplier": float,
        "body_ratio": float, "atr_period": int, "max_losses_per_day": int,
        "monitoring_interval_minutes": float, "monitoring_initial_delay_seconds": float,
        "deal_lookback_hours": int, "analysis_interval_minutes": float,
        "analysis_symbol_delay_seconds": float, "broker_timeout": float,
        "candles_timeout": float, "decision_timeout": int,
    }
    for key, caster in numeric.items():
        try:
            values[key] = caster(values[key])
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid value for {key}: {values[key]!r}")

    if values["swing_lookback"] < 1:
        raise ConfigError("swing_lookback must be >= 1")
    if values["max_losses_per_day"] < 1:
        raise ConfigError("max_losses_per_day must be >= 1")

    return BotSettings(**values)


def load_settings(config_name: str = "settings", config_dir: str = "config") -> BotSettings:
    """
    Load settings.yaml and resolve BotSettings.

    Args:
        config_name: Settings file name (without .yaml)
        config_dir: Configuration directory
    """
    config = ConfigLoader(config_dir).load(config_name, required=False) or {}
    return settings_from_dict(config)
