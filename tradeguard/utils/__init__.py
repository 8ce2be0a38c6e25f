"""Utility modules."""

from .config_loader import (
    ConfigLoader,
    BotSettings,
    get_config_loader,
    get_config_value,
    load_settings,
    settings_from_dict,
)

__all__ = [
    "ConfigLoader",
    "BotSettings",
    "get_config_loader",
    "get_config_value",
    "load_settings",
    "settings_from_dict",
]
