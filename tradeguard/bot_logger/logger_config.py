"""
Logging configuration using Loguru.
Console plus daily file sinks for bot activity, trade lifecycle and reconciliation.
"""

import sys
from pathlib import Path
from typing import Optional
from datetime import timezone, timedelta

from loguru import logger

from ..utils.config_loader import get_config_value

# WIB (GMT+7) timezone
WIB = timezone(timedelta(hours=7))


def _dual_time_format(record):
    """Inject UTC + WIB timestamps into record extras."""
    utc_time = record["time"].astimezone(timezone.utc)
    wib_time = record["time"].astimezone(WIB)
    record["extra"]["utc"] = utc_time.strftime("%H:%M:%S")
    record["extra"]["wib"] = wib_time.strftime("%H:%M:%S")


class LoggerConfig:
    """Configure and manage logging for the bot."""

    def __init__(self):
        self.logger = logger
        self._configured = False

    def setup(self, log_level: Optional[str] = None) -> None:
        """
        Setup logging based on configuration.

        Args:
            log_level: Overrides logging.level from settings.yaml
        """
        if self._configured:
            return

        log_level = log_level or get_config_value("settings", "logging.level", "INFO")
        console_output = get_config_value("settings", "logging.console_output", True)
        file_output = get_config_value("settings", "logging.file_output", True)
        rotation = get_config_value("settings", "logging.rotation", "100 MB")
        retention = get_config_value("settings", "logging.retention", "30 days")
        log_dir = Path(get_config_value("settings", "paths.log_dir", "logs"))

        self.logger.remove()
        self.logger = self.logger.patch(_dual_time_format)

        if console_output:
            self.logger.add(
                sys.stderr,
                format="<green>{time:YYYY-MM-DD}</green> "
                "<green>UTC {extra[utc]}</green> | "
                "<yellow>WIB {extra[wib]}</yellow> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<level>{message}</level>",
                level=log_level,
                colorize=True,
            )

        if file_output:
            log_dir.mkdir(parents=True, exist_ok=True)
            (log_dir / "trades").mkdir(exist_ok=True)
            (log_dir / "bot_activity").mkdir(exist_ok=True)
            (log_dir / "reconcile").mkdir(exist_ok=True)

            file_fmt = "{time:YYYY-MM-DD} UTC {extra[utc]} | WIB {extra[wib]} | {level: <8} | {name}:{function}:{line} | {message}"
            file_fmt_short = "{time:YYYY-MM-DD} UTC {extra[utc]} | WIB {extra[wib]} | {level: <8} | {message}"

            self.logger.add(
                log_dir / "bot_activity" / "bot_{time:YYYY-MM-DD}.log",
                format=file_fmt,
                level=log_level,
                rotation=rotation,
                retention=retention,
                compression="zip",
            )

            # Open / promote / close events
            self.logger.add(
                log_dir / "trades" / "trades_{time:YYYY-MM-DD}.log",
                format=file_fmt_short,
                level="INFO",
                rotation=rotation,
                retention=retention,
                compression="zip",
                filter=lambda record: "trade" in record["extra"],
            )

            # Monitoring cycles
            self.logger.add(
                log_dir / "reconcile" / "reconcile_{time:YYYY-MM-DD}.log",
                format=file_fmt_short,
                level="DEBUG",
                rotation=rotation,
                retention=retention,
                compression="zip",
                filter=lambda record: "reconcile" in record["extra"],
            )

            self.logger.add(
                log_dir / "errors_{time:YYYY-MM-DD}.log",
                format=file_fmt,
                level="ERROR",
                rotation=rotation,
                retention=retention,
                compression="zip",
            )

        self._configured = True
        self.logger.info("Logger configured successfully")

    def get_logger(self):
        """Get the configured logger instance."""
        if not self._configured:
            self.setup()
        return self.logger


# Global logger instance
_logger_config: Optional[LoggerConfig] = None


def get_logger():
    """
    Get the global logger instance.

    Returns:
        Configured loguru logger
    """
    global _logger_config
    if _logger_config is None:
        _logger_config = LoggerConfig()
        _logger_config.setup()
    return _logger_config.get_logger()


def setup_logger(log_level: Optional[str] = None) -> None:
    """
    Setup the global logger.

    Args:
        log_level: Optional level override (DEBUG, INFO, WARNING, ERROR)
    """
    global _logger_config
    if _logger_config is None:
        _logger_config = LoggerConfig()
    _logger_config.setup(log_level)
