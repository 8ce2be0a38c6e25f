"""Logging modules."""

from .logger_config import get_logger, setup_logger

__all__ = ["get_logger", "setup_logger"]
