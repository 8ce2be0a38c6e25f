"""Technical indicators."""

from .technical import true_range, atr, atr_series, aggregate_to_m5

__all__ = ["true_range", "atr", "atr_series", "aggregate_to_m5"]
