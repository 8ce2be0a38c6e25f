"""Pre-trade analysis: hard filter and decision parsing."""

from .hard_filter import HardFilter, HardFilterResult
from .decision_parser import DecisionPayload, parse_decision_text

__all__ = ["HardFilter", "HardFilterResult", "DecisionPayload", "parse_decision_text"]
