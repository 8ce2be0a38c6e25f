"""Decision execution."""

from .decision_engine import DecisionEngine, DecisionEffect

__all__ = ["DecisionEngine", "DecisionEffect"]
