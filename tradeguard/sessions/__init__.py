"""Trading session gate."""

from .session_gate import SessionGate, build_windows, merge_intervals

__all__ = ["SessionGate", "build_windows", "merge_intervals"]
