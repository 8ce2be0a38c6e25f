"""Risk management: daily-loss circuit breaker."""

from .circuit_breaker import CircuitBreaker

__all__ = ["CircuitBreaker"]
