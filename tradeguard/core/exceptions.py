"""
Exception hierarchy for the trade guard.
"""

from typing import Any, Optional


class TradeGuardError(Exception):
    """Base class for all trade guard errors."""


class ConfigError(TradeGuardError):
    """Configuration value missing or invalid."""


class InsufficientDataError(TradeGuardError):
    """Not enough candles to evaluate the hard filter."""


class BrokerRequestError(TradeGuardError):
    """The broker API rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload

    def _text(self) -> str:
        parts = [str(self)]
        if self.payload is not None:
            parts.append(str(self.payload))
        return " ".join(parts).lower()

    @property
    def is_invalid_request(self) -> bool:
        """Broker answered 'Invalid request' (e.g. cancelling a filled order)."""
        return "invalid request" in self._text()

    @property
    def is_not_found(self) -> bool:
        """Broker does not know the ticket any more."""
        return self.status_code == 404 or "not found" in self._text()


class BrokerResponseError(TradeGuardError):
    """The broker answered with an unexpected body shape."""


class ReconciliationGapError(TradeGuardError):
    """A closed trade's closing deal could not be located."""


class StateConflictError(TradeGuardError):
    """A record already exists for the symbol."""


class StateCorruptionError(TradeGuardError):
    """A persisted state file is unreadable."""


class DecisionPayloadError(TradeGuardError):
    """Decision provider output failed validation."""
