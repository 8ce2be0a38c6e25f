"""Core: constants, exceptions, state I/O and broker / market-data clients."""

from .constants import (
    Timeframe,
    OrderType,
    TradeStatus,
    DecisionType,
    BreakerState,
    CloseReason,
)
from .exceptions import (
    TradeGuardError,
    ConfigError,
    InsufficientDataError,
    BrokerRequestError,
    BrokerResponseError,
    ReconciliationGapError,
    StateConflictError,
    StateCorruptionError,
    DecisionPayloadError,
)

__all__ = [
    "Timeframe",
    "OrderType",
    "TradeStatus",
    "DecisionType",
    "BreakerState",
    "CloseReason",
    "TradeGuardError",
    "ConfigError",
    "InsufficientDataError",
    "BrokerRequestError",
    "BrokerResponseError",
    "ReconciliationGapError",
    "StateConflictError",
    "StateCorruptionError",
    "DecisionPayloadError",
]
