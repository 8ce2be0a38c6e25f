"""
Global constants for the trade guard.
"""

from enum import Enum
from typing import Dict, Final


# Timeframes as understood by the candle API
class Timeframe(Enum):
    """Candle timeframe constants."""
    M1 = 1
    M5 = 5

    @classmethod
    def from_string(cls, timeframe_str: str) -> "Timeframe":
        """Convert string to Timeframe enum."""
        try:
            return cls[timeframe_str.upper()]
        except KeyError:
            raise ValueError(f"Unknown timeframe: {timeframe_str}")

    @property
    def api_name(self) -> str:
        return self.name.lower()


class OrderType(Enum):
    """Broker order types."""
    MARKET_BUY = "MARKET_BUY"
    MARKET_SELL = "MARKET_SELL"
    BUY_LIMIT = "BUY_LIMIT"
    SELL_LIMIT = "SELL_LIMIT"
    BUY_STOP = "BUY_STOP"
    SELL_STOP = "SELL_STOP"

    @classmethod
    def from_string(cls, value: str) -> "OrderType":
        """Parse an order type, accepting spaces or dashes as separators."""
        key = str(value).strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown order type: {value}")

    @property
    def is_pending(self) -> bool:
        """Limit and stop orders rest at the broker until filled."""
        return self in (
            OrderType.BUY_LIMIT, OrderType.SELL_LIMIT,
            OrderType.BUY_STOP, OrderType.SELL_STOP,
        )


class TradeStatus(Enum):
    """Lifecycle state of a locally tracked trade."""
    PENDING = "PENDING"
    LIVE = "LIVE"


class DecisionType(Enum):
    """Decision kinds produced by the decision provider."""
    OPEN = "OPEN"
    CLOSE_MANUAL = "CLOSE_MANUAL"
    HOLD = "HOLD"
    NO_TRADE = "NO_TRADE"


class BreakerState(Enum):
    """Circuit breaker states."""
    ARMED = "ARMED"
    TRIPPED = "TRIPPED"


class CloseReason:
    """Human-readable close reasons written to notices and the ledger."""
    TAKE_PROFIT = "Take Profit"
    STOP_LOSS = "Stop Loss"
    USER_CLOSE = "Closed by User"
    EXTERNAL_CLOSE = "Closed Externally"
    UNKNOWN = "Closed - Reason Unknown"
    MANUAL = "Manual Close"
    NOT_FOUND = "Closed (Not Found on Broker)"


# Deal direction: position exit
DEAL_ENTRY_OUT: Final[int] = 1

# Deal reason code -> close reason
DEAL_REASON_MAP: Dict[int, str] = {
    0: CloseReason.USER_CLOSE,
    1: CloseReason.USER_CLOSE,
    2: CloseReason.USER_CLOSE,
    3: CloseReason.EXTERNAL_CLOSE,
    4: CloseReason.STOP_LOSS,
    5: CloseReason.TAKE_PROFIT,
    6: CloseReason.EXTERNAL_CLOSE,
    7: CloseReason.EXTERNAL_CLOSE,
    8: CloseReason.EXTERNAL_CLOSE,
    9: CloseReason.EXTERNAL_CLOSE,
}


def close_reason_from_code(code) -> str:
    """Map a broker deal reason code to a close reason."""
    try:
        return DEAL_REASON_MAP.get(int(code), CloseReason.UNKNOWN)
    except (TypeError, ValueError):
        return CloseReason.UNKNOWN


# Session segments (trading timezone, local hour)
SEGMENT_LONDON: Final[str] = "LONDON"
SEGMENT_OVERLAP: Final[str] = "OVERLAP"
SEGMENT_NY_LATE: Final[str] = "NY_LATE"
SEGMENT_OUT: Final[str] = "OUT"

# Hard filter
MIN_CANDLES: Final[int] = 60
FALLBACK_M1_COUNT: Final[int] = 300

# Hard filter rejection reasons
REASON_INSUFFICIENT_DATA: Final[str] = "insufficient_data"
REASON_RANGE: Final[str] = "range_lt_multiplier"
REASON_BODY: Final[str] = "body_lt_ratio"
REASON_SWING: Final[str] = "no_swing_break"
REASON_PASSED: Final[str] = "passed"

# State file names
PENDING_DIR: Final[str] = "pending_orders"
LIVE_DIR: Final[str] = "live_positions"
JOURNAL_DIR: Final[str] = "journal_data"
BREAKER_FILE: Final[str] = "circuit_breaker_stats.json"
RECIPIENTS_FILE: Final[str] = "recipients.json"
STATUS_FILE: Final[str] = "bot_status.json"
LEDGER_FILE: Final[str] = "trade_ledger.csv"
