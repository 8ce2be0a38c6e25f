"""
Shared pytest fixtures for the TradeGuard test suite.
No network access: broker, candle source, notifier and decision provider are
in-memory fakes.
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pandas as pd
import pytest
import pytz

# Add project root to path so package imports work without installation
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tradeguard.bot.trading_bot import TradingBot
from tradeguard.core.constants import Timeframe
from tradeguard.core.exceptions import BrokerRequestError, InsufficientDataError
from tradeguard.position_management.trade_archiver import TradeArchiver
from tradeguard.position_management.trade_journal import JournalStore, TradeLedger
from tradeguard.position_management.trade_store import TradeRecord, TradeRecordStore
from tradeguard.risk_management.circuit_breaker import CircuitBreaker
from tradeguard.utils.config_loader import BotSettings


# ---------------------------------------------------------------------------
# Date/time helpers
# ---------------------------------------------------------------------------

WIB = pytz.timezone("Asia/Jakarta")


def make_wib(hour: int, minute: int = 0, day: int = 23) -> datetime:
    """Aware datetime at the given Jakarta wall-clock time (Feb 2026)."""
    return WIB.localize(datetime(2026, 2, day, hour, minute))


def make_utc(hour: int, minute: int = 0, day: int = 23) -> datetime:
    return datetime(2026, 2, day, hour, minute, tzinfo=pytz.UTC)


# ---------------------------------------------------------------------------
# Candle builders
# ---------------------------------------------------------------------------

BASE_BAR = {"open": 100.0, "high": 101.0, "low": 99.5, "close": 100.5}


def make_candles(n: int = 60, last=None, overrides=None, minutes: int = 5,
                 start: datetime = None) -> pd.DataFrame:
    """
    Build n identical bars (true range 1.5 each), optionally replacing the
    last bar and any bar by position.

    Args:
        n: Number of bars
        last: Dict of OHLC values for the final bar
        overrides: {position: ohlc dict} for other bars
        minutes: Bar spacing
        start: Time of the first bar
    """
    start = start or datetime(2026, 2, 23, 0, 0, tzinfo=pytz.UTC)
    rows = []
    for i in range(n):
        bar = dict(BASE_BAR)
        if overrides and i in overrides:
            bar.update(overrides[i])
        rows.append({"time": start + timedelta(minutes=minutes * i), **bar, "volume": 10})
    if last is not None and rows:
        rows[-1].update(last)
    return pd.DataFrame(rows)


# Wide, full-bodied bar breaking the prior highs
BREAKOUT_BAR = {"open": 100.0, "high": 104.2, "low": 99.9, "close": 104.0}


class FakeCandleSource:
    """Returns preset frames per timeframe and records every fetch."""

    def __init__(self, frames=None, error: Exception = None):
        self.frames = frames or {}
        self.error = error
        self.calls = []

    def fetch_ohlcv(self, symbol, timeframe=Timeframe.M5, count=60):
        self.calls.append((symbol, timeframe, count))
        if self.error is not None:
            raise self.error
        df = self.frames.get(timeframe)
        if df is None:
            return pd.DataFrame(columns=["time", "open", "high", "low", "close", "volume"])
        return df.tail(count).reset_index(drop=True)


# ---------------------------------------------------------------------------
# Broker / notifier / provider fakes
# ---------------------------------------------------------------------------

class FakeBroker:
    """In-memory broker bridge."""

    def __init__(self):
        self.positions = []
        self.deals = []
        self.calls = []
        self.open_result = {"order": 1001}
        self.errors = {}
        self.todays_profit = 0.0

    def _maybe_fail(self, name):
        err = self.errors.get(name)
        if err is not None:
            raise err

    def open_order(self, payload):
        self.calls.append(("open_order", payload))
        self._maybe_fail("open_order")
        return self.open_result

    def cancel_pending_order(self, ticket):
        self.calls.append(("cancel_pending_order", ticket))
        self._maybe_fail("cancel_pending_order")
        return {"retcode": 10009}

    def close_position(self, ticket):
        self.calls.append(("close_position", ticket))
        self._maybe_fail("close_position")
        return {"retcode": 10009}

    def get_active_positions(self):
        self.calls.append(("get_active_positions",))
        self._maybe_fail("get_active_positions")
        return list(self.positions)

    def get_closing_deal_info(self, ticket, lookback_hours=48):
        self.calls.append(("get_closing_deal_info", ticket))
        self._maybe_fail("get_closing_deal_info")
        for deal in self.deals:
            if deal.get("position_id") == ticket and deal.get("entry") == 1:
                return deal
        return None

    def get_todays_realized_profit(self):
        self.calls.append(("get_todays_realized_profit",))
        return self.todays_profit

    def call_names(self):
        return [c[0] for c in self.calls]


class RecordingNotifier:
    """Collects broadcast text instead of sending it."""

    def __init__(self):
        self.messages = []
        self.images = []

    def broadcast(self, text):
        self.messages.append(text)
        return 1

    def broadcast_image(self, image, caption=""):
        self.images.append((image, caption))
        return 1


class FakeProvider:
    """Decision provider returning a fixed answer."""

    def __init__(self, payload_text: str = "", narrative: str = "analysis text", error=None):
        self.payload_text = payload_text
        self.narrative = narrative
        self.error = error
        self.calls = []

    def analyze(self, symbol, active_trade=None, initial_analysis=None, context=None):
        self.calls.append((symbol, active_trade, initial_analysis, context))
        if self.error is not None:
            raise self.error
        return self.narrative, self.payload_text


def broker_error(message: str, status_code: int = 400, payload=None) -> BrokerRequestError:
    return BrokerRequestError(message, status_code=status_code, payload=payload)


def candle_error() -> InsufficientDataError:
    return InsufficientDataError("OHLCV fetch failed")


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def state_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store(state_dir):
    return TradeRecordStore(state_dir)


@pytest.fixture
def journal(state_dir):
    return JournalStore(state_dir)


@pytest.fixture
def ledger(state_dir):
    return TradeLedger(state_dir)


@pytest.fixture
def breaker(state_dir):
    return CircuitBreaker(state_dir, max_losses_per_day=3)


@pytest.fixture
def archiver(broker, store, journal, ledger, breaker):
    return TradeArchiver(broker, store, journal, ledger, breaker)


def make_record(symbol="XAUUSD", ticket=1001, order_type="MARKET_BUY", **kwargs) -> TradeRecord:
    defaults = {"price": 2350.0, "sl": 2340.0, "tp": 2370.0, "volume": 0.01}
    defaults.update(kwargs)
    return TradeRecord(ticket=ticket, symbol=symbol, order_type=order_type, **defaults)


def make_settings(state_dir, **overrides):
    values = {
        "supported_symbols": ["XAUUSD", "EURUSD"],
        "trading_sessions": "00:00-00:00",
        "state_dir": str(state_dir),
        "analysis_symbol_delay_seconds": 0,
        "monitoring_initial_delay_seconds": 0,
    }
    values.update(overrides)
    return BotSettings(**values)


OPEN_BUY_JSON = (
    '{"decision": "OPEN", "symbol": "XAUUSD", "order_type": "MARKET_BUY", '
    '"sl": 2340, "tp": 2370, "reason": "sweep and reclaim"}'
)


@pytest.fixture
def candle_source():
    return FakeCandleSource({Timeframe.M5: make_candles(60, last=BREAKOUT_BAR)})


@pytest.fixture
def provider():
    return FakeProvider(OPEN_BUY_JSON)


@pytest.fixture
def bot(state_dir, broker, candle_source, notifier, provider):
    return TradingBot(
        make_settings(state_dir),
        broker=broker,
        candle_source=candle_source,
        notifier=notifier,
        provider=provider,
    )
