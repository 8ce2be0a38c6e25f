"""
Tests: HardFilter gate order (range -> body -> swing), M1 fallback and
insufficient-data handling, plus CandleSource response normalization.
"""

import pandas as pd
import pytest
import requests

from conftest import BREAKOUT_BAR, FakeCandleSource, candle_error, make_candles

from tradeguard.analysis import HardFilter
from tradeguard.core.candle_source import CandleSource, bars_to_frame
from tradeguard.core.constants import Timeframe
from tradeguard.core.exceptions import InsufficientDataError


def _filter(frames=None, error=None):
    source = FakeCandleSource(frames, error=error)
    return HardFilter(source), source


# ── gate order ───────────────────────────────────────────────────────────────

class TestHardFilterChecks:

    def test_breakout_bar_passes(self):
        hf, _ = _filter({Timeframe.M5: make_candles(60, last=BREAKOUT_BAR)})
        result = hf.passes_hard_filter("XAUUSD")

        assert result.passed is True
        assert result.reason == "passed"
        assert result.atr == pytest.approx(1.7)
        assert result.range == pytest.approx(4.3)
        assert result.body == pytest.approx(4.0)
        assert result.wick_atr_ratio == pytest.approx(4.3 / 1.7)

    def test_narrow_bar_rejected_on_range(self):
        hf, _ = _filter({Timeframe.M5: make_candles(60)})
        result = hf.passes_hard_filter("XAUUSD")

        assert result.passed is False
        assert result.reason == "range_lt_multiplier"
        assert result.atr == pytest.approx(1.5)
        assert result.wick_atr_ratio is None

    def test_small_body_rejected(self):
        wick_bar = {"open": 100.0, "high": 104.2, "low": 99.9, "close": 101.0}
        hf, _ = _filter({Timeframe.M5: make_candles(60, last=wick_bar)})
        result = hf.passes_hard_filter("XAUUSD")

        assert result.passed is False
        assert result.reason == "body_lt_ratio"
        assert result.body == pytest.approx(1.0)

    def test_no_swing_break_rejected(self):
        # A wide bar inside the lookback window sets a higher swing high
        candles = make_candles(60, last=BREAKOUT_BAR, overrides={55: {"high": 105.0, "low": 95.0}})
        hf, _ = _filter({Timeframe.M5: candles})
        result = hf.passes_hard_filter("XAUUSD")

        assert result.passed is False
        assert result.reason == "no_swing_break"

    def test_swing_outside_lookback_is_ignored(self):
        candles = make_candles(60, last=BREAKOUT_BAR, overrides={30: {"high": 105.0, "low": 95.0}})
        hf, _ = _filter({Timeframe.M5: candles})
        assert hf.passes_hard_filter("XAUUSD").passed is True

    def test_downside_break_passes(self):
        bear_bar = {"open": 100.5, "high": 100.6, "low": 96.3, "close": 96.5}
        hf, _ = _filter({Timeframe.M5: make_candles(60, last=bear_bar)})
        result = hf.passes_hard_filter("XAUUSD")
        assert result.passed is True


# ── data availability ────────────────────────────────────────────────────────

class TestHardFilterData:

    def test_short_history_without_fallback(self):
        hf, source = _filter({Timeframe.M5: make_candles(30)})
        result = hf.passes_hard_filter("XAUUSD", allow_lower_timeframe_fallback=False)

        assert result.passed is False
        assert result.reason == "insufficient_data"
        assert result.atr is None
        assert [c[1] for c in source.calls] == [Timeframe.M5]

    def test_short_history_falls_back_to_m1(self):
        m1 = make_candles(300, minutes=1)
        hf, source = _filter({Timeframe.M5: make_candles(30), Timeframe.M1: m1})
        result = hf.passes_hard_filter("XAUUSD")

        assert [c[1] for c in source.calls] == [Timeframe.M5, Timeframe.M1]
        assert source.calls[1][2] == 300
        # 300 flat M1 bars -> 60 flat M5 bars: evaluated, then rejected on range
        assert result.reason == "range_lt_multiplier"
        assert result.atr == pytest.approx(1.5)

    def test_fallback_still_short(self):
        hf, _ = _filter({Timeframe.M5: make_candles(30), Timeframe.M1: make_candles(100, minutes=1)})
        assert hf.passes_hard_filter("XAUUSD").reason == "insufficient_data"

    def test_source_failure_is_insufficient_data(self):
        hf, _ = _filter(error=candle_error())
        result = hf.passes_hard_filter("XAUUSD")
        assert result.passed is False
        assert result.reason == "insufficient_data"

    def test_zero_atr_is_insufficient_data(self):
        flat = make_candles(60)
        for col in ("open", "high", "low", "close"):
            flat[col] = 100.0
        hf, _ = _filter({Timeframe.M5: flat})
        result = hf.passes_hard_filter("XAUUSD")
        assert result.reason == "insufficient_data"
        assert result.atr == 0.0

    def test_result_to_dict(self):
        hf, _ = _filter({Timeframe.M5: make_candles(60, last=BREAKOUT_BAR)})
        data = hf.passes_hard_filter("XAUUSD").to_dict()
        assert set(data) == {"passed", "reason", "atr", "range", "body", "wick_atr_ratio"}


# ── CandleSource ─────────────────────────────────────────────────────────────

class _Response:
    def __init__(self, body, status=200):
        self._body = body
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._body


class _Session:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        if self.error is not None:
            raise self.error
        return self.response


class TestCandleSource:

    def test_request_shape_and_normalization(self):
        rows = [
            {"time": 1771804800, "open": "1.1", "high": 1.2, "low": 1.0, "close": 1.15, "tick_volume": 7},
            {"time": 1771804500, "open": 1.0, "high": 1.1, "low": 0.9, "close": 1.1, "tick_volume": 3},
        ]
        session = _Session(_Response(rows))
        source = CandleSource("https://candles.example/", timeout=5, session=session)

        df = source.fetch_ohlcv("XAUUSD", Timeframe.M5, 60)

        url, params, timeout = session.requests[0]
        assert url == "https://candles.example/ohlcv"
        assert params == {"symbol": "XAUUSD", "timeframe": "m5", "count": 60}
        assert timeout == 5
        assert list(df.columns) == ["time", "open", "high", "low", "close", "volume"]
        # sorted oldest first, volume taken from tick_volume
        assert df["time"].is_monotonic_increasing
        assert df.iloc[0]["volume"] == 3
        assert df.iloc[1]["open"] == pytest.approx(1.1)
        assert str(df["time"].dt.tz) == "UTC"

    def test_string_timeframe_accepted(self):
        session = _Session(_Response([]))
        df = CandleSource(session=session).fetch_ohlcv("EURUSD", "m1", 300)
        assert df.empty
        assert session.requests[0][1]["timeframe"] == "m1"

    def test_network_error_raises_insufficient_data(self):
        session = _Session(error=requests.ConnectionError("down"))
        with pytest.raises(InsufficientDataError):
            CandleSource(session=session).fetch_ohlcv("XAUUSD")

    def test_http_error_raises_insufficient_data(self):
        session = _Session(_Response({"detail": "bad"}, status=500))
        with pytest.raises(InsufficientDataError):
            CandleSource(session=session).fetch_ohlcv("XAUUSD")

    def test_non_list_body_rejected(self):
        session = _Session(_Response({"error": "symbol"}))
        with pytest.raises(InsufficientDataError):
            CandleSource(session=session).fetch_ohlcv("XAUUSD")

    def test_missing_price_columns_rejected(self):
        with pytest.raises(InsufficientDataError):
            bars_to_frame([{"time": 1, "open": 1.0}])

    def test_iso_timestamps_parsed(self):
        df = bars_to_frame([{"time": "2026-02-23T10:00:00Z", "open": 1, "high": 2, "low": 0.5, "close": 1.5}])
        assert df.iloc[0]["time"] == pd.Timestamp("2026-02-23 10:00", tz="UTC")
        assert df.iloc[0]["volume"] == 0
