"""
Hard Filter
Signal-quality gate run on the last closed M5 candle before an analysis.

The last candle must be a wide-range, full-bodied bar that breaks the prior
swing high or low:
    range >= range_multiplier * ATR
    body  >= body_ratio * range
    high > max(prior N highs) or low < min(prior N lows)
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import pandas as pd

from ..bot_logger import get_logger
from ..core.constants import (
    FALLBACK_M1_COUNT,
    MIN_CANDLES,
    REASON_BODY,
    REASON_INSUFFICIENT_DATA,
    REASON_PASSED,
    REASON_RANGE,
    REASON_SWING,
    Timeframe,
)
from ..core.exceptions import InsufficientDataError
from ..indicators.technical import aggregate_to_m5, atr as wilder_atr


@dataclass
class HardFilterResult:
    """Outcome of the hard filter. Measurements are None when data was short."""
    passed: bool
    reason: str
    atr: Optional[float] = None
    range: Optional[float] = None
    body: Optional[float] = None
    wick_atr_ratio: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class HardFilter:
    """Volatility and signal-quality gate."""

    def __init__(
        self,
        candle_source,
        swing_lookback: int = 8,
        range_multiplier: float = 1.5,
        body_ratio: float = 0.7,
        atr_period: int = 14,
    ):
        """
        Initialize hard filter.

        Args:
            candle_source: Object exposing fetch_ohlcv(symbol, timeframe, count)
            swing_lookback: Prior candles used for the swing high/low
            range_multiplier: Minimum range as a multiple of ATR
            body_ratio: Minimum body as a fraction of range
            atr_period: ATR period
        """
        self.logger = get_logger()
        self.candle_source = candle_source
        self.swing_lookback = swing_lookback
        self.range_multiplier = range_multiplier
        self.body_ratio = body_ratio
        self.atr_period = atr_period

    def _load_candles(self, symbol: str, allow_fallback: bool) -> pd.DataFrame:
        candles = self.candle_source.fetch_ohlcv(symbol, Timeframe.M5, MIN_CANDLES)
        if len(candles) < MIN_CANDLES and allow_fallback:
            self.logger.info(
                f"{symbol}: only {len(candles)} M5 bars, aggregating {FALLBACK_M1_COUNT} M1 bars"
            )
            m1 = self.candle_source.fetch_ohlcv(symbol, Timeframe.M1, FALLBACK_M1_COUNT)
            candles = aggregate_to_m5(m1).tail(MIN_CANDLES).reset_index(drop=True)
        return candles

    def passes_hard_filter(self, symbol: str, allow_lower_timeframe_fallback: bool = True) -> HardFilterResult:
        """
        Evaluate the hard filter for a symbol.

        Args:
            symbol: Trading symbol
            allow_lower_timeframe_fallback: Build M5 from M1 when M5 history is short

        Returns:
            HardFilterResult
        """
        try:
            candles = self._load_candles(symbol, allow_lower_timeframe_fallback)
        except InsufficientDataError as e:
            self.logger.warning(f"{symbol}: candle source failed: {e}")
            return HardFilterResult(passed=False, reason=REASON_INSUFFICIENT_DATA)

        if len(candles) < MIN_CANDLES:
            self.logger.info(f"{symbol}: insufficient data ({len(candles)} < {MIN_CANDLES})")
            return HardFilterResult(passed=False, reason=REASON_INSUFFICIENT_DATA)

        atr = wilder_atr(candles, self.atr_period)
        if atr <= 0:
            return HardFilterResult(passed=False, reason=REASON_INSUFFICIENT_DATA, atr=atr)

        last = candles.iloc[-1]
        rng = float(last["high"] - last["low"])
        body = float(abs(last["close"] - last["open"]))
        measures = {"atr": atr, "range": rng, "body": body}

        if rng < self.range_multiplier * atr:
            return self._reject(symbol, REASON_RANGE, measures)
        if body < self.body_ratio * rng:
            return self._reject(symbol, REASON_BODY, measures)

        prior = candles.iloc[-self.swing_lookback - 1:-1]
        prev_high = float(prior["high"].max())
        prev_low = float(prior["low"].min())
        if not (last["high"] > prev_high or last["low"] < prev_low):
            return self._reject(symbol, REASON_SWING, measures)

        result = HardFilterResult(passed=True, reason=REASON_PASSED, wick_atr_ratio=rng / atr, **measures)
        self.logger.info(
            f"{symbol}: hard filter passed (range={rng:.2f} atr={atr:.2f} "
            f"ratio={result.wick_atr_ratio:.2f})"
        )
        return result

    def _reject(self, symbol: str, reason: str, measures: Dict[str, float]) -> HardFilterResult:
        self.logger.info(
            f"{symbol}: hard filter rejected ({reason}) "
            f"range={measures['range']:.2f} body={measures['body']:.2f} atr={measures['atr']:.2f}"
        )
        return HardFilterResult(passed=False, reason=reason, **measures)
