"""
Technical helpers for the hard filter: true range, Wilder ATR and
M1 -> M5 candle aggregation.
"""

import numpy as np
import pandas as pd

from ..core.candle_source import OHLCV_COLUMNS


def true_range(df: pd.DataFrame) -> pd.Series:
    """
    True range per candle.

    The first candle has no previous close, so the series starts at the
    second candle (index 1).
    """
    h, l, c = df["high"], df["low"], df["close"]
    prev_close = c.shift(1)
    tr = pd.concat([h - l, (h - prev_close).abs(), (l - prev_close).abs()], axis=1).max(axis=1)
    return tr.iloc[1:]


def atr_series(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """
    Wilder-smoothed ATR.

    Seeded with the simple mean of the first `period` true ranges, then
    atr = (prev * (period - 1) + tr) / period. Empty when there are not
    enough candles.
    """
    tr = true_range(df)
    if len(tr) < period:
        return pd.Series(dtype=float)

    values = tr.to_numpy(dtype=float)
    out = np.empty(len(values) - period + 1)
    out[0] = values[:period].mean()
    for i in range(1, len(out)):
        out[i] = (out[i - 1] * (period - 1) + values[period - 1 + i]) / period
    return pd.Series(out, index=tr.index[period - 1:])


def atr(df: pd.DataFrame, period: int = 14) -> float:
    """Latest Wilder ATR, or 0.0 when there is not enough data."""
    series = atr_series(df, period)
    if series.empty:
        return 0.0
    return float(series.iloc[-1])


def aggregate_to_m5(df_m1: pd.DataFrame) -> pd.DataFrame:
    """
    Aggregate M1 bars into M5 bars aligned to 5-minute boundaries.

    open = first, high = max, low = min, close = last, volume = sum.
    """
    if df_m1 is None or df_m1.empty:
        return pd.DataFrame(columns=OHLCV_COLUMNS)

    df = df_m1.sort_values("time")
    bucket = df["time"].dt.floor("5min")
    grouped = df.groupby(bucket, sort=True).agg(
        open=("open", "first"),
        high=("high", "max"),
        low=("low", "min"),
        close=("close", "last"),
        volume=("volume", "sum"),
    )
    grouped.index.name = "time"
    return grouped.reset_index()[OHLCV_COLUMNS]
