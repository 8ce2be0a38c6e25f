"""
Candle Source
Fetches OHLCV bars from the market-data HTTP API as pandas DataFrames.
"""

from typing import Optional, Union

import pandas as pd
import requests

from ..bot_logger import get_logger
from .constants import Timeframe
from .exceptions import InsufficientDataError

OHLCV_COLUMNS = ["time", "open", "high", "low", "close", "volume"]


class CandleSource:
    """HTTP OHLCV provider."""

    def __init__(
        self,
        base_url: str = "https://api.mt5.flx.web.id",
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.logger = get_logger()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: Union[Timeframe, str] = Timeframe.M5,
        count: int = 60,
    ) -> pd.DataFrame:
        """
        Fetch the most recent bars, oldest first.

        Returns:
            DataFrame with columns time (UTC), open, high, low, close, volume

        Raises:
            InsufficientDataError: If the API cannot be reached or answers garbage
        """
        if isinstance(timeframe, str):
            timeframe = Timeframe.from_string(timeframe)

        params = {"symbol": symbol, "timeframe": timeframe.api_name, "count": count}
        try:
            response = self.session.get(f"{self.base_url}/ohlcv", params=params, timeout=self.timeout)
            response.raise_for_status()
            rows = response.json()
        except (requests.RequestException, ValueError) as e:
            raise InsufficientDataError(f"OHLCV fetch failed for {symbol} {timeframe.name}: {e}") from e

        if not rows:
            return empty_frame()
        if not isinstance(rows, list):
            raise InsufficientDataError(f"OHLCV for {symbol} is not a list: {rows!r}")

        df = bars_to_frame(rows)
        self.logger.debug(f"Fetched {len(df)} {timeframe.name} bars for {symbol}")
        return df


def empty_frame() -> pd.DataFrame:
    return pd.DataFrame(columns=OHLCV_COLUMNS)


def bars_to_frame(rows) -> pd.DataFrame:
    """Normalize a list of bar dicts into the standard OHLCV frame."""
    df = pd.DataFrame(rows)
    missing = [c for c in ("open", "high", "low", "close") if c not in df.columns]
    if missing:
        raise InsufficientDataError(f"OHLCV rows missing columns: {missing}")

    if "volume" not in df.columns:
        df["volume"] = df["tick_volume"] if "tick_volume" in df.columns else 0
    if "time" in df.columns:
        if pd.api.types.is_numeric_dtype(df["time"]):
            df["time"] = pd.to_datetime(df["time"], unit="s", utc=True)
        else:
            df["time"] = pd.to_datetime(df["time"], utc=True)
    else:
        df["time"] = pd.NaT

    for col in ("open", "high", "low", "close", "volume"):
        df[col] = pd.to_numeric(df[col], errors="coerce")

    df = df[OHLCV_COLUMNS].dropna(subset=["open", "high", "low", "close"])
    if df["time"].notna().all():
        df = df.sort_values("time")
    return df.reset_index(drop=True)
